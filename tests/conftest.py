import pytest

from models.chat_models import CloudModel, LocalModel, ModelCapabilities


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def local_model():
    return LocalModel(id="qwen3:1.7b", name="qwen3:1.7b", capabilities=ModelCapabilities(supports_tools=True))


@pytest.fixture
def vision_model():
    return LocalModel(id="gemma3:4b", name="gemma3:4b", capabilities=ModelCapabilities(supports_vision=True))


@pytest.fixture
def cloud_model():
    return CloudModel(
        id="google/gemma-3-27b-it",
        name="Google: Gemma 3 27B",
        capabilities=ModelCapabilities(supports_vision=True),
    )


@pytest.fixture
def ollama_client():
    from tests.fixtures.mock_clients import ScriptedOllamaClient
    from tests.fixtures.responses import topic_embedding
    return ScriptedOllamaClient(embedding=topic_embedding)


@pytest.fixture
def cloud_transport():
    from tests.fixtures.mock_clients import CloudTransport
    return CloudTransport()


@pytest.fixture
def services(ollama_client, cloud_transport, local_model, vision_model, cloud_model):
    """Fully wired services on in-memory stores and scripted backends."""
    from dependencies import build_services
    from services.cloud_service import CloudService
    from services.memory_service import MemoryIndex
    from services.model_catalog import ModelCatalog
    from services.model_runtime import LocalModelRuntime
    from services.session_store import SessionStore
    from services.tool_service import ToolService
    from services.usage_service import UsageLog
    from tools import default_tools

    built = build_services(
        sessions=SessionStore(":memory:"),
        memories=MemoryIndex(":memory:"),
        usage=UsageLog(":memory:"),
        tools=ToolService(default_tools(python_enabled=True)),
        runtime=LocalModelRuntime(ollama_client),
        cloud=CloudService(api_key="test-key", client=cloud_transport.client()),
        catalog=ModelCatalog([local_model, vision_model, cloud_model]),
        memory_enabled=True,
        poll_interval=0.001,
    )
    yield built
    built.close()


@pytest.fixture
def chat_service(services):
    return services.chat


@pytest.fixture
def configured_app(services):
    """App with every router wired to the test services."""
    from fastapi import FastAPI
    from fastapi.testclient import TestClient
    from dependencies import get_services
    from routes import chat, chat_stream, memories, models_route, sessions, usage

    app = FastAPI()
    for module in (chat, chat_stream, memories, models_route, sessions, usage):
        app.include_router(module.router)
    app.dependency_overrides[get_services] = lambda: services

    with TestClient(app) as client:
        yield client
