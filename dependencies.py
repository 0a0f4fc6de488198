"""
Service wiring for the route handlers.
Builds the process-wide services once; routes receive them through FastAPI's Depends.
"""
from dataclasses import dataclass
from functools import partial
from typing import Optional

from config import Config
from services.chat_service import ChatService
from services.cloud_service import CloudService
from services.memory_augmentation import MemoryAugmentationStep
from services.memory_service import MemoryIndex
from services.model_catalog import ModelCatalog
from services.model_runtime import LocalModelRuntime
from services.session_store import SessionStore
from services.tool_service import ToolService
from services.usage_service import UsageLog
from tools import default_tools


@dataclass
class Services:
    """The services shared by all requests."""
    sessions: SessionStore
    memories: MemoryIndex
    usage: UsageLog
    tools: ToolService
    runtime: LocalModelRuntime
    cloud: CloudService
    catalog: ModelCatalog
    memory_step: MemoryAugmentationStep
    chat: ChatService

    async def refresh_models(self) -> None:
        await self.catalog.refresh(self.runtime, self.cloud)

    def close(self) -> None:
        for store in (self.sessions, self.memories, self.usage):
            store.close()


def build_services(
    sessions: Optional[SessionStore] = None,
    memories: Optional[MemoryIndex] = None,
    usage: Optional[UsageLog] = None,
    tools: Optional[ToolService] = None,
    runtime: Optional[LocalModelRuntime] = None,
    cloud: Optional[CloudService] = None,
    catalog: Optional[ModelCatalog] = None,
    memory_enabled: bool = Config.MEMORY_ENABLED,
    **chat_options,
) -> Services:
    """Build the service graph; any part can be supplied ready-made."""
    sessions = sessions or SessionStore()
    memories = memories or MemoryIndex()
    usage = usage or UsageLog()
    tools = tools or ToolService(default_tools())
    runtime = runtime or LocalModelRuntime()
    cloud = cloud or CloudService()
    catalog = catalog or ModelCatalog()

    embedder = partial(runtime.embed, Config.EMBEDDING_MODEL) if Config.EMBEDDING_MODEL else None
    memory_step = MemoryAugmentationStep(memories, embedder, enabled=memory_enabled)

    chat = ChatService(
        session_store=sessions,
        usage_log=usage,
        tool_service=tools,
        memory_step=memory_step,
        runtime=runtime,
        cloud=cloud,
        catalog=catalog,
        **chat_options,
    )

    return Services(
        sessions=sessions,
        memories=memories,
        usage=usage,
        tools=tools,
        runtime=runtime,
        cloud=cloud,
        catalog=catalog,
        memory_step=memory_step,
        chat=chat,
    )


_services: Optional[Services] = None


def get_services() -> Services:
    """Get the global services instance."""
    global _services
    if _services is None:
        _services = build_services()
    return _services


def reset_services() -> None:
    """Close and forget the global services."""
    global _services
    if _services is not None:
        _services.close()
        _services = None
