import pytest

from models.api_models import MemoryEntry, Message
from services.memory_augmentation import MemoryAugmentationStep
from services.memory_service import MemoryIndex
from utils.errors import StorageError


@pytest.fixture
def index():
    memory_index = MemoryIndex(":memory:")
    yield memory_index
    memory_index.close()


def fixed_embedder(vector):
    async def embed(text):
        return vector
    return embed


def user_message(content, message_id="100"):
    return Message(id=message_id, role="user", content=content)


def remember(index, entry_id, content, embedding):
    index.add(MemoryEntry(
        id=entry_id, content=content, role="user", embedding=embedding, timestamp=1.0, chat_id="old-chat",
    ))


@pytest.mark.anyio
async def test_augment_injects_matches_and_stores_original(index):
    """Given a related memory, when augmenting, then context is prepended and the original content is memorized."""
    remember(index, "old", "My favorite color is pink", [1.0, 0.0])
    step = MemoryAugmentationStep(index, fixed_embedder([1.0, 0.0]), enabled=True)
    message = user_message("What color do I like?")

    content = await step.augment(message, "chat-1")

    assert content == "Context:\n[Memory]: My favorite color is pink\n\nUser Query:\nWhat color do I like?"
    assert message.content == "What color do I like?"
    assert message.memory_log == [
        "Converting to embeddings...",
        "Searching local vector DB...",
        "Found 1 relevant memories.",
    ]
    stored = index.list_entries()[-1]
    assert (stored.id, stored.content, stored.chat_id) == ("100", "What color do I like?", "chat-1")


@pytest.mark.anyio
async def test_augment_without_matches_returns_original(index):
    remember(index, "old", "Unrelated", [0.0, 1.0])
    step = MemoryAugmentationStep(index, fixed_embedder([1.0, 0.0]), enabled=True)
    message = user_message("Hello")

    content = await step.augment(message, "chat-1")

    assert content == "Hello"
    assert message.memory_log[-1] == "No relevant memories found."
    assert index.count() == 2


@pytest.mark.anyio
async def test_augment_reports_live_log_lines(index):
    lines = []
    step = MemoryAugmentationStep(index, fixed_embedder([1.0]), enabled=True)

    await step.augment(user_message("Hi"), "chat-1", on_log=lines.append)

    assert lines == ["Converting to embeddings...", "Searching local vector DB...", "No relevant memories found."]


@pytest.mark.anyio
async def test_augment_embedding_unavailable_degrades(index):
    """Given no embedding back, when augmenting, then the original content is used and the failure is logged."""
    step = MemoryAugmentationStep(index, fixed_embedder(None), enabled=True)
    message = user_message("Hello")

    content = await step.augment(message, "chat-1")

    assert content == "Hello"
    assert message.memory_log == ["Converting to embeddings...", "Failed to generate embedding (Model not loaded?)"]
    assert index.count() == 0


@pytest.mark.anyio
async def test_augment_embedding_exception_degrades(index):
    async def broken(text):
        raise ConnectionError("runtime offline")

    message = user_message("Hello")
    content = await MemoryAugmentationStep(index, broken, enabled=True).augment(message, "chat-1")

    assert content == "Hello"
    assert message.memory_log[-1] == "Failed to generate embedding (ConnectionError: runtime offline)"


@pytest.mark.anyio
async def test_augment_search_failure_continues_unaugmented(index):
    remember(index, "old", "Three dimensions", [1.0, 0.0, 0.0])
    message = user_message("Hello")

    content = await MemoryAugmentationStep(index, fixed_embedder([1.0, 0.0]), enabled=True).augment(message, "chat-1")

    assert content == "Hello"
    assert message.memory_log[-1].startswith("Memory search failed")


@pytest.mark.anyio
async def test_augment_storage_failure_is_logged(index, monkeypatch):
    def failing_add(entry):
        raise StorageError("add memory failed: disk I/O error")

    monkeypatch.setattr(index, "add", failing_add)
    message = user_message("Hello")

    content = await MemoryAugmentationStep(index, fixed_embedder([1.0]), enabled=True).augment(message, "chat-1")

    assert content == "Hello"
    assert message.memory_log[-1] == "Failed to save memory."


@pytest.mark.anyio
@pytest.mark.parametrize("enabled, embedder", [(False, fixed_embedder([1.0])), (True, None)])
async def test_augment_inactive_is_passthrough(index, enabled, embedder):
    message = user_message("Hello")

    content = await MemoryAugmentationStep(index, embedder, enabled=enabled).augment(message, "chat-1")

    assert content == "Hello"
    assert message.memory_log is None


@pytest.mark.anyio
async def test_image_placeholder_is_never_embedded(index):
    calls = []

    async def embed(text):
        calls.append(text)
        return [1.0]

    step = MemoryAugmentationStep(index, embed, enabled=True)
    image_message = user_message("(Image)")

    assert await step.augment(image_message, "chat-1") == "(Image)"
    assert await step.memorize(image_message, "chat-1") is False
    assert calls == []


@pytest.mark.anyio
async def test_memorize_stores_assistant_message(index):
    step = MemoryAugmentationStep(index, fixed_embedder([0.5, 0.5]), enabled=True)
    message = Message(id="200", role="assistant", content="Pink it is!")

    assert await step.memorize(message, "chat-1") is True

    stored = index.list_entries()
    assert [(e.id, e.role) for e in stored] == [("200", "assistant")]


@pytest.mark.anyio
async def test_memorize_failure_returns_false(index):
    step = MemoryAugmentationStep(index, fixed_embedder([]), enabled=True)
    assert await step.memorize(Message(id="200", role="assistant", content="Hi"), "chat-1") is False
    assert index.count() == 0
