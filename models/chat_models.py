"""
Data models for chat processing.
Contains model descriptors, tool call records, turn state and flow events.
"""
import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union
from models.api_models import ChatRequest, ChatSession, Message


@dataclass(frozen=True)
class ModelCapabilities:
    """What a model can accept, resolved once when the model list loads."""
    supports_vision: bool = False
    supports_tools: bool = False


@dataclass(frozen=True)
class LocalModel:
    """Model served by the local Ollama runtime."""
    id: str
    name: str
    capabilities: ModelCapabilities = ModelCapabilities()
    kind: str = "local"


@dataclass(frozen=True)
class CloudModel:
    """Model served by the remote streaming endpoint."""
    id: str
    name: str
    capabilities: ModelCapabilities = ModelCapabilities()
    description: Optional[str] = None
    context_length: Optional[int] = None
    pricing: Optional[dict] = None
    kind: str = "cloud"


ModelDescriptor = Union[LocalModel, CloudModel]


@dataclass
class ToolCall:
    """A model-requested tool invocation."""
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResult:
    """Outcome of one tool invocation."""
    success: bool
    output: str


@dataclass
class CompletionResult:
    """Accumulated text and tool calls of one model round."""
    text: str = ""
    function_calls: list[ToolCall] = field(default_factory=list)


class TurnState(Enum):
    """States of a conversation turn."""
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    TOOL_REQUESTED = "tool_requested"
    EXECUTING_TOOLS = "executing_tools"
    FINALIZED = "finalized"
    ABORTED = "aborted"


IN_FLIGHT_STATES = frozenset({
    TurnState.AWAITING_MODEL,
    TurnState.TOOL_REQUESTED,
    TurnState.EXECUTING_TOOLS,
})


class TurnAction(Enum):
    """Types of events emitted while a turn runs."""
    USER_MESSAGE = "user_message"
    MEMORY_LOG = "memory"
    DELTA = "token"
    TOOL_CALL = "tool_call"
    TOOL_OUTPUT = "tool_output"
    ASSISTANT_MESSAGE = "message"
    STORAGE_ERROR = "storage_error"
    ABORTED = "aborted"
    ERROR = "error"
    DONE = "done"


@dataclass
class TurnEvent:
    """Represents a visible step of a turn."""
    action: TurnAction
    message: Optional[Message] = None
    content: Optional[str] = None
    tool_result: Optional[ToolResult] = None


@dataclass
class TurnContext:
    """
    Per-session turn state passed through the orchestrator.
    Holds the state machine value, the cancel signal and the round accumulator.
    """
    request: ChatRequest
    session: ChatSession
    model: ModelDescriptor
    state: TurnState = TurnState.IDLE
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    completion: CompletionResult = field(default_factory=CompletionResult)
    model_rounds: int = 0

    @property
    def session_id(self) -> str:
        return self.session.id

    @property
    def prompt(self) -> str:
        return self.request.prompt.strip()

    @property
    def is_cloud(self) -> bool:
        return isinstance(self.model, CloudModel)

    @property
    def tools_enabled(self) -> bool:
        """Tools are offered only when the user asked and the model supports them."""
        return self.request.tools_enabled and self.model.capabilities.supports_tools

    @property
    def in_flight(self) -> bool:
        return self.state in IN_FLIGHT_STATES

    def next_round(self) -> int:
        """Reset the accumulator and return the new model round number."""
        self.completion = CompletionResult()
        self.model_rounds += 1
        return self.model_rounds
