"""
Chat service containing the turn orchestration logic.
Drives one user turn through memory augmentation, streamed model rounds and the
bounded tool-call loop, and persists the resulting session.
"""
import asyncio
import json
import time
from typing import AsyncIterator, Awaitable, Optional

from config import Config
from models.api_models import ChatRequest, ChatSession, Message
from models.chat_models import (
    ModelDescriptor,
    ToolCall,
    TurnAction,
    TurnContext,
    TurnEvent,
    TurnState,
)
from services.cloud_service import CloudService
from services.memory_augmentation import MemoryAugmentationStep
from services.model_catalog import ModelCatalog
from services.model_runtime import LocalModelRuntime
from services.session_store import SessionStore
from services.stream_service import PollingStreamAdapter, StreamEvent, StreamEventType
from services.tool_service import ToolService
from services.usage_service import UsageLog
from utils.constants import (
    TOOL_CALL_HEADER,
    TOOL_ERROR_TEMPLATE,
    TOOL_OUTPUT_TEMPLATE,
    get_system_prompt,
)
from utils.errors import (
    StorageError,
    TransportError,
    TurnCancelledError,
    TurnInFlightError,
    TurnRejectedError,
)
from utils.ids import MessageIdGenerator
from utils.logger import app_logger


class ChatService:
    """Service for running conversation turns, one in flight per session."""

    def __init__(
        self,
        session_store: SessionStore,
        usage_log: UsageLog,
        tool_service: ToolService,
        memory_step: MemoryAugmentationStep,
        runtime: LocalModelRuntime,
        cloud: CloudService,
        catalog: ModelCatalog,
        id_generator: Optional[MessageIdGenerator] = None,
        max_tool_rounds: int = Config.MAX_TOOL_ROUNDS,
        poll_interval: float = Config.STREAM_POLL_INTERVAL,
    ):
        self._sessions = session_store
        self._usage = usage_log
        self._tools = tool_service
        self._memory = memory_step
        self._runtime = runtime
        self._cloud = cloud
        self._catalog = catalog
        self._ids = id_generator or MessageIdGenerator()
        self._max_tool_rounds = max_tool_rounds
        self._poll_interval = poll_interval
        self._turns: dict[str, TurnContext] = {}

    def is_in_flight(self, session_id: str) -> bool:
        context = self._turns.get(session_id)
        return context is not None and context.in_flight

    def check_send(self, request: ChatRequest) -> ModelDescriptor:
        """
        Validate a send without claiming anything.

        Raises:
            TurnRejectedError: Empty input without an image, or a turn already in flight
            UnknownModelError: The model id is not in the catalog
        """
        if not request.prompt.strip() and not request.image:
            raise TurnRejectedError("Message is empty")

        if request.session_id and self.is_in_flight(request.session_id):
            raise TurnInFlightError(f"Session {request.session_id} already has a turn in flight")

        return self._catalog.resolve(request.model)

    def start_turn(self, request: ChatRequest) -> TurnContext:
        """
        Validate a send and claim the session for a new turn.
        The claim is released by `run_turn`, so callers must run the context they get.

        Raises:
            TurnRejectedError: Empty input without an image, or a turn already in flight
            UnknownModelError: The model id is not in the catalog
        """
        model = self.check_send(request)
        session = self._load_or_create_session(request)

        context = TurnContext(request=request, session=session, model=model)
        context.state = TurnState.AWAITING_MODEL
        self._turns[session.id] = context
        app_logger.info(f"Turn started for session {session.id} on {model.kind} model {model.id}")
        return context

    def cancel(self, session_id: str) -> bool:
        """Signal the in-flight turn of a session to stop. Returns False when none is running."""
        context = self._turns.get(session_id)
        if context is None or not context.in_flight:
            return False
        context.cancel_event.set()
        app_logger.info(f"Cancellation requested for session {session_id}")
        return True

    def _release(self, context: TurnContext) -> None:
        if context.in_flight:
            context.state = TurnState.ABORTED
        if self._turns.get(context.session_id) is context:
            del self._turns[context.session_id]

    def _load_or_create_session(self, request: ChatRequest) -> ChatSession:
        session = self._sessions.get(request.session_id) if request.session_id else None
        if session is None:
            return ChatSession(
                id=request.session_id or self._ids.next_id(),
                title=Config.DEFAULT_CHAT_TITLE,
                last_used=time.time(),
                model_id=request.model,
                rag_directory=request.rag_directory,
            )

        session.model_id = request.model
        if request.rag_directory:
            session.rag_directory = request.rag_directory
        return session

    @staticmethod
    def resolve_title(session: ChatSession) -> str:
        """First user message, shortened, until a title other than the placeholder is set."""
        if session.title != Config.DEFAULT_CHAT_TITLE:
            return session.title

        first = next((m for m in session.messages if m.role == "user"), None)
        if first is None:
            return session.title

        if len(first.content) > Config.TITLE_MAX_LENGTH:
            return first.content[:Config.TITLE_MAX_LENGTH] + "..."
        return first.content

    @staticmethod
    def format_tool_call(call: ToolCall) -> str:
        content = TOOL_CALL_HEADER.format(name=call.name)
        if call.name == "python_interpreter" and call.arguments.get("code"):
            return content + f"```python\n{call.arguments['code']}\n```"
        return content + f"```json\n{json.dumps(call.arguments, indent=2)}\n```"

    @staticmethod
    def _local_image_path(uri: str) -> str:
        return uri[len("file://"):] if uri.startswith("file://") else uri

    def _to_wire(self, message: Message, context: TurnContext, content: Optional[str] = None) -> dict:
        wire = {"role": message.role, "content": message.content if content is None else content}
        # cloud requests carry only role and content
        if message.images and not context.is_cloud and context.model.capabilities.supports_vision:
            wire["images"] = [self._local_image_path(image) for image in message.images]
        return wire

    def build_messages(self, context: TurnContext, user_message: Message, content: str) -> list[dict]:
        """System prompt, prior history and the new (possibly augmented) user content."""
        system_prompt = get_system_prompt(context.model.capabilities, context.request.tools_enabled)
        messages = [{"role": "system", "content": system_prompt}]
        for message in context.session.messages:
            if message.id == user_message.id:
                continue
            messages.append(self._to_wire(message, context))
        messages.append(self._to_wire(user_message, context, content=content))
        return messages

    def _persist(self, context: TurnContext) -> Optional[TurnEvent]:
        context.session.title = self.resolve_title(context.session)
        try:
            self._sessions.put(context.session)
        except StorageError as e:
            app_logger.error(f"Session {context.session_id} not saved: {e}")
            return TurnEvent(TurnAction.STORAGE_ERROR, content=str(e))
        return None

    def _record_usage(self, kind: str, character_count: int) -> Optional[TurnEvent]:
        try:
            self._usage.record(kind, character_count)
        except StorageError as e:
            app_logger.error(f"Usage entry not recorded: {e}")
            return TurnEvent(TurnAction.STORAGE_ERROR, content=str(e))
        return None

    @staticmethod
    def _check_cancelled(context: TurnContext) -> None:
        if context.cancel_event.is_set():
            raise TurnCancelledError(f"Turn cancelled for session {context.session_id}")

    @staticmethod
    async def _until_cancelled(context: TurnContext, awaitable: Awaitable):
        """
        Await `awaitable` unless the turn is cancelled first.

        The losing task is cancelled, so a stream read in progress is released.
        """
        task = asyncio.ensure_future(awaitable)
        cancel_wait = asyncio.ensure_future(context.cancel_event.wait())
        try:
            done, _ = await asyncio.wait({task, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            cancel_wait.cancel()

        if task in done:
            return task.result()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        raise TurnCancelledError(f"Turn cancelled for session {context.session_id}")

    @staticmethod
    async def _next_event(stream: AsyncIterator[StreamEvent]) -> Optional[StreamEvent]:
        try:
            return await stream.__anext__()
        except StopAsyncIteration:
            return None

    async def _model_round(self, context: TurnContext, messages: list[dict], tools: list[dict]) -> AsyncIterator[TurnEvent]:
        """Stream one model response into the turn's accumulator."""
        self._check_cancelled(context)
        round_number = context.next_round()
        context.state = TurnState.AWAITING_MODEL
        app_logger.info(f"Model round #{round_number}: {context.model.id} ({len(messages)} messages, {len(tools)} tools)")

        completion = None
        if context.is_cloud:
            stream = self._cloud.stream_chat(context.model.id, messages)
        else:
            completion = self._runtime.start_completion(context.model.id, messages, tools)
            stream = PollingStreamAdapter(completion, poll_interval=self._poll_interval).events()

        try:
            while True:
                event = await self._until_cancelled(context, self._next_event(stream))
                if event is None or event.type is StreamEventType.DONE:
                    break
                if event.type is StreamEventType.ERROR:
                    raise TransportError(event.error)
                context.completion.text += event.content
                yield TurnEvent(TurnAction.DELTA, content=event.content)
        finally:
            await stream.aclose()
            if completion is not None:
                await completion.stop()

        if completion is not None:
            context.completion.function_calls = list(completion.function_calls)

        app_logger.info(
            f"Model round #{round_number} completed: {len(context.completion.text)} characters, "
            f"{len(context.completion.function_calls)} tool call(s)"
        )

    async def _execute_tool_calls(self, context: TurnContext, working: list[dict]) -> AsyncIterator[TurnEvent]:
        """
        Run the requested calls in order, emitting a call and an output message for each.
        Failures are added to the working context; `context.completion` is left untouched.
        """
        context.state = TurnState.TOOL_REQUESTED
        working.append({"role": "assistant", "content": context.completion.text})

        context.state = TurnState.EXECUTING_TOOLS
        for call in context.completion.function_calls:
            call_message = Message(id=self._ids.next_id("call"), role="assistant", content=self.format_tool_call(call))
            context.session.messages.append(call_message)
            yield TurnEvent(TurnAction.TOOL_CALL, message=call_message)

            # not raced against cancel: a call message always gets its output message
            result = await self._tools.execute(call.name, call.arguments)

            output_message = Message(
                id=self._ids.next_id("result"),
                role="user",
                content=TOOL_OUTPUT_TEMPLATE.format(output=result.output),
            )
            context.session.messages.append(output_message)
            yield TurnEvent(TurnAction.TOOL_OUTPUT, message=output_message, tool_result=result)

            if not result.success:
                working.append({"role": "user", "content": TOOL_ERROR_TEMPLATE.format(name=call.name, output=result.output)})

            self._check_cancelled(context)

    async def _finalize(self, context: TurnContext) -> AsyncIterator[TurnEvent]:
        context.state = TurnState.FINALIZED
        text = context.completion.text
        if not text.strip():
            app_logger.info(f"Turn for session {context.session_id} finished without text")
            return

        assistant_message = Message(id=self._ids.next_id(), role="assistant", content=text)
        context.session.messages.append(assistant_message)
        yield TurnEvent(TurnAction.ASSISTANT_MESSAGE, message=assistant_message)

        for storage_event in (self._record_usage("completion", len(text)), self._persist(context)):
            if storage_event is not None:
                yield storage_event

        await self._memory.memorize(assistant_message, context.session_id)

    async def _run(self, context: TurnContext) -> AsyncIterator[TurnEvent]:
        user_message = Message(
            id=self._ids.next_id(),
            role="user",
            content=context.prompt or Config.IMAGE_PLACEHOLDER,
            images=[context.request.image] if context.request.image else None,
        )
        context.session.messages.append(user_message)
        yield TurnEvent(TurnAction.USER_MESSAGE, message=user_message)

        for storage_event in (self._record_usage("message", len(user_message.content)), self._persist(context)):
            if storage_event is not None:
                yield storage_event

        memory_lines: list[str] = []
        content = await self._until_cancelled(
            context, self._memory.augment(user_message, context.session_id, on_log=memory_lines.append)
        )
        for line in memory_lines:
            yield TurnEvent(TurnAction.MEMORY_LOG, message=user_message, content=line)

        working = self.build_messages(context, user_message, content)
        tools = self._tools.list_tools(context.tools_enabled)

        while True:
            async for event in self._model_round(context, working, tools):
                yield event

            if not context.completion.function_calls:
                break

            results = []
            async for event in self._execute_tool_calls(context, working):
                if event.tool_result is not None:
                    results.append(event.tool_result)
                yield event

            storage_event = self._persist(context)
            if storage_event is not None:
                yield storage_event

            if all(result.success for result in results):
                break

            if context.model_rounds >= self._max_tool_rounds:
                app_logger.warning(f"Tool round limit ({self._max_tool_rounds}) reached for session {context.session_id}")
                break

        async for event in self._finalize(context):
            yield event

    async def run_turn(self, context: TurnContext) -> AsyncIterator[TurnEvent]:
        """
        Run a claimed turn and yield its events.

        Always ends with a DONE event; the session guard is released before it.
        Cancellation and transport failures abort the turn and keep the messages
        already appended.
        """
        events = self._run(context)
        try:
            async for event in events:
                yield event

        except TurnCancelledError:
            context.state = TurnState.ABORTED
            app_logger.info(f"Turn aborted for session {context.session_id} after {context.model_rounds} round(s)")
            storage_event = self._persist(context)
            if storage_event is not None:
                yield storage_event
            yield TurnEvent(TurnAction.ABORTED, content=context.completion.text)

        except TransportError as e:
            context.state = TurnState.ABORTED
            app_logger.error(f"Turn failed for session {context.session_id}: {e}")
            storage_event = self._persist(context)
            if storage_event is not None:
                yield storage_event
            yield TurnEvent(TurnAction.ERROR, content=str(e))

        finally:
            # a consumer that stops early leaves the model round open until closed here
            try:
                await events.aclose()
            finally:
                self._release(context)

        yield TurnEvent(TurnAction.DONE, content=context.state.value)
