"""
Route handlers for standard chat operations.
Handles the /chat endpoint (non-streaming) and turn cancellation.
"""
from contextlib import contextmanager

from fastapi import APIRouter, Depends, HTTPException, status

from dependencies import Services, get_services
from models.api_models import ChatRequest
from models.chat_models import TurnAction, TurnContext, TurnEvent
from services.chat_service import ChatService
from utils.errors import TurnInFlightError, TurnRejectedError, UnknownModelError
from utils.logger import app_logger

router = APIRouter()


@contextmanager
def send_errors_as_http():
    """Map rejected sends to their HTTP status codes."""
    try:
        yield
    except UnknownModelError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except TurnInFlightError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except TurnRejectedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def check_send(chat_service: ChatService, request: ChatRequest) -> None:
    """Validate a send or raise the matching HTTP error, without claiming the session."""
    with send_errors_as_http():
        chat_service.check_send(request)


def claim_turn(chat_service: ChatService, request: ChatRequest) -> TurnContext:
    """Start a turn or raise the matching HTTP error."""
    with send_errors_as_http():
        return chat_service.start_turn(request)


def event_payload(event: TurnEvent, session_id: str) -> dict:
    """JSON body for one turn event."""
    payload = {"session_id": session_id}
    if event.message is not None:
        payload["message"] = event.message.model_dump(exclude_none=True)
    if event.content is not None:
        payload["content"] = event.content
    if event.tool_result is not None:
        payload["tool_result"] = {"success": event.tool_result.success, "output": event.tool_result.output}
    return payload


@router.post("/chat")
async def chat(request: ChatRequest, services: Services = Depends(get_services)):
    """
    Run a whole turn and return the messages it produced.
    """
    context = claim_turn(services.chat, request)

    new_messages = []
    storage_errors = []
    error = None
    response = None

    async for event in services.chat.run_turn(context):
        if event.action in (TurnAction.USER_MESSAGE, TurnAction.TOOL_CALL, TurnAction.TOOL_OUTPUT):
            new_messages.append(event.message.model_dump(exclude_none=True))
        elif event.action == TurnAction.ASSISTANT_MESSAGE:
            new_messages.append(event.message.model_dump(exclude_none=True))
            response = event.message.content
        elif event.action == TurnAction.STORAGE_ERROR:
            storage_errors.append(event.content)
        elif event.action == TurnAction.ERROR:
            error = event.content

    app_logger.info(f"Chat turn for session {context.session_id} ended as {context.state.value}")

    response_data = {
        "session_id": context.session_id,
        "title": context.session.title,
        "state": context.state.value,
        "response": response,
        "messages": new_messages,
        "model_rounds": context.model_rounds,
    }
    if storage_errors:
        response_data["storage_errors"] = storage_errors
    if error:
        response_data["error"] = error

    return response_data


@router.post("/chat/{session_id}/cancel")
async def cancel_chat(session_id: str, services: Services = Depends(get_services)):
    """Stop the session's in-flight turn, if any."""
    return {"session_id": session_id, "cancelled": services.chat.cancel(session_id)}
