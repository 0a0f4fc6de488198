"""
Route handlers for streaming chat operations.
Handles the /chat/stream endpoint with real-time turn events.
"""
from typing import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from dependencies import Services, get_services
from models.api_models import ChatRequest
from routes.chat import check_send, event_payload
from services.stream_service import StreamService
from utils.errors import TurnRejectedError, UnknownModelError
from utils.logger import app_logger

router = APIRouter()


@router.post("/chat/stream")
async def chat_stream(request: ChatRequest, services: Services = Depends(get_services)):
    """
    Streaming chat endpoint emitting one SSE event per turn event.

    The send is validated before the response starts; the session is only
    claimed once the body is iterated, so a stream dropped before its first
    byte leaves the session free.
    """
    check_send(services.chat, request)

    async def event_generator() -> AsyncIterator[str]:
        try:
            context = services.chat.start_turn(request)
        except (TurnRejectedError, UnknownModelError) as e:
            # lost a race with another send since validation
            app_logger.warning(f"Streaming chat rejected: {e}")
            yield StreamService.send_sse_event("error", {"session_id": request.session_id, "content": str(e)})
            return

        turn = services.chat.run_turn(context)
        try:
            async for event in turn:
                yield StreamService.send_sse_event(event.action.value, event_payload(event, context.session_id))
        except Exception as e:
            app_logger.error(f"Streaming chat error: {str(e)}")
            yield StreamService.send_sse_event("error", {"session_id": context.session_id, "content": str(e)})
        finally:
            await turn.aclose()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no"
        }
    )
