"""
Route handlers for chat session history.
"""
from fastapi import APIRouter, Depends, HTTPException, status

from dependencies import Services, get_services

router = APIRouter()


@router.get("/sessions")
async def list_sessions(services: Services = Depends(get_services)):
    """List sessions, most recently used first."""
    sessions = services.sessions.list()
    return {
        "sessions": [
            {
                "id": session.id,
                "title": session.title,
                "last_used": session.last_used,
                "model_id": session.model_id,
                "message_count": len(session.messages),
                "in_flight": services.chat.is_in_flight(session.id),
            }
            for session in sessions
        ]
    }


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, services: Services = Depends(get_services)):
    session = services.sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Session {session_id} not found")
    return session.model_dump(exclude_none=True)


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str, services: Services = Depends(get_services)):
    """Delete a session. Refused while one of its turns is running."""
    if services.chat.is_in_flight(session_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Session {session_id} has a turn in flight")
    if not services.sessions.delete(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Session {session_id} not found")
    return {"deleted": session_id}
