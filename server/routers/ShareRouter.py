from fastapi import APIRouter, Request

from shared.models.chat import SharedChatView

router = APIRouter(prefix="/share", tags=["share"])


@router.get("/{session_id}")
async def get_shared_session(request: Request, session_id: str) -> SharedChatView:
    """Read-only view of a shared session. No authentication required.

    Returns 404 when the session does not exist or is not shared.
    """
    return await request.app.state.session_service.do_get_shared(session_id)
