from fastapi import APIRouter, Depends, Request, Response

from server.dependencies.auth import require_caller
from server.models.requests import SessionUpsertRequest, ShareRequest
from server.models.responses import SessionListResponse, SessionSummary
from shared.models.chat import ChatSession
from shared.models.context import CallerIdentity

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("")
async def list_sessions(request: Request, caller: CallerIdentity = Depends(require_caller)) -> SessionListResponse:
    """List the caller's sessions, newest first."""
    sessions = await request.app.state.session_service.do_list(caller.user_id)
    return SessionListResponse(
        sessions=[SessionSummary.from_session(s) for s in sessions],
        total=len(sessions),
    )


@router.get("/{session_id}")
async def get_session(request: Request, session_id: str, caller: CallerIdentity = Depends(require_caller)) -> ChatSession:
    return await request.app.state.session_service.do_get(caller.user_id, session_id)


@router.put("/{session_id}")
async def save_session(
    request: Request,
    session_id: str,
    body: SessionUpsertRequest,
    caller: CallerIdentity = Depends(require_caller),
) -> ChatSession:
    """Create or replace a session.

    Without expectedVersion the last writer wins. With it, the write only
    succeeds if nobody saved the session since that version (409 otherwise).
    """
    return await request.app.state.session_service.do_save(
        user_id=caller.user_id,
        session_id=session_id,
        messages=body.messages,
        title=body.title,
        model=body.model,
        expected_version=body.expected_version,
    )


@router.delete("/{session_id}", status_code=204)
async def delete_session(request: Request, session_id: str, caller: CallerIdentity = Depends(require_caller)) -> Response:
    await request.app.state.session_service.do_delete(caller.user_id, session_id)
    return Response(status_code=204)


@router.post("/{session_id}/share")
async def share_session(
    request: Request,
    session_id: str,
    body: ShareRequest | None = None,
    caller: CallerIdentity = Depends(require_caller),
) -> ChatSession:
    """Mark a session as shared (or unshared with {"shared": false})."""
    shared = body.shared if body is not None else True
    return await request.app.state.session_service.do_share(caller.user_id, session_id, shared=shared)
