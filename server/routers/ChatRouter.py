import asyncio

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from server.dependencies.auth import get_optional_caller
from server.models.requests import ChatRequest
from shared.models.context import CallerIdentity
from services.chat.StreamRelay import StreamRelay, TransportState

router = APIRouter(prefix="/chat", tags=["chat"])


async def _persist_after_stream(request: Request, relay: StreamRelay, caller: CallerIdentity, body: ChatRequest) -> None:
    """Store the finished exchange. Skipped unless the stream closed normally."""
    if relay.state != TransportState.CLOSED:
        request.app.state.logging.debug(
            "Not persisting session '%s': stream ended in state '%s'.", body.session_id, relay.state.value
        )
        return
    session_service = request.app.state.session_service
    await session_service.do_persist_exchange(
        user_id=caller.user_id,
        session_id=body.session_id,
        messages=body.messages,
        assistant_text=relay.text,
        title=body.title,
        model=body.model,
    )


@router.post("")
async def chat(
    request: Request,
    body: ChatRequest,
    caller: CallerIdentity | None = Depends(get_optional_caller),
) -> StreamingResponse:
    """Answer one chat turn as a streamed response.

    Args:
        request (Request): FastAPI request (provides app.state.chat_service).
        body (ChatRequest): Conversation and per-request options.
        caller (CallerIdentity | None): Resolved caller, None without a valid token.

    Returns:
        StreamingResponse: The completion, streamed as it is generated.
    """
    chat_service = request.app.state.chat_service
    prepared = await chat_service.prepare(
        caller,
        body.messages,
        model=body.model,
        temperature=body.temperature,
        system_prompt=body.system_prompt,
        web_search=body.web_search,
    )

    cancel_event = asyncio.Event()
    if await request.is_disconnected():
        cancel_event.set()

    relay = await chat_service.open_stream(prepared, cancel_event=cancel_event, stream_format=body.stream_format)

    background = None
    if body.session_id:
        background = BackgroundTask(_persist_after_stream, request, relay, caller, body)

    return StreamingResponse(
        relay.iter_bytes(),
        media_type=relay.media_type,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        background=background,
    )
