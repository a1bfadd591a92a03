from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from server.dependencies.auth import require_elevated_role
from server.models.responses import KnowledgeResponse
from shared.models.context import CallerIdentity

router = APIRouter(prefix="/knowledge", tags=["knowledge"])


@router.post("")
async def add_knowledge(
    request: Request,
    file: UploadFile | None = File(default=None),
    text: str | None = Form(default=None),
    title: str | None = Form(default=None),
    caller: CallerIdentity = Depends(require_elevated_role),
) -> KnowledgeResponse:
    """Add a PDF or a pasted note to the knowledge base.

    Args:
        request (Request): FastAPI request (provides app.state.knowledge_service).
        file (UploadFile | None): PDF upload. Takes precedence over text.
        text (str | None): Note body, used together with title.
        title (str | None): Note title.
        caller (CallerIdentity): Admin or owner performing the upload.

    Returns:
        KnowledgeResponse: Number of stored chunks.
    """
    knowledge_service = request.app.state.knowledge_service

    file_name = None
    file_data = None
    if file is not None and file.filename:
        file_name = file.filename
        file_data = await file.read()

    chunks = await knowledge_service.do_ingest(
        caller,
        file_name=file_name,
        file_data=file_data,
        text=text,
        title=title,
    )
    return KnowledgeResponse(success=True, chunks=chunks)
