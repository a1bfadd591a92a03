from pydantic import BaseModel, Field

from shared.models.chat import ChatSession


class ErrorResponse(BaseModel):
    error: str


class KnowledgeResponse(BaseModel):
    success: bool = True
    chunks: int


class SessionSummary(BaseModel):
    id: str
    title: str
    created_at: int = Field(serialization_alias="createdAt")
    model: str | None = None
    is_shared: bool = Field(serialization_alias="isShared")
    version: int
    message_count: int = Field(serialization_alias="messageCount")

    @classmethod
    def from_session(cls, session: ChatSession) -> "SessionSummary":
        return cls(
            id=session.id,
            title=session.title,
            created_at=session.created_at,
            model=session.model,
            is_shared=session.is_shared,
            version=session.version,
            message_count=len(session.messages),
        )


class SessionListResponse(BaseModel):
    sessions: list[SessionSummary]
    total: int


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
