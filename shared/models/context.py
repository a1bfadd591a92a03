"""Ephemeral per-request models. None of these are persisted."""

from enum import Enum

from pydantic import BaseModel, Field

from shared.models.chat import ChatTurn

ELEVATED_ROLES = ("admin", "owner")


class CallerIdentity(BaseModel):
    """What the identity collaborator knows about the authenticated caller."""

    user_id: str
    email: str | None = None
    role: str = "user"
    memory: str | None = None

    @property
    def is_elevated(self) -> bool:
        return self.role in ELEVATED_ROLES


class EnrichmentKind(str, Enum):
    KNOWLEDGE = "knowledge"
    SCRAPE = "scrape"
    SEARCH = "search"
    NONE = "none"


class EnrichmentResult(BaseModel):
    kind: EnrichmentKind
    injected_text: str
    source_descriptor: str


class RequestContext(BaseModel):
    """Everything the enrichment strategies and prompt builder need for one request."""

    caller: CallerIdentity
    model: str
    temperature: float = Field(ge=0.0, le=1.0)
    system_prompt: str | None = None
    web_search: bool = False
    messages: list[ChatTurn]
    query: str


class RateLimitDecision(BaseModel):
    allowed: bool
    limit: int = 0
    remaining: int = 0
    retry_after: float = 0.0
