from pydantic import BaseModel, ConfigDict, Field

from shared.models.chat import ChatTurn
from services.chat.StreamRelay import StreamFormat


class ChatRequest(BaseModel):
    """Body of POST /chat. Field names follow the web client (camelCase)."""

    model_config = ConfigDict(populate_by_name=True)

    messages: list[ChatTurn]
    model: str | None = None
    system_prompt: str | None = Field(default=None, alias="systemPrompt")
    temperature: float | None = Field(default=None, ge=0.0, le=1.0)
    web_search: bool = Field(default=False, alias="webSearch")
    session_id: str | None = Field(default=None, alias="sessionId", min_length=1, max_length=128)
    title: str | None = Field(default=None, max_length=200)
    stream_format: StreamFormat = Field(default=StreamFormat.TEXT, alias="streamFormat")


class SessionUpsertRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: list[ChatTurn]
    title: str | None = Field(default=None, max_length=200)
    model: str | None = None
    expected_version: int | None = Field(default=None, alias="expectedVersion", ge=0)


class ShareRequest(BaseModel):
    shared: bool = True
