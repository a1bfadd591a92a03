"""Pydantic models for conversations.

Hierarchy:
  ContentPart     : one element of a multi-modal message (text or image reference).
  ChatTurn        : a single message in a conversation (OpenAI message shape).
  ChatSession     : the persisted conversation record, owned by one user.
  SharedChatView  : read-only projection of a shared session for anonymous readers.
"""

import time
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

MEDIA_PLACEHOLDER = "User sent media without text"
REDACTED_MEDIA = "[image]"


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageUrl(BaseModel):
    url: str


class ImagePart(BaseModel):
    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl


ContentPart = Annotated[Union[TextPart, ImagePart], Field(discriminator="type")]


class ChatTurn(BaseModel):
    """A single message. Content is either plain text or an ordered list of parts."""

    role: Literal["user", "assistant", "system"]
    content: str | list[ContentPart]

    def first_text(self) -> str | None:
        """Return the plain-text content, or the first text part of a multi-modal message."""
        if isinstance(self.content, str):
            return self.content
        for part in self.content:
            if isinstance(part, TextPart):
                return part.text
        return None

    def image_parts(self) -> list[ImagePart]:
        if isinstance(self.content, str):
            return []
        return [part for part in self.content if isinstance(part, ImagePart)]

    def to_provider_message(self) -> dict:
        """Serialise to the OpenAI-format dict the completion providers accept."""
        return self.model_dump(mode="json")


def new_session_id() -> str:
    """Time-ordered opaque session id (milliseconds since epoch)."""
    return str(int(time.time() * 1000))


class ChatSession(BaseModel):
    """Persisted conversation record.

    The logical store shape is { id, user_id, title, messages, created_at, model, is_shared }.
    version is incremented on every write and only consulted for conditional updates.
    """

    id: str = Field(default_factory=new_session_id)
    user_id: str
    title: str = "New Chat"
    messages: list[ChatTurn] = []
    created_at: int = Field(default_factory=lambda: int(time.time() * 1000))
    model: str | None = None
    is_shared: bool = False
    version: int = 0


class SharedChatView(BaseModel):
    """Public projection of a shared session. Image parts are redacted."""

    id: str
    title: str
    messages: list[ChatTurn]

    @classmethod
    def from_session(cls, session: ChatSession) -> "SharedChatView":
        redacted: list[ChatTurn] = []
        for turn in session.messages:
            if isinstance(turn.content, str):
                redacted.append(turn)
                continue
            parts = [
                part if isinstance(part, TextPart) else TextPart(text=REDACTED_MEDIA)
                for part in turn.content
            ]
            redacted.append(ChatTurn(role=turn.role, content=parts))
        return cls(id=session.id, title=session.title, messages=redacted)
