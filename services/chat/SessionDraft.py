"""Optimistic transcript of one in-flight exchange.

The draft starts from an explicit snapshot of the prior turns, never from
shared mutable state, so two drafts built from the same snapshot cannot see
each other's edits.
"""

from shared.models.chat import ChatSession, ChatTurn


class SessionDraft:
    """Accumulates one user turn and the streamed assistant reply on top of a snapshot.

    Args:
        session (ChatSession): The session as it was when the request was sent.
            It is deep-copied; later changes to it do not affect the draft.
    """

    def __init__(self, session: ChatSession) -> None:
        self._session = session.model_copy(deep=True)
        self._placeholder_index: int | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    @property
    def messages(self) -> list[ChatTurn]:
        return list(self._session.messages)

    @property
    def assistant_text(self) -> str:
        """Text of the assistant placeholder, empty before submit()."""
        if self._placeholder_index is None:
            return ""
        content = self._session.messages[self._placeholder_index].content
        return content if isinstance(content, str) else ""

    def is_submitted(self) -> bool:
        return self._placeholder_index is not None

    ##########################################
    ################ UPDATE ##################
    ##########################################

    def submit(self, user_turn: ChatTurn) -> None:
        """Append the user turn and an empty assistant placeholder.

        Raises:
            ValueError: If the draft was already submitted or the turn is not user-authored.
        """
        if self._placeholder_index is not None:
            raise ValueError("Draft was already submitted.")
        if user_turn.role != "user":
            raise ValueError("Only a user turn can be submitted.")
        self._session.messages.append(user_turn.model_copy(deep=True))
        self._session.messages.append(ChatTurn(role="assistant", content=""))
        self._placeholder_index = len(self._session.messages) - 1

    def apply_delta(self, delta: str) -> None:
        """Append streamed text to the assistant placeholder. Every other turn is left untouched."""
        if self._placeholder_index is None:
            raise ValueError("Draft must be submitted before applying deltas.")
        self._session.messages[self._placeholder_index] = ChatTurn(
            role="assistant",
            content=self.assistant_text + delta,
        )

    def to_session(self) -> ChatSession:
        """Full session record including the placeholder as it stands now."""
        return self._session.model_copy(deep=True)
