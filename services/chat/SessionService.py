"""Owner-scoped chat session persistence on top of the store client."""

from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatSession, ChatTurn, SharedChatView
from shared.models.errors import ChatBridgeError, PersistenceError, SessionConflictError, SessionNotFoundError
from services.chat.SessionDraft import SessionDraft


class SessionService:
    """CRUD for chat sessions.

    Writes are whole-record upserts keyed by session id: the last writer wins.
    A caller that passes expected_version gets a conditional write instead,
    which fails with SessionConflictError when someone else wrote in between.
    """

    def __init__(self, helper_config: HelperConfig, store_client: StoreClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._store = store_client

    ##########################################
    ################ HELPER ##################
    ##########################################

    async def _get_owned(self, user_id: str, session_id: str) -> ChatSession | None:
        """Stored session if it belongs to user_id, None if it does not exist.

        Raises:
            SessionNotFoundError: If the session exists but belongs to someone else.
        """
        existing = await self._store.do_fetch_session(session_id)
        if existing is not None and existing.user_id != user_id:
            # do not reveal that the id is taken
            raise SessionNotFoundError(f"Session '{session_id}' not found.")
        return existing

    ##########################################
    ################ WRITE ###################
    ##########################################

    async def do_save(
        self,
        user_id: str,
        session_id: str,
        messages: list[ChatTurn],
        title: str | None = None,
        model: str | None = None,
        expected_version: int | None = None,
    ) -> ChatSession:
        """Create or replace a session.

        Args:
            user_id (str): Owner of the session.
            session_id (str): Session id chosen by the client.
            messages (list[ChatTurn]): The full transcript.
            title (str | None): New title; the stored title is kept when None.
            model (str | None): Model the conversation uses.
            expected_version (int | None): Version the caller last saw. 0 means
                "must not exist yet". None disables the check.

        Returns:
            ChatSession: The stored record.

        Raises:
            SessionNotFoundError: If the id belongs to another user.
            SessionConflictError: If expected_version does not match the stored version.
            PersistenceError: If the store fails.
        """
        try:
            return await self._write(user_id, session_id, messages, title, model, expected_version)
        except ChatBridgeError:
            raise
        except Exception as e:
            raise PersistenceError(f"Saving session '{session_id}' failed: {e}") from e

    async def _write(
        self,
        user_id: str,
        session_id: str,
        messages: list[ChatTurn],
        title: str | None,
        model: str | None,
        expected_version: int | None,
    ) -> ChatSession:
        existing = await self._get_owned(user_id, session_id)

        session = ChatSession(
            id=session_id,
            user_id=user_id,
            title=title or (existing.title if existing else "New Chat"),
            messages=messages,
            model=model or (existing.model if existing else None),
        )
        if existing is not None:
            session.created_at = existing.created_at
            session.is_shared = existing.is_shared
        session.version = (existing.version if existing else 0) + 1

        if expected_version is None:
            stored = await self._store.do_upsert_session(session)
            self.logging.debug("Session '%s' saved (version %d).", session_id, stored.version)
            return stored

        if existing is None:
            if expected_version != 0:
                raise SessionConflictError(f"Session '{session_id}' does not exist (expected version {expected_version}).")
            return await self._store.do_upsert_session(session)

        session.version = expected_version + 1
        stored = await self._store.do_update_session_if_version(session, expected_version)
        if stored is None:
            raise SessionConflictError(
                f"Session '{session_id}' was modified concurrently (expected version {expected_version})."
            )
        return stored

    async def do_persist_exchange(
        self,
        user_id: str,
        session_id: str,
        messages: list[ChatTurn],
        assistant_text: str,
        title: str | None = None,
        model: str | None = None,
    ) -> ChatSession | None:
        """Persist the request transcript plus the finished assistant reply.

        Runs after the response stream has closed. Failures are logged and
        swallowed: the caller already has the answer.

        Args:
            messages (list[ChatTurn]): The request's messages; the last one is the user turn.
            assistant_text (str): Everything the relay streamed.

        Returns:
            ChatSession | None: The stored record, or None if persisting failed.
        """
        if not messages:
            return None
        draft = SessionDraft(ChatSession(id=session_id, user_id=user_id, messages=messages[:-1]))
        draft.submit(messages[-1])
        draft.apply_delta(assistant_text)

        try:
            return await self.do_save(
                user_id=user_id,
                session_id=session_id,
                messages=draft.messages,
                title=title,
                model=model,
            )
        except ChatBridgeError as e:
            self.logging.error("Persisting the exchange of session '%s' failed: %s", session_id, e.message)
            return None

    ##########################################
    ################# READ ###################
    ##########################################

    async def do_list(self, user_id: str) -> list[ChatSession]:
        return await self._store.do_fetch_sessions(user_id)

    async def do_get(self, user_id: str, session_id: str) -> ChatSession:
        """
        Raises:
            SessionNotFoundError: If the session does not exist or is not owned by user_id.
        """
        session = await self._get_owned(user_id, session_id)
        if session is None:
            raise SessionNotFoundError(f"Session '{session_id}' not found.")
        return session

    async def do_get_shared(self, session_id: str) -> SharedChatView:
        """Anonymous read of a shared session.

        Raises:
            SessionNotFoundError: If the session does not exist or is not shared.
        """
        session = await self._store.do_fetch_session(session_id)
        if session is None or not session.is_shared:
            raise SessionNotFoundError(f"Shared session '{session_id}' not found.")
        return SharedChatView.from_session(session)

    ##########################################
    ################ OTHER ###################
    ##########################################

    async def do_delete(self, user_id: str, session_id: str) -> None:
        if not await self._store.do_delete_session(session_id, user_id):
            raise SessionNotFoundError(f"Session '{session_id}' not found.")
        self.logging.info("Session '%s' deleted by '%s'.", session_id, user_id)

    async def do_share(self, user_id: str, session_id: str, shared: bool = True) -> ChatSession:
        session = await self._store.do_set_session_shared(session_id, user_id, shared)
        if session is None:
            raise SessionNotFoundError(f"Session '{session_id}' not found.")
        self.logging.info("Session '%s' %s by '%s'.", session_id, "shared" if shared else "unshared", user_id)
        return session
