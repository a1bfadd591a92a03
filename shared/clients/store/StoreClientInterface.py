from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatSession
from shared.models.knowledge import KnowledgeChunk, KnowledgeMatch


class StoreClientInterface(ClientInterface):
    """Document store with vector search: chat sessions, knowledge chunks and the audit log.

    Every write is a single upsert/insert; atomicity and multi-writer safety
    are the backend's responsibility.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "store"

    ##########################################
    ############### KNOWLEDGE ################
    ##########################################

    @abstractmethod
    async def _fetch_knowledge_matches(self, query_embedding: list[float], match_threshold: float, match_count: int) -> list[KnowledgeMatch]:
        """Run the backend's nearest-neighbour query.

        Args:
            query_embedding (list[float]): The embedded query.
            match_threshold (float): Minimum cosine similarity.
            match_count (int): Maximum number of hits.

        Returns:
            list[KnowledgeMatch]: Raw hits as returned by the backend.
        """
        pass

    async def do_match_knowledge(self, query_embedding: list[float], match_threshold: float, match_count: int) -> list[KnowledgeMatch]:
        """Nearest-neighbour query over the knowledge chunks.

        The result is ordered by similarity (highest first), holds at most
        match_count entries, and every entry satisfies similarity >= match_threshold,
        whatever the backend returned.

        Returns:
            list[KnowledgeMatch]: The matching chunks. Empty when nothing is relevant.
        """
        if match_count <= 0:
            return []
        matches = await self._fetch_knowledge_matches(query_embedding, match_threshold, match_count)
        matches = [m for m in matches if m.similarity >= match_threshold]
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:match_count]

    @abstractmethod
    async def do_insert_knowledge(self, chunks: list[KnowledgeChunk]) -> int:
        """Bulk insert knowledge chunks in one request.

        Returns:
            int: Number of inserted chunks.
        """
        pass

    ##########################################
    ############### AUDIT LOG ################
    ##########################################

    @abstractmethod
    async def do_insert_audit_log(self, user_id: str, action: str, details: dict) -> None:
        """Append one audit log entry."""
        pass

    ##########################################
    ############### SESSIONS #################
    ##########################################

    @abstractmethod
    async def do_upsert_session(self, session: ChatSession) -> ChatSession:
        """Insert or replace the session record keyed by id (last writer wins)."""
        pass

    @abstractmethod
    async def do_update_session_if_version(self, session: ChatSession, expected_version: int) -> ChatSession | None:
        """Replace the session record only if its stored version equals expected_version.

        Returns:
            ChatSession | None: The stored record, or None if the version did not match.
        """
        pass

    @abstractmethod
    async def do_fetch_session(self, session_id: str) -> ChatSession | None:
        pass

    @abstractmethod
    async def do_fetch_sessions(self, user_id: str) -> list[ChatSession]:
        """All sessions of one owner, newest first."""
        pass

    @abstractmethod
    async def do_delete_session(self, session_id: str, user_id: str) -> bool:
        pass

    @abstractmethod
    async def do_set_session_shared(self, session_id: str, user_id: str, shared: bool) -> ChatSession | None:
        pass
