import asyncio
import math

import httpx

from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatSession
from shared.models.config import EnvConfig
from shared.models.knowledge import KnowledgeChunk, KnowledgeMatch


def _cosine_similarity(a: list[float], b: list[float]) -> float:
    if len(a) != len(b):
        raise ValueError(f"Vector dimensions differ: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class StoreClientMemory(StoreClientInterface):
    """In-process store for local development and tests. Nothing survives a restart."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._sessions: dict[str, ChatSession] = {}
        self._knowledge: list[KnowledgeChunk] = []
        self._audit_log: list[dict] = []
        self._lock = asyncio.Lock()

    ##########################################
    ################ GETTER ##################
    ##########################################

    def _get_engine_name(self) -> str:
        return "Memory"

    def _get_required_config(self) -> list[EnvConfig]:
        return []

    def _get_auth_header(self) -> dict:
        return {}

    def _get_base_url(self) -> str:
        return "memory://store"

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    def get_audit_log(self) -> list[dict]:
        return list(self._audit_log)

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        return httpx.Response(200)

    ##########################################
    ############### KNOWLEDGE ################
    ##########################################

    async def _fetch_knowledge_matches(self, query_embedding: list[float], match_threshold: float, match_count: int) -> list[KnowledgeMatch]:
        matches: list[KnowledgeMatch] = []
        for idx, chunk in enumerate(self._knowledge):
            similarity = _cosine_similarity(query_embedding, chunk.embedding)
            if similarity >= match_threshold:
                matches.append(KnowledgeMatch(
                    id=idx,
                    content=chunk.content,
                    metadata=chunk.metadata.model_dump(),
                    similarity=similarity,
                ))
        return matches

    async def do_insert_knowledge(self, chunks: list[KnowledgeChunk]) -> int:
        async with self._lock:
            self._knowledge.extend(chunk.model_copy(deep=True) for chunk in chunks)
        return len(chunks)

    ##########################################
    ############### AUDIT LOG ################
    ##########################################

    async def do_insert_audit_log(self, user_id: str, action: str, details: dict) -> None:
        async with self._lock:
            self._audit_log.append({"user_id": user_id, "action": action, "details": dict(details)})

    ##########################################
    ############### SESSIONS #################
    ##########################################

    async def do_upsert_session(self, session: ChatSession) -> ChatSession:
        async with self._lock:
            self._sessions[session.id] = session.model_copy(deep=True)
            return session.model_copy(deep=True)

    async def do_update_session_if_version(self, session: ChatSession, expected_version: int) -> ChatSession | None:
        async with self._lock:
            current = self._sessions.get(session.id)
            if current is None or current.user_id != session.user_id or current.version != expected_version:
                return None
            self._sessions[session.id] = session.model_copy(deep=True)
            return session.model_copy(deep=True)

    async def do_fetch_session(self, session_id: str) -> ChatSession | None:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def do_fetch_sessions(self, user_id: str) -> list[ChatSession]:
        owned = [s.model_copy(deep=True) for s in self._sessions.values() if s.user_id == user_id]
        owned.sort(key=lambda s: s.created_at, reverse=True)
        return owned

    async def do_delete_session(self, session_id: str, user_id: str) -> bool:
        async with self._lock:
            current = self._sessions.get(session_id)
            if current is None or current.user_id != user_id:
                return False
            del self._sessions[session_id]
            return True

    async def do_set_session_shared(self, session_id: str, user_id: str, shared: bool) -> ChatSession | None:
        async with self._lock:
            current = self._sessions.get(session_id)
            if current is None or current.user_id != user_id:
                return None
            current.is_shared = shared
            return current.model_copy(deep=True)
