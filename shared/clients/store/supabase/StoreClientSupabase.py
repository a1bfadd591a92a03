from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatSession
from shared.models.config import EnvConfig
from shared.models.knowledge import KnowledgeChunk, KnowledgeMatch


class StoreClientSupabase(StoreClientInterface):
    """Supabase (PostgREST) backend.

    Expects the tables chats, knowledge, audit_logs and the stored procedure
    match_knowledge(query_embedding, match_threshold, match_count). Uses the
    service role key, so row ownership is enforced by the filters below.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("URL", default=None, val_type="string")
        self._service_key = self.get_config_val("SERVICE_KEY", default=None, val_type="string")
        self._match_function = self.get_config_val("MATCH_FUNCTION", default="match_knowledge", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Supabase"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="URL", val_type="string", default=None),
            EnvConfig(env_key="SERVICE_KEY", val_type="string", default=None),
            EnvConfig(env_key="MATCH_FUNCTION", val_type="string", default="match_knowledge"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {
            "apikey": self._service_key,
            "Authorization": f"Bearer {self._service_key}",
        }

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return f"{self._base_url.rstrip('/')}/rest/v1"

    def _get_endpoint_healthcheck(self) -> str:
        return "/"

    def _get_endpoint_rpc(self, function: str) -> str:
        return f"/rpc/{function}"

    def _get_endpoint_table(self, table: str) -> str:
        return f"/{table}"

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @staticmethod
    def _to_session_row(session: ChatSession) -> dict:
        return session.model_dump(mode="json")

    @staticmethod
    def _from_session_rows(rows: list[dict]) -> list[ChatSession]:
        return [ChatSession.model_validate(row) for row in rows]

    ##########################################
    ############### KNOWLEDGE ################
    ##########################################

    async def _fetch_knowledge_matches(self, query_embedding: list[float], match_threshold: float, match_count: int) -> list[KnowledgeMatch]:
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_rpc(self._match_function),
            json={
                "query_embedding": query_embedding,
                "match_threshold": match_threshold,
                "match_count": match_count,
            },
            raise_on_error=True,
        )
        return [KnowledgeMatch.model_validate(row) for row in response.json() or []]

    async def do_insert_knowledge(self, chunks: list[KnowledgeChunk]) -> int:
        if not chunks:
            return 0
        await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_table("knowledge"),
            json=[chunk.model_dump(mode="json") for chunk in chunks],
            additional_headers={"Prefer": "return=minimal"},
            raise_on_error=True,
        )
        return len(chunks)

    ##########################################
    ############### AUDIT LOG ################
    ##########################################

    async def do_insert_audit_log(self, user_id: str, action: str, details: dict) -> None:
        await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_table("audit_logs"),
            json={"user_id": user_id, "action": action, "details": details},
            additional_headers={"Prefer": "return=minimal"},
            raise_on_error=True,
        )

    ##########################################
    ############### SESSIONS #################
    ##########################################

    async def do_upsert_session(self, session: ChatSession) -> ChatSession:
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_table("chats"),
            params={"on_conflict": "id"},
            json=self._to_session_row(session),
            additional_headers={"Prefer": "resolution=merge-duplicates,return=representation"},
            raise_on_error=True,
        )
        rows = self._from_session_rows(response.json() or [])
        return rows[0] if rows else session

    async def do_update_session_if_version(self, session: ChatSession, expected_version: int) -> ChatSession | None:
        response = await self.do_request(
            method="PATCH",
            endpoint=self._get_endpoint_table("chats"),
            params={"id": f"eq.{session.id}", "user_id": f"eq.{session.user_id}", "version": f"eq.{expected_version}"},
            json=self._to_session_row(session),
            additional_headers={"Prefer": "return=representation"},
            raise_on_error=True,
        )
        rows = self._from_session_rows(response.json() or [])
        return rows[0] if rows else None

    async def do_fetch_session(self, session_id: str) -> ChatSession | None:
        response = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_table("chats"),
            params={"id": f"eq.{session_id}", "select": "*"},
            raise_on_error=True,
        )
        rows = self._from_session_rows(response.json() or [])
        return rows[0] if rows else None

    async def do_fetch_sessions(self, user_id: str) -> list[ChatSession]:
        response = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_table("chats"),
            params={"user_id": f"eq.{user_id}", "select": "*", "order": "created_at.desc"},
            raise_on_error=True,
        )
        return self._from_session_rows(response.json() or [])

    async def do_delete_session(self, session_id: str, user_id: str) -> bool:
        response = await self.do_request(
            method="DELETE",
            endpoint=self._get_endpoint_table("chats"),
            params={"id": f"eq.{session_id}", "user_id": f"eq.{user_id}"},
            additional_headers={"Prefer": "return=representation"},
            raise_on_error=True,
        )
        return bool(response.json())

    async def do_set_session_shared(self, session_id: str, user_id: str, shared: bool) -> ChatSession | None:
        response = await self.do_request(
            method="PATCH",
            endpoint=self._get_endpoint_table("chats"),
            params={"id": f"eq.{session_id}", "user_id": f"eq.{user_id}"},
            json={"is_shared": shared},
            additional_headers={"Prefer": "return=representation"},
            raise_on_error=True,
        )
        rows = self._from_session_rows(response.json() or [])
        return rows[0] if rows else None
