from shared.clients.auth.AuthClientInterface import AuthClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.context import CallerIdentity


class AuthClientSupabase(AuthClientInterface):
    """Supabase Auth (GoTrue) plus the profiles table for role and memory.

    Requests are sent with the caller's own token so row level security on
    profiles applies.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("URL", default=None, val_type="string")
        self._anon_key = self.get_config_val("ANON_KEY", default=None, val_type="string")

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
            EnvConfig(env_key="ANON_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"apikey": self._anon_key}

    def _get_bearer_header(self, access_token: str) -> dict:
        return {"Authorization": f"Bearer {access_token}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/auth/v1/health"

    def _get_endpoint_user(self) -> str:
        return "/auth/v1/user"

    def _get_endpoint_profiles(self) -> str:
        return "/rest/v1/profiles"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_resolve_caller(self, access_token: str) -> CallerIdentity | None:
        if not access_token:
            return None

        user_response = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_user(),
            additional_headers=self._get_bearer_header(access_token),
        )
        if user_response.status_code != 200:
            self.logging.debug("Token rejected by identity provider: status %d", user_response.status_code)
            return None
        user = user_response.json() or {}
        user_id = user.get("id")
        if not user_id:
            return None

        role = "user"
        memory = None
        profile_response = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_profiles(),
            params={"id": f"eq.{user_id}", "select": "role,memory"},
            additional_headers=self._get_bearer_header(access_token),
        )
        if profile_response.is_success:
            rows = profile_response.json() or []
            if rows:
                role = rows[0].get("role") or "user"
                memory = rows[0].get("memory")
        else:
            self.logging.warning(
                "Profile lookup for user %s failed with status %d. Falling back to role 'user'.",
                user_id, profile_response.status_code,
            )

        return CallerIdentity(user_id=user_id, email=user.get("email"), role=role, memory=memory)
