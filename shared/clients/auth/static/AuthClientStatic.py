import httpx

from shared.clients.auth.AuthClientInterface import AuthClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.context import CallerIdentity


class AuthClientStatic(AuthClientInterface):
    """Fixed token table from the environment, for local development and tests.

    AUTH_STATIC_TOKENS="[token1:user1:admin:admin@example.com,token2:user2:user]"

    Entries are token:user_id[:role[:email]].
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        entries = self.get_config_val("TOKENS", default=[], val_type="list")
        self._callers: dict[str, CallerIdentity] = {}
        for entry in entries:
            parts = entry.split(":")
            if len(parts) < 2:
                raise ValueError(f"AUTH_STATIC_TOKENS entry '{entry}' must be 'token:user_id[:role[:email]]'.")
            token, user_id = parts[0], parts[1]
            role = parts[2] if len(parts) > 2 and parts[2] else "user"
            email = parts[3] if len(parts) > 3 and parts[3] else None
            self._callers[token] = CallerIdentity(user_id=user_id, email=email, role=role)

    ##########################################
    ################ GETTER ##################
    ##########################################

    def _get_engine_name(self) -> str:
        return "Static"

    def _get_required_config(self) -> list[EnvConfig]:
        return [EnvConfig(env_key="TOKENS", val_type="list", default=[])]

    def _get_auth_header(self) -> dict:
        return {}

    def _get_base_url(self) -> str:
        return "memory://auth"

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        return httpx.Response(200)

    async def do_resolve_caller(self, access_token: str) -> CallerIdentity | None:
        caller = self._callers.get(access_token)
        return caller.model_copy() if caller else None
