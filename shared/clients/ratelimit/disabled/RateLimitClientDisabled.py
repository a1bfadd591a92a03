import httpx

from shared.clients.ratelimit.RateLimitClientInterface import RateLimitClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.context import RateLimitDecision


class RateLimitClientDisabled(RateLimitClientInterface):
    """Fail-open stand-in used when no limiter backend is configured. Allows everything."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    def _get_engine_name(self) -> str:
        return "Disabled"

    def _get_required_config(self) -> list[EnvConfig]:
        return []

    def _get_auth_header(self) -> dict:
        return {}

    def _get_base_url(self) -> str:
        return "memory://ratelimit"

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    async def do_healthcheck(self) -> httpx.Response:
        return httpx.Response(200)

    async def do_check(self, identifier: str) -> RateLimitDecision:
        return RateLimitDecision(allowed=True, limit=self.max_requests, remaining=self.max_requests)
