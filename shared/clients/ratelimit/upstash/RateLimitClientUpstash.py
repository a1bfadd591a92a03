import time
import uuid

from shared.clients.ratelimit.RateLimitClientInterface import RateLimitClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.context import RateLimitDecision


class RateLimitClientUpstash(RateLimitClientInterface):
    """Upstash Redis over its REST API. Sliding-window log kept in one sorted set per caller.

    One pipeline round-trip per check: trim entries older than the window, add
    this request, count, and read the oldest entry for the retry hint. A denied
    request is removed again so it does not extend the lockout.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("REST_URL", default=None, val_type="string")
        self._token = self.get_config_val("REST_TOKEN", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    def _get_engine_name(self) -> str:
        return "Upstash"

    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="REST_URL", val_type="string", default=None),
            EnvConfig(env_key="REST_TOKEN", val_type="string", default=None),
        ]

    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._token}"}

    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/ping"

    def _get_endpoint_pipeline(self) -> str:
        return "/pipeline"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_check(self, identifier: str) -> RateLimitDecision:
        key = self._build_key(identifier)
        now_ms = int(time.time() * 1000)
        window_ms = int(self.window_seconds * 1000)
        member = f"{now_ms}-{uuid.uuid4().hex[:8]}"

        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_pipeline(),
            json=[
                ["ZREMRANGEBYSCORE", key, "0", str(now_ms - window_ms)],
                ["ZADD", key, str(now_ms), member],
                ["ZCARD", key],
                ["ZRANGE", key, "0", "0", "WITHSCORES"],
                ["PEXPIRE", key, str(window_ms)],
            ],
            raise_on_error=True,
        )
        results = [item.get("result") for item in response.json()]
        count = int(results[2] or 0)

        if count <= self.max_requests:
            return RateLimitDecision(allowed=True, limit=self.max_requests, remaining=self.max_requests - count)

        await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_pipeline(),
            json=[["ZREM", key, member]],
            raise_on_error=True,
        )
        oldest = results[3] or []
        oldest_ms = int(float(oldest[1])) if len(oldest) >= 2 else now_ms
        retry_after = (oldest_ms + window_ms - now_ms) / 1000
        return RateLimitDecision(allowed=False, limit=self.max_requests, remaining=0, retry_after=max(retry_after, 0.001))
