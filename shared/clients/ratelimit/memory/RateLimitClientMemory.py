import time
from collections import deque

import httpx

from shared.clients.ratelimit.RateLimitClientInterface import RateLimitClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.context import RateLimitDecision


class RateLimitClientMemory(RateLimitClientInterface):
    """In-process sliding-window log. Counters are per process and reset on restart."""

    def __init__(self, helper_config: HelperConfig, clock=time.monotonic):
        super().__init__(helper_config=helper_config)
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep = clock()

    def _get_engine_name(self) -> str:
        return "Memory"

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
        now = self._clock()
        if now - self._last_sweep >= self.window_seconds:
            # sweep callers idle for a whole window
            self._last_sweep = now
            self.cleanup()
        window_start = now - self.window_seconds
        hits = self._hits.setdefault(self._build_key(identifier), deque())
        while hits and hits[0] <= window_start:
            hits.popleft()

        if len(hits) >= self.max_requests:
            retry_after = hits[0] + self.window_seconds - now
            return RateLimitDecision(allowed=False, limit=self.max_requests, remaining=0, retry_after=max(retry_after, 0.001))

        hits.append(now)
        return RateLimitDecision(allowed=True, limit=self.max_requests, remaining=self.max_requests - len(hits))

    def cleanup(self) -> int:
        """Drop identifiers with no hits inside the current window. Returns count removed."""
        window_start = self._clock() - self.window_seconds
        stale = [k for k, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for k in stale:
            del self._hits[k]
        return len(stale)
