from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.context import RateLimitDecision


class RateLimitClientInterface(ClientInterface):
    """Sliding-window rate limiter keyed by caller id.

    RATELIMIT_MAX_REQUESTS requests are allowed within any window of
    RATELIMIT_WINDOW_SECONDS seconds.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.max_requests = int(helper_config.get_number_val("RATELIMIT_MAX_REQUESTS", default=10, min_val=1))
        self.window_seconds = float(helper_config.get_number_val("RATELIMIT_WINDOW_SECONDS", default=60, min_val=1))
        self.key_prefix = helper_config.get_string_val("RATELIMIT_KEY_PREFIX", default="chat_bridge:ratelimit")

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "ratelimit"

    def _build_key(self, identifier: str) -> str:
        return f"{self.key_prefix}:{identifier}"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_check(self, identifier: str) -> RateLimitDecision:
        """Count one request for the identifier and decide whether it is allowed.

        Args:
            identifier (str): The caller id.

        Returns:
            RateLimitDecision: allowed flag, quota figures and, when denied, a positive retry_after in seconds.
        """
        pass
