from shared.clients.ClientLoader import load_client
from shared.clients.ratelimit.RateLimitClientInterface import RateLimitClientInterface
from shared.helper.HelperConfig import HelperConfig


class RateLimitClientManager:
    """Manager class to instantiate the rate limiter.

    Construct-if-configured: without RATELIMIT_ENGINE the fail-open
    RateLimitClientDisabled is returned instead of failing the boot.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _initialize_client(self) -> RateLimitClientInterface:
        if not self.helper_config.has_val("RATELIMIT_ENGINE"):
            self.logging.warning("RATELIMIT_ENGINE is not set. Rate limiting is disabled (fail-open).")
            return load_client(self.helper_config, "ratelimit", "disabled")
        return load_client(self.helper_config, "ratelimit", self.helper_config.get_string_val("RATELIMIT_ENGINE"))

    def get_client(self) -> RateLimitClientInterface:
        return self.client
