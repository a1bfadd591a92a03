from shared.clients.ClientLoader import load_client
from shared.clients.search.SearchClientInterface import SearchClientInterface
from shared.helper.HelperConfig import HelperConfig


class SearchClientManager:
    """Manager class to instantiate the web search client, if one is configured.

    Missing SEARCH_ENGINE or a missing API key leaves web search disabled; chat
    requests with the search flag then simply run without that enrichment.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _initialize_client(self) -> SearchClientInterface | None:
        if not self.helper_config.has_val("SEARCH_ENGINE"):
            self.logging.warning("SEARCH_ENGINE is not set. Web search enrichment is disabled.")
            return None
        engine = self.helper_config.get_string_val("SEARCH_ENGINE")
        try:
            return load_client(self.helper_config, "search", engine)
        except ValueError as e:
            self.logging.warning("Web search enrichment is disabled: %s", e)
            return None

    def get_client(self) -> SearchClientInterface | None:
        return self.client
