from shared.clients.ClientLoader import load_client
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig


class EmbedClientManager:
    """
    Manager class to instantiate the Embed client, if one is configured.

    Embeddings are only needed by the knowledge base. Without EMBED_ENGINE the
    manager yields None and knowledge retrieval/ingestion stay disabled.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _initialize_client(self) -> EmbedClientInterface | None:
        if not self.helper_config.has_val("EMBED_ENGINE"):
            self.logging.warning("EMBED_ENGINE is not set. Knowledge base features are disabled.")
            return None
        return load_client(self.helper_config, "embed", self.helper_config.get_string_val("EMBED_ENGINE"))

    def get_client(self) -> EmbedClientInterface | None:
        """
        Returns the instantiated Embed client, or None when not configured.
        """
        return self.client
