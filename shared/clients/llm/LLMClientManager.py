from shared.clients.ClientLoader import load_client
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig


class LLMClientManager:
    """Manager class to instantiate the configured chat-completion client. The LLM is mandatory."""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _initialize_client(self) -> LLMClientInterface:
        """Instantiate the LLM client for LLM_ENGINE (default "openai").

        Raises:
            ValueError: If the engine is unsupported or its configuration is incomplete.
        """
        engine = self.helper_config.get_string_val("LLM_ENGINE", default="openai")
        return load_client(self.helper_config, "llm", engine)

    def get_client(self) -> LLMClientInterface:
        """Return the instantiated LLM client."""
        return self.client
