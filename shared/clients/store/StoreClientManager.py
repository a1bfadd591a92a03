from shared.clients.ClientLoader import load_client
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.HelperConfig import HelperConfig


class StoreClientManager:
    """Manager class to instantiate the store client for STORE_ENGINE (default "memory")."""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _initialize_client(self) -> StoreClientInterface:
        engine = self.helper_config.get_string_val("STORE_ENGINE", default="memory")
        if engine.strip().lower() == "memory":
            self.logging.warning("STORE_ENGINE is 'memory': sessions and knowledge are lost on restart.", color="yellow")
        return load_client(self.helper_config, "store", engine)

    def get_client(self) -> StoreClientInterface:
        return self.client
