from shared.clients.ClientLoader import load_client
from shared.clients.auth.AuthClientInterface import AuthClientInterface
from shared.helper.HelperConfig import HelperConfig


class AuthClientManager:
    """Manager class to instantiate the identity client for AUTH_ENGINE (default "supabase")."""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _initialize_client(self) -> AuthClientInterface:
        engine = self.helper_config.get_string_val("AUTH_ENGINE", default="supabase")
        return load_client(self.helper_config, "auth", engine)

    def get_client(self) -> AuthClientInterface:
        return self.client
