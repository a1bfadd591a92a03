from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.context import CallerIdentity


class AuthClientInterface(ClientInterface):
    """Identity provider. Answers "is this token valid, and who/what role is the caller"."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "auth"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_resolve_caller(self, access_token: str) -> CallerIdentity | None:
        """Resolve a bearer token to the caller's identity.

        Args:
            access_token (str): The raw bearer token sent by the client.

        Returns:
            CallerIdentity | None: The caller, or None if the token is invalid or expired.
        """
        pass
