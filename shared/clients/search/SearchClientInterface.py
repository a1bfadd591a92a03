from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.search import SearchHit


class SearchClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "search"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_search(self) -> str:
        """Returns the endpoint path for search requests (e.g. "/search")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_search_payload(self, query: str, count: int) -> dict:
        """Build the backend-specific request body for a search request.

        Args:
            query (str): The search keyword.
            count (int): Number of results wanted.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_hits_from_response(self, response_data: dict) -> list[SearchHit]:
        """Normalise the provider response to SearchHit objects, best first."""
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_search(self, query: str, count: int = 5) -> list[SearchHit]:
        """Run a web search and return the top results.

        Args:
            query (str): The search keyword.
            count (int): Maximum number of results.

        Returns:
            list[SearchHit]: At most count results. Empty if nothing was found.

        Raises:
            Exception: If the provider returns a non-2xx status.
        """
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_search(),
            json=self.get_search_payload(query, count),
            raise_on_error=True,
        )
        return self.extract_hits_from_response(response.json())[:count]
