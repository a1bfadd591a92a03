from shared.clients.search.SearchClientInterface import SearchClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.search import SearchHit


class SearchClientTavily(SearchClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.tavily.com", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    def _get_engine_name(self) -> str:
        return "Tavily"

    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.tavily.com"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    def _get_endpoint_search(self) -> str:
        return "/search"

    def get_search_payload(self, query: str, count: int) -> dict:
        return {"query": query, "max_results": count, "include_answer": False}

    def extract_hits_from_response(self, response_data: dict) -> list[SearchHit]:
        return [
            SearchHit(
                title=item.get("title", ""),
                link=item.get("url", ""),
                snippet=item.get("content", ""),
            )
            for item in response_data.get("results", [])
            if item.get("url")
        ]
