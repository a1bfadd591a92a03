"""Live web search: query rewrite via the LLM, then a search API call."""

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.search.SearchClientInterface import SearchClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatTurn
from shared.models.context import EnrichmentKind, EnrichmentResult, RequestContext
from shared.models.errors import EnrichmentError
from shared.models.search import SearchHit
from services.chat.prompt_templates import QUERY_REWRITE_PROMPT, SEARCH_RESULT_LINE
from services.enrichment.EnrichmentStrategyInterface import EnrichmentStrategyInterface

REWRITE_HISTORY_TURNS = 4
REWRITE_MAX_CHARS = 200


class WebSearchStrategy(EnrichmentStrategyInterface):
    """Runs only when the caller toggled web search and a search provider is configured."""

    def __init__(
        self,
        helper_config: HelperConfig,
        llm_client: LLMClientInterface,
        search_client: SearchClientInterface | None,
    ):
        super().__init__(helper_config=helper_config)
        self._llm_client = llm_client
        self._search_client = search_client
        self.result_count = int(helper_config.get_number_val("SEARCH_RESULT_COUNT", default=5, min_val=1, max_val=10))
        self.rewrite_model = helper_config.get_string_val("SEARCH_REWRITE_MODEL", default="")

    def get_kind(self) -> EnrichmentKind:
        return EnrichmentKind.SEARCH

    def is_applicable(self, ctx: RequestContext) -> bool:
        return ctx.web_search and self._search_client is not None

    async def do_enrich(self, ctx: RequestContext) -> EnrichmentResult | None:
        """
        Raises:
            EnrichmentError: If the search provider call fails.
        """
        keyword = await self.do_rewrite_query(ctx)
        try:
            hits = await self._search_client.do_search(keyword, count=self.result_count)
        except Exception as e:
            raise EnrichmentError(f"Web search for '{keyword}' failed: {e}") from e
        if not hits:
            self.logging.info("Web search for '%s' returned no results.", keyword)
            return None
        self.logging.info("Web search for '%s': %d result(s).", keyword, len(hits))
        return EnrichmentResult(
            kind=self.get_kind(),
            injected_text=self.format_hits(hits),
            source_descriptor=keyword,
        )

    async def do_rewrite_query(self, ctx: RequestContext) -> str:
        """Compress the last few turns into a concise search keyword.

        Falls back to the raw extracted query if the rewrite fails or is empty.
        """
        transcript = self._render_transcript(ctx.messages[-REWRITE_HISTORY_TURNS:], ctx.query)
        try:
            rewritten = await self._llm_client.do_chat(
                messages=[
                    {"role": "system", "content": QUERY_REWRITE_PROMPT},
                    {"role": "user", "content": transcript},
                ],
                model=self.rewrite_model or ctx.model,
                temperature=0.1,
                max_tokens=60,
            )
        except Exception as e:
            self.logging.warning("Search query rewrite failed, using the raw query: %s", e)
            return ctx.query

        keyword = " ".join(rewritten.split()).strip().strip("\"'`")
        if not keyword:
            return ctx.query
        return keyword[:REWRITE_MAX_CHARS]

    @staticmethod
    def _render_transcript(turns: list[ChatTurn], query: str) -> str:
        lines = []
        for turn in turns[:-1]:
            text = turn.first_text()
            if text:
                lines.append(f"{turn.role}: {text}")
        lines.append(f"user: {query}")
        return "\n".join(lines)

    @staticmethod
    def format_hits(hits: list[SearchHit]) -> str:
        return "\n\n".join(
            SEARCH_RESULT_LINE.format(index=i, title=hit.title or "Untitled", link=hit.link, snippet=hit.snippet)
            for i, hit in enumerate(hits, 1)
        )
