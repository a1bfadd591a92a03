"""Injects the knowledge base chunks closest to the user's query."""

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.context import EnrichmentKind, EnrichmentResult, RequestContext
from shared.models.errors import EnrichmentError
from services.chat.prompt_templates import KNOWLEDGE_SEPARATOR
from services.enrichment.EnrichmentStrategyInterface import EnrichmentStrategyInterface


class KnowledgeRetrievalStrategy(EnrichmentStrategyInterface):
    """Always attempted when a knowledge base is configured, independent of request flags.

    An irrelevant query (nothing above the threshold) yields None and the
    pipeline falls through to the next strategy.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        embed_client: EmbedClientInterface | None,
        store_client: StoreClientInterface | None,
    ):
        super().__init__(helper_config=helper_config)
        self._embed_client = embed_client
        self._store_client = store_client
        self.enabled = helper_config.get_bool_val("KNOWLEDGE_ENABLED", default=True)
        self.match_threshold = float(helper_config.get_number_val("KNOWLEDGE_MATCH_THRESHOLD", default=0.5, min_val=-1, max_val=1))
        self.match_count = int(helper_config.get_number_val("KNOWLEDGE_MATCH_COUNT", default=5, min_val=1))

    def get_kind(self) -> EnrichmentKind:
        return EnrichmentKind.KNOWLEDGE

    def falls_through(self) -> bool:
        return True

    def is_configured(self) -> bool:
        return self.enabled and self._embed_client is not None and self._store_client is not None

    def is_applicable(self, ctx: RequestContext) -> bool:
        return self.is_configured() and bool(ctx.query.strip())

    async def do_enrich(self, ctx: RequestContext) -> EnrichmentResult | None:
        """
        Raises:
            EnrichmentError: If embedding the query or the similarity search fails.
        """
        try:
            query_vector = await self._embed_client.do_embed_query(ctx.query)
            matches = await self._store_client.do_match_knowledge(
                query_embedding=query_vector,
                match_threshold=self.match_threshold,
                match_count=self.match_count,
            )
        except Exception as e:
            raise EnrichmentError(f"Knowledge retrieval failed: {e}") from e
        if not matches:
            self.logging.debug("Knowledge retrieval: no chunk above %.2f for the query.", self.match_threshold)
            return None

        sources = sorted({str(m.metadata.get("source")) for m in matches if m.metadata.get("source")})
        self.logging.info(
            "Knowledge retrieval: %d chunk(s), best similarity %.3f.",
            len(matches), matches[0].similarity,
        )
        return EnrichmentResult(
            kind=self.get_kind(),
            injected_text=KNOWLEDGE_SEPARATOR.join(m.content for m in matches),
            source_descriptor=", ".join(sources) or "knowledge base",
        )
