"""Ordered enrichment selection: the first strategy that produces text wins."""

from shared.helper.HelperConfig import HelperConfig
from shared.models.context import EnrichmentResult, RequestContext
from shared.models.errors import EnrichmentError
from services.enrichment.EnrichmentStrategyInterface import EnrichmentStrategyInterface


class EnrichmentPipeline:
    """Folds over an explicit priority list of strategies.

    Strategies run one at a time, never in parallel. A strategy whose
    is_applicable() is False is skipped. Once an applicable strategy has run,
    the fold stops unless it produced nothing and falls_through() allows the
    next one. Failures are degraded enrichment: logged, never raised.
    """

    def __init__(self, helper_config: HelperConfig, strategies: list[EnrichmentStrategyInterface]) -> None:
        self.logging = helper_config.get_logger()
        self._strategies = strategies

    def get_strategies(self) -> list[EnrichmentStrategyInterface]:
        return list(self._strategies)

    async def do_select(self, ctx: RequestContext) -> EnrichmentResult | None:
        """Run the strategies in priority order and return the first result.

        Returns:
            EnrichmentResult | None: The single enrichment for this request, or None.
        """
        for strategy in self._strategies:
            kind = strategy.get_kind().value
            if not strategy.is_applicable(ctx):
                continue

            try:
                result = await strategy.do_enrich(ctx)
            except EnrichmentError as e:
                self.logging.warning("Enrichment '%s' degraded, continuing without it: %s", kind, e.message)
                result = None
            except Exception as e:
                self.logging.error("Enrichment '%s' raised unexpectedly, continuing without it: %s", kind, e)
                result = None

            if result is not None and result.injected_text.strip():
                self.logging.info("Enrichment selected: %s (%s)", kind, result.source_descriptor)
                return result

            if not strategy.falls_through():
                self.logging.debug("Enrichment '%s' produced nothing; no fallback.", kind)
                return None

        return None
