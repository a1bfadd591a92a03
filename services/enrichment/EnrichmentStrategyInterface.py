from abc import ABC, abstractmethod

from shared.helper.HelperConfig import HelperConfig
from shared.models.context import EnrichmentKind, EnrichmentResult, RequestContext


class EnrichmentStrategyInterface(ABC):
    """One pluggable source of supplementary prompt context.

    The pipeline asks is_applicable() first and only then calls do_enrich().
    do_enrich() returns None when it has nothing to contribute and raises
    EnrichmentError when its source fails; the pipeline treats both alike.
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config

    @abstractmethod
    def get_kind(self) -> EnrichmentKind:
        pass

    def falls_through(self) -> bool:
        """Whether the pipeline may try the next strategy when this one produced nothing.

        Defaults to False: once an applicable strategy is selected, no other one runs.
        """
        return False

    @abstractmethod
    def is_applicable(self, ctx: RequestContext) -> bool:
        """Cheap, side-effect free check whether this strategy should run for the request."""
        pass

    @abstractmethod
    async def do_enrich(self, ctx: RequestContext) -> EnrichmentResult | None:
        """Fetch the supplementary context.

        Returns:
            EnrichmentResult | None: The text to inject, or None if nothing was found.

        Raises:
            EnrichmentError: If the underlying source fails.
        """
        pass
