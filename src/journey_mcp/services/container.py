from contextlib import AsyncExitStack

from journey_mcp.data.config import JourneyConfig, get_config
from journey_mcp.data.geocoding_client import GeocodingClient
from journey_mcp.data.llm_client import LLMClient
from journey_mcp.data.national_rail_client import NationalRailClient
from journey_mcp.data.tfl_client import TfLClient
from journey_mcp.services.arrivals_enricher import ArrivalsEnricher
from journey_mcp.services.location_resolver import LocationResolver
from journey_mcp.services.orchestrator import JourneyResolver
from journey_mcp.services.plan_client import JourneyPlanClient


class ServiceContainer:
    """Provider clients and the services built on them, for one request.

    Opens every HTTP client on entry and closes them all on exit.

    Usage:
        async with ServiceContainer() as services:
            result = await services.journey_resolver.resolve(request)
    """

    def __init__(self, config: JourneyConfig | None = None):
        self.config = config or get_config()
        self._stack: AsyncExitStack | None = None

    async def __aenter__(self) -> "ServiceContainer":
        stack = AsyncExitStack()
        await stack.__aenter__()
        try:
            self.tfl = await stack.enter_async_context(TfLClient(self.config))
            self.national_rail = await stack.enter_async_context(NationalRailClient(self.config))
            self.geocoder = await stack.enter_async_context(GeocodingClient(self.config))
            self.llm = await stack.enter_async_context(LLMClient(self.config))
        except BaseException:
            await stack.aclose()
            raise
        self._stack = stack

        self.location_resolver = LocationResolver(self.tfl, self.geocoder, self.llm)
        self.plan_client = JourneyPlanClient(self.tfl, self.config.max_itineraries)
        self.enricher = ArrivalsEnricher(
            self.tfl, self.national_rail, self.config.max_arrivals_per_leg
        )
        self.journey_resolver = JourneyResolver(
            self.llm,
            self.location_resolver,
            self.plan_client,
            self.enricher,
            self.config,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._stack:
            await self._stack.aclose()
            self._stack = None
