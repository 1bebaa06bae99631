"""Journey resolution pipeline.

Natural-language requests run as a bounded retry loop:

    EXTRACTING_INTENT -> RESOLVING_ENDPOINTS -> PLANNING -> ENRICHING -> DONE

A failure while resolving endpoints or planning sends the loop back to
EXTRACTING_INTENT with a JSON feedback block appended to the original query,
so the language model can revise its intent. Gating outcomes (low confidence,
not a journey, ambiguity, missing current location) end the request at once.

Manual requests (destination plus optional origin) skip intent extraction and
never retry.
"""

import asyncio
import json
import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo

from journey_mcp.data.config import JourneyConfig
from journey_mcp.data.llm_client import LLMClient
from journey_mcp.errors import (
    AmbiguousIntent,
    IncompleteIntent,
    JourneyPlannerError,
    LocationNotFound,
    LocationRequired,
    LowConfidenceIntent,
    NoJourneysFound,
    NotAJourneyQuery,
    ProviderError,
)
from journey_mcp.matching.normalizers import (
    ALLOWED_MODES,
    DEFAULT_MODES,
    accessibility_preference,
    extract_modes_from_free_text,
    has_exclusivity_marker,
    map_journey_preference,
    map_walking_speed,
    merge_allowed_modes,
    normalize_accessibility,
    normalize_modes,
)
from journey_mcp.models.intent import JourneyPreferences, TimePreference, TravelIntent
from journey_mcp.models.journey import (
    JourneyRequest,
    PlanRequest,
    RequestPreferences,
    ResolvedEndpoint,
    TimeIs,
)
from journey_mcp.models.responses import (
    ClarificationData,
    EnrichedItinerary,
    JourneyData,
    JourneyResult,
)
from journey_mcp.models.tfl import Journey
from journey_mcp.services.arrivals_enricher import ArrivalsEnricher
from journey_mcp.services.location_resolver import LocationResolver
from journey_mcp.services.plan_client import (
    JourneyPlanClient,
    format_plan_datetime,
    parse_client_datetime,
)

logger = logging.getLogger(__name__)

RETRY_GUIDANCE = "Revise stations (must be valid/open), adjust modes/time to produce a feasible plan."
GENERIC_FAILURE = "Failed to plan journey"

# Failures worth another round of intent extraction
RETRYABLE_ERRORS = (LocationNotFound, NoJourneysFound, ProviderError, IncompleteIntent)


class ResolutionState(str, Enum):
    EXTRACTING_INTENT = "extracting_intent"
    RESOLVING_ENDPOINTS = "resolving_endpoints"
    PLANNING = "planning"
    ENRICHING = "enriching"
    DONE = "done"


@dataclass(frozen=True)
class RetryFeedback:
    """What went wrong on the previous attempt, in a form the model can act on."""

    last_error: str
    guidance: str = RETRY_GUIDANCE
    allowed_modes: tuple[str, ...] = ALLOWED_MODES
    default_modes: tuple[str, ...] = DEFAULT_MODES

    def to_json(self) -> str:
        return json.dumps(
            {
                "lastError": self.last_error,
                "guidance": self.guidance,
                "allowedModes": list(self.allowed_modes),
                "defaultModes": list(self.default_modes),
            }
        )

    def apply_to(self, query: str) -> str:
        """Append the feedback block to the user's original query."""
        return f"{query}\n\nJSON_FEEDBACK:\n{self.to_json()}\n\nPlease return updated intent JSON only."


@dataclass
class RetryState:
    """Attempt counter plus the feedback accumulated from the last failure."""

    max_attempts: int = 5
    attempt: int = 0
    stage: ResolutionState = ResolutionState.EXTRACTING_INTENT
    last_error: JourneyPlannerError | None = None
    feedback: RetryFeedback | None = None
    history: list[ResolutionState] = field(default_factory=list)

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts

    def begin_attempt(self) -> None:
        self.attempt += 1
        self.advance(ResolutionState.EXTRACTING_INTENT)

    def advance(self, stage: ResolutionState) -> None:
        self.stage = stage
        self.history.append(stage)

    def record_failure(self, error: JourneyPlannerError) -> None:
        self.last_error = error
        self.feedback = RetryFeedback(last_error=error.message)


@dataclass(frozen=True)
class PlanOptions:
    """A plan request plus how its results should be ranked."""

    request: PlanRequest
    preferred_modes: tuple[str, ...]
    restrict: bool


class JourneyResolver:
    """Top-level pipeline: request in, JourneyResult out. Never raises."""

    def __init__(
        self,
        llm: LLMClient,
        location_resolver: LocationResolver,
        plan_client: JourneyPlanClient,
        enricher: ArrivalsEnricher,
        config: JourneyConfig,
    ):
        self._llm = llm
        self._locations = location_resolver
        self._planner = plan_client
        self._enricher = enricher
        self._config = config
        self._tz = ZoneInfo(config.timezone)

    async def resolve(self, request: JourneyRequest) -> JourneyResult:
        try:
            if request.is_natural_language:
                return await self._resolve_natural_language(request)
            return await self._resolve_manual(request)
        except JourneyPlannerError as e:
            if isinstance(e, ProviderError) and e.detail:
                logger.warning(f"{e.provider} failure: {e.detail}")
            return JourneyResult.failure(e.message)
        except Exception:
            logger.exception("Journey planning failed")
            return JourneyResult.failure(GENERIC_FAILURE)

    # Natural-language path

    async def _resolve_natural_language(self, request: JourneyRequest) -> JourneyResult:
        query = request.natural_language_query.strip()
        if not self._llm.is_configured:
            raise ProviderError("language model", "LLM_API_KEY is not set")

        state = RetryState(max_attempts=max(1, self._config.max_attempts))
        while not state.exhausted:
            state.begin_attempt()
            try:
                intent = await self._llm.parse_intent(query, state.feedback)
                self._check_intent(intent)
                data = await self._plan_from_intent(request, intent, state)
                state.advance(ResolutionState.DONE)
                return JourneyResult.success(data)
            except AmbiguousIntent as e:
                suggestions = await self._llm.clarify_ambiguous_query(query, e.ambiguities)
                return JourneyResult.failure(
                    e.message,
                    ClarificationData(ambiguities=e.ambiguities, suggestions=suggestions),
                )
            except RETRYABLE_ERRORS as e:
                logger.warning(
                    f"Attempt {state.attempt}/{state.max_attempts} failed "
                    f"during {state.stage.value}: {e.message}"
                )
                state.record_failure(e)

        raise state.last_error

    def _check_intent(self, intent: TravelIntent) -> None:
        """Gate an extracted intent; raises when planning should not go ahead."""
        if intent.overall_confidence < self._config.confidence_threshold:
            raise LowConfidenceIntent(intent.overall_confidence)
        if not intent.is_journey:
            raise NotAJourneyQuery(intent.kind.value)
        if intent.ambiguities:
            raise AmbiguousIntent(list(intent.ambiguities))

    async def _plan_from_intent(
        self, request: JourneyRequest, intent: TravelIntent, state: RetryState
    ) -> JourneyData:
        journey = intent.journey
        state.advance(ResolutionState.RESOLVING_ENDPOINTS)

        origin_info = journey.from_
        origin_name = origin_info.name.strip() if origin_info and origin_info.name else None
        use_current = origin_name is None or origin_info.use_current_location
        device_location = request.current_location or request.origin
        if use_current and not device_location:
            raise LocationRequired()
        if not journey.to or not journey.to.name or not journey.to.name.strip():
            raise IncompleteIntent("Destination is required")

        via = intent.first_via
        origin, destination, via_endpoint = await _gather_endpoints(
            self._locations.resolve(
                origin_name,
                current_location=device_location,
                use_current_location=use_current,
                display_name=origin_name if use_current else None,
                expand_name=True,
                role="origin",
            ),
            self._locations.resolve(journey.to.name, expand_name=True, role="destination"),
            self._resolve_via(via.name if via else None, expand_name=True),
        )

        options = self._intent_plan_options(
            request,
            journey.preferences or JourneyPreferences(),
            request.natural_language_query.strip(),
            origin,
            destination,
            via_endpoint,
        )
        return await self._plan_and_enrich(options, state)

    def _intent_plan_options(
        self,
        request: JourneyRequest,
        parsed: JourneyPreferences,
        query: str,
        origin: ResolvedEndpoint,
        destination: ResolvedEndpoint,
        via: ResolvedEndpoint | None,
    ) -> PlanOptions:
        explicit = request.preferences or RequestPreferences()

        # Request modes > parsed modes > modes named in the text > defaults
        requested = (
            normalize_modes(explicit.modes)
            or normalize_modes(parsed.mode)
            or extract_modes_from_free_text(query)
            or DEFAULT_MODES
        )
        exclusive = has_exclusivity_marker(query) or parsed.mode_policy == "only"
        allowed = merge_allowed_modes(requested, exclusive)

        accessibility = normalize_accessibility(explicit.accessibility or parsed.accessibility)
        date, time, time_is = self._plan_time(request, parsed.time)

        plan_request = PlanRequest(
            origin=origin,
            destination=destination,
            via=via,
            modes=allowed,
            accessibility=accessibility_preference(accessibility),
            walking_speed=map_walking_speed(explicit.walking_speed or parsed.walking_speed),
            journey_preference=map_journey_preference(
                explicit.journey_preference or parsed.journey_preference
            ),
            date=date,
            time=time,
            time_is=time_is,
            max_walking_minutes=_first_set(explicit.max_walking_minutes, parsed.max_walking_minutes),
            max_transfer_minutes=_first_set(
                explicit.max_transfer_minutes, parsed.max_transfer_minutes
            ),
        )
        logger.debug(f"Planning with modes {allowed} (exclusive={exclusive})")
        return PlanOptions(request=plan_request, preferred_modes=requested, restrict=exclusive)

    # Manual path

    async def _resolve_manual(self, request: JourneyRequest) -> JourneyResult:
        if not request.destination or not request.destination.strip():
            raise IncompleteIntent("Destination is required")

        origin_query = request.origin.strip() if request.origin else None
        use_current = not origin_query
        if use_current and not request.current_location:
            raise LocationRequired()

        via_query = request.via[0].strip() if request.via else None
        origin, destination, via = await _gather_endpoints(
            self._locations.resolve(
                origin_query,
                current_location=request.current_location,
                use_current_location=use_current,
                role="origin",
            ),
            self._locations.resolve(request.destination, role="destination"),
            self._resolve_via(via_query),
        )

        explicit = request.preferences or RequestPreferences()
        date, time, time_is = self._plan_time(request, None)
        plan_request = PlanRequest(
            origin=origin,
            destination=destination,
            via=via,
            modes=normalize_modes(explicit.modes) or DEFAULT_MODES,
            accessibility=accessibility_preference(normalize_accessibility(explicit.accessibility)),
            walking_speed=map_walking_speed(explicit.walking_speed),
            journey_preference=map_journey_preference(explicit.journey_preference),
            date=date,
            time=time,
            time_is=time_is,
            max_walking_minutes=explicit.max_walking_minutes,
            max_transfer_minutes=explicit.max_transfer_minutes,
        )
        options = PlanOptions(request=plan_request, preferred_modes=(), restrict=True)
        return JourneyResult.success(await self._plan_and_enrich(options, None))

    # Shared steps

    async def _resolve_via(
        self, name: str | None, expand_name: bool = False
    ) -> ResolvedEndpoint | None:
        """Waypoints are optional: an unresolvable via is dropped, not fatal."""
        if not name:
            return None
        try:
            return await self._locations.resolve(name, expand_name=expand_name, role="via")
        except LocationNotFound:
            logger.warning(f"Ignoring unresolvable via point: {name}")
            return None

    def _plan_time(
        self, request: JourneyRequest, parsed: TimePreference | None
    ) -> tuple[str | None, str | None, TimeIs | None]:
        """Pick the journey time: request arrival, request departure, then the parsed time."""
        arrival = parse_client_datetime(request.arrival_time)
        if arrival:
            return (*format_plan_datetime(arrival, self._tz), TimeIs.ARRIVING)

        departure = parse_client_datetime(request.departure_time)
        if departure:
            return (*format_plan_datetime(departure, self._tz), TimeIs.DEPARTING)

        when = parse_client_datetime(parsed.datetime) if parsed else None
        if when:
            time_is = TimeIs.ARRIVING if parsed.type == "arrive" else TimeIs.DEPARTING
            return (*format_plan_datetime(when, self._tz), time_is)
        return None, None, None

    async def _plan_and_enrich(self, options: PlanOptions, state: RetryState | None) -> JourneyData:
        if state:
            state.advance(ResolutionState.PLANNING)
        journeys = await self._planner.plan(
            options.request,
            preferred_modes=options.preferred_modes,
            restrict=options.restrict,
        )

        if state:
            state.advance(ResolutionState.ENRICHING)
        itineraries = await asyncio.gather(*(self._build_itinerary(j) for j in journeys))
        return JourneyData(
            journeys=list(itineraries),
            from_name=options.request.origin.display_name,
            to_name=options.request.destination.display_name,
        )

    async def _build_itinerary(self, journey: Journey) -> EnrichedItinerary:
        description, legs = await asyncio.gather(
            self._describe(journey),
            self._enricher.enrich(journey),
        )
        return EnrichedItinerary(
            start_date_time=journey.start_date_time,
            arrival_date_time=journey.arrival_date_time,
            duration_minutes=journey.duration,
            legs=legs,
            accessible_description=description,
        )

    async def _describe(self, journey: Journey) -> str | None:
        if not self._llm.is_configured:
            return None
        try:
            return await self._llm.generate_accessible_description(journey)
        except Exception as e:
            logger.warning(f"Accessible description failed: {e}")
            return None


def _first_set(*values: int | None) -> int | None:
    return next((value for value in values if value is not None), None)


async def _gather_endpoints(*lookups: Awaitable[Any]) -> list[Any]:
    """Await every lookup, then raise the first failure in argument order.

    Every lookup has finished by the time an error propagates.
    """
    results = await asyncio.gather(*lookups, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results
