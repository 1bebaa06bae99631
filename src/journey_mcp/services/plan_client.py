import logging
from collections.abc import Iterable
from datetime import datetime
from zoneinfo import ZoneInfo

import httpx

from journey_mcp.data.tfl_client import TfLClient
from journey_mcp.errors import NoJourneysFound, ProviderError
from journey_mcp.models.journey import PlanRequest
from journey_mcp.models.tfl import Journey

logger = logging.getLogger(__name__)

PROVIDER_NAME = "journey planner"

# Weight of each leg on a preferred mode when re-ranking
PREFERRED_LEG_WEIGHT = 2


def format_plan_datetime(dt: datetime, tz: ZoneInfo) -> tuple[str, str]:
    """Format a datetime as the planner's ("YYYYMMDD", "HHMM") in the serving timezone.

    Naive datetimes are taken to be in ``tz`` already.
    """
    local = dt.replace(tzinfo=tz) if dt.tzinfo is None else dt.astimezone(tz)
    return local.strftime("%Y%m%d"), local.strftime("%H%M")


def parse_client_datetime(value: str | None) -> datetime | None:
    """Parse an ISO 8601 string from a caller or the language model.

    Returns None for missing or unparseable values.
    """
    if not value or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.warning(f"Ignoring unparseable time: {value!r}")
        return None


def preference_score(journey: Journey, preferred_modes: Iterable[str]) -> int:
    preferred = set(preferred_modes)
    return PREFERRED_LEG_WEIGHT * sum(1 for leg in journey.legs if leg.mode.id in preferred)


def rank_journeys(journeys: list[Journey], preferred_modes: Iterable[str]) -> list[Journey]:
    """Stable re-rank: itineraries with more legs on preferred modes first.

    Ties keep the planner's own order.
    """
    preferred = tuple(preferred_modes)
    if not preferred:
        return list(journeys)
    return sorted(journeys, key=lambda journey: -preference_score(journey, preferred))


class JourneyPlanClient:
    """Fetches and post-processes itineraries from the TfL journey planner."""

    def __init__(self, tfl: TfLClient, max_itineraries: int = 3):
        self._tfl = tfl
        self._max_itineraries = max_itineraries

    async def plan(
        self,
        request: PlanRequest,
        *,
        preferred_modes: Iterable[str] = (),
        restrict: bool = True,
    ) -> list[Journey]:
        """Plan a journey.

        Args:
            request: Normalized planner parameters
            preferred_modes: Modes to favour when re-ranking
            restrict: True when the mode list is already exclusive; skips re-ranking

        Returns:
            At most ``max_itineraries`` journeys, best first

        Raises:
            NoJourneysFound: The planner returned no itineraries
            ProviderError: Transport failure or malformed response
        """
        try:
            result = await self._tfl.plan_journey(
                request.origin.coordinates.as_param(),
                request.destination.coordinates.as_param(),
                request.to_query_params(),
            )
        except httpx.HTTPError as e:
            raise ProviderError(PROVIDER_NAME, f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            # JSON decode and validation errors
            raise ProviderError(PROVIDER_NAME, f"malformed response: {e}") from e

        journeys = result.journeys
        if not journeys:
            raise NoJourneysFound()

        if not restrict and preferred_modes:
            journeys = rank_journeys(journeys, preferred_modes)

        logger.debug(
            f"Planner returned {len(result.journeys)} journeys, keeping {self._max_itineraries}"
        )
        return journeys[: self._max_itineraries]
