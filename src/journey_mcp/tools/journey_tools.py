"""MCP tools for journey planning and live departure refresh."""

from journey_mcp.app import mcp
from journey_mcp.models.journey import JourneyRequest, RequestPreferences
from journey_mcp.models.responses import JourneyResult, LegDescriptor, RefreshArrivalsResponse
from journey_mcp.services.container import ServiceContainer


@mcp.tool()
async def plan_journey(
    natural_language_query: str | None = None,
    origin: str | None = None,
    destination: str | None = None,
    via: list[str] | None = None,
    departure_time: str | None = None,
    arrival_time: str | None = None,
    current_location: str | None = None,
    modes: list[str] | None = None,
    accessibility: list[str] | None = None,
    walking_speed: str | None = None,
    journey_preference: str | None = None,
    max_walking_minutes: int | None = None,
    max_transfer_minutes: int | None = None,
) -> JourneyResult:
    """Plan a journey across London with live departures for every leg.

    Give either a natural-language request, or a destination (plus an origin).
    Places can be station names, landmarks, addresses or "lat,lon" pairs.

    Examples:
        plan_journey(natural_language_query="Tube only from Canary Wharf to Oxford Circus")
        plan_journey(natural_language_query="step free to Waterloo", current_location="51.5,-0.12")
        plan_journey(origin="Bank", destination="Angel", modes=["tube"])

    Args:
        natural_language_query: Free-text trip request.
        origin: Start place for manual requests. Omit to start from current_location.
        destination: End place for manual requests.
        via: Waypoints; only the first is used.
        departure_time: ISO 8601 time to leave at.
        arrival_time: ISO 8601 time to arrive by (wins over departure_time).
        current_location: Device location as "lat,lon", used when the trip starts "here".
        modes: Allowed modes, e.g. ["tube", "bus"]. Synonyms like "underground" are accepted.
        accessibility: Needs such as "step-free-vehicle", "wheelchair", "audio".
        walking_speed: "slow", "average" or "fast".
        journey_preference: "least-time", "least-interchange" or "least-walking".
        max_walking_minutes: Longest acceptable walk.
        max_transfer_minutes: Longest acceptable interchange.

    Returns:
        JourneyResult with status "success" and up to three journeys, or status
        "error" with a message. An error of "location_required" means the caller
        must supply current_location.
    """
    preferences = RequestPreferences(
        modes=modes,
        accessibility=accessibility,
        walking_speed=walking_speed,
        journey_preference=journey_preference,
        max_walking_minutes=max_walking_minutes,
        max_transfer_minutes=max_transfer_minutes,
    )
    request = JourneyRequest(
        natural_language_query=natural_language_query,
        origin=origin,
        destination=destination,
        via=via or [],
        departure_time=departure_time,
        arrival_time=arrival_time,
        current_location=current_location,
        preferences=preferences,
    )

    async with ServiceContainer() as services:
        return await services.journey_resolver.resolve(request)


@mcp.tool()
async def refresh_arrivals(legs: list[LegDescriptor]) -> RefreshArrivalsResponse:
    """Refresh live departures for legs of a journey planned earlier.

    Send one descriptor per leg to refresh: its journey and leg index, mode id,
    boarding stop id, parent station id, line id and rail code, copied from the
    leg's mode, departure_stop_id, parent_station_id, line_id and rail_code.
    Departure and arrival stop points are optional and only used to find a
    National Rail station code when none is sent.

    Args:
        legs: Leg descriptors from a previous plan_journey result.

    Returns:
        RefreshArrivalsResponse with up to three upcoming departures per leg.
    """
    if not legs:
        raise ValueError("No legs provided")

    async with ServiceContainer() as services:
        updates = await services.enricher.refresh(legs)
    return RefreshArrivalsResponse(updates=updates)
