"""Payload builders and fake providers shared by the test modules."""

from journey_mcp.data.config import JourneyConfig
from journey_mcp.models.geocoding import GeocodingResult
from journey_mcp.models.intent import TravelIntent
from journey_mcp.models.rail import RailDeparture
from journey_mcp.models.tfl import (
    Journey,
    JourneyPlannerResult,
    Prediction,
    StopPoint,
    StopPointMatch,
    StopPointSearchResponse,
)


def make_config(**overrides) -> JourneyConfig:
    """Config isolated from any local .env file."""
    return JourneyConfig(_env_file=None, **overrides)


def make_leg(
    mode: str,
    *,
    line_id: str | None = None,
    stop_id: str | None = None,
    parent_id: str | None = None,
    from_name: str = "Start",
    to_name: str = "End",
    arrival_stop_id: str | None = None,
    distance: float | None = None,
    from_coords: tuple[float, float] | None = (51.5, -0.1),
    to_coords: tuple[float, float] | None = (51.51, -0.12),
    direction: str | None = None,
) -> dict:
    """Build a leg payload in the planner's camelCase shape."""
    departure = {"commonName": from_name}
    if stop_id:
        departure["naptanId"] = stop_id
    if parent_id:
        departure["stationNaptan"] = parent_id
    if from_coords:
        departure["lat"], departure["lon"] = from_coords

    arrival = {"commonName": to_name}
    if arrival_stop_id:
        arrival["naptanId"] = arrival_stop_id
    if to_coords:
        arrival["lat"], arrival["lon"] = to_coords

    leg = {
        "mode": {"id": mode, "name": mode},
        "duration": 5,
        "instruction": {"summary": f"{mode} to {to_name}"},
        "departurePoint": departure,
        "arrivalPoint": arrival,
        "routeOptions": [],
    }
    if line_id:
        leg["routeOptions"] = [
            {
                "name": line_id.title(),
                "directions": [direction] if direction else [],
                "lineIdentifier": {"id": line_id, "name": line_id.title()},
            }
        ]
    if distance is not None:
        leg["distance"] = distance
    return leg


def make_journey(*legs: dict, duration: int = 20) -> Journey:
    return Journey.model_validate(
        {
            "startDateTime": "2025-01-15T09:00:00",
            "arrivalDateTime": "2025-01-15T09:20:00",
            "duration": duration,
            "legs": list(legs),
        }
    )


def make_prediction(
    stop_id: str,
    line_id: str,
    seconds: int,
    *,
    platform: str | None = None,
    prediction_id: str | None = None,
    direction: str | None = "outbound",
) -> Prediction:
    return Prediction(
        id=prediction_id or f"{stop_id}-{line_id}-{seconds}",
        naptan_id=stop_id,
        line_id=line_id,
        line_name=line_id.title(),
        platform_name=platform,
        direction=direction,
        destination_name="Somewhere",
        expected_arrival="2025-01-15T09:05:00Z",
        time_to_station=seconds,
    )


def make_intent(
    *,
    origin: str | None = "Canary Wharf",
    destination: str | None = "Oxford Circus",
    use_current_location: bool = False,
    confidence: float = 0.9,
    kind: str = "journey_planning",
    via: list[str] | None = None,
    preferences: dict | None = None,
    ambiguities: list[str] | None = None,
) -> TravelIntent:
    journey: dict = {"preferences": preferences or {}}
    if origin is not None or use_current_location:
        journey["from"] = {"confidence": 0.9, "useCurrentLocation": use_current_location}
        if origin is not None:
            journey["from"]["name"] = origin
    if destination is not None:
        journey["to"] = {"name": destination, "confidence": 0.9}
    if via:
        journey["via"] = [{"name": name, "confidence": 0.8} for name in via]
    return TravelIntent.model_validate(
        {
            "type": kind,
            "journey": journey if kind == "journey_planning" else None,
            "rawQuery": "test query",
            "intent_confidence": confidence,
            "ambiguities": ambiguities or [],
        }
    )


class FakeTfL:
    """In-memory stand-in for TfLClient."""

    def __init__(
        self,
        stations: dict[str, list[StopPointMatch]] | None = None,
        plan_results: list | None = None,
        arrivals: list[Prediction] | None = None,
        line_arrivals: dict[str, list[Prediction]] | None = None,
        nearby: list[StopPoint] | None = None,
    ):
        self.stations = stations or {}
        # Each entry is a list of journeys to return, or an exception to raise
        self.plan_results = list(plan_results or [])
        self.arrivals = arrivals or []
        self.line_arrivals = line_arrivals or {}
        self.nearby = nearby or []
        self.search_calls: list[str] = []
        self.plan_calls: list[tuple[str, str, dict]] = []
        self.arrival_calls: list[list[str]] = []
        self.line_arrival_calls: list[tuple[str, str]] = []
        self.nearby_calls: list[dict] = []
        self.arrivals_error: Exception | None = None

    async def search_stop_points(self, query: str, max_results: int = 20):
        self.search_calls.append(query)
        return StopPointSearchResponse(query=query, matches=self.stations.get(query, []))

    async def plan_journey(self, origin: str, destination: str, params: dict):
        self.plan_calls.append((origin, destination, params))
        result = self.plan_results.pop(0) if len(self.plan_results) > 1 else self.plan_results[0]
        if isinstance(result, Exception):
            raise result
        return JourneyPlannerResult(journeys=result)

    async def get_arrivals(self, stop_point_ids: list[str]):
        self.arrival_calls.append(list(stop_point_ids))
        if self.arrivals_error:
            raise self.arrivals_error
        return [p for p in self.arrivals if p.naptan_id in stop_point_ids]

    async def get_line_arrivals(self, line_id: str, stop_point_id: str):
        self.line_arrival_calls.append((line_id, stop_point_id))
        return self.line_arrivals.get(line_id, [])

    async def get_nearby_stop_points(self, lat, lon, radius=500, modes=None, categories=None):
        self.nearby_calls.append({"lat": lat, "lon": lon, "radius": radius, "modes": modes})
        return self.nearby


class FakeGeocoder:
    def __init__(
        self,
        places: dict[str, list[GeocodingResult]] | None = None,
        reverse: GeocodingResult | Exception | None = None,
    ):
        self.places = places or {}
        self.reverse = reverse
        self.calls: list[str] = []
        self.reverse_calls: list[tuple[float, float]] = []

    async def geocode(self, query: str, limit: int = 5):
        self.calls.append(query)
        return self.places.get(query, [])

    def is_within_london(self, lat: float, lon: float) -> bool:
        return 51.2868 <= lat <= 51.6919 and -0.5103 <= lon <= 0.3340

    async def reverse_geocode(self, lat: float, lon: float):
        self.reverse_calls.append((lat, lon))
        if isinstance(self.reverse, Exception):
            raise self.reverse
        return self.reverse


class FakeNationalRail:
    def __init__(self, boards: dict[str, list[RailDeparture] | Exception] | None = None):
        self.boards = boards or {}
        self.is_enabled = True
        self.calls: list[str] = []

    async def get_departures(self, crs: str, limit: int = 3):
        self.calls.append(crs)
        board = self.boards.get(crs, [])
        if isinstance(board, Exception):
            raise board
        return board


class FakeLLM:
    """Scripted language model: returns (or raises) queued intents in order."""

    def __init__(self, intents: list | None = None, description: str | None = "A short journey."):
        self.intents = list(intents or [])
        self.description = description
        self.is_configured = True
        self.queries: list[str] = []
        self.feedback: list = []
        self.expanded: list[str] = []
        self.clarified: list[tuple[str, list[str]]] = []

    async def parse_intent(self, raw_query: str, feedback=None):
        self.queries.append(raw_query)
        self.feedback.append(feedback)
        result = self.intents.pop(0) if len(self.intents) > 1 else self.intents[0]
        if isinstance(result, Exception):
            raise result
        return result

    async def clarify_ambiguous_query(self, raw_query: str, ambiguities: list[str]):
        self.clarified.append((raw_query, ambiguities))
        return [f"Which {item}?" for item in ambiguities]

    async def enhance_location_name(self, name: str) -> str:
        self.expanded.append(name)
        return name

    async def generate_accessible_description(self, journey):
        if isinstance(self.description, Exception):
            raise self.description
        return self.description


def station(name: str, lat: float = 51.5, lon: float = -0.1, station_id: str | None = None):
    return StopPointMatch(
        id=station_id or f"940GZZ{name.upper().replace(' ', '')[:4]}",
        name=name,
        lat=lat,
        lon=lon,
        modes=["tube"],
    )



def nearby_stop(
    stop_id: str,
    name: str,
    lat: float,
    lon: float,
    *,
    lines: list[str] | None = None,
    properties: dict[str, str] | None = None,
) -> StopPoint:
    """Build a stop point as returned by the nearby stop point search."""
    return StopPoint.model_validate(
        {
            "naptanId": stop_id,
            "commonName": name,
            "lat": lat,
            "lon": lon,
            "modes": ["tube"],
            "lines": [{"id": line, "name": line.title()} for line in lines or []],
            "additionalProperties": [
                {"category": "Facility", "key": key, "value": value}
                for key, value in (properties or {}).items()
            ],
        }
    )
