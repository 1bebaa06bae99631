from typing import Literal

from pydantic import BaseModel, Field

from journey_mcp.matching.models import StationMatch
from journey_mcp.models.tfl import Identifier, StopPoint


class NextArrival(BaseModel):
    """Upcoming departure at the boarding stop of a leg."""

    id: str | None = None
    destination_name: str | None = None
    expected_arrival: str | None = Field(default=None, description="ISO 8601 expected time")
    seconds_to_arrival: int = Field(description="Seconds until the vehicle arrives")
    platform: str | None = None
    towards: str | None = None


class EnrichedLeg(BaseModel):
    """A journey leg annotated with live departures or walking directions."""

    mode: str
    line_id: str | None = None
    line_name: str | None = None
    from_name: str | None = Field(default=None, description="Departure point name")
    to_name: str | None = Field(default=None, description="Arrival point name")
    departure_stop_id: str | None = None
    parent_station_id: str | None = Field(default=None, description="Parent station NaPTAN id")
    arrival_stop_id: str | None = None
    rail_code: str | None = Field(
        default=None, description="National Rail station code, rail legs only"
    )
    scheduled_departure: str | None = None
    scheduled_arrival: str | None = None
    duration_minutes: int | None = None
    distance_meters: float | None = None
    distance_summary: str | None = Field(default=None, description="e.g. '850 m' or '1.2 km'")
    direction: str | None = None
    instruction: str | None = None

    # Live data (non-walking legs only). None = not applicable, [] = no live data
    next_arrivals: list[NextArrival] | None = None
    platform: str | None = None

    # Walking legs only
    walking_directions_url: str | None = None


class EnrichedItinerary(BaseModel):
    start_date_time: str | None = None
    arrival_date_time: str | None = None
    duration_minutes: int | None = None
    legs: list[EnrichedLeg]
    accessible_description: str | None = Field(
        default=None, description="Screen-reader friendly summary of the journey"
    )


class JourneyData(BaseModel):
    journeys: list[EnrichedItinerary]
    from_name: str | None = None
    to_name: str | None = None


class ClarificationData(BaseModel):
    ambiguities: list[str]
    suggestions: list[str] = Field(
        default_factory=list, description="Follow-up questions to ask the user"
    )


class JourneyResult(BaseModel):
    """Outcome of one journey resolution: journeys, clarification, or an error."""

    status: Literal["success", "error"]
    data: JourneyData | ClarificationData | None = None
    error: str | None = None

    @classmethod
    def success(cls, data: JourneyData) -> "JourneyResult":
        return cls(status="success", data=data)

    @classmethod
    def failure(cls, message: str, data: ClarificationData | None = None) -> "JourneyResult":
        return cls(status="error", error=message, data=data)


# Arrivals refresh


class LegDescriptor(BaseModel):
    """Identifies a leg of a previously planned journey for an arrivals refresh."""

    journey_index: int
    leg_index: int
    mode_id: str
    stop_point_id: str | None = None
    parent_station_id: str | None = None
    line_id: str | None = None
    rail_code: str | None = None
    departure_point: StopPoint | None = None
    arrival_point: StopPoint | None = None

    @classmethod
    def from_leg(cls, journey_index: int, leg_index: int, leg: EnrichedLeg) -> "LegDescriptor":
        """Describe a leg returned by an earlier plan so its arrivals can be refreshed."""
        return cls(
            journey_index=journey_index,
            leg_index=leg_index,
            mode_id=leg.mode,
            stop_point_id=leg.departure_stop_id,
            parent_station_id=leg.parent_station_id,
            line_id=leg.line_id,
            rail_code=leg.rail_code,
        )


class LegArrivalsUpdate(BaseModel):
    journey_index: int
    leg_index: int
    next_arrivals: list[NextArrival]
    platform: str | None = None


class RefreshArrivalsResponse(BaseModel):
    updates: list[LegArrivalsUpdate]


# Stations


class SearchStationsResponse(BaseModel):
    query: str
    results: list[StationMatch]
    total: int = Field(description="Number of stations returned")


class StationArrival(BaseModel):
    id: str | None = None
    destination_name: str | None = None
    expected_arrival: str | None = None
    seconds_to_arrival: int
    current_location: str | None = None


class ArrivalGroup(BaseModel):
    """Arrivals sharing a line, platform, and direction."""

    key: str
    line_name: str | None = None
    platform_name: str
    direction: str | None = None
    mode_name: str | None = None
    arrivals: list[StationArrival]


class StationArrivalsResponse(BaseModel):
    stop_point_id: str
    total: int = Field(description="Predictions returned by the provider before limiting")
    grouped: list[ArrivalGroup] | None = None
    arrivals: list[StationArrival] | None = None


class StationFacilities(BaseModel):
    wifi: bool = False
    toilets: bool = False
    lifts: bool = False


class NearbyStation(BaseModel):
    id: str
    naptan_id: str | None = None
    name: str
    lat: float
    lon: float
    modes: list[str] = []
    lines: list[Identifier] = []
    zone: str | None = None
    distance_meters: float = Field(description="Great-circle distance from the search point")
    distance_summary: str | None = Field(default=None, description="e.g. '850 m' or '1.2 km'")
    facilities: StationFacilities = Field(default_factory=StationFacilities)


class SearchLocation(BaseModel):
    lat: float
    lon: float
    name: str | None = Field(default=None, description="Nearest named place, when known")


class NearbyStationsResponse(BaseModel):
    location: SearchLocation
    stations: list[NearbyStation] = Field(description="Nearest first")
    total: int
    radius_meters: int
