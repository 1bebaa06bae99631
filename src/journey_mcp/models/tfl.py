"""Pydantic models for TfL unified API responses.

These models cover the subset of the TfL payloads the planner reads.
Unknown fields are ignored; field names map to the API's camelCase keys.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

WALKING_MODE = "walking"
NATIONAL_RAIL_MODE = "national-rail"


class TfLModel(BaseModel):
    """Base model accepting camelCase API keys or snake_case field names."""

    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)


class AdditionalProperty(TfLModel):
    category: str | None = None
    key: str | None = None
    value: str | None = None


class Identifier(TfLModel):
    id: str | None = None
    name: str | None = None


class StopPoint(TfLModel):
    """A stop point as it appears in journey legs or stop point lookups."""

    id: str | None = None
    naptan_id: str | None = None
    station_naptan: str | None = None
    common_name: str | None = None
    lat: float | None = None
    lon: float | None = None
    ics_code: str | None = None
    modes: list[str] = []
    additional_properties: list[AdditionalProperty] = []
    lines: list[Identifier] = []
    # Metres from the search point, nearby lookups only
    distance: float | None = None

    @property
    def stop_id(self) -> str | None:
        """NaPTAN id when present, else the generic id."""
        return self.naptan_id or self.id


class StopPointsResponse(TfLModel):
    """Stop points around a location, from /StopPoint?lat=...&lon=..."""

    stop_points: list[StopPoint] = []
    total: int | None = None


class StopPointMatch(TfLModel):
    """A single result from /StopPoint/Search."""

    id: str
    name: str
    lat: float
    lon: float
    modes: list[str] = []
    zone: str | None = None
    ics_id: str | None = None
    top_most_parent_id: str | None = None


class StopPointSearchResponse(TfLModel):
    query: str | None = None
    total: int | None = None
    matches: list[StopPointMatch] = []


class RouteOption(TfLModel):
    name: str | None = None
    directions: list[str] = []
    line_identifier: Identifier | None = None


class Mode(TfLModel):
    id: str
    name: str | None = None


class Instruction(TfLModel):
    summary: str | None = None
    detailed: str | None = None


class Leg(TfLModel):
    """One uninterrupted segment of a journey on a single mode/line."""

    mode: Mode
    duration: int | None = None
    instruction: Instruction | None = None
    departure_time: str | None = None
    arrival_time: str | None = None
    departure_point: StopPoint | None = None
    arrival_point: StopPoint | None = None
    route_options: list[RouteOption] = []
    distance: float | None = None

    @property
    def is_walking(self) -> bool:
        return self.mode.id == WALKING_MODE

    @property
    def line_id(self) -> str | None:
        """Line identifier of the first route option, else the mode id, lower-cased."""
        line_id = None
        if self.route_options and self.route_options[0].line_identifier:
            line_id = self.route_options[0].line_identifier.id
        line_id = line_id or self.mode.id or self.mode.name
        return line_id.lower() if line_id else None

    @property
    def line_name(self) -> str | None:
        if self.route_options:
            option = self.route_options[0]
            if option.line_identifier and option.line_identifier.name:
                return option.line_identifier.name
            return option.name
        return None

    @property
    def direction(self) -> str | None:
        if self.route_options and self.route_options[0].directions:
            return self.route_options[0].directions[0]
        if self.instruction:
            return self.instruction.summary
        return None


class Journey(TfLModel):
    """A candidate itinerary returned by the journey planner."""

    start_date_time: str | None = None
    arrival_date_time: str | None = None
    duration: int | None = None
    legs: list[Leg] = []


class JourneyPlannerResult(TfLModel):
    journeys: list[Journey] = []


class Prediction(TfLModel):
    """A live arrival prediction at a stop point."""

    id: str | None = None
    naptan_id: str | None = None
    station_name: str | None = None
    line_id: str | None = None
    line_name: str | None = None
    platform_name: str | None = None
    direction: str | None = None
    destination_name: str | None = None
    towards: str | None = None
    expected_arrival: str | None = None
    time_to_station: int = 0
    mode_name: str | None = None
    current_location: str | None = None
