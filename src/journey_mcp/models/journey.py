from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Coordinates(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float

    def as_param(self) -> str:
        """Format as the planner's "lat,lon" location parameter."""
        return f"{self.lat:.6f},{self.lon:.6f}"


class ResolvedEndpoint(BaseModel):
    """A place resolved to coordinates, ready to be sent to the planner."""

    model_config = ConfigDict(frozen=True)

    coordinates: Coordinates
    display_name: str
    source_station_id: str | None = Field(
        default=None, description="Stop point id when resolved through station search"
    )


class AccessibilityPreference(str, Enum):
    NONE = "NoRequirements"
    STEP_FREE_PLATFORM = "StepFreeToPlatform"
    STEP_FREE_VEHICLE = "StepFreeToVehicle"


class WalkingSpeed(str, Enum):
    SLOW = "Slow"
    AVERAGE = "Average"
    FAST = "Fast"


class JourneyOptimization(str, Enum):
    LEAST_TIME = "LeastTime"
    LEAST_INTERCHANGE = "LeastInterchange"
    LEAST_WALKING = "LeastWalking"


class TimeIs(str, Enum):
    DEPARTING = "Departing"
    ARRIVING = "Arriving"


class PlanRequest(BaseModel):
    """Fully normalized parameters for one journey planner call."""

    model_config = ConfigDict(frozen=True)

    origin: ResolvedEndpoint
    destination: ResolvedEndpoint
    via: ResolvedEndpoint | None = None
    modes: tuple[str, ...] = ()
    accessibility: AccessibilityPreference = AccessibilityPreference.NONE
    walking_speed: WalkingSpeed = WalkingSpeed.AVERAGE
    journey_preference: JourneyOptimization = JourneyOptimization.LEAST_TIME
    date: str | None = Field(default=None, description="YYYYMMDD in the serving timezone")
    time: str | None = Field(default=None, description="HHMM, 24-hour, serving timezone")
    time_is: TimeIs | None = None
    max_walking_minutes: int | None = None
    max_transfer_minutes: int | None = None

    def to_query_params(self) -> dict[str, str]:
        """Build the journey planner query string (origin/destination go in the path)."""
        params: dict[str, str | None] = {
            "mode": ",".join(self.modes) if self.modes else None,
            "accessibilityPreference": self.accessibility.value,
            "walkingSpeed": self.walking_speed.value,
            "journeyPreference": self.journey_preference.value,
            "nationalSearch": "false",
            "alternativeRoute": "true",
            "date": self.date,
            "time": self.time,
            "timeIs": self.time_is.value if self.time_is and self.time else None,
            "via": self.via.coordinates.as_param() if self.via else None,
            "maxWalkingMinutes": (
                str(self.max_walking_minutes) if self.max_walking_minutes is not None else None
            ),
            "maxTransferMinutes": (
                str(self.max_transfer_minutes) if self.max_transfer_minutes is not None else None
            ),
        }
        return {key: value for key, value in params.items() if value is not None}


class StationReference(BaseModel):
    """Keys used to correlate a leg with the live arrival providers."""

    stop_id: str | None = None
    parent_station_id: str | None = None
    rail_code: str | None = Field(default=None, description="Three-letter National Rail CRS code")

    @property
    def candidate_stop_ids(self) -> list[str]:
        return [stop_id for stop_id in (self.stop_id, self.parent_station_id) if stop_id]


class RequestPreferences(BaseModel):
    """Preferences a caller may set explicitly; these win over parsed ones."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    modes: list[str] | None = None
    accessibility: list[str] | None = None
    walking_speed: str | None = Field(default=None, alias="walkingSpeed")
    journey_preference: str | None = Field(default=None, alias="journeyPreference")
    max_walking_minutes: int | None = Field(default=None, alias="maxWalkingMinutes")
    max_transfer_minutes: int | None = Field(default=None, alias="maxTransferMinutes")


class JourneyRequest(BaseModel):
    """Entry payload: a natural-language query, or a destination (plus origin)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    natural_language_query: str | None = Field(default=None, alias="naturalLanguageQuery")
    origin: str | None = Field(default=None, alias="from")
    destination: str | None = Field(default=None, alias="to")
    via: list[str] = []
    departure_time: str | None = Field(default=None, alias="departureTime")
    arrival_time: str | None = Field(default=None, alias="arrivalTime")
    current_location: str | None = Field(
        default=None,
        alias="currentLocation",
        description="Device location as 'lat,lon' when the user asked to start from here",
    )
    preferences: RequestPreferences | None = None

    @property
    def is_natural_language(self) -> bool:
        return bool(self.natural_language_query and self.natural_language_query.strip())
