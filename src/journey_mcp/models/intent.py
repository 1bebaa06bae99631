"""Structured travel intent returned by the language model.

The model replies with JSON in the shape described by the system prompt in
``journey_mcp.data.llm_client``; these models validate that reply.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class IntentKind(str, Enum):
    """What the user is asking for."""

    JOURNEY = "journey_planning"
    STATUS = "status_query"
    STATION_INFO = "station_info"
    ACCESSIBILITY_INFO = "accessibility_info"


class IntentModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class LocationInfo(IntentModel):
    name: str | None = None
    use_current_location: bool = Field(default=False, alias="useCurrentLocation")
    confidence: float = 0.0


class ViaLocation(IntentModel):
    name: str
    confidence: float = 0.0


class TimePreference(IntentModel):
    type: Literal["depart", "arrive"] = "depart"
    datetime: str | None = Field(default=None, description="ISO 8601 date/time")


class JourneyPreferences(IntentModel):
    mode: list[str] = []
    accessibility: list[str] = []
    avoid: list[str] = []
    mode_policy: Literal["only", "prefer"] | None = Field(default=None, alias="modePolicy")
    time: TimePreference | None = None
    walking_speed: str | None = Field(default=None, alias="walkingSpeed")
    journey_preference: str | None = Field(default=None, alias="journeyPreference")
    max_walking_minutes: int | None = Field(default=None, alias="maxWalkingMinutes")
    max_transfer_minutes: int | None = Field(default=None, alias="maxTransferMinutes")


class JourneyInfo(IntentModel):
    from_: LocationInfo | None = Field(default=None, alias="from")
    to: LocationInfo | None = None
    via: list[ViaLocation] = []
    preferences: JourneyPreferences | None = None


class TravelIntent(IntentModel):
    """A user query parsed into journey fields with confidence signals."""

    kind: IntentKind = Field(default=IntentKind.JOURNEY, alias="type")
    journey: JourneyInfo | None = None
    raw_query: str = Field(default="", alias="rawQuery")
    overall_confidence: float = Field(default=0.0, alias="intent_confidence")
    ambiguities: list[str] = []

    @property
    def is_journey(self) -> bool:
        return self.kind == IntentKind.JOURNEY and self.journey is not None

    @property
    def first_via(self) -> ViaLocation | None:
        """Only the first waypoint is honoured; the planner accepts one via point."""
        if not self.journey or not self.journey.via:
            return None
        via = self.journey.via[0]
        return via if via.name.strip() else None
