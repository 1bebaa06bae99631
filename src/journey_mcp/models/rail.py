from pydantic import BaseModel, Field


class RailDeparture(BaseModel):
    """A National Rail departure from a station board."""

    id: str
    destination_name: str
    expected_arrival: str = Field(description="ISO 8601 expected time")
    seconds_to_arrival: int
    platform: str | None = None
    towards: str | None = None
