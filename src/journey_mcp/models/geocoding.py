from pydantic import BaseModel, Field


class GeocodingResult(BaseModel):
    """A place returned by the geocoding provider."""

    name: str = Field(description="First part of the formatted address")
    display_name: str
    lat: float
    lon: float
    confidence: float = Field(description="Provider relevance, 0-1")
    place_id: str | None = None
    types: list[str] = []
