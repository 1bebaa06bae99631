from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class JourneyConfig(BaseSettings):
    """Configuration for the journey planner and its upstream providers.

    Automatically loads from environment variables and .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # TfL unified API (journey planner, stop points, arrivals)
    tfl_app_key: str | None = Field(default=None, alias="TFL_APP_KEY")
    tfl_base_url: str = "https://api.tfl.gov.uk"

    # Language model (OpenAI-compatible chat completions)
    llm_api_key: str | None = Field(default=None, alias="LLM_API_KEY")
    llm_base_url: str | None = Field(default=None, alias="LLM_BASE_URL")
    llm_model: str = Field(default="gpt-4o-mini", alias="LLM_MODEL")

    # Geocoding fallback
    geocoding_api_key: str | None = Field(default=None, alias="GEOCODING_API_KEY")
    geocoding_provider: Literal["google", "mapbox"] = Field(
        default="google", alias="GEOCODING_PROVIDER"
    )

    # National Rail live departures (REST first, OpenLDBWS SOAP otherwise)
    national_rail_enabled: bool = Field(default=False, alias="NATIONAL_RAIL_ENABLED")
    national_rail_base_url: str | None = Field(default=None, alias="NATIONAL_RAIL_BASE_URL")
    national_rail_api_key: str | None = Field(default=None, alias="NATIONAL_RAIL_API_KEY")
    national_rail_api_header: str = Field(default="x-api-key", alias="NATIONAL_RAIL_API_HEADER")
    ldbws_url: str | None = Field(default=None, alias="LDBWS_URL")
    ldbws_token: str | None = Field(default=None, alias="LDBWS_TOKEN")
    ldbws_namespace: str = "http://thalesgroup.com/RTTI/2021-11-01/ldb/"
    ldbws_common_namespace: str = "http://thalesgroup.com/RTTI/2013-11-28/Token/types"

    # Resolution pipeline
    confidence_threshold: float = Field(default=0.3, alias="JOURNEY_CONFIDENCE_THRESHOLD")
    max_attempts: int = Field(default=5, alias="JOURNEY_MAX_ATTEMPTS")
    max_itineraries: int = Field(default=3, alias="JOURNEY_MAX_ITINERARIES")
    max_arrivals_per_leg: int = 3
    timezone: str = Field(default="Europe/London", alias="JOURNEY_TIMEZONE")
    http_timeout_seconds: float = Field(default=15.0, alias="HTTP_TIMEOUT")

    # Greater London bounding box
    region_south: float = 51.2868
    region_west: float = -0.5103
    region_north: float = 51.6919
    region_east: float = 0.3340


@lru_cache
def get_config() -> JourneyConfig:
    """Get journey planner configuration (cached singleton).

    Returns:
        JourneyConfig with values from .env file or environment variables.
    """
    return JourneyConfig()
