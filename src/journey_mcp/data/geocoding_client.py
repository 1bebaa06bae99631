import logging
from urllib.parse import quote

import httpx

from journey_mcp.data.config import JourneyConfig
from journey_mcp.errors import ProviderError
from journey_mcp.models.geocoding import GeocodingResult

logger = logging.getLogger(__name__)

GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
MAPBOX_GEOCODE_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places/{query}.json"

# Central London, lon,lat as Mapbox expects
MAPBOX_PROXIMITY = "-0.1276,51.5074"
MAPBOX_TYPES = "address,poi,place,locality,neighborhood"
MAPBOX_REVERSE_TYPES = "address,poi,place"

# Most specific place type wins
GOOGLE_TYPE_CONFIDENCE: tuple[tuple[frozenset[str], float], ...] = (
    (frozenset({"street_address", "premise"}), 0.95),
    (frozenset({"transit_station", "point_of_interest"}), 0.9),
    (frozenset({"route", "intersection"}), 0.8),
    (frozenset({"neighborhood", "sublocality"}), 0.7),
    (frozenset({"locality", "postal_code"}), 0.6),
)
DEFAULT_GOOGLE_CONFIDENCE = 0.5


def extract_place_name(address: str) -> str:
    """First comma-separated part of a formatted address."""
    return address.split(",")[0].strip()


def google_confidence(types: list[str]) -> float:
    type_set = set(types)
    for group, confidence in GOOGLE_TYPE_CONFIDENCE:
        if type_set & group:
            return confidence
    return DEFAULT_GOOGLE_CONFIDENCE


class GeocodingClient:
    """Async client for forward and reverse geocoding, biased to Greater London.

    Supports Google and Mapbox; the provider comes from configuration.
    Without an API key every lookup returns no results.

    Usage:
        async with GeocodingClient(config) as client:
            results = await client.geocode("British Museum")
    """

    def __init__(self, config: JourneyConfig):
        self._config = config
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "GeocodingClient":
        """Enter async context - create HTTP client."""
        self._client = httpx.AsyncClient(timeout=self._config.http_timeout_seconds)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context - close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def is_configured(self) -> bool:
        return bool(self._config.geocoding_api_key)

    def is_within_london(self, lat: float, lon: float) -> bool:
        """Check coordinates against the Greater London bounding box."""
        config = self._config
        return (
            config.region_south <= lat <= config.region_north
            and config.region_west <= lon <= config.region_east
        )

    async def geocode(self, query: str, limit: int = 5) -> list[GeocodingResult]:
        """Geocode a free-text place name.

        Args:
            query: Place name or address.
            limit: Maximum number of results.

        Returns:
            Results in provider order; empty when not configured.

        Raises:
            RuntimeError: If client not initialized.
            httpx.HTTPError: If the HTTP request fails.
            ProviderError: If the provider reports an error status.
        """
        if not self.is_configured:
            logger.warning("Geocoding API key not configured")
            return []
        if not self._client:
            raise RuntimeError("Client not initialized - use 'async with'")

        if self._config.geocoding_provider == "mapbox":
            return await self._geocode_mapbox(query, limit)
        return await self._geocode_google(query, limit)

    async def reverse_geocode(self, lat: float, lon: float) -> GeocodingResult | None:
        """Find the nearest named place to a coordinate.

        Returns:
            The provider's best match, or None when not configured or nothing matches.

        Raises:
            RuntimeError: If client not initialized.
            httpx.HTTPError: If the HTTP request fails.
            ProviderError: If the provider reports an error status.
        """
        if not self.is_configured:
            logger.warning("Geocoding API key not configured")
            return None
        if not self._client:
            raise RuntimeError("Client not initialized - use 'async with'")

        if self._config.geocoding_provider == "mapbox":
            return await self._reverse_mapbox(lat, lon)
        return await self._reverse_google(lat, lon)

    async def _geocode_google(self, query: str, limit: int) -> list[GeocodingResult]:
        config = self._config
        response = await self._client.get(
            GOOGLE_GEOCODE_URL,
            params={
                "address": query,
                "key": config.geocoding_api_key,
                "region": "gb",
                "bounds": (
                    f"{config.region_south},{config.region_west}|"
                    f"{config.region_north},{config.region_east}"
                ),
            },
        )
        response.raise_for_status()
        data = response.json()

        status = data.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            raise ProviderError("geocoding", f"Google geocoding status {status}")

        results = []
        for item in data.get("results", [])[:limit]:
            location = item["geometry"]["location"]
            address = item.get("formatted_address", "")
            types = item.get("types", [])
            results.append(
                GeocodingResult(
                    name=extract_place_name(address),
                    display_name=address,
                    lat=location["lat"],
                    lon=location["lng"],
                    confidence=google_confidence(types),
                    place_id=item.get("place_id"),
                    types=types,
                )
            )
        return results

    async def _geocode_mapbox(self, query: str, limit: int) -> list[GeocodingResult]:
        response = await self._client.get(
            MAPBOX_GEOCODE_URL.format(query=quote(query, safe="")),
            params={
                "access_token": self._config.geocoding_api_key,
                "country": "GB",
                "limit": str(limit),
                "types": MAPBOX_TYPES,
                "proximity": MAPBOX_PROXIMITY,
            },
        )
        response.raise_for_status()

        results = []
        for feature in response.json().get("features", [])[:limit]:
            lon, lat = feature["center"][0], feature["center"][1]
            place_name = feature.get("place_name", "")
            results.append(
                GeocodingResult(
                    name=extract_place_name(place_name),
                    display_name=place_name,
                    lat=lat,
                    lon=lon,
                    confidence=feature.get("relevance", 0.0),
                    place_id=feature.get("id"),
                    types=feature.get("place_type", []),
                )
            )
        return results

    async def _reverse_google(self, lat: float, lon: float) -> GeocodingResult | None:
        response = await self._client.get(
            GOOGLE_GEOCODE_URL,
            params={"latlng": f"{lat},{lon}", "key": self._config.geocoding_api_key},
        )
        response.raise_for_status()
        data = response.json()

        status = data.get("status")
        if status == "ZERO_RESULTS":
            return None
        if status != "OK":
            raise ProviderError("geocoding", f"Google reverse geocoding status {status}")
        if not data.get("results"):
            return None

        item = data["results"][0]
        address = item.get("formatted_address", "")
        return GeocodingResult(
            name=extract_place_name(address),
            display_name=address,
            lat=lat,
            lon=lon,
            confidence=1.0,
            place_id=item.get("place_id"),
            types=item.get("types", []),
        )

    async def _reverse_mapbox(self, lat: float, lon: float) -> GeocodingResult | None:
        response = await self._client.get(
            MAPBOX_GEOCODE_URL.format(query=f"{lon},{lat}"),
            params={
                "access_token": self._config.geocoding_api_key,
                "types": MAPBOX_REVERSE_TYPES,
            },
        )
        response.raise_for_status()

        features = response.json().get("features", [])
        if not features:
            return None
        feature = features[0]
        place_name = feature.get("place_name", "")
        return GeocodingResult(
            name=extract_place_name(place_name),
            display_name=place_name,
            lat=lat,
            lon=lon,
            confidence=feature.get("relevance", 1.0),
            place_id=feature.get("id"),
            types=feature.get("place_type", []),
        )
