from urllib.parse import quote

import httpx

from journey_mcp.data.config import JourneyConfig
from journey_mcp.models.tfl import (
    JourneyPlannerResult,
    Prediction,
    StopPoint,
    StopPointSearchResponse,
    StopPointsResponse,
)

# Stations and stops a traveller can board at; excludes entrances and clusters
NEARBY_STOP_TYPES = (
    "NaptanMetroStation",
    "NaptanRailStation",
    "NaptanBusCoachStation",
    "NaptanFerryPort",
    "NaptanPublicBusCoachTram",
)


class TfLClient:
    """Async HTTP client for the TfL unified API.

    Usage:
        async with TfLClient(config) as client:
            result = await client.plan_journey("51.5,-0.1", "51.51,-0.14", params)
    """

    def __init__(self, config: JourneyConfig):
        """Initialize the client.

        Args:
            config: Configuration with the TfL base URL, app key and timeout.
        """
        self._config = config
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "TfLClient":
        """Enter async context - create HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self._config.tfl_base_url,
            timeout=self._config.http_timeout_seconds,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context - close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, path: str, params: dict[str, str] | None = None):
        if not self._client:
            raise RuntimeError("Client not initialized - use 'async with'")

        query = dict(params or {})
        if self._config.tfl_app_key:
            query["app_key"] = self._config.tfl_app_key

        response = await self._client.get(path, params=query)
        response.raise_for_status()
        return response.json()

    async def search_stop_points(
        self, query: str, max_results: int = 20
    ) -> StopPointSearchResponse:
        """Search stop points by name.

        Raises:
            RuntimeError: If client not initialized.
            httpx.HTTPError: If the HTTP request fails.
        """
        data = await self._get_json(
            "/StopPoint/Search",
            {"query": query, "maxResults": str(max_results)},
        )
        return StopPointSearchResponse.model_validate(data)

    async def plan_journey(
        self, origin: str, destination: str, params: dict[str, str]
    ) -> JourneyPlannerResult:
        """Fetch candidate journeys between two "lat,lon" locations.

        Args:
            origin: Origin location parameter.
            destination: Destination location parameter.
            params: Planner query string (modes, preferences, date/time...).

        Raises:
            RuntimeError: If client not initialized.
            httpx.HTTPError: If the HTTP request fails.
        """
        path = f"/Journey/JourneyResults/{quote(origin, safe=',')}/to/{quote(destination, safe=',')}"
        data = await self._get_json(path, params)
        return JourneyPlannerResult.model_validate(data)

    async def get_arrivals(self, stop_point_ids: list[str]) -> list[Prediction]:
        """Fetch live predictions for several stop points in one call."""
        if not stop_point_ids:
            return []
        ids = ",".join(quote(stop_id, safe="") for stop_id in stop_point_ids)
        data = await self._get_json(f"/StopPoint/{ids}/Arrivals")
        return [Prediction.model_validate(item) for item in data or []]

    async def get_line_arrivals(self, line_id: str, stop_point_id: str) -> list[Prediction]:
        """Fetch live predictions for one line, filtered to a stop point."""
        data = await self._get_json(
            f"/Line/{quote(line_id, safe='')}/Arrivals",
            {"stopPointId": stop_point_id},
        )
        return [Prediction.model_validate(item) for item in data or []]

    async def get_nearby_stop_points(
        self,
        lat: float,
        lon: float,
        radius: int = 500,
        modes: list[str] | None = None,
        categories: list[str] | None = None,
    ) -> list[StopPoint]:
        """Fetch boardable stop points within a radius of a location.

        Args:
            lat: Latitude of the search point.
            lon: Longitude of the search point.
            radius: Search radius in metres.
            modes: Optional TfL mode ids to restrict the search to.
            categories: Optional additional property categories to include.

        Raises:
            RuntimeError: If client not initialized.
            httpx.HTTPError: If the HTTP request fails.
        """
        params = {
            "lat": str(lat),
            "lon": str(lon),
            "radius": str(radius),
            "stopTypes": ",".join(NEARBY_STOP_TYPES),
        }
        if modes:
            params["modes"] = ",".join(modes)
        if categories:
            params["categories"] = ",".join(categories)

        data = await self._get_json("/StopPoint", params)
        return StopPointsResponse.model_validate(data).stop_points
