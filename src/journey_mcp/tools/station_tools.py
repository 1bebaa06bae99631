"""MCP tools for station search, nearby stations and live station arrivals."""

from journey_mcp.app import mcp
from journey_mcp.data.config import get_config
from journey_mcp.data.geocoding_client import GeocodingClient
from journey_mcp.data.tfl_client import TfLClient
from journey_mcp.models.responses import (
    NearbyStationsResponse,
    SearchStationsResponse,
    StationArrivalsResponse,
)
from journey_mcp.services.station_service import (
    find_nearby_stations as _find_nearby_stations,
)
from journey_mcp.services.station_service import (
    get_station_arrivals as _get_station_arrivals,
)
from journey_mcp.services.station_service import search_stations as _search_stations


@mcp.tool()
async def search_stations(query: str, limit: int = 20) -> SearchStationsResponse:
    """Search London stations and stops by name.

    Exact name matches come first, then names starting with the query,
    then the rest by fuzzy score.

    Args:
        query: Station name, at least 2 characters (e.g., "Kings Cross").
        limit: Maximum number of results (1-50, default 20).

    Returns:
        SearchStationsResponse with ranked stations, their modes and coordinates.
    """
    limit = max(1, min(50, limit))

    async with TfLClient(get_config()) as tfl:
        return await _search_stations(tfl, query, limit=limit)


@mcp.tool()
async def get_station_arrivals(
    stop_point_id: str,
    grouped: bool = True,
    limit: int = 0,
) -> StationArrivalsResponse:
    """Get live arrivals at a London station or stop.

    Args:
        stop_point_id: Stop point id from search_stations (e.g., "940GZZLUKSX").
        grouped: Group by line, platform and direction (default True).
        limit: Keep only the soonest N arrivals (0 = all).

    Returns:
        StationArrivalsResponse with arrivals grouped or as a flat list.
    """
    limit = max(0, limit)

    async with TfLClient(get_config()) as tfl:
        return await _get_station_arrivals(tfl, stop_point_id, grouped=grouped, limit=limit)


@mcp.tool()
async def find_nearby_stations(
    lat: float,
    lon: float,
    radius_meters: int = 1000,
    modes: list[str] | None = None,
) -> NearbyStationsResponse:
    """Find London stations and stops near a location.

    Examples:
        find_nearby_stations(lat=51.5308, lon=-0.1238)  # Around King's Cross
        find_nearby_stations(lat=51.5033, lon=-0.1196, radius_meters=500, modes=["tube"])

    Args:
        lat: Latitude of the search point.
        lon: Longitude of the search point.
        radius_meters: Search radius (1-10000, default 1000).
        modes: Restrict to these transport modes (e.g., ["tube", "bus"]).

    Returns:
        NearbyStationsResponse with stations sorted by distance, their lines,
        facilities and a name for the search point when one can be found.
    """
    radius_meters = max(1, min(10000, radius_meters))

    config = get_config()
    async with TfLClient(config) as tfl, GeocodingClient(config) as geocoder:
        return await _find_nearby_stations(
            tfl, geocoder, lat, lon, radius_meters=radius_meters, modes=modes
        )
