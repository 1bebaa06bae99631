"""Station search, nearby stations and live station arrivals."""

import logging
import math

from journey_mcp.data.geocoding_client import GeocodingClient
from journey_mcp.data.tfl_client import TfLClient
from journey_mcp.matching.normalizers import normalize_modes
from journey_mcp.matching.station_matcher import rank_stations
from journey_mcp.models.responses import (
    ArrivalGroup,
    NearbyStation,
    NearbyStationsResponse,
    SearchLocation,
    SearchStationsResponse,
    StationArrival,
    StationArrivalsResponse,
    StationFacilities,
)
from journey_mcp.models.tfl import Prediction, StopPoint
from journey_mcp.services.arrivals_enricher import format_distance_summary

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
DEFAULT_PLATFORM_NAME = "Platform"

# Earth's radius in meters for haversine calculation
EARTH_RADIUS_METERS = 6_371_000

OUTSIDE_LONDON_MESSAGE = (
    "Location appears to be outside London. "
    "TFL services are only available in the London area."
)

# Lower-cased additionalProperties keys whose value is "yes" when present
FACILITY_KEYS = ("wifi", "toilets", "lifts")
ZONE_KEY = "zone"


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the great-circle distance between two points in meters.

    Args:
        lat1, lon1: First point coordinates in degrees.
        lat2, lon2: Second point coordinates in degrees.

    Returns:
        Distance in meters.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def _to_station_arrival(prediction: Prediction) -> StationArrival:
    return StationArrival(
        id=prediction.id,
        destination_name=prediction.destination_name or prediction.towards,
        expected_arrival=prediction.expected_arrival,
        seconds_to_arrival=prediction.time_to_station,
        current_location=prediction.current_location,
    )


def group_arrivals(predictions: list[Prediction]) -> list[ArrivalGroup]:
    """Group predictions by line, platform and direction, soonest first.

    Groups appear in order of their earliest arrival.
    """
    groups: dict[str, ArrivalGroup] = {}
    for prediction in sorted(predictions, key=lambda p: p.time_to_station):
        platform = prediction.platform_name or DEFAULT_PLATFORM_NAME
        key = f"{prediction.line_name or ''}::{platform}::{prediction.direction or ''}"
        group = groups.get(key)
        if group is None:
            group = groups[key] = ArrivalGroup(
                key=key,
                line_name=prediction.line_name,
                platform_name=platform,
                direction=prediction.direction,
                mode_name=prediction.mode_name,
                arrivals=[],
            )
        group.arrivals.append(_to_station_arrival(prediction))
    return list(groups.values())


async def search_stations(
    tfl: TfLClient,
    query: str,
    limit: int = 20,
) -> SearchStationsResponse:
    """Search stations by name, exact and prefix matches first.

    Raises:
        ValueError: If the query is shorter than two characters.
    """
    query = query.strip()
    if len(query) < MIN_QUERY_LENGTH:
        raise ValueError("Search query must be at least 2 characters")

    response = await tfl.search_stop_points(query)
    results = rank_stations(query, response.matches, limit=limit)
    return SearchStationsResponse(query=query, results=results, total=len(results))


async def get_station_arrivals(
    tfl: TfLClient,
    stop_point_id: str,
    grouped: bool = True,
    limit: int = 0,
) -> StationArrivalsResponse:
    """Live arrivals at one stop point.

    Args:
        tfl: Open TfL client.
        stop_point_id: NaPTAN id of the stop point or station.
        grouped: Group by line/platform/direction instead of a flat list.
        limit: Keep only the soonest N predictions (0 keeps all).

    Raises:
        ValueError: If no stop point id is given.
    """
    stop_point_id = stop_point_id.strip()
    if not stop_point_id:
        raise ValueError("Stop point id is required")

    predictions = await tfl.get_arrivals([stop_point_id])
    ordered = sorted(predictions, key=lambda p: p.time_to_station)
    limited = ordered[:limit] if limit > 0 else ordered

    if grouped:
        return StationArrivalsResponse(
            stop_point_id=stop_point_id,
            total=len(predictions),
            grouped=group_arrivals(limited),
        )
    return StationArrivalsResponse(
        stop_point_id=stop_point_id,
        total=len(predictions),
        arrivals=[_to_station_arrival(p) for p in limited],
    )


def _station_facilities(stop: StopPoint) -> StationFacilities:
    present = {
        (prop.key or "").lower()
        for prop in stop.additional_properties
        if (prop.value or "").lower() == "yes"
    }
    return StationFacilities(**{key: key in present for key in FACILITY_KEYS})


def _station_zone(stop: StopPoint) -> str | None:
    for prop in stop.additional_properties:
        if (prop.key or "").lower() == ZONE_KEY and prop.value:
            return prop.value
    return None


def _to_nearby_station(stop: StopPoint, lat: float, lon: float) -> NearbyStation | None:
    if stop.stop_id is None or stop.lat is None or stop.lon is None:
        return None
    distance = haversine_distance(lat, lon, stop.lat, stop.lon)
    return NearbyStation(
        id=stop.stop_id,
        naptan_id=stop.naptan_id,
        name=stop.common_name or stop.stop_id,
        lat=stop.lat,
        lon=stop.lon,
        modes=stop.modes,
        lines=[line for line in stop.lines if line.id],
        zone=_station_zone(stop),
        distance_meters=round(distance, 1),
        distance_summary=format_distance_summary(distance),
        facilities=_station_facilities(stop),
    )


async def find_nearby_stations(
    tfl: TfLClient,
    geocoder: GeocodingClient,
    lat: float,
    lon: float,
    radius_meters: int = 1000,
    modes: list[str] | None = None,
) -> NearbyStationsResponse:
    """Stations and stops around a London location, nearest first.

    The search point is named by reverse geocoding when a provider is
    configured; a failed lookup leaves the name empty.

    Args:
        tfl: Open TfL client.
        geocoder: Open geocoding client.
        lat: Latitude of the search point.
        lon: Longitude of the search point.
        radius_meters: Search radius in meters.
        modes: Optional transport modes to restrict the search to.

    Raises:
        ValueError: If the coordinates are invalid or outside London.
    """
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        raise ValueError("Invalid coordinates")
    if not geocoder.is_within_london(lat, lon):
        raise ValueError(OUTSIDE_LONDON_MESSAGE)

    stops = await tfl.get_nearby_stop_points(
        lat, lon, radius=radius_meters, modes=list(normalize_modes(modes)) or None
    )
    stations = [
        station
        for station in (_to_nearby_station(stop, lat, lon) for stop in stops)
        if station is not None
    ]
    stations.sort(key=lambda station: station.distance_meters)

    name = None
    try:
        place = await geocoder.reverse_geocode(lat, lon)
        name = place.name if place else None
    except Exception as e:
        logger.warning(f"Reverse geocoding failed for {lat},{lon}: {e}")

    logger.debug(f"Found {len(stations)} stations within {radius_meters}m of {lat},{lon}")
    return NearbyStationsResponse(
        location=SearchLocation(lat=lat, lon=lon, name=name),
        stations=stations,
        total=len(stations),
        radius_meters=radius_meters,
    )
