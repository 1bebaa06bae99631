import logging
import re

from journey_mcp.data.geocoding_client import GeocodingClient
from journey_mcp.data.llm_client import LLMClient
from journey_mcp.data.tfl_client import TfLClient
from journey_mcp.errors import LocationNotFound, LocationRequired
from journey_mcp.models.journey import Coordinates, ResolvedEndpoint
from journey_mcp.services.strategies import Strategy, first_success

logger = logging.getLogger(__name__)

CURRENT_LOCATION_LABEL = "Current location"

COORDINATE_PAIR = re.compile(r"^\s*(-?\d{1,3}(?:\.\d+)?)\s*,\s*(-?\d{1,3}(?:\.\d+)?)\s*$")


def parse_coordinates(text: str | None) -> Coordinates | None:
    """Parse a decimal "lat,lon" pair.

    Example: "51.5033, -0.1196" -> Coordinates(lat=51.5033, lon=-0.1196)
    """
    if not text:
        return None
    match = COORDINATE_PAIR.match(text)
    if not match:
        return None
    lat, lon = float(match.group(1)), float(match.group(2))
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return None
    return Coordinates(lat=lat, lon=lon)


class LocationResolver:
    """Resolve place names to coordinates for the journey planner.

    Strategy cascade (priority order):
    1. Literal "lat,lon" coordinates
    2. Device coordinates, when the user asked to start from their location
    3. TfL stop point search (first match), optionally after expanding
       abbreviations with the language model
    4. Geocoder, restricted to Greater London (first result)
    """

    def __init__(
        self,
        tfl: TfLClient,
        geocoder: GeocodingClient,
        llm: LLMClient | None = None,
    ):
        self._tfl = tfl
        self._geocoder = geocoder
        self._llm = llm

    async def resolve(
        self,
        query: str | None,
        *,
        current_location: str | None = None,
        use_current_location: bool = False,
        display_name: str | None = None,
        expand_name: bool = False,
        role: str = "location",
    ) -> ResolvedEndpoint:
        """Resolve one endpoint.

        Args:
            query: Place name, station name or "lat,lon"
            current_location: Device location supplied by the caller
            use_current_location: The user asked to start from where they are
            display_name: Label to show instead of the provider's name
            expand_name: Run the language model abbreviation expansion first
            role: "origin", "destination" or "via", used in error messages

        Raises:
            LocationRequired: Current location was requested but not supplied
            LocationNotFound: Every strategy came up empty
        """
        if use_current_location:
            if not current_location or not current_location.strip():
                raise LocationRequired()
            device = parse_coordinates(current_location)
            if device:
                return ResolvedEndpoint(
                    coordinates=device, display_name=display_name or CURRENT_LOCATION_LABEL
                )
            # Device location given as a place name
            query = current_location
            expand_name = False

        if not query or not query.strip():
            raise LocationNotFound(query or "", role)
        query = query.strip()

        strategies = [
            Strategy("coordinates", lambda: self._from_coordinates(query, display_name)),
            Strategy("station_search", lambda: self._from_station_search(query, expand_name)),
            Strategy("geocoder", lambda: self._from_geocoder(query)),
        ]
        result = await first_success(strategies, label=f"resolve {role} '{query}'")
        if result is None:
            raise LocationNotFound(query, role)

        strategy_name, endpoint = result
        logger.debug(f"Resolved {role} '{query}' via {strategy_name}: {endpoint.display_name}")
        return endpoint

    async def _from_coordinates(
        self, query: str, display_name: str | None
    ) -> ResolvedEndpoint | None:
        coordinates = parse_coordinates(query)
        if not coordinates:
            return None
        return ResolvedEndpoint(coordinates=coordinates, display_name=display_name or query)

    async def _from_station_search(self, query: str, expand_name: bool) -> ResolvedEndpoint | None:
        search_name = query
        if expand_name and self._llm:
            search_name = await self._llm.enhance_location_name(query)
            if search_name != query:
                logger.debug(f"Expanded '{query}' to '{search_name}'")

        response = await self._tfl.search_stop_points(search_name)
        if not response.matches:
            return None
        station = response.matches[0]
        return ResolvedEndpoint(
            coordinates=Coordinates(lat=station.lat, lon=station.lon),
            display_name=station.name,
            source_station_id=station.id,
        )

    async def _from_geocoder(self, query: str) -> ResolvedEndpoint | None:
        results = await self._geocoder.geocode(query)
        for place in results:
            if self._geocoder.is_within_london(place.lat, place.lon):
                return ResolvedEndpoint(
                    coordinates=Coordinates(lat=place.lat, lon=place.lon),
                    display_name=place.name,
                )
            logger.debug(f"Skipping geocoder result outside London: {place.display_name}")
        return None
