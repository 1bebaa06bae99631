"""Tests for the location resolution cascade."""

import pytest
from helpers import FakeGeocoder, FakeLLM, FakeTfL, station

from journey_mcp.errors import LocationNotFound, LocationRequired
from journey_mcp.models.geocoding import GeocodingResult
from journey_mcp.services.location_resolver import LocationResolver, parse_coordinates


def _place(name: str, lat: float, lon: float) -> GeocodingResult:
    return GeocodingResult(name=name, display_name=f"{name}, London, UK", lat=lat, lon=lon, confidence=0.9)


class TestParseCoordinates:
    """Tests for literal coordinate parsing."""

    def test_valid_pair(self) -> None:
        coords = parse_coordinates("51.5033, -0.1196")
        assert coords.lat == 51.5033
        assert coords.lon == -0.1196

    def test_rejects_non_numeric(self) -> None:
        """Test names containing commas are not coordinates."""
        assert parse_coordinates("Bank, London") is None
        assert parse_coordinates("") is None
        assert parse_coordinates(None) is None

    def test_rejects_out_of_range(self) -> None:
        assert parse_coordinates("151.5,-0.1") is None


class TestLocationResolver:
    """Tests for strategy ordering and failure handling."""

    @pytest.mark.asyncio
    async def test_coordinates_used_directly(self) -> None:
        """Test a coordinate pair skips every provider."""
        tfl, geocoder = FakeTfL(), FakeGeocoder()
        resolver = LocationResolver(tfl, geocoder)

        endpoint = await resolver.resolve("51.5,-0.12")

        assert endpoint.coordinates.as_param() == "51.500000,-0.120000"
        assert tfl.search_calls == []
        assert geocoder.calls == []

    @pytest.mark.asyncio
    async def test_station_search_first_match(self) -> None:
        """Test the first station search match is used."""
        tfl = FakeTfL(
            stations={
                "Bank": [
                    station("Bank Underground Station", 51.513, -0.089, "940GZZLUBNK"),
                    station("Bank DLR Station", 51.5134, -0.0886, "940GZZDLBNK"),
                ]
            }
        )
        geocoder = FakeGeocoder()
        resolver = LocationResolver(tfl, geocoder)

        endpoint = await resolver.resolve("Bank")

        assert endpoint.display_name == "Bank Underground Station"
        assert endpoint.source_station_id == "940GZZLUBNK"
        assert geocoder.calls == []

    @pytest.mark.asyncio
    async def test_geocoder_fallback_when_no_station(self) -> None:
        """Test the geocoder runs when station search finds nothing."""
        tfl = FakeTfL()
        geocoder = FakeGeocoder({"British Museum": [_place("British Museum", 51.5194, -0.127)]})
        resolver = LocationResolver(tfl, geocoder)

        endpoint = await resolver.resolve("British Museum")

        assert endpoint.display_name == "British Museum"
        assert endpoint.source_station_id is None
        assert tfl.search_calls == ["British Museum"]

    @pytest.mark.asyncio
    async def test_geocoder_results_outside_london_skipped(self) -> None:
        """Test results outside Greater London are ignored."""
        geocoder = FakeGeocoder(
            {
                "Victoria": [
                    _place("Victoria, BC", 48.42, -123.36),
                    _place("Victoria", 51.4965, -0.1447),
                ]
            }
        )
        resolver = LocationResolver(FakeTfL(), geocoder)

        endpoint = await resolver.resolve("Victoria")

        assert endpoint.coordinates.lat == 51.4965

    @pytest.mark.asyncio
    async def test_station_search_failure_falls_through(self) -> None:
        """Test a station search error falls back to the geocoder."""

        class BrokenTfL(FakeTfL):
            async def search_stop_points(self, query, max_results=20):
                raise RuntimeError("timeout")

        geocoder = FakeGeocoder({"Angel": [_place("Angel", 51.532, -0.106)]})
        resolver = LocationResolver(BrokenTfL(), geocoder)

        endpoint = await resolver.resolve("Angel")

        assert endpoint.display_name == "Angel"

    @pytest.mark.asyncio
    async def test_not_found(self) -> None:
        """Test exhaustion raises LocationNotFound with the query."""
        resolver = LocationResolver(FakeTfL(), FakeGeocoder())

        with pytest.raises(LocationNotFound) as exc_info:
            await resolver.resolve("Nowhere Town", role="destination")

        assert exc_info.value.message == "Could not find destination: Nowhere Town"

    @pytest.mark.asyncio
    async def test_current_location_with_device_coordinates(self) -> None:
        """Test device coordinates are used with the intent label."""
        resolver = LocationResolver(FakeTfL(), FakeGeocoder())

        endpoint = await resolver.resolve(
            None,
            current_location="51.5,-0.1",
            use_current_location=True,
            display_name="Home",
        )

        assert endpoint.display_name == "Home"
        assert endpoint.coordinates.lat == 51.5

    @pytest.mark.asyncio
    async def test_current_location_default_label(self) -> None:
        resolver = LocationResolver(FakeTfL(), FakeGeocoder())

        endpoint = await resolver.resolve(
            None, current_location="51.5,-0.1", use_current_location=True
        )

        assert endpoint.display_name == "Current location"

    @pytest.mark.asyncio
    async def test_current_location_missing(self) -> None:
        """Test requesting current location without device coordinates."""
        resolver = LocationResolver(FakeTfL(), FakeGeocoder())

        with pytest.raises(LocationRequired) as exc_info:
            await resolver.resolve(None, use_current_location=True)

        assert exc_info.value.message == "location_required"

    @pytest.mark.asyncio
    async def test_current_location_given_as_place_name(self) -> None:
        """Test a device location that is a name is searched like any place."""
        tfl = FakeTfL(stations={"Euston": [station("Euston Station", 51.528, -0.133)]})
        llm = FakeLLM()
        resolver = LocationResolver(tfl, FakeGeocoder(), llm)

        endpoint = await resolver.resolve(
            None, current_location="Euston", use_current_location=True, expand_name=True
        )

        assert endpoint.display_name == "Euston Station"
        assert llm.expanded == []

    @pytest.mark.asyncio
    async def test_name_expansion_before_search(self) -> None:
        """Test the expanded name is what gets searched."""

        class ExpandingLLM(FakeLLM):
            async def enhance_location_name(self, name: str) -> str:
                return "King's Cross St. Pancras"

        tfl = FakeTfL(
            stations={"King's Cross St. Pancras": [station("King's Cross St. Pancras")]}
        )
        resolver = LocationResolver(tfl, FakeGeocoder(), ExpandingLLM())

        endpoint = await resolver.resolve("KX", expand_name=True)

        assert tfl.search_calls == ["King's Cross St. Pancras"]
        assert endpoint.display_name == "King's Cross St. Pancras"
