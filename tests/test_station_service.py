"""Tests for station search, nearby stations and station arrivals."""

import pytest
from helpers import FakeGeocoder, FakeTfL, make_prediction, nearby_stop, station

from journey_mcp.matching.models import MatchType
from journey_mcp.models.geocoding import GeocodingResult
from journey_mcp.models.tfl import StopPoint
from journey_mcp.services.station_service import (
    find_nearby_stations,
    get_station_arrivals,
    group_arrivals,
    haversine_distance,
    search_stations,
)


class TestSearchStations:
    """Tests for the station search service."""

    @pytest.mark.asyncio
    async def test_ranked_results(self) -> None:
        tfl = FakeTfL(
            stations={
                "Kings Cross": [
                    station("King's Cross Underground Station", station_id="940GZZLUKSX"),
                    station("King's Cross Rail Station", station_id="910GKGX"),
                    station("Kings Cross Road", station_id="490G00KCR"),
                ]
            }
        )

        response = await search_stations(tfl, "  Kings Cross ")

        assert response.query == "Kings Cross"
        assert response.total == 3
        assert response.results[0].match_type == MatchType.EXACT
        assert response.results[-1].id == "490G00KCR"

    @pytest.mark.asyncio
    async def test_limit(self) -> None:
        tfl = FakeTfL(stations={"Bank": [station(f"Bank {i}", station_id=str(i)) for i in range(5)]})

        response = await search_stations(tfl, "Bank", limit=2)

        assert response.total == 2

    @pytest.mark.asyncio
    async def test_short_query_rejected(self) -> None:
        tfl = FakeTfL()
        with pytest.raises(ValueError, match="at least 2 characters"):
            await search_stations(tfl, " a ")
        assert tfl.search_calls == []


class TestGroupArrivals:
    """Tests for line/platform/direction grouping."""

    def test_groups_in_order_of_first_arrival(self) -> None:
        predictions = [
            make_prediction("S1", "victoria", 300, platform="Northbound - Platform 1", direction="inbound"),
            make_prediction("S1", "central", 60, platform="Eastbound - Platform 5", direction="outbound"),
            make_prediction("S1", "victoria", 120, platform="Northbound - Platform 1", direction="inbound"),
        ]

        groups = group_arrivals(predictions)

        assert [g.key for g in groups] == [
            "Central::Eastbound - Platform 5::outbound",
            "Victoria::Northbound - Platform 1::inbound",
        ]
        assert [a.seconds_to_arrival for a in groups[1].arrivals] == [120, 300]

    def test_missing_platform_and_direction(self) -> None:
        groups = group_arrivals([make_prediction("S1", "25", 30, direction=None)])

        assert groups[0].key == "25::Platform::"
        assert groups[0].platform_name == "Platform"
        assert groups[0].direction is None


class TestStationArrivals:
    """Tests for live station arrivals."""

    @pytest.mark.asyncio
    async def test_grouped(self) -> None:
        tfl = FakeTfL(arrivals=[make_prediction("940GZZLUOXC", "victoria", 90, platform="1")])

        response = await get_station_arrivals(tfl, "940GZZLUOXC")

        assert response.total == 1
        assert response.grouped[0].arrivals[0].seconds_to_arrival == 90
        assert response.arrivals is None

    @pytest.mark.asyncio
    async def test_flat_with_limit(self) -> None:
        """Test the total counts every prediction even when limited."""
        tfl = FakeTfL(arrivals=[make_prediction("S1", "bakerloo", s) for s in (240, 30, 120)])

        response = await get_station_arrivals(tfl, "S1", grouped=False, limit=2)

        assert response.total == 3
        assert [a.seconds_to_arrival for a in response.arrivals] == [30, 120]
        assert response.grouped is None

    @pytest.mark.asyncio
    async def test_stop_point_required(self) -> None:
        with pytest.raises(ValueError, match="Stop point id is required"):
            await get_station_arrivals(FakeTfL(), "  ")


class TestHaversineDistance:
    def test_same_point(self) -> None:
        assert haversine_distance(51.5074, -0.1278, 51.5074, -0.1278) == 0

    def test_known_distance(self) -> None:
        """King's Cross to Euston is roughly 750 m."""
        distance = haversine_distance(51.5308, -0.1238, 51.5282, -0.1337)
        assert 650 < distance < 800


class TestFindNearbyStations:
    """Tests for the nearby stations service."""

    KINGS_CROSS = (51.5308, -0.1238)

    @pytest.mark.asyncio
    async def test_sorted_by_distance(self) -> None:
        tfl = FakeTfL(
            nearby=[
                nearby_stop("940GZZLUEUS", "Euston Underground Station", 51.5282, -0.1337),
                nearby_stop("940GZZLUKSX", "King's Cross St. Pancras Underground Station", 51.5304, -0.1239),
                nearby_stop("490G00KCR", "Kings Cross Road", 51.5290, -0.1170),
            ]
        )
        lat, lon = self.KINGS_CROSS

        response = await find_nearby_stations(tfl, FakeGeocoder(), lat, lon)

        assert [s.id for s in response.stations] == ["940GZZLUKSX", "490G00KCR", "940GZZLUEUS"]
        assert response.total == 3
        assert response.radius_meters == 1000
        assert response.stations[0].distance_meters < 100
        assert response.stations[0].distance_summary.endswith(" m")
        assert tfl.nearby_calls[0]["radius"] == 1000

    @pytest.mark.asyncio
    async def test_lines_facilities_and_zone(self) -> None:
        stop = nearby_stop(
            "940GZZLUKSX",
            "King's Cross St. Pancras Underground Station",
            51.5304,
            -0.1239,
            lines=["victoria", "northern"],
            properties={"WiFi": "yes", "Toilets": "no", "Lifts": "Yes", "Zone": "1"},
        )
        lat, lon = self.KINGS_CROSS

        response = await find_nearby_stations(FakeTfL(nearby=[stop]), FakeGeocoder(), lat, lon)

        station = response.stations[0]
        assert [line.id for line in station.lines] == ["victoria", "northern"]
        assert station.facilities.wifi
        assert not station.facilities.toilets
        assert station.facilities.lifts
        assert station.zone == "1"

    @pytest.mark.asyncio
    async def test_stops_without_coordinates_skipped(self) -> None:
        stops = [nearby_stop("S1", "Somewhere", 51.53, -0.12), StopPoint(naptan_id="S2")]
        lat, lon = self.KINGS_CROSS

        response = await find_nearby_stations(FakeTfL(nearby=stops), FakeGeocoder(), lat, lon)

        assert [s.id for s in response.stations] == ["S1"]

    @pytest.mark.asyncio
    async def test_location_named_by_reverse_geocoding(self) -> None:
        place = GeocodingResult(
            name="Euston Road",
            display_name="Euston Road, London N1C 4QP, UK",
            lat=51.5308,
            lon=-0.1238,
            confidence=1.0,
        )
        geocoder = FakeGeocoder(reverse=place)
        lat, lon = self.KINGS_CROSS

        response = await find_nearby_stations(FakeTfL(), geocoder, lat, lon)

        assert response.location.name == "Euston Road"
        assert response.location.lat == lat
        assert geocoder.reverse_calls == [(lat, lon)]
        assert response.stations == []

    @pytest.mark.asyncio
    async def test_reverse_geocoding_failure_tolerated(self) -> None:
        geocoder = FakeGeocoder(reverse=RuntimeError("quota exceeded"))
        lat, lon = self.KINGS_CROSS

        response = await find_nearby_stations(
            FakeTfL(nearby=[nearby_stop("S1", "Somewhere", 51.53, -0.12)]), geocoder, lat, lon
        )

        assert response.location.name is None
        assert response.total == 1

    @pytest.mark.asyncio
    async def test_modes_normalized(self) -> None:
        tfl = FakeTfL()
        lat, lon = self.KINGS_CROSS

        await find_nearby_stations(tfl, FakeGeocoder(), lat, lon, modes=["Underground", "hovercraft"])

        assert tfl.nearby_calls[0]["modes"] == ["tube"]

    @pytest.mark.asyncio
    async def test_invalid_coordinates(self) -> None:
        tfl = FakeTfL()
        with pytest.raises(ValueError, match="Invalid coordinates"):
            await find_nearby_stations(tfl, FakeGeocoder(), 95.0, -0.1)
        assert tfl.nearby_calls == []

    @pytest.mark.asyncio
    async def test_outside_london(self) -> None:
        tfl = FakeTfL()
        with pytest.raises(ValueError, match="outside London"):
            await find_nearby_stations(tfl, FakeGeocoder(), 53.4808, -2.2426)
        assert tfl.nearby_calls == []
