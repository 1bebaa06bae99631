"""Tests for the MCP tool functions."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from helpers import FakeGeocoder, FakeTfL, make_prediction, nearby_stop, station

from journey_mcp.models.responses import JourneyData, JourneyResult, LegArrivalsUpdate, LegDescriptor
from journey_mcp.tools.journey_tools import plan_journey, refresh_arrivals
from journey_mcp.tools.station_tools import (
    find_nearby_stations,
    get_station_arrivals,
    search_stations,
)


def _container(services: MagicMock) -> MagicMock:
    container_class = MagicMock()
    container_class.return_value.__aenter__.return_value = services
    return container_class


def _tfl_context(tfl: FakeTfL) -> MagicMock:
    client_class = MagicMock()
    client_class.return_value.__aenter__.return_value = tfl
    return client_class


class TestPlanJourneyTool:
    """Tests for request assembly in plan_journey."""

    @pytest.mark.asyncio
    async def test_builds_request(self) -> None:
        services = MagicMock()
        services.journey_resolver.resolve = AsyncMock(
            return_value=JourneyResult.success(JourneyData(journeys=[]))
        )

        with patch("journey_mcp.tools.journey_tools.ServiceContainer", _container(services)):
            result = await plan_journey(
                origin="Bank",
                destination="Angel",
                via=["Moorgate"],
                modes=["tube"],
                walking_speed="fast",
            )

        assert result.status == "success"
        request = services.journey_resolver.resolve.call_args.args[0]
        assert request.origin == "Bank"
        assert request.destination == "Angel"
        assert request.via == ["Moorgate"]
        assert request.preferences.modes == ["tube"]
        assert request.preferences.walking_speed == "fast"
        assert not request.is_natural_language

    @pytest.mark.asyncio
    async def test_natural_language(self) -> None:
        services = MagicMock()
        services.journey_resolver.resolve = AsyncMock(return_value=JourneyResult.failure("location_required"))

        with patch("journey_mcp.tools.journey_tools.ServiceContainer", _container(services)):
            result = await plan_journey(natural_language_query="to Westminster from here")

        assert result.error == "location_required"
        request = services.journey_resolver.resolve.call_args.args[0]
        assert request.is_natural_language
        assert request.via == []


class TestRefreshArrivalsTool:
    @pytest.mark.asyncio
    async def test_refresh(self) -> None:
        services = MagicMock()
        update = LegArrivalsUpdate(journey_index=0, leg_index=1, next_arrivals=[])
        services.enricher.refresh = AsyncMock(return_value=[update])
        legs = [LegDescriptor(journey_index=0, leg_index=1, mode_id="bus", stop_point_id="490G1")]

        with patch("journey_mcp.tools.journey_tools.ServiceContainer", _container(services)):
            response = await refresh_arrivals(legs)

        assert response.updates == [update]
        services.enricher.refresh.assert_awaited_once_with(legs)

    @pytest.mark.asyncio
    async def test_no_legs(self) -> None:
        with pytest.raises(ValueError, match="No legs provided"):
            await refresh_arrivals([])


class TestStationTools:
    """Tests for the station search and arrivals tools."""

    @pytest.mark.asyncio
    async def test_search_limit_clamped(self) -> None:
        tfl = FakeTfL(stations={"Bank": [station(f"Bank {i}", station_id=str(i)) for i in range(60)]})

        with patch("journey_mcp.tools.station_tools.TfLClient", _tfl_context(tfl)):
            response = await search_stations("Bank", limit=500)

        assert response.total == 50

    @pytest.mark.asyncio
    async def test_arrivals(self) -> None:
        tfl = FakeTfL(arrivals=[make_prediction("940GZZLUBNK", "central", 45)])

        with patch("journey_mcp.tools.station_tools.TfLClient", _tfl_context(tfl)):
            response = await get_station_arrivals("940GZZLUBNK", grouped=False, limit=-3)

        assert response.arrivals[0].seconds_to_arrival == 45
        assert tfl.arrival_calls == [["940GZZLUBNK"]]

    @pytest.mark.asyncio
    async def test_nearby_radius_clamped(self) -> None:
        tfl = FakeTfL(nearby=[nearby_stop("940GZZLUKSX", "King's Cross", 51.5304, -0.1239)])
        geocoder_class = MagicMock()
        geocoder_class.return_value.__aenter__.return_value = FakeGeocoder()

        with (
            patch("journey_mcp.tools.station_tools.TfLClient", _tfl_context(tfl)),
            patch("journey_mcp.tools.station_tools.GeocodingClient", geocoder_class),
        ):
            response = await find_nearby_stations(51.5308, -0.1238, radius_meters=50_000)

        assert response.radius_meters == 10000
        assert tfl.nearby_calls[0]["radius"] == 10000
        assert response.stations[0].id == "940GZZLUKSX"
