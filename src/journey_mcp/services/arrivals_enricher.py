"""Live departure data for journey legs.

Walking legs get directions and a distance summary. Every other leg gets
up to three upcoming departures from its boarding stop, taken from the first
source that has any:

1. National Rail departure board (national-rail legs with a station code)
2. Batched TfL predictions at the stop or its parent station, same line
3. Batched TfL predictions at the stop or its parent station, any line
4. Line-specific TfL predictions for the stop
"""

import asyncio
import logging
import re
from dataclasses import dataclass

from journey_mcp.data.national_rail_client import NationalRailClient
from journey_mcp.data.tfl_client import TfLClient
from journey_mcp.models.journey import StationReference
from journey_mcp.models.rail import RailDeparture
from journey_mcp.models.responses import (
    EnrichedLeg,
    LegArrivalsUpdate,
    LegDescriptor,
    NextArrival,
)
from journey_mcp.models.tfl import NATIONAL_RAIL_MODE, Journey, Leg, Prediction, StopPoint
from journey_mcp.services.strategies import Strategy, first_success

logger = logging.getLogger(__name__)

WALKING_DIRECTIONS_URL = (
    "https://www.google.com/maps/dir/?api=1"
    "&origin={from_lat},{from_lon}&destination={to_lat},{to_lon}&travelmode=walking"
)

RAIL_CODE = re.compile(r"^[A-Z]{3}$")
RAIL_NAPTAN = re.compile(r"^910G([A-Z]{3})", re.IGNORECASE)
RAIL_CODE_PROPERTY_KEYS = ("crs", "crscode")


def extract_rail_code(stop_point: StopPoint | None) -> str | None:
    """Find the three-letter National Rail station code for a stop point.

    Precedence:
    1. ICS code, when it is itself three capital letters
    2. Additional property keyed "crs" or "crscode"
    3. "910G<CODE>" prefix on the NaPTAN id (or generic id)
    4. Same prefix on the parent station NaPTAN

    Example: naptanId "910GKGX" -> "KGX"
    """
    if stop_point is None:
        return None

    if stop_point.ics_code and RAIL_CODE.match(stop_point.ics_code):
        return stop_point.ics_code

    for prop in stop_point.additional_properties:
        if (prop.key or "").lower() in RAIL_CODE_PROPERTY_KEYS:
            value = (prop.value or "").upper()
            if RAIL_CODE.match(value):
                return value

    for candidate in (stop_point.naptan_id or stop_point.id, stop_point.station_naptan):
        match = RAIL_NAPTAN.match(candidate or "")
        if match:
            return match.group(1).upper()
    return None


def build_walking_directions_url(leg: Leg) -> str | None:
    """Google Maps walking directions between the leg's endpoints, if both have coordinates."""
    start, end = leg.departure_point, leg.arrival_point
    if not start or not end:
        return None
    if None in (start.lat, start.lon, end.lat, end.lon):
        return None
    return WALKING_DIRECTIONS_URL.format(
        from_lat=start.lat, from_lon=start.lon, to_lat=end.lat, to_lon=end.lon
    )


def format_distance_summary(distance: float | None) -> str | None:
    """Human-readable leg distance.

    Example: 850.4 -> "850 m", 1234 -> "1.2 km"
    """
    if distance is None or distance <= 0:
        return None
    metres = round(distance)
    if metres >= 1000:
        return f"{metres / 1000:.1f} km"
    return f"{metres} m"


def _from_prediction(prediction: Prediction) -> NextArrival:
    return NextArrival(
        id=prediction.id,
        destination_name=prediction.destination_name,
        expected_arrival=prediction.expected_arrival,
        seconds_to_arrival=prediction.time_to_station,
        platform=prediction.platform_name,
        towards=prediction.towards or prediction.direction,
    )


def _from_departure(departure: RailDeparture) -> NextArrival:
    return NextArrival(
        id=departure.id,
        destination_name=departure.destination_name,
        expected_arrival=departure.expected_arrival,
        seconds_to_arrival=departure.seconds_to_arrival,
        platform=departure.platform,
        towards=departure.towards,
    )


@dataclass(frozen=True)
class LegTarget:
    """Everything needed to look up live data for one leg."""

    mode_id: str
    line_id: str | None
    station: StationReference

    @property
    def is_national_rail(self) -> bool:
        return self.mode_id == NATIONAL_RAIL_MODE


def target_for_leg(leg: Leg) -> LegTarget:
    start = leg.departure_point
    rail_code = None
    if leg.mode.id == NATIONAL_RAIL_MODE:
        rail_code = extract_rail_code(start) or extract_rail_code(leg.arrival_point)
    return LegTarget(
        mode_id=leg.mode.id,
        line_id=leg.line_id,
        station=StationReference(
            stop_id=start.stop_id if start else None,
            parent_station_id=start.station_naptan if start else None,
            rail_code=rail_code,
        ),
    )


def target_for_descriptor(descriptor: LegDescriptor) -> LegTarget:
    rail_code = None
    if descriptor.mode_id == NATIONAL_RAIL_MODE:
        rail_code = (
            descriptor.rail_code
            or extract_rail_code(descriptor.departure_point)
            or extract_rail_code(descriptor.arrival_point)
        )
        if not rail_code and (descriptor.stop_point_id or descriptor.parent_station_id):
            rail_code = extract_rail_code(
                StopPoint(
                    naptan_id=descriptor.stop_point_id,
                    station_naptan=descriptor.parent_station_id,
                )
            )
    return LegTarget(
        mode_id=descriptor.mode_id,
        line_id=descriptor.line_id.lower() if descriptor.line_id else None,
        station=StationReference(
            stop_id=descriptor.stop_point_id,
            parent_station_id=descriptor.parent_station_id,
            rail_code=rail_code,
        ),
    )


class ArrivalsEnricher:
    """Attach live departures to journey legs."""

    def __init__(
        self,
        tfl: TfLClient,
        national_rail: NationalRailClient | None = None,
        max_arrivals: int = 3,
    ):
        self._tfl = tfl
        self._national_rail = national_rail
        self._max_arrivals = max_arrivals

    async def enrich(self, journey: Journey) -> list[EnrichedLeg]:
        """Annotate every leg of an itinerary, preserving leg order."""
        targets = {
            index: target_for_leg(leg)
            for index, leg in enumerate(journey.legs)
            if not leg.is_walking
        }
        live = dict(zip(targets, await self._collect(list(targets.values())), strict=True))

        legs = []
        for index, leg in enumerate(journey.legs):
            target = targets.get(index)
            enriched = EnrichedLeg(
                mode=leg.mode.id,
                line_id=None if leg.is_walking else leg.line_id,
                line_name=leg.line_name,
                from_name=leg.departure_point.common_name if leg.departure_point else None,
                to_name=leg.arrival_point.common_name if leg.arrival_point else None,
                departure_stop_id=leg.departure_point.stop_id if leg.departure_point else None,
                parent_station_id=target.station.parent_station_id if target else None,
                arrival_stop_id=leg.arrival_point.stop_id if leg.arrival_point else None,
                rail_code=target.station.rail_code if target else None,
                scheduled_departure=leg.departure_time,
                scheduled_arrival=leg.arrival_time,
                duration_minutes=leg.duration,
                distance_meters=leg.distance,
                distance_summary=format_distance_summary(leg.distance),
                direction=leg.direction,
                instruction=leg.instruction.summary if leg.instruction else None,
            )
            if leg.is_walking:
                enriched.walking_directions_url = build_walking_directions_url(leg)
            else:
                arrivals, platform = live[index]
                enriched.next_arrivals = arrivals
                enriched.platform = platform
            legs.append(enriched)
        return legs

    async def refresh(self, descriptors: list[LegDescriptor]) -> list[LegArrivalsUpdate]:
        """Fetch fresh departures for legs of a journey planned earlier."""
        targets = [target_for_descriptor(descriptor) for descriptor in descriptors]
        results = await self._collect(targets)
        return [
            LegArrivalsUpdate(
                journey_index=descriptor.journey_index,
                leg_index=descriptor.leg_index,
                next_arrivals=arrivals,
                platform=platform,
            )
            for descriptor, (arrivals, platform) in zip(descriptors, results, strict=True)
        ]

    async def _collect(
        self, targets: list[LegTarget]
    ) -> list[tuple[list[NextArrival], str | None]]:
        if not targets:
            return []

        stop_ids: list[str] = []
        rail_codes: list[str] = []
        for target in targets:
            for stop_id in target.station.candidate_stop_ids:
                if stop_id not in stop_ids:
                    stop_ids.append(stop_id)
            code = target.station.rail_code
            if target.is_national_rail and code and code not in rail_codes:
                rail_codes.append(code)

        predictions, departures = await asyncio.gather(
            self._fetch_predictions(stop_ids),
            self._fetch_departures(rail_codes),
        )
        predictions.sort(key=lambda p: p.time_to_station)

        selected = await asyncio.gather(
            *(self._select(target, predictions, departures) for target in targets)
        )
        return [(arrivals, arrivals[0].platform if arrivals else None) for arrivals in selected]

    async def _fetch_predictions(self, stop_ids: list[str]) -> list[Prediction]:
        if not stop_ids:
            return []
        try:
            predictions = await self._tfl.get_arrivals(stop_ids)
            logger.debug(f"Fetched {len(predictions)} predictions for {len(stop_ids)} stop points")
            return predictions
        except Exception as e:
            logger.warning(f"Failed to fetch arrivals for journey legs: {e}")
            return []

    async def _fetch_departures(self, rail_codes: list[str]) -> dict[str, list[RailDeparture]]:
        client = self._national_rail
        if not rail_codes or client is None or not client.is_enabled:
            return {}

        results = await asyncio.gather(
            *(client.get_departures(code, self._max_arrivals) for code in rail_codes),
            return_exceptions=True,
        )
        departures: dict[str, list[RailDeparture]] = {}
        for code, result in zip(rail_codes, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning(f"National Rail departures failed for {code}: {result}")
                continue
            departures[code] = result
        return departures

    async def _select(
        self,
        target: LegTarget,
        predictions: list[Prediction],
        departures: dict[str, list[RailDeparture]],
    ) -> list[NextArrival]:
        candidate_ids = set(target.station.candidate_stop_ids)
        at_stop = [p for p in predictions if p.naptan_id in candidate_ids]

        async def national_rail() -> list[NextArrival]:
            if not target.is_national_rail or not target.station.rail_code:
                return []
            board = sorted(
                departures.get(target.station.rail_code, []), key=lambda d: d.seconds_to_arrival
            )
            return [_from_departure(d) for d in board]

        async def same_line() -> list[NextArrival]:
            if not target.line_id:
                return []
            return [_from_prediction(p) for p in at_stop if (p.line_id or "").lower() == target.line_id]

        async def same_stop() -> list[NextArrival]:
            return [_from_prediction(p) for p in at_stop]

        async def line_arrivals() -> list[NextArrival]:
            if not target.line_id or not target.station.stop_id:
                return []
            fetched = await self._tfl.get_line_arrivals(target.line_id, target.station.stop_id)
            matching = sorted(
                (p for p in fetched if p.naptan_id in candidate_ids), key=lambda p: p.time_to_station
            )
            return [_from_prediction(p) for p in matching]

        result = await first_success(
            [
                Strategy("national_rail", national_rail),
                Strategy("same_line", same_line),
                Strategy("same_stop", same_stop),
                Strategy("line_arrivals", line_arrivals),
            ],
            label=f"arrivals for {target.mode_id} leg at {target.station.stop_id}",
        )
        if result is None:
            return []
        return result[1][: self._max_arrivals]
