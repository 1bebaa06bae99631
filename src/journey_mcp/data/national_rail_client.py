import logging
import re
import xml.etree.ElementTree as ET
from datetime import UTC, datetime, timedelta
from xml.sax.saxutils import escape
from zoneinfo import ZoneInfo

import httpx

from journey_mcp.data.config import JourneyConfig
from journey_mcp.models.rail import RailDeparture

logger = logging.getLogger(__name__)

SOAP_ENVELOPE_NS = "http://schemas.xmlsoap.org/soap/envelope/"

# Body -> GetDepartureBoardResponse -> GetStationBoardResult -> trainServices -> service
SERVICE_PATH = ("Body", "GetDepartureBoardResponse", "GetStationBoardResult", "trainServices")

CLOCK_TIME = re.compile(r"^(\d{2}):(\d{2})$")


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child(element: ET.Element | None, name: str) -> ET.Element | None:
    if element is None:
        return None
    for child in element:
        if _local_name(child.tag) == name:
            return child
    return None


def _child_text(element: ET.Element | None, name: str) -> str:
    child = _child(element, name)
    return (child.text or "").strip() if child is not None else ""


def _seconds_until(iso_time: str, now: datetime) -> int:
    try:
        target = datetime.fromisoformat(iso_time.replace("Z", "+00:00"))
    except ValueError:
        return 0
    if target.tzinfo is None:
        target = target.replace(tzinfo=UTC)
    return max(0, round((target - now).total_seconds()))


def clock_time_to_iso(hhmm: str, now: datetime) -> str | None:
    """Place a board "HH:MM" time on today's date in the timezone of ``now``.

    Returns None for non-clock values such as "On time" or "Cancelled".
    """
    match = CLOCK_TIME.match(hhmm.strip())
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return now.replace(hour=hour, minute=minute, second=0, microsecond=0).isoformat()


class NationalRailClient:
    """Async client for National Rail live departure boards.

    Uses a REST departures endpoint when one is configured, otherwise the
    OpenLDBWS SOAP service. Disabled clients return no departures.

    Usage:
        async with NationalRailClient(config) as client:
            departures = await client.get_departures("KGX", limit=3)
    """

    def __init__(self, config: JourneyConfig):
        self._config = config
        self._tz = ZoneInfo(config.timezone)
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "NationalRailClient":
        """Enter async context - create HTTP client."""
        self._client = httpx.AsyncClient(timeout=self._config.http_timeout_seconds)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context - close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def has_rest(self) -> bool:
        return bool(self._config.national_rail_base_url and self._config.national_rail_api_key)

    @property
    def has_soap(self) -> bool:
        return bool(self._config.ldbws_url and self._config.ldbws_token)

    @property
    def is_enabled(self) -> bool:
        return self._config.national_rail_enabled and (self.has_rest or self.has_soap)

    def _now(self) -> datetime:
        return datetime.now(self._tz)

    async def get_departures(self, crs: str, limit: int = 3) -> list[RailDeparture]:
        """Get the next departures from a station by its three-letter code.

        Raises:
            RuntimeError: If client not initialized.
            httpx.HTTPError: If the HTTP request fails.
            xml.etree.ElementTree.ParseError: If the SOAP reply is not XML.
        """
        if not self.is_enabled:
            return []
        if not self._client:
            raise RuntimeError("Client not initialized - use 'async with'")

        if self.has_rest:
            return await self._fetch_rest(crs, limit)
        return await self._fetch_ldbws(crs, limit)

    async def _fetch_rest(self, crs: str, limit: int) -> list[RailDeparture]:
        url = f"{self._config.national_rail_base_url.rstrip('/')}/departures"
        response = await self._client.get(
            url,
            params={"crs": crs, "limit": str(limit)},
            headers={
                self._config.national_rail_api_header: self._config.national_rail_api_key,
                "Content-Type": "application/json",
            },
        )
        response.raise_for_status()
        data = response.json()
        return self.parse_rest_departures(crs, data if isinstance(data, list) else [])[:limit]

    def parse_rest_departures(self, crs: str, items: list[dict]) -> list[RailDeparture]:
        now = self._now()
        departures = []
        for index, item in enumerate(items):
            raw_seconds = item.get("timeToStationSeconds")
            has_seconds = isinstance(raw_seconds, int | float) and not isinstance(raw_seconds, bool)

            expected = item.get("expectedArrival")
            if not isinstance(expected, str):
                offset = raw_seconds if has_seconds else 0
                expected = (now + timedelta(seconds=offset)).isoformat()

            seconds = int(raw_seconds) if has_seconds else _seconds_until(expected, now)

            departures.append(
                RailDeparture(
                    id=str(item.get("id") or f"{crs}-{index}"),
                    destination_name=str(item.get("destinationName") or item.get("destination") or ""),
                    expected_arrival=expected,
                    seconds_to_arrival=seconds,
                    platform=item.get("platform") or item.get("platformName") or None,
                    towards=item.get("towards") or None,
                )
            )
        return departures

    def build_envelope(self, crs: str, limit: int) -> str:
        """Build a GetDepartureBoard SOAP request."""
        ns = self._config.ldbws_namespace.rstrip("/") + "/"
        token_ns = self._config.ldbws_common_namespace
        return (
            '<?xml version="1.0" encoding="utf-8"?>'
            f'<soap:Envelope xmlns:soap="{SOAP_ENVELOPE_NS}">'
            "<soap:Header>"
            f'<AccessToken xmlns="{token_ns}"><TokenValue>{escape(self._config.ldbws_token or "")}</TokenValue></AccessToken>'
            "</soap:Header>"
            "<soap:Body>"
            f'<GetDepartureBoardRequest xmlns="{ns}">'
            f"<numRows>{int(limit)}</numRows>"
            f"<crs>{escape(crs)}</crs>"
            "</GetDepartureBoardRequest>"
            "</soap:Body>"
            "</soap:Envelope>"
        )

    async def _fetch_ldbws(self, crs: str, limit: int) -> list[RailDeparture]:
        ns = self._config.ldbws_namespace.rstrip("/") + "/"
        response = await self._client.post(
            self._config.ldbws_url,
            content=self.build_envelope(crs, limit),
            headers={
                "Content-Type": "text/xml; charset=utf-8",
                "SOAPAction": f"{ns}GetDepartureBoard",
            },
        )
        response.raise_for_status()
        return self.parse_departure_board(crs, response.text)[:limit]

    def parse_departure_board(self, crs: str, xml_text: str) -> list[RailDeparture]:
        """Parse a GetDepartureBoard SOAP response into departures."""
        node: ET.Element | None = ET.fromstring(xml_text)
        for name in SERVICE_PATH:
            node = _child(node, name)
        if node is None:
            return []

        now = self._now()
        departures = []
        services = [child for child in node if _local_name(child.tag) == "service"]
        for index, service in enumerate(services):
            location = _child(_child(service, "destination"), "location")
            destination_name = _child_text(location, "locationName")

            etd = _child_text(service, "etd")
            std = _child_text(service, "std")
            expected = clock_time_to_iso(etd if CLOCK_TIME.match(etd) else std, now)
            if expected is None:
                logger.debug(f"No usable time for service {index} at {crs} (etd={etd!r}, std={std!r})")
                expected = now.isoformat()

            departures.append(
                RailDeparture(
                    id=_child_text(service, "serviceID") or f"{crs}-{index}",
                    destination_name=destination_name,
                    expected_arrival=expected,
                    seconds_to_arrival=_seconds_until(expected, now),
                    platform=_child_text(service, "platform") or None,
                    towards=destination_name or None,
                )
            )
        return departures
