"""Mode normalization and station name matching."""

from journey_mcp.matching.models import MatchType, StationMatch
from journey_mcp.matching.normalizers import (
    ALLOWED_MODES,
    DEFAULT_MODES,
    MODE_SYNONYMS,
    accessibility_preference,
    extract_modes_from_free_text,
    has_exclusivity_marker,
    map_journey_preference,
    map_walking_speed,
    merge_allowed_modes,
    normalize_accessibility,
    normalize_modes,
    normalize_station_name,
)
from journey_mcp.matching.station_matcher import rank_stations

__all__ = [
    # Matchers
    "rank_stations",
    # Models
    "MatchType",
    "StationMatch",
    # Mode vocabulary
    "ALLOWED_MODES",
    "DEFAULT_MODES",
    "MODE_SYNONYMS",
    # Normalizers
    "normalize_modes",
    "extract_modes_from_free_text",
    "has_exclusivity_marker",
    "merge_allowed_modes",
    "normalize_accessibility",
    "accessibility_preference",
    "map_walking_speed",
    "map_journey_preference",
    "normalize_station_name",
]
