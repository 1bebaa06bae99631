import re
import unicodedata
from collections.abc import Iterable
from functools import lru_cache

from journey_mcp.models.journey import (
    AccessibilityPreference,
    JourneyOptimization,
    WalkingSpeed,
)

# Closed vocabulary of transport modes understood by the journey planner
ALLOWED_MODES: tuple[str, ...] = (
    "tube",
    "bus",
    "dlr",
    "overground",
    "tram",
    "river-bus",
    "cable-car",
    "coach",
    "cycle",
    "walking",
    "national-rail",
)

# Used whenever the request names no modes at all
DEFAULT_MODES: tuple[str, ...] = ("tube", "bus", "dlr", "overground", "walking", "national-rail")

# Free-text synonyms (lowercase) -> canonical mode
MODE_SYNONYMS: dict[str, str] = {
    "underground": "tube",
    "subway": "tube",
    "metro": "tube",
    "docklands light railway": "dlr",
    "riverbus": "river-bus",
    "river bus": "river-bus",
    "thames clipper": "river-bus",
    "thames clippers": "river-bus",
    "walk": "walking",
    "on foot": "walking",
    "nr": "national-rail",
    "national rail": "national-rail",
    "rail": "national-rail",
    "train": "national-rail",
    "trains": "national-rail",
    "buses": "bus",
    "coaches": "coach",
    "bike": "cycle",
    "cycling": "cycle",
    "cable car": "cable-car",
}

ACCESSIBILITY_FLAGS: tuple[str, ...] = (
    "step-free-platform",
    "step-free-vehicle",
    "audio-announcements",
    "visual-displays",
)

# Checked in order, first substring hit wins. Bare "step-free" and "wheelchair"
# map to the stricter step-free-to-vehicle guarantee.
ACCESSIBILITY_RULES: tuple[tuple[str, str], ...] = (
    ("vehicle", "step-free-vehicle"),
    ("platform", "step-free-platform"),
    ("step-free", "step-free-vehicle"),
    ("step free", "step-free-vehicle"),
    ("wheelchair", "step-free-vehicle"),
    ("audio", "audio-announcements"),
    ("visual", "visual-displays"),
)

EXCLUSIVITY_PATTERNS = (
    re.compile(r"\b(?:only|just|strictly|exclusively)\b", re.IGNORECASE),
    re.compile(r"\bnothing\s+but\b", re.IGNORECASE),
    re.compile(r"\bno\s+(?:other\s+)?(?:modes?|transport)\b", re.IGNORECASE),
)

WALKING_SPEEDS: dict[str, WalkingSpeed] = {
    "slow": WalkingSpeed.SLOW,
    "average": WalkingSpeed.AVERAGE,
    "fast": WalkingSpeed.FAST,
}

JOURNEY_PREFERENCES: dict[str, JourneyOptimization] = {
    "least-time": JourneyOptimization.LEAST_TIME,
    "least-interchange": JourneyOptimization.LEAST_INTERCHANGE,
    "least-walking": JourneyOptimization.LEAST_WALKING,
}


@lru_cache(maxsize=64)
def _mode_pattern(term: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)


def canonical_mode(raw: str) -> str | None:
    """Map a single mode token to its canonical form, None if unknown.

    Example: " Underground " -> "tube"
    """
    token = " ".join(str(raw or "").lower().split())
    if not token:
        return None
    mode = MODE_SYNONYMS.get(token, token)
    return mode if mode in ALLOWED_MODES else None


def normalize_modes(raw: Iterable[str] | None) -> tuple[str, ...]:
    """Normalize mode hints to a duplicate-free ordered tuple of canonical modes.

    Unknown tokens are dropped; mode hints are advisory. Normalizing the
    output again returns it unchanged.

    Example: ["Subway", "bus", "tube", "hovercraft"] -> ("tube", "bus")
    """
    modes: list[str] = []
    for item in raw or ():
        mode = canonical_mode(item)
        if mode and mode not in modes:
            modes.append(mode)
    return tuple(modes)


def extract_modes_from_free_text(text: str | None) -> tuple[str, ...]:
    """Find modes named anywhere in free text, by whole-word match.

    Returned in ALLOWED_MODES order.

    Example: "Tube only from Canary Wharf to Oxford Circus" -> ("tube",)
    """
    if not text:
        return ()
    found: set[str] = set()
    for term in (*MODE_SYNONYMS, *ALLOWED_MODES):
        if _mode_pattern(term).search(text):
            found.add(MODE_SYNONYMS.get(term, term))
    return tuple(mode for mode in ALLOWED_MODES if mode in found)


def has_exclusivity_marker(text: str | None) -> bool:
    """True if the text restricts modes ("only", "just", "nothing but", "no other modes"...)."""
    if not text:
        return False
    return any(pattern.search(text) for pattern in EXCLUSIVITY_PATTERNS)


def merge_allowed_modes(requested: Iterable[str], exclusive: bool) -> tuple[str, ...]:
    """Build the planner's allowed mode list.

    Exclusive requests get exactly the requested modes; otherwise the default
    set is widened with the requested ones. Falls back to the defaults when
    nothing usable remains.
    """
    requested_modes = normalize_modes(requested)
    if exclusive:
        allowed = requested_modes
    else:
        allowed = normalize_modes((*DEFAULT_MODES, *requested_modes))
    return allowed or DEFAULT_MODES


def normalize_accessibility(raw: Iterable[str] | None) -> tuple[str, ...]:
    """Map free-text accessibility needs onto the closed set of flags.

    Example: ["Wheelchair", "step-free to platform", "audio"]
        -> ("step-free-vehicle", "step-free-platform", "audio-announcements")
    """
    flags: list[str] = []
    for item in raw or ():
        value = str(item or "").lower().strip()
        if not value:
            continue
        for needle, flag in ACCESSIBILITY_RULES:
            if needle in value:
                if flag not in flags:
                    flags.append(flag)
                break
    return tuple(flags)


def accessibility_preference(flags: Iterable[str]) -> AccessibilityPreference:
    """Collapse accessibility flags into the planner's single constraint."""
    flag_set = set(flags)
    if "step-free-vehicle" in flag_set:
        return AccessibilityPreference.STEP_FREE_VEHICLE
    if "step-free-platform" in flag_set:
        return AccessibilityPreference.STEP_FREE_PLATFORM
    return AccessibilityPreference.NONE


def map_walking_speed(speed: str | None) -> WalkingSpeed:
    return WALKING_SPEEDS.get((speed or "").lower().strip(), WalkingSpeed.AVERAGE)


def map_journey_preference(preference: str | None) -> JourneyOptimization:
    return JOURNEY_PREFERENCES.get(
        (preference or "").lower().strip(), JourneyOptimization.LEAST_TIME
    )


@lru_cache(maxsize=4096)
def remove_accents(text: str) -> str:
    """Remove accents from text.

    Example: "Café" -> "Cafe"
    """
    normalized = unicodedata.normalize("NFD", text)
    return "".join(c for c in normalized if unicodedata.category(c) != "Mn")


# Station suffixes stripped before name comparison (longer patterns first)
STATION_SUFFIXES = re.compile(
    r"\s+(?:underground station|rail station|dlr station|overground station|"
    r"bus station|pier|station)$"
)


@lru_cache(maxsize=4096)
def normalize_station_name(text: str) -> str:
    """Normalize a station name or query for comparison.

    - Converts to lowercase and removes accents
    - Drops apostrophes, expands "&" to "and"
    - Strips trailing "station" style suffixes
    - Normalizes whitespace

    Example: "King's Cross St. Pancras Underground Station" -> "kings cross st. pancras"
    """
    result = remove_accents(text.lower().strip())
    result = result.replace("'", "").replace("’", "").replace("&", " and ")
    result = " ".join(result.split())
    result = STATION_SUFFIXES.sub("", result)
    return result
