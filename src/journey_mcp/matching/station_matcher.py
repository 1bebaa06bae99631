from rapidfuzz import fuzz

from journey_mcp.matching.models import MATCH_TYPE_RANK, MatchType, StationMatch
from journey_mcp.matching.normalizers import normalize_station_name
from journey_mcp.models.tfl import StopPointMatch


def _compute_fuzzy_score(query_normalized: str, name_normalized: str) -> float:
    """Blend token_set_ratio (word order) with partial_ratio (substrings).

    Returns:
        Score in 0-100 range
    """
    token_score = fuzz.token_set_ratio(query_normalized, name_normalized)
    partial_score = fuzz.partial_ratio(query_normalized, name_normalized)
    return min(100.0, token_score * 0.7 + partial_score * 0.3)


def _classify(query_normalized: str, name_normalized: str) -> tuple[MatchType, float]:
    if name_normalized == query_normalized:
        return MatchType.EXACT, 100.0
    if name_normalized.startswith(query_normalized):
        return MatchType.PREFIX, max(90.0, _compute_fuzzy_score(query_normalized, name_normalized))
    return MatchType.FUZZY, _compute_fuzzy_score(query_normalized, name_normalized)


def rank_stations(
    query: str,
    candidates: list[StopPointMatch],
    limit: int = 10,
) -> list[StationMatch]:
    """Rank station search results for a query.

    Ranking (priority order):
    1. Exact normalized name match
    2. Normalized name starts with the query
    3. Everything else, by fuzzy score

    Ties are broken alphabetically by station name. Duplicate ids keep their
    first occurrence.

    Args:
        query: Text the user typed
        candidates: Raw matches from the stop point search
        limit: Maximum number of results to return

    Returns:
        Ranked StationMatch list, at most ``limit`` long
    """
    query_normalized = normalize_station_name(query)
    if not query_normalized:
        return []

    seen: set[str] = set()
    matches: list[StationMatch] = []
    for candidate in candidates:
        if candidate.id in seen:
            continue
        seen.add(candidate.id)

        match_type, score = _classify(query_normalized, normalize_station_name(candidate.name))
        matches.append(
            StationMatch(
                id=candidate.id,
                name=candidate.name,
                modes=candidate.modes,
                lat=candidate.lat,
                lon=candidate.lon,
                zone=candidate.zone,
                score=round(score, 1),
                match_type=match_type,
            )
        )

    matches.sort(key=lambda m: (MATCH_TYPE_RANK[m.match_type], -m.score, m.name.lower()))
    return matches[:limit]
