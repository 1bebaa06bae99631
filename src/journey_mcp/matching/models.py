from enum import Enum

from pydantic import BaseModel, Field


class MatchType(str, Enum):
    """How a station search result matched the query."""

    EXACT = "exact"  # Normalized name equals the query
    PREFIX = "prefix"  # Normalized name starts with the query
    FUZZY = "fuzzy"  # Fuzzy name match


# Ranking order when sorting matches (lower sorts first)
MATCH_TYPE_RANK = {
    MatchType.EXACT: 0,
    MatchType.PREFIX: 1,
    MatchType.FUZZY: 2,
}


class StationMatch(BaseModel):
    """A ranked station search result."""

    id: str
    name: str
    modes: list[str] = []
    lat: float | None = None
    lon: float | None = None
    zone: str | None = None
    score: float = Field(description="Match score (0-100)")
    match_type: MatchType = Field(description="Type of match")
