"""Errors surfaced by the journey resolution pipeline.

Every error carries a plain-text message that is safe to show to the caller.
Provider payloads and tracebacks stay in the logs.
"""

LOCATION_REQUIRED = "location_required"


class JourneyPlannerError(Exception):
    """Base error for the journey planner."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class LowConfidenceIntent(JourneyPlannerError):
    """The language model could not understand the query well enough."""

    def __init__(self, confidence: float):
        super().__init__(
            "Could not understand your query. Please try rephrasing or use manual station selection."
        )
        self.confidence = confidence


class NotAJourneyQuery(JourneyPlannerError):
    """The query is about something other than planning a journey."""

    def __init__(self, kind: str | None = None):
        super().__init__(
            "This appears to be a service status or station query, not a journey. "
            "Please ask for a journey from one place to another."
        )
        self.kind = kind


class AmbiguousIntent(JourneyPlannerError):
    """The query has parts that need clarification before planning."""

    def __init__(self, ambiguities: list[str]):
        super().__init__("Need more information")
        self.ambiguities = ambiguities


class IncompleteIntent(JourneyPlannerError):
    """The parsed intent lacks a field the planner needs (e.g. destination)."""


class LocationNotFound(JourneyPlannerError):
    """No resolution strategy produced coordinates for a place name."""

    def __init__(self, query: str, role: str = "location"):
        super().__init__(f"Could not find {role}: {query}")
        self.query = query
        self.role = role


class LocationRequired(JourneyPlannerError):
    """Current location was requested but the caller supplied none."""

    def __init__(self):
        super().__init__(LOCATION_REQUIRED)


class NoJourneysFound(JourneyPlannerError):
    """The journey planner returned zero itineraries."""

    def __init__(self):
        super().__init__("No journeys found")


class ProviderError(JourneyPlannerError):
    """Network or protocol failure from an external provider."""

    def __init__(self, provider: str, detail: str | None = None):
        super().__init__(f"The {provider} service is currently unavailable. Please try again.")
        self.provider = provider
        self.detail = detail
