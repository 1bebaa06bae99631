import json
import logging
from typing import TYPE_CHECKING

from openai import APIError, AsyncOpenAI
from pydantic import ValidationError

from journey_mcp.data.config import JourneyConfig
from journey_mcp.errors import ProviderError
from journey_mcp.models.intent import TravelIntent
from journey_mcp.models.tfl import Journey

if TYPE_CHECKING:
    from journey_mcp.services.orchestrator import RetryFeedback

logger = logging.getLogger(__name__)

PROVIDER_NAME = "language model"

INTENT_SYSTEM_PROMPT = """You turn London travel requests into JSON for a journey planner.

Reply with one JSON object and nothing else, in this shape:
{
  "type": "journey_planning" | "status_query" | "station_info" | "accessibility_info",
  "journey": {
    "from": {"name": string, "useCurrentLocation": boolean, "confidence": number},
    "to": {"name": string, "confidence": number},
    "via": [{"name": string, "confidence": number}],
    "preferences": {
      "mode": [string],
      "modePolicy": "only" | "prefer",
      "accessibility": [string],
      "avoid": [string],
      "time": {"type": "depart" | "arrive", "datetime": ISO 8601 string},
      "walkingSpeed": "slow" | "average" | "fast",
      "journeyPreference": "least-time" | "least-interchange" | "least-walking",
      "maxWalkingMinutes": number,
      "maxTransferMinutes": number
    }
  },
  "rawQuery": the user's text,
  "intent_confidence": number between 0 and 1,
  "ambiguities": [string]
}

Rules:
- Places are in Greater London unless the user clearly says otherwise. Use full station
  or landmark names ("King's Cross St. Pancras", not "KX").
- "from here", "my location" or a missing origin means "from": {"useCurrentLocation": true}.
- Modes come from: tube, bus, dlr, overground, tram, river-bus, cable-car, coach, cycle,
  walking, national-rail. Map "underground" to tube, "train" to national-rail,
  "walk" to walking.
- When the user restricts modes ("only", "just", "no other transport"), set modePolicy
  to "only". When they merely mention a preference, set "prefer".
- Accessibility values: step-free-platform, step-free-vehicle, audio-announcements,
  visual-displays. A wheelchair user needs step-free-vehicle.
- Put an intermediate stop ("via Bank") in "via"; keep the order the user gave.
- Relative times ("in 20 minutes", "tomorrow at 9") become absolute ISO 8601 times.
- List genuinely unclear parts in "ambiguities"; leave it empty when you can plan.
- Omit fields you cannot infer. Never invent a destination.

Examples:
"Tube only from Canary Wharf to Oxford Circus" ->
{"type": "journey_planning", "journey": {"from": {"name": "Canary Wharf", "confidence": 0.95},
"to": {"name": "Oxford Circus", "confidence": 0.95}, "preferences": {"mode": ["tube"],
"modePolicy": "only"}}, "rawQuery": "Tube only from Canary Wharf to Oxford Circus",
"intent_confidence": 0.95, "ambiguities": []}

"step free route to Waterloo arriving by 9am" ->
{"type": "journey_planning", "journey": {"from": {"useCurrentLocation": true, "confidence": 0.8},
"to": {"name": "Waterloo", "confidence": 0.9}, "preferences": {"accessibility":
["step-free-vehicle"], "time": {"type": "arrive", "datetime": "<today>T09:00:00"}}},
"rawQuery": "step free route to Waterloo arriving by 9am", "intent_confidence": 0.9,
"ambiguities": []}

"is the Victoria line running?" ->
{"type": "status_query", "rawQuery": "is the Victoria line running?",
"intent_confidence": 0.9, "ambiguities": []}
"""

CLARIFY_SYSTEM_PROMPT = """You help a London journey planner ask follow-up questions.
Given a travel request and the parts that were unclear, reply with a JSON object
{"questions": [string]} holding at most three short, friendly questions."""

LOCATION_SYSTEM_PROMPT = """You expand London place names for a station search.
Reply with a JSON object {"name": string}. Expand abbreviations and nicknames to the
official station or place name ("KX" -> "King's Cross St. Pancras", "Tottenham Ct Rd" ->
"Tottenham Court Road"). If the name is already complete, return it unchanged."""

DESCRIPTION_SYSTEM_PROMPT = """You describe London journeys for screen reader users.
Write two to four plain sentences: total time, each leg in order with its line and
direction, where to change, and how long any walks are. No markdown, no lists."""


def _strip_code_fence(content: str) -> str:
    content = content.strip()
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else ""
        content = content.rsplit("```", 1)[0]
    return content.strip()


def summarize_journey(journey: Journey) -> str:
    """Compact text rendering of an itinerary for the description prompt."""
    lines = [f"Total duration: {journey.duration} minutes"]
    for index, leg in enumerate(journey.legs, start=1):
        origin = leg.departure_point.common_name if leg.departure_point else "?"
        destination = leg.arrival_point.common_name if leg.arrival_point else "?"
        line = leg.line_name or leg.mode.name or leg.mode.id
        lines.append(
            f"{index}. {leg.mode.id} ({line}) from {origin} to {destination}, "
            f"{leg.duration} min, direction: {leg.direction or 'n/a'}"
        )
    return "\n".join(lines)


class LLMClient:
    """Async client for the language model behind intent extraction.

    Talks to any OpenAI-compatible chat completions endpoint.

    Usage:
        async with LLMClient(config) as llm:
            intent = await llm.parse_intent("tube only from Bank to Angel")
    """

    def __init__(self, config: JourneyConfig):
        self._config = config
        self._client: AsyncOpenAI | None = None

    async def __aenter__(self) -> "LLMClient":
        if self.is_configured:
            self._client = AsyncOpenAI(
                api_key=self._config.llm_api_key,
                base_url=self._config.llm_base_url,
                timeout=self._config.http_timeout_seconds,
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.close()
            self._client = None

    @property
    def is_configured(self) -> bool:
        return bool(self._config.llm_api_key)

    async def _complete(self, system_prompt: str, user_content: str, json_mode: bool = True) -> str:
        if not self.is_configured:
            raise ProviderError(PROVIDER_NAME, "LLM_API_KEY is not set")
        if not self._client:
            raise RuntimeError("Client not initialized - use 'async with'")

        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(
                model=self._config.llm_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                temperature=0,
                **kwargs,
            )
        except APIError as e:
            raise ProviderError(PROVIDER_NAME, str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ProviderError(PROVIDER_NAME, "empty completion")
        return content

    async def _complete_json(self, system_prompt: str, user_content: str) -> dict:
        content = await self._complete(system_prompt, user_content)
        try:
            data = json.loads(_strip_code_fence(content))
        except json.JSONDecodeError as e:
            raise ProviderError(PROVIDER_NAME, f"reply is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise ProviderError(PROVIDER_NAME, "reply is not a JSON object")
        return data

    async def parse_intent(
        self, raw_query: str, feedback: "RetryFeedback | None" = None
    ) -> TravelIntent:
        """Extract a structured travel intent from free text.

        Args:
            raw_query: The user's original query.
            feedback: Outcome of the previous attempt, appended to the query on retries.

        Raises:
            ProviderError: If the model is unreachable or its reply is malformed.
        """
        user_content = feedback.apply_to(raw_query) if feedback else raw_query
        data = await self._complete_json(INTENT_SYSTEM_PROMPT, user_content)
        data.setdefault("rawQuery", raw_query)
        try:
            return TravelIntent.model_validate(data)
        except ValidationError as e:
            raise ProviderError(PROVIDER_NAME, f"reply does not match intent schema: {e}") from e

    async def clarify_ambiguous_query(self, raw_query: str, ambiguities: list[str]) -> list[str]:
        """Ask the model for follow-up questions; falls back to echoing the ambiguities."""
        fallback = [f"Could you clarify: {item}?" for item in ambiguities]
        if not self.is_configured:
            return fallback
        try:
            data = await self._complete_json(
                CLARIFY_SYSTEM_PROMPT,
                json.dumps({"query": raw_query, "ambiguities": ambiguities}),
            )
        except ProviderError as e:
            logger.warning(f"Clarification request failed: {e.detail or e}")
            return fallback
        questions = [q for q in data.get("questions", []) if isinstance(q, str) and q.strip()]
        return questions[:3] or fallback

    async def enhance_location_name(self, name: str) -> str:
        """Expand abbreviations in a place name. Returns the input unchanged on any failure."""
        if not self.is_configured or not name.strip():
            return name
        try:
            data = await self._complete_json(LOCATION_SYSTEM_PROMPT, name)
        except ProviderError as e:
            logger.debug(f"Location name expansion failed for {name!r}: {e.detail or e}")
            return name
        expanded = data.get("name")
        return expanded.strip() if isinstance(expanded, str) and expanded.strip() else name

    async def generate_accessible_description(self, journey: Journey) -> str:
        """Screen-reader friendly prose for one itinerary.

        Raises:
            ProviderError: If the model is unavailable.
        """
        content = await self._complete(
            DESCRIPTION_SYSTEM_PROMPT, summarize_journey(journey), json_mode=False
        )
        return content.strip()
