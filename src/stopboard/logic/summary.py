"""AI-generated briefing for a stop, backed by the Gemini REST API."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from typing import Any, Sequence

import requests

from stopboard.logic.arrivals import ProcessedArrival

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-3-flash-preview"
BRIEFING_ARRIVALS = 5

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitInsight:
    """Short natural-language summary plus one recommendation."""

    summary: str
    recommendation: str


FALLBACK_INSIGHT = TransitInsight(
    summary="Real-time data is flowing normally.",
    recommendation="Always keep an eye on the board for sudden changes.",
)

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "summary": {"type": "STRING"},
        "recommendation": {"type": "STRING"},
    },
    "required": ["summary", "recommendation"],
}


class SummaryError(Exception):
    """Raised internally when the briefing could not be produced."""


def build_prompt(stop_name: str, arrivals: Sequence[ProcessedArrival]) -> str:
    arrivals_text = ", ".join(
        f"Line {a.line_id} to {a.destination} in {a.minutes_until_arrival} min"
        for a in arrivals[:BRIEFING_ARRIVALS]
    )
    return (
        f'Analyze the following real-time transit data for the bus stop "{stop_name}".\n'
        f"Arrivals: {arrivals_text}.\n"
        "Provide a friendly, very concise (max 2 sentences) summary and one helpful "
        "recommendation for travelers."
    )


class SummaryClient:
    """Requests a briefing from Gemini; never raises to the caller."""

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout_seconds = 15

    def get_briefing(self, stop_name: str, arrivals: Sequence[ProcessedArrival]) -> TransitInsight:
        """Return a briefing for the top arrivals, or the fixed fallback on any failure."""
        if not self._api_key:
            return FALLBACK_INSIGHT
        try:
            return self._generate(build_prompt(stop_name, arrivals))
        except SummaryError as exc:
            logger.warning("Briefing unavailable for %s: %s", stop_name, exc)
            return FALLBACK_INSIGHT

    def _generate(self, prompt: str) -> TransitInsight:
        url = f"{GEMINI_API_BASE}/models/{self._model}:generateContent"
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }
        try:
            response = requests.post(
                url,
                headers={"x-goog-api-key": self._api_key},
                json=payload,
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as exc:
            raise SummaryError(f"Gemini request failed: {exc}") from exc

        if response.status_code != 200:
            raise SummaryError(f"Gemini request failed: Status {response.status_code}")

        try:
            body = response.json()
        except ValueError as exc:
            raise SummaryError("Gemini response was not valid JSON") from exc

        return _parse_insight(_response_text(body))


def _response_text(body: Any) -> str:
    try:
        parts = body["candidates"][0]["content"]["parts"]
        text = "".join(part.get("text", "") for part in parts)
    except (KeyError, IndexError, TypeError, AttributeError) as exc:
        raise SummaryError("Gemini response had no candidates") from exc
    if not text.strip():
        raise SummaryError("Empty AI response")
    return text


def _parse_insight(text: str) -> TransitInsight:
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise SummaryError("Briefing was not valid JSON") from exc
    if not isinstance(data, dict):
        raise SummaryError("Briefing must be a JSON object")
    summary = data.get("summary")
    recommendation = data.get("recommendation")
    if not isinstance(summary, str) or not isinstance(recommendation, str):
        raise SummaryError("Briefing is missing summary or recommendation")
    return TransitInsight(summary=summary, recommendation=recommendation)


__all__ = [
    "DEFAULT_MODEL",
    "FALLBACK_INSIGHT",
    "SummaryClient",
    "TransitInsight",
    "build_prompt",
]
