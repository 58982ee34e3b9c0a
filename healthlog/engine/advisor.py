"""Client for the external natural-language advice generator.

Constructed once at startup from AdvisorConfig and handed to request
handlers through FastAPI dependencies. The generated text is returned as-is.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx
import structlog
from fastapi import Request

from healthlog.config import Settings
from healthlog.engine.errors import AdviceUnavailable

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class AdvisorConfig:
    api_key: str | None
    endpoint: str
    model: str
    timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls, s: Settings) -> AdvisorConfig:
        return cls(
            api_key=s.advice_api_key,
            endpoint=s.advice_endpoint.rstrip("/"),
            model=s.advice_model,
            timeout_seconds=s.advice_timeout_seconds,
        )


_PROMPT_HEADERS = {
    "fitness": (
        "You are a fitness coach. Analyze the following fitness data and provide personalized, "
        "actionable recommendations in a friendly, encouraging tone. Keep recommendations concise "
        "(3-5 bullet points)."
    ),
    "medication": (
        "You are a healthcare advisor. Analyze the following medication data and provide personalized, "
        "helpful recommendations in a friendly, professional tone. Keep recommendations concise "
        "(3-5 bullet points)."
    ),
    "sleep": (
        "You are a sleep specialist. Analyze the following sleep data and provide personalized, "
        "actionable recommendations in a friendly, encouraging tone. Keep recommendations concise "
        "(3-5 bullet points)."
    ),
}

_PROMPT_FOCUS = {
    "fitness": [
        "Workout optimization",
        "Recovery and rest days",
        "Progressive overload suggestions",
        "Goal achievement strategies",
    ],
    "medication": [
        "Medication adherence tips",
        "Stock management",
        "Timing optimization",
    ],
    "sleep": [
        "Sleep schedule optimization",
        "Sleep hygiene tips",
        "Circadian rhythm alignment",
    ],
}


def build_prompt(category: str, snapshot: dict[str, Any], goals: list[str] | None = None) -> str:
    if category not in _PROMPT_HEADERS:
        raise ValueError(f"Invalid category: {category}")

    lines = [
        _PROMPT_HEADERS[category],
        "",
        f"User Profile: {'Goals: ' + ', '.join(goals) if goals else 'Not specified'}",
        f"Data: {json.dumps(snapshot, default=str)}",
        "",
        "Provide specific, actionable recommendations based on this data. Focus on:",
    ]
    lines.extend(f"- {item}" for item in _PROMPT_FOCUS[category])
    if category == "medication":
        lines.append("")
        lines.append(
            "IMPORTANT: Do not provide medical advice. Only give general reminders and organizational "
            "tips. Always remind users to consult their healthcare provider for medical decisions."
        )
    lines.append("")
    lines.append("Format as a friendly message with bullet points.")
    return "\n".join(lines)


class RecommendationClient:
    def __init__(self, config: AdvisorConfig, http: httpx.AsyncClient | None = None):
        self.config = config
        self._http = http or httpx.AsyncClient(timeout=config.timeout_seconds)
        self.logger = logger.bind(component="recommendation_client", model=config.model)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def generate(self, category: str, snapshot: dict[str, Any], goals: list[str] | None = None) -> str:
        if not self.config.api_key:
            raise AdviceUnavailable("Advice generator is not configured")

        prompt = build_prompt(category, snapshot, goals)
        url = f"{self.config.endpoint}/models/{self.config.model}:generateContent"
        body = {"contents": [{"parts": [{"text": prompt}]}]}
        try:
            resp = await self._http.post(url, params={"key": self.config.api_key}, json=body)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            self.logger.error("advice_request_failed", category=category, error=str(exc))
            raise AdviceUnavailable(f"Failed to generate recommendations: {exc}") from exc

        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            self.logger.error("advice_request_failed", category=category, error="unexpected response shape")
            raise AdviceUnavailable("Advice generator returned no text")
        return "".join(p.get("text", "") for p in parts if isinstance(p, dict))


def get_advisor(request: Request) -> RecommendationClient:
    return request.app.state.advisor
