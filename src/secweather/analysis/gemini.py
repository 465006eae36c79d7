from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

import requests

from ..config import GeminiSettings

LOGGER = logging.getLogger(__name__)
API_ROOT = "https://generativelanguage.googleapis.com/v1beta"

T = TypeVar("T")


class AnalysisError(RuntimeError):
    """A model call failed or returned something unusable."""


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    error: AnalysisError


Result = Union[Ok[T], Err]


class GeminiClient:
    """Thin JSON-mode client for the generateContent endpoint."""

    def __init__(self, settings: GeminiSettings, session: requests.Session | None = None) -> None:
        self.settings = settings
        self.session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    def _endpoint(self, model: str) -> str:
        return f"{API_ROOT}/models/{model}:generateContent"

    def generate_json(self, prompt: str, model: str | None = None) -> Any:
        if not self.settings.api_key:
            raise AnalysisError("GEMINI_API_KEY is not configured")
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"responseMimeType": "application/json"},
        }
        try:
            resp = self.session.post(
                self._endpoint(model or self.settings.model),
                params={"key": self.settings.api_key},
                json=payload,
                timeout=self.settings.timeout,
            )
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise AnalysisError(f"generateContent request failed: {exc}") from exc

        try:
            text = body["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise AnalysisError(f"Unexpected response shape: {str(body)[:200]}") from exc
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise AnalysisError(f"Failed to parse JSON response: {text[:200]}") from exc

    def try_generate_json(self, prompt: str, model: str | None = None) -> Result[Any]:
        try:
            return Ok(self.generate_json(prompt, model))
        except AnalysisError as exc:
            LOGGER.warning("Model call failed: %s", exc)
            return Err(exc)
