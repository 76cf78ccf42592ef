#!/usr/bin/env python3
"""
Gemini Connector - generative text backend for slide summaries

One POST per prompt:
    {contents: [{parts: [{text: prompt}]}]}
    -> {candidates: [{content: {parts: [{text: response}]}}]}
The API key travels as the `key` query parameter.
"""

from typing import Any, Dict, Optional

import requests

from arena_slides.core.config import get_config
from arena_slides.core.exceptions import AIServiceError
from arena_slides.core.logging_utils import ArenaLogger

ai_logger = ArenaLogger("arena_slides.ai")


class GeminiConnector:
    def __init__(self, config=None, http_session: Optional[requests.Session] = None, debug_mode: bool = False):
        self.config = config or get_config()
        self.http = http_session or requests.Session()
        self.debug_mode = debug_mode

        self.base_url = self.config.GEMINI_API_BASE_URL.rstrip('/')
        self.model = self.config.GEMINI_MODEL
        self.timeout = self.config.GEMINI_TIMEOUT

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def _payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.config.GEMINI_TEMPERATURE,
                "maxOutputTokens": self.config.GEMINI_MAX_OUTPUT_TOKENS,
            },
        }

    @staticmethod
    def extract_text(body: Any) -> str:
        """Pull the generated text out of a generateContent response."""
        try:
            parts = body["candidates"][0]["content"]["parts"]
            text = "".join(str(part.get("text", "")) for part in parts if isinstance(part, dict))
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise AIServiceError(f"Malformed Gemini response: {e}") from e
        if not text.strip():
            raise AIServiceError("Gemini returned an empty response")
        return text

    def generate(self, prompt: str, api_key: str) -> str:
        """
        Send one prompt and return the response text.

        Raises:
            AIServiceError on a missing key, transport error, non-2xx status,
            or a response without text
        """
        if not api_key:
            raise AIServiceError("No Gemini API key configured")

        if self.debug_mode:
            ai_logger.log_debug("PROMPT", f"Sending {len(prompt)} chars to {self.model}", {"preview": prompt[:300]})

        try:
            response = self.http.post(
                self.endpoint,
                params={"key": api_key},
                json=self._payload(prompt),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise AIServiceError(f"Could not reach Gemini: {e}") from e

        if not 200 <= response.status_code < 300:
            raise AIServiceError(f"Gemini returned {response.status_code}: {(response.text or '')[:300]}")

        try:
            body = response.json()
        except ValueError as e:
            raise AIServiceError("Gemini returned a non-JSON response") from e

        text = self.extract_text(body)
        ai_logger.log_debug("RESPONSE", f"Gemini responded with {len(text)} chars")
        return text

    def test_connection(self, api_key: str) -> bool:
        """Check that the key can see the configured model"""
        if not api_key:
            return False
        try:
            response = self.http.get(
                f"{self.base_url}/models/{self.model}",
                params={"key": api_key},
                timeout=10,
            )
        except requests.exceptions.RequestException as e:
            ai_logger.log_warning("CONNECTION_FAILED", "Gemini not accessible", {"error": str(e)})
            return False
        return response.status_code == 200
