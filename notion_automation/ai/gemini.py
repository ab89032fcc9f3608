"""
Gemini Text Generation Client

Calls the Gemini generateContent REST endpoint once per prompt. There is no
retry: a failed call aborts the batch it belongs to.
"""

import time
from typing import Optional

import requests

from ..config.constants import AI_TIMEOUT, GEMINI_API_BASE_URL, GEMINI_DEFAULT_MODEL
from ..exceptions import AIGenerationError
from ..utils.common_utils import safe_get
from ..utils.structured_logger import StructuredLogger, get_logger


class GeminiClient:
    """
    Minimal generateContent client.

    Args:
        api_key: Gemini API key
        model: Model name (defaults to GEMINI_DEFAULT_MODEL)
        session: Optional requests.Session for connection pooling
        logger: Optional StructuredLogger
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        session: Optional[requests.Session] = None,
        logger: Optional[StructuredLogger] = None,
        timeout: int = AI_TIMEOUT,
    ):
        self.api_key = api_key
        self.model = model or GEMINI_DEFAULT_MODEL
        self.session = session or requests.Session()
        self.logger = logger or get_logger(__name__)
        self.timeout = timeout

    @property
    def url(self) -> str:
        return f"{GEMINI_API_BASE_URL}/models/{self.model}:generateContent"

    def generate(self, prompt: str, json_output: bool = True) -> str:
        """
        Send one prompt and return the generated text.

        Args:
            prompt: Full prompt text
            json_output: Ask the model for a JSON response body

        Returns:
            Concatenated text of the first candidate

        Raises:
            AIGenerationError: Transport failure, non-2xx status or no text
        """
        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        if json_output:
            payload["generationConfig"] = {"responseMimeType": "application/json"}

        self.logger.log_api_call("gemini", self.url, "POST", model=self.model)
        start = time.time()
        try:
            response = self.session.post(
                self.url, headers=headers, json=payload, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise AIGenerationError(f"Gemini request failed: {e}") from e
        self.logger.log_api_response("gemini", response.status_code, time.time() - start)

        if not response.ok:
            message = safe_get(_json_or_none(response), ["error", "message"]) or response.text[:500]
            raise AIGenerationError(
                f"Gemini API error ({response.status_code}): {message}"
            )

        data = _json_or_none(response)
        parts = safe_get(data, ["candidates", 0, "content", "parts"], []) or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text:
            reason = safe_get(data, ["candidates", 0, "finishReason"]) or \
                safe_get(data, ["promptFeedback", "blockReason"])
            raise AIGenerationError(
                f"Gemini returned no text (reason: {reason or 'unknown'})"
            )
        return text


def _json_or_none(response: requests.Response):
    try:
        return response.json()
    except ValueError:
        return None
