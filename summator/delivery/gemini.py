"""
Gemini Summarization Client

Thin async client for the Gemini REST API (generateContent and model
listing). Failures are classified so the pipeline can retry quota errors
and diagnose unresolvable model names.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..common.config import GeminiConfig, DEFAULT_GEMINI_BASE_URL, DEFAULT_GEMINI_MODEL
from .errors import ModelNotFoundError, QuotaExceededError, SummarizationError

logger = logging.getLogger("summator.delivery.gemini")

QUOTA_MARKER = "RESOURCE_EXHAUSTED"

SUMMARY_PROMPT = """You are a professional meeting secretary.
Summarize the following meeting transcript.
Identify key decisions, action items, and open questions.

Transcript:
{transcript}
"""


def build_prompt(transcript: str) -> str:
    return SUMMARY_PROMPT.format(transcript=transcript)


def _decode(response: httpx.Response) -> Any:
    try:
        return response.json()
    except (json.JSONDecodeError, ValueError):
        return None


class GeminiClient:
    """
    Gemini REST client.

    Usage:
        client = GeminiClient(api_key="...", model="gemini-flash-latest")
        summary = await client.summarize(transcript)
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GEMINI_MODEL,
        base_url: str = DEFAULT_GEMINI_BASE_URL,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Gemini client.

        Args:
            api_key: Gemini API key (sent as the ``key`` query parameter)
            model: Model identifier
            base_url: API root, e.g. https://generativelanguage.googleapis.com/v1beta
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.api_key = api_key.strip()
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: GeminiConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "GeminiClient":
        return cls(
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            timeout=config.timeout,
            transport=transport,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
        )

    async def summarize(self, transcript: str) -> str:
        """
        Summarize a transcript.

        Raises:
            QuotaExceededError: HTTP 429 or RESOURCE_EXHAUSTED
            ModelNotFoundError: HTTP 404 for the configured model
            SummarizationError: Any other failure, including transport errors
        """
        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = {"contents": [{"parts": [{"text": build_prompt(transcript)}]}]}
        logger.debug("generateContent model=%s transcript_chars=%d", self.model, len(transcript))

        try:
            async with self._client() as client:
                response = await client.post(url, params={"key": self.api_key}, json=payload)
        except httpx.HTTPError as e:
            raise SummarizationError(f"Gemini request failed: {e}") from e

        data = _decode(response)

        if not response.is_success:
            body = json.dumps(data) if data is not None else response.text
            message = f"Gemini API {response.status_code}: {body}"
            if response.status_code == 429 or QUOTA_MARKER in body:
                raise QuotaExceededError(message, status_code=response.status_code, body=body)
            if response.status_code == 404:
                raise ModelNotFoundError(message, status_code=response.status_code, body=body)
            raise SummarizationError(message, status_code=response.status_code, body=body)

        if not isinstance(data, dict):
            raise SummarizationError("Gemini: Response is not a JSON object.", status_code=response.status_code)

        if data.get("error"):
            error = data["error"]
            detail = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            body = json.dumps(error)
            if QUOTA_MARKER in body:
                raise QuotaExceededError(f"Gemini Data Error: {detail}", status_code=response.status_code, body=body)
            raise SummarizationError(f"Gemini Data Error: {detail}", status_code=response.status_code, body=body)

        return self._extract_text(data)

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            raise SummarizationError("Gemini: No candidates returned.")

        try:
            return candidates[0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise SummarizationError(f"Gemini: Malformed candidate ({e}).") from e

    async def list_models(self) -> List[str]:
        """
        List model identifiers visible to this API key.

        Raises:
            SummarizationError: If the listing call fails or returns no models
        """
        url = f"{self.base_url}/models"

        try:
            async with self._client() as client:
                response = await client.get(url, params={"key": self.api_key})
        except httpx.HTTPError as e:
            raise SummarizationError(f"request error: {e}") from e

        data = _decode(response)
        if not isinstance(data, dict) or not isinstance(data.get("models"), list):
            body = json.dumps(data) if data is not None else response.text
            raise SummarizationError(
                f"unexpected response: {body}",
                status_code=response.status_code,
                body=body,
            )

        return [m.get("name", "") for m in data["models"] if isinstance(m, dict)]
