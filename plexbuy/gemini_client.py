import logging
import re
from typing import Optional

import httpx

from plexbuy.errors import (
    ConnectionFailure,
    CredentialMalformed,
    CredentialMissing,
    GenerationError,
    HealthCheckFailure,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
API_KEY_PATTERN = re.compile(r"AIza[0-9A-Za-z_\-]{35}")


class GeminiClient:
    """Text generation through the Gemini REST API.

    ``initialize`` is the connectivity check used by the readiness gate, and
    ``generate`` is only called by request handling once the gate reports the
    client ready.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gemini-2.5-flash",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key.strip() if api_key else None
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.client = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def model_url(self) -> str:
        return f"{self.base_url}/models/{self.model}"

    def _headers(self):
        return {"x-goog-api-key": self.api_key}

    def validate_credential(self) -> str:
        if not self.api_key:
            raise CredentialMissing("GEMINI_API_KEY is not set")
        if not API_KEY_PATTERN.fullmatch(self.api_key):
            raise CredentialMalformed("GEMINI_API_KEY does not look like a Google API key")
        return self.api_key

    async def initialize(self) -> bool:
        self.validate_credential()

        try:
            response = await self.client.get(self.model_url, headers=self._headers())
        except httpx.HTTPError as e:
            raise ConnectionFailure(f"Cannot reach Gemini API: {e}") from e

        if response.status_code != 200:
            raise HealthCheckFailure(f"Gemini model lookup returned {response.status_code}")

        logger.info(f"Gemini API ready (model {self.model})")
        return True

    init = initialize

    async def generate(self, prompt: str, temperature: float = 0.7, max_output_tokens: int = 1000) -> str:
        try:
            response = await self.client.post(
                f"{self.model_url}:generateContent",
                headers=self._headers(),
                json={
                    "contents": [{"parts": [{"text": prompt}]}],
                    "generationConfig": {
                        "temperature": temperature,
                        "maxOutputTokens": max_output_tokens
                    }
                }
            )
        except httpx.HTTPError as e:
            raise GenerationError(f"Gemini API request failed: {e}") from e

        if response.status_code != 200:
            raise GenerationError(f"Gemini API error: {response.status_code}")

        try:
            result = response.json()
        except ValueError as e:
            raise GenerationError("Gemini API returned invalid JSON") from e

        try:
            text = result["candidates"][0]["content"]["parts"][0]["text"]
        except (AttributeError, IndexError, KeyError, TypeError) as e:
            raise GenerationError("Gemini API response has no candidate text") from e
        if not isinstance(text, str) or not text.strip():
            raise GenerationError("Gemini API returned no text")
        return text.strip()

    async def close(self):
        await self.client.aclose()
