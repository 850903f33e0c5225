"""
Answer providers backed by hosted LLM APIs.

GroqAnswerProvider talks to Groq's OpenAI-compatible chat completions
endpoint over httpx.
"""

from __future__ import annotations

import logging
import os
import time

import httpx

from ..errors import AnswerAuthError, AnswerError, AnswerTimeout, MalformedAnswer
from .base import PromptConfig, get_registry

logger = logging.getLogger(__name__)

GROQ_API_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "llama-3.1-8b-instant"
DEFAULT_TIMEOUT = 30.0

# Retry config for rate limits and server errors
MAX_RETRIES = 3
RETRY_BACKOFF_BASE = 1.0  # seconds


class GroqAnswerProvider:
    """
    Answer provider using Groq's chat completions API.

    Authentication (checked in priority order):
    1. api_key parameter (if provided)
    2. STUDYKEEP_GROQ_API_KEY
    3. GROQ_API_KEY

    A missing key is not an error at construction time: the first request
    fails with AnswerAuthError so that stores without a key still open.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        api_url: str = GROQ_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        client: httpx.Client | None = None,
    ):
        self.model = model
        self.max_retries = max(1, max_retries)
        self._api_key = (
            api_key or
            os.environ.get("STUDYKEEP_GROQ_API_KEY") or
            os.environ.get("GROQ_API_KEY")
        )
        self._client = client or httpx.Client(
            base_url=api_url.rstrip("/"),
            timeout=timeout,
        )

    def answer(self, config: PromptConfig, user_prompt: str) -> str:
        """POST /chat/completions and return the first choice's text."""
        if not self._api_key:
            raise AnswerAuthError(
                "Groq API key not configured. Set STUDYKEEP_GROQ_API_KEY or GROQ_API_KEY"
            )

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": config.system},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": config.max_tokens,
            "temperature": config.temperature,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        last_error: Exception | None = None
        for attempt in range(self.max_retries):
            try:
                resp = self._client.post("/chat/completions", json=payload, headers=headers)
            except httpx.TimeoutException as e:
                raise AnswerTimeout(f"Answer request timed out: {e}") from e
            except httpx.HTTPError as e:
                last_error = e
            else:
                if resp.status_code in (401, 403):
                    raise AnswerAuthError(f"Groq rejected credentials: {resp.status_code}")
                if resp.status_code == 429 or resp.status_code >= 500:
                    last_error = AnswerError(f"Groq returned {resp.status_code}")
                elif resp.status_code >= 400:
                    raise AnswerError(f"Groq request rejected: {resp.status_code} {resp.text}")
                else:
                    return self._parse(resp)

            if attempt < self.max_retries - 1:
                delay = RETRY_BACKOFF_BASE * (2 ** attempt)
                logger.info(
                    "Answer attempt %d failed, retrying in %.1fs: %s",
                    attempt + 1, delay, last_error,
                )
                time.sleep(delay)

        raise AnswerError(
            f"Answer request failed after {self.max_retries} attempts: {last_error}"
        ) from last_error

    @staticmethod
    def _parse(resp: httpx.Response) -> str:
        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise MalformedAnswer(f"Unexpected answer payload: {e}") from e
        if not isinstance(content, str) or not content.strip():
            raise MalformedAnswer("Answer payload has no content")
        return content.strip()

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()


# Register providers
_registry = get_registry()
_registry.register_answer("groq", GroqAnswerProvider)
