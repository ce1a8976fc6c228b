"""LLM client — HTTP connection to a text-generation backend.

Scene generation talks to a model through a callable matching the protocol:

    async def __call__(self, stage: str, prompt: str) -> str: ...

`stage` names the kind of request (currently only "scene"). Implementations
may use it for logging or routing; the simplest ones ignore it.

HttpLLM is the real client. It speaks three wire formats, selected by
provider_format:

    koboldcpp  POST /api/v1/generate       {"prompt": ...}
    openai     POST /v1/completions        {"model": ..., "prompt": ...}
    chat       POST /v1/chat/completions   {"model": ..., "messages": [...]}

"chat" is what OpenRouter and other hosted chat APIs expect. Tests use a
stub callable instead of HttpLLM.
"""

from __future__ import annotations

import logging
from typing import Literal, Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol — every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, prompt: str) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM — connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["koboldcpp", "openai", "chat"]

SYSTEM_PROMPT = (
    "You are a creative writer for visual novels. "
    "Answer with valid JSON only."
)


class HttpLLM:
    """Async HTTP client for text-generation backends.

    Args:
        provider_url:    Base URL of the backend, e.g. "https://openrouter.ai/api".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "chat".
        model:           Model identifier, sent by the openai and chat formats.
        timeout:         HTTP timeout in seconds. Defaults to 120.
        temperature:     Sampling temperature, omitted from the request when None.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "chat",
        model: str = "",
        timeout: float = 120.0,
        temperature: float | None = None,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout
        self._temperature = temperature

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, prompt: str) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "chat":
            url = f"{self._base_url}/v1/chat/completions"
            body: dict = {
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
            }
        elif self._format == "openai":
            url = f"{self._base_url}/v1/completions"
            body = {"prompt": prompt}
        else:
            url = f"{self._base_url}/api/v1/generate"
            return url, {"prompt": prompt}

        if self._model:
            body["model"] = self._model
        if self._temperature is not None:
            body["temperature"] = self._temperature
        return url, body

    def _parse_response(self, data: dict) -> str:
        """Extract the completion text from the response body."""
        if self._format == "chat":
            choices = data.get("choices")
            if not choices or "content" not in choices[0].get("message", {}):
                raise LLMError("Unexpected response format from chat backend")
            return choices[0]["message"]["content"]

        if self._format == "openai":
            choices = data.get("choices")
            if not choices or "text" not in choices[0]:
                raise LLMError("Unexpected response format from OpenAI-compatible backend")
            return choices[0]["text"]

        results = data.get("results")
        if not results or "text" not in results[0]:
            raise LLMError("Unexpected response format from KoboldCpp backend")
        return results[0]["text"]

    async def __call__(self, stage: str, prompt: str) -> str:
        url, body = self._build_request(prompt)
        logger.debug("llm call stage=%s url=%s prompt_len=%d", stage, url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e

        text = self._parse_response(resp.json())
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


# ---------------------------------------------------------------------------
# LLMError — raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
