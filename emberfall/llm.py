"""LLM client — HTTP connection to a text-completion backend.

The dialogue oracle injects an LLM callable matching the protocol:

    async def __call__(self, stage: str, prompt: str) -> str: ...

`stage` identifies the caller (currently only "npc_dialogue"); it is used for
logging.

Two implementations are provided:

    HttpLLM   — real HTTP client, supports KoboldCpp and OpenAI-compatible
                 backends. Selected by provider_format.
    EchoLLM   — returns the prompt back unchanged. Useful for checking the
                 prompt the oracle assembles without a running model.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Literal, Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, prompt: str) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM
# ---------------------------------------------------------------------------

ProviderFormat = Literal["koboldcpp", "openai"]


class HttpLLM:
    """Async HTTP client for text-completion backends.

    Supported formats:
      "koboldcpp"  — POST /api/v1/generate  {"prompt", "max_length", "stop_sequence"}
                     Response: {"results": [{"text": "..."}]}
      "openai"     — POST /v1/completions   {"model", "prompt", "max_tokens", "stop"}
                     Response: {"choices": [{"text": "..."}]}

    Args:
        provider_url:    Base URL of the backend, e.g. "http://localhost:5001".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "koboldcpp".
        model:           Model identifier, used only by the openai format.
        max_tokens:      Upper bound on the reply length. NPC lines are short.
        stop:            Stop sequences; the default ends a reply before the
                         model starts writing the player's next line.
        timeout:         HTTP timeout in seconds.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "koboldcpp",
        model: str = "",
        max_tokens: int = 160,
        stop: tuple[str, ...] = ("\n>",),
        timeout: float = 60.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._max_tokens = max_tokens
        self._stop = list(stop)
        self._timeout = timeout

    @classmethod
    def from_settings(cls, connection: Mapping[str, Any]) -> HttpLLM:
        """Build a client from the service's ``llm_connection`` settings block."""
        url = connection.get("provider_url") or ""
        if not url:
            raise LLMError("No LLM provider URL configured")
        return cls(
            provider_url=url,
            api_key=connection.get("api_key") or "",
            provider_format=connection.get("provider_format") or "koboldcpp",
            model=connection.get("model") or "",
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, prompt: str) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "openai":
            body: dict = {"prompt": prompt, "max_tokens": self._max_tokens, "stop": self._stop}
            if self._model:
                body["model"] = self._model
            return f"{self._base_url}/v1/completions", body

        body = {"prompt": prompt, "max_length": self._max_tokens, "stop_sequence": self._stop}
        return f"{self._base_url}/api/v1/generate", body

    def _parse_response(self, data: dict) -> str:
        if self._format == "openai":
            choices = data.get("choices")
            if not choices or "text" not in choices[0]:
                raise LLMError("Unexpected response format from OpenAI-compatible backend")
            return choices[0]["text"].strip()

        results = data.get("results")
        if not results or "text" not in results[0]:
            raise LLMError("Unexpected response format from KoboldCpp backend")
        return results[0]["text"].strip()

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
            raise LLMError(f"LLM backend returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e

        text = self._parse_response(resp.json())
        if not text:
            raise LLMError("LLM backend returned an empty completion")
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text

    async def check_connection(self) -> bool:
        """Quick reachability probe against the backend's model endpoint."""
        path = "/v1/models" if self._format == "openai" else "/api/v1/model"
        try:
            async with httpx.AsyncClient(timeout=5) as client:
                resp = await client.get(f"{self._base_url}{path}", headers=self._headers())
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.debug("connection check against %s failed: %s", self._base_url, e)
            return False
        return True


# ---------------------------------------------------------------------------
# EchoLLM
# ---------------------------------------------------------------------------

class EchoLLM:
    """Returns the prompt text as-is. No network calls."""

    async def __call__(self, stage: str, prompt: str) -> str:
        logger.debug("EchoLLM stage=%s prompt_len=%d", stage, len(prompt))
        return prompt


# ---------------------------------------------------------------------------
# LLMError
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
