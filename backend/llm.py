"""LLM client — streamed structured completions for the turn endpoint.

The endpoint injects an LLM matching the protocol:

    def stream(self, prompt: str, schema: dict) -> AsyncIterator[str]: ...

Each yielded string is a raw slice of the JSON object text, in order; joined
together they form one object conforming to ``schema``. The endpoint relays
the slices without touching them.

Two implementations are provided:

    HttpLLM    — OpenAI-compatible chat completions with json_schema
                 structured output and server-sent-event streaming.
    CannedLLM  — streams a fixed turn at the prompt's current hp.
                 Useful for running the game without a model.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import AsyncIterator
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol — every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    def stream(self, prompt: str, schema: dict[str, Any]) -> AsyncIterator[str]: ...


# ---------------------------------------------------------------------------
# HttpLLM — connects to a real backend
# ---------------------------------------------------------------------------

class HttpLLM:
    """Async streaming client for OpenAI-compatible chat completion backends.

    POST {provider_url}/v1/chat/completions with
      {"model": ..., "messages": [...], "stream": true,
       "response_format": {"type": "json_schema", "json_schema": {...}}}
    Response: text/event-stream of ``data: {"choices": [{"delta": {"content": "..."}}]}``
    lines, closed by ``data: [DONE]``.

    Args:
        provider_url:  Base URL of the backend, e.g. "https://api.openai.com".
        api_key:       Bearer token, or empty string if not required.
        model:         Model identifier. Defaults to "gpt-4o".
        timeout:       HTTP timeout in seconds. Defaults to 120.
        transport:     Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        model: str = "gpt-4o",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, prompt: str, schema: dict[str, Any]) -> tuple[str, dict]:
        """Return (url, body) for a streamed structured completion."""
        url = f"{self._base_url}/v1/chat/completions"
        body: dict[str, Any] = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": True,
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": "turn", "strict": True, "schema": schema},
            },
        }
        return url, body

    def _parse_event(self, line: str) -> str | None:
        """Extract the content delta from one SSE line, or None."""
        if not line.startswith("data:"):
            return None
        payload = line[len("data:"):].strip()
        if not payload or payload == "[DONE]":
            return None
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise LLMError("Malformed stream event from LLM backend") from e
        if "error" in data:
            raise LLMError(f"LLM backend error: {data['error']}")
        choices = data.get("choices")
        if not choices:
            return None
        return choices[0].get("delta", {}).get("content") or None

    async def stream(self, prompt: str, schema: dict[str, Any]) -> AsyncIterator[str]:
        url, body = self._build_request(prompt, schema)
        logger.debug("llm stream url=%s model=%s prompt_len=%d", url, self._model, len(prompt))

        total = 0
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                async with client.stream(
                    "POST", url, json=body, headers=self._headers()
                ) as resp:
                    resp.raise_for_status()
                    async for line in resp.aiter_lines():
                        if line.strip() == "data: [DONE]":
                            break
                        content = self._parse_event(line)
                        if content:
                            total += len(content)
                            yield content
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e

        logger.debug("llm stream done len=%d", total)


# ---------------------------------------------------------------------------
# CannedLLM — streams a fixed turn; no network calls
# ---------------------------------------------------------------------------

_CURRENT_HP = re.compile(r"HP:\s*(\d+)/100")


class CannedLLM:
    """Streams a deterministic turn in small slices.

    The hp stays at the prompt's current value and the four choices cover
    every risk tier, so the game can be played end to end without a model.
    """

    def __init__(self, chunk_size: int = 24) -> None:
        self._chunk_size = chunk_size

    def turn_for(self, prompt: str) -> dict[str, Any]:
        match = _CURRENT_HP.search(prompt)
        hp = int(match.group(1)) if match else 100
        return {
            "locationName": "Abandoned Subway Platform",
            "description": (
                "Flickering tubes buzz over a platform nobody has swept in years. "
                "A maintenance door hangs open to the north, and somewhere down "
                "the tunnel a train that should not exist is still running."
            ),
            "hp": hp,
            "hpChangeReason": None,
            "inventory": [],
            "choices": [
                {"label": "Wait quietly on the bench", "actionId": "wait", "risk": "safe"},
                {"label": "Slip through the maintenance door", "actionId": "door", "risk": "minor"},
                {"label": "Climb down onto the tracks", "actionId": "tracks", "risk": "moderate"},
                {"label": "Flag down the phantom train", "actionId": "train", "risk": "major"},
            ],
        }

    async def stream(self, prompt: str, schema: dict[str, Any]) -> AsyncIterator[str]:
        text = json.dumps(self.turn_for(prompt))
        logger.debug("CannedLLM prompt_len=%d len=%d", len(prompt), len(text))
        for start in range(0, len(text), self._chunk_size):
            yield text[start:start + self._chunk_size]


def create_llm(config: dict[str, Any]) -> LLM:
    """Build the LLM selected by config["llm_provider"]."""
    provider = config["llm_provider"]
    if provider == "openai":
        return HttpLLM(
            config["llm_base_url"],
            api_key=config["llm_api_key"],
            model=config["llm_model"],
            timeout=config["llm_timeout"],
        )
    if provider == "canned":
        return CannedLLM()
    raise ValueError(f"Unknown LLM provider: {provider!r}")


# ---------------------------------------------------------------------------
# LLMError — raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
