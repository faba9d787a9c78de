"""Turn client — streams one turn from the Turn Requester.

The session controller consumes any object matching the protocol:

    def stream_turn(self, request: TurnRequest) -> AsyncIterator[TurnUpdate]: ...

Every update carries the latest partial snapshot. The last update of a
successful stream also carries ``final``, the validated TurnContent. A stream
that closes before a complete object arrives raises TurnFailedError; the
caller decides whether to retry.

HttpTurnClient is the real implementation. Tests use a scripted source
instead.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from infinite_adventure.models import TurnContent, TurnRequest
from infinite_adventure.partial import parse_partial

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TurnUpdate:
    snapshot: dict[str, Any] = field(default_factory=dict)
    final: TurnContent | None = None

    @property
    def finished(self) -> bool:
        return self.final is not None


# ---------------------------------------------------------------------------
# Protocol — every turn source must match this signature
# ---------------------------------------------------------------------------

class TurnSource(Protocol):
    def stream_turn(self, request: TurnRequest) -> AsyncIterator[TurnUpdate]: ...


# ---------------------------------------------------------------------------
# HttpTurnClient — talks to the /api/game endpoint
# ---------------------------------------------------------------------------

class HttpTurnClient:
    """Streams POST {api_url}/api/game and decodes partial snapshots.

    Args:
        api_url:    Base URL of the game server, e.g. "http://localhost:13013".
        timeout:    HTTP timeout in seconds. Defaults to 120.
        transport:  Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        api_url: str,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = f"{api_url.rstrip('/')}/api/game"
        self._timeout = timeout
        self._transport = transport

    async def stream_turn(self, request: TurnRequest) -> AsyncIterator[TurnUpdate]:
        body = request.to_wire()
        logger.debug(
            "turn request history=%d hp=%d", len(request.history), request.current_hp
        )
        buffer = ""
        last: dict[str, Any] | None = None
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                async with client.stream("POST", self._url, json=body) as resp:
                    resp.raise_for_status()
                    async for chunk in resp.aiter_text():
                        buffer += chunk
                        snapshot = parse_partial(buffer)
                        if snapshot is not None and snapshot != last:
                            last = snapshot
                            yield TurnUpdate(snapshot=snapshot)
        except httpx.HTTPStatusError as e:
            raise TurnFailedError(
                f"Game server returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise TurnFailedError(f"Game server timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise TurnFailedError(f"Cannot reach game server: {e}") from e

        yield TurnUpdate(snapshot=last or {}, final=finish_turn(buffer))


def finish_turn(text: str) -> TurnContent:
    """Validate the complete stream text as the turn's final object."""
    try:
        return TurnContent.model_validate_json(text)
    except ValidationError as e:
        logger.warning("turn stream ended without a complete object (%d chars)", len(text))
        raise TurnFailedError("Turn stream ended before the turn was complete") from e


# ---------------------------------------------------------------------------
# TurnFailedError — the stream ended without a finish event
# ---------------------------------------------------------------------------

class TurnFailedError(RuntimeError):
    """Raised when a turn cannot be completed; the same action may be retried."""
