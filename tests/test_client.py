"""Tests for HttpTurnClient — streaming, snapshots and failed turns."""

import json

import httpx
import pytest

from backend.app import create_app
from backend.llm import CannedLLM
from infinite_adventure.client import HttpTurnClient, TurnFailedError, finish_turn
from infinite_adventure.models import TurnRecord, TurnRequest
from infinite_adventure.session import Phase, SessionController
from tests.stubs import RecordingStore

TURN = {
    "locationName": "Server Room",
    "description": "Fans roar behind the racks.",
    "hp": 80,
    "hpChangeReason": "A live cable bit you.",
    "inventory": ["Keycard"],
    "choices": [
        {"label": "Pull the plug", "actionId": "plug", "risk": "moderate"},
        {"label": "Back away", "actionId": "back", "risk": "safe"},
    ],
}


def _chunked(chunks: list[str], status: int = 200, seen: list | None = None):
    async def body():
        for chunk in chunks:
            yield chunk.encode()

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, content=body())

    return httpx.MockTransport(handler)


async def _updates(client: HttpTurnClient, request: TurnRequest | None = None) -> list:
    return [u async for u in client.stream_turn(request or TurnRequest())]


async def test_yields_snapshots_then_final():
    text = json.dumps(TURN)
    chunks = [text[i:i + 15] for i in range(0, len(text), 15)]
    client = HttpTurnClient("http://game.test", transport=_chunked(chunks))

    updates = await _updates(client)

    assert all(u.final is None for u in updates[:-1])
    assert updates[-1].finished
    assert updates[-1].final.hp == 80
    assert updates[-1].final.inventory == ["Keycard"]
    partial_locations = [u.snapshot.get("locationName") for u in updates[:-1]]
    assert "Server Room" in partial_locations


async def test_duplicate_snapshots_are_skipped():
    text = json.dumps(TURN)
    chunks = [text[:30], "", "", text[30:]]
    client = HttpTurnClient("http://game.test", transport=_chunked(chunks))
    updates = await _updates(client)
    snapshots = [json.dumps(u.snapshot, sort_keys=True) for u in updates[:-1]]
    assert len(snapshots) == len(set(snapshots))


async def test_posts_wire_body():
    seen: list[httpx.Request] = []
    client = HttpTurnClient("http://game.test/", transport=_chunked([json.dumps(TURN)], seen=seen))
    request = TurnRequest(
        history=[TurnRecord(action="START_GAME")], current_hp=65, inventory=["Keycard"]
    )
    await _updates(client, request)

    assert str(seen[0].url) == "http://game.test/api/game"
    body = json.loads(seen[0].content)
    assert body == {
        "history": [{"action": "START_GAME", "result": None}],
        "currentHp": 65,
        "inventory": ["Keycard"],
    }


async def test_truncated_stream_fails():
    text = json.dumps(TURN)
    client = HttpTurnClient("http://game.test", transport=_chunked([text[:40]]))
    with pytest.raises(TurnFailedError, match="ended before"):
        await _updates(client)


async def test_empty_stream_fails():
    client = HttpTurnClient("http://game.test", transport=_chunked([]))
    with pytest.raises(TurnFailedError):
        await _updates(client)


async def test_http_error_fails():
    client = HttpTurnClient("http://game.test", transport=_chunked(["oops"], status=500))
    with pytest.raises(TurnFailedError, match="HTTP 500"):
        await _updates(client)


async def test_unreachable_server_fails():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = HttpTurnClient("http://game.test", transport=httpx.MockTransport(handler))
    with pytest.raises(TurnFailedError, match="Cannot reach"):
        await _updates(client)


def test_finish_turn_rejects_invalid_object():
    with pytest.raises(TurnFailedError):
        finish_turn('{"locationName": "Somewhere"}')


@pytest.mark.parametrize("hp", ["1e400", "-1e400", "NaN"])
def test_finish_turn_rejects_non_finite_hp(hp):
    text = json.dumps(TURN).replace('"hp": 80', f'"hp": {hp}')
    with pytest.raises(TurnFailedError):
        finish_turn(text)


async def test_overflowing_hp_fails_the_turn():
    text = json.dumps(TURN).replace('"hp": 80', '"hp": 1e400')
    transport = _chunked([text])
    controller = SessionController(HttpTurnClient("http://game.test", transport=transport))
    controller.boot()

    await controller.start()

    assert controller.phase is Phase.FAILED
    assert controller.restart() is True


async def test_session_against_real_endpoint():
    """Controller → HttpTurnClient → FastAPI endpoint → CannedLLM."""
    transport = httpx.ASGITransport(app=create_app(llm=CannedLLM()))
    store = RecordingStore()
    controller = SessionController(HttpTurnClient("http://game.test", transport=transport), store)
    controller.boot()

    assert await controller.start() is True
    await controller.flush_saves()

    assert controller.phase is Phase.IDLE
    assert controller.state.hp == 100
    assert controller.current["locationName"] == "Abandoned Subway Platform"
    assert 1 <= len(controller.current["choices"]) <= 4
    assert store.saves[0].location_name == "Abandoned Subway Platform"
