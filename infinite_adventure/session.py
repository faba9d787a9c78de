"""Session controller — the client-side state machine for one play-through.

Phases:

    BOOT ──boot()──▶ IDLE ──submit()──▶ AWAITING_TURN ──partial──▶ STREAMING
                      ▲                      │                         │
                      └──────── finish (hp > 0) ◀──────────────────────┘
                                             │
                      finish (hp <= 0) ──▶ DEAD ──restart()──▶ BOOT
                      stream ended early
                      or bad turn data ──▶ FAILED ──retry()──▶ AWAITING_TURN

Turn flow (submit):
  1. Reject when dead, busy, failed or not booted.
  2. Evaluate achievements against the pre-turn counters (turn count, hp
     and inventory), then bump the turn count.
  3. Request the turn with the history plus a pending record for the action.
  4. Each partial snapshot becomes the live projection; a lower hp than the
     one on screen fires a damage pulse straight away.
  5. On finish the clamped hp and the inventory are adopted, the record is
     appended to history and the save runs in the background.

All state lives on the controller so it can be driven without any UI.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from infinite_adventure import achievements
from infinite_adventure.client import TurnFailedError, TurnSource
from infinite_adventure.models import (
    MAX_HP,
    START_ACTION,
    PersistedSave,
    TurnContent,
    TurnRecord,
    TurnRequest,
)
from infinite_adventure.storage import NullSaveStore, SaveStore

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    BOOT = "boot"
    IDLE = "idle"
    AWAITING_TURN = "awaiting_turn"
    STREAMING = "streaming"
    FAILED = "failed"
    DEAD = "dead"


@dataclass
class SessionState:
    session_id: UUID
    history: list[TurnRecord] = field(default_factory=list)
    hp: int = MAX_HP
    inventory: list[str] = field(default_factory=list)
    turn_count: int = 0
    achievements: list[str] = field(default_factory=list)


def clamp_hp(value: int | float) -> int:
    return max(0, min(MAX_HP, round(value)))


class SessionController:
    """Owns one session and drives turns against a TurnSource.

    Args:
        turns:       Where turns come from (HttpTurnClient in production).
        saves:       Save store for finished turns. Defaults to NullSaveStore.
        new_id:      Session id factory. Defaults to uuid4.
    """

    def __init__(
        self,
        turns: TurnSource,
        saves: SaveStore | None = None,
        new_id: Callable[[], UUID] = uuid4,
    ) -> None:
        self._turns = turns
        self._saves = saves or NullSaveStore()
        self._new_id = new_id
        self._listeners: list[Callable[[int], None]] = []
        self._snapshot_listeners: list[Callable[[dict[str, Any]], None]] = []
        self._save_tasks: set[asyncio.Task] = set()
        self._reset()

    def _reset(self) -> None:
        self._phase = Phase.BOOT
        self._state: SessionState | None = None
        self._display_hp = MAX_HP
        self._live: dict[str, Any] | None = None
        self._last: TurnContent | None = None
        self._pending_action: str | None = None
        self.error: str | None = None
        self.damage_pulses = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def boot(self) -> UUID:
        """Start a fresh session. No earlier save is ever loaded."""
        self._reset()
        self._state = SessionState(session_id=self._new_id())
        self._phase = Phase.IDLE
        logger.info("session booted id=%s", self._state.session_id)
        return self._state.session_id

    def restart(self) -> bool:
        """Discard everything and boot under a new session id.

        Not possible while a turn is in flight; the old save row is left
        as it is.
        """
        if self.busy:
            return False
        self.boot()
        return True

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def state(self) -> SessionState:
        assert self._state is not None, "Call boot() before using the session"
        return self._state

    @property
    def session_id(self) -> UUID | None:
        return self._state.session_id if self._state else None

    @property
    def busy(self) -> bool:
        return self._phase in (Phase.AWAITING_TURN, Phase.STREAMING)

    @property
    def is_dead(self) -> bool:
        return self._phase is Phase.DEAD

    @property
    def display_hp(self) -> int:
        return self._display_hp

    @property
    def pending_action(self) -> str | None:
        return self._pending_action

    @property
    def current(self) -> dict[str, Any]:
        """What the screen shows: live snapshot, else last turn, else history."""
        if self._live is not None:
            return self._live
        if self._last is not None:
            return self._last.to_wire()
        if self._state and self._state.history:
            result = self._state.history[-1].result
            if result is not None:
                return result.to_wire()
        return {}

    def add_damage_listener(self, callback: Callable[[int], None]) -> None:
        self._listeners.append(callback)

    def add_snapshot_listener(self, callback: Callable[[dict[str, Any]], None]) -> None:
        """Call ``callback(snapshot)`` for every partial snapshot while streaming."""
        self._snapshot_listeners.append(callback)

    # ------------------------------------------------------------------
    # Player input
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        return await self.submit(START_ACTION)

    async def use_item(self, item: str) -> bool:
        if self._state is None or item not in self._state.inventory:
            return False
        return await self.submit(f"Use {item}")

    async def submit(self, action: str) -> bool:
        """Play one turn. Returns False when the action is not accepted."""
        if self._phase is not Phase.IDLE or self.state.hp <= 0:
            logger.debug("action rejected phase=%s action=%r", self._phase.value, action)
            return False

        state = self.state
        unlocked = achievements.evaluate(
            state.achievements, state.turn_count, state.hp, state.inventory
        )
        state.turn_count += 1
        for name in unlocked:
            logger.info("achievement unlocked: %s", name)
        state.achievements.extend(unlocked)

        await self._play(action)
        return True

    async def retry(self) -> bool:
        """Re-request the action whose turn failed."""
        if self._phase is not Phase.FAILED or self._pending_action is None:
            return False
        await self._play(self._pending_action)
        return True

    # ------------------------------------------------------------------
    # Turn handling
    # ------------------------------------------------------------------

    async def _play(self, action: str) -> None:
        state = self.state
        pre_hp = state.hp
        request = TurnRequest(
            history=[*state.history, TurnRecord(action=action)],
            current_hp=pre_hp,
            inventory=list(state.inventory),
        )
        self._pending_action = action
        self._phase = Phase.AWAITING_TURN
        self._live = None
        self.error = None

        final: TurnContent | None = None
        try:
            async for update in self._turns.stream_turn(request):
                if update.final is not None:
                    final = update.final
                else:
                    self._preview(update.snapshot)
        except TurnFailedError as e:
            self._fail(str(e))
            return
        except Exception as e:
            logger.exception("unexpected error while streaming action=%r", action)
            self._fail(f"Turn could not be read: {e}")
            return

        if final is None:
            self._fail("Turn stream ended before the turn was complete")
            return
        self._adopt(action, final, pre_hp)

    def _preview(self, snapshot: dict[str, Any]) -> None:
        self._phase = Phase.STREAMING
        self._live = snapshot
        for callback in self._snapshot_listeners:
            callback(snapshot)
        hp = snapshot.get("hp")
        if isinstance(hp, bool) or not isinstance(hp, (int, float)) or not math.isfinite(hp):
            return
        shown = clamp_hp(hp)
        if shown < self._display_hp:
            self._pulse(shown)
        self._display_hp = shown

    def _adopt(self, action: str, final: TurnContent, pre_hp: int) -> None:
        state = self.state
        hp = clamp_hp(final.hp)
        if hp != final.hp:
            logger.warning("model returned hp=%d, clamped to %d", final.hp, hp)
            final = final.model_copy(update={"hp": hp})
        if hp < pre_hp:
            self._pulse(hp)

        state.hp = hp
        state.inventory = list(final.inventory)
        state.history.append(TurnRecord(action=action, result=final))
        self._display_hp = hp
        self._last = final
        self._live = None
        self._pending_action = None
        self._phase = Phase.DEAD if hp <= 0 else Phase.IDLE
        logger.info(
            "turn %d finished hp=%d location=%r", state.turn_count, hp, final.location_name
        )
        self._schedule_save(final)

    def _fail(self, message: str) -> None:
        logger.warning("turn failed action=%r: %s", self._pending_action, message)
        self.error = message
        self._live = None
        self._display_hp = self.state.hp
        self._phase = Phase.FAILED

    def _pulse(self, hp: int) -> None:
        self.damage_pulses += 1
        for callback in self._listeners:
            callback(hp)

    # ------------------------------------------------------------------
    # Persistence (fire-and-forget)
    # ------------------------------------------------------------------

    def _schedule_save(self, final: TurnContent) -> None:
        state = self.state
        save = PersistedSave(
            session_id=state.session_id,
            history=list(state.history),
            hp=state.hp,
            inventory=list(state.inventory),
            location_name=final.location_name,
            last_updated=datetime.now(timezone.utc).isoformat(),
        )
        task = asyncio.create_task(self._save(save))
        self._save_tasks.add(task)
        task.add_done_callback(self._save_tasks.discard)

    async def _save(self, save: PersistedSave) -> None:
        try:
            await self._saves.upsert(save)
        except Exception:
            logger.warning("save failed session=%s", save.session_id, exc_info=True)

    async def flush_saves(self) -> None:
        """Wait for every save scheduled so far."""
        if self._save_tasks:
            await asyncio.gather(*list(self._save_tasks))
