"""Achievements unlocked from local session counters."""

from __future__ import annotations

FIRST_STEPS = "First Steps"
SURVIVOR = "Survivor"
UNTOUCHABLE = "Untouchable"
HOARDER = "Hoarder"

# Display order and blurb for each achievement.
ACHIEVEMENTS: dict[str, str] = {
    FIRST_STEPS: "5 turns",
    SURVIVOR: "20 turns",
    UNTOUCHABLE: "No damage",
    HOARDER: "5+ items",
}


def evaluate(
    unlocked: list[str], turn_count: int, hp: int, inventory: list[str]
) -> list[str]:
    """Return the achievements newly unlocked by the given counters.

    Called when a choice is submitted, before the new action is counted:
    ``turn_count``, ``hp`` and ``inventory`` are all pre-turn values.
    Anything already in ``unlocked`` is never returned again.
    """
    earned: list[str] = []
    if turn_count == 5:
        earned.append(FIRST_STEPS)
    if turn_count == 20:
        earned.append(SURVIVOR)
    if hp == 100 and turn_count > 10:
        earned.append(UNTOUCHABLE)
    if len(inventory) >= 5:
        earned.append(HOARDER)
    return [name for name in earned if name not in unlocked]
