"""Handlebars prompt rendering for the game-master turn prompt."""

from collections.abc import Callable
from typing import Any

import pybars

from infinite_adventure.models import START_ACTION, TurnRecord

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}

# hp lost per risk tier; the model is handed the resulting numbers verbatim
RISK_DAMAGE: dict[str, int] = {"safe": 0, "minor": 10, "moderate": 20, "major": 40}

RECENT_TURNS = 10


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


TURN_PROMPT = """\
You are an ENGAGING text adventure game master. Create immersive, dramatic scenarios.

Current State:
- HP: {{hp}}/100
- Inventory: {{{inventory}}}
- Last Action: "{{{last_action}}}"
{{#if recent}}

Story So Far:
{{#each recent}}
Player Action: {{{action}}} | Result: {{{result}}}
{{/each}}
{{/if}}

STORYTELLING RULES:
1. Write engaging descriptions (3-5 sentences, 80-120 words)
2. Be vivid and immersive
3. Create tension and atmosphere
4. Focus on immediate situation

HP SYSTEM - CRITICAL:
You MUST return the CALCULATED new HP value:
- Safe actions: Return hp: {{outcomes.safe}} (no change)
- Minor risk: Return hp: {{outcomes.minor}} (subtract 8-12)
- Moderate risk: Return hp: {{outcomes.moderate}} (subtract 18-25)
- Major risk: Return hp: {{outcomes.major}} (subtract 35-50)

EXAMPLES:
- If current HP is {{hp}} and player takes minor damage, return hp: {{outcomes.minor}}
- If current HP is {{hp}} and player takes moderate damage, return hp: {{outcomes.moderate}}
- If current HP is {{hp}} and player takes major damage, return hp: {{outcomes.major}}

Provide brief hpChangeReason when HP changes; return null when it does not.
If HP reaches 0, write short death scene, return empty choices [].

CHOICES:
- Give between 1 and 4 diverse choices (4 preferred) with clear risk levels
- Label each choice with correct risk: 'safe', 'minor', 'moderate', or 'major'
- Make risky choices actually cause HP loss

Create ENGAGING modern scenarios: heists, escapes, mysteries, survival situations.
"""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def hp_outcomes(current_hp: int) -> dict[str, int]:
    """Post-turn hp for every risk tier, floored at 0."""
    return {tier: max(0, current_hp - damage) for tier, damage in RISK_DAMAGE.items()}


def build_turn_context(
    history: list[TurnRecord],
    current_hp: int,
    inventory: list[str],
) -> dict[str, Any]:
    """Assemble template variables for TURN_PROMPT."""
    last_action = history[-1].action if history else START_ACTION

    recent = []
    for record in history[-RECENT_TURNS:]:
        if record.result is None:
            continue
        recent.append({
            "action": record.action,
            "result": f"{record.result.location_name}: {record.result.description}",
        })

    # numbers go in as strings: a bare 0 would render as an empty value
    return {
        "hp": str(current_hp),
        "inventory": ", ".join(inventory) if inventory else "nothing",
        "last_action": last_action or START_ACTION,
        "outcomes": {tier: str(hp) for tier, hp in hp_outcomes(current_hp).items()},
        "recent": recent,
    }


def build_turn_prompt(
    history: list[TurnRecord], current_hp: int, inventory: list[str]
) -> str:
    return render_prompt(TURN_PROMPT, build_turn_context(history, current_hp, inventory))
