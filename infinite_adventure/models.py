"""Core domain models.

The Turn Requester, the turn client and the session controller all exchange
these types. Pydantic is used for validation and serialisation at every data
boundary. Wire payloads use camelCase (``locationName``, ``currentHp``);
Python code uses snake_case attributes and either form is accepted on input.
"""

from __future__ import annotations

import math
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Risk = Literal["safe", "minor", "moderate", "major"]

RISK_TIERS: tuple[Risk, ...] = ("safe", "minor", "moderate", "major")

MAX_HP = 100
MAX_CHOICES = 4
START_ACTION = "START_GAME"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Choice(WireModel):
    """One action the player can pick next."""

    label: str
    action_id: str
    risk: Risk


class TurnContent(WireModel):
    """The structured narrative + state payload produced for one turn."""

    location_name: str
    description: str
    hp: int  # not clamped here; the session controller clamps on adoption
    hp_change_reason: str | None = None
    inventory: list[str] = Field(default_factory=list)
    choices: list[Choice] = Field(default_factory=list)

    @field_validator("hp", mode="before")
    @classmethod
    def _round_hp(cls, value: Any) -> Any:
        if isinstance(value, float):
            if not math.isfinite(value):
                raise ValueError("hp must be a finite number")
            return round(value)
        return value

    @field_validator("inventory")
    @classmethod
    def _dedupe_inventory(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    @field_validator("choices", mode="before")
    @classmethod
    def _cap_choices(cls, value: Any) -> Any:
        if isinstance(value, list):
            return value[:MAX_CHOICES]
        return value


class TurnRecord(WireModel):
    """One player action and the turn it produced.

    ``result`` is None only on the pending record sent along with a request.
    """

    model_config = ConfigDict(frozen=True)

    action: str
    result: TurnContent | None = None


class TurnRequest(WireModel):
    """POST body of the Turn Requester."""

    history: list[TurnRecord] = Field(default_factory=list)
    current_hp: int = MAX_HP
    inventory: list[str] = Field(default_factory=list)

    @property
    def last_action(self) -> str:
        if not self.history:
            return START_ACTION
        return self.history[-1].action or START_ACTION


class PersistedSave(BaseModel):
    """Row upserted into the save store after every finished turn."""

    session_id: UUID
    history: list[TurnRecord]
    hp: int
    inventory: list[str]
    location_name: str
    last_updated: str

    def to_row(self) -> dict[str, Any]:
        row = self.model_dump(mode="json", exclude={"history"})
        row["history"] = [record.to_wire() for record in self.history]
        return row


# JSON schema handed to the completion service for structured output.
# Kept explicit rather than generated so strict-mode requirements
# (every property required, no additional properties) hold.
TURN_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "required": [
        "locationName", "description", "hp",
        "hpChangeReason", "inventory", "choices",
    ],
    "properties": {
        "locationName": {
            "type": "string",
            "description": "Short location name (2-4 words)",
        },
        "description": {
            "type": "string",
            "description": "Engaging description (3-5 sentences, 80-120 words)",
        },
        "hp": {
            "type": "integer",
            "description": (
                "The player's new Health Points (0-100). Decrease this if the "
                "player makes a mistake or takes damage."
            ),
        },
        "hpChangeReason": {
            "type": ["string", "null"],
            "description": "Brief reason for HP change (1 sentence). Return null if no change.",
        },
        "inventory": {"type": "array", "items": {"type": "string"}},
        "choices": {
            "type": "array",
            "maxItems": MAX_CHOICES,
            "items": {
                "type": "object",
                "additionalProperties": False,
                "required": ["label", "actionId", "risk"],
                "properties": {
                    "label": {
                        "type": "string",
                        "description": "Short action label (5-8 words max)",
                    },
                    "actionId": {"type": "string"},
                    "risk": {
                        "type": "string",
                        "enum": list(RISK_TIERS),
                        "description": "Risk level of this choice",
                    },
                },
            },
        },
    },
}
