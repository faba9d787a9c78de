"""Best-effort decoding of a JSON object that is still being streamed."""

from __future__ import annotations

import re
from typing import Any

from pydantic_core import from_json

# A number literal running up to the end of the buffer may still be growing
# ("4" before "45"), so it is held back until a delimiter arrives.
_TRAILING_NUMBER = re.compile(r"(?<=[:\[,])(\s*)-?[0-9][0-9.eE+-]*$")


def parse_partial(text: str) -> dict[str, Any] | None:
    """Decode the JSON object prefix in ``text``.

    Returns the snapshot dict, or None when nothing object-shaped can be
    recovered yet, or when the text holds a NaN or Infinity literal.
    Unfinished trailing strings are included so the description can render
    while it streams.
    """
    if not text.strip():
        return None
    trimmed = _TRAILING_NUMBER.sub(r"\1", text)
    try:
        value = from_json(trimmed, allow_inf_nan=False, allow_partial="trailing-strings")
    except ValueError:
        return None
    if not isinstance(value, dict):
        return None
    return value
