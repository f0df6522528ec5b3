"""
Breakdown Output Parser
=======================

Turns the provider's free text into a validated breakdown, or a tagged
failure. Nothing partially parsed ever reaches the domain model.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from devfocus.core.schemas import BreakdownItem


# ==========================================================================
# Tagged Results
# ==========================================================================

@dataclass
class BreakdownOk:
    items: list[BreakdownItem]


@dataclass
class BreakdownParseError:
    reason: str
    raw: str = field(default="", repr=False)


@dataclass
class BreakdownTransportError:
    reason: str


BreakdownResult = Union[BreakdownOk, BreakdownParseError, BreakdownTransportError]


# ==========================================================================
# Parsing
# ==========================================================================

# ```json ... ``` or ``` ... ``` fences around the payload
FENCE_PATTERN = re.compile(r"^```[a-zA-Z]*\s*\n?|\n?```\s*$")

_items_adapter = TypeAdapter(list[BreakdownItem])


def strip_markup(text: str) -> str:
    """Remove Markdown code fences the model sometimes wraps JSON in."""
    cleaned = text.strip()
    cleaned = FENCE_PATTERN.sub("", cleaned)
    return cleaned.replace("```", "").strip()


def parse_breakdown(text: str) -> BreakdownResult:
    """
    Parse and structurally validate a breakdown.

    Accepts a JSON array of items, or an object with the array under
    ``breakdown``. Items are re-numbered from 1 in the order given by their
    index.
    """
    cleaned = strip_markup(text)
    if not cleaned:
        return BreakdownParseError("empty response", raw=text)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        return BreakdownParseError(f"response is not JSON: {e.msg}", raw=text)

    if isinstance(data, dict) and "breakdown" in data:
        data = data["breakdown"]

    if not isinstance(data, list):
        return BreakdownParseError("response is not a JSON array", raw=text)

    if not data:
        return BreakdownParseError("response contains no subtasks", raw=text)

    try:
        items = _items_adapter.validate_python(data)
    except PydanticValidationError as e:
        return BreakdownParseError(
            f"invalid subtask structure: {e.error_count()} error(s)", raw=text
        )

    items.sort(key=lambda item: item.index)
    for position, item in enumerate(items, start=1):
        item.index = position
        item.completed = False

    return BreakdownOk(items=items)
