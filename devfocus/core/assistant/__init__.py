"""
DevFocus - AI Assistant
=======================

Task breakdown and break suggestions backed by an external LLM.
"""

from devfocus.core.assistant.client import CompletionClient
from devfocus.core.assistant.parser import (
    BreakdownOk,
    BreakdownParseError,
    BreakdownResult,
    BreakdownTransportError,
    parse_breakdown,
    strip_markup,
)
from devfocus.core.assistant.service import (
    FALLBACK_SUGGESTION,
    Assistant,
    close_assistant,
    get_assistant,
    raise_for_breakdown,
)

__all__ = [
    "FALLBACK_SUGGESTION",
    "Assistant",
    "BreakdownOk",
    "BreakdownParseError",
    "BreakdownResult",
    "BreakdownTransportError",
    "CompletionClient",
    "close_assistant",
    "get_assistant",
    "parse_breakdown",
    "raise_for_breakdown",
    "strip_markup",
]
