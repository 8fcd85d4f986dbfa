"""
Assembles streaming tool-call deltas into complete ToolCall objects.

Design goals:
  - Accumulate ``ToolCallDelta`` fragments keyed by ``index``.
  - The first non-empty ``name`` (and ``id``) for an index is kept; later
    values never overwrite it.
  - Argument fragments are concatenated in arrival order, never reordered.
  - On finalization, attempt to JSON-parse each accumulated argument string.
    A failure is attached to that call as a ``ToolArgumentParseError`` so
    well-formed siblings still come through.
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Iterable, Sequence

from ollie.errors import ToolArgumentParseError
from ollie.llm.types import ToolCall, ToolCallDelta

logger = logging.getLogger(__name__)


def merge_tool_calls(
    existing: Sequence[ToolCall],
    deltas: Iterable[ToolCallDelta],
) -> list[ToolCall]:
    """
    Fold *deltas* into *existing* and return the updated calls.

    Neither input is mutated.  The result is ordered by ``index``.
    """
    by_index: dict[int, ToolCall] = {tc.index: tc for tc in existing}

    for delta in deltas:
        tc = by_index.get(delta.index)
        if tc is None:
            tc = ToolCall(index=delta.index)

        updates: dict = {}
        if delta.name and not tc.name:
            updates["name"] = delta.name
        if delta.id and not tc.id:
            updates["id"] = delta.id
        if delta.arguments:
            updates["arguments"] = tc.arguments + delta.arguments

        by_index[delta.index] = replace(tc, **updates) if updates else tc

    return [by_index[idx] for idx in sorted(by_index)]


def finalize_tool_calls(calls: Iterable[ToolCall]) -> list[ToolCall]:
    """
    Parse every argument buffer.

    An empty buffer parses to ``{}``.  Anything that is not a JSON object
    gets a ``ToolArgumentParseError`` attached instead of ``parsed``.
    """
    finalized: list[ToolCall] = []
    for tc in calls:
        call_id = tc.id or f"call_{tc.index}"
        raw = tc.arguments.strip() or "{}"
        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, ValueError) as exc:
            error = ToolArgumentParseError(
                f"tool_call_json_parse_failed idx={tc.index} err={exc}",
                index=tc.index,
                raw=tc.arguments,
            )
            logger.warning("Tool call %r has malformed arguments: %s", tc.name, exc)
            finalized.append(replace(tc, id=call_id, parsed=None, error=error))
            continue

        if not isinstance(parsed, dict):
            error = ToolArgumentParseError(
                f"tool_call_arguments_not_object idx={tc.index} "
                f"type={type(parsed).__name__}",
                index=tc.index,
                raw=tc.arguments,
            )
            logger.warning("Tool call %r arguments are not an object", tc.name)
            finalized.append(replace(tc, id=call_id, parsed=None, error=error))
            continue

        finalized.append(replace(tc, id=call_id, parsed=parsed, error=None))
    return finalized


class ToolCallAssembler:
    """Buffers tool-call deltas and emits finished ``ToolCall`` objects."""

    def __init__(self) -> None:
        self._calls: list[ToolCall] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def feed(self, deltas: Iterable[ToolCallDelta]) -> None:
        """Merge one frame's worth of deltas into the buffer."""
        self._calls = merge_tool_calls(self._calls, deltas)

    @property
    def calls(self) -> list[ToolCall]:
        """Calls accumulated so far, not yet parsed."""
        return list(self._calls)

    def finalize(self) -> list[ToolCall]:
        """Parse all buffered calls.  Malformed ones carry an ``error``."""
        return finalize_tool_calls(self._calls)

    def reset(self) -> None:
        """Discard all accumulated state."""
        self._calls = []
