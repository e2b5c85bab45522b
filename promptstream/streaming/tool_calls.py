"""
promptstream - Tool Call Reassembly

Reconstructs complete tool calls from streamed ``ToolCallDelta`` events.

Tool calls arrive in pieces:
1. A first delta with the call id and function name
2. Many deltas carrying partial argument JSON
3. Deltas for different calls may interleave; each index is tracked on its own

Finalizing parses each call's buffer separately, so one malformed call never
poisons the others.
"""

import json
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..core.models import ToolCall
from .events import ToolCallDelta


@dataclass
class ToolCallFragment:
    """
    Accumulation state for one tool call index.

    ``id`` and ``name`` are last-write-wins; argument fragments are appended
    strictly in arrival order.
    """
    index: int
    id: Optional[str] = None
    name: Optional[str] = None
    buffer: str = ""

    def update(self, delta: ToolCallDelta):
        """Update with new delta data."""
        if delta.id:
            self.id = delta.id
        if delta.name:
            self.name = delta.name
        if delta.arguments_fragment:
            self.buffer += delta.arguments_fragment

    def finalize(self) -> ToolCall:
        """Parse the buffered arguments into a ToolCall."""
        if not self.buffer.strip():
            return ToolCall(index=self.index, id=self.id, name=self.name, arguments={})

        try:
            arguments = json.loads(self.buffer)
        except json.JSONDecodeError as e:
            return ToolCall(
                index=self.index,
                id=self.id,
                name=self.name,
                arguments=None,
                error=f"Invalid arguments JSON: {e}",
                raw_arguments=self.buffer,
            )

        return ToolCall(
            index=self.index,
            id=self.id,
            name=self.name,
            arguments=arguments,
            raw_arguments=self.buffer,
        )


class ToolCallReassembler:
    """
    Tracks every tool call of one response.

    A single response can contain several parallel tool calls, each keyed by
    the provider's index.
    """

    def __init__(self):
        self._fragments: Dict[int, ToolCallFragment] = {}

    def add(self, delta: ToolCallDelta):
        """
        Apply a delta to the fragment at its index.

        Creates the fragment on first sighting.
        """
        fragment = self._fragments.get(delta.index)
        if fragment is None:
            fragment = self._fragments[delta.index] = ToolCallFragment(index=delta.index)
        fragment.update(delta)

    def get_fragment(self, index: int) -> Optional[ToolCallFragment]:
        return self._fragments.get(index)

    def finalize(self) -> Dict[int, ToolCall]:
        """
        Finalize every tracked call, ordered by index.

        Does not consume state; calling it again yields equal results.
        """
        return {
            index: self._fragments[index].finalize()
            for index in sorted(self._fragments)
        }

    def has_calls(self) -> bool:
        """Check if any tool calls are being tracked."""
        return len(self._fragments) > 0

    def call_count(self) -> int:
        """Get number of tracked tool calls."""
        return len(self._fragments)


def reassemble(events: Iterable[object]) -> List[ToolCall]:
    """
    Reassemble the tool calls found in an event sequence.

    Events other than ``ToolCallDelta`` are skipped.
    """
    reassembler = ToolCallReassembler()
    for event in events:
        if isinstance(event, ToolCallDelta):
            reassembler.add(event)
    return list(reassembler.finalize().values())
