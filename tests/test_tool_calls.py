"""
promptstream - Tool Call Reassembly Tests

Verifies:
- Fragments accumulate per index, in arrival order
- Interleaved parallel calls do not mix
- One malformed call never affects the others
- Finalizing is repeatable
"""

from promptstream.core.models import ToolCall
from promptstream.streaming.events import Content, Done, ToolCallDelta
from promptstream.streaming.tool_calls import (
    ToolCallFragment,
    ToolCallReassembler,
    reassemble,
)


class TestToolCallFragment:
    """Test single-index accumulation."""

    def test_update_appends_arguments(self):
        """Argument fragments should be appended in order."""
        fragment = ToolCallFragment(index=0)
        fragment.update(ToolCallDelta(0, id="call_1", name="get_weather"))
        fragment.update(ToolCallDelta(0, arguments_fragment='{"city": '))
        fragment.update(ToolCallDelta(0, arguments_fragment='"Paris"}'))

        assert fragment.id == "call_1"
        assert fragment.name == "get_weather"
        assert fragment.buffer == '{"city": "Paris"}'

    def test_id_and_name_last_write_wins(self):
        """A later non-empty id or name replaces the earlier one."""
        fragment = ToolCallFragment(index=0)
        fragment.update(ToolCallDelta(0, id="call_old", name="old"))
        fragment.update(ToolCallDelta(0, id="call_new"))
        fragment.update(ToolCallDelta(0, name="new"))

        assert fragment.id == "call_new"
        assert fragment.name == "new"

    def test_finalize_parses_arguments(self):
        """A complete buffer should parse into arguments."""
        fragment = ToolCallFragment(index=2, id="c", name="f", buffer='{"n": 1}')

        call = fragment.finalize()

        assert call.ok
        assert call.index == 2
        assert call.arguments == {"n": 1}

    def test_whitespace_buffer_is_empty_object(self):
        """A call without arguments gets an empty object."""
        call = ToolCallFragment(index=0, name="ping", buffer="   ").finalize()

        assert call.ok
        assert call.arguments == {}

    def test_malformed_buffer(self):
        """Invalid JSON should be recorded on the call, not raised."""
        call = ToolCallFragment(index=0, name="f", buffer='{"city": "Par').finalize()

        assert not call.ok
        assert call.arguments is None
        assert call.error.startswith("Invalid arguments JSON")
        assert call.raw_arguments == '{"city": "Par'


class TestToolCallReassembler:
    """Test multi-call reassembly."""

    def test_interleaved_calls(self):
        """Fragments of parallel calls should stay with their index."""
        reassembler = ToolCallReassembler()
        for delta in [
            ToolCallDelta(0, id="call_a", name="lookup"),
            ToolCallDelta(1, id="call_b", name="search"),
            ToolCallDelta(1, arguments_fragment='{"q": '),
            ToolCallDelta(0, arguments_fragment='{"id": '),
            ToolCallDelta(0, arguments_fragment="7}"),
            ToolCallDelta(1, arguments_fragment='"cats"}'),
        ]:
            reassembler.add(delta)

        calls = reassembler.finalize()

        assert calls[0].arguments == {"id": 7}
        assert calls[1].arguments == {"q": "cats"}
        assert reassembler.call_count() == 2

    def test_ordered_by_index(self):
        """Finalized calls should be ordered by index, not arrival."""
        reassembler = ToolCallReassembler()
        reassembler.add(ToolCallDelta(3, name="c", arguments_fragment="{}"))
        reassembler.add(ToolCallDelta(1, name="a", arguments_fragment="{}"))
        reassembler.add(ToolCallDelta(2, name="b", arguments_fragment="{}"))

        assert list(reassembler.finalize()) == [1, 2, 3]

    def test_malformed_call_isolated(self):
        """One malformed call should not affect its siblings."""
        reassembler = ToolCallReassembler()
        reassembler.add(ToolCallDelta(0, name="good", arguments_fragment='{"ok": true}'))
        reassembler.add(ToolCallDelta(1, name="bad", arguments_fragment='{"ok": tru'))

        calls = reassembler.finalize()

        assert calls[0].ok
        assert calls[0].arguments == {"ok": True}
        assert not calls[1].ok

    def test_finalize_is_idempotent(self):
        """Finalizing twice should give equal results."""
        reassembler = ToolCallReassembler()
        reassembler.add(ToolCallDelta(0, id="call_1", name="f", arguments_fragment='{"x": 1}'))

        assert reassembler.finalize() == reassembler.finalize()

    def test_empty(self):
        """No deltas means no calls."""
        reassembler = ToolCallReassembler()

        assert not reassembler.has_calls()
        assert reassembler.finalize() == {}
        assert reassembler.get_fragment(0) is None


class TestReassemble:
    """Test the event-sequence convenience."""

    def test_skips_other_events(self):
        """Only ToolCallDelta events should contribute."""
        events = [
            Content("thinking"),
            ToolCallDelta(0, id="call_1", name="get_weather"),
            ToolCallDelta(0, arguments_fragment='{"city": "Paris"}'),
            Done(),
        ]

        assert reassemble(events) == [
            ToolCall(
                index=0,
                id="call_1",
                name="get_weather",
                arguments={"city": "Paris"},
                raw_arguments='{"city": "Paris"}',
            )
        ]

    def test_to_dict(self):
        """A failed call should expose its raw arguments."""
        [call] = reassemble([ToolCallDelta(0, name="f", arguments_fragment="{")])

        data = call.to_dict()

        assert data["arguments"] is None
        assert data["raw_arguments"] == "{"
        assert "error" in data
