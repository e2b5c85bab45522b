"""
promptstream - Response View Tests

Verifies:
- The upstream is consumed once no matter how many views are read
- Accessors agree with the live feed
- Errors, timeouts and closes reach every accessor
- The byte source is released exactly once
- Structured output selection and validation
"""

import asyncio
from unittest.mock import MagicMock

import pytest
from pydantic import BaseModel

import promptstream.streaming.response as response_module
from promptstream.core.errors import (
    MissingAPIKeyError,
    ResponseClosedError,
    ResponseTimeoutError,
    SchemaValidationError,
    StreamError,
    StructuredOutputMissingError,
    ToolCallParseError,
)
from promptstream.streaming.events import Content, Done, Error, Finish, Usage
from promptstream.streaming.response import ResponseState, ResponseView

from conftest import MockByteSource, openai_chunk, openai_tool_delta, sse


WEATHER_SCHEMA = {
    "type": "object",
    "properties": {
        "city": {"type": "string"},
        "temperature": {"type": "number"},
    },
    "required": ["city", "temperature"],
}


class Weather(BaseModel):
    city: str
    temperature: float


def tool_stream(*calls):
    """OpenAI stream carrying each ``(index, name, arguments)`` call in two fragments."""
    lines = []
    for index, name, arguments in calls:
        half = len(arguments) // 2
        lines.append(sse(openai_chunk(tool_calls=[openai_tool_delta(index, arguments[:half], id=f"call_{index}", name=name)])))
        lines.append(sse(openai_chunk(tool_calls=[openai_tool_delta(index, arguments[half:])])))
    lines.append(sse(openai_chunk(finish_reason="tool_calls")))
    lines.append(sse("[DONE]"))
    return lines


# ============================================================
# Successful Streams
# ============================================================

class TestSuccessfulResponse:
    """Test a stream that completes normally."""

    @pytest.mark.asyncio
    async def test_hello_scenario(self, hello_stream):
        """Every accessor should derive from the same single pass."""
        source = MockByteSource(hello_stream)
        view = ResponseView.from_source(source, "openai")

        assert await view.text() == "Hello"
        assert await view.usage() == Usage(5, 2, 7)
        assert await view.tool_calls() == []
        assert view.finish_reason == "stop"
        assert view.state == ResponseState.SUCCEEDED

        events = await view.raw_events()
        assert events[0] == Content("Hel")
        assert events[-1] == Done(sentinel=True)
        assert len(events) == 5

    @pytest.mark.asyncio
    async def test_source_consumed_once(self, hello_stream):
        """Reading many views must not re-read the upstream."""
        source = MockByteSource(hello_stream)
        view = ResponseView.from_source(source, "openai")

        await view.text()
        await view.text()
        await view.usage()
        await view.raw_events()
        await view.structured_output()

        assert source.iter_count == 1
        assert source.read_count == len(hello_stream)
        assert source.close_count == 1

    @pytest.mark.asyncio
    async def test_live_feed_matches_raw_events(self, hello_stream):
        """The live feed should deliver the recorded events in order."""
        view = ResponseView.from_source(MockByteSource(hello_stream), "openai")

        live = [event async for event in view]

        assert live == await view.raw_events()
        assert view.dropped_live_events == 0

    @pytest.mark.asyncio
    async def test_live_feed_single_consumer(self, hello_stream):
        """The live feed can only be iterated once."""
        view = ResponseView.from_source(MockByteSource(hello_stream), "openai")
        [event async for event in view]

        with pytest.raises(RuntimeError):
            async for _ in view:
                pass

    @pytest.mark.asyncio
    async def test_chunks(self, hello_stream):
        """chunks() should yield only text."""
        view = ResponseView.from_source(MockByteSource(hello_stream), "openai")

        assert [chunk async for chunk in view.chunks()] == ["Hel", "lo"]

    @pytest.mark.asyncio
    async def test_await_view_returns_text(self, hello_stream):
        """Awaiting the view itself should give the text."""
        view = ResponseView.from_source(MockByteSource(hello_stream), "openai")

        assert await view == "Hello"

    @pytest.mark.asyncio
    async def test_anthropic_usage_merged(self):
        """Input and output tokens reported separately should be merged."""
        lines = [
            sse({"type": "message_start", "message": {"usage": {"input_tokens": 10, "output_tokens": 1}}}),
            sse({"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Hi"}}),
            sse({"type": "message_delta", "delta": {"stop_reason": "end_turn"}, "usage": {"output_tokens": 4}}),
            sse({"type": "message_stop"}),
        ]
        view = ResponseView.from_source(MockByteSource(lines), "anthropic")

        assert await view.usage() == Usage(prompt_tokens=10, completion_tokens=4, total_tokens=14)
        assert view.finish_reason == "stop"

    @pytest.mark.asyncio
    async def test_no_usage_reported(self):
        """Usage is None when the backend never reports it."""
        view = ResponseView.from_source(MockByteSource([sse(openai_chunk("x")), sse("[DONE]")]), "openai")

        assert await view.usage() is None

    @pytest.mark.asyncio
    async def test_opener_called_lazily(self, hello_stream):
        """The opener should run once, inside the background task."""
        calls = []

        async def opener():
            calls.append(1)
            return MockByteSource(hello_stream)

        view = ResponseView(opener, "openai", backend="openai", model="gpt-4o-mini")
        assert view.state == ResponseState.PENDING
        assert calls == []

        assert await view.text() == "Hello"
        await view.usage()
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_request_id_generated(self, hello_stream):
        """Each response should get a correlation id."""
        view = ResponseView.from_source(MockByteSource(hello_stream), "openai")

        assert view.request_id.startswith("resp_")
        assert view.request_id in repr(view)


class TestConstruction:
    """Test constructor validation."""

    def test_rejects_non_positive_timeout(self):
        """A zero timeout can never be met."""
        with pytest.raises(ValueError):
            ResponseView.from_source(MockByteSource([]), "openai", timeout=0)

    def test_rejects_empty_live_buffer(self):
        """The live buffer must hold at least one event."""
        with pytest.raises(ValueError):
            ResponseView.from_source(MockByteSource([]), "openai", live_buffer=0)


# ============================================================
# Live Feed Backpressure
# ============================================================

class TestLiveFeedDrops:
    """Test the bounded live buffer."""

    @pytest.mark.asyncio
    async def test_overflow_dropped_from_live_feed_only(self, hello_stream):
        """A slow consumer loses live events, never accessor data."""
        view = ResponseView.from_source(MockByteSource(hello_stream), "openai", live_buffer=2)

        await view.wait()
        live = [event async for event in view]

        assert live == [Content("Hel"), Content("lo"), Done(sentinel=True)]
        assert view.dropped_live_events == 2
        assert await view.text() == "Hello"
        assert len(await view.raw_events()) == 5

    @pytest.mark.asyncio
    async def test_terminal_event_never_dropped(self):
        """The terminal event should always reach the live feed."""
        lines = [sse(openai_chunk(str(i))) for i in range(10)] + [sse("[DONE]")]
        view = ResponseView.from_source(MockByteSource(lines), "openai", live_buffer=1)

        await view.wait()
        live = [event async for event in view]

        assert live[-1] == Done(sentinel=True)
        assert view.dropped_live_events == 9


    @pytest.mark.asyncio
    async def test_chunks_warn_when_dropped(self, hello_stream, monkeypatch):
        """chunks() logs a warning when a slow consumer lost text."""
        recorder = MagicMock()
        monkeypatch.setattr(response_module, "logger", recorder)
        view = ResponseView.from_source(MockByteSource(hello_stream), "openai", live_buffer=2)

        await view.wait()
        chunks = [chunk async for chunk in view.chunks()]

        assert chunks == ["Hel", "lo"]
        recorder.warning.assert_called_once_with(
            "Live chunks dropped for a slow consumer", dropped_live_events=2
        )

    @pytest.mark.asyncio
    async def test_chunks_quiet_without_drops(self, hello_stream, monkeypatch):
        """A consumer that keeps up gets no warning."""
        recorder = MagicMock()
        monkeypatch.setattr(response_module, "logger", recorder)
        view = ResponseView.from_source(MockByteSource(hello_stream), "openai")

        assert [chunk async for chunk in view.chunks()] == ["Hel", "lo"]
        recorder.warning.assert_not_called()


# ============================================================
# Failures
# ============================================================

class TestFailedResponse:
    """Test error propagation to every accessor."""

    @pytest.mark.asyncio
    async def test_transport_error_reaches_every_accessor(self):
        """Every accessor should raise the same exception instance."""
        reset = ConnectionResetError("connection reset by peer")
        source = MockByteSource([sse(openai_chunk("partial"))], error=reset)
        view = ResponseView.from_source(source, "openai", backend="openai", model="gpt-4o-mini")

        with pytest.raises(StreamError) as text_error:
            await view.text()
        with pytest.raises(StreamError) as usage_error:
            await view.usage()
        with pytest.raises(StreamError) as tools_error:
            await view.tool_calls()

        assert text_error.value is usage_error.value is tools_error.value
        assert view.state == ResponseState.FAILED
        assert view.error is text_error.value
        assert source.close_count == 1

    @pytest.mark.asyncio
    async def test_stream_error_details(self):
        """The error should carry the partial text and the original cause."""
        reset = ConnectionResetError("connection reset by peer")
        view = ResponseView.from_source(
            MockByteSource([sse(openai_chunk("partial"))], error=reset), "openai", backend="openai"
        )

        with pytest.raises(StreamError) as exc_info:
            await view.text()

        error = exc_info.value
        assert error.code == "connection_failed"
        assert error.error.partial_content == "partial"
        assert error.retryable is False
        assert error.__cause__ is reset
        assert isinstance(error.event, Error)

    @pytest.mark.asyncio
    async def test_error_names_accessors(self):
        """The shared error records which accessors raised it."""
        view = ResponseView.from_source(
            MockByteSource([], error=RuntimeError("boom")), "openai"
        )

        with pytest.raises(StreamError) as first:
            await view.text()
        assert first.value.to_dict()["error"]["details"]["accessor"] == "text"

        with pytest.raises(StreamError) as second:
            await view.usage()
        details = second.value.to_dict()["error"]["details"]
        assert details["accessor"] == "usage"
        assert details["accessors"] == ["text", "usage"]

    @pytest.mark.asyncio
    async def test_chunks_error_names_accessor(self):
        """The live text iterator is named on the error it raises."""
        view = ResponseView.from_source(
            MockByteSource([], error=ConnectionResetError("reset")), "openai"
        )

        with pytest.raises(StreamError) as exc_info:
            async for _ in view.chunks():
                pass

        assert exc_info.value.error.details["accessor"] == "chunks"

    @pytest.mark.asyncio
    async def test_provider_error_frame(self):
        """An upstream error frame should fail the response with its code."""
        lines = [sse({"error": {"message": "Rate limit reached", "code": "rate_limit_exceeded"}})]
        view = ResponseView.from_source(MockByteSource(lines), "openai")

        with pytest.raises(StreamError) as exc_info:
            await view.text()

        assert exc_info.value.code == "rate_limited"
        assert str(exc_info.value) == "Rate limit reached"

    @pytest.mark.asyncio
    async def test_raw_events_end_with_error(self):
        """The live feed should still deliver the terminal Error."""
        view = ResponseView.from_source(
            MockByteSource([sse(openai_chunk("a"))], error=ConnectionResetError("reset")), "openai"
        )

        live = [event async for event in view]

        assert live[0] == Content("a")
        assert isinstance(live[-1], Error)

    @pytest.mark.asyncio
    async def test_chunks_raise_after_partial_text(self):
        """chunks() should deliver what arrived, then raise."""
        view = ResponseView.from_source(
            MockByteSource([sse(openai_chunk("partial"))], error=ConnectionResetError("reset")), "openai"
        )
        received = []

        with pytest.raises(StreamError):
            async for chunk in view.chunks():
                received.append(chunk)

        assert received == ["partial"]

    @pytest.mark.asyncio
    async def test_opener_failure(self):
        """A failure to open the stream should fail the response, not the caller."""
        missing = MissingAPIKeyError("openai", "OPENAI_API_KEY")

        async def opener():
            raise missing

        view = ResponseView(opener, "openai", backend="openai")

        assert await view.wait() == ResponseState.FAILED
        with pytest.raises(StreamError) as exc_info:
            await view.text()

        assert exc_info.value.code == "missing_api_key"
        assert exc_info.value.__cause__ is missing
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_wait_does_not_raise(self):
        """wait() reports the final state without raising."""
        view = ResponseView.from_source(
            MockByteSource([], error=ConnectionResetError("reset")), "openai"
        )

        assert await view.wait() == ResponseState.FAILED


# ============================================================
# Deadlines
# ============================================================

class TestTimeout:
    """Test the response deadline."""

    @pytest.mark.asyncio
    async def test_stalled_stream_times_out(self):
        """A stalled upstream should end TIMED_OUT with the partial text."""
        source = MockByteSource([sse(openai_chunk("Hel"))], hang=True)
        view = ResponseView.from_source(source, "openai", timeout=0.2)

        assert await view.wait() == ResponseState.TIMED_OUT

        with pytest.raises(ResponseTimeoutError) as exc_info:
            await view.text()

        assert exc_info.value.timeout == 0.2
        assert exc_info.value.error.partial_content == "Hel"
        assert exc_info.value.error.details["timeout_seconds"] == 0.2
        assert source.close_count == 1

    @pytest.mark.asyncio
    async def test_same_timeout_error_everywhere(self):
        """Every accessor of a timed out response raises the same instance."""
        view = ResponseView.from_source(MockByteSource([], hang=True), "openai", timeout=0.1)

        with pytest.raises(ResponseTimeoutError) as first:
            await view.usage()
        with pytest.raises(ResponseTimeoutError) as second:
            await view.raw_events()

        assert first.value is second.value

    @pytest.mark.asyncio
    async def test_timeout_error_names_accessor(self):
        """A timeout error says which accessor was waiting and for how long."""
        view = ResponseView.from_source(MockByteSource([], hang=True), "openai", timeout=0.1)

        with pytest.raises(ResponseTimeoutError) as exc_info:
            await view.raw_events()

        details = exc_info.value.to_dict()["error"]["details"]
        assert details["accessor"] == "raw_events"
        assert details["timeout_seconds"] == 0.1

    @pytest.mark.asyncio
    async def test_stalled_opener_times_out(self):
        """The deadline also covers opening the stream."""
        async def opener():
            await asyncio.Event().wait()

        view = ResponseView(opener, "openai", timeout=0.1)

        assert await view.wait() == ResponseState.TIMED_OUT

    @pytest.mark.asyncio
    async def test_live_feed_ends_on_timeout(self):
        """The live feed should end, and chunks() should raise."""
        view = ResponseView.from_source(
            MockByteSource([sse(openai_chunk("Hel"))], hang=True), "openai", timeout=0.2
        )
        received = []

        with pytest.raises(ResponseTimeoutError):
            async for chunk in view.chunks():
                received.append(chunk)

        assert received == ["Hel"]

    @pytest.mark.asyncio
    async def test_fast_stream_unaffected(self, hello_stream):
        """A deadline that is met changes nothing."""
        view = ResponseView.from_source(MockByteSource(hello_stream), "openai", timeout=5)

        assert await view.text() == "Hello"
        assert view.state == ResponseState.SUCCEEDED


# ============================================================
# Closing
# ============================================================

class TestClose:
    """Test explicit and context-managed closing."""

    @pytest.mark.asyncio
    async def test_close_while_streaming(self):
        """Closing a running response should fail pending accessors."""
        source = MockByteSource([sse(openai_chunk("Hel"))], hang=True)
        view = ResponseView.from_source(source, "openai").start()
        await asyncio.sleep(0.05)

        await view.aclose()

        assert view.state == ResponseState.FAILED
        with pytest.raises(ResponseClosedError):
            await view.text()
        assert source.close_count == 1

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        """Closing twice should release the source only once."""
        source = MockByteSource([], hang=True)
        view = ResponseView.from_source(source, "openai").start()
        await asyncio.sleep(0.01)

        await view.aclose()
        await view.aclose()

        assert source.close_count == 1

    @pytest.mark.asyncio
    async def test_close_before_start(self):
        """A never-started response closes without reading anything."""
        source = MockByteSource([sse(openai_chunk("x"))])
        view = ResponseView.from_source(source, "openai")

        await view.aclose()

        assert view.state == ResponseState.FAILED
        assert source.read_count == 0
        assert source.close_count == 1
        with pytest.raises(ResponseClosedError):
            await view.usage()

    @pytest.mark.asyncio
    async def test_close_after_completion_keeps_result(self, hello_stream):
        """Closing a finished response should not change its outcome."""
        source = MockByteSource(hello_stream)
        view = ResponseView.from_source(source, "openai")
        await view.wait()

        await view.aclose()

        assert view.state == ResponseState.SUCCEEDED
        assert await view.text() == "Hello"
        assert source.close_count == 1

    @pytest.mark.asyncio
    async def test_context_manager(self, hello_stream):
        """async with should start and release the response."""
        source = MockByteSource(hello_stream)

        async with ResponseView.from_source(source, "openai") as view:
            text = await view.text()

        assert text == "Hello"
        assert source.close_count == 1

    @pytest.mark.asyncio
    async def test_context_manager_exit_mid_stream(self):
        """Leaving the block early closes the stream."""
        source = MockByteSource([sse(openai_chunk("a"))], hang=True)

        async with ResponseView.from_source(source, "openai") as view:
            async for event in view:
                assert event == Content("a")
                break

        assert view.state == ResponseState.FAILED
        assert source.close_count == 1


# ============================================================
# Tool Calls and Structured Output
# ============================================================

class TestToolCalls:
    """Test tool call reassembly through the response."""

    @pytest.mark.asyncio
    async def test_weather_tool_call(self, weather_tool_stream):
        """Fragments should be reassembled into one call."""
        view = ResponseView.from_source(MockByteSource(weather_tool_stream), "openai")

        [call] = await view.tool_calls()

        assert call.id == "call_1"
        assert call.name == "get_weather"
        assert call.arguments == {"city": "Paris"}
        assert view.finish_reason == "tool_calls"
        assert await view.text() == ""

    @pytest.mark.asyncio
    async def test_tool_calls_ordered_by_index(self):
        """Calls should be returned by index, not arrival order."""
        lines = tool_stream((1, "second", '{"n": 2}'), (0, "first", '{"n": 1}'))
        view = ResponseView.from_source(MockByteSource(lines), "openai")

        calls = await view.tool_calls()

        assert [c.name for c in calls] == ["first", "second"]


class TestStructuredOutput:
    """Test structured output selection and validation."""

    @pytest.mark.asyncio
    async def test_without_schema_returns_first_call(self, weather_tool_stream):
        """Without a schema the first parsed call's arguments are returned."""
        view = ResponseView.from_source(MockByteSource(weather_tool_stream), "openai")

        assert await view.structured_output() == {"city": "Paris"}

    @pytest.mark.asyncio
    async def test_without_schema_or_calls(self, hello_stream):
        """No schema and no call means no structured output."""
        view = ResponseView.from_source(MockByteSource(hello_stream), "openai")

        assert await view.structured_output() is None

    @pytest.mark.asyncio
    async def test_valid_against_schema(self):
        """Arguments matching the schema are returned."""
        lines = tool_stream((0, "extract_city_temperature", '{"city": "Paris", "temperature": 21.5}'))
        view = ResponseView.from_source(MockByteSource(lines), "openai", schema=WEATHER_SCHEMA)

        assert await view.structured_output() == {"city": "Paris", "temperature": 21.5}

    @pytest.mark.asyncio
    async def test_pydantic_schema_returns_instance(self):
        """A pydantic schema yields a model instance."""
        lines = tool_stream((0, "extract_city_temperature", '{"city": "Paris", "temperature": 21.5}'))
        view = ResponseView.from_source(MockByteSource(lines), "openai", schema=Weather)

        output = await view.structured_output()

        assert output == Weather(city="Paris", temperature=21.5)

    @pytest.mark.asyncio
    async def test_lowest_index_wins(self):
        """The lowest-index successful call is the structured output."""
        lines = tool_stream(
            (1, "extract", '{"city": "Lyon", "temperature": 18}'),
            (0, "extract", '{"city": "Paris", "temperature": 21}'),
        )
        view = ResponseView.from_source(MockByteSource(lines), "openai", schema=WEATHER_SCHEMA)

        assert (await view.structured_output())["city"] == "Paris"

    @pytest.mark.asyncio
    async def test_malformed_call_skipped_for_later_good_one(self):
        """A malformed lower-index call yields to a parsed one."""
        lines = tool_stream(
            (0, "extract", '{"city": "Par'),
            (1, "extract", '{"city": "Lyon", "temperature": 18}'),
        )
        view = ResponseView.from_source(MockByteSource(lines), "openai", schema=WEATHER_SCHEMA)

        assert (await view.structured_output())["city"] == "Lyon"

    @pytest.mark.asyncio
    async def test_schema_violation(self):
        """Arguments that break the schema raise with every violation."""
        lines = tool_stream((0, "extract", '{"city": 42}'))
        view = ResponseView.from_source(MockByteSource(lines), "openai", schema=WEATHER_SCHEMA)

        with pytest.raises(SchemaValidationError) as exc_info:
            await view.structured_output()

        violations = exc_info.value.violations
        assert "temperature: Required field 'temperature' is missing" in violations
        assert any(v.startswith("city: Expected type string") for v in violations)
        assert exc_info.value.value == {"city": 42}

    @pytest.mark.asyncio
    async def test_pydantic_violation(self):
        """Pydantic validation errors are reported with field paths."""
        lines = tool_stream((0, "extract", '{"city": "Paris", "temperature": "hot"}'))
        view = ResponseView.from_source(MockByteSource(lines), "openai", schema=Weather)

        with pytest.raises(SchemaValidationError) as exc_info:
            await view.structured_output()

        assert any(v.startswith("temperature:") for v in exc_info.value.violations)

    @pytest.mark.asyncio
    async def test_unresolvable_schema_ref(self):
        """A schema whose reference cannot resolve fails validation once."""
        lines = tool_stream((0, "extract", '{"city": "Paris"}'))
        view = ResponseView.from_source(
            MockByteSource(lines), "openai", schema={"$ref": "#/$defs/Missing"}
        )

        with pytest.raises(SchemaValidationError) as first:
            await view.structured_output()
        with pytest.raises(SchemaValidationError) as second:
            await view.structured_output()

        assert first.value is second.value
        assert first.value.violations == ["Unresolvable schema reference: #/$defs/Missing"]
        assert first.value.error.details["accessor"] == "structured_output"

    @pytest.mark.asyncio
    async def test_validation_disabled(self):
        """With validation off the raw arguments are returned."""
        lines = tool_stream((0, "extract", '{"city": 42}'))
        view = ResponseView.from_source(
            MockByteSource(lines), "openai", schema=WEATHER_SCHEMA, validate_output=False
        )

        assert await view.structured_output() == {"city": 42}

    @pytest.mark.asyncio
    async def test_schema_without_call(self, hello_stream):
        """A schema with no tool call is an error."""
        view = ResponseView.from_source(MockByteSource(hello_stream), "openai", schema=WEATHER_SCHEMA)

        with pytest.raises(StructuredOutputMissingError):
            await view.structured_output()

    @pytest.mark.asyncio
    async def test_schema_with_only_malformed_calls(self):
        """Only malformed calls raise a parse error naming the first one."""
        lines = tool_stream((0, "extract", '{"city": "Par'))
        view = ResponseView.from_source(MockByteSource(lines), "openai", schema=WEATHER_SCHEMA)

        with pytest.raises(ToolCallParseError) as exc_info:
            await view.structured_output()

        assert exc_info.value.index == 0
        assert exc_info.value.error.details["raw_arguments"] == '{"city": "Par'

    @pytest.mark.asyncio
    async def test_structured_error_is_local(self):
        """Structured output errors leave the other accessors working."""
        lines = [sse(openai_chunk("No tools today")), sse("[DONE]")]
        view = ResponseView.from_source(MockByteSource(lines), "openai", schema=WEATHER_SCHEMA)

        with pytest.raises(StructuredOutputMissingError) as first:
            await view.structured_output()
        with pytest.raises(StructuredOutputMissingError) as second:
            await view.structured_output()

        assert first.value is second.value
        assert await view.text() == "No tools today"
        assert view.state == ResponseState.SUCCEEDED
        assert view.error is None

    @pytest.mark.asyncio
    async def test_stream_error_wins_over_structured(self):
        """A failed stream raises its stream error from structured_output too."""
        view = ResponseView.from_source(
            MockByteSource([], error=ConnectionResetError("reset")), "openai", schema=WEATHER_SCHEMA
        )

        with pytest.raises(StreamError):
            await view.structured_output()
