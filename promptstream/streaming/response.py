"""
promptstream - Response View

One upstream stream, consumed exactly once, served as many views.

A ``ResponseView`` owns a single background task that reads the byte source,
normalizes it into canonical events and records them. Everything a caller can
ask for is derived from that one pass:

- a live feed (``async for event in view`` / ``view.chunks()``), best effort
- ``text()``, ``usage()``, ``raw_events()``, ``tool_calls()`` and
  ``structured_output()``, which all wait on the same completion signal

State machine:

    PENDING -> RUNNING -> SUCCEEDED | FAILED | TIMED_OUT

Once terminal, every accessor answers from memory. A failed response makes
every accessor raise the same exception instance.

Usage:
    view = ResponseView.from_source(source, normalizer="openai", timeout=30)
    async for event in view:
        ...
    text = await view.text()
"""

import asyncio
import uuid
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Union

from ..core.errors import (
    PromptStreamException,
    ResponseClosedError,
    ResponseTimeoutError,
    SchemaValidationError,
    StreamError,
    StructuredOutputMissingError,
    ToolCallParseError,
)
from ..core.models import ToolCall
from ..observability.logging import LogContext, get_logger
from ..observability.tracing import TraceContext, record_exception, start_span
from ..tools.schema import SchemaInput
from ..tools.validator import validate_structured_output
from .errors import error_event_from_exception, to_stream_exception
from .events import Content, Done, Error, Event, Finish, ToolCallDelta, Usage, is_terminal
from .frames import ByteSource
from .normalizer import Normalizer, iter_events
from .tool_calls import ToolCallReassembler

logger = get_logger(__name__)

Opener = Callable[[], Awaitable[ByteSource]]

DEFAULT_LIVE_BUFFER = 1024

_END = object()


class ResponseState(str, Enum):
    """Lifecycle of a response."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


TERMINAL_STATES = {ResponseState.SUCCEEDED, ResponseState.FAILED, ResponseState.TIMED_OUT}


class _DeadlineExceeded(Exception):
    pass


class ResponseView:
    """
    Lazily materialized views over one streamed response.

    Args:
        opener: Async callable returning the byte source. Called once, by the
            background task, so connection failures end up as a FAILED state.
        normalizer: Wire format name or normalizer function.
        backend: Backend name, for errors, logs and spans.
        model: Model id, for errors, logs and spans.
        timeout: Seconds from ``start()`` until the response is abandoned.
            None disables the deadline.
        live_buffer: Events held for the live feed before new ones are dropped.
        schema: JSON Schema dict or pydantic model class for structured output.
        validate_output: Validate structured output against ``schema``.
        request_id: Correlation id; generated when omitted.
    """

    def __init__(
        self,
        opener: Opener,
        normalizer: Union[str, Normalizer] = "openai",
        *,
        backend: str = "",
        model: str = "",
        timeout: Optional[float] = None,
        live_buffer: int = DEFAULT_LIVE_BUFFER,
        schema: Optional[SchemaInput] = None,
        validate_output: bool = True,
        request_id: Optional[str] = None,
    ):
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be greater than 0")
        if live_buffer < 1:
            raise ValueError("live_buffer must be at least 1")

        self._opener = opener
        self._normalizer = normalizer
        self._backend = backend
        self._model = model
        self._timeout = timeout
        self._live_buffer = live_buffer
        self._schema = schema
        self._validate_output = validate_output
        self._request_id = request_id or f"resp_{uuid.uuid4().hex[:24]}"

        self._state = ResponseState.PENDING
        self._task: Optional[asyncio.Task] = None
        self._source: Optional[ByteSource] = None
        self._source_released = False
        self._started_at: Optional[float] = None
        self._span = None

        # Written only by the background task
        self._events: List[Event] = []
        self._text_parts: List[str] = []
        self._usage: Optional[Usage] = None
        self._finish_reason: Optional[str] = None
        self._reassembler = ToolCallReassembler()
        self._tool_calls: List[ToolCall] = []
        self._error: Optional[PromptStreamException] = None

        self._done = asyncio.Event()
        self._live: asyncio.Queue = asyncio.Queue()
        self._live_taken = False
        self._dropped_live_events = 0

        self._text: Optional[str] = None
        self._structured_ready = False
        self._structured: Any = None
        self._structured_error: Optional[PromptStreamException] = None

    @classmethod
    def from_source(cls, source: ByteSource, normalizer: Union[str, Normalizer] = "openai", **kwargs) -> "ResponseView":
        """Wrap an already opened byte source."""
        async def _open() -> ByteSource:
            return source

        view = cls(_open, normalizer, **kwargs)
        view._source = source
        return view

    # ============================================================
    # Properties
    # ============================================================

    @property
    def state(self) -> ResponseState:
        return self._state

    @property
    def done(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def request_id(self) -> str:
        return self._request_id

    @property
    def backend(self) -> str:
        return self._backend

    @property
    def model(self) -> str:
        return self._model

    @property
    def schema(self) -> Optional[SchemaInput]:
        return self._schema

    @property
    def finish_reason(self) -> Optional[str]:
        return self._finish_reason

    @property
    def dropped_live_events(self) -> int:
        return self._dropped_live_events

    @property
    def error(self) -> Optional[PromptStreamException]:
        return self._error

    # ============================================================
    # Lifecycle
    # ============================================================

    def start(self) -> "ResponseView":
        """
        Start the background consumption task. Idempotent.

        Must be called from a running event loop. Every accessor and the live
        feed call it implicitly.
        """
        if self._task is not None or self._state != ResponseState.PENDING:
            return self

        loop = asyncio.get_running_loop()
        self._started_at = loop.time()
        self._state = ResponseState.RUNNING
        self._span = start_span(
            "promptstream.response",
            attributes={
                "llm.backend": self._backend,
                "llm.model": self._model,
                "promptstream.request_id": self._request_id,
            },
        )
        self._task = loop.create_task(self._run())
        self._task.add_done_callback(self._on_task_done)
        return self

    async def aclose(self):
        """
        Stop consumption and release the byte source.

        A response that has not completed yet ends FAILED with
        ``ResponseClosedError``. Safe to call more than once.
        """
        if not self.done:
            if self._task is None:
                self._complete(ResponseState.FAILED, ResponseClosedError(self._request_id))
            else:
                self._task.cancel()
        if self._task is not None:
            await asyncio.wait([self._task])
        await self._release_source()

    async def __aenter__(self) -> "ResponseView":
        return self.start()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def _run(self):
        LogContext.set_current(LogContext(
            response_id=self._request_id,
            backend=self._backend,
            model=self._model,
        ))
        trace_ctx = TraceContext.from_span(self._span) if self._span is not None else None
        if trace_ctx:
            LogContext.get_current().update(trace_id=trace_ctx.trace_id, span_id=trace_ctx.span_id)

        logger.debug("Response started", timeout=self._timeout)

        try:
            self._source = await self._bounded(self._opener())
            events = iter_events(self._source, self._normalizer, self._backend)
            try:
                while True:
                    event = await self._bounded(events.__anext__())
                    self._apply(event)
                    if is_terminal(event):
                        break
            finally:
                await events.aclose()
        except _DeadlineExceeded:
            logger.warning(
                "Response timed out",
                timeout=self._timeout,
                event_count=len(self._events),
            )
            self._complete(
                ResponseState.TIMED_OUT,
                ResponseTimeoutError(
                    self._timeout,
                    backend=self._backend,
                    model=self._model,
                    partial_content="".join(self._text_parts),
                    request_id=self._request_id,
                ),
            )
        except asyncio.CancelledError:
            self._complete(ResponseState.FAILED, ResponseClosedError(self._request_id))
            raise
        except Exception as e:
            self._apply(error_event_from_exception(e, self._backend))
        finally:
            if not self.done:
                self._complete(
                    ResponseState.FAILED,
                    StreamError(
                        "Stream ended without a terminal event",
                        backend=self._backend,
                        model=self._model,
                        request_id=self._request_id,
                    ),
                )
            await self._release_source()
            self._end_span()

    def _on_task_done(self, task: asyncio.Task):
        # Cancelled before its first step, so _run never saw the cancellation
        if not self.done:
            self._complete(ResponseState.FAILED, ResponseClosedError(self._request_id))
            self._end_span()

    async def _bounded(self, awaitable: Awaitable):
        """Await with whatever remains of the deadline."""
        if self._timeout is None:
            return await awaitable

        loop = asyncio.get_running_loop()
        remaining = max(self._started_at + self._timeout - loop.time(), 0)
        task = asyncio.ensure_future(awaitable)
        try:
            done, _ = await asyncio.wait({task}, timeout=remaining)
        except asyncio.CancelledError:
            task.cancel()
            await asyncio.wait({task})
            raise

        if not done:
            task.cancel()
            await asyncio.wait({task})
            raise _DeadlineExceeded()
        return task.result()

    async def _release_source(self):
        if self._source is None or self._source_released:
            return
        self._source_released = True
        try:
            await self._source.aclose()
        except Exception as e:
            logger.warning("Failed to release byte source", error=str(e))

    def _end_span(self):
        if self._span is None:
            return
        self._span.set_attribute("promptstream.state", self._state.value)
        self._span.set_attribute("promptstream.event_count", len(self._events))
        if self._error is not None:
            record_exception(self._span, self._error)
        self._span.end()
        self._span = None

    # ============================================================
    # Accumulation (background task only)
    # ============================================================

    def _apply(self, event: Event):
        if self.done:
            return

        self._events.append(event)
        self._forward_live(event)

        if isinstance(event, Content):
            self._text_parts.append(event.text)
        elif isinstance(event, ToolCallDelta):
            self._reassembler.add(event)
        elif isinstance(event, Usage):
            self._usage = (self._usage or Usage()).merge(event)
        elif isinstance(event, Finish):
            self._finish_reason = event.reason
        elif isinstance(event, Error):
            self._complete(
                ResponseState.FAILED,
                to_stream_exception(
                    event,
                    backend=self._backend,
                    model=self._model,
                    partial_content="".join(self._text_parts),
                    request_id=self._request_id,
                ),
            )
        elif isinstance(event, Done):
            self._complete(ResponseState.SUCCEEDED)
        else:
            raise TypeError(f"Unknown stream event: {event!r}")

    def _forward_live(self, event: Event):
        if not is_terminal(event) and self._live.qsize() >= self._live_buffer:
            self._dropped_live_events += 1
            return
        self._live.put_nowait(event)

    def _complete(self, state: ResponseState, error: Optional[PromptStreamException] = None):
        if self.done:
            return

        self._state = state
        self._error = error
        self._tool_calls = list(self._reassembler.finalize().values())
        self._live.put_nowait(_END)
        self._done.set()

        duration_ms = None
        if self._started_at is not None:
            duration_ms = round((asyncio.get_running_loop().time() - self._started_at) * 1000, 2)

        logger.info(
            "Response completed",
            state=state.value,
            event_count=len(self._events),
            tool_call_count=len(self._tool_calls),
            dropped_live_events=self._dropped_live_events,
            duration_ms=duration_ms,
            error_code=error.code if error else None,
        )

    # ============================================================
    # Live feed
    # ============================================================

    def __aiter__(self):
        return self._iter_live()

    async def _iter_live(self):
        if self._live_taken:
            raise RuntimeError("The live feed of a response can only be consumed once")
        self._live_taken = True
        self.start()

        while True:
            item = await self._live.get()
            if item is _END:
                return
            yield item

    async def chunks(self):
        """
        Yield only the text of ``Content`` events, as they arrive.

        Chunks come from the live feed, so a consumer more than
        ``live_buffer`` events behind misses some of them; a warning is
        logged when that happens and ``text()`` still holds the full answer.
        Raises the response's error once the feed ends, if it failed.
        """
        async for event in self:
            if isinstance(event, Content):
                yield event.text
        if self._dropped_live_events:
            logger.warning(
                "Live chunks dropped for a slow consumer",
                dropped_live_events=self._dropped_live_events,
            )
        if self._error is not None:
            self._note_accessor(self._error, "chunks")
            raise self._error

    # ============================================================
    # Derived accessors
    # ============================================================

    async def wait(self) -> ResponseState:
        """Wait for completion without raising; returns the final state."""
        self.start()
        await self._done.wait()
        return self._state

    async def _settled(self, accessor: str):
        await self.wait()
        if self._error is not None:
            self._note_accessor(self._error, accessor)
            logger.debug("Accessor raised response error", accessor=accessor, error_code=self._error.code)
            raise self._error

    @staticmethod
    def _note_accessor(error: PromptStreamException, accessor: str):
        """Record on the shared exception which accessor is raising it."""
        details = error.error.details
        details["accessor"] = accessor
        accessors = details.setdefault("accessors", [])
        if accessor not in accessors:
            accessors.append(accessor)

    async def text(self) -> str:
        """Concatenated text of all ``Content`` events, in arrival order."""
        await self._settled("text")
        if self._text is None:
            self._text = "".join(self._text_parts)
        return self._text

    async def usage(self) -> Optional[Usage]:
        """Merged token usage, or None if the backend reported none."""
        await self._settled("usage")
        return self._usage

    async def raw_events(self) -> List[Event]:
        """Every canonical event, in arrival order, including the terminal one."""
        await self._settled("raw_events")
        return list(self._events)

    async def tool_calls(self) -> List[ToolCall]:
        """Finalized tool calls ordered by index."""
        await self._settled("tool_calls")
        return list(self._tool_calls)

    async def structured_output(self) -> Any:
        """
        Arguments of the lowest-index tool call that parsed.

        With a schema this is validated (a pydantic schema yields the model
        instance) and a missing or malformed call is an error. Those errors
        belong to this accessor only; ``text()`` and the others still succeed.
        """
        await self._settled("structured_output")

        if not self._structured_ready:
            try:
                self._structured = self._build_structured_output()
            except PromptStreamException as e:
                self._structured_error = e
            self._structured_ready = True

        if self._structured_error is not None:
            self._note_accessor(self._structured_error, "structured_output")
            raise self._structured_error
        return self._structured

    def _build_structured_output(self) -> Any:
        parsed = [call for call in self._tool_calls if call.ok]

        if self._schema is None:
            return parsed[0].arguments if parsed else None

        if not self._tool_calls:
            raise StructuredOutputMissingError(self._request_id)

        if not parsed:
            first = self._tool_calls[0]
            raise ToolCallParseError(
                first.index,
                first.name,
                first.error or "unparseable arguments",
                raw_arguments=first.raw_arguments,
                request_id=self._request_id,
            )

        value = parsed[0].arguments
        if not self._validate_output:
            return value

        output, result = validate_structured_output(value, self._schema)
        if not result.is_valid:
            raise SchemaValidationError(result.violations, value=value, request_id=self._request_id)
        return output

    def __await__(self):
        return self.text().__await__()

    def __repr__(self) -> str:
        return (
            f"ResponseView(request_id={self._request_id!r}, backend={self._backend!r}, "
            f"model={self._model!r}, state={self._state.value!r})"
        )
