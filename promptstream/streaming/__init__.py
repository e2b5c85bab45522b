"""
promptstream - Streaming Module

The response pipeline, bottom-up:
- Frame decoding of SSE byte streams
- Normalization of wire formats into canonical events
- Tool call reassembly
- The response view serving every consumer from one pass
"""

from .events import (
    StreamEventType,
    Content,
    ToolCallDelta,
    Usage,
    Finish,
    Error,
    Done,
    Event,
    is_terminal,
)
from .frames import (
    ByteSource,
    FrameKind,
    RawFrame,
    LineSplitter,
    parse_line,
    decode_frames,
)
from .normalizer import (
    Normalizer,
    NORMALIZERS,
    normalize_openai_chunk,
    normalize_anthropic_event,
    get_normalizer,
    iter_events,
)
from .tool_calls import (
    ToolCallFragment,
    ToolCallReassembler,
    reassemble,
)
from .errors import (
    StreamErrorType,
    error_event_from_exception,
    to_stream_exception,
)
from .response import (
    ResponseState,
    ResponseView,
)

__all__ = [
    # Events
    "StreamEventType",
    "Content",
    "ToolCallDelta",
    "Usage",
    "Finish",
    "Error",
    "Done",
    "Event",
    "is_terminal",
    # Frames
    "ByteSource",
    "FrameKind",
    "RawFrame",
    "LineSplitter",
    "parse_line",
    "decode_frames",
    # Normalizer
    "Normalizer",
    "NORMALIZERS",
    "normalize_openai_chunk",
    "normalize_anthropic_event",
    "get_normalizer",
    "iter_events",
    # Tool Calls
    "ToolCallFragment",
    "ToolCallReassembler",
    "reassemble",
    # Errors
    "StreamErrorType",
    "error_event_from_exception",
    "to_stream_exception",
    # Response
    "ResponseState",
    "ResponseView",
]
