"""
promptstream - Canonical Stream Events

The backend-agnostic event vocabulary every normalizer produces. Each variant
is a frozen dataclass; ``Event`` is the closed union of all of them.

A well-formed event sequence ends with exactly one ``Done`` or ``Error`` and
nothing follows it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union


class StreamEventType(str, Enum):
    """Types of canonical stream events."""
    CONTENT = "content"
    TOOL_CALL_DELTA = "tool-call-delta"
    USAGE = "usage"
    FINISH = "finish"
    ERROR = "error"
    DONE = "done"


@dataclass(frozen=True)
class Content:
    """A text delta. May be empty; empty deltas are still delivered."""
    text: str

    @property
    def type(self) -> StreamEventType:
        return StreamEventType.CONTENT

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "text": self.text}


@dataclass(frozen=True)
class ToolCallDelta:
    """One streamed fragment of a tool call, keyed by the provider's index."""
    index: int
    id: Optional[str] = None
    name: Optional[str] = None
    arguments_fragment: str = ""

    @property
    def type(self) -> StreamEventType:
        return StreamEventType.TOOL_CALL_DELTA

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "index": self.index,
            "id": self.id,
            "name": self.name,
            "arguments_fragment": self.arguments_fragment,
        }


@dataclass(frozen=True)
class Usage:
    """
    Token counts. Any field may be missing when a frame only reports part of
    the usage (Anthropic sends input tokens first and output tokens last).
    """
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None

    @property
    def type(self) -> StreamEventType:
        return StreamEventType.USAGE

    def merge(self, later: "Usage") -> "Usage":
        """Overlay the fields ``later`` carries onto this usage."""
        prompt = later.prompt_tokens if later.prompt_tokens is not None else self.prompt_tokens
        completion = later.completion_tokens if later.completion_tokens is not None else self.completion_tokens
        total = later.total_tokens
        if total is None:
            if prompt is not None and completion is not None:
                total = prompt + completion
            else:
                total = self.total_tokens
        return Usage(prompt, completion, total)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True)
class Finish:
    """The provider's stop reason, in canonical form."""
    reason: str

    @property
    def type(self) -> StreamEventType:
        return StreamEventType.FINISH

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "reason": self.reason}


@dataclass(frozen=True)
class Error:
    """Terminal upstream or transport failure."""
    message: str
    cause: Optional[BaseException] = field(default=None, compare=False)
    code: str = "stream_error"

    @property
    def type(self) -> StreamEventType:
        return StreamEventType.ERROR

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "type": self.type.value,
            "message": self.message,
            "code": self.code,
        }
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result


@dataclass(frozen=True)
class Done:
    """
    Normal end of stream.

    ``sentinel`` is False when the upstream closed without sending the
    ``[DONE]`` marker; that still counts as a successful completion.
    """
    sentinel: bool = True

    @property
    def type(self) -> StreamEventType:
        return StreamEventType.DONE

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value}


Event = Union[Content, ToolCallDelta, Usage, Finish, Error, Done]

EVENT_CLASSES = (Content, ToolCallDelta, Usage, Finish, Error, Done)


def is_terminal(event: Event) -> bool:
    """Check whether an event ends the stream."""
    if not isinstance(event, EVENT_CLASSES):
        raise TypeError(f"Not a stream event: {event!r}")
    return isinstance(event, (Done, Error))
