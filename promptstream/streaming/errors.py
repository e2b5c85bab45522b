"""
promptstream - Streaming Error Handling

Turns failures observed while streaming into terminal ``Error`` events, and
terminal ``Error`` events into the exception callers see.

Key principle:
- An error BEFORE any content was delivered is as retryable as its cause
- An error AFTER content started carries the partial text and is never
  retryable, since a retry would produce a different answer
"""

from enum import Enum
from typing import Any, Dict, Optional

import httpx

from ..core.errors import PromptStreamException, StreamError, handle_http_error
from .events import Error


class StreamErrorType(str, Enum):
    """Codes carried by terminal ``Error`` events."""
    CONNECTION_FAILED = "connection_failed"
    AUTHENTICATION_FAILED = "authentication_failed"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_ERROR = "upstream_error"
    PROVIDER_ERROR = "provider_error"
    DECODE_ERROR = "decode_error"
    STREAM_INTERRUPTED = "stream_interrupted"
    TIMEOUT_DURING_STREAM = "timeout_during_stream"


def error_event_from_exception(exception: BaseException, backend: str = "") -> Error:
    """
    Create a terminal ``Error`` event from an exception.

    promptstream and httpx exceptions keep their own codes. Anything else is
    classified from its type and message.
    """
    if isinstance(exception, UnicodeDecodeError):
        return Error(
            message=f"Malformed stream data: {exception}",
            cause=exception,
            code=StreamErrorType.DECODE_ERROR.value,
        )

    if isinstance(exception, PromptStreamException):
        return Error(message=str(exception), cause=exception, code=exception.code)

    if isinstance(exception, httpx.HTTPError):
        mapped = handle_http_error(exception, backend)
        return Error(message=str(mapped), cause=mapped, code=mapped.code)

    message = str(exception) or type(exception).__name__
    lowered = message.lower()

    if "timeout" in lowered or "timed out" in lowered:
        code = StreamErrorType.TIMEOUT_DURING_STREAM
    elif "connection" in lowered or "connect" in lowered:
        code = StreamErrorType.CONNECTION_FAILED
    else:
        code = StreamErrorType.STREAM_INTERRUPTED

    return Error(message=message, cause=exception, code=code.value)


def error_event_from_payload(payload: Dict[str, Any]) -> Error:
    """
    Create a terminal ``Error`` event from a provider error frame.

    Both wire formats nest the details under ``error``; the value is sometimes
    a plain string.
    """
    info = payload.get("error")
    if isinstance(info, dict):
        message = info.get("message") or info.get("type") or "Provider reported an error"
        code = info.get("code") or info.get("type")
    else:
        message = str(info) if info else "Provider reported an error"
        code = None

    code = str(code) if code else StreamErrorType.PROVIDER_ERROR.value
    if code in {"rate_limit_exceeded", "rate_limit_error"}:
        code = StreamErrorType.RATE_LIMITED.value
    elif code in {"invalid_api_key", "authentication_error"}:
        code = StreamErrorType.AUTHENTICATION_FAILED.value
    elif code == "overloaded_error":
        code = StreamErrorType.UPSTREAM_ERROR.value

    return Error(message=message, code=code)


def to_stream_exception(
    event: Error,
    backend: Optional[str] = None,
    model: Optional[str] = None,
    partial_content: str = "",
    request_id: str = "",
) -> StreamError:
    """Build the exception every accessor of a failed response raises."""
    exc = StreamError(
        event.message,
        event=event,
        backend=backend,
        model=model,
        partial_content=partial_content,
        request_id=request_id,
        code=event.code,
    )
    if isinstance(event.cause, PromptStreamException):
        exc.error.retryable = event.cause.retryable and not partial_content
        exc.error.retry_after = event.cause.error.retry_after
    elif event.code == StreamErrorType.DECODE_ERROR.value:
        exc.error.retryable = False
    if event.cause is not None:
        exc.__cause__ = event.cause
    return exc
