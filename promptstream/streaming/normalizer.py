"""
promptstream - Stream Normalizer

Maps each backend's wire format onto the canonical event vocabulary.

Normalizers are pure functions from one parsed JSON frame to zero or more
events. They translate; they never accumulate. Frames they do not recognize
produce no events, so an unexpected payload never stops the stream.
"""

import json
from typing import Any, AsyncIterable, AsyncIterator, Callable, Dict, List, Optional, Union

from ..core.models import FinishReason
from ..observability.logging import get_logger
from .errors import error_event_from_exception, error_event_from_payload
from .events import Content, Done, Event, Finish, ToolCallDelta, Usage, is_terminal
from .frames import FrameKind, RawFrame, decode_frames

logger = get_logger(__name__)

Normalizer = Callable[[Dict[str, Any]], List[Event]]

ANTHROPIC_FINISH_MAP = {
    "end_turn": FinishReason.STOP.value,
    "stop_sequence": FinishReason.STOP.value,
    "max_tokens": FinishReason.LENGTH.value,
    "tool_use": FinishReason.TOOL_CALLS.value,
}


def parse_frame(frame: RawFrame) -> Optional[Dict[str, Any]]:
    """
    Parse a data frame's payload.

    Returns None when the payload is not a JSON object. That is a
    normalization gap, not a failure.
    """
    try:
        payload = json.loads(frame.data)
    except json.JSONDecodeError:
        logger.debug("Dropping frame with invalid JSON payload", payload_preview=frame.data[:200])
        return None

    if not isinstance(payload, dict):
        logger.debug("Dropping frame whose payload is not an object", payload_preview=frame.data[:200])
        return None
    return payload


# ============================================================
# OpenAI chat-completions chunks
# ============================================================

def normalize_openai_chunk(data: Dict[str, Any]) -> List[Event]:
    """
    Normalize an OpenAI streaming chunk.

    A chunk carrying ``usage`` yields one Usage event and nothing from its
    delta. With ``stream_options.include_usage`` that chunk has empty
    ``choices`` anyway.
    """
    if data.get("error"):
        return [error_event_from_payload(data)]

    choices = data.get("choices") or []
    choice = choices[0] if choices else {}

    usage = data.get("usage")
    if usage:
        events: List[Event] = [Usage(
            prompt_tokens=usage.get("prompt_tokens"),
            completion_tokens=usage.get("completion_tokens"),
            total_tokens=usage.get("total_tokens"),
        )]
        if choice.get("finish_reason"):
            events.append(Finish(choice["finish_reason"]))
        return events

    if not choice:
        return []

    events = []
    delta = choice.get("delta") or {}

    content = delta.get("content")
    if content is not None:
        events.append(Content(content))

    for position, tc in enumerate(delta.get("tool_calls") or []):
        function = tc.get("function") or {}
        events.append(ToolCallDelta(
            index=tc.get("index", position),
            id=tc.get("id"),
            name=function.get("name"),
            arguments_fragment=function.get("arguments") or "",
        ))

    finish_reason = choice.get("finish_reason")
    if finish_reason:
        events.append(Finish(finish_reason))

    return events


# ============================================================
# Anthropic messages stream
# ============================================================

def normalize_anthropic_event(data: Dict[str, Any]) -> List[Event]:
    """
    Normalize an Anthropic streaming event.

    Anthropic reports input tokens in ``message_start`` and output tokens in
    ``message_delta``; the response merges the two Usage events.
    """
    event_type = data.get("type")

    if event_type == "error":
        return [error_event_from_payload(data)]

    if event_type == "message_start":
        usage = (data.get("message") or {}).get("usage")
        if not usage:
            return []
        return [Usage(
            prompt_tokens=usage.get("input_tokens"),
            completion_tokens=usage.get("output_tokens"),
        )]

    if event_type == "content_block_start":
        index = data.get("index", 0)
        block = data.get("content_block") or {}
        if block.get("type") == "tool_use":
            return [ToolCallDelta(index=index, id=block.get("id"), name=block.get("name"))]
        if block.get("type") == "text" and block.get("text"):
            return [Content(block["text"])]
        return []

    if event_type == "content_block_delta":
        index = data.get("index", 0)
        delta = data.get("delta") or {}
        if delta.get("type") == "text_delta":
            return [Content(delta.get("text", ""))]
        if delta.get("type") == "input_json_delta":
            return [ToolCallDelta(index=index, arguments_fragment=delta.get("partial_json") or "")]
        return []

    if event_type == "message_delta":
        events: List[Event] = []
        usage = data.get("usage")
        if usage:
            events.append(Usage(
                prompt_tokens=usage.get("input_tokens"),
                completion_tokens=usage.get("output_tokens"),
            ))
        stop_reason = (data.get("delta") or {}).get("stop_reason")
        if stop_reason:
            events.append(Finish(ANTHROPIC_FINISH_MAP.get(stop_reason, stop_reason)))
        return events

    # ping, message_stop, content_block_stop
    return []


NORMALIZERS: Dict[str, Normalizer] = {
    "openai": normalize_openai_chunk,
    "anthropic": normalize_anthropic_event,
}


def get_normalizer(wire_format: str) -> Normalizer:
    """Get the normalizer for a wire format name."""
    try:
        return NORMALIZERS[wire_format]
    except KeyError:
        raise ValueError(
            f"Unknown wire format '{wire_format}'. Known: {', '.join(sorted(NORMALIZERS))}"
        ) from None


async def iter_events(
    source: AsyncIterable[Union[bytes, str]],
    normalizer: Union[str, Normalizer],
    backend: str = "",
) -> AsyncIterator[Event]:
    """
    Decode and normalize a byte source into canonical events.

    The sequence always ends with exactly one ``Done`` or ``Error``.
    """
    if isinstance(normalizer, str):
        normalizer = get_normalizer(normalizer)

    frames = decode_frames(source)
    try:
        async for frame in frames:
            if frame.kind == FrameKind.DONE:
                yield Done(sentinel=frame.sentinel)
                return

            if frame.kind == FrameKind.ERROR:
                yield error_event_from_exception(frame.error, backend)
                return

            payload = parse_frame(frame)
            if payload is None:
                continue

            try:
                events = normalizer(payload)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.debug(
                    "Dropping frame with unrecognized shape",
                    backend=backend,
                    error=str(e),
                    payload_preview=frame.data[:200],
                )
                continue

            for event in events:
                yield event
                if is_terminal(event):
                    return
    finally:
        await frames.aclose()
