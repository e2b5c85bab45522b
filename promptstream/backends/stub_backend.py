"""
promptstream - Stub Backend

Deterministic in-process backend for tests and offline use.
No network calls, no API keys required.
"""

import asyncio
import json
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Union

from ..core.models import BackendOptions, PromptInput, build_messages
from .base import Backend

STUB_MODEL = "stub-model"


def _sse(payload: Union[Dict[str, Any], str]) -> str:
    data = payload if isinstance(payload, str) else json.dumps(payload)
    return f"data: {data}\n\n"


def openai_script(text_parts: Sequence[str] = ("stub:", " deterministic stream")) -> List[str]:
    """A chat-completions stream that says ``text_parts`` and reports usage."""
    lines = []
    for i, part in enumerate(text_parts):
        delta: Dict[str, Any] = {"content": part}
        if i == 0:
            delta["role"] = "assistant"
        lines.append(_sse({
            "id": "chatcmpl-stub123",
            "object": "chat.completion.chunk",
            "model": STUB_MODEL,
            "choices": [{"index": 0, "delta": delta, "finish_reason": None}],
        }))
    lines.append(_sse({
        "id": "chatcmpl-stub123",
        "object": "chat.completion.chunk",
        "model": STUB_MODEL,
        "choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}],
    }))
    lines.append(_sse({
        "id": "chatcmpl-stub123",
        "object": "chat.completion.chunk",
        "model": STUB_MODEL,
        "choices": [],
        "usage": {"prompt_tokens": 8, "completion_tokens": len(text_parts), "total_tokens": 8 + len(text_parts)},
    }))
    lines.append(_sse("[DONE]"))
    return lines


def anthropic_script(text_parts: Sequence[str] = ("stub:", " deterministic stream")) -> List[str]:
    """A Messages API stream that says ``text_parts`` and reports usage."""
    lines = [
        "event: message_start\n" + _sse({
            "type": "message_start",
            "message": {"id": "msg_stub123", "model": STUB_MODEL, "usage": {"input_tokens": 8, "output_tokens": 1}},
        }),
        "event: content_block_start\n" + _sse({
            "type": "content_block_start",
            "index": 0,
            "content_block": {"type": "text", "text": ""},
        }),
    ]
    for part in text_parts:
        lines.append("event: content_block_delta\n" + _sse({
            "type": "content_block_delta",
            "index": 0,
            "delta": {"type": "text_delta", "text": part},
        }))
    lines.append("event: content_block_stop\n" + _sse({"type": "content_block_stop", "index": 0}))
    lines.append("event: message_delta\n" + _sse({
        "type": "message_delta",
        "delta": {"stop_reason": "end_turn"},
        "usage": {"output_tokens": len(text_parts)},
    }))
    lines.append("event: message_stop\n" + _sse({"type": "message_stop"}))
    return lines


DEFAULT_SCRIPTS = {
    "openai": openai_script,
    "anthropic": anthropic_script,
}


class StubByteSource:
    """
    Replays scripted SSE text as UTF-8 bytes.

    Counts reads and closes so tests can check the response pipeline's
    resource handling.
    """

    def __init__(self, lines: Sequence[str], delay: float = 0.0):
        self._lines = list(lines)
        self._delay = delay
        self.read_count = 0
        self.close_count = 0

    @property
    def closed(self) -> bool:
        return self.close_count > 0

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iter()

    async def _iter(self) -> AsyncIterator[bytes]:
        for line in self._lines:
            if self.closed:
                return
            if self._delay:
                await asyncio.sleep(self._delay)
            self.read_count += 1
            yield line.encode("utf-8")

    async def aclose(self):
        self.close_count += 1


class StubBackend(Backend):
    """
    Deterministic backend replaying a script of SSE lines.

    Without a script it replays a short text answer with usage in its wire
    format. Every request is recorded in ``requests``.
    """

    def __init__(
        self,
        name: str = "stub",
        wire_format: str = "openai",
        script: Optional[Sequence[str]] = None,
        delay: float = 0.0,
    ):
        if script is None and wire_format not in DEFAULT_SCRIPTS:
            raise ValueError(f"No default script for wire format '{wire_format}'")
        self.name = name
        self.wire_format = wire_format
        self.script = list(script) if script is not None else DEFAULT_SCRIPTS[wire_format]()
        self.delay = delay
        self.requests: List[Dict[str, Any]] = []
        self.sources: List[StubByteSource] = []

    async def start_stream(
        self,
        model_id: str,
        prompt_or_messages: PromptInput,
        options: BackendOptions,
        request_id: str = "",
    ) -> StubByteSource:
        self.requests.append({
            "model": model_id,
            "messages": build_messages(prompt_or_messages, options.system_prompt, options.history),
            "options": options,
            "request_id": request_id,
        })
        source = StubByteSource(self.script, delay=self.delay)
        self.sources.append(source)
        return source
