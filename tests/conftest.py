"""
promptstream - Pytest Configuration

Configures:
- Integration test markers (skip by default)
- Smoke test handling (skip with SKIP_SMOKE=1)
- Mock byte sources and SSE payload builders for unit tests
"""

import asyncio
import json
import os
from typing import Any, Dict, List, Optional, Sequence, Union

import pytest

from promptstream.config import Settings


# ============================================================
# Environment Configuration
# ============================================================

def _is_truthy(value: Optional[str]) -> bool:
    """Check if environment variable is truthy."""
    if value is None:
        return False
    return value.lower() in ("1", "true", "yes", "on")


RUN_INTEGRATION = _is_truthy(os.getenv("RUN_INTEGRATION"))
SKIP_SMOKE = _is_truthy(os.getenv("SKIP_SMOKE"))


# ============================================================
# Pytest Markers
# ============================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires RUN_INTEGRATION=1)"
    )
    config.addinivalue_line(
        "markers",
        "smoke: mark test as smoke test (skip with SKIP_SMOKE=1)"
    )


def pytest_collection_modifyitems(config, items):
    """
    Modify test collection to handle integration and smoke tests.

    - Integration tests: Skip unless RUN_INTEGRATION=1
    - Smoke tests: Skip if SKIP_SMOKE=1
    """
    skip_integration = pytest.mark.skip(
        reason="Integration test - set RUN_INTEGRATION=1 to run"
    )
    skip_smoke = pytest.mark.skip(
        reason="Smoke test skipped - SKIP_SMOKE=1"
    )

    for item in items:
        if "integration" in item.keywords and not RUN_INTEGRATION:
            item.add_marker(skip_integration)

        if "smoke" in item.keywords and SKIP_SMOKE:
            item.add_marker(skip_smoke)


# ============================================================
# Mock Byte Sources
# ============================================================

class MockByteSource:
    """
    Scripted byte source that records how it is consumed.

    Yields ``chunks`` in order, then optionally raises ``error`` or hangs
    forever (``hang=True``) to simulate a stalled upstream.
    """

    def __init__(
        self,
        chunks: Sequence[Union[bytes, str]],
        error: Optional[BaseException] = None,
        hang: bool = False,
        delay: float = 0.0,
    ):
        self.chunks = list(chunks)
        self.error = error
        self.hang = hang
        self.delay = delay
        self.read_count = 0
        self.iter_count = 0
        self.close_count = 0

    def __aiter__(self):
        self.iter_count += 1
        return self._iter()

    async def _iter(self):
        for chunk in self.chunks:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.read_count += 1
            yield chunk
        if self.error is not None:
            raise self.error
        if self.hang:
            await asyncio.Event().wait()

    async def aclose(self):
        self.close_count += 1


def sse(payload: Union[Dict[str, Any], str]) -> str:
    """Render one SSE data line."""
    data = payload if isinstance(payload, str) else json.dumps(payload)
    return f"data: {data}\n\n"


def openai_chunk(
    content: Optional[str] = None,
    tool_calls: Optional[List[Dict[str, Any]]] = None,
    finish_reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Build an OpenAI chat-completions streaming chunk."""
    delta: Dict[str, Any] = {}
    if content is not None:
        delta["content"] = content
    if tool_calls is not None:
        delta["tool_calls"] = tool_calls
    return {
        "id": "chatcmpl-test123",
        "object": "chat.completion.chunk",
        "model": "gpt-4o-mini",
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }


def openai_usage_chunk(prompt: int, completion: int) -> Dict[str, Any]:
    return {
        "id": "chatcmpl-test123",
        "object": "chat.completion.chunk",
        "model": "gpt-4o-mini",
        "choices": [],
        "usage": {"prompt_tokens": prompt, "completion_tokens": completion, "total_tokens": prompt + completion},
    }


def openai_tool_delta(
    index: int,
    arguments: str = "",
    id: Optional[str] = None,
    name: Optional[str] = None,
) -> Dict[str, Any]:
    function: Dict[str, Any] = {"arguments": arguments}
    if name is not None:
        function["name"] = name
    delta: Dict[str, Any] = {"index": index, "function": function}
    if id is not None:
        delta["id"] = id
        delta["type"] = "function"
    return delta


@pytest.fixture
def make_source():
    """
    Factory for mock byte sources.

    Usage:
        def test_something(make_source):
            source = make_source([sse(openai_chunk("Hi")), sse("[DONE]")])
    """
    def _make(chunks, **kwargs) -> MockByteSource:
        return MockByteSource(chunks, **kwargs)
    return _make


@pytest.fixture
def hello_stream() -> List[str]:
    """A complete OpenAI stream: "Hello", usage, [DONE]."""
    return [
        sse(openai_chunk("Hel")),
        sse(openai_chunk("lo")),
        sse(openai_chunk(finish_reason="stop")),
        sse(openai_usage_chunk(5, 2)),
        sse("[DONE]"),
    ]


@pytest.fixture
def weather_tool_stream() -> List[str]:
    """An OpenAI stream with one get_weather tool call split over three chunks."""
    return [
        sse(openai_chunk(tool_calls=[openai_tool_delta(0, "", id="call_1", name="get_weather")])),
        sse(openai_chunk(tool_calls=[openai_tool_delta(0, '{"city": ')])),
        sse(openai_chunk(tool_calls=[openai_tool_delta(0, '"Paris"}')])),
        sse(openai_chunk(finish_reason="tool_calls")),
        sse("[DONE]"),
    ]


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the process environment."""
    return Settings(timeout=5.0, live_buffer=64)


# ============================================================
# Skip Helpers
# ============================================================

requires_integration = pytest.mark.skipif(
    not RUN_INTEGRATION,
    reason="Requires RUN_INTEGRATION=1"
)

skip_if_no_openai = pytest.mark.skipif(
    not os.getenv("OPENAI_API_KEY"),
    reason="Requires OPENAI_API_KEY"
)

skip_if_no_anthropic = pytest.mark.skipif(
    not os.getenv("ANTHROPIC_API_KEY"),
    reason="Requires ANTHROPIC_API_KEY"
)
