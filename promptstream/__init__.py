"""
promptstream - Streaming LLM Client

Consume a streamed model response once and read it many ways: live events,
text chunks, full text, token usage, reassembled tool calls and validated
structured output.

Quick Start:
    from promptstream import PromptClient, default_registry

    client = PromptClient(default_registry())

    # Full text
    text = await client.generate("openai/gpt-4o-mini", "Say hello")

    # Streaming
    async for chunk in client.stream("anthropic/claude-3-5-haiku-latest", "Tell a story"):
        print(chunk, end="", flush=True)

    # Several views of one response
    response = client.prompt("openai/gpt-4o-mini", "Weather in Paris?", schema=Weather)
    async for event in response:
        ...
    weather = await response.structured_output()
"""

__version__ = "1.0.0"
__author__ = "promptstream"

from .backends import (
    Backend,
    BackendConfig,
    BackendRegistry,
    StubBackend,
    default_registry,
)
from .client import PromptClient
from .config import Settings
from .core import (
    Attachment,
    BackendOptions,
    Message,
    PromptStreamException,
    StreamError,
    ToolCall,
)
from .streaming import (
    Content,
    Done,
    Error,
    Event,
    Finish,
    ResponseState,
    ResponseView,
    ToolCallDelta,
    Usage,
)

__all__ = [
    # Client
    "PromptClient",
    "Settings",
    # Backends
    "Backend",
    "BackendConfig",
    "BackendRegistry",
    "StubBackend",
    "default_registry",
    # Models
    "Attachment",
    "BackendOptions",
    "Message",
    "ToolCall",
    # Events
    "Content",
    "ToolCallDelta",
    "Usage",
    "Finish",
    "Error",
    "Done",
    "Event",
    # Response
    "ResponseState",
    "ResponseView",
    # Errors
    "PromptStreamException",
    "StreamError",
]
