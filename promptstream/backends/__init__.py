"""
promptstream Backends Module

Backends open the streamed response for a request in their provider's
native wire format; the streaming module takes it from there.
"""

from .base import Backend, BackendConfig, HttpBackend, HttpByteSource
from .openai_backend import OpenAIBackend, OpenAIOptions
from .anthropic_backend import AnthropicBackend, AnthropicOptions
from .stub_backend import StubBackend, StubByteSource
from .registry import BackendRegistry, default_registry

__all__ = [
    "Backend",
    "BackendConfig",
    "HttpBackend",
    "HttpByteSource",
    "OpenAIBackend",
    "OpenAIOptions",
    "AnthropicBackend",
    "AnthropicOptions",
    "StubBackend",
    "StubByteSource",
    "BackendRegistry",
    "default_registry",
]
