"""
promptstream - Anthropic Backend

Streams from the Anthropic Messages API.
"""

from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from ..core.models import BackendOptions, Message, Role
from ..tools.schema import tool_spec_from_schema
from .base import HttpBackend

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 1024


class AnthropicOptions(BackendOptions):
    """
    Options accepted by the Anthropic backend.

    ``max_tokens`` is mandatory on the wire, so it defaults to 1024 here.
    Anthropic has no sampling seed.
    """
    temperature: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, gt=0)
    top_k: Optional[int] = Field(default=None, gt=0)

    @field_validator("seed")
    @classmethod
    def _no_seed(cls, v):
        if v is not None:
            raise ValueError("seed is not supported by the anthropic backend")
        return v


class AnthropicBackend(HttpBackend):
    """
    Backend for the Anthropic Messages API.

    System messages are lifted into the top-level ``system`` field. A
    structured-output schema becomes one tool forced through
    ``tool_choice: {"type": "tool"}``.
    """

    name = "anthropic"
    wire_format = "anthropic"
    options_class = AnthropicOptions

    DEFAULT_BASE_URL = "https://api.anthropic.com"
    ENDPOINT = "/v1/messages"
    API_KEY_ENV = "ANTHROPIC_API_KEY"

    def _build_headers(self, api_key: str) -> Dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def _build_payload(
        self,
        model_id: str,
        messages: List[Message],
        options: AnthropicOptions,
    ) -> Dict[str, Any]:
        """Build Anthropic-specific messages payload."""
        system_parts = [m.content for m in messages if m.role == Role.SYSTEM]
        conversation = [m for m in messages if m.role != Role.SYSTEM]

        payload: Dict[str, Any] = {
            "model": model_id,
            "max_tokens": options.max_tokens,
            "stream": True,
            "messages": self._convert_messages(conversation, options),
        }

        if system_parts:
            payload["system"] = "\n\n".join(system_parts)
        if options.temperature is not None:
            payload["temperature"] = options.temperature
        if options.top_p is not None:
            payload["top_p"] = options.top_p
        if options.top_k is not None:
            payload["top_k"] = options.top_k
        if options.stop:
            payload["stop_sequences"] = options.stop

        if options.wants_structured_output:
            spec = tool_spec_from_schema(
                options.output_schema, options.tool_name, options.tool_description
            )
            payload["tools"] = [spec.to_anthropic_tool()]
            payload["tool_choice"] = spec.to_anthropic_tool_choice()

        return payload

    def _convert_messages(
        self,
        messages: List[Message],
        options: AnthropicOptions,
    ) -> List[Dict[str, Any]]:
        """Convert messages to Anthropic format; images precede the last user text."""
        result = []
        for message in messages:
            if message.role not in (Role.USER, Role.ASSISTANT):
                raise ValueError(f"Unsupported role for anthropic: {message.role.value}")
            result.append(message.to_dict())

        if options.attachments:
            for message in reversed(result):
                if message["role"] == Role.USER.value:
                    message["content"] = [
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": attachment.media_type,
                                "data": attachment.to_base64(),
                            },
                        }
                        for attachment in options.attachments
                    ] + [{"type": "text", "text": message["content"]}]
                    break
            else:
                raise ValueError("Attachments require a user message")

        return result
