"""
promptstream - OpenAI Backend

Streams chat completions from OpenAI, or from any server that speaks the
OpenAI chat-completions protocol (point ``base_url`` at it).
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from ..core.models import BackendOptions, Message, Role
from ..tools.schema import tool_spec_from_schema
from .base import HttpBackend

RESPONSE_FORMATS = {
    "text": {"type": "text"},
    "json": {"type": "json_object"},
}


class OpenAIOptions(BackendOptions):
    """Options accepted by the OpenAI backend."""
    frequency_penalty: Optional[float] = Field(default=None, ge=-2.0, le=2.0)
    presence_penalty: Optional[float] = Field(default=None, ge=-2.0, le=2.0)
    response_format: Optional[Literal["text", "json"]] = None


class OpenAIBackend(HttpBackend):
    """
    Backend for the OpenAI chat-completions API.

    Requests usage with ``stream_options.include_usage`` so the final chunk
    carries token counts. A structured-output schema becomes one forced
    function tool.
    """

    name = "openai"
    wire_format = "openai"
    options_class = OpenAIOptions

    DEFAULT_BASE_URL = "https://api.openai.com/v1"
    ENDPOINT = "/chat/completions"
    API_KEY_ENV = "OPENAI_API_KEY"

    def _build_headers(self, api_key: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    def _build_payload(
        self,
        model_id: str,
        messages: List[Message],
        options: OpenAIOptions,
    ) -> Dict[str, Any]:
        """Build OpenAI-specific chat payload."""
        payload: Dict[str, Any] = {
            "model": model_id,
            "stream": True,
            "stream_options": {"include_usage": True},
            "messages": self._convert_messages(messages, options),
        }

        if options.temperature is not None:
            payload["temperature"] = options.temperature
        if options.top_p is not None:
            payload["top_p"] = options.top_p
        if options.max_tokens is not None:
            payload["max_tokens"] = options.max_tokens
        if options.stop:
            payload["stop"] = options.stop
        if options.seed is not None:
            payload["seed"] = options.seed
        if options.frequency_penalty is not None:
            payload["frequency_penalty"] = options.frequency_penalty
        if options.presence_penalty is not None:
            payload["presence_penalty"] = options.presence_penalty
        if options.response_format:
            payload["response_format"] = RESPONSE_FORMATS[options.response_format]

        if options.wants_structured_output:
            spec = tool_spec_from_schema(
                options.output_schema, options.tool_name, options.tool_description
            )
            payload["tools"] = [spec.to_openai_tool()]
            payload["tool_choice"] = spec.to_openai_tool_choice()

        return payload

    def _convert_messages(
        self,
        messages: List[Message],
        options: OpenAIOptions,
    ) -> List[Dict[str, Any]]:
        """Convert messages to OpenAI format; attachments join the last user message."""
        result = [message.to_dict() for message in messages]

        if options.attachments:
            for message in reversed(result):
                if message["role"] == Role.USER.value:
                    message["content"] = [{"type": "text", "text": message["content"]}] + [
                        {"type": "image_url", "image_url": {"url": attachment.to_data_url()}}
                        for attachment in options.attachments
                    ]
                    break
            else:
                raise ValueError("Attachments require a user message")

        return result
