"""
promptstream - Backend Base

Abstract base class for backends. A backend turns a model id, a prompt and
validated options into an open byte stream, and publishes the option schema
its callers are validated against. It never parses the stream itself; the
response pipeline picks the normalizer named by ``wire_format``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Type, Union

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..core.errors import (
    InvalidOptionsError,
    MissingAPIKeyError,
    handle_http_error,
)
from ..core.models import BackendOptions, Message, PromptInput, build_messages
from ..observability.logging import TimedOperation, get_logger
from ..observability.tracing import trace_backend_call
from ..streaming.frames import ByteSource

logger = get_logger(__name__)


@dataclass
class BackendConfig:
    """Configuration for an HTTP backend."""
    api_key: Optional[str] = field(default=None, repr=False)
    base_url: Optional[str] = None
    timeout: float = 60.0
    connect_timeout: float = 10.0
    headers: Dict[str, str] = field(default_factory=dict)


class HttpByteSource:
    """
    Byte source over an httpx streaming response.

    ``open`` sends the request and maps HTTP errors before any byte is handed
    to the decoder, so a 401 or 429 never looks like a stream.
    """

    def __init__(self, response: httpx.Response):
        self._response = response

    @classmethod
    async def open(
        cls,
        client: httpx.AsyncClient,
        request: httpx.Request,
        backend: str,
        model: Optional[str] = None,
        request_id: str = "",
    ) -> "HttpByteSource":
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise handle_http_error(e, backend, request_id, model) from e

        if response.status_code >= 400:
            try:
                await response.aread()
            finally:
                await response.aclose()
            error = httpx.HTTPStatusError(
                f"{backend} returned HTTP {response.status_code}",
                request=request,
                response=response,
            )
            raise handle_http_error(error, backend, request_id, model) from error

        return cls(response)

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._response.aiter_bytes()

    async def aclose(self):
        await self._response.aclose()


class Backend(ABC):
    """
    Abstract base class for backends.

    Each backend must implement:
    - start_stream: open the streamed response for a request
    - option_schema: the pydantic options model its callers are validated with

    Attributes:
        name: Registry-facing backend name
        wire_format: Name of the normalizer that understands this backend's stream
    """

    name: str = ""
    wire_format: str = ""
    options_class: Type[BackendOptions] = BackendOptions

    @abstractmethod
    async def start_stream(
        self,
        model_id: str,
        prompt_or_messages: PromptInput,
        options: BackendOptions,
        request_id: str = "",
    ) -> ByteSource:
        """
        Open the streamed response.

        Args:
            model_id: Model name understood by the backend
            prompt_or_messages: A prompt string or a message sequence
            options: Options already validated by ``validate_options``
            request_id: Correlation id for errors and logs

        Returns:
            An open byte source; the caller owns its release.
        """
        pass

    def option_schema(self, model_id: str) -> Type[BackendOptions]:
        """Return the options model for a model id."""
        return self.options_class

    def validate_options(
        self,
        model_id: str,
        raw: Union[BackendOptions, Mapping[str, Any], None] = None,
    ) -> BackendOptions:
        """
        Validate caller options before any request is issued.

        Raises:
            InvalidOptionsError: listing every violation
        """
        schema = self.option_schema(model_id)
        if isinstance(raw, schema):
            return raw
        if isinstance(raw, BackendOptions):
            raw = {
                (info.alias or name): getattr(raw, name)
                for name, info in type(raw).model_fields.items()
                if name in raw.model_fields_set
            }

        try:
            return schema.model_validate(dict(raw or {}))
        except PydanticValidationError as e:
            violations = []
            for error in e.errors():
                location = ".".join(str(part) for part in error["loc"]) or "options"
                violations.append(f"{location}: {error['msg']}")
            raise InvalidOptionsError(self.name, violations) from e

    async def aclose(self):
        """Release resources held by the backend."""
        pass


class HttpBackend(Backend):
    """
    Base for backends that POST a JSON body and read an SSE response.

    Subclasses supply the endpoint, headers and payload mapping. The httpx
    client is created lazily, or injected (tests pass one with a
    ``MockTransport``).
    """

    DEFAULT_BASE_URL = ""
    ENDPOINT = ""
    API_KEY_ENV = ""

    def __init__(
        self,
        config: Optional[BackendConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or BackendConfig()
        self.base_url = self.config.base_url or self.DEFAULT_BASE_URL
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout, connect=self.config.connect_timeout),
            )
        return self._client

    def _api_key(self, options: BackendOptions) -> str:
        api_key = options.api_key or self.config.api_key
        if not api_key:
            raise MissingAPIKeyError(self.name, self.API_KEY_ENV)
        return api_key

    @abstractmethod
    def _build_headers(self, api_key: str) -> Dict[str, str]:
        pass

    @abstractmethod
    def _build_payload(
        self,
        model_id: str,
        messages: List[Message],
        options: BackendOptions,
    ) -> Dict[str, Any]:
        pass

    def build_request(
        self,
        model_id: str,
        prompt_or_messages: PromptInput,
        options: BackendOptions,
    ) -> httpx.Request:
        """Build the streaming request without sending it."""
        messages = build_messages(prompt_or_messages, options.system_prompt, options.history)
        payload = self._build_payload(model_id, messages, options)
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
            **self.config.headers,
            **self._build_headers(self._api_key(options)),
        }
        url = f"{self.base_url.rstrip('/')}{self.ENDPOINT}"
        return self.client.build_request("POST", url, json=payload, headers=headers)

    async def start_stream(
        self,
        model_id: str,
        prompt_or_messages: PromptInput,
        options: BackendOptions,
        request_id: str = "",
    ) -> ByteSource:
        request = self.build_request(model_id, prompt_or_messages, options)
        logger.debug("Opening stream", backend=self.name, model=model_id, url=str(request.url))

        with trace_backend_call(self.name, model_id) as span, TimedOperation("open_stream", logger):
            source = await HttpByteSource.open(
                self.client, request, self.name, model=model_id, request_id=request_id
            )
            span.set_attribute("http.status_code", source.status_code)
        return source

    async def aclose(self):
        """Close the HTTP client if this backend created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
