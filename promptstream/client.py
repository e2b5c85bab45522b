"""
promptstream - Client

Public entry points. A ``PromptClient`` resolves a backend from its registry,
validates options against that backend's schema, opens the stream and hands
back a ``ResponseView``.

Usage:
    client = PromptClient(default_registry())
    text = await client.generate("openai/gpt-4o-mini", "Say hello")

    async for chunk in client.stream("anthropic/claude-3-5-haiku-latest", "Tell a story"):
        print(chunk, end="")
"""

import asyncio
import uuid
from typing import Any, AsyncIterator, Optional, Tuple

from .backends.base import Backend
from .backends.registry import BackendRegistry
from .config import Settings
from .core.models import PromptInput, build_messages
from .observability.logging import get_logger
from .streaming.events import Event
from .streaming.response import ResponseView

logger = get_logger(__name__)


def _generate_request_id() -> str:
    return f"resp_{uuid.uuid4().hex[:24]}"


class PromptClient:
    """
    Prompt a registered backend and get a ``ResponseView`` back.

    Args:
        registry: Backends to choose from
        default_backend: Backend key used when the model is not qualified;
            falls back to ``settings.default_backend``
        settings: Timeouts and buffer sizes; read from the environment when omitted
    """

    def __init__(
        self,
        registry: BackendRegistry,
        default_backend: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        self.registry = registry
        self.settings = settings or Settings.from_env()
        self.default_backend = default_backend or self.settings.default_backend

    def resolve(self, model: str, backend: Optional[str] = None) -> Tuple[Backend, str]:
        """
        Resolve ``model`` to a backend and a bare model id.

        ``"anthropic/claude-3-5-haiku-latest"`` selects the ``anthropic``
        backend when that key is registered. An explicit ``backend`` wins and
        leaves the model id untouched.
        """
        if not model:
            raise ValueError("model cannot be empty")
        if backend is not None:
            return self.registry.get(backend), model

        prefix, sep, rest = model.partition("/")
        if sep and rest and prefix in self.registry:
            return self.registry.get(prefix), rest
        return self.registry.get(self.default_backend), model

    def prompt(
        self,
        model: str,
        prompt_or_messages: PromptInput,
        *,
        backend: Optional[str] = None,
        **options: Any,
    ) -> ResponseView:
        """
        Send a prompt and return the response view.

        Options are validated before anything is sent. Consumption starts
        right away when called inside a running event loop, otherwise on the
        first accessor.

        Raises:
            BackendNotFoundError: unknown backend key
            InvalidOptionsError: options rejected by the backend's schema
        """
        selected, model_id = self.resolve(model, backend)
        opts = selected.validate_options(model_id, options)
        # Malformed input fails here rather than inside the background task
        build_messages(prompt_or_messages, opts.system_prompt, opts.history)

        request_id = _generate_request_id()

        async def opener():
            return await selected.start_stream(model_id, prompt_or_messages, opts, request_id)

        view = ResponseView(
            opener,
            selected.wire_format,
            backend=selected.name,
            model=model_id,
            timeout=opts.timeout or self.settings.timeout,
            live_buffer=self.settings.live_buffer,
            schema=opts.output_schema,
            validate_output=opts.validate_output,
            request_id=request_id,
        )
        logger.debug(
            "Prompt issued",
            backend=selected.name,
            model=model_id,
            request_id=request_id,
            structured=opts.wants_structured_output,
        )

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return view
        return view.start()

    async def generate(
        self,
        model: str,
        prompt_or_messages: PromptInput,
        *,
        backend: Optional[str] = None,
        **options: Any,
    ) -> Any:
        """Return the full text, or the structured output when a schema is given."""
        view = self.prompt(model, prompt_or_messages, backend=backend, **options)
        async with view:
            if view.schema is not None:
                return await view.structured_output()
            return await view.text()

    async def stream(
        self,
        model: str,
        prompt_or_messages: PromptInput,
        *,
        backend: Optional[str] = None,
        **options: Any,
    ) -> AsyncIterator[str]:
        """
        Yield text chunks as they arrive; raises if the stream fails.

        Chunks are read from the live feed. A consumer that falls more than
        ``live_buffer`` events behind loses the overflow and a warning is
        logged; use ``generate`` when every character matters.
        """
        view = self.prompt(model, prompt_or_messages, backend=backend, **options)
        async with view:
            async for chunk in view.chunks():
                yield chunk

    async def events(
        self,
        model: str,
        prompt_or_messages: PromptInput,
        *,
        backend: Optional[str] = None,
        **options: Any,
    ) -> AsyncIterator[Event]:
        """Yield canonical events, ending with ``Done`` or ``Error``."""
        view = self.prompt(model, prompt_or_messages, backend=backend, **options)
        async with view:
            async for event in view:
                yield event

    async def aclose(self):
        """Close every backend in the registry."""
        await self.registry.aclose()

    async def __aenter__(self) -> "PromptClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
