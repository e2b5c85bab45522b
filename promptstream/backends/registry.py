"""
promptstream - Backend Registry

Explicit registry object mapping keys to backends. Callers build one and hand
it to a ``PromptClient``; there is no process-wide registry.
"""

from typing import Dict, List, Optional

from ..config import Settings
from ..core.errors import BackendNotFoundError
from ..observability.logging import get_logger
from .anthropic_backend import AnthropicBackend
from .base import Backend, BackendConfig
from .openai_backend import OpenAIBackend
from .stub_backend import StubBackend

logger = get_logger(__name__)


class BackendRegistry:
    """Keyed collection of backends."""

    def __init__(self, backends: Optional[Dict[str, Backend]] = None):
        self._backends: Dict[str, Backend] = {}
        for key, backend in (backends or {}).items():
            self.register(key, backend)

    def register(self, key: str, backend: Backend) -> None:
        """Register a backend under ``key``, replacing any previous one."""
        if not key:
            raise ValueError("Backend key cannot be empty")
        if "/" in key:
            raise ValueError(f"Backend key cannot contain '/': {key!r}")
        if key in self._backends:
            logger.warning("Replacing registered backend", backend=key)
        self._backends[key] = backend
        logger.debug("Registered backend", backend=key, wire_format=backend.wire_format)

    def get(self, key: str) -> Backend:
        """
        Look up a backend.

        Raises:
            BackendNotFoundError: if ``key`` is not registered
        """
        backend = self._backends.get(key)
        if backend is None:
            raise BackendNotFoundError(key, self.keys())
        return backend

    def keys(self) -> List[str]:
        return sorted(self._backends)

    def __contains__(self, key: object) -> bool:
        return key in self._backends

    def __len__(self) -> int:
        return len(self._backends)

    async def aclose(self):
        """Close every registered backend."""
        for key, backend in list(self._backends.items()):
            try:
                await backend.aclose()
            except Exception as e:
                logger.warning("Failed to close backend", backend=key, error=str(e))


def default_registry(settings: Optional[Settings] = None) -> BackendRegistry:
    """
    Build the standard registry.

    Registers ``openai`` and ``anthropic``. With ``use_stub_backends`` both
    keys map to offline stub backends speaking the same wire formats.
    """
    settings = settings or Settings.from_env()
    registry = BackendRegistry()

    if settings.use_stub_backends:
        registry.register("openai", StubBackend(name="openai", wire_format="openai"))
        registry.register("anthropic", StubBackend(name="anthropic", wire_format="anthropic"))
        logger.info("Using stub backends", backends=registry.keys())
        return registry

    registry.register("openai", OpenAIBackend(BackendConfig(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout=settings.timeout,
        connect_timeout=settings.connect_timeout,
    )))
    registry.register("anthropic", AnthropicBackend(BackendConfig(
        api_key=settings.anthropic_api_key,
        base_url=settings.anthropic_base_url,
        timeout=settings.timeout,
        connect_timeout=settings.connect_timeout,
    )))
    return registry
