"""
promptstream - Configuration

Environment-driven settings. Every value can also be passed explicitly to
``Settings``; ``Settings.from_env()`` reads the process environment once.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

TRUE_VALUES = {"1", "true", "yes", "on"}
LOG_FORMATS = {"json", "text"}

DEFAULT_TIMEOUT = 60.0
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_LIVE_BUFFER = 1024
DEFAULT_BACKEND = "openai"

OPENAI_DEFAULT_BASE_URL = "https://api.openai.com/v1"
ANTHROPIC_DEFAULT_BASE_URL = "https://api.anthropic.com"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def use_stub_backends() -> bool:
    """Check whether the default registry should use offline stub backends."""
    return os.getenv("PROMPTSTREAM_USE_STUB_BACKENDS", "false").lower().strip() in TRUE_VALUES


def get_api_keys() -> Dict[str, Optional[str]]:
    """Get backend API keys from environment."""
    return {
        "openai": os.getenv("OPENAI_API_KEY"),
        "anthropic": os.getenv("ANTHROPIC_API_KEY"),
    }


@dataclass
class Settings:
    """Runtime settings for clients, backends and responses."""
    timeout: float = DEFAULT_TIMEOUT
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    live_buffer: int = DEFAULT_LIVE_BUFFER
    default_backend: str = DEFAULT_BACKEND
    use_stub_backends: bool = False
    log_level: Optional[str] = None
    log_format: str = "json"

    openai_api_key: Optional[str] = field(default=None, repr=False)
    openai_base_url: str = OPENAI_DEFAULT_BASE_URL
    anthropic_api_key: Optional[str] = field(default=None, repr=False)
    anthropic_base_url: str = ANTHROPIC_DEFAULT_BASE_URL

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``PROMPTSTREAM_*`` and provider environment variables."""
        keys = get_api_keys()
        settings = cls(
            timeout=_env_float("PROMPTSTREAM_TIMEOUT", DEFAULT_TIMEOUT),
            connect_timeout=_env_float("PROMPTSTREAM_CONNECT_TIMEOUT", DEFAULT_CONNECT_TIMEOUT),
            live_buffer=_env_int("PROMPTSTREAM_LIVE_BUFFER", DEFAULT_LIVE_BUFFER),
            default_backend=os.getenv("PROMPTSTREAM_DEFAULT_BACKEND", DEFAULT_BACKEND).strip() or DEFAULT_BACKEND,
            use_stub_backends=use_stub_backends(),
            log_level=os.getenv("PROMPTSTREAM_LOG_LEVEL") or None,
            log_format=os.getenv("PROMPTSTREAM_LOG_FORMAT", "json").lower().strip() or "json",
            openai_api_key=keys["openai"],
            openai_base_url=os.getenv("OPENAI_BASE_URL") or OPENAI_DEFAULT_BASE_URL,
            anthropic_api_key=keys["anthropic"],
            anthropic_base_url=os.getenv("ANTHROPIC_BASE_URL") or ANTHROPIC_DEFAULT_BASE_URL,
        )
        validate_settings(settings)
        return settings


def validate_settings(settings: Settings) -> None:
    """Fail fast on settings that would only break later, mid-request."""
    if settings.timeout <= 0:
        raise ValueError("PROMPTSTREAM_TIMEOUT must be greater than 0")
    if settings.connect_timeout <= 0:
        raise ValueError("PROMPTSTREAM_CONNECT_TIMEOUT must be greater than 0")
    if settings.live_buffer < 1:
        raise ValueError("PROMPTSTREAM_LIVE_BUFFER must be at least 1")
    if settings.log_format not in LOG_FORMATS:
        raise ValueError("PROMPTSTREAM_LOG_FORMAT must be one of: json, text")
    if not settings.default_backend:
        raise ValueError("PROMPTSTREAM_DEFAULT_BACKEND cannot be empty")
