"""
promptstream - Error Definitions

Error taxonomy for the streaming pipeline with infra vs semantic classification.

Infra errors describe transport or upstream trouble and are usually worth a
retry. Semantic errors describe a request or a response that will not get
better by sending it again (bad options, malformed tool arguments, output that
does not match the requested schema).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorType(str, Enum):
    """Error classification."""
    INFRA = "infra_error"
    SEMANTIC = "semantic_error"


@dataclass
class ErrorDetails:
    """Full error information carried by every promptstream exception."""
    # Core fields (always present)
    code: str
    message: str
    type: ErrorType

    # Context fields
    backend: Optional[str] = None
    model: Optional[str] = None
    param: Optional[str] = None

    # Trace fields
    request_id: str = ""
    provider_request_id: Optional[str] = None

    # Recovery fields
    retryable: bool = False
    retry_after: Optional[int] = None
    partial_content: Optional[str] = None

    # Debug fields
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "code": self.code,
            "message": self.message,
            "type": self.type.value,
            "request_id": self.request_id,
            "retryable": self.retryable,
        }

        if self.backend:
            result["backend"] = self.backend
        if self.model:
            result["model"] = self.model
        if self.param:
            result["param"] = self.param
        if self.provider_request_id:
            result["provider_request_id"] = self.provider_request_id
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        if self.partial_content:
            result["partial_content"] = self.partial_content
        if self.details:
            result["details"] = self.details

        return {"error": result}


class PromptStreamException(Exception):
    """Base exception for all promptstream errors."""

    def __init__(self, error: ErrorDetails, status_code: Optional[int] = None):
        self.error = error
        self.status_code = status_code
        super().__init__(error.message)

    @property
    def code(self) -> str:
        return self.error.code

    @property
    def retryable(self) -> bool:
        return self.error.retryable

    def to_dict(self) -> Dict[str, Any]:
        return self.error.to_dict()


# ============================================================
# Infra Errors (Retryable unless content was already produced)
# ============================================================

class InfraError(PromptStreamException):
    """Base class for infrastructure errors."""
    pass


class ConnectionFailedError(InfraError):
    """Could not connect to the backend."""

    def __init__(self, backend: str, message: str = "", request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="connection_failed",
                message=message or f"Failed to connect to {backend}",
                type=ErrorType.INFRA,
                backend=backend,
                request_id=request_id,
                retryable=True,
                retry_after=5
            )
        )


class ReadTimeoutError(InfraError):
    """The transport gave up waiting for the backend."""

    def __init__(self, backend: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="read_timeout",
                message=f"{backend} did not respond within the transport timeout",
                type=ErrorType.INFRA,
                backend=backend,
                request_id=request_id,
                retryable=True,
                retry_after=10
            )
        )


class UpstreamError(InfraError):
    """Backend returned a server error."""

    def __init__(
        self,
        backend: str,
        status_code: int,
        message: str = "",
        request_id: str = "",
        provider_request_id: str = ""
    ):
        code_map = {
            500: "upstream_500",
            502: "upstream_502",
            503: "upstream_503",
            504: "upstream_504",
        }
        super().__init__(
            ErrorDetails(
                code=code_map.get(status_code, "upstream_error"),
                message=message or f"{backend} returned error {status_code}",
                type=ErrorType.INFRA,
                backend=backend,
                request_id=request_id,
                provider_request_id=provider_request_id or None,
                retryable=True,
                retry_after=30
            ),
            status_code=status_code
        )


class RateLimitedError(InfraError):
    """Backend rate limit exceeded."""

    def __init__(
        self,
        backend: str,
        retry_after: int = 60,
        request_id: str = ""
    ):
        super().__init__(
            ErrorDetails(
                code="rate_limited",
                message=f"{backend} rate limit exceeded. Retry after {retry_after} seconds.",
                type=ErrorType.INFRA,
                backend=backend,
                request_id=request_id,
                retryable=True,
                retry_after=retry_after
            ),
            status_code=429
        )


class StreamError(InfraError):
    """
    The upstream stream terminated with an error.

    Raised by every derived accessor of a response whose stream ended in an
    ``Error`` event. ``event`` holds that terminal event.
    """

    def __init__(
        self,
        message: str,
        event: Any = None,
        backend: Optional[str] = None,
        model: Optional[str] = None,
        partial_content: str = "",
        request_id: str = "",
        code: str = "stream_error"
    ):
        self.event = event
        super().__init__(
            ErrorDetails(
                code=code,
                message=message,
                type=ErrorType.INFRA,
                backend=backend,
                model=model,
                request_id=request_id,
                retryable=not partial_content,
                partial_content=partial_content or None
            )
        )


class ResponseTimeoutError(InfraError):
    """The response deadline elapsed before the stream completed."""

    def __init__(
        self,
        timeout: float,
        backend: Optional[str] = None,
        model: Optional[str] = None,
        partial_content: str = "",
        request_id: str = ""
    ):
        self.timeout = timeout
        super().__init__(
            ErrorDetails(
                code="response_timeout",
                message=f"Response did not complete within {timeout:g} seconds",
                type=ErrorType.INFRA,
                backend=backend,
                model=model,
                request_id=request_id,
                retryable=not partial_content,
                partial_content=partial_content or None,
                details={"timeout_seconds": timeout}
            )
        )


class ResponseClosedError(InfraError):
    """The response was closed by the caller before it completed."""

    def __init__(self, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="response_closed",
                message="Response was closed before the stream completed",
                type=ErrorType.INFRA,
                request_id=request_id,
                retryable=False
            )
        )


# ============================================================
# Semantic Errors (Not Retryable)
# ============================================================

class SemanticError(PromptStreamException):
    """Base class for semantic errors (caller must fix the request)."""
    pass


class InvalidAPIKeyError(SemanticError):
    """Backend rejected the API key."""

    def __init__(self, backend: str, message: str = "", request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="invalid_api_key",
                message=message or f"Invalid or missing API key for {backend}",
                type=ErrorType.SEMANTIC,
                backend=backend,
                request_id=request_id,
                retryable=False,
                details={"hint": "Check your API key configuration"}
            ),
            status_code=401
        )


class MissingAPIKeyError(SemanticError):
    """No API key is configured for the backend."""

    def __init__(self, backend: str, env_var: str = ""):
        super().__init__(
            ErrorDetails(
                code="missing_api_key",
                message=f"No API key configured for {backend}",
                type=ErrorType.SEMANTIC,
                backend=backend,
                retryable=False,
                details={"env_var": env_var} if env_var else {}
            )
        )


class ModelNotFoundError(SemanticError):
    """Requested model does not exist on the backend."""

    def __init__(self, backend: str, model: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="model_not_found",
                message=f"Model '{model}' not found for {backend}",
                type=ErrorType.SEMANTIC,
                backend=backend,
                model=model,
                request_id=request_id,
                retryable=False
            ),
            status_code=404
        )


class InvalidRequestError(SemanticError):
    """Backend rejected the request."""

    def __init__(
        self,
        message: str,
        backend: Optional[str] = None,
        param: str = "",
        request_id: str = "",
        status_code: int = 400
    ):
        super().__init__(
            ErrorDetails(
                code="invalid_request",
                message=message,
                type=ErrorType.SEMANTIC,
                backend=backend,
                param=param or None,
                request_id=request_id,
                retryable=False
            ),
            status_code=status_code
        )


class InvalidOptionsError(SemanticError):
    """Caller options failed the backend's option schema."""

    def __init__(self, backend: str, violations: List[str]):
        self.violations = list(violations)
        super().__init__(
            ErrorDetails(
                code="invalid_options",
                message=f"Invalid options for {backend}: " + "; ".join(self.violations),
                type=ErrorType.SEMANTIC,
                backend=backend,
                retryable=False,
                details={"violations": self.violations}
            )
        )


class BackendNotFoundError(SemanticError):
    """No backend is registered under the requested key."""

    def __init__(self, key: str, available: List[str]):
        super().__init__(
            ErrorDetails(
                code="backend_not_found",
                message=f"No backend registered as '{key}'",
                type=ErrorType.SEMANTIC,
                retryable=False,
                details={
                    "requested_backend": key,
                    "available_backends": sorted(available),
                }
            )
        )


class ToolCallParseError(SemanticError):
    """A tool call's streamed arguments are not valid JSON."""

    def __init__(
        self,
        index: int,
        name: Optional[str],
        reason: str,
        raw_arguments: str = "",
        request_id: str = ""
    ):
        self.index = index
        super().__init__(
            ErrorDetails(
                code="tool_call_parse_error",
                message=f"Tool call {index} ({name or 'unnamed'}) has malformed arguments: {reason}",
                type=ErrorType.SEMANTIC,
                request_id=request_id,
                retryable=False,
                details={"index": index, "name": name, "raw_arguments": raw_arguments}
            )
        )


class SchemaValidationError(SemanticError):
    """Structured output parsed fine but does not match the requested schema."""

    def __init__(
        self,
        violations: List[str],
        value: Any = None,
        request_id: str = ""
    ):
        self.violations = list(violations)
        self.value = value
        super().__init__(
            ErrorDetails(
                code="schema_validation_failed",
                message="Structured output failed schema validation: " + "; ".join(self.violations),
                type=ErrorType.SEMANTIC,
                request_id=request_id,
                retryable=False,
                details={"violations": self.violations}
            )
        )


class StructuredOutputMissingError(SemanticError):
    """A schema was requested but the backend produced no tool call."""

    def __init__(self, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="structured_output_missing",
                message="A schema was requested but no structured tool call was produced",
                type=ErrorType.SEMANTIC,
                request_id=request_id,
                retryable=False
            )
        )


# ============================================================
# HTTP error mapping
# ============================================================

def handle_http_error(
    error: Exception,
    backend: str,
    request_id: str = "",
    model: Optional[str] = None
) -> PromptStreamException:
    """
    Convert an httpx error into a canonical promptstream exception.

    Both OpenAI and Anthropic wrap failures as::

        {"error": {"message": "...", "type": "...", "code": "..."}}
    """
    import httpx

    if isinstance(error, PromptStreamException):
        return error

    if isinstance(error, httpx.TimeoutException):
        if isinstance(error, httpx.ConnectTimeout):
            return ConnectionFailedError(backend, f"Timed out connecting to {backend}", request_id)
        return ReadTimeoutError(backend, request_id)

    if isinstance(error, httpx.ConnectError):
        return ConnectionFailedError(backend, str(error) or "", request_id)

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        status_code = response.status_code

        try:
            error_info = response.json().get("error", {})
            if isinstance(error_info, str):
                error_info = {"message": error_info}
            message = error_info.get("message", str(error))
            provider_req_id = response.headers.get("x-request-id", "") or response.headers.get("request-id", "")
        except Exception:
            message = response.text or str(error)
            provider_req_id = ""

        if status_code in (401, 403):
            return InvalidAPIKeyError(backend, f"{backend} authentication failed: {message}", request_id)

        if status_code == 404 and model:
            return ModelNotFoundError(backend, model, request_id)

        if status_code == 429:
            retry_after = 60
            if "retry-after" in response.headers:
                try:
                    retry_after = int(response.headers["retry-after"])
                except ValueError:
                    pass
            return RateLimitedError(backend, retry_after, request_id=request_id)

        if status_code >= 500:
            return UpstreamError(backend, status_code, message, request_id, provider_req_id)

        return InvalidRequestError(
            f"Invalid request to {backend}: {message}",
            backend=backend,
            request_id=request_id,
            status_code=status_code
        )

    if isinstance(error, httpx.HTTPError):
        return ConnectionFailedError(backend, str(error), request_id)

    return InfraError(
        ErrorDetails(
            code="unknown_error",
            message=str(error) or type(error).__name__,
            type=ErrorType.INFRA,
            backend=backend,
            request_id=request_id,
            retryable=True
        )
    )


def is_retryable(error: BaseException) -> bool:
    """
    Check whether a failed request is worth sending again.

    Never true once content was delivered, since a retry would produce a
    different answer than the one already shown to the caller.
    """
    if not isinstance(error, PromptStreamException):
        return False
    return error.error.retryable and not error.error.partial_content


def format_error(error: BaseException) -> str:
    """Format an error for user display, including a hint when one exists."""
    if not isinstance(error, PromptStreamException):
        return str(error)

    message = str(error)
    hint = error.error.details.get("hint")
    if hint:
        message = f"{message}\n{hint}"
    return message
