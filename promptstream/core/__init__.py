"""
promptstream Core Module

Shared data models and the error hierarchy.
"""

from .models import (
    # Enums
    Role,
    FinishReason,

    # Messages
    Message,
    PromptInput,
    Attachment,
    build_messages,

    # Tool calling
    ToolCall,

    # Options
    BackendOptions,
)

from .errors import (
    # Error types
    ErrorType,
    ErrorDetails,
    PromptStreamException,

    # Infra errors
    InfraError,
    ConnectionFailedError,
    ReadTimeoutError,
    UpstreamError,
    RateLimitedError,
    StreamError,
    ResponseTimeoutError,
    ResponseClosedError,

    # Semantic errors
    SemanticError,
    InvalidAPIKeyError,
    MissingAPIKeyError,
    ModelNotFoundError,
    InvalidRequestError,
    InvalidOptionsError,
    BackendNotFoundError,
    ToolCallParseError,
    SchemaValidationError,
    StructuredOutputMissingError,

    # Helpers
    handle_http_error,
    is_retryable,
    format_error,
)

__all__ = [
    # Enums
    "Role",
    "FinishReason",

    # Messages
    "Message",
    "PromptInput",
    "Attachment",
    "build_messages",

    # Tool calling
    "ToolCall",

    # Options
    "BackendOptions",

    # Errors
    "ErrorType",
    "ErrorDetails",
    "PromptStreamException",
    "InfraError",
    "ConnectionFailedError",
    "ReadTimeoutError",
    "UpstreamError",
    "RateLimitedError",
    "StreamError",
    "ResponseTimeoutError",
    "ResponseClosedError",
    "SemanticError",
    "InvalidAPIKeyError",
    "MissingAPIKeyError",
    "ModelNotFoundError",
    "InvalidRequestError",
    "InvalidOptionsError",
    "BackendNotFoundError",
    "ToolCallParseError",
    "SchemaValidationError",
    "StructuredOutputMissingError",
    "handle_http_error",
    "is_retryable",
    "format_error",
]
