"""
promptstream - Tool Calling Module

Structured output support:
- Schema: turning a JSON Schema or pydantic model into a forced tool
- Validator: checking the model's arguments against that schema
"""

from .schema import (
    SchemaInput,
    ToolSpec,
    resolve_json_schema,
    tool_spec_from_schema,
)
from .validator import (
    SchemaValidator,
    ValidationResult,
    ValidationError,
    check_schema,
    validate_against_schema,
    validate_structured_output,
)

__all__ = [
    # Schema
    "SchemaInput",
    "ToolSpec",
    "resolve_json_schema",
    "tool_spec_from_schema",
    # Validator
    "SchemaValidator",
    "ValidationResult",
    "ValidationError",
    "check_schema",
    "validate_against_schema",
    "validate_structured_output",
]
