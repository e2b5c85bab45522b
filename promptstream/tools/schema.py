"""
promptstream - Tool Specs for Structured Output

A caller asks for structured output by passing a schema: either a JSON Schema
dict describing an object, or a pydantic model class. The backend turns it
into one forced function tool, and the response reads the answer back from
that tool call's arguments.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from pydantic import BaseModel

SchemaInput = Union[Dict[str, Any], Type[BaseModel]]

FUNCTION_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
MAX_FUNCTION_NAME_LENGTH = 64
MAX_DESCRIPTION_LENGTH = 1024

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_-]+")


@dataclass
class ToolSpec:
    """
    One function tool, in the shape both wire formats derive from.
    """
    name: str
    description: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)

    def validate_name(self) -> Tuple[bool, Optional[str]]:
        """
        Validate function name.

        Rules:
        - Must be 1-64 characters
        - Must match pattern [a-zA-Z0-9_-]+
        """
        if not self.name:
            return False, "Function name is required"
        if len(self.name) > MAX_FUNCTION_NAME_LENGTH:
            return False, f"Function name exceeds {MAX_FUNCTION_NAME_LENGTH} characters"
        if not FUNCTION_NAME_PATTERN.match(self.name):
            return False, "Function name must match pattern [a-zA-Z0-9_-]+"
        return True, None

    def validate(self) -> Tuple[bool, List[str]]:
        errors = []

        is_valid, error = self.validate_name()
        if not is_valid:
            errors.append(error)

        if len(self.description) > MAX_DESCRIPTION_LENGTH:
            errors.append(f"Description exceeds {MAX_DESCRIPTION_LENGTH} characters")

        if self.parameters.get("type") != "object":
            errors.append("Parameters schema must describe an object")

        return len(errors) == 0, errors

    # ============================================================
    # Wire formats
    # ============================================================

    def to_openai_tool(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_openai_tool_choice(self) -> Dict[str, Any]:
        return {"type": "function", "function": {"name": self.name}}

    def to_anthropic_tool(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }

    def to_anthropic_tool_choice(self) -> Dict[str, Any]:
        return {"type": "tool", "name": self.name}


def resolve_json_schema(schema: SchemaInput) -> Dict[str, Any]:
    """Return the JSON Schema dict for a schema dict or pydantic model class."""
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return schema.model_json_schema()
    if isinstance(schema, dict):
        return schema
    raise TypeError(f"Unsupported schema type: {type(schema).__name__}")


def tool_spec_from_schema(
    schema: SchemaInput,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> ToolSpec:
    """
    Build the forced tool for a structured-output request.

    Without an explicit name the tool is called ``extract_<fields>`` and
    described as "Extract <fields> from input".
    """
    parameters = resolve_json_schema(schema)
    if parameters.get("type", "object") != "object" or "properties" not in parameters:
        raise ValueError("Structured output schema must describe an object with properties")
    parameters = {"type": "object", **parameters}

    field_names = list(parameters["properties"].keys())
    if not name:
        name = "extract_" + "_".join(field_names) if field_names else "extract"
    name = _INVALID_NAME_CHARS.sub("_", name)[:MAX_FUNCTION_NAME_LENGTH]

    if not description:
        description = parameters.get("description") or f"Extract {', '.join(field_names)} from input"

    spec = ToolSpec(name=name, description=description[:MAX_DESCRIPTION_LENGTH], parameters=parameters)
    is_valid, errors = spec.validate()
    if not is_valid:
        raise ValueError("; ".join(errors))
    return spec
