"""
promptstream - Structured Output Validation

Checks a parsed tool call's arguments against the schema the caller asked for.

Covers the JSON Schema keywords structured-output schemas actually use:
type (including unions), enum, const, required, properties,
additionalProperties, items, min/max items, string length and pattern,
numeric bounds, anyOf, and local ``$ref`` into ``$defs``/``definitions``.
Pydantic model classes are validated by pydantic itself.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .schema import SchemaInput


@dataclass
class ValidationError:
    """Represents a single validation error."""
    path: str  # dotted path to the offending value, "" for the root
    message: str
    code: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


@dataclass
class ValidationResult:
    """Result of a validation operation."""
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)

    @classmethod
    def ok(cls) -> "ValidationResult":
        """Create successful validation result."""
        return cls(is_valid=True, errors=[])

    @classmethod
    def fail(cls, errors: List[ValidationError]) -> "ValidationResult":
        """Create failed validation result."""
        return cls(is_valid=False, errors=errors)

    def add_error(self, path: str, message: str, code: str = "validation_error"):
        """Add an error to the result."""
        self.errors.append(ValidationError(path=path, message=message, code=code))
        self.is_valid = False

    def merge(self, other: "ValidationResult"):
        """Merge another validation result into this one."""
        self.errors.extend(other.errors)
        if not other.is_valid:
            self.is_valid = False

    @property
    def violations(self) -> List[str]:
        return [str(error) for error in self.errors]


def _join(path: str, key: Any) -> str:
    if isinstance(key, int):
        return f"{path}[{key}]"
    return f"{path}.{key}" if path else str(key)


class SchemaValidator:
    """
    Validates JSON values against a JSON Schema dict.

    ``$ref`` is resolved against the root schema passed to ``validate``.
    """

    def validate(self, value: Any, schema: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult.ok()
        self._validate(value, schema, "", schema, result)
        return result

    def check_schema(self, schema: Dict[str, Any]) -> List[str]:
        """
        Find problems in the schema itself.

        Reports ``$ref`` values that do not point inside the schema and
        ``pattern`` values that are not valid regular expressions.
        """
        problems: List[str] = []
        self._check_node(schema, schema, problems)
        return problems

    def _check_node(self, node: Any, root: Dict[str, Any], problems: List[str]):
        if isinstance(node, list):
            for item in node:
                self._check_node(item, root, problems)
            return
        if not isinstance(node, dict):
            return

        ref = node.get("$ref")
        if ref is not None and self._lookup(ref, root) is None:
            problems.append(f"Unresolvable schema reference: {ref}")

        pattern = node.get("pattern")
        if isinstance(pattern, str):
            try:
                re.compile(pattern)
            except re.error as e:
                problems.append(f"Invalid pattern {pattern!r}: {e}")

        for child in node.values():
            self._check_node(child, root, problems)

    @staticmethod
    def _lookup(ref: Any, root: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Follow a local JSON pointer; None when it leaves the schema."""
        if not isinstance(ref, str) or not (ref == "#" or ref.startswith("#/")):
            return None
        target: Any = root
        for part in ref[1:].split("/")[1:]:
            part = part.replace("~1", "/").replace("~0", "~")
            if isinstance(target, dict) and part in target:
                target = target[part]
            elif isinstance(target, list) and part.isdigit() and int(part) < len(target):
                target = target[int(part)]
            else:
                return None
        return target if isinstance(target, dict) else None

    def _resolve(
        self,
        schema: Dict[str, Any],
        root: Dict[str, Any],
        path: str,
        result: ValidationResult
    ) -> Optional[Dict[str, Any]]:
        ref = schema.get("$ref")
        seen = set()
        while ref is not None:
            target = self._lookup(ref, root)
            if target is None:
                result.add_error(path, f"Unresolvable schema reference: {ref}", "invalid_schema")
                return None
            if ref in seen:
                result.add_error(path, f"Circular schema reference: {ref}", "invalid_schema")
                return None
            seen.add(ref)
            schema = target
            ref = schema.get("$ref")
        return schema

    def _validate(
        self,
        value: Any,
        schema: Dict[str, Any],
        path: str,
        root: Dict[str, Any],
        result: ValidationResult
    ):
        if not isinstance(schema, dict):
            return
        schema = self._resolve(schema, root, path, result)
        if schema is None:
            return

        if "anyOf" in schema:
            for option in schema["anyOf"]:
                branch = ValidationResult.ok()
                self._validate(value, option, path, root, branch)
                if branch.is_valid:
                    break
            else:
                result.add_error(path, "Value does not match any allowed schema", "any_of")
                return

        expected_type = schema.get("type")
        if expected_type:
            types = expected_type if isinstance(expected_type, list) else [expected_type]
            if not any(self._value_matches_type(value, t) for t in types):
                result.add_error(
                    path,
                    f"Expected type {expected_type}, got {self._json_type_name(value)}",
                    "type_mismatch"
                )
                return

        if "enum" in schema and value not in schema["enum"]:
            result.add_error(path, f"Value must be one of: {schema['enum']}", "enum")

        if "const" in schema and value != schema["const"]:
            result.add_error(path, f"Value must be {schema['const']!r}", "const")

        if isinstance(value, dict):
            self._validate_object(value, schema, path, root, result)
        elif isinstance(value, list):
            self._validate_array(value, schema, path, root, result)
        elif isinstance(value, str):
            self._validate_string(value, schema, path, result)
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            self._validate_number(value, schema, path, result)

    def _validate_object(self, value, schema, path, root, result):
        properties = schema.get("properties", {})

        for req in schema.get("required", []):
            if req not in value:
                result.add_error(_join(path, req), f"Required field '{req}' is missing", "required")

        additional = schema.get("additionalProperties", True)
        for key, item in value.items():
            if key in properties:
                self._validate(item, properties[key], _join(path, key), root, result)
            elif additional is False:
                result.add_error(_join(path, key), f"Unexpected field '{key}'", "additional_property")
            elif isinstance(additional, dict):
                self._validate(item, additional, _join(path, key), root, result)

    def _validate_array(self, value, schema, path, root, result):
        if "minItems" in schema and len(value) < schema["minItems"]:
            result.add_error(path, f"Expected at least {schema['minItems']} items", "min_items")
        if "maxItems" in schema and len(value) > schema["maxItems"]:
            result.add_error(path, f"Expected at most {schema['maxItems']} items", "max_items")

        items = schema.get("items")
        if isinstance(items, dict):
            for i, item in enumerate(value):
                self._validate(item, items, _join(path, i), root, result)
        elif isinstance(items, list):
            for i, (item, item_schema) in enumerate(zip(value, items)):
                self._validate(item, item_schema, _join(path, i), root, result)

    def _validate_string(self, value, schema, path, result):
        if "minLength" in schema and len(value) < schema["minLength"]:
            result.add_error(path, f"String shorter than {schema['minLength']}", "min_length")
        if "maxLength" in schema and len(value) > schema["maxLength"]:
            result.add_error(path, f"String longer than {schema['maxLength']}", "max_length")
        if "pattern" in schema:
            try:
                matched = re.search(schema["pattern"], value)
            except re.error as e:
                result.add_error(path, f"Invalid pattern {schema['pattern']!r}: {e}", "invalid_schema")
                return
            if not matched:
                result.add_error(path, f"String does not match pattern {schema['pattern']}", "pattern")

    def _validate_number(self, value, schema, path, result):
        if "minimum" in schema and value < schema["minimum"]:
            result.add_error(path, f"Value must be >= {schema['minimum']}", "minimum")
        if "maximum" in schema and value > schema["maximum"]:
            result.add_error(path, f"Value must be <= {schema['maximum']}", "maximum")
        if "exclusiveMinimum" in schema and value <= schema["exclusiveMinimum"]:
            result.add_error(path, f"Value must be > {schema['exclusiveMinimum']}", "exclusive_minimum")
        if "exclusiveMaximum" in schema and value >= schema["exclusiveMaximum"]:
            result.add_error(path, f"Value must be < {schema['exclusiveMaximum']}", "exclusive_maximum")

    def _value_matches_type(self, value: Any, expected_type: str) -> bool:
        """Check if a value matches an expected JSON Schema type."""
        if expected_type == "null":
            return value is None
        elif expected_type == "boolean":
            return isinstance(value, bool)
        elif expected_type == "integer":
            return isinstance(value, int) and not isinstance(value, bool)
        elif expected_type == "number":
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        elif expected_type == "string":
            return isinstance(value, str)
        elif expected_type == "array":
            return isinstance(value, list)
        elif expected_type == "object":
            return isinstance(value, dict)
        else:
            return True  # Unknown type, allow

    @staticmethod
    def _json_type_name(value: Any) -> str:
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "boolean"
        if isinstance(value, int):
            return "integer"
        if isinstance(value, float):
            return "number"
        if isinstance(value, str):
            return "string"
        if isinstance(value, list):
            return "array"
        if isinstance(value, dict):
            return "object"
        return type(value).__name__


_validator = SchemaValidator()


def validate_against_schema(value: Any, schema: Dict[str, Any]) -> ValidationResult:
    """Validate a JSON value against a JSON Schema dict."""
    return _validator.validate(value, schema)


def check_schema(schema: Dict[str, Any]) -> List[str]:
    """List problems that would stop a JSON Schema dict from being usable."""
    return _validator.check_schema(schema)


def validate_structured_output(value: Any, schema: SchemaInput) -> Tuple[Any, ValidationResult]:
    """
    Validate structured output against a schema dict or pydantic model class.

    Returns:
        (output, result). For a pydantic model the output is the model
        instance when validation succeeds; otherwise it is ``value`` unchanged.
    """
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        try:
            return schema.model_validate(value), ValidationResult.ok()
        except PydanticValidationError as e:
            result = ValidationResult.ok()
            for error in e.errors():
                path = ""
                for key in error["loc"]:
                    path = _join(path, key)
                result.add_error(path, error["msg"], error["type"])
            return value, result

    return value, validate_against_schema(value, schema)
