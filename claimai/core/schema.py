"""
Argument validation for tool input schemas.

Validators are built once per tool when the registry loads, so a call only
pays for the check itself. A provider-supplied schema that is itself invalid
is replaced by a permissive object schema rather than disabling the tool.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import jsonschema
from jsonschema import ValidationError
from jsonschema.exceptions import SchemaError

logger = logging.getLogger(__name__)

ArgsValidator = Callable[[dict[str, Any]], list[str]]

PERMISSIVE_SCHEMA: dict[str, Any] = {"type": "object"}


def normalize_schema(schema: dict[str, Any] | None) -> dict[str, Any]:
    """Ensure a tool schema describes an object, as function calling requires."""
    if not schema:
        return {"type": "object", "properties": {}}
    normalized = dict(schema)
    normalized.setdefault("type", "object")
    if normalized["type"] == "object":
        normalized.setdefault("properties", {})
    return normalized


def _format_error(error: ValidationError) -> str:
    location = ".".join(str(p) for p in error.absolute_path)
    if location:
        return f"{location}: {error.message}"
    return error.message


def build_validator(schema: dict[str, Any], tool_name: str = "") -> ArgsValidator:
    """
    Compile ``schema`` into a function returning a list of issues (empty = valid).
    """
    try:
        cls = jsonschema.validators.validator_for(schema)
        cls.check_schema(schema)
    except SchemaError as e:
        logger.warning("Tool '%s' has an invalid input schema (%s); accepting any object", tool_name, e.message)
        cls = jsonschema.Draft202012Validator
        schema = PERMISSIVE_SCHEMA

    validator = cls(schema)

    def validate(args: dict[str, Any]) -> list[str]:
        errors = sorted(validator.iter_errors(args), key=lambda e: [str(p) for p in e.absolute_path])
        return [_format_error(e) for e in errors]

    return validate
