"""Schema validation for persisted artifacts using package-data schemas."""

from __future__ import annotations

import json
from functools import lru_cache
from importlib.resources import files
from typing import Any

from jsonschema.validators import Draft202012Validator

SCHEMA_SUFFIX = ".schema.json"


def available_schemas() -> tuple[str, ...]:
    """Return sorted canonical schema names shipped with the package."""
    names = [
        item.name[: -len(SCHEMA_SUFFIX)]
        for item in files("crategate.schemas").iterdir()
        if item.name.endswith(SCHEMA_SUFFIX)
    ]
    return tuple(sorted(names))


@lru_cache(maxsize=None)
def get_schema(schema_name: str) -> dict[str, Any]:
    """Load a schema by canonical name.

    Raises:
        KeyError: If no schema with that name is packaged
    """
    if schema_name not in available_schemas():
        raise KeyError(
            f"Schema '{schema_name}' not found in package data. "
            f"Available schemas: {', '.join(available_schemas())}"
        )
    text = (files("crategate.schemas") / f"{schema_name}{SCHEMA_SUFFIX}").read_text(encoding="utf-8")
    schema: dict[str, Any] = json.loads(text)
    return schema


def validate_data(
    data: dict[str, Any],
    schema_name: str,
    strict: bool = True,
) -> tuple[bool, list[str]]:
    """Validate data against a packaged schema.

    Args:
        data: Data to validate
        schema_name: Name of schema to validate against
        strict: If True, raise on validation errors; if False, return error list

    Returns:
        Tuple of (is_valid, error_messages)

    Raises:
        KeyError: If schema not found in package data
        ValueError: If validation fails and strict=True
    """
    validator = Draft202012Validator(get_schema(schema_name))
    errors = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path])

    if errors:
        error_messages = [
            f"{'.'.join(str(p) for p in e.path)}: {e.message}" if e.path else e.message
            for e in errors
        ]
        if strict:
            raise ValueError(
                f"Schema validation failed for '{schema_name}':\n"
                + "\n".join(f"  - {msg}" for msg in error_messages)
            )
        return False, error_messages

    return True, []
