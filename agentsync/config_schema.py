"""
Configuration schema for agentsync.

This module owns the bundled schema document describing the config file
and a small validator for the subset of JSON Schema that document uses:
type, minLength, minItems, required, properties, items and
additionalProperties. Nothing else is interpreted; unknown keywords are
ignored, and a node without any recognised keyword matches any value.
"""

import json
import os
from typing import Any, Dict, List, Optional

import jsonschema

from .errors import ConfigError


SCHEMA_FILENAME = "agentsync.schema.json"
SCHEMA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), SCHEMA_FILENAME)

_schema_cache: Optional[Dict[str, Any]] = None


def get_config_schema() -> Dict[str, Any]:
    """
    Return the bundled config schema, loading it on first use.

    The document is checked against the JSON Schema meta-schema once, so a
    broken bundled schema fails loudly instead of silently accepting
    everything.

    Returns:
        The parsed schema document
    """
    global _schema_cache
    if _schema_cache is not None:
        return _schema_cache

    try:
        with open(SCHEMA_PATH, "r", encoding="utf-8") as f:
            schema = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Invalid bundled schema at {SCHEMA_PATH}: {e}") from e

    if not isinstance(schema, dict):
        raise ConfigError(f"Invalid bundled schema at {SCHEMA_PATH}")
    try:
        jsonschema.Draft7Validator.check_schema(schema)
    except jsonschema.SchemaError as e:
        raise ConfigError(f"Invalid bundled schema at {SCHEMA_PATH}: {e.message}") from e

    _schema_cache = schema
    return _schema_cache


def _type_matches(value: Any, kind: Any) -> bool:
    if kind == "null":
        return value is None
    if kind == "boolean":
        return isinstance(value, bool)
    if kind == "number":
        # bool is an int subclass but not a JSON number
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if kind == "string":
        return isinstance(value, str)
    if kind == "object":
        return isinstance(value, dict)
    if kind == "array":
        return isinstance(value, list)
    return False


def validate(schema: Any, value: Any, path: str = "$") -> List[str]:
    """
    Validate a parsed JSON value against a schema node.

    Problems are collected rather than raised, each formatted as
    ``<path>: <problem>`` where path looks like ``$.targets[2].agent``.
    A type mismatch stops checks below that node; every other violation
    is recorded and validation carries on.

    Args:
        schema: Schema node (a dict; anything else matches everything)
        value: Parsed JSON value to check
        path: Locator of ``value`` within the document

    Returns:
        List of error strings, empty when the value is valid
    """
    errors: List[str] = []
    _validate_node(schema, value, path, errors)
    return errors


def _validate_node(schema: Any, value: Any, path: str, errors: List[str]) -> None:
    if not isinstance(schema, dict):
        return

    type_spec = schema.get("type")
    if isinstance(type_spec, str):
        if not _type_matches(value, type_spec):
            errors.append(f"{path}: expected {type_spec}")
            return
    elif isinstance(type_spec, list):
        if not any(_type_matches(value, kind) for kind in type_spec):
            errors.append(f"{path}: expected one of {', '.join(str(k) for k in type_spec)}")
            return

    min_length = schema.get("minLength")
    if _is_count(min_length) and isinstance(value, str) and len(value) < min_length:
        errors.append(f"{path}: string must have minLength {min_length}")

    min_items = schema.get("minItems")
    if _is_count(min_items) and isinstance(value, list) and len(value) < min_items:
        errors.append(f"{path}: array must have minItems {min_items}")

    required = schema.get("required")
    if isinstance(required, list) and isinstance(value, dict):
        for name in required:
            if isinstance(name, str) and name not in value:
                errors.append(f"{path}: missing required property {name}")

    properties = schema.get("properties")
    if not isinstance(properties, dict):
        properties = {}
    if isinstance(value, dict):
        for name, child in properties.items():
            if name in value:
                _validate_node(child, value[name], f"{path}.{name}", errors)

    items = schema.get("items")
    if items is not None and isinstance(value, list):
        for index, element in enumerate(value):
            _validate_node(items, element, f"{path}[{index}]", errors)

    additional = schema.get("additionalProperties")
    if isinstance(value, dict):
        extra = [name for name in value if name not in properties]
        if additional is False:
            for name in extra:
                errors.append(f"{path}: unexpected property {name}")
        elif isinstance(additional, dict):
            for name in extra:
                _validate_node(additional, value[name], f"{path}.{name}", errors)


def _is_count(limit: Any) -> bool:
    return isinstance(limit, (int, float)) and not isinstance(limit, bool)


def validate_config(config: Dict[str, Any]) -> bool:
    """
    Validate a parsed configuration against the bundled schema.

    Args:
        config: Parsed configuration document

    Returns:
        True if valid, raises ConfigError listing every problem otherwise
    """
    errors = validate(get_config_schema(), config, "$")
    if errors:
        raise ConfigError("Config does not match schema:\n- " + "\n- ".join(errors))
    return True
