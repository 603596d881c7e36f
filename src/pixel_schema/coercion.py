"""Scalar type coercion applied before structural validation.

Live values always arrive as strings, so a declared ``integer`` must accept
``"42"``. The rules follow ajv's ``coerceTypes: true``:

* to ``string``: numbers and booleans are rendered, ``null`` becomes ``""``
* to ``number``/``integer``: numeric strings, booleans (1/0), ``null`` (0)
* to ``boolean``: ``"true"``/``"false"``, 1/0, ``null`` (false)
* to ``null``: ``""``, 0, false

Coercion walks nested object and array schemas, so decoded object
parameters get the same treatment at any depth. The input is never mutated.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Union

_NUMBER_RE = re.compile(r"^\s*[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?\s*$")

_NO_MATCH = object()


def _json_type_of(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "integer" if value.is_integer() else "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return "unknown"


def _matches_type(value: Any, declared: str) -> bool:
    actual = _json_type_of(value)
    if declared == "number":
        return actual in ("number", "integer")
    return actual == declared


def _to_number(value: Any) -> Any:
    if isinstance(value, bool):
        return 1 if value else 0
    if value is None:
        return 0
    if isinstance(value, str) and _NUMBER_RE.match(value):
        number = float(value)
        return int(number) if number.is_integer() else number
    return _NO_MATCH


def _coerce_scalar(value: Any, declared: str) -> Any:
    if declared == "string":
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            if isinstance(value, float) and value.is_integer():
                return str(int(value))
            return str(value)
        return _NO_MATCH

    if declared in ("number", "integer"):
        number = _to_number(value)
        if number is _NO_MATCH:
            return _NO_MATCH
        if declared == "integer" and not isinstance(number, int):
            return _NO_MATCH
        return number

    if declared == "boolean":
        if value in ("true", "false"):
            return value == "true"
        if value is None:
            return False
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if value in (0, 1):
                return bool(value)
        return _NO_MATCH

    if declared == "null":
        if value == "" or (value is not None and not isinstance(value, str) and value == 0):
            return None
        return _NO_MATCH

    return _NO_MATCH


def _declared_types(schema: Mapping[str, Any]) -> List[str]:
    declared: Optional[Union[str, List[str]]] = schema.get("type")
    if declared is None:
        return []
    if isinstance(declared, str):
        return [declared]
    return list(declared)


def _subschema_for(schema: Mapping[str, Any], name: str) -> Optional[Mapping[str, Any]]:
    properties = schema.get("properties") or {}
    if name in properties:
        return properties[name]
    for pattern, subschema in (schema.get("patternProperties") or {}).items():
        if re.search(pattern, name):
            return subschema
    additional = schema.get("additionalProperties")
    if isinstance(additional, Mapping):
        return additional
    return None


def coerce_instance(schema: Any, instance: Any) -> Any:
    """Return a copy of *instance* with scalars coerced to *schema*'s types."""
    if not isinstance(schema, Mapping):
        return instance

    if isinstance(instance, Mapping):
        coerced: Dict[str, Any] = {}
        for name, value in instance.items():
            subschema = _subschema_for(schema, name)
            coerced[name] = coerce_instance(subschema, value) if subschema else value
        return coerced

    if isinstance(instance, list):
        items = schema.get("items")
        if isinstance(items, Mapping):
            return [coerce_instance(items, item) for item in instance]
        return instance

    declared = _declared_types(schema)
    if not declared or any(_matches_type(instance, t) for t in declared):
        return instance
    for target in declared:
        result = _coerce_scalar(instance, target)
        if result is not _NO_MATCH:
            return result
    return instance
