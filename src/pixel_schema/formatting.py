"""Operator-readable messages for structural validation errors.

Messages follow the ``<instancePath> <message>`` convention already used in
pixel error reports, e.g. ``/param1 must be boolean`` or
``must NOT have additional properties. Found extra property 'param2'``.
"""
from __future__ import annotations

import re
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from jsonschema.exceptions import ValidationError as SchemaValidationError

_ADDITIONAL = "must NOT have additional properties"


def instance_path(error: SchemaValidationError) -> str:
    """JSON-pointer style path of the failing value (``/a/b``)."""
    return "".join(f"/{part}" for part in error.absolute_path)


def _extra_properties(error: SchemaValidationError) -> List[str]:
    instance = error.instance
    if not isinstance(instance, Mapping):
        return []
    schema = error.schema if isinstance(error.schema, Mapping) else {}
    properties = schema.get("properties") or {}
    patterns = list((schema.get("patternProperties") or {}).keys())
    return [
        name
        for name in instance
        if name not in properties
        and not any(re.search(pattern, name) for pattern in patterns)
    ]


def _missing_properties(error: SchemaValidationError) -> List[str]:
    instance = error.instance if isinstance(error.instance, Mapping) else {}
    return [name for name in error.validator_value or [] if name not in instance]


def _type_message(value: Any) -> str:
    if isinstance(value, list):
        return "must be " + ",".join(value)
    return f"must be {value}"


_SIMPLE_MESSAGES: Dict[str, Callable[[Any], str]] = {
    "type": _type_message,
    "enum": lambda _: "must be equal to one of the allowed values",
    "const": lambda _: "must be equal to constant",
    "minimum": lambda v: f"must be >= {v}",
    "maximum": lambda v: f"must be <= {v}",
    "exclusiveMinimum": lambda v: f"must be > {v}",
    "exclusiveMaximum": lambda v: f"must be < {v}",
    "multipleOf": lambda v: f"must be multiple of {v}",
    "minLength": lambda v: f"must NOT have fewer than {v} characters",
    "maxLength": lambda v: f"must NOT have more than {v} characters",
    "minItems": lambda v: f"must NOT have fewer than {v} items",
    "maxItems": lambda v: f"must NOT have more than {v} items",
    "uniqueItems": lambda _: "must NOT have duplicate items",
    "pattern": lambda v: f'must match pattern "{v}"',
    "format": lambda v: f'must match format "{v}"',
    "anyOf": lambda _: "must match a schema in anyOf",
    "oneOf": lambda _: "must match exactly one schema in oneOf",
}


def _messages_for(error: SchemaValidationError) -> List[str]:
    keyword = str(error.validator)
    path = instance_path(error)

    if keyword == "not":
        # Omitted: says nothing about which value was wrong
        return []
    if keyword == "additionalProperties":
        return [
            f"{path} {_ADDITIONAL}. Found extra property '{name}'".strip()
            for name in _extra_properties(error)
        ]
    if keyword == "required":
        return [
            f"{path} must have required property '{name}'".strip()
            for name in _missing_properties(error)
        ]

    render = _SIMPLE_MESSAGES.get(keyword)
    message = render(error.validator_value) if render else error.message
    return [f"{path} {message}".strip()]


def _dedup(messages: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(messages))


def format_schema_errors(errors: Iterable[SchemaValidationError]) -> List[str]:
    """Format validation errors, one message per offending value.

    Args:
        errors: Errors as yielded by a jsonschema validator's ``iter_errors``.

    Returns:
        Messages in the order the errors were reported, without duplicates.
    """
    messages: List[str] = []
    for error in errors:
        messages.extend(_messages_for(error))
    return _dedup(messages)


def format_suffix_errors(
    errors: Iterable[SchemaValidationError],
    tokens: Optional[Mapping[str, str]] = None,
) -> List[str]:
    """Format suffix errors so they name the offending token and its index.

    ``tokens`` maps the stringified index to the literal token; it defaults
    to the instance each error was raised on.
    """
    messages: List[str] = []
    for error in errors:
        if str(error.validator) == "additionalProperties":
            for index in _extra_properties(error):
                token = tokens.get(index) if tokens is not None else error.instance[index]
                messages.append(
                    f"{_ADDITIONAL}. Found extra suffix '{token}' at index {index}"
                )
            continue

        path = list(error.absolute_path)
        if path:
            index = str(path[0])
            token = tokens.get(index) if tokens is not None else error.instance
            for message in _messages_for(error):
                messages.append(f"Suffix '{token}' at index {index} {message}")
            continue

        messages.extend(_messages_for(error))
    return _dedup(messages)
