"""Core data models for pixel-schema library."""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Mapping, Optional, Union

import semver
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ── Section 1: Exceptions ────────────────────────────────────────────────────


class PixelSchemaError(Exception):
    """Base exception for all library errors."""
    pass


class CompileError(PixelSchemaError):
    """Definitions could not be compiled; the run cannot proceed."""

    def __init__(self, message: str, prefix: Optional[str] = None) -> None:
        self.message = message
        self.prefix = prefix
        if prefix:
            super().__init__(f"{prefix} --> {message}")
        else:
            super().__init__(message)


class DuplicateDefinitionError(CompileError):
    """The same absolute pixel prefix was defined more than once."""

    def __init__(self, prefix: str) -> None:
        super().__init__("Conflicting/duplicated definitions found!", prefix)


class UnknownShortcutError(CompileError):
    """A shortcut is missing from the common dictionary."""

    def __init__(self, shortcut: str, prefix: Optional[str] = None) -> None:
        self.shortcut = shortcut
        super().__init__(
            f"invalid shortcut '{shortcut}' - please update common params/suffixes",
            prefix,
        )


class DuplicateKeyError(CompileError):
    """Two parameters resolve to the same key or keyPattern."""

    def __init__(self, key: str, message: str, prefix: Optional[str] = None) -> None:
        self.key = key
        super().__init__(message, prefix)


class InvalidSpecError(CompileError):
    """A parameter or suffix spec cannot be turned into a schema."""
    pass


class UndocumentedPixelError(PixelSchemaError):
    """Raised by one-shot validation when no definition matches a pixel."""

    def __init__(self, pixel: str) -> None:
        self.pixel = pixel
        super().__init__(f"Undocumented Pixel: {pixel}")


class LivePixelValidationError(PixelSchemaError):
    """Raised by one-shot validation when a pixel fails its definition."""

    def __init__(self, pixel_errors: Dict[str, Dict[str, List[str]]]) -> None:
        self.pixel_errors = pixel_errors
        lines = [
            f"{prefix}: {message}"
            for prefix, messages in pixel_errors.items()
            for message in messages
        ]
        super().__init__("Pixel Errors: " + "; ".join(lines))


# ── Section 2: Parameter / suffix specs ──────────────────────────────────────


class InlineSpec(BaseModel):
    """A parameter or suffix descriptor.

    Known fields are typed; any other JSON Schema keyword (``pattern``,
    ``properties``, ``description``...) is kept as an extra and takes part in
    validation unchanged.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    key: Optional[str] = Field(
        None,
        description="Exact parameter name, or static suffix token",
    )
    key_pattern: Optional[str] = Field(
        None,
        alias="keyPattern",
        description="Regex matching parameter names",
    )
    type: Optional[Union[str, List[str]]] = Field(
        None,
        description="JSON Schema type; defaults to 'string' when compiled",
    )
    enum: Optional[List[Any]] = Field(
        None,
        description="Allowed values, always compared as strings",
    )
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    encoding: Optional[str] = Field(
        None,
        description="Value encoding applied before validation (e.g. 'base64')",
    )
    format: Optional[str] = None

    @model_validator(mode="after")
    def _check_identity_mode(self) -> "InlineSpec":
        if self.key is not None and self.key_pattern is not None:
            raise ValueError("'key' and 'keyPattern' are mutually exclusive")
        return self

    def to_json_schema(self) -> Dict[str, Any]:
        """Return the compiled form: default type, stringified enum."""
        schema: Dict[str, Any] = self.model_dump(by_alias=True, exclude_none=True)
        # Preserve integral bounds as ints so messages read "<= 100"
        for bound in ("minimum", "maximum"):
            value = schema.get(bound)
            if isinstance(value, float) and value.is_integer():
                schema[bound] = int(value)
        schema["type"] = schema.get("type") or "string"
        if self.enum is not None:
            schema["enum"] = [stringify_scalar(value) for value in self.enum]
        return schema


def stringify_scalar(value: Any) -> str:
    """Render a scalar the way it appears in a query string."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class ShortcutEntry(BaseModel):
    """Reference to a common dictionary entry."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["shortcut"] = "shortcut"
    name: str


class InlineEntry(BaseModel):
    """A spec written out in the definition itself."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["inline"] = "inline"
    spec: InlineSpec


Entry = Union[ShortcutEntry, InlineEntry]


def parse_entry(raw: Union[str, Mapping[str, Any], Entry]) -> Entry:
    """Wrap a raw definition list item in its tagged variant.

    Raises:
        pydantic.ValidationError: If an inline mapping is not a valid spec.
        TypeError: If the item is neither a string nor a mapping.
    """
    if isinstance(raw, (ShortcutEntry, InlineEntry)):
        return raw
    if isinstance(raw, str):
        return ShortcutEntry(name=raw)
    if isinstance(raw, Mapping):
        return InlineEntry(spec=InlineSpec.model_validate(dict(raw)))
    raise TypeError(
        f"definition entry must be a string or a mapping; got {type(raw).__name__}"
    )


# ── Section 3: Definitions ───────────────────────────────────────────────────


class PixelDefinition(BaseModel):
    """The part of a pixel definition used for live validation.

    ``None`` means the list was not declared at all, which compiles to a
    permissive validator; an empty list compiles to a strict one.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    parameters: Optional[List[Union[str, Dict[str, Any]]]] = None
    suffixes: Optional[List[Union[str, Dict[str, Any]]]] = None


# ── Section 4: Product configuration ─────────────────────────────────────────


def parse_version(value: Any) -> Optional[semver.Version]:
    """Parse a client version by semantic versioning rules.

    A leading ``v`` is allowed and minor/patch may be omitted (``"2"``,
    ``"v1.4"``). ``1.0.0-5`` and ``1.0.0-alpha.beta`` are pre-releases
    ordered below ``1.0.0``. Returns ``None`` for anything else.
    """
    if not isinstance(value, str):
        return None
    text = value[1:] if value[:1] in ("v", "V") else value
    try:
        return semver.Version.parse(text, optional_minor_and_patch=True)
    except (ValueError, TypeError):
        return None


class VersionTarget(BaseModel):
    """Minimum client version whose events are validated."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(
        ...,
        description="Param key carrying the client version (e.g. 'appVersion')",
    )
    version: str = Field(
        ...,
        min_length=1,
        description="Target semantic version (e.g. '0.98.4')",
    )

    @field_validator("version")
    @classmethod
    def _check_version(cls, v: str) -> str:
        if parse_version(v) is None:
            raise ValueError(f"target version '{v}' is not a valid semantic version")
        return v


class ProductTarget(BaseModel):
    """Product-wide configuration for one validation run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    agents: List[str] = Field(
        default_factory=list,
        description="Agents (e.g. 'Chrome') corresponding to the product",
    )
    target: VersionTarget
    force_lower_case: bool = Field(
        False,
        alias="forceLowerCase",
        description="Whether the definitions are case insensitive",
    )
