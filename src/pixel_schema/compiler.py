"""Compiles pixel parameters and suffixes into structural validators.

Shortcuts are resolved against the common dictionaries, every spec gets a
default ``string`` type and string-valued enums, and the result is wrapped in
a jsonschema validator that coerces live string values before checking them.

Compile functions return a :class:`CompileResult` instead of raising, so the
caller decides whether a problem aborts the run (:meth:`CompileResult.unwrap`)
or is collected alongside problems from other pixels
(:func:`check_pixel_definitions`).
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
)

from jsonschema import Draft202012Validator, validators
from jsonschema.exceptions import SchemaError
from jsonschema.exceptions import ValidationError as SchemaValidationError
from pydantic import ValidationError as PydanticValidationError

from pixel_schema.coercion import coerce_instance
from pixel_schema.models import (
    CompileError,
    DuplicateKeyError,
    InlineSpec,
    InvalidSpecError,
    PixelDefinition,
    UnknownShortcutError,
    parse_entry,
    stringify_scalar,
)
from pixel_schema.normalizer import IDENTITY, PIXEL_NAME, Normalizer
from pixel_schema.tokenizer import RawTrie, RawTrieNode

# ── Section 1: jsonschema dialect ────────────────────────────────────────────


def _enum_key(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return stringify_scalar(value)


def _enum_as_strings(
    validator: Any, enums: Sequence[Any], instance: Any, schema: Mapping[str, Any]
) -> Iterator[SchemaValidationError]:
    """``enum`` that compares string forms, so ``2`` matches ``"2"``."""
    if _enum_key(instance) not in {_enum_key(value) for value in enums}:
        yield SchemaValidationError(f"{instance!r} is not one of {list(enums)!r}")


PixelSchemaValidator = validators.extend(
    Draft202012Validator,
    {"enum": _enum_as_strings},
)

# Keywords whose values map names to subschemas; the names are case folded
_NAMED_SUBSCHEMAS = frozenset({
    "properties", "patternProperties", "$defs", "definitions", "dependentSchemas",
})


def _fold_schema(schema: Any, normalizer: Normalizer) -> Any:
    """Case fold a schema's values and property names, never its keywords."""
    if isinstance(schema, list):
        return [_fold_schema(item, normalizer) for item in schema]
    if not isinstance(schema, Mapping):
        return normalizer.canonicalize(schema)
    folded: Dict[str, Any] = {}
    for keyword, value in schema.items():
        if keyword in _NAMED_SUBSCHEMAS and isinstance(value, Mapping):
            folded[keyword] = {
                normalizer.canonicalize(name): _fold_schema(sub, normalizer)
                for name, sub in value.items()
            }
        else:
            folded[keyword] = _fold_schema(value, normalizer)
    return folded


# ── Section 2: Result types ──────────────────────────────────────────────────


class CompileIssueKind(str, Enum):
    UNKNOWN_SHORTCUT = "unknown_shortcut"
    DUPLICATE_KEY = "duplicate_key"
    INVALID_SPEC = "invalid_spec"


@dataclass(frozen=True)
class CompileIssue:
    """A problem found while compiling one pixel's parameters or suffixes."""

    kind: CompileIssueKind
    message: str
    subject: Optional[str] = None

    def to_error(self, prefix: Optional[str] = None) -> CompileError:
        """Build the exception matching this issue's kind."""
        if self.kind is CompileIssueKind.UNKNOWN_SHORTCUT:
            return UnknownShortcutError(self.subject or "", prefix)
        if self.kind is CompileIssueKind.DUPLICATE_KEY:
            return DuplicateKeyError(self.subject or "", self.message, prefix)
        return InvalidSpecError(self.message, prefix)


@dataclass(frozen=True)
class SchemaCheck:
    """Outcome of running a compiled validator."""

    valid: bool
    errors: Tuple[SchemaValidationError, ...] = ()


@dataclass(frozen=True)
class CompiledValidator:
    """A pure structural validator over a coerced copy of its input."""

    schema: Mapping[str, Any]
    _validator: Any = field(repr=False, compare=False, default=None)

    def __post_init__(self) -> None:
        if self._validator is None:
            object.__setattr__(
                self,
                "_validator",
                PixelSchemaValidator(
                    dict(self.schema),
                    format_checker=Draft202012Validator.FORMAT_CHECKER,
                ),
            )

    def __call__(self, instance: Any) -> SchemaCheck:
        coerced = coerce_instance(self.schema, instance)
        errors = tuple(self._validator.iter_errors(coerced))
        return SchemaCheck(valid=not errors, errors=errors)

    def schema_for(self, name: str) -> Optional[Mapping[str, Any]]:
        """Declared schema of an object property, by exact key then pattern."""
        properties = self.schema.get("properties") or {}
        if name in properties:
            return properties[name]
        for pattern, subschema in (self.schema.get("patternProperties") or {}).items():
            if re.search(pattern, name):
                return subschema
        return None


PERMISSIVE = CompiledValidator(schema={})


@dataclass(frozen=True)
class CompileResult:
    """Either a compiled validator or the issue that prevented compiling it."""

    validator: Optional[CompiledValidator] = None
    issue: Optional[CompileIssue] = None

    @property
    def ok(self) -> bool:
        return self.issue is None

    def unwrap(self, prefix: Optional[str] = None) -> CompiledValidator:
        """Return the validator, or raise the issue as a :class:`CompileError`."""
        if self.issue is not None:
            raise self.issue.to_error(prefix)
        if self.validator is None:
            raise RuntimeError("CompileResult holds neither a validator nor an issue")
        return self.validator


# ── Section 3: Compiler ──────────────────────────────────────────────────────

_Resolved = Union[Dict[str, Any], CompileIssue]


class SchemaCompiler:
    """Resolves shortcuts and compiles parameter/suffix lists.

    Args:
        common_params: Shortcut name -> parameter spec.
        common_suffixes: Shortcut name -> suffix spec.
    """

    def __init__(
        self,
        common_params: Optional[Mapping[str, Any]] = None,
        common_suffixes: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._common_params: Mapping[str, Any] = common_params or {}
        self._common_suffixes: Mapping[str, Any] = common_suffixes or {}
        self._folded_dictionaries: Dict[Tuple[str, Normalizer], Dict[str, Any]] = {}

    def _dictionary(self, which: str, normalizer: Normalizer) -> Mapping[str, Any]:
        cache_key = (which, normalizer)
        if cache_key not in self._folded_dictionaries:
            source = self._common_params if which == "params" else self._common_suffixes
            self._folded_dictionaries[cache_key] = {
                normalizer.canonicalize(name): spec for name, spec in source.items()
            }
        return self._folded_dictionaries[cache_key]

    def _resolve(
        self,
        raw: Any,
        dictionary: Mapping[str, Any],
        normalizer: Normalizer,
    ) -> _Resolved:
        try:
            entry = parse_entry(raw)
        except (PydanticValidationError, TypeError) as exc:
            return CompileIssue(CompileIssueKind.INVALID_SPEC, f"invalid entry: {exc}")

        if entry.kind == "shortcut":
            target = dictionary.get(normalizer.canonicalize(entry.name))
            if target is None:
                return CompileIssue(
                    CompileIssueKind.UNKNOWN_SHORTCUT,
                    f"invalid shortcut '{entry.name}' - please update common params/suffixes",
                    subject=entry.name,
                )
            try:
                spec = InlineSpec.model_validate(target)
            except PydanticValidationError as exc:
                return CompileIssue(
                    CompileIssueKind.INVALID_SPEC,
                    f"invalid shortcut '{entry.name}': {exc}",
                    subject=entry.name,
                )
        elif entry.kind == "inline":
            spec = entry.spec
        else:
            raise TypeError(f"unhandled entry kind: {entry.kind!r}")

        folded: Dict[str, Any] = _fold_schema(spec.to_json_schema(), normalizer)
        return folded

    @staticmethod
    def _finish(schema: Dict[str, Any]) -> CompileResult:
        for pattern in schema.get("patternProperties", {}):
            try:
                re.compile(pattern)
            except re.error as exc:
                return CompileResult(issue=CompileIssue(
                    CompileIssueKind.INVALID_SPEC,
                    f"invalid keyPattern '{pattern}': {exc}",
                    subject=pattern,
                ))
        try:
            PixelSchemaValidator.check_schema(schema)
        except SchemaError as exc:
            return CompileResult(issue=CompileIssue(
                CompileIssueKind.INVALID_SPEC,
                f"invalid schema: {exc.message}",
            ))
        return CompileResult(validator=CompiledValidator(schema=MappingProxyType(schema)))

    def compile_params_schema(
        self,
        parameters: Optional[Sequence[Any]],
        normalizer: Normalizer = IDENTITY,
    ) -> CompileResult:
        """Compile a parameter list into a strict object validator.

        ``key`` entries become exact properties and ``keyPattern`` entries
        become pattern properties; anything else is rejected as an
        additional property. ``None`` compiles to a permissive validator.
        """
        if parameters is None:
            return CompileResult(validator=PERMISSIVE)

        dictionary = self._dictionary("params", normalizer)
        properties: Dict[str, Any] = {}
        pattern_properties: Dict[str, Any] = {}
        for raw in parameters:
            param = self._resolve(raw, dictionary, normalizer)
            if isinstance(param, CompileIssue):
                return CompileResult(issue=param)

            key_pattern = param.get("keyPattern")
            key = param.get("key")
            if key_pattern is not None:
                if key_pattern in pattern_properties:
                    return CompileResult(issue=CompileIssue(
                        CompileIssueKind.DUPLICATE_KEY,
                        f"duplicate keyPattern '{key_pattern}' found!",
                        subject=key_pattern,
                    ))
                pattern_properties[key_pattern] = param
            elif key is not None:
                if key in properties:
                    return CompileResult(issue=CompileIssue(
                        CompileIssueKind.DUPLICATE_KEY,
                        f"duplicate key '{key}' found!",
                        subject=key,
                    ))
                properties[key] = param
            else:
                return CompileResult(issue=CompileIssue(
                    CompileIssueKind.INVALID_SPEC,
                    "parameter must declare 'key' or 'keyPattern'",
                ))

        return self._finish({
            "type": "object",
            "properties": properties,
            "patternProperties": pattern_properties,
            "additionalProperties": False,
        })

    def compile_suffixes_schema(
        self,
        suffixes: Optional[Sequence[Any]],
        normalizer: Normalizer = IDENTITY,
    ) -> CompileResult:
        """Compile a positional suffix list into a strict index-keyed validator.

        A suffix with a ``key`` occupies two positions: the literal key, then
        the suffix's own value. Positions are never required, so a shorter
        name is accepted; extra trailing positions are not.
        """
        if suffixes is None:
            return CompileResult(validator=PERMISSIVE)

        dictionary = self._dictionary("suffixes", normalizer)
        properties: Dict[str, Any] = {}
        index = 0
        for raw in suffixes:
            suffix = self._resolve(raw, dictionary, normalizer)
            if isinstance(suffix, CompileIssue):
                return CompileResult(issue=suffix)
            if suffix.get("key") is not None:
                properties[str(index)] = {"enum": [suffix["key"]]}
                index += 1
            properties[str(index)] = suffix
            index += 1

        return self._finish({
            "type": "object",
            "properties": properties,
            "additionalProperties": False,
        })


# ── Section 4: Compiled trie ─────────────────────────────────────────────────


@dataclass(frozen=True)
class CompiledSchema:
    """The two validators of one defined pixel prefix."""

    params_validator: CompiledValidator
    suffixes_validator: CompiledValidator


@dataclass(frozen=True)
class CompiledTrieNode:
    """Immutable trie node holding compiled validators."""

    children: Mapping[str, "CompiledTrieNode"] = field(
        default_factory=lambda: MappingProxyType({})
    )
    terminal: Optional[CompiledSchema] = None


@dataclass(frozen=True)
class CompiledTrie:
    """Compiled pixel definitions, shared read-only by live validation."""

    root: CompiledTrieNode

    def match(self, pixel_name: str) -> Tuple[str, CompiledTrieNode]:
        """Walk the trie greedily and return ``(matched_prefix, node)``.

        The walk stops at the first segment without a child; there is no
        backtracking to a shorter defined prefix.
        """
        node = self.root
        matched: List[str] = []
        for part in pixel_name.split("."):
            child = node.children.get(part)
            if child is None:
                break
            node = child
            matched.append(part)
        return ".".join(matched), node


def compile_definition(
    prefix: str,
    definition: PixelDefinition,
    compiler: SchemaCompiler,
    ignore_params: Optional[Mapping[str, Any]] = None,
    normalizer: Normalizer = IDENTITY,
) -> CompiledSchema:
    """Compile one terminal for live validation.

    The ignore-list is appended to the pixel's parameters, so the parameter
    list is always strict. Suffix specs are always lower cased.

    Raises:
        CompileError: Naming *prefix*, if either list fails to compile.
    """
    combined = list(definition.parameters or []) + list((ignore_params or {}).values())
    params = compiler.compile_params_schema(combined, normalizer).unwrap(prefix)
    suffixes = compiler.compile_suffixes_schema(
        list(definition.suffixes or []), PIXEL_NAME
    ).unwrap(prefix)
    return CompiledSchema(params_validator=params, suffixes_validator=suffixes)


def compile_trie(
    raw_trie: RawTrie,
    compiler: SchemaCompiler,
    ignore_params: Optional[Mapping[str, Any]] = None,
    normalizer: Normalizer = IDENTITY,
) -> CompiledTrie:
    """Compile every terminal of *raw_trie*.

    Raises:
        CompileError: On the first definition that cannot be compiled.
    """

    def _compile_node(path: str, node: RawTrieNode) -> CompiledTrieNode:
        children = {
            part: _compile_node(f"{path}.{part}" if path else part, child)
            for part, child in node.children.items()
        }
        terminal = None
        if node.terminal is not None:
            terminal = compile_definition(
                path, node.terminal, compiler, ignore_params, normalizer
            )
        return CompiledTrieNode(children=MappingProxyType(children), terminal=terminal)

    return CompiledTrie(root=_compile_node("", raw_trie.root))


# ── Section 5: Collect-and-continue check ────────────────────────────────────


def check_pixel_definitions(
    pixel_defs: Mapping[str, Any],
    compiler: SchemaCompiler,
    seen_prefixes: Optional[Set[str]] = None,
) -> List[str]:
    """Compile every definition and collect problems instead of stopping.

    Args:
        pixel_defs: Prefix -> definition, as read from one definitions file.
        compiler: Compiler holding the common dictionaries.
        seen_prefixes: Prefixes from previously checked files; updated in
            place so duplicates across files are reported.

    Returns:
        ``"<prefix> --> <message>"`` strings, empty when all compile.
    """
    seen = seen_prefixes if seen_prefixes is not None else set()
    errors: List[str] = []
    for prefix, raw in pixel_defs.items():
        if prefix in seen:
            errors.append(f"{prefix} --> Conflicting/duplicated definitions found!")
            continue
        seen.add(prefix)

        try:
            definition = PixelDefinition.model_validate(raw or {})
        except PydanticValidationError as exc:
            errors.append(f"{prefix} --> {exc}")
            continue

        for result in _compile_both(compiler, definition):
            if result.issue is not None:
                errors.append(f"{prefix} --> {result.issue.message}")
    return errors


def _compile_both(
    compiler: SchemaCompiler, definition: PixelDefinition
) -> Iterable[CompileResult]:
    yield compiler.compile_suffixes_schema(definition.suffixes)
    yield compiler.compile_params_schema(definition.parameters)
