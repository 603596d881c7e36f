"""Live pixel validation against compiled definitions.

A :class:`LivePixelValidator` owns the error ledger and the set of
undocumented pixels for one run. Each call to
:meth:`LivePixelValidator.validate_pixel` is self-contained: malformed
events are recorded, never raised, so one bad event cannot stop a batch.
"""
from __future__ import annotations

import ast
import base64
import binascii
import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union
from urllib.parse import unquote, unquote_plus, urlsplit

from pydantic import BaseModel, ConfigDict, Field

from pixel_schema.compiler import (
    CompiledSchema,
    CompiledTrie,
    SchemaCompiler,
    compile_trie,
)
from pixel_schema.formatting import format_schema_errors, format_suffix_errors
from pixel_schema.models import (
    LivePixelValidationError,
    ProductTarget,
    UndocumentedPixelError,
    parse_version,
)
from pixel_schema.normalizer import Normalizer
from pixel_schema.tokenizer import RawTrie

logger = logging.getLogger("pixel_schema.live")

_CACHE_BUSTER_RE = re.compile(r"^\d+$")

MALFORMED_PARAMS = "could not parse parameters"

ParamsRepr = Union[str, Sequence[str]]

# prefix -> error message -> examples
PixelErrors = Dict[str, Dict[str, Set[str]]]


# ── Section 1: Report model ──────────────────────────────────────────────────


class ValidationReport(BaseModel):
    """Frozen, serializable snapshot of a validator's results."""

    model_config = ConfigDict(frozen=True)

    pixel_errors: Dict[str, Dict[str, List[str]]] = Field(
        default_factory=dict,
        description="Prefix -> error message -> sorted example list",
    )
    undocumented_pixels: List[str] = Field(
        default_factory=list,
        description="Sorted pixel names with no matching definition",
    )


def _snapshot(errors: PixelErrors, undocumented: Set[str]) -> ValidationReport:
    return ValidationReport(
        pixel_errors={
            prefix: {
                message: sorted(examples) for message, examples in sorted(messages.items())
            }
            for prefix, messages in sorted(errors.items())
        },
        undocumented_pixels=sorted(undocumented),
    )


def merge_reports(*reports: ValidationReport) -> ValidationReport:
    """Combine reports from validators that processed disjoint shards."""
    errors: PixelErrors = {}
    undocumented: Set[str] = set()
    for report in reports:
        undocumented.update(report.undocumented_pixels)
        for prefix, messages in report.pixel_errors.items():
            merged = errors.setdefault(prefix, {})
            for message, examples in messages.items():
                merged.setdefault(message, set()).update(examples)
    return _snapshot(errors, undocumented)


# ── Section 2: Parameter parsing and decoding ────────────────────────────────


def parse_params_repr(params: ParamsRepr) -> List[str]:
    """Return the ``key=value`` fragments of an event.

    Accepts an already split sequence, or its textual list literal form,
    e.g. ``"['a=1', 'b=2']"`` or ``'["a=1"]'``.

    Raises:
        ValueError: If the text is not a list of strings.
    """
    if not isinstance(params, str):
        return [str(fragment) for fragment in params]
    try:
        parsed = ast.literal_eval(params.strip() or "[]")
    except (SyntaxError, ValueError, TypeError, MemoryError, RecursionError) as exc:
        raise ValueError(f"not a list literal: {params!r}") from exc
    if not isinstance(parsed, (list, tuple)) or not all(
        isinstance(fragment, str) for fragment in parsed
    ):
        raise ValueError(f"not a list of strings: {params!r}")
    return list(parsed)


def _split_fragment(fragment: str) -> Tuple[str, str]:
    key, _, value = fragment.partition("=")
    try:
        key = unquote_plus(key, errors="strict")
    except UnicodeDecodeError:
        logger.warning("Failed to decode param key '%s'", key)
    return key, value


def _percent_decode(value: str, plus_as_space: bool = True) -> str:
    """Decode a query string value.

    ``+`` means a space, as in any form-encoded query string, except in
    base64 values (``plus_as_space=False``) where it is part of the alphabet.
    On invalid UTF-8 the raw value is kept.
    """
    decode = unquote_plus if plus_as_space else unquote
    try:
        return decode(value, errors="strict")
    except UnicodeDecodeError:
        logger.warning("Failed to decode param value '%s'", value)
        return value


def _base64_decode(value: str) -> str:
    padded = value.replace("-", "+").replace("_", "/")
    padded += "=" * (-len(padded) % 4)
    try:
        return base64.b64decode(padded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        logger.warning("Failed to base64 decode param value '%s'", value)
        return value


# ── Section 3: Validator ─────────────────────────────────────────────────────


class LivePixelValidator:
    """Matches live pixels to definitions and records what fails.

    Args:
        trie: Compiled definitions (see :func:`compile_trie`).
        product: Product target for this run.
    """

    def __init__(self, trie: CompiledTrie, product: ProductTarget) -> None:
        self._trie = trie
        self._product = product
        self._normalizer = Normalizer(force_lower_case=product.force_lower_case)
        self._version_key = self._normalizer.canonicalize(product.target.key)
        target_version = parse_version(
            self._normalizer.canonicalize(product.target.version)
        )
        if target_version is None:
            raise ValueError(
                f"target version '{product.target.version}' is not a valid semantic version"
            )
        self._target_version = target_version

        self.pixel_errors: PixelErrors = {}
        self.undocumented_pixels: Set[str] = set()

    @property
    def product(self) -> ProductTarget:
        return self._product

    @property
    def normalizer(self) -> Normalizer:
        return self._normalizer

    def reset(self) -> None:
        """Forget all recorded errors and undocumented pixels."""
        self.pixel_errors = {}
        self.undocumented_pixels = set()

    def report(self) -> ValidationReport:
        """Snapshot the current results."""
        return _snapshot(self.pixel_errors, self.undocumented_pixels)

    def validate_pixel(self, pixel: str, params: ParamsRepr) -> None:
        """Validate one event and record any problems.

        Args:
            pixel: Full pixel name in ``.`` notation.
            params: The event's ``key=value`` fragments, cache buster removed.
        """
        prefix, node = self._trie.match(pixel)
        if node.terminal is None:
            logger.debug("Undocumented pixel: %s", pixel)
            self.undocumented_pixels.add(pixel)
            return

        self.validate_pixel_params_and_suffixes(prefix, pixel, params, node.terminal)

    def validate_pixel_params_and_suffixes(
        self,
        prefix: str,
        pixel: str,
        params: ParamsRepr,
        schemas: CompiledSchema,
    ) -> None:
        """Run the normalize / gate / validate pipeline for a matched pixel."""
        try:
            fragments = parse_params_repr(params)
        except ValueError:
            logger.warning("Could not parse params for %s: %r", pixel, params)
            self._save_errors(prefix, str(params), [MALFORMED_PARAMS])
            return

        params_url_format = "&".join(fragments)
        params_struct = self._normalize_params(fragments, schemas)

        # 1) Skip events from clients older than the target version
        if self._is_outdated(params_struct):
            logger.debug("Skipping outdated pixel: %s", pixel)
            return

        # 2) Validate params
        check = schemas.params_validator(params_struct)
        if not check.valid:
            self._save_errors(prefix, params_url_format, format_schema_errors(check.errors))

        # 3) Validate suffixes, if any
        if len(pixel) <= len(prefix):
            return
        remainder = pixel[len(prefix) + 1:] if prefix else pixel
        tokens = {
            str(index): self._normalizer.canonicalize(token)
            for index, token in enumerate(remainder.split("."))
        }
        check = schemas.suffixes_validator(tokens)
        if not check.valid:
            self._save_errors(prefix, pixel, format_suffix_errors(check.errors, tokens))

    def _normalize_params(
        self, fragments: Sequence[str], schemas: CompiledSchema
    ) -> Dict[str, Any]:
        struct: Dict[str, Any] = {}
        for fragment in fragments:
            raw_key, raw_value = _split_fragment(fragment)
            key = self._normalizer.canonicalize(raw_key)
            schema = schemas.params_validator.schema_for(key)
            struct[key] = self._decode_value(key, raw_value, schema)
        return struct

    def _decode_value(
        self, key: str, value: str, schema: Optional[Mapping[str, Any]]
    ) -> Any:
        # Decode before lowercasing
        is_base64 = schema is not None and schema.get("encoding") == "base64"
        decoded = _percent_decode(value, plus_as_space=not is_base64)
        if schema is None:
            # Undeclared; rejected as an additional property later
            return decoded

        if is_base64:
            decoded = _base64_decode(decoded)

        # Lowercase before parsing into an object
        decoded = self._normalizer.canonicalize(decoded)

        if schema.get("type") == "object":
            try:
                return json.loads(decoded)
            except ValueError:
                logger.warning("Param '%s' is not valid JSON: %r", key, decoded)
        return decoded

    def _is_outdated(self, params_struct: Mapping[str, Any]) -> bool:
        if not self._version_key:
            return False
        version = parse_version(params_struct.get(self._version_key))
        return version is not None and version < self._target_version

    def _save_errors(self, prefix: str, example: str, errors: Sequence[str]) -> None:
        if not errors:
            return
        prefix_errors = self.pixel_errors.setdefault(prefix, {})
        for error in errors:
            prefix_errors.setdefault(error, set()).add(example)


# ── Section 4: Builders and one-shot validation ──────────────────────────────


def build_live_pixel_validator(
    common_params: Mapping[str, Any],
    common_suffixes: Mapping[str, Any],
    product: Union[ProductTarget, Mapping[str, Any]],
    ignore_params: Mapping[str, Any],
    raw_trie: RawTrie,
) -> LivePixelValidator:
    """Compile *raw_trie* and bind it to a fresh validator.

    Raises:
        CompileError: If any definition cannot be compiled.
        pydantic.ValidationError: If *product* is malformed.
    """
    if not isinstance(product, ProductTarget):
        product = ProductTarget.model_validate(product)
    compiler = SchemaCompiler(common_params, common_suffixes)
    normalizer = Normalizer(force_lower_case=product.force_lower_case)
    trie = compile_trie(raw_trie, compiler, ignore_params, normalizer)
    return LivePixelValidator(trie, product)


def pixel_from_url(url: str) -> Tuple[str, List[str]]:
    """Split a pixel URL into its name and query fragments.

    ``https://host/t/m_netp_stop_d?12345&x=1`` gives
    ``("m.netp.stop.d", ["x=1"])``; purely numeric cache busters are dropped.
    """
    parts = urlsplit(url)
    name = parts.path
    if name.startswith("/t/"):
        name = name[len("/t/"):]
    pixel = name.replace("_", ".")
    fragments = [
        fragment
        for fragment in parts.query.split("&")
        if fragment and not _CACHE_BUSTER_RE.match(fragment)
    ]
    return pixel, fragments


def validate_single_pixel(validator: LivePixelValidator, url: str) -> None:
    """Validate one pixel URL, raising if it is undocumented or invalid.

    The validator's previous results are discarded.

    Raises:
        UndocumentedPixelError: If no definition matches the pixel.
        LivePixelValidationError: If the pixel fails its definition.
    """
    pixel, fragments = pixel_from_url(url)
    validator.reset()
    validator.validate_pixel(pixel, fragments)
    if validator.undocumented_pixels:
        raise UndocumentedPixelError(pixel)
    if validator.pixel_errors:
        raise LivePixelValidationError(validator.report().pixel_errors)
