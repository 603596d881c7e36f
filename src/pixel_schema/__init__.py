"""
pixel-schema: Live validation of telemetry pixels against their definitions.

Pixels are identified by dot-segmented names (``m.netp.tunnel.stop``) and
carry query parameters. Definitions describe, per pixel prefix, which
parameters and positional name suffixes are allowed. This library matches
live pixels to the longest defined prefix and validates them, collecting
errors per prefix and the set of pixels nobody documented.

Example:
    >>> from pixel_schema import build_raw_trie, build_live_pixel_validator
    >>> trie = build_raw_trie([{"m.app.open": {"parameters": [{"key": "n"}]}}])
    >>> validator = build_live_pixel_validator(
    ...     {}, {}, {"target": {"key": "appVersion", "version": "1.0.0"}}, {}, trie
    ... )
    >>> validator.validate_pixel("m.app.open", "['n=1', 'x=2']")
    >>> sorted(validator.pixel_errors["m.app.open"])
    ["must NOT have additional properties. Found extra property 'x'"]

Pipeline:
    definitions --tokenize--> RawTrie --compile--> CompiledTrie
    CompiledTrie + ProductTarget --> LivePixelValidator.validate_pixel(...)
"""

__version__ = "1.0.0"

# Core data models and exceptions
from pixel_schema.models import (
    PixelSchemaError,
    CompileError,
    DuplicateDefinitionError,
    UnknownShortcutError,
    DuplicateKeyError,
    InvalidSpecError,
    UndocumentedPixelError,
    LivePixelValidationError,
    InlineSpec,
    ShortcutEntry,
    InlineEntry,
    Entry,
    parse_entry,
    PixelDefinition,
    VersionTarget,
    ProductTarget,
    parse_version,
)

# Case folding
from pixel_schema.normalizer import Normalizer

# Tokenizer
from pixel_schema.tokenizer import (
    RawTrie,
    RawTrieNode,
    TrieBuilder,
    tokenize_pixel_defs,
    build_raw_trie,
)

# Schema compiler
from pixel_schema.compiler import (
    CompileIssueKind,
    CompileIssue,
    CompileResult,
    CompiledValidator,
    CompiledSchema,
    CompiledTrie,
    CompiledTrieNode,
    SchemaCheck,
    SchemaCompiler,
    compile_definition,
    compile_trie,
    check_pixel_definitions,
)

# Error formatting
from pixel_schema.formatting import format_schema_errors, format_suffix_errors

# Live validation
from pixel_schema.live import (
    LivePixelValidator,
    ValidationReport,
    build_live_pixel_validator,
    merge_reports,
    parse_params_repr,
    pixel_from_url,
    validate_single_pixel,
)

__all__ = [
    # Models and exceptions
    "PixelSchemaError",
    "CompileError",
    "DuplicateDefinitionError",
    "UnknownShortcutError",
    "DuplicateKeyError",
    "InvalidSpecError",
    "UndocumentedPixelError",
    "LivePixelValidationError",
    "InlineSpec",
    "ShortcutEntry",
    "InlineEntry",
    "Entry",
    "parse_entry",
    "PixelDefinition",
    "VersionTarget",
    "ProductTarget",
    "parse_version",
    # Case folding
    "Normalizer",
    # Tokenizer
    "RawTrie",
    "RawTrieNode",
    "TrieBuilder",
    "tokenize_pixel_defs",
    "build_raw_trie",
    # Schema compiler
    "CompileIssueKind",
    "CompileIssue",
    "CompileResult",
    "CompiledValidator",
    "CompiledSchema",
    "CompiledTrie",
    "CompiledTrieNode",
    "SchemaCheck",
    "SchemaCompiler",
    "compile_definition",
    "compile_trie",
    "check_pixel_definitions",
    # Error formatting
    "format_schema_errors",
    "format_suffix_errors",
    # Live validation
    "LivePixelValidator",
    "ValidationReport",
    "build_live_pixel_validator",
    "merge_reports",
    "parse_params_repr",
    "pixel_from_url",
    "validate_single_pixel",
]
