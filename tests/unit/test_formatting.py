"""Unit tests for validation error formatting."""

from typing import Any, Dict, List

from jsonschema import Draft202012Validator

from pixel_schema import format_schema_errors, format_suffix_errors


def _errors(schema: Dict[str, Any], instance: Any) -> List[Any]:
    return list(Draft202012Validator(schema).iter_errors(instance))


class TestFormatSchemaErrors:
    """Messages follow the ``<path> <message>`` convention."""

    def test_type(self) -> None:
        errors = _errors({"properties": {"a": {"type": "boolean"}}}, {"a": "x"})
        assert format_schema_errors(errors) == ["/a must be boolean"]

    def test_type_list(self) -> None:
        errors = _errors({"type": ["integer", "null"]}, "x")
        assert format_schema_errors(errors) == ["must be integer,null"]

    def test_bounds(self) -> None:
        schema = {
            "properties": {
                "low": {"minimum": 0},
                "high": {"maximum": 100},
                "xlow": {"exclusiveMinimum": 0},
            }
        }
        errors = _errors(schema, {"low": -1, "high": 200, "xlow": 0})
        assert sorted(format_schema_errors(errors)) == [
            "/high must be <= 100",
            "/low must be >= 0",
            "/xlow must be > 0",
        ]

    def test_pattern_and_format_keywords(self) -> None:
        errors = _errors({"properties": {"a": {"pattern": "^[0-9]+$"}}}, {"a": "x"})
        assert format_schema_errors(errors) == ['/a must match pattern "^[0-9]+$"']

    def test_one_message_per_extra_property(self) -> None:
        schema = {
            "type": "object",
            "properties": {"a": {}},
            "patternProperties": {"^x_": {}},
            "additionalProperties": False,
        }
        errors = _errors(schema, {"a": 1, "x_1": 2, "b": 3, "c": 4})
        assert format_schema_errors(errors) == [
            "must NOT have additional properties. Found extra property 'b'",
            "must NOT have additional properties. Found extra property 'c'",
        ]

    def test_nested_extra_property_has_path(self) -> None:
        schema = {
            "properties": {
                "obj": {"type": "object", "properties": {}, "additionalProperties": False}
            }
        }
        errors = _errors(schema, {"obj": {"z": 1}})
        assert format_schema_errors(errors) == [
            "/obj must NOT have additional properties. Found extra property 'z'"
        ]

    def test_required_named_individually(self) -> None:
        errors = _errors({"required": ["a", "b"]}, {})
        assert format_schema_errors(errors) == [
            "must have required property 'a'",
            "must have required property 'b'",
        ]

    def test_not_errors_omitted(self) -> None:
        errors = _errors({"properties": {"a": {"not": {"type": "string"}}}}, {"a": "x"})
        assert format_schema_errors(errors) == []

    def test_unknown_keyword_falls_back_to_library_message(self) -> None:
        errors = _errors({"properties": {"a": {"dependentRequired": {"a": ["b"]}}}}, {"a": {"a": 1}})
        messages = format_schema_errors(errors)
        assert len(messages) == 1
        assert messages[0].startswith("/a ")


class TestFormatSuffixErrors:
    """Suffix messages name the literal token and its index."""

    SCHEMA = {
        "type": "object",
        "properties": {"0": {"enum": ["exception"]}, "1": {"type": "string"}},
        "additionalProperties": False,
    }

    def test_fixed_value(self) -> None:
        tokens = {"0": "wrongkey", "1": "x"}
        assert format_suffix_errors(_errors(self.SCHEMA, tokens), tokens) == [
            "Suffix 'wrongkey' at index 0 /0 must be equal to one of the allowed values"
        ]

    def test_extra_token(self) -> None:
        tokens = {"0": "exception", "1": "x", "2": "extra"}
        assert format_suffix_errors(_errors(self.SCHEMA, tokens), tokens) == [
            "must NOT have additional properties. Found extra suffix 'extra' at index 2"
        ]

    def test_tokens_default_to_instance(self) -> None:
        tokens = {"0": "nope", "1": "x", "2": "more"}
        assert format_suffix_errors(_errors(self.SCHEMA, tokens)) == [
            "Suffix 'nope' at index 0 /0 must be equal to one of the allowed values",
            "must NOT have additional properties. Found extra suffix 'more' at index 2",
        ]
