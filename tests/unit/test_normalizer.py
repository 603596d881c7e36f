"""Unit tests for case folding."""

from pixel_schema import Normalizer
from pixel_schema.normalizer import IDENTITY, PIXEL_NAME


class TestNormalizer:
    """Folding is all-or-nothing per run."""

    def test_identity_returns_same_object(self) -> None:
        value = {"Key": ["A", "B"]}
        assert IDENTITY.canonicalize(value) is value

    def test_lowercases_strings(self) -> None:
        assert Normalizer(force_lower_case=True).canonicalize("MiXeD") == "mixed"

    def test_folds_containers_recursively(self) -> None:
        folded = PIXEL_NAME.canonicalize({"Key": ["A", {"Inner": "V"}], "n": 1})
        assert folded == {"key": ["a", {"inner": "v"}], "n": 1}

    def test_tuples_become_lists(self) -> None:
        assert PIXEL_NAME.canonicalize(("A", "b")) == ["a", "b"]

    def test_non_strings_untouched(self) -> None:
        for value in (1, 1.5, True, None):
            assert PIXEL_NAME.canonicalize(value) == value

    def test_equality_by_flag(self) -> None:
        assert Normalizer(True) == PIXEL_NAME
        assert Normalizer() == IDENTITY
