"""Property-based tests for prefix matching and validation determinism."""
from typing import Any, Dict, List

from hypothesis import given, settings, strategies as st

from conftest import make_validator
from pixel_schema import SchemaCompiler, build_raw_trie, compile_trie, merge_reports

segment = st.text(alphabet="abcdefghij", min_size=1, max_size=3)
prefixes = st.lists(segment, min_size=1, max_size=4).map(".".join)


class TestMatchDeterminism:
    """Greedy matching is a pure function of the trie and the name."""

    @settings(deadline=None)
    @given(
        st.lists(prefixes, min_size=1, max_size=8, unique=True),
        st.lists(segment, min_size=1, max_size=6).map(".".join),
    )
    def test_match_is_prefix_of_name(self, defined: List[str], pixel: str) -> None:
        raw = build_raw_trie([{prefix: {} for prefix in defined}])
        trie = compile_trie(raw, SchemaCompiler())
        matched, node = trie.match(pixel)

        assert trie.match(pixel) == (matched, node)
        if matched:
            assert pixel == matched or pixel.startswith(matched + ".")
        if node.terminal is not None:
            assert matched in defined

    @settings(deadline=None)
    @given(st.lists(prefixes, min_size=1, max_size=8, unique=True))
    def test_every_defined_prefix_matches_itself(self, defined: List[str]) -> None:
        raw = build_raw_trie([{prefix: {} for prefix in defined}])
        trie = compile_trie(raw, SchemaCompiler())
        for prefix in defined:
            matched, node = trie.match(prefix)
            assert matched == prefix
            assert node.terminal is not None

    @settings(deadline=None)
    @given(st.lists(prefixes, min_size=1, max_size=8, unique=True))
    def test_sources_order_independent(self, defined: List[str]) -> None:
        half = len(defined) // 2
        first = {prefix: {} for prefix in defined[:half]}
        second = {prefix: {} for prefix in defined[half:]}
        forward = build_raw_trie([first, second])
        backward = build_raw_trie([second, first])
        assert [p for p, _ in forward.iter_terminals()] == [
            p for p, _ in backward.iter_terminals()
        ]
        assert len(forward) == len(defined)


class TestLedgerDeterminism:
    """Replaying the same events yields the same report."""

    DEFS: Dict[str, Any] = {
        "m.app": {
            "parameters": [
                {"key": "count", "type": "integer"},
                {"key": "kind", "enum": ["a", "b"]},
            ],
            "suffixes": [{"enum": ["phone", "tablet"]}],
        },
    }

    events = st.lists(
        st.tuples(
            st.sampled_from(["m.app", "m.app.phone", "m.app.tv", "m.other", "m"]),
            st.lists(
                st.sampled_from(["count=1", "count=x", "kind=a", "kind=c", "extra=1"]),
                max_size=3,
            ),
        ),
        max_size=15,
    )

    @settings(deadline=None)
    @given(events)
    def test_replay_and_order_independent(self, batch: List[Any]) -> None:
        once = make_validator(self.DEFS)
        for pixel, params in batch:
            once.validate_pixel(pixel, params)

        twice = make_validator(self.DEFS)
        for pixel, params in batch + batch:
            twice.validate_pixel(pixel, params)

        backwards = make_validator(self.DEFS)
        for pixel, params in reversed(batch):
            backwards.validate_pixel(pixel, params)

        assert once.report() == twice.report() == backwards.report()

    @settings(deadline=None)
    @given(events, st.integers(min_value=0, max_value=15))
    def test_sharded_merge_equals_single_run(self, batch: List[Any], cut: int) -> None:
        whole = make_validator(self.DEFS)
        left = make_validator(self.DEFS)
        right = make_validator(self.DEFS)
        for index, (pixel, params) in enumerate(batch):
            whole.validate_pixel(pixel, params)
            (left if index < cut else right).validate_pixel(pixel, params)

        assert merge_reports(left.report(), right.report()) == whole.report()
