"""Shared pytest fixtures for all tests."""
from typing import Any, Dict, Mapping, Optional

import pytest

from pixel_schema import LivePixelValidator, build_live_pixel_validator, build_raw_trie


def make_product(**overrides: Any) -> Dict[str, Any]:
    """Build a product definition with defaults for all fields."""
    product: Dict[str, Any] = {
        "agents": ["Chrome"],
        "target": {"key": "appVersion", "version": "1.0.0"},
        "forceLowerCase": False,
    }
    product.update(overrides)
    return product


def make_validator(
    *pixel_defs: Mapping[str, Any],
    common_params: Optional[Mapping[str, Any]] = None,
    common_suffixes: Optional[Mapping[str, Any]] = None,
    ignore_params: Optional[Mapping[str, Any]] = None,
    **product_overrides: Any,
) -> LivePixelValidator:
    """Tokenize, compile and bind definitions in one call."""
    trie = build_raw_trie(list(pixel_defs))
    return build_live_pixel_validator(
        common_params or {},
        common_suffixes or {},
        make_product(**product_overrides),
        ignore_params or {},
        trie,
    )


@pytest.fixture
def ignore_params() -> Dict[str, Any]:
    return {
        "appVersion": {"key": "appVersion", "description": "Client version"},
        "test": {"key": "test", "type": "boolean", "description": "Test flag"},
    }


@pytest.fixture
def validator_factory() -> Any:
    """The :func:`make_validator` builder, for tests that need several."""
    return make_validator
