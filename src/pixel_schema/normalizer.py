"""Case folding shared by definitions, query keys, values and suffix tokens."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Normalizer:
    """Canonicalizes strings for one validation run.

    When ``force_lower_case`` is off every value passes through unchanged.
    Containers are folded recursively, including mapping keys, so a whole
    definition can be canonicalized in one call.
    """

    force_lower_case: bool = False

    def canonicalize(self, value: Any) -> Any:
        if not self.force_lower_case:
            return value
        if isinstance(value, str):
            return value.lower()
        if isinstance(value, dict):
            return {self.canonicalize(k): self.canonicalize(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self.canonicalize(item) for item in value]
        return value


IDENTITY = Normalizer(force_lower_case=False)

# Pixel names are always lower case, whatever the product setting
PIXEL_NAME = Normalizer(force_lower_case=True)
