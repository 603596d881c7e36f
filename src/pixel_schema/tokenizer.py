"""Tokenizes dot-segmented pixel definitions into a prefix trie.

Each part of a pixel prefix becomes a node. A node's terminal slot holds the
definition of the prefix ending there, so ``a`` and ``a.b`` can both be
defined: ``a`` has a terminal and a child ``b`` with its own terminal.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple

from pixel_schema.models import DuplicateDefinitionError, PixelDefinition

logger = logging.getLogger("pixel_schema.tokenizer")


@dataclass(frozen=True)
class RawTrieNode:
    """Immutable trie node holding raw (uncompiled) definitions."""

    children: Mapping[str, "RawTrieNode"] = field(
        default_factory=lambda: MappingProxyType({})
    )
    terminal: Optional[PixelDefinition] = None


@dataclass(frozen=True)
class RawTrie:
    """Tokenized pixel definitions, ready for compilation."""

    root: RawTrieNode

    def iter_terminals(self) -> Iterator[Tuple[str, PixelDefinition]]:
        """Yield ``(prefix, definition)`` for every defined prefix, depth first."""
        stack = [("", self.root)]
        while stack:
            path, node = stack.pop()
            if node.terminal is not None:
                yield path, node.terminal
            for part in sorted(node.children, reverse=True):
                child_path = f"{path}.{part}" if path else part
                stack.append((child_path, node.children[part]))

    def __len__(self) -> int:
        return sum(1 for _ in self.iter_terminals())


class _BuilderNode:
    __slots__ = ("children", "terminal")

    def __init__(self) -> None:
        self.children: Dict[str, _BuilderNode] = {}
        self.terminal: Optional[PixelDefinition] = None

    def freeze(self) -> RawTrieNode:
        return RawTrieNode(
            children=MappingProxyType(
                {part: child.freeze() for part, child in self.children.items()}
            ),
            terminal=self.terminal,
        )


class TrieBuilder:
    """Mutable destination that accumulates definitions from several sources."""

    def __init__(self) -> None:
        self._root = _BuilderNode()

    def add(self, prefix: str, definition: PixelDefinition) -> None:
        """Insert one prefix.

        Raises:
            DuplicateDefinitionError: If the prefix already has a definition.
        """
        node = self._root
        for part in prefix.split("."):
            child = node.children.get(part)
            if child is None:
                child = _BuilderNode()
                node.children[part] = child
            node = child

        if node.terminal is not None:
            raise DuplicateDefinitionError(prefix)
        node.terminal = definition

    def build(self) -> RawTrie:
        """Freeze the accumulated definitions into a :class:`RawTrie`."""
        return RawTrie(root=self._root.freeze())


def tokenize_pixel_defs(
    pixel_defs: Mapping[str, Any],
    destination: TrieBuilder,
) -> None:
    """Tokenize one definitions source into *destination*.

    Only ``parameters`` and ``suffixes`` are kept from each definition; other
    keys (description, owners...) are not needed for live validation.

    Raises:
        DuplicateDefinitionError: If a prefix is already defined in
            *destination*, whether by this source or an earlier one.
    """
    for prefix, definition in pixel_defs.items():
        if isinstance(definition, PixelDefinition):
            parsed = definition
        else:
            parsed = PixelDefinition.model_validate(definition or {})
        destination.add(prefix, parsed)


def build_raw_trie(all_pixel_defs: Iterable[Mapping[str, Any]]) -> RawTrie:
    """Build a trie from several definitions sources (e.g. one per file)."""
    builder = TrieBuilder()
    for source_index, pixel_defs in enumerate(all_pixel_defs):
        logger.debug(
            "Tokenizing definitions source %d (%d prefixes)",
            source_index,
            len(pixel_defs),
        )
        tokenize_pixel_defs(pixel_defs, builder)
    return builder.build()
