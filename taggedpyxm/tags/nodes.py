"""
Context Tag Nodes
=================

Constructors for the two node kinds of the context tag feature.

TAG_DECLARATION:
    A leaf produced by ``{% tag ... %}``. Carries the literal tags in
    source order and never has children.

COLLECTED_TAGS:
    A meta-node, one per compilation unit, stored in the unit's
    ``meta[CONTEXT_TAGS_META]`` slot. Its children are the handles of all
    declarations of that unit, in encounter order.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from taggedpyxm.engine.pyxm_parser import NodeType, PyxmAST, PyxmNode

CONTEXT_TAGS_META = "context_tags"


def tag_declaration(tree: PyxmAST, tags: Iterable[str], line: int) -> int:
    """Add a TAG_DECLARATION node and return its handle."""
    return tree.add(PyxmNode(type=NodeType.TAG_DECLARATION, tags=tuple(tags), line=line))


def collected_tags(tree: PyxmAST, line: int = 0) -> int:
    """Add an empty COLLECTED_TAGS node and return its handle."""
    return tree.add(PyxmNode(type=NodeType.COLLECTED_TAGS, line=line))


def iter_declared_tags(tree: PyxmAST, collected: PyxmNode) -> Iterator[str]:
    """All tags of a COLLECTED_TAGS node, repeats included, in encounter order."""
    for declaration in tree.children(collected.handle):
        yield from declaration.tags
