"""
Context Tag Collection
======================

Compiler pass wiring every tag declaration to the compilation unit it
belongs to.

The pass state is the tuple of currently open units, innermost last. It
is returned from every call rather than kept on the pass, so a single
TagCollectionPass can serve any number of compilations, concurrent ones
included.
"""

from __future__ import annotations

from typing import Tuple

from taggedpyxm.engine.errors import TemplateLogicError
from taggedpyxm.engine.pyxm_parser import NodeType, PyxmAST, PyxmNode
from taggedpyxm.engine.visitor import NodeVisitor
from taggedpyxm.tags.nodes import CONTEXT_TAGS_META, collected_tags
from taggedpyxm.utils.logger import LogLevel, get_logger

logger = get_logger("taggedpyxm.tags")

UnitStack = Tuple[int, ...]


class TagCollectionPass(NodeVisitor):
    """
    Collects TAG_DECLARATION nodes into per-unit COLLECTED_TAGS meta-nodes.

    - entering a unit attaches its COLLECTED_TAGS node (once) and opens it
    - a declaration is appended to the innermost open unit's node
    - leaving a unit closes it
    """

    priority = 0

    def begin(self, tree: PyxmAST) -> UnitStack:
        return ()

    def enter_node(self, tree: PyxmAST, node: PyxmNode, state: UnitStack) -> UnitStack:
        if node.is_unit:
            if CONTEXT_TAGS_META not in node.meta:
                tree.attach_meta(node.handle, CONTEXT_TAGS_META, collected_tags(tree, node.line))
            return state + (node.handle,)

        if node.type == NodeType.TAG_DECLARATION:
            if not state:
                raise TemplateLogicError("Tag declaration found outside of a compilation unit.")
            unit = tree[state[-1]]
            tree.append_child(unit.meta[CONTEXT_TAGS_META], node.handle)

        return state

    def leave_node(self, tree: PyxmAST, node: PyxmNode, state: UnitStack) -> UnitStack:
        if node.is_unit:
            if not state or state[-1] != node.handle:
                raise TemplateLogicError(f"Unbalanced compilation unit stack leaving {node.name!r}.")
            return state[:-1]
        return state

    def finish(self, tree: PyxmAST, state: UnitStack) -> None:
        if state:
            raise TemplateLogicError("Compilation units left open after traversal.")

        if logger.is_enabled_for(LogLevel.DEBUG):
            for unit in tree.units():
                collected = tree[unit.meta[CONTEXT_TAGS_META]]
                logger.debug(
                    "Collected context tags",
                    unit=unit.name,
                    declarations=len(collected.children),
                )
