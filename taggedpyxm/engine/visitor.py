"""
PYXM Node Visitors
==================

Passes that run over a parsed AST before code generation.

A NodeVisitor sees every structural node twice, on enter and on leave.
Traversal state is threaded through the calls instead of living on the
visitor: ``begin()`` produces the initial state, and every enter/leave
call returns the state for the next call. A visitor instance therefore
holds nothing between compilations and can be shared freely.

Visitors run one after another, each over the whole tree, ordered by
ascending priority (registration order breaks ties).
"""

from __future__ import annotations

from typing import Any, Iterable, List

from taggedpyxm.engine.pyxm_parser import PyxmAST, PyxmNode


class NodeVisitor:
    """
    Base class for AST passes.

    Example:
        class CountOutputs(NodeVisitor):
            def begin(self, ast):
                return 0

            def enter_node(self, ast, node, state):
                return state + (node.type == NodeType.OUTPUT)
    """

    priority: int = 0

    def begin(self, ast: PyxmAST) -> Any:
        """Initial traversal state."""
        return None

    def enter_node(self, ast: PyxmAST, node: PyxmNode, state: Any) -> Any:
        """Called before the children of ``node`` are visited."""
        return state

    def leave_node(self, ast: PyxmAST, node: PyxmNode, state: Any) -> Any:
        """Called after the children of ``node`` were visited."""
        return state

    def finish(self, ast: PyxmAST, state: Any) -> None:
        """Called once the whole tree has been visited."""
        pass


class NodeTraverser:
    """
    Runs NodeVisitors over an AST.

    Example:
        traverser = NodeTraverser([TagCollectionPass()])
        traverser.traverse(ast)
    """

    def __init__(self, visitors: Iterable[NodeVisitor] = ()) -> None:
        self._visitors: List[NodeVisitor] = []
        for visitor in visitors:
            self.add_visitor(visitor)

    def add_visitor(self, visitor: NodeVisitor) -> None:
        """Register a visitor, keeping the list ordered by priority."""
        self._visitors.append(visitor)
        self._visitors.sort(key=lambda v: v.priority)

    @property
    def visitors(self) -> List[NodeVisitor]:
        return list(self._visitors)

    def traverse(self, ast: PyxmAST) -> PyxmAST:
        """Run every visitor over the full tree, in priority order."""
        for visitor in self._visitors:
            state = visitor.begin(ast)
            state = self._traverse_for_visitor(visitor, ast, ast.root, state)
            visitor.finish(ast, state)
        return ast

    def _traverse_for_visitor(
        self,
        visitor: NodeVisitor,
        ast: PyxmAST,
        handle: int,
        state: Any,
    ) -> Any:
        node = ast[handle]
        state = visitor.enter_node(ast, node, state)

        # snapshot: visitors may append to the child list
        for child in list(node.children):
            state = self._traverse_for_visitor(visitor, ast, child, state)

        return visitor.leave_node(ast, node, state)
