"""
PYXM Extensions
===============

An Extension bundles everything a language feature adds to the engine:
statement parsers, AST visitors run before code generation, compilers
for the node types it introduces, and filters.

Example:
    env = TemplateEnvironment("templates", extensions=[ContextTagExtension()])
"""

from __future__ import annotations

import ast
from typing import Any, Callable, Dict, List, Optional

from taggedpyxm.engine.pyxm_parser import NodeType, PyxmAST, PyxmNode, StatementParser
from taggedpyxm.engine.visitor import NodeVisitor


# Compiles one node to a Python statement (or nothing)
NodeCompiler = Callable[[PyxmAST, PyxmNode], Optional[ast.stmt]]


class Extension:
    """Base class for engine extensions."""

    name: str = "extension"

    def get_statement_parsers(self) -> List[StatementParser]:
        return []

    def get_node_visitors(self) -> List[NodeVisitor]:
        return []

    def get_node_compilers(self) -> Dict[NodeType, NodeCompiler]:
        """
        Compilers for node types this extension introduces.

        Compilers for structural nodes return a statement emitted in place.
        Compilers for meta-nodes of a compilation unit return a class-level
        statement (typically a method definition) of the unit's class.
        """
        return {}

    def get_filters(self) -> Dict[str, Callable[..., Any]]:
        return {}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
