"""
Context Tag Extension
=====================

Registers the ``tag`` statement, the collection pass and the node
compilers with a TemplateEnvironment.

Example:
    env = TemplateEnvironment(loader=loader, extensions=[ContextTagExtension()])
    env.load_compiled("page.pyxm").get_context_tags(include_parent=True)
"""

from __future__ import annotations

from typing import Dict, List

from taggedpyxm.engine.extension import Extension, NodeCompiler
from taggedpyxm.engine.pyxm_parser import NodeType, StatementParser
from taggedpyxm.engine.visitor import NodeVisitor
from taggedpyxm.tags.codegen import compile_collected_tags, compile_tag_declaration
from taggedpyxm.tags.parser import TagSyntaxParser
from taggedpyxm.tags.visitor import TagCollectionPass


class ContextTagExtension(Extension):
    """Adds ``{% tag %}`` and the ``get_context_tags()`` accessor."""

    name = "context_tags"

    def __init__(self) -> None:
        self._parser = TagSyntaxParser()
        self._pass = TagCollectionPass()

    def get_statement_parsers(self) -> List[StatementParser]:
        return [self._parser]

    def get_node_visitors(self) -> List[NodeVisitor]:
        return [self._pass]

    def get_node_compilers(self) -> Dict[NodeType, NodeCompiler]:
        return {
            NodeType.TAG_DECLARATION: compile_tag_declaration,
            NodeType.COLLECTED_TAGS: compile_collected_tags,
        }
