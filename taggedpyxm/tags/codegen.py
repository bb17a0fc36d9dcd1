"""
Context Tag Code Generation
===========================

Builds the ``get_context_tags`` method of a compiled template as a Python
AST. Rendering it to source is a separate step (``render_method``), so the
tag list never passes through string formatting.

Generated method:
    def get_context_tags(self, include_parent=False):
        tags = ['content', 'some-context-tag']
        if include_parent:
            parent = self.get_parent()
            if parent is not None:
                tags = parent.get_context_tags() + tags
        return tags
"""

from __future__ import annotations

import ast
from typing import Dict, Iterable, List, Optional

from taggedpyxm.engine.pyxm_parser import PyxmAST, PyxmNode
from taggedpyxm.tags.nodes import iter_declared_tags

METHOD_NAME = "get_context_tags"


def order_tags(tags: Iterable[str]) -> List[str]:
    """
    Deduplicate tags, least declared first.

    Ties keep first-seen order: counts are collected in insertion order
    and ``sorted`` is stable.
    """
    counts: Dict[str, int] = {}
    for tag in tags:
        counts[tag] = counts.get(tag, 0) + 1
    return sorted(counts, key=counts.__getitem__)


def collect_context_tags(tree: PyxmAST, node: PyxmNode) -> List[str]:
    """Ordered, distinct tags of a COLLECTED_TAGS node."""
    return order_tags(iter_declared_tags(tree, node))


def _name(id: str) -> ast.Name:
    return ast.Name(id=id, ctx=ast.Load())


def _assign(target: str, value: ast.expr) -> ast.Assign:
    return ast.Assign(targets=[ast.Name(id=target, ctx=ast.Store())], value=value)


def _function(name: str, args: ast.arguments, body: List[ast.stmt]) -> ast.FunctionDef:
    fields = dict(name=name, args=args, body=body, decorator_list=[], returns=None)
    if "type_params" in ast.FunctionDef._fields:
        fields["type_params"] = []
    return ast.FunctionDef(**fields)


def build_context_tags_method(tags: Iterable[str]) -> ast.FunctionDef:
    """Build the accessor method returning ``tags``."""
    literal = ast.List(elts=[ast.Constant(value=tag) for tag in tags], ctx=ast.Load())

    merge_parent = ast.If(
        test=ast.Compare(left=_name("parent"), ops=[ast.IsNot()], comparators=[ast.Constant(value=None)]),
        body=[
            _assign("tags", ast.BinOp(
                left=ast.Call(
                    func=ast.Attribute(value=_name("parent"), attr=METHOD_NAME, ctx=ast.Load()),
                    args=[],
                    keywords=[],
                ),
                op=ast.Add(),
                right=_name("tags"),
            )),
        ],
        orelse=[],
    )

    body: List[ast.stmt] = [
        ast.Expr(value=ast.Constant(value="Context tags declared by this template.")),
        _assign("tags", literal),
        ast.If(
            test=_name("include_parent"),
            body=[
                _assign("parent", ast.Call(
                    func=ast.Attribute(value=_name("self"), attr="get_parent", ctx=ast.Load()),
                    args=[],
                    keywords=[],
                )),
                merge_parent,
            ],
            orelse=[],
        ),
        ast.Return(value=_name("tags")),
    ]

    args = ast.arguments(
        posonlyargs=[],
        args=[ast.arg(arg="self"), ast.arg(arg="include_parent")],
        vararg=None,
        kwonlyargs=[],
        kw_defaults=[],
        kwarg=None,
        defaults=[ast.Constant(value=False)],
    )
    return ast.fix_missing_locations(_function(METHOD_NAME, args, body))


def render_method(method: ast.FunctionDef) -> str:
    """Render a generated method to Python source."""
    return ast.unparse(ast.fix_missing_locations(method))


def compile_collected_tags(tree: PyxmAST, node: PyxmNode) -> ast.FunctionDef:
    """Node compiler for COLLECTED_TAGS meta-nodes."""
    return build_context_tags_method(collect_context_tags(tree, node))


def compile_tag_declaration(tree: PyxmAST, node: PyxmNode) -> Optional[ast.stmt]:
    """Node compiler for TAG_DECLARATION nodes: they emit no code."""
    return None
