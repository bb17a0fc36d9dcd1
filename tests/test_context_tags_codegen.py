"""
Tests for context tag ordering and accessor generation
"""

import ast

import pytest

from taggedpyxm.tags import build_context_tags_method, order_tags
from taggedpyxm.tags.codegen import compile_tag_declaration, render_method


def load_accessor(tags, parent=None):
    """Execute the generated method on a minimal template object."""
    namespace = {}
    exec(render_method(build_context_tags_method(tags)), namespace)

    class Stub:
        get_context_tags = namespace["get_context_tags"]

        def get_parent(self):
            return parent

    return Stub()


@pytest.mark.parametrize("tags, expected", [
    ([], []),
    (["a"], ["a"]),
    (["x", "y", "z"], ["x", "y", "z"]),
    (["a", "b", "b", "c"], ["a", "c", "b"]),
    (["b", "a", "b", "a", "c"], ["c", "b", "a"]),
    (["a", "a", "a", "b"], ["b", "a"]),
])
def test_order_tags(tags, expected):
    """Least declared first, ties in first-seen order"""
    assert order_tags(tags) == expected


def test_method_is_a_function_def():
    method = build_context_tags_method(["a"])

    assert isinstance(method, ast.FunctionDef)
    assert method.name == "get_context_tags"
    assert [arg.arg for arg in method.args.args] == ["self", "include_parent"]


def test_rendering_is_deterministic():
    first = render_method(build_context_tags_method(["a", "b"]))
    second = render_method(build_context_tags_method(["a", "b"]))

    assert first == second
    assert "tags = ['a', 'b']" in first


def test_accessor_returns_local_tags():
    accessor = load_accessor(["content", "sidebar"])

    assert accessor.get_context_tags() == ["content", "sidebar"]
    assert accessor.get_context_tags(True) == ["content", "sidebar"]


def test_accessor_returns_fresh_list():
    accessor = load_accessor(["a"])

    accessor.get_context_tags().append("mutated")
    assert accessor.get_context_tags() == ["a"]


def test_accessor_prepends_parent_tags():
    parent = load_accessor(["shared", "base"])
    child = load_accessor(["shared", "child"], parent=parent)

    assert child.get_context_tags() == ["shared", "child"]
    # no deduplication across the parent boundary
    assert child.get_context_tags(include_parent=True) == ["shared", "base", "shared", "child"]


def test_tags_with_quotes_survive():
    tags = ["it's", 'say "hi"', "back\\slash"]

    assert load_accessor(tags).get_context_tags() == tags


def test_tag_declarations_emit_nothing():
    assert compile_tag_declaration(None, None) is None
