"""
Tests for the tag collection pass
"""

import pytest

from taggedpyxm.engine.errors import TemplateLogicError
from taggedpyxm.engine.pyxm_parser import NodeType, PyxmParser
from taggedpyxm.engine.visitor import NodeTraverser, NodeVisitor
from taggedpyxm.tags import CONTEXT_TAGS_META, TagCollectionPass, TagSyntaxParser
from taggedpyxm.tags.nodes import iter_declared_tags


def parse(source):
    return PyxmParser(statement_parsers=[TagSyntaxParser()]).parse(source, "page.pyxm")


def collected(ast, unit):
    return list(iter_declared_tags(ast, ast[unit.meta[CONTEXT_TAGS_META]]))


def test_declarations_attached_in_encounter_order():
    ast = parse("{% tag 'b' %}text{% if x %}{% tag 'a', 'b' %}{% endif %}")
    NodeTraverser([TagCollectionPass()]).traverse(ast)

    assert collected(ast, ast.root_node) == ["b", "a", "b"]


def test_every_unit_gets_a_meta_node():
    ast = parse("plain")
    NodeTraverser([TagCollectionPass()]).traverse(ast)

    meta = ast[ast.root_node.meta[CONTEXT_TAGS_META]]
    assert meta.type == NodeType.COLLECTED_TAGS
    assert meta.children == []


def test_embed_declarations_stay_in_embed():
    ast = parse(
        "{% tag 'outer' %}"
        "{% embed 'card.pyxm' %}{% tag 'inner' %}{% endembed %}"
        "{% tag 'outer-again' %}"
    )
    NodeTraverser([TagCollectionPass()]).traverse(ast)

    root, embed = ast.units()
    assert collected(ast, root) == ["outer", "outer-again"]
    assert collected(ast, embed) == ["inner"]


def test_nested_embeds():
    ast = parse(
        "{% embed 'a.pyxm' %}{% tag 'a' %}"
        "{% embed 'b.pyxm' %}{% tag 'b' %}{% endembed %}"
        "{% tag 'a2' %}{% endembed %}"
    )
    NodeTraverser([TagCollectionPass()]).traverse(ast)

    root, outer, inner = ast.units()
    assert collected(ast, root) == []
    assert collected(ast, outer) == ["a", "a2"]
    assert collected(ast, inner) == ["b"]


def test_pass_keeps_no_state():
    """One pass instance serves any number of compilations"""
    collection = TagCollectionPass()
    traverser = NodeTraverser([collection])

    first = traverser.traverse(parse("{% tag 'one' %}"))
    second = traverser.traverse(parse("{% tag 'two' %}"))

    assert vars(collection) == {}
    assert collected(first, first.root_node) == ["one"]
    assert collected(second, second.root_node) == ["two"]


def test_meta_node_attached_once():
    ast = parse("{% tag 'a' %}")
    traverser = NodeTraverser([TagCollectionPass()])

    traverser.traverse(ast)
    meta = ast.root_node.meta[CONTEXT_TAGS_META]
    traverser.traverse(ast)

    assert ast.root_node.meta[CONTEXT_TAGS_META] == meta


def test_declaration_outside_unit():
    ast = parse("{% tag 'a' %}")
    declaration = ast.find_by_type(NodeType.TAG_DECLARATION)[0]

    with pytest.raises(TemplateLogicError, match="outside of a compilation unit"):
        TagCollectionPass().enter_node(ast, declaration, ())


def test_unbalanced_leave():
    ast = parse("{% embed 'card.pyxm' %}{% endembed %}")
    embed = ast.units()[1]

    with pytest.raises(TemplateLogicError, match="Unbalanced"):
        TagCollectionPass().leave_node(ast, embed, (ast.root,))


def test_units_left_open():
    ast = parse("")

    with pytest.raises(TemplateLogicError, match="left open"):
        TagCollectionPass().finish(ast, (ast.root,))


def test_collected_declarations_have_no_children():
    ast = parse("{% tag 'a' %}")
    NodeTraverser([TagCollectionPass()]).traverse(ast)
    declaration = ast.find_by_type(NodeType.TAG_DECLARATION)[0]

    with pytest.raises(TemplateLogicError):
        ast.append_child(declaration.handle, ast.root)


def test_traverser_orders_visitors_by_priority():
    calls = []

    class Recorder(NodeVisitor):
        def __init__(self, label, priority):
            self.label = label
            self.priority = priority

        def begin(self, ast):
            calls.append(self.label)

    traverser = NodeTraverser([Recorder("late", 10), Recorder("early", -5), Recorder("default", 0)])
    traverser.traverse(parse(""))

    assert calls == ["early", "default", "late"]
