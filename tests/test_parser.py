"""
Tests for the PYXM lexer, parser and AST arena
"""

import pytest

from taggedpyxm.engine.errors import TemplateLogicError, TemplateSyntaxError
from taggedpyxm.engine.pyxm_parser import (
    NodeType,
    PyxmLexer,
    PyxmNode,
    PyxmParser,
    StatementParser,
    TokenType,
)


def texts(ast):
    return [node.content for node in ast.find_by_type(NodeType.TEXT)]


def test_lexer_token_stream():
    """Text, expressions and statements are split into tokens"""
    tokens = PyxmLexer("Hi {{ name }}!{% if x %}{% endif %}").tokenize()

    assert [t.type for t in tokens] == [
        TokenType.TEXT,
        TokenType.EXPR_OPEN, TokenType.EXPR_CONTENT, TokenType.EXPR_CLOSE,
        TokenType.TEXT,
        TokenType.STMT_OPEN, TokenType.STMT_CONTENT, TokenType.STMT_CLOSE,
        TokenType.STMT_OPEN, TokenType.STMT_CONTENT, TokenType.STMT_CLOSE,
        TokenType.EOF,
    ]
    assert tokens[2].value == "name"


def test_trim_blocks_removes_newline_after_statement():
    ast = PyxmParser().parse("{% if x %}\nyes\n{% endif %}\nafter")

    assert texts(ast) == ["yes\n", "after"]


def test_trim_blocks_disabled_keeps_newline():
    ast = PyxmParser(trim_blocks=False).parse("{% if x %}\nyes{% endif %}\nafter")

    assert texts(ast) == ["\nyes", "\nafter"]


def test_whitespace_control_markers():
    ast = PyxmParser().parse("a   {{- x -}}   b")

    assert texts(ast) == ["a", "b"]


def test_raw_block_is_verbatim():
    ast = PyxmParser().parse("{% raw %}{{ not parsed }}{% endraw %}")

    assert texts(ast) == ["{{ not parsed }}"]


def test_line_numbers():
    ast = PyxmParser().parse("line one\n\n{{ value }}")

    output = ast.find_by_type(NodeType.OUTPUT)[0]
    assert output.line == 3


def test_if_elif_else_structure():
    ast = PyxmParser().parse("{% if a %}1{% elif b %}2{% else %}3{% endif %}")

    node = ast.root_node
    if_node = ast[node.children[0]]
    assert if_node.type == NodeType.IF
    elif_node = [child for child in ast.children(if_node.handle) if child.type == NodeType.ELIF][0]
    assert elif_node.condition == "b"
    assert [child.type for child in ast.children(elif_node.handle)] == [NodeType.TEXT, NodeType.ELSE]


def test_extends_sets_parent_name():
    ast = PyxmParser().parse("{% extends 'base.pyxm' %}{% block a %}{% endblock %}")

    assert ast.root_node.parent_name == "base.pyxm"


def test_embed_is_a_unit():
    ast = PyxmParser().parse("{% embed 'card.pyxm' %}{% block body %}x{% endblock %}{% endembed %}", "page")

    units = ast.units()
    assert [unit.type for unit in units] == [NodeType.MODULE, NodeType.EMBED]
    assert units[1].parent_name == "card.pyxm"
    assert units[1].name == "page#embed1"


def test_same_block_name_in_template_and_embed():
    """Block names are scoped to their compilation unit"""
    ast = PyxmParser().parse(
        "{% block body %}{% endblock %}"
        "{% embed 'card.pyxm' %}{% block body %}{% endblock %}{% endembed %}"
    )

    assert len(ast.find_by_type(NodeType.BLOCK)) == 2


def test_to_dict():
    ast = PyxmParser().parse("{% block title %}Hi{% endblock %}", "page")

    assert ast.to_dict() == {
        "type": "MODULE",
        "line": 1,
        "name": "page",
        "children": [{
            "type": "BLOCK",
            "line": 1,
            "name": "title",
            "children": [{"type": "TEXT", "line": 1, "content": "Hi", "children": []}],
        }],
    }


def test_leaf_nodes_cannot_have_children():
    ast = PyxmParser().parse("text")
    text = ast.find_by_type(NodeType.TEXT)[0]

    with pytest.raises(TemplateLogicError, match="TEXT node cannot have children."):
        ast.append_child(text.handle, ast.root)


def test_meta_only_on_units():
    ast = PyxmParser().parse("text")
    text = ast.find_by_type(NodeType.TEXT)[0]
    extra = ast.add(PyxmNode(type=NodeType.COMMENT))

    with pytest.raises(TemplateLogicError, match="compilation units"):
        ast.attach_meta(text.handle, "key", extra)

    ast.attach_meta(ast.root, "key", extra)
    assert ast.root_node.meta == {"key": extra}
    # meta-nodes are not part of the structural walk
    assert extra not in [node.handle for node in ast.walk()]


@pytest.mark.parametrize("source, message", [
    ("{% foo %}", 'Unknown "foo" tag'),
    ("{% endif %}", 'Unexpected "endif" tag'),
    ("{% if x %}", 'expected "elif" or "else" or "endif"'),
    ("{{ x ", "Unclosed {{ tag"),
    ("{% block a %}{% endblock b %}", 'Expected endblock for block "a" (but "b" given)'),
    ("{% block a %}{% endblock %}{% block a %}{% endblock %}", 'The block "a" has already been defined at line 1'),
    ("{% extends 'a' %}{% extends 'b' %}", "Multiple extends tags are forbidden."),
    ("{% block a %}{% extends 'b' %}{% endblock %}", 'Cannot use "extends" inside a block.'),
    ("{% extends name %}", 'The "extends" tag only supports a literal template name.'),
    ("{% macro m() %}{% block a %}{% endblock %}{% endmacro %}", 'Cannot use "block" inside a macro.'),
])
def test_syntax_errors(source, message):
    with pytest.raises(TemplateSyntaxError) as exc:
        PyxmParser().parse(source, "broken.pyxm")

    assert message in exc.value.message
    assert exc.value.name == "broken.pyxm"


def test_builtin_keyword_cannot_be_overridden():
    class IfParser(StatementParser):
        tag = "if"

        def parse(self, parser, stream, token):
            return None

    with pytest.raises(ValueError):
        PyxmParser(statement_parsers=[IfParser()])


def test_custom_statement_parser():
    """Custom statements receive the stream after their keyword"""
    seen = []

    class PingParser(StatementParser):
        tag = "ping"

        def parse(self, parser, stream, token):
            seen.append((token.value, stream.next().value))
            return None

    ast = PyxmParser(statement_parsers=[PingParser()]).parse("{% ping 'pong' %}")

    assert seen == [("ping", "pong")]
    assert ast.root_node.children == []
