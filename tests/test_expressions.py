"""
Tests for statement expression tokenizing and parsing
"""

import pytest

from taggedpyxm.engine.errors import TemplateSyntaxError
from taggedpyxm.engine.expressions import (
    BinaryOp,
    Call,
    Constant,
    ExpressionLexer,
    ExpressionParser,
    ExprToken,
    ExprTokenType,
    GetAttr,
    Name,
    Sequence,
    TokenStream,
    UnaryOp,
    Unpack,
)


def parse(source):
    return ExpressionParser(TokenStream.from_source(source)).parse_expression()


def test_lexer_decodes_literals():
    """Strings and numbers are decoded, BLOCK_END is appended"""
    tokens = ExpressionLexer("'a\\'b' 12 1.5 name").tokenize()

    assert [(t.type, t.value) for t in tokens] == [
        (ExprTokenType.STRING, "a'b"),
        (ExprTokenType.NUMBER, 12),
        (ExprTokenType.NUMBER, 1.5),
        (ExprTokenType.NAME, "name"),
        (ExprTokenType.BLOCK_END, None),
    ]


def test_lexer_tracks_lines():
    tokens = ExpressionLexer("'a',\n'b'", line=4).tokenize()

    assert [t.line for t in tokens] == [4, 4, 5, 5]


def test_lexer_rejects_unclosed_string():
    with pytest.raises(TemplateSyntaxError, match="Unclosed string literal"):
        ExpressionLexer("'abc").tokenize()


def test_lexer_rejects_unknown_character():
    with pytest.raises(TemplateSyntaxError, match="Unexpected character"):
        ExpressionLexer("a $ b").tokenize()


def test_stream_expect_reports_found_and_expected():
    stream = TokenStream.from_source("name", name="page.pyxm")

    with pytest.raises(TemplateSyntaxError) as exc:
        stream.expect(ExprTokenType.PUNCTUATION, "[")

    assert exc.value.message == "Unexpected token NAME 'name' (expected PUNCTUATION \"[\")"
    assert exc.value.name == "page.pyxm"


def test_stream_past_end_raises():
    stream = TokenStream.from_source("")
    stream.expect(ExprTokenType.BLOCK_END)

    assert stream.is_eos()
    with pytest.raises(TemplateSyntaxError, match="Unexpected end of statement"):
        stream.next()


def test_stream_inject_reads_injected_tokens_first():
    stream = TokenStream.from_source("'a'")
    stream.inject([ExprToken(ExprTokenType.PUNCTUATION, "[")])

    assert stream.next().test(ExprTokenType.PUNCTUATION, "[")
    assert stream.next().test(ExprTokenType.STRING, "a")
    assert stream.test(ExprTokenType.BLOCK_END)


def test_parse_constants_and_names():
    assert parse("'x'") == Constant("x", 1)
    assert parse("true") == Constant(True, 1)
    assert parse("None") == Constant(None, 1)
    assert parse("user") == Name("user", 1)


def test_parse_precedence():
    expr = parse("1 + 2 * 3")

    assert isinstance(expr, BinaryOp)
    assert expr.op == "+"
    assert isinstance(expr.right, BinaryOp)
    assert expr.right.op == "*"


def test_parse_postfix_chain():
    expr = parse("user.name(1)")

    assert isinstance(expr, Call)
    assert isinstance(expr.func, GetAttr)
    assert expr.func.attr == "name"
    assert expr.args == (Constant(1, 1),)


def test_parse_not_in():
    expr = parse("a not in b")

    assert isinstance(expr, BinaryOp)
    assert expr.op == "not in"


def test_parse_unary_minus():
    expr = parse("-5")

    assert isinstance(expr, UnaryOp)
    assert expr.operand == Constant(5, 1)


def test_sequence_with_trailing_comma():
    stream = TokenStream.from_source("['a', 'b',]")
    sequence = ExpressionParser(stream).parse_sequence_expression()

    assert sequence == Sequence((Constant("a", 1), Constant("b", 1)), 1)
    assert stream.test(ExprTokenType.BLOCK_END)


def test_sequence_unpack_item():
    stream = TokenStream.from_source("['a', *rest]")
    sequence = ExpressionParser(stream).parse_sequence_expression()

    assert isinstance(sequence.items[1], Unpack)
    assert sequence.items[1].value == Name("rest", 1)


@pytest.mark.parametrize("source, message", [
    ("'a'", "A sequence must start with an opening bracket"),
    ("['a' 'b']", "Sequence items must be separated by a comma"),
    ("['a'", "Sequence items must be separated by a comma"),
])
def test_sequence_errors(source, message):
    parser = ExpressionParser(TokenStream.from_source(source))

    with pytest.raises(TemplateSyntaxError, match=message):
        parser.parse_sequence_expression()
