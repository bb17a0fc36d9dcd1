"""
PYXM Statement Expressions
==========================

Tokenizer and parser for the arguments of ``{% ... %}`` statements.

Statement parsers that need structured arguments (rather than the raw
Python source the built-in ``if``/``for`` statements keep) receive a
TokenStream over the statement content. The stream always ends with a
synthetic BLOCK_END token marking the end of the construct, and supports
injecting tokens at the current position so that a parser can rewrite the
input before handing it to the ExpressionParser.

Grammar (lowest to highest precedence):
    or, and, not, comparison (== != < > <= >= in, not in),
    additive (+ - ~), multiplicative (* / // %), unary (- +), power (**),
    postfix (.attr, [key], (args)), primary (literal, name, (...), [...])
"""

from __future__ import annotations

import ast
import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Iterable, List, Optional, Pattern, Tuple, Union

from taggedpyxm.engine.errors import TemplateSyntaxError


class ExprTokenType(Enum):
    """Token types inside a statement."""
    NAME = auto()
    NUMBER = auto()
    STRING = auto()
    OPERATOR = auto()
    PUNCTUATION = auto()
    BLOCK_END = auto()


@dataclass
class ExprToken:
    """A single statement token. ``value`` is decoded for strings and numbers."""
    type: ExprTokenType
    value: Any
    line: int = 0

    def test(self, type: ExprTokenType, value: Any = None) -> bool:
        """Check token type and, optionally, value (or one of several values)."""
        if self.type != type:
            return False
        if value is None:
            return True
        if isinstance(value, (tuple, list, set, frozenset)):
            return self.value in value
        return self.value == value

    def __repr__(self) -> str:
        return f"ExprToken({self.type.name}, {self.value!r}, line={self.line})"


class ExpressionLexer:
    """
    Tokenizer for statement content.

    Example:
        tokens = ExpressionLexer("'a', 'b'", line=3).tokenize()
    """

    PATTERNS: List[Tuple[Optional[ExprTokenType], Pattern[str]]] = [
        (None, re.compile(r"\s+")),
        (ExprTokenType.NUMBER, re.compile(r"\d+\.\d+|\d+")),
        (ExprTokenType.STRING, re.compile(r"\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*'", re.S)),
        (ExprTokenType.NAME, re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")),
        (ExprTokenType.OPERATOR, re.compile(r"\*\*|//|==|!=|<=|>=|[+\-*/%~<>|]")),
        (ExprTokenType.PUNCTUATION, re.compile(r"[()\[\]{}.,:?=]")),
    ]

    def __init__(self, source: str, line: int = 1, name: Optional[str] = None) -> None:
        self.source = source
        self.line = line
        self.name = name
        self.pos = 0

    def tokenize(self) -> List[ExprToken]:
        """Tokenize the whole content and append the BLOCK_END token."""
        tokens: List[ExprToken] = []

        while self.pos < len(self.source):
            tokens.extend(self._next_token())

        tokens.append(ExprToken(ExprTokenType.BLOCK_END, None, self.line))
        return tokens

    def _next_token(self) -> List[ExprToken]:
        for token_type, pattern in self.PATTERNS:
            match = pattern.match(self.source, self.pos)
            if not match:
                continue

            text = match.group()
            line = self.line
            self.pos = match.end()
            self.line += text.count("\n")

            if token_type is None:
                return []
            return [ExprToken(token_type, self._decode(token_type, text), line)]

        char = self.source[self.pos]
        if char in "'\"":
            raise TemplateSyntaxError("Unclosed string literal", self.line, self.name)
        raise TemplateSyntaxError(f"Unexpected character {char!r}", self.line, self.name)

    @staticmethod
    def _decode(token_type: ExprTokenType, text: str) -> Any:
        if token_type == ExprTokenType.NUMBER:
            return float(text) if "." in text else int(text)
        if token_type == ExprTokenType.STRING:
            return ast.literal_eval(text)
        return text


class TokenStream:
    """
    Cursor over statement tokens with lookahead and token injection.

    Example:
        stream = TokenStream(tokens, name="page.pyxm")
        stream.expect(ExprTokenType.NAME, "tag")
        stream.inject([...])
    """

    def __init__(self, tokens: Iterable[ExprToken], name: Optional[str] = None) -> None:
        self._tokens: List[ExprToken] = list(tokens)
        self._pos = 0
        self.name = name

    @classmethod
    def from_source(
        cls,
        source: str,
        line: int = 1,
        name: Optional[str] = None,
    ) -> "TokenStream":
        """Tokenize statement content into a new stream."""
        return cls(ExpressionLexer(source, line, name).tokenize(), name=name)

    @property
    def current(self) -> ExprToken:
        """Token under the cursor."""
        if self._pos >= len(self._tokens):
            raise TemplateSyntaxError("Unexpected end of statement", self._last_line(), self.name)
        return self._tokens[self._pos]

    def _last_line(self) -> int:
        return self._tokens[-1].line if self._tokens else 0

    def look(self, offset: int = 1) -> ExprToken:
        """Peek at the token ``offset`` positions ahead."""
        pos = self._pos + offset
        if pos >= len(self._tokens):
            return self._tokens[-1]
        return self._tokens[pos]

    def next(self) -> ExprToken:
        """Return the current token and advance."""
        token = self.current
        self._pos += 1
        return token

    def next_if(self, type: ExprTokenType, value: Any = None) -> Optional[ExprToken]:
        """Advance only if the current token matches."""
        if self.current.test(type, value):
            return self.next()
        return None

    def test(self, type: ExprTokenType, value: Any = None) -> bool:
        return self.current.test(type, value)

    def expect(
        self,
        type: ExprTokenType,
        value: Any = None,
        message: Optional[str] = None,
    ) -> ExprToken:
        """Consume a token of the given type/value or raise TemplateSyntaxError."""
        token = self.current
        if not token.test(type, value):
            expected = type.name if value is None else f'{type.name} "{value}"'
            found = token.type.name if token.value is None else f"{token.type.name} {token.value!r}"
            prefix = f"{message}. " if message else ""
            raise TemplateSyntaxError(
                f"{prefix}Unexpected token {found} (expected {expected})",
                token.line,
                self.name,
            )
        return self.next()

    def inject(self, tokens: Iterable[ExprToken]) -> None:
        """Insert tokens at the cursor; they are read before the current token."""
        self._tokens[self._pos:self._pos] = list(tokens)

    def is_eos(self) -> bool:
        """True once the BLOCK_END token has been consumed."""
        return self._pos >= len(self._tokens)


class Expression:
    """Base class of statement expression nodes."""
    line: int = 0


@dataclass(frozen=True)
class Constant(Expression):
    value: Any
    line: int = 0


@dataclass(frozen=True)
class Name(Expression):
    name: str
    line: int = 0


@dataclass(frozen=True)
class UnaryOp(Expression):
    op: str
    operand: Expression
    line: int = 0


@dataclass(frozen=True)
class BinaryOp(Expression):
    op: str
    left: Expression
    right: Expression
    line: int = 0


@dataclass(frozen=True)
class GetAttr(Expression):
    obj: Expression
    attr: str
    line: int = 0


@dataclass(frozen=True)
class GetItem(Expression):
    obj: Expression
    key: Expression
    line: int = 0


@dataclass(frozen=True)
class Call(Expression):
    func: Expression
    args: Tuple[Expression, ...] = ()
    line: int = 0


@dataclass(frozen=True)
class Unpack:
    """``*value`` inside a sequence literal. A sequence item, not an expression."""
    value: Expression
    line: int = 0


SequenceItem = Union[Expression, Unpack]


@dataclass(frozen=True)
class Sequence(Expression):
    items: Tuple[SequenceItem, ...] = ()
    line: int = 0


class ExpressionParser:
    """
    Recursive descent parser over a TokenStream.

    Example:
        parser = ExpressionParser(TokenStream.from_source("['a', 'b']"))
        sequence = parser.parse_sequence_expression()
    """

    COMPARISON_OPERATORS = ("==", "!=", "<", ">", "<=", ">=")
    ADDITIVE_OPERATORS = ("+", "-", "~")
    MULTIPLICATIVE_OPERATORS = ("*", "/", "//", "%")
    CONSTANT_NAMES = {
        "true": True, "True": True,
        "false": False, "False": False,
        "none": None, "None": None,
    }

    def __init__(self, stream: TokenStream) -> None:
        self.stream = stream

    def parse_expression(self) -> Expression:
        """Parse a single expression."""
        return self._parse_or()

    def parse_sequence_expression(self) -> Sequence:
        """Parse a bracketed sequence literal ``[item, ...]``."""
        stream = self.stream
        opening = stream.expect(
            ExprTokenType.PUNCTUATION, "[", "A sequence must start with an opening bracket"
        )

        items: List[SequenceItem] = []
        while not stream.test(ExprTokenType.PUNCTUATION, "]"):
            if items:
                stream.expect(
                    ExprTokenType.PUNCTUATION, ",", "Sequence items must be separated by a comma"
                )
                # trailing comma
                if stream.test(ExprTokenType.PUNCTUATION, "]"):
                    break
            items.append(self._parse_sequence_item())

        stream.expect(
            ExprTokenType.PUNCTUATION, "]", "An opened sequence is not properly closed"
        )
        return Sequence(tuple(items), opening.line)

    def _parse_sequence_item(self) -> SequenceItem:
        if self.stream.test(ExprTokenType.OPERATOR, "*"):
            token = self.stream.next()
            return Unpack(self.parse_expression(), token.line)
        return self.parse_expression()

    def _parse_or(self) -> Expression:
        left = self._parse_and()
        while self.stream.test(ExprTokenType.NAME, "or"):
            token = self.stream.next()
            left = BinaryOp("or", left, self._parse_and(), token.line)
        return left

    def _parse_and(self) -> Expression:
        left = self._parse_not()
        while self.stream.test(ExprTokenType.NAME, "and"):
            token = self.stream.next()
            left = BinaryOp("and", left, self._parse_not(), token.line)
        return left

    def _parse_not(self) -> Expression:
        if self.stream.test(ExprTokenType.NAME, "not"):
            token = self.stream.next()
            return UnaryOp("not", self._parse_not(), token.line)
        return self._parse_comparison()

    def _parse_comparison(self) -> Expression:
        stream = self.stream
        left = self._parse_additive()

        while True:
            token = stream.current
            if token.test(ExprTokenType.OPERATOR, self.COMPARISON_OPERATORS):
                op = stream.next().value
            elif token.test(ExprTokenType.NAME, "in"):
                stream.next()
                op = "in"
            elif token.test(ExprTokenType.NAME, "not") and stream.look().test(ExprTokenType.NAME, "in"):
                stream.next()
                stream.next()
                op = "not in"
            else:
                return left
            left = BinaryOp(op, left, self._parse_additive(), token.line)

    def _parse_additive(self) -> Expression:
        left = self._parse_multiplicative()
        while self.stream.test(ExprTokenType.OPERATOR, self.ADDITIVE_OPERATORS):
            token = self.stream.next()
            left = BinaryOp(token.value, left, self._parse_multiplicative(), token.line)
        return left

    def _parse_multiplicative(self) -> Expression:
        left = self._parse_unary()
        while self.stream.test(ExprTokenType.OPERATOR, self.MULTIPLICATIVE_OPERATORS):
            token = self.stream.next()
            left = BinaryOp(token.value, left, self._parse_unary(), token.line)
        return left

    def _parse_unary(self) -> Expression:
        if self.stream.test(ExprTokenType.OPERATOR, ("-", "+")):
            token = self.stream.next()
            return UnaryOp(token.value, self._parse_unary(), token.line)
        return self._parse_power()

    def _parse_power(self) -> Expression:
        left = self._parse_postfix()
        if self.stream.test(ExprTokenType.OPERATOR, "**"):
            token = self.stream.next()
            return BinaryOp("**", left, self._parse_unary(), token.line)
        return left

    def _parse_postfix(self) -> Expression:
        stream = self.stream
        node = self._parse_primary()

        while True:
            token = stream.current
            if token.test(ExprTokenType.PUNCTUATION, "."):
                stream.next()
                attr = stream.expect(ExprTokenType.NAME, message="Expected attribute name after '.'")
                node = GetAttr(node, attr.value, token.line)
            elif token.test(ExprTokenType.PUNCTUATION, "["):
                stream.next()
                key = self.parse_expression()
                stream.expect(ExprTokenType.PUNCTUATION, "]")
                node = GetItem(node, key, token.line)
            elif token.test(ExprTokenType.PUNCTUATION, "("):
                stream.next()
                node = Call(node, self._parse_arguments(), token.line)
            else:
                return node

    def _parse_arguments(self) -> Tuple[Expression, ...]:
        args: List[Expression] = []
        while not self.stream.test(ExprTokenType.PUNCTUATION, ")"):
            if args:
                self.stream.expect(ExprTokenType.PUNCTUATION, ",", "Arguments must be separated by a comma")
            args.append(self.parse_expression())
        self.stream.expect(ExprTokenType.PUNCTUATION, ")")
        return tuple(args)

    def _parse_primary(self) -> Expression:
        stream = self.stream
        token = stream.current

        if token.type == ExprTokenType.NAME:
            stream.next()
            if token.value in self.CONSTANT_NAMES:
                return Constant(self.CONSTANT_NAMES[token.value], token.line)
            return Name(token.value, token.line)

        if token.type in (ExprTokenType.NUMBER, ExprTokenType.STRING):
            stream.next()
            return Constant(token.value, token.line)

        if token.test(ExprTokenType.PUNCTUATION, "("):
            stream.next()
            expr = self.parse_expression()
            stream.expect(ExprTokenType.PUNCTUATION, ")", "An opened parenthesis is not properly closed")
            return expr

        if token.test(ExprTokenType.PUNCTUATION, "["):
            return self.parse_sequence_expression()

        found = "end of statement" if token.type == ExprTokenType.BLOCK_END else repr(token.value)
        raise TemplateSyntaxError(f"Unexpected token {found}", token.line, stream.name)
