"""
PYXM Parser
===========

Parses .pyxm template source into an Abstract Syntax Tree (AST) that
visitors can annotate and the compiler turns into a template class.

PYXM Format:
    - {{ expression }}: Output a Python expression (autoescaped)
    - {% if cond %}...{% elif cond %}...{% else %}...{% endif %}
    - {% for item in items %}...{% endfor %}
    - {% block name %}...{% endblock %}: Overridable region
    - {% extends 'base.pyxm' %}: Inherit from a parent template
    - {% macro name(arg) %}...{% endmacro %}: Reusable fragment (_self.name())
    - {% embed 'card.pyxm' %}...{% endembed %}: Inline child of another template
    - {% raw %}...{% endraw %}: Verbatim output
    - {# comment #}
    - {%- ... -%}, {{- ... -}}, {#- ... -#}: Strip surrounding whitespace

Extensions add statements by registering StatementParser instances, keyed
by the statement keyword.

AST Storage:
    Nodes live in an arena (PyxmAST.nodes) and refer to each other by
    integer handle. Attaching nodes while a traversal is running never
    invalidates the handles other code is holding.
"""

from __future__ import annotations

import abc
import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from taggedpyxm.engine.errors import TemplateLogicError, TemplateSyntaxError
from taggedpyxm.engine.expressions import (
    Constant,
    ExprToken,
    ExprTokenType,
    ExpressionParser,
    TokenStream,
)


class TokenType(Enum):
    """Token types for PYXM lexer."""
    TEXT = auto()

    # Expression tokens
    EXPR_OPEN = auto()         # {{
    EXPR_CLOSE = auto()        # }}
    EXPR_CONTENT = auto()      # Python expression

    # Statement tokens
    STMT_OPEN = auto()         # {%
    STMT_CLOSE = auto()        # %}
    STMT_CONTENT = auto()      # if, for, etc.

    # Comment tokens
    COMMENT_OPEN = auto()      # {#
    COMMENT_CLOSE = auto()     # #}
    COMMENT_CONTENT = auto()

    EOF = auto()


@dataclass
class Token:
    """Represents a lexer token."""
    type: TokenType
    value: str
    line: int
    column: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


class NodeType(Enum):
    """AST node types."""
    MODULE = auto()
    EMBED = auto()
    TEXT = auto()
    OUTPUT = auto()
    IF = auto()
    ELIF = auto()
    ELSE = auto()
    FOR = auto()
    BLOCK = auto()
    MACRO = auto()
    COMMENT = auto()
    TAG_DECLARATION = auto()
    COLLECTED_TAGS = auto()


# Compilation units: each one becomes its own template class
UNIT_TYPES = frozenset({NodeType.MODULE, NodeType.EMBED})

# Nodes that structurally never have children
LEAF_TYPES = frozenset({
    NodeType.TEXT,
    NodeType.OUTPUT,
    NodeType.COMMENT,
    NodeType.TAG_DECLARATION,
})


@dataclass
class PyxmNode:
    """
    AST Node for PYXM templates.

    Children and meta-nodes are referenced by handle into the owning
    PyxmAST. Meta-nodes hang off compilation units under a key and are
    not part of the structural tree walked by visitors.
    """
    type: NodeType
    handle: int = -1
    name: Optional[str] = None             # block/macro name, template name of a unit
    parent_name: Optional[str] = None      # extends/embed target of a unit
    content: Optional[str] = None          # text, output expression
    condition: Optional[str] = None        # if/elif
    iterator: Optional[str] = None         # for loops (item in items)
    arguments: Tuple[str, ...] = ()        # macro parameters
    tags: Tuple[str, ...] = ()             # tag declarations
    children: List[int] = field(default_factory=list)
    meta: Dict[str, int] = field(default_factory=dict)
    line: int = 0

    @property
    def is_unit(self) -> bool:
        """Whether this node is a compilation unit."""
        return self.type in UNIT_TYPES

    def add_child(self, child: int) -> None:
        """Append a child handle."""
        if self.type in LEAF_TYPES:
            raise TemplateLogicError(f"{self.type.name} node cannot have children.")
        self.children.append(child)


@dataclass
class PyxmAST:
    """
    Complete AST for a PYXM template.

    Owns every node of the template (the arena). ``root`` is the handle
    of the MODULE node.
    """
    name: Optional[str] = None
    nodes: List[PyxmNode] = field(default_factory=list)
    root: int = 0

    def add(self, node: PyxmNode) -> int:
        """Store a node in the arena and return its handle."""
        node.handle = len(self.nodes)
        self.nodes.append(node)
        return node.handle

    def __getitem__(self, handle: int) -> PyxmNode:
        return self.nodes[handle]

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def root_node(self) -> PyxmNode:
        return self.nodes[self.root]

    def append_child(self, parent: int, child: int) -> None:
        """Attach ``child`` as the last structural child of ``parent``."""
        self.nodes[parent].add_child(child)

    def attach_meta(self, unit: int, key: str, child: int) -> None:
        """Attach a meta-node to a compilation unit under ``key``."""
        node = self.nodes[unit]
        if not node.is_unit:
            raise TemplateLogicError(
                f"Meta-nodes can only be attached to compilation units, not {node.type.name}."
            )
        node.meta[key] = child

    def children(self, handle: int) -> List[PyxmNode]:
        """Get child nodes of ``handle``."""
        return [self.nodes[child] for child in self.nodes[handle].children]

    def walk(self, handle: Optional[int] = None) -> Iterator[PyxmNode]:
        """Iterate the structural tree in pre-order."""
        start = self.root if handle is None else handle
        stack = [start]
        while stack:
            node = self.nodes[stack.pop()]
            yield node
            stack.extend(reversed(node.children))

    def find_by_type(self, node_type: NodeType, handle: Optional[int] = None) -> List[PyxmNode]:
        """Find all nodes of a given type below ``handle`` (root by default)."""
        return [node for node in self.walk(handle) if node.type == node_type]

    def units(self) -> List[PyxmNode]:
        """All compilation units, outermost first."""
        return [node for node in self.walk() if node.is_unit]

    def to_dict(self, handle: Optional[int] = None) -> Dict[str, Any]:
        """Convert a subtree to a dictionary representation."""
        node = self.nodes[self.root if handle is None else handle]
        data: Dict[str, Any] = {"type": node.type.name, "line": node.line}
        for key in ("name", "parent_name", "content", "condition", "iterator"):
            value = getattr(node, key)
            if value is not None:
                data[key] = value
        if node.arguments:
            data["arguments"] = list(node.arguments)
        if node.tags:
            data["tags"] = list(node.tags)
        if node.meta:
            data["meta"] = {key: self.to_dict(child) for key, child in node.meta.items()}
        data["children"] = [self.to_dict(child) for child in node.children]
        return data


class PyxmLexer:
    """
    Tokenizer for PYXM templates.

    Converts raw PYXM source into a stream of tokens for parsing. Handles
    whitespace control markers and removes the first newline after a
    statement tag when ``trim_blocks`` is enabled.
    """

    PATTERNS = {
        "tag_start": re.compile(r"\{[{%#]"),
        "raw_open": re.compile(r"\{%(-?)\s*raw\s*(-?)%\}"),
        "raw_close": re.compile(r"\{%(-?)\s*endraw\s*(-?)%\}"),
        "expr_close": re.compile(r"(-?)\}\}"),
        "stmt_close": re.compile(r"(-?)%\}"),
        "comment_close": re.compile(r"(-?)#\}"),
    }

    # opening delimiter -> (open, content, close token types, closing pattern)
    DELIMITERS = {
        "{{": (TokenType.EXPR_OPEN, TokenType.EXPR_CONTENT, TokenType.EXPR_CLOSE, "expr_close"),
        "{%": (TokenType.STMT_OPEN, TokenType.STMT_CONTENT, TokenType.STMT_CLOSE, "stmt_close"),
        "{#": (TokenType.COMMENT_OPEN, TokenType.COMMENT_CONTENT, TokenType.COMMENT_CLOSE, "comment_close"),
    }

    def __init__(
        self,
        source: str,
        name: Optional[str] = None,
        trim_blocks: bool = True,
    ) -> None:
        self.source = source
        self.name = name
        self.trim_blocks = trim_blocks
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Token] = []
        self._lstrip_next = False

    def tokenize(self) -> List[Token]:
        """Tokenize the entire source."""
        while self.pos < len(self.source):
            self._next_token()
        self.tokens.append(Token(TokenType.EOF, "", self.line, self.column))
        return self.tokens

    def _next_token(self) -> None:
        """Extract next token from source."""
        if self.PATTERNS["raw_open"].match(self.source, self.pos):
            self._tokenize_raw()
        elif self.PATTERNS["tag_start"].match(self.source, self.pos):
            self._tokenize_tag()
        else:
            self._tokenize_text()

    def _advance_to(self, pos: int) -> None:
        """Move to ``pos``, keeping line and column in sync."""
        segment = self.source[self.pos:pos]
        newlines = segment.count("\n")
        if newlines:
            self.line += newlines
            self.column = len(segment) - segment.rfind("\n")
        else:
            self.column += len(segment)
        self.pos = pos

    def _add_token(self, type: TokenType, value: str, line: int, column: int) -> None:
        self.tokens.append(Token(type, value, line, column))

    def _rstrip_last_text(self) -> None:
        """Apply a leading ``-`` marker to the preceding text."""
        if self.tokens and self.tokens[-1].type == TokenType.TEXT:
            stripped = self.tokens[-1].value.rstrip()
            if stripped:
                self.tokens[-1].value = stripped
            else:
                self.tokens.pop()

    def _skip_newline(self) -> None:
        if self.source.startswith("\r\n", self.pos):
            self._advance_to(self.pos + 2)
        elif self.source.startswith("\n", self.pos):
            self._advance_to(self.pos + 1)

    def _tokenize_tag(self) -> None:
        """Tokenize {{ ... }}, {% ... %} and {# ... #}."""
        line, column = self.line, self.column
        opening = self.source[self.pos:self.pos + 2]
        open_type, content_type, close_type, close_pattern = self.DELIMITERS[opening]

        start = self.pos + 2
        if self.source.startswith("-", start):
            start += 1
            self._rstrip_last_text()
        self._lstrip_next = False

        close = self.PATTERNS[close_pattern].search(self.source, start)
        if close is None:
            raise TemplateSyntaxError(
                f"Unclosed {opening} tag", line, self.name,
            )

        content = self.source[start:close.start()]
        self._add_token(open_type, self.source[self.pos:start], line, column)
        self._advance_to(start)
        content_line, content_column = self.line, self.column
        self._advance_to(close.start())
        if content_type == TokenType.COMMENT_CONTENT:
            self._add_token(content_type, content, content_line, content_column)
        else:
            self._add_token(content_type, content.strip(), content_line, content_column)
        self._add_token(close_type, close.group(), self.line, self.column)
        self._advance_to(close.end())

        if close.group(1):
            self._lstrip_next = True
        elif close_type == TokenType.STMT_CLOSE and self.trim_blocks:
            self._skip_newline()

    def _tokenize_raw(self) -> None:
        """Tokenize {% raw %}...{% endraw %} into a single verbatim text token."""
        line, column = self.line, self.column
        opening = self.PATTERNS["raw_open"].match(self.source, self.pos)
        if opening.group(1):
            self._rstrip_last_text()
        self._advance_to(opening.end())
        if self.trim_blocks and not opening.group(2):
            self._skip_newline()

        closing = self.PATTERNS["raw_close"].search(self.source, self.pos)
        if closing is None:
            raise TemplateSyntaxError('Unexpected end of template, "endraw" expected', line, self.name)

        content = self.source[self.pos:closing.start()]
        if opening.group(2):
            content = content.lstrip()
        if closing.group(1):
            content = content.rstrip()
        if content:
            self._add_token(TokenType.TEXT, content, line, column)
        self._advance_to(closing.end())

        self._lstrip_next = bool(closing.group(2))
        if not self._lstrip_next and self.trim_blocks:
            self._skip_newline()

    def _tokenize_text(self) -> None:
        """Tokenize plain text content."""
        line, column = self.line, self.column
        match = self.PATTERNS["tag_start"].search(self.source, self.pos)
        end = match.start() if match else len(self.source)

        text = self.source[self.pos:end]
        self._advance_to(end)
        if self._lstrip_next:
            text = text.lstrip()
            self._lstrip_next = False
        if text:
            self._add_token(TokenType.TEXT, text, line, column)


class StatementParser(abc.ABC):
    """
    Parser for one custom ``{% keyword ... %}`` statement.

    Subclasses receive the statement as a TokenStream positioned right
    after the keyword token, and must consume everything up to and
    including the BLOCK_END token.
    """

    tag: str = ""

    @abc.abstractmethod
    def parse(
        self,
        parser: "PyxmParser",
        stream: TokenStream,
        token: ExprToken,
    ) -> Optional[int]:
        """
        Parse the statement.

        Args:
            parser: The running parser (for its AST and scope state)
            stream: Statement tokens after the keyword
            token: The keyword token

        Returns:
            Handle of the produced node, or None if it produces no node
        """


class PyxmParser:
    """
    Parser for PYXM templates.

    Converts token stream into AST for further processing.

    Example:
        parser = PyxmParser(statement_parsers=[TagSyntaxParser()])
        ast = parser.parse(source, name="page.pyxm")
        print(ast.root_node)
    """

    BUILTIN_STATEMENTS = frozenset({
        "if", "elif", "else", "endif",
        "for", "endfor",
        "block", "endblock",
        "extends",
        "macro", "endmacro",
        "embed", "endembed",
        "raw", "endraw",
    })

    STATEMENT_PATTERN = re.compile(r"^([a-zA-Z_][a-zA-Z0-9_]*)(.*)$", re.S)
    NAME_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
    MACRO_PATTERN = re.compile(r"^([a-zA-Z_][a-zA-Z0-9_]*)\s*\((.*)\)$", re.S)

    def __init__(
        self,
        statement_parsers: Optional[Iterable[StatementParser]] = None,
        trim_blocks: bool = True,
    ) -> None:
        self.statement_parsers: Dict[str, StatementParser] = {}
        self.trim_blocks = trim_blocks
        self.tokens: List[Token] = []
        self.pos = 0
        self.name: Optional[str] = None
        self.ast: Optional[PyxmAST] = None
        self._block_stack: List[str] = []
        self._macro_depth = 0
        self._unit_stack: List[int] = []
        self._declarations: Dict[Tuple[int, str, str], int] = {}

        for statement_parser in statement_parsers or ():
            self.add_statement_parser(statement_parser)

    def add_statement_parser(self, statement_parser: StatementParser) -> None:
        """Register a parser for a custom statement keyword."""
        keyword = statement_parser.tag
        if not keyword or keyword in self.BUILTIN_STATEMENTS:
            raise ValueError(f"Cannot register a statement parser for {keyword!r}")
        self.statement_parsers[keyword] = statement_parser

    def parse(self, source: str, name: Optional[str] = None) -> PyxmAST:
        """
        Parse PYXM source into AST.

        Args:
            source: PYXM template source code
            name: Template name used in error messages

        Returns:
            PyxmAST with parsed template

        Raises:
            TemplateSyntaxError: If the source is malformed
        """
        lexer = PyxmLexer(source, name=name, trim_blocks=self.trim_blocks)
        self.tokens = lexer.tokenize()
        self.pos = 0
        self.name = name
        self._block_stack = []
        self._macro_depth = 0
        self._declarations = {}

        self.ast = PyxmAST(name=name)
        root = self.ast.add(PyxmNode(type=NodeType.MODULE, name=name, line=1))
        self.ast.root = root
        self._unit_stack = [root]

        while not self._is_at_end():
            child = self._parse_node()
            if child is not None:
                self.ast.append_child(root, child)

        return self.ast

    # Scope state, queried by statement parsers

    def peek_block_stack(self) -> Optional[str]:
        """Name of the innermost block being parsed, if any."""
        return self._block_stack[-1] if self._block_stack else None

    def is_main_scope(self) -> bool:
        """False while parsing a macro body."""
        return self._macro_depth == 0

    @property
    def current_unit(self) -> PyxmNode:
        """The compilation unit currently being parsed."""
        return self.ast[self._unit_stack[-1]]

    def syntax_error(self, message: str, line: int) -> TemplateSyntaxError:
        """Build a syntax error bound to the current template."""
        return TemplateSyntaxError(message, line, self.name)

    # Token cursor

    def _current(self) -> Token:
        """Get current token."""
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return Token(TokenType.EOF, "", 0, 0)

    def _peek(self, offset: int = 1) -> Token:
        """Peek at token at offset."""
        pos = self.pos + offset
        if pos < len(self.tokens):
            return self.tokens[pos]
        return Token(TokenType.EOF, "", 0, 0)

    def _advance(self) -> Token:
        """Advance to next token and return current."""
        token = self._current()
        self.pos += 1
        return token

    def _is_at_end(self) -> bool:
        """Check if at end of tokens."""
        return self._current().type == TokenType.EOF

    def _expect(self, type: TokenType) -> Token:
        """Expect specific token type."""
        token = self._current()
        if token.type != type:
            raise self.syntax_error(f"Expected {type.name}, got {token.type.name}", token.line)
        return self._advance()

    def _new(self, type: NodeType, **attributes: Any) -> int:
        return self.ast.add(PyxmNode(type=type, **attributes))

    # Nodes

    def _parse_node(self) -> Optional[int]:
        """Parse a single node."""
        token = self._current()

        if token.type == TokenType.TEXT:
            return self._parse_text()
        elif token.type == TokenType.EXPR_OPEN:
            return self._parse_output()
        elif token.type == TokenType.STMT_OPEN:
            return self._parse_statement()
        elif token.type == TokenType.COMMENT_OPEN:
            return self._parse_comment()
        else:
            self._advance()
            return None

    def _parse_text(self) -> int:
        token = self._advance()
        return self._new(NodeType.TEXT, content=token.value, line=token.line)

    def _parse_output(self) -> int:
        """Parse {{ expression }}."""
        self._expect(TokenType.EXPR_OPEN)
        content_token = self._expect(TokenType.EXPR_CONTENT)
        self._expect(TokenType.EXPR_CLOSE)

        if not content_token.value:
            raise self.syntax_error("Empty expression", content_token.line)
        return self._new(NodeType.OUTPUT, content=content_token.value, line=content_token.line)

    def _parse_comment(self) -> int:
        """Parse {# comment #}."""
        self._expect(TokenType.COMMENT_OPEN)
        content_token = self._expect(TokenType.COMMENT_CONTENT)
        self._expect(TokenType.COMMENT_CLOSE)
        return self._new(NodeType.COMMENT, content=content_token.value, line=content_token.line)

    def _parse_statement(self) -> Optional[int]:
        """Parse {% statement %}."""
        self._expect(TokenType.STMT_OPEN)
        content_token = self._expect(TokenType.STMT_CONTENT)
        self._expect(TokenType.STMT_CLOSE)

        content = content_token.value
        line = content_token.line
        match = self.STATEMENT_PATTERN.match(content)
        if not match:
            raise self.syntax_error(f"Malformed statement {content!r}", line)

        keyword, rest = match.group(1), match.group(2).strip()

        if keyword == "if":
            return self._parse_if_block(NodeType.IF, rest, line)
        elif keyword == "for":
            return self._parse_for_block(rest, line)
        elif keyword == "block":
            return self._parse_block_block(rest, line)
        elif keyword == "extends":
            return self._parse_extends(content, line)
        elif keyword == "macro":
            return self._parse_macro_block(rest, line)
        elif keyword == "embed":
            return self._parse_embed_block(content, line)
        elif keyword in self.statement_parsers:
            stream = TokenStream.from_source(content, line, self.name)
            token = stream.expect(ExprTokenType.NAME, keyword)
            handle = self.statement_parsers[keyword].parse(self, stream, token)
            if not stream.is_eos():
                stream.expect(ExprTokenType.BLOCK_END)
            return handle
        elif keyword in self.BUILTIN_STATEMENTS:
            raise self.syntax_error(f'Unexpected "{keyword}" tag', line)
        else:
            raise self.syntax_error(f'Unknown "{keyword}" tag', line)

    def _statement_keyword(self) -> Optional[str]:
        """Keyword of the statement at the cursor, if the cursor is on one."""
        if self._current().type != TokenType.STMT_OPEN:
            return None
        content = self._peek()
        if content.type != TokenType.STMT_CONTENT:
            return None
        match = self.STATEMENT_PATTERN.match(content.value)
        return match.group(1) if match else None

    def _parse_children_until(self, parent: int, end_tags: Sequence[str]) -> None:
        """Parse children until one of the end tags is reached."""
        start_line = self.ast[parent].line
        while not self._is_at_end():
            if self._statement_keyword() in end_tags:
                return
            child = self._parse_node()
            if child is not None:
                self.ast.append_child(parent, child)

        expected = " or ".join(f'"{tag}"' for tag in end_tags)
        raise self.syntax_error(
            f"Unexpected end of template, expected {expected} (opened at line {start_line})",
            self._current().line,
        )

    def _consume_end_tag(self, name: str) -> str:
        """Consume end tag and return its arguments."""
        self._expect(TokenType.STMT_OPEN)
        content = self._expect(TokenType.STMT_CONTENT)
        self._expect(TokenType.STMT_CLOSE)

        match = self.STATEMENT_PATTERN.match(content.value)
        if not match or match.group(1) != name:
            raise self.syntax_error(f'Expected "{name}", got {content.value!r}', content.line)
        return match.group(2).strip()

    def _parse_if_block(self, type: NodeType, condition: str, line: int) -> int:
        """Parse {% if %}...{% endif %}; elif branches nest as ELIF children."""
        if not condition:
            raise self.syntax_error(f'The "{type.name.lower()}" tag requires a condition', line)
        node = self._new(type, condition=condition, line=line)

        self._parse_children_until(node, ("elif", "else", "endif"))
        keyword = self._statement_keyword()

        if keyword == "elif":
            elif_line = self._peek().line
            elif_condition = self._consume_end_tag("elif")
            self.ast.append_child(node, self._parse_if_block(NodeType.ELIF, elif_condition, elif_line))
        elif keyword == "else":
            else_line = self._peek().line
            self._consume_end_tag("else")
            else_node = self._new(NodeType.ELSE, line=else_line)
            self._parse_children_until(else_node, ("endif",))
            self._consume_end_tag("endif")
            self.ast.append_child(node, else_node)
        else:
            self._consume_end_tag("endif")

        return node

    def _parse_for_block(self, iterator: str, line: int) -> int:
        """Parse {% for %}...{% endfor %} block."""
        if " in " not in f" {iterator} ":
            raise self.syntax_error('The "for" tag expects "<target> in <iterable>"', line)
        node = self._new(NodeType.FOR, iterator=iterator, line=line)

        self._parse_children_until(node, ("endfor",))
        self._consume_end_tag("endfor")

        return node

    def _parse_block_block(self, name: str, line: int) -> int:
        """Parse {% block %}...{% endblock %} block."""
        if not self.NAME_PATTERN.match(name):
            raise self.syntax_error(f"Invalid block name {name!r}", line)
        if not self.is_main_scope():
            raise self.syntax_error('Cannot use "block" inside a macro.', line)

        self._declare("block", name, line)
        node = self._new(NodeType.BLOCK, name=name, line=line)

        self._block_stack.append(name)
        self._parse_children_until(node, ("endblock",))
        self._block_stack.pop()

        closing = self._consume_end_tag("endblock")
        if closing and closing != name:
            raise self.syntax_error(f'Expected endblock for block "{name}" (but "{closing}" given)', line)

        return node

    def _declare(self, kind: str, name: str, line: int) -> None:
        """Register a block or macro name in the current unit."""
        key = (self._unit_stack[-1], kind, name)
        if key in self._declarations:
            raise self.syntax_error(
                f'The {kind} "{name}" has already been defined at line {self._declarations[key]}',
                line,
            )
        self._declarations[key] = line

    def _parse_literal_target(self, content: str, line: int, keyword: str) -> str:
        """Parse ``keyword 'name'`` and return the literal template name."""
        stream = TokenStream.from_source(content, line, self.name)
        stream.expect(ExprTokenType.NAME, keyword)
        target = ExpressionParser(stream).parse_expression()
        stream.expect(ExprTokenType.BLOCK_END)

        if not isinstance(target, Constant) or not isinstance(target.value, str):
            raise self.syntax_error(f'The "{keyword}" tag only supports a literal template name.', line)
        return target.value

    def _parse_extends(self, content: str, line: int) -> None:
        """Parse {% extends 'parent' %}; sets the parent of the current unit."""
        if self.peek_block_stack():
            raise self.syntax_error('Cannot use "extends" inside a block.', line)
        if not self.is_main_scope():
            raise self.syntax_error('Cannot use "extends" inside a macro.', line)

        unit = self.current_unit
        if unit.type == NodeType.EMBED or unit.parent_name is not None:
            raise self.syntax_error("Multiple extends tags are forbidden.", line)

        unit.parent_name = self._parse_literal_target(content, line, "extends")
        return None

    def _parse_macro_block(self, signature: str, line: int) -> int:
        """Parse {% macro name(args) %}...{% endmacro %} block."""
        match = self.MACRO_PATTERN.match(signature)
        if not match:
            raise self.syntax_error(f"Invalid macro signature {signature!r}", line)
        if not self.is_main_scope():
            raise self.syntax_error("Cannot define a macro inside a macro.", line)
        if self.peek_block_stack():
            raise self.syntax_error("Cannot define a macro inside a block.", line)

        name = match.group(1)
        arguments = tuple(arg.strip() for arg in match.group(2).split(",") if arg.strip())
        for argument in arguments:
            if not self.NAME_PATTERN.match(argument):
                raise self.syntax_error(f"Invalid macro argument {argument!r}", line)

        self._declare("macro", name, line)
        node = self._new(NodeType.MACRO, name=name, arguments=arguments, line=line)

        self._macro_depth += 1
        self._parse_children_until(node, ("endmacro",))
        self._macro_depth -= 1
        self._consume_end_tag("endmacro")

        return node

    def _parse_embed_block(self, content: str, line: int) -> int:
        """Parse {% embed 'name' %}...{% endembed %} as a nested compilation unit."""
        parent_name = self._parse_literal_target(content, line, "embed")
        node = self._new(NodeType.EMBED, name=f"{self.name or 'template'}#embed{line}",
                         parent_name=parent_name, line=line)

        # the embed body is parsed as a fresh top level
        saved = (self._block_stack, self._macro_depth)
        self._block_stack, self._macro_depth = [], 0
        self._unit_stack.append(node)

        self._parse_children_until(node, ("endembed",))

        self._unit_stack.pop()
        self._block_stack, self._macro_depth = saved
        self._consume_end_tag("endembed")

        return node
