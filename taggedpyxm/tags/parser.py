"""
Context Tag Statement
=====================

Parses the ``tag`` statement:

    {% tag 'some-context-tag', 'some-other-context-tag' %}
    {% tag ['content'] %}

Tags describe the context a template needs and are known at compile time,
so only literal values are accepted. The statement is allowed at the top
level of a template only (like ``extends``) and has no end tag.
"""

from __future__ import annotations

from typing import List, Optional

from taggedpyxm.engine.expressions import (
    Constant,
    Expression,
    ExpressionParser,
    ExprToken,
    ExprTokenType,
    Sequence,
    TokenStream,
)
from taggedpyxm.engine.pyxm_parser import PyxmParser, StatementParser
from taggedpyxm.tags.nodes import tag_declaration


class TagSyntaxParser(StatementParser):
    """
    StatementParser for ``{% tag ... %}``.

    The brackets around the tag list may be omitted. In that case the
    statement tokens are wrapped in synthetic ``[`` / ``]`` tokens and fed
    back into the stream, so both forms go through the same sequence
    parser.
    """

    tag = "tag"

    def parse(
        self,
        parser: PyxmParser,
        stream: TokenStream,
        token: ExprToken,
    ) -> Optional[int]:
        if parser.peek_block_stack():
            raise parser.syntax_error('Cannot use "tag" inside a block.', token.line)
        if not parser.is_main_scope():
            raise parser.syntax_error('Cannot use "tag" inside a macro.', token.line)

        if not stream.test(ExprTokenType.PUNCTUATION, "["):
            self._wrap_bare_list(stream)

        tags = self._resolve_tags(parser, ExpressionParser(stream).parse_sequence_expression())

        # no endtag: the statement ends here
        stream.expect(ExprTokenType.BLOCK_END)

        return tag_declaration(parser.ast, tags, token.line)

    def _wrap_bare_list(self, stream: TokenStream) -> None:
        """Turn ``'a', 'b'`` into ``['a', 'b']`` in the stream."""
        line = stream.current.line
        tokens = []
        while not stream.test(ExprTokenType.BLOCK_END):
            tokens.append(stream.next())

        stream.inject([
            ExprToken(ExprTokenType.PUNCTUATION, "[", line),
            *tokens,
            ExprToken(ExprTokenType.PUNCTUATION, "]", line),
        ])

    def _resolve_tags(self, parser: PyxmParser, sequence: Sequence) -> List[str]:
        """Resolve sequence items to tag strings, keeping source order."""
        tags = []
        for item in sequence.items:
            if not isinstance(item, Constant):
                if not isinstance(item, Expression):
                    raise parser.syntax_error("Expected expression as tag value.", item.line)
                raise parser.syntax_error("Cannot use complex expression as tag value.", item.line)
            tags.append(str(item.value))
        return tags
