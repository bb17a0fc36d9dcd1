"""
PYXM Context Tags
=================

Declarative context tags for PYXM templates:

    {% tag 'user', 'navigation' %}

Compiled templates gain ``get_context_tags(include_parent=False)``, which
lists the declared tags without rendering.
"""

from taggedpyxm.tags.codegen import build_context_tags_method, collect_context_tags, order_tags
from taggedpyxm.tags.extension import ContextTagExtension
from taggedpyxm.tags.nodes import CONTEXT_TAGS_META
from taggedpyxm.tags.parser import TagSyntaxParser
from taggedpyxm.tags.protocols import TaggedTemplate
from taggedpyxm.tags.visitor import TagCollectionPass

__all__ = [
    "ContextTagExtension",
    "TagSyntaxParser",
    "TagCollectionPass",
    "TaggedTemplate",
    "CONTEXT_TAGS_META",
    "build_context_tags_method",
    "collect_context_tags",
    "order_tags",
]
