"""
taggedpyxm - PYXM Templates with Context Tags
=============================================

The PYXM template engine with declarative context tags. A template states
which context it needs:

    {% extends 'layout.pyxm' %}
    {% tag 'user', 'navigation' %}

and the compiled template answers without rendering:

    env = TemplateEnvironment("templates", extensions=[ContextTagExtension()])
    env.get_template("profile.pyxm").get_context_tags(include_parent=True)

Features:
---------
- PYXM templates: expressions, filters, if/for, blocks, extends,
  macros, embed, raw, whitespace control
- Compiler extension hooks (statements, AST passes, node compilers)
- Context tags with parent-first merging
- Layered configuration and structured logging
- ``pyxm`` command line tool
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

from typing import TYPE_CHECKING

# Lazy imports for performance
if TYPE_CHECKING:
    from taggedpyxm.core.config import Config
    from taggedpyxm.engine.template import Template, TemplateEnvironment, DictLoader, FileSystemLoader
    from taggedpyxm.tags.extension import ContextTagExtension


def __getattr__(name: str):
    """Lazy loading of components for faster startup."""
    _imports = {
        # Engine
        "Template": "taggedpyxm.engine.template",
        "TemplateEnvironment": "taggedpyxm.engine.template",
        "DictLoader": "taggedpyxm.engine.template",
        "FileSystemLoader": "taggedpyxm.engine.template",
        "TemplateError": "taggedpyxm.engine.errors",
        "TemplateSyntaxError": "taggedpyxm.engine.errors",
        # Context tags
        "ContextTagExtension": "taggedpyxm.tags.extension",
        "TaggedTemplate": "taggedpyxm.tags.protocols",
        # Core
        "Config": "taggedpyxm.core.config",
        # Utils
        "Logger": "taggedpyxm.utils.logger",
        "get_logger": "taggedpyxm.utils.logger",
    }

    if name in _imports:
        import importlib
        module = importlib.import_module(_imports[name])
        return getattr(module, name)

    raise AttributeError(f"module 'taggedpyxm' has no attribute '{name}'")


__all__ = [
    "__version__",
    "__license__",
    "Template",
    "TemplateEnvironment",
    "DictLoader",
    "FileSystemLoader",
    "TemplateError",
    "TemplateSyntaxError",
    "ContextTagExtension",
    "TaggedTemplate",
    "Config",
    "Logger",
    "get_logger",
]
