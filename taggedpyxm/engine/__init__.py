"""
PYXM Engine Module
==================

The PYXM template engine: text templates with Python expressions,
inheritance, embedding and extension hooks.

Components:
- Expressions: Tokenizer and parser for statement arguments
- PYXM Parser: Parses .pyxm sources into an arena AST
- Visitors: Compiler passes run over the AST before code generation
- PYXM Compiler: Compiles the AST into template classes
- Template: Loaders, environment and high-level template interface
"""

from taggedpyxm.engine.errors import (
    TemplateError,
    TemplateLogicError,
    TemplateNotFoundError,
    TemplateRenderError,
    TemplateSyntaxError,
)
from taggedpyxm.engine.extension import Extension
from taggedpyxm.engine.pyxm_compiler import PyxmCompiler, TemplateCache
from taggedpyxm.engine.pyxm_parser import NodeType, PyxmAST, PyxmNode, PyxmParser, StatementParser
from taggedpyxm.engine.runtime import CompiledTemplate, Markup
from taggedpyxm.engine.template import (
    DictLoader,
    FileSystemLoader,
    Template,
    TemplateEnvironment,
    configure,
    get_environment,
    render,
    render_file,
)
from taggedpyxm.engine.visitor import NodeTraverser, NodeVisitor

__all__ = [
    "TemplateError",
    "TemplateLogicError",
    "TemplateNotFoundError",
    "TemplateRenderError",
    "TemplateSyntaxError",
    "Extension",
    "PyxmCompiler",
    "TemplateCache",
    "NodeType",
    "PyxmAST",
    "PyxmNode",
    "PyxmParser",
    "StatementParser",
    "CompiledTemplate",
    "Markup",
    "DictLoader",
    "FileSystemLoader",
    "Template",
    "TemplateEnvironment",
    "configure",
    "get_environment",
    "render",
    "render_file",
    "NodeTraverser",
    "NodeVisitor",
]
