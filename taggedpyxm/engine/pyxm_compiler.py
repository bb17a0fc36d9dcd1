"""
PYXM Compiler
=============

Compiles a PYXM AST into Python source and executes it into a template
class. The compiler performs:
- One class per compilation unit (the template, plus one per embed)
- One method per block and per macro
- Name resolution of template expressions against the render context
- Filter application (``value | upper``)
- Delegation of extension node types to registered node compilers

Output:
    ``compile()`` returns an instance of the generated template class, a
    CompiledTemplate subclass. The generated module source is available as
    ``render_code`` on every generated class.

Generated Shape:
    class _Template(_Base):
        template_name = 'page.pyxm'
        parent_name = 'base.pyxm'

        def render_body(self, _ctx, _blocks):
            ...

        def block_content(self, _ctx, _blocks):
            ...

        block_names = {'content': 'block_content'}
        macro_names = {}
"""

from __future__ import annotations

import ast
import hashlib
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from taggedpyxm.engine.errors import TemplateLogicError, TemplateSyntaxError
from taggedpyxm.engine.pyxm_parser import NodeType, PyxmAST, PyxmNode
from taggedpyxm.engine.runtime import (
    CompiledTemplate,
    Markup,
    create_builtin_filters,
    escape,
    loop_items,
    to_string,
)

MODULE_CLASS = "_Template"

# Builtins an expression may use when the context does not shadow them
SAFE_BUILTINS = frozenset({
    "abs", "all", "any", "bool", "dict", "enumerate", "float", "int",
    "isinstance", "len", "list", "max", "min", "range", "reversed",
    "round", "set", "sorted", "str", "sum", "tuple", "zip",
})


class CompilerContext:
    """Compilation context for tracking state."""

    def __init__(self) -> None:
        self.indent_level = 0
        self.output_parts: List[str] = []
        self.loop_depth = 0
        self.local_names: Set[str] = set()
        self.aliases: Dict[str, str] = {}
        self._scopes: List[Tuple[Set[str], Dict[str, str]]] = []

    def indent(self) -> str:
        """Get current indentation."""
        return "    " * self.indent_level

    def emit(self, code: str) -> None:
        """Emit a line of code."""
        self.output_parts.append(f"{self.indent()}{code}" if code else "")

    def enter_scope(self) -> None:
        """Enter a new scope (increase indent)."""
        self.indent_level += 1

    def exit_scope(self) -> None:
        """Exit scope (decrease indent)."""
        self.indent_level -= 1

    def push_locals(self, names: Iterable[str], aliases: Optional[Dict[str, str]] = None) -> None:
        """Make Python locals visible to expressions compiled from here on."""
        self._scopes.append((self.local_names, self.aliases))
        self.local_names = self.local_names | set(names)
        self.aliases = {**self.aliases, **(aliases or {})}

    def pop_locals(self) -> None:
        self.local_names, self.aliases = self._scopes.pop()

    def reset_locals(self, names: Iterable[str] = ()) -> None:
        """Start a new method: only ``names`` are local."""
        self.local_names = set(names)
        self.aliases = {}
        self._scopes = []
        self.loop_depth = 0

    def get_code(self) -> str:
        """Get generated code."""
        return "\n".join(self.output_parts)


def _target_names(target: ast.expr) -> Set[str]:
    """Names bound by an assignment target."""
    return {
        node.id for node in ast.walk(target)
        if isinstance(node, ast.Name)
    }


class _NameResolver(ast.NodeTransformer):
    """
    Rewrites a template expression to run inside a generated method.

    - free names read from the context: ``x`` -> ``_ctx.get('x', '')``
    - ``_self`` is the macro namespace of the current template
    - ``value | name(args)`` applies the filter ``name``
    """

    def __init__(
        self,
        local_names: Set[str],
        aliases: Dict[str, str],
        filters: Dict[str, Callable[..., Any]],
        line: int,
        template_name: Optional[str],
    ) -> None:
        self.local_names = local_names
        self.aliases = aliases
        self.filters = filters
        self.line = line
        self.template_name = template_name

    def _scoped(self, names: Set[str]) -> "_NameResolver":
        return _NameResolver(
            self.local_names | names, self.aliases, self.filters, self.line, self.template_name,
        )

    def visit_Name(self, node: ast.Name) -> ast.expr:
        if not isinstance(node.ctx, ast.Load):
            return node
        if node.id in self.aliases:
            return ast.copy_location(ast.Name(id=self.aliases[node.id], ctx=ast.Load()), node)
        if node.id in self.local_names:
            return node
        if node.id == "_self":
            return ast.copy_location(
                ast.Attribute(value=ast.Name(id="self", ctx=ast.Load()), attr="_macros", ctx=ast.Load()),
                node,
            )

        if node.id in SAFE_BUILTINS:
            default: ast.expr = ast.Name(id=node.id, ctx=ast.Load())
        else:
            default = ast.Constant(value="")
        lookup = ast.Call(
            func=ast.Attribute(value=ast.Name(id="_ctx", ctx=ast.Load()), attr="get", ctx=ast.Load()),
            args=[ast.Constant(value=node.id), default],
            keywords=[],
        )
        return ast.copy_location(lookup, node)

    def visit_BinOp(self, node: ast.BinOp) -> ast.expr:
        if not isinstance(node.op, ast.BitOr):
            return self.generic_visit(node)

        target = node.right
        if isinstance(target, ast.Name):
            name, args, keywords = target.id, [], []
        elif isinstance(target, ast.Call) and isinstance(target.func, ast.Name):
            name, args, keywords = target.func.id, target.args, target.keywords
        else:
            return self.generic_visit(node)

        if name not in self.filters:
            raise TemplateSyntaxError(f'Unknown filter "{name}"', self.line, self.template_name)

        call = ast.Call(
            func=ast.Subscript(
                value=ast.Name(id="_filters", ctx=ast.Load()),
                slice=ast.Constant(value=name),
                ctx=ast.Load(),
            ),
            args=[self.visit(node.left)] + [self.visit(arg) for arg in args],
            keywords=[self.visit(keyword) for keyword in keywords],
        )
        return ast.copy_location(call, node)

    def _visit_comprehension(self, node: ast.AST) -> ast.AST:
        bound: Set[str] = set()
        for generator in node.generators:
            generator.iter = self._scoped(bound).visit(generator.iter)
            bound |= _target_names(generator.target)
            scoped = self._scoped(bound)
            generator.ifs = [scoped.visit(test) for test in generator.ifs]

        scoped = self._scoped(bound)
        for field_name in ("elt", "key", "value"):
            if hasattr(node, field_name):
                setattr(node, field_name, scoped.visit(getattr(node, field_name)))
        return node

    visit_ListComp = _visit_comprehension
    visit_SetComp = _visit_comprehension
    visit_DictComp = _visit_comprehension
    visit_GeneratorExp = _visit_comprehension

    def visit_Lambda(self, node: ast.Lambda) -> ast.AST:
        arguments = node.args
        names = {arg.arg for arg in arguments.posonlyargs + arguments.args + arguments.kwonlyargs}
        arguments.defaults = [self.visit(default) for default in arguments.defaults]
        node.body = self._scoped(names).visit(node.body)
        return node


class PyxmCompiler:
    """
    Compiles PYXM AST to executable template classes.

    Example:
        compiler = PyxmCompiler()
        compiled = compiler.compile(ast)
        html = compiled.render({"name": "World"})
    """

    def __init__(
        self,
        node_compilers: Optional[Dict[NodeType, Callable[[PyxmAST, PyxmNode], Optional[ast.stmt]]]] = None,
        filters: Optional[Dict[str, Callable[..., Any]]] = None,
        autoescape: bool = True,
    ) -> None:
        self.node_compilers = dict(node_compilers or {})
        self.filters = {**create_builtin_filters(), **(filters or {})}
        self.autoescape = autoescape
        self.context: Optional[CompilerContext] = None
        self._ast: Optional[PyxmAST] = None
        self._units: List[Tuple[int, str]] = []
        self._pending: List[int] = []

    def add_node_compiler(
        self,
        node_type: NodeType,
        compiler: Callable[[PyxmAST, PyxmNode], Optional[ast.stmt]],
    ) -> None:
        """Register the compiler for an extension node type."""
        self.node_compilers[node_type] = compiler

    def compile(self, ast: PyxmAST, environment: Any = None) -> CompiledTemplate:
        """
        Compile PYXM AST to a CompiledTemplate.

        Args:
            ast: Parsed (and visited) PYXM AST
            environment: Environment used to resolve parent templates

        Returns:
            Instance of the generated template class

        Raises:
            TemplateSyntaxError: If an expression is invalid
            TemplateLogicError: If a node type has no compiler
        """
        code = self.generate(ast)
        namespace = self._compile_module(code, ast.name)
        return namespace[MODULE_CLASS](environment)

    def generate(self, ast: PyxmAST) -> str:
        """Generate the Python source of the template module."""
        self._ast = ast
        self._units = [(ast.root, MODULE_CLASS)]
        source_hash = hashlib.md5(repr(ast.to_dict()).encode()).hexdigest()[:12]

        classes = []
        # embeds found while compiling a unit are queued as further units
        index = 0
        while index < len(self._units):
            handle, class_name = self._units[index]
            classes.append(self._compile_unit(handle, class_name, source_hash))
            index += 1

        return "\n\n\n".join(classes) + "\n"

    def _compile_unit(self, handle: int, class_name: str, source_hash: str) -> str:
        """Compile one compilation unit to a class definition."""
        unit = self._ast[handle]
        self.context = CompilerContext()
        self._pending = []

        self.context.emit(f"class {class_name}(_Base):")
        self.context.enter_scope()
        self.context.emit(f"template_name = {unit.name or 'template'!r}")
        self.context.emit(f"parent_name = {unit.parent_name!r}")
        self.context.emit(f"source_hash = {source_hash!r}")

        self._emit_method("render_body", "self, _ctx, _blocks", unit.children)

        block_names: Dict[str, str] = {}
        macro_names: Dict[str, str] = {}
        while self._pending:
            node = self._ast[self._pending.pop(0)]
            if node.type == NodeType.BLOCK:
                block_names[node.name] = f"block_{node.name}"
                self._emit_method(block_names[node.name], "self, _ctx, _blocks", node.children)
            else:
                macro_names[node.name] = f"macro_{node.name}"
                self._emit_macro(macro_names[node.name], node)

        for meta in unit.meta.values():
            self._compile_meta(self._ast[meta])

        self.context.emit("")
        self.context.emit(f"block_names = {block_names!r}")
        self.context.emit(f"macro_names = {macro_names!r}")
        self.context.exit_scope()

        return self.context.get_code()

    def _emit_method(self, name: str, params: str, children: List[int]) -> None:
        self.context.reset_locals()
        self.context.emit("")
        self.context.emit(f"def {name}({params}):")
        self.context.enter_scope()
        self.context.emit("_output = []")
        self.context.emit("_append = _output.append")
        self._compile_body(children)
        self.context.emit("return ''.join(_output)")
        self.context.exit_scope()

    def _emit_macro(self, name: str, node: PyxmNode) -> None:
        """Macros see their arguments and the environment globals only."""
        self.context.reset_locals(node.arguments)
        params = ", ".join(["self"] + [f"{argument}=None" for argument in node.arguments])
        self.context.emit("")
        self.context.emit(f"def {name}({params}):")
        self.context.enter_scope()
        self.context.emit("_ctx = self.new_context()")
        self.context.emit("_blocks = {}")
        self.context.emit("_output = []")
        self.context.emit("_append = _output.append")
        self._compile_body(node.children)
        if self.autoescape:
            self.context.emit("return Markup(''.join(_output))")
        else:
            self.context.emit("return ''.join(_output)")
        self.context.exit_scope()

    def _compile_body(self, children: List[int]) -> None:
        """Compile a statement body; empty bodies become ``pass``."""
        emitted = len(self.context.output_parts)
        for child in children:
            self._compile_node(self._ast[child])
        if len(self.context.output_parts) == emitted:
            self.context.emit("pass")

    def _compile_node(self, node: PyxmNode) -> None:
        """Compile a single AST node."""
        if node.type == NodeType.TEXT:
            self._compile_text(node)

        elif node.type == NodeType.OUTPUT:
            self._compile_output(node)

        elif node.type == NodeType.IF:
            self._compile_if(node, "if")

        elif node.type == NodeType.FOR:
            self._compile_for(node)

        elif node.type == NodeType.BLOCK:
            self._pending.append(node.handle)
            self.context.emit(f"_append(self.render_block({node.name!r}, _ctx, _blocks))")

        elif node.type == NodeType.MACRO:
            self._pending.append(node.handle)

        elif node.type == NodeType.EMBED:
            self._compile_embed(node)

        elif node.type == NodeType.COMMENT:
            # Skip comments in output
            pass

        else:
            self._compile_extension_node(node)

    def _compile_text(self, node: PyxmNode) -> None:
        """Compile text node."""
        if node.content:
            self.context.emit(f"_append({node.content!r})")

    def _compile_output(self, node: PyxmNode) -> None:
        """Compile expression {{ expr }}."""
        expr = self._expression(node.content, node.line)
        self.context.emit(f"_append(_escape({expr}))")

    def _compile_if(self, node: PyxmNode, keyword: str) -> None:
        """Compile if/elif/else chain."""
        self.context.emit(f"{keyword} {self._expression(node.condition, node.line)}:")
        self.context.enter_scope()
        self._compile_body([
            child for child in node.children
            if self._ast[child].type not in (NodeType.ELIF, NodeType.ELSE)
        ])
        self.context.exit_scope()

        for child in self._ast.children(node.handle):
            if child.type == NodeType.ELIF:
                self._compile_if(child, "elif")
            elif child.type == NodeType.ELSE:
                self.context.emit("else:")
                self.context.enter_scope()
                self._compile_body(child.children)
                self.context.exit_scope()

    def _compile_for(self, node: PyxmNode) -> None:
        """Compile for loop; ``loop`` is bound to a LoopContext."""
        try:
            statement = ast.parse(f"for {node.iterator}: pass").body[0]
        except SyntaxError as e:
            raise TemplateSyntaxError(
                f"Invalid for loop {node.iterator!r}: {e.msg}", node.line, self._ast.name,
            ) from e

        if not isinstance(statement, ast.For) or not all(
            isinstance(target, (ast.Name, ast.Tuple, ast.List))
            for target in ast.walk(statement.target)
            if not isinstance(target, (ast.Store, ast.Load))
        ):
            raise TemplateSyntaxError(
                f"Invalid for loop target in {node.iterator!r}", node.line, self._ast.name,
            )

        iterable = self._resolve(statement.iter, node.line)
        target = ast.unparse(statement.target)
        if not isinstance(statement.target, ast.Name):
            target = f"({target})"

        self.context.loop_depth += 1
        loop_var = f"_loop{self.context.loop_depth}"
        self.context.emit(f"for {loop_var}, {target} in _loop({iterable}):")
        self.context.enter_scope()
        self.context.push_locals(_target_names(statement.target), {"loop": loop_var})
        self._compile_body(node.children)
        self.context.pop_locals()
        self.context.exit_scope()
        self.context.loop_depth -= 1

    def _compile_embed(self, node: PyxmNode) -> None:
        """Queue the embed as its own unit and render it in place."""
        class_name = f"_Embed{len(self._units)}"
        self._units.append((node.handle, class_name))

        # loop variables and macro arguments travel with the context
        visible = sorted(self.context.local_names)
        aliases = sorted(self.context.aliases.items())
        if visible or aliases:
            items = [f"{name!r}: {name}" for name in visible]
            items += [f"{alias!r}: {target}" for alias, target in aliases]
            ctx = "{**_ctx, " + ", ".join(items) + "}"
        else:
            ctx = "_ctx"
        self.context.emit(f"_append(self.render_embedded({class_name}, {ctx}))")

    def _compile_extension_node(self, node: PyxmNode) -> None:
        """Compile a node type introduced by an extension."""
        compiler = self.node_compilers.get(node.type)
        if compiler is None:
            raise TemplateLogicError(f"No compiler registered for {node.type.name} nodes.")

        statement = compiler(self._ast, node)
        if statement is not None:
            self._emit_statement(statement)

    def _compile_meta(self, node: PyxmNode) -> None:
        """Compile a meta-node of the current unit into a class member."""
        compiler = self.node_compilers.get(node.type)
        if compiler is None:
            raise TemplateLogicError(f"No compiler registered for {node.type.name} nodes.")

        statement = compiler(self._ast, node)
        if statement is not None:
            self.context.emit("")
            self._emit_statement(statement)

    def _emit_statement(self, statement: ast.stmt) -> None:
        source = ast.unparse(ast.fix_missing_locations(statement))
        for line in source.splitlines():
            self.context.emit(line)

    def _expression(self, source: str, line: int) -> str:
        """Parse and resolve a template expression to Python source."""
        try:
            tree = ast.parse(source.strip(), mode="eval")
        except SyntaxError as e:
            raise TemplateSyntaxError(
                f"Invalid expression {source.strip()!r}: {e.msg}", line, self._ast.name,
            ) from e
        return self._resolve(tree.body, line)

    def _resolve(self, expression: ast.expr, line: int) -> str:
        resolver = _NameResolver(
            self.context.local_names,
            self.context.aliases,
            self.filters,
            line,
            self._ast.name,
        )
        return ast.unparse(ast.fix_missing_locations(resolver.visit(expression)))

    def _compile_module(self, code: str, name: Optional[str]) -> Dict[str, Any]:
        """Execute generated code and return its namespace."""
        namespace: Dict[str, Any] = {
            "_Base": CompiledTemplate,
            "_escape": escape if self.autoescape else to_string,
            "_filters": self.filters,
            "_loop": loop_items,
            "Markup": Markup,
        }

        try:
            bytecode = compile(code, f"<template {name or 'string'}>", "exec")
        except SyntaxError as e:
            raise TemplateLogicError(f"Generated code for {name} is invalid: {e.msg} (line {e.lineno})") from e
        exec(bytecode, namespace)

        for _, class_name in self._units:
            namespace[class_name].render_code = code
        return namespace


class TemplateCache:
    """
    LRU cache for compiled templates.

    Caches compiled templates to avoid re-parsing and re-compiling
    on every render.
    """

    def __init__(self, max_size: int = 100) -> None:
        self.max_size = max_size
        self._cache: Dict[str, CompiledTemplate] = {}
        self._access_order: List[str] = []

    def get(self, key: str) -> Optional[CompiledTemplate]:
        """Get compiled template from cache."""
        if key in self._cache:
            self._access_order.remove(key)
            self._access_order.append(key)
            return self._cache[key]
        return None

    def set(self, key: str, template: CompiledTemplate) -> None:
        """Add compiled template to cache."""
        if key in self._cache:
            self._access_order.remove(key)
        elif len(self._cache) >= self.max_size:
            # Evict least recently used
            oldest = self._access_order.pop(0)
            del self._cache[oldest]

        self._cache[key] = template
        self._access_order.append(key)

    def clear(self) -> None:
        """Clear all cached templates."""
        self._cache.clear()
        self._access_order.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._cache

    def __len__(self) -> int:
        return len(self._cache)
