"""
PYXM Runtime
============

Support code imported by compiled templates.

Every compilation unit becomes a subclass of CompiledTemplate. The
generated class provides ``render_body`` plus one method per block and
macro; this base class wires inheritance together:

    child.render_context(ctx, blocks)
        -> registers the child's blocks (first definition wins)
        -> delegates to the parent, which registers its remaining blocks
        -> the root template runs render_body, calling render_block()
           for every block, which dispatches to the most derived override
"""

from __future__ import annotations

from dataclasses import dataclass
from html import escape as html_escape
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Iterator, Optional, Tuple

import orjson

from taggedpyxm.engine.errors import TemplateError, TemplateRenderError

if TYPE_CHECKING:
    from taggedpyxm.engine.template import TemplateEnvironment


BlockRenderer = Callable[[Dict[str, Any], Dict[str, Any]], str]


class Markup(str):
    """A string that is safe to output without escaping."""

    __slots__ = ()

    def __html__(self) -> "Markup":
        return self

    def __repr__(self) -> str:
        return f"Markup({str.__repr__(self)})"


def escape(value: Any) -> Markup:
    """HTML-escape a value for output. Markup passes through untouched."""
    if value is None:
        return Markup("")
    if hasattr(value, "__html__"):
        return Markup(value.__html__())
    return Markup(html_escape(str(value), quote=True))


def to_string(value: Any) -> str:
    """Convert a value for output with autoescaping disabled."""
    if value is None:
        return ""
    return str(value)


def _json(value: Any) -> Markup:
    return Markup(orjson.dumps(value).decode("utf-8"))


def create_builtin_filters() -> Dict[str, Callable[..., Any]]:
    """Create built-in template filters."""
    return {
        "escape": escape,
        "e": escape,
        "safe": Markup,
        "upper": lambda x: str(x).upper(),
        "lower": lambda x: str(x).lower(),
        "title": lambda x: str(x).title(),
        "strip": lambda x: str(x).strip(),
        "length": len,
        "first": lambda x: x[0] if x else None,
        "last": lambda x: x[-1] if x else None,
        "join": lambda x, sep=", ": sep.join(str(i) for i in x),
        "default": lambda x, d="": x if x else d,
        "int": int,
        "float": float,
        "str": str,
        "bool": bool,
        "list": list,
        "json": _json,
    }


@dataclass
class LoopContext:
    """The ``loop`` variable available inside for loops."""
    index0: int
    length: int

    @property
    def index(self) -> int:
        return self.index0 + 1

    @property
    def first(self) -> bool:
        return self.index0 == 0

    @property
    def last(self) -> bool:
        return self.index0 == self.length - 1


def loop_items(iterable: Iterable[Any]) -> Iterator[Tuple[LoopContext, Any]]:
    """Pair every item of ``iterable`` with its LoopContext."""
    items = list(iterable)
    for index, item in enumerate(items):
        yield LoopContext(index, len(items)), item


class MacroNamespace:
    """Exposes the macros of a template as ``_self.name(...)``."""

    def __init__(self, template: "CompiledTemplate") -> None:
        self._template = template

    def __getattr__(self, name: str) -> Callable[..., str]:
        method = self._template.macro_names.get(name)
        if method is None:
            raise TemplateRenderError(
                f'Macro "{name}" is not defined in "{self._template.template_name}"'
            )
        return getattr(self._template, method)


class CompiledTemplate:
    """
    Base class of generated template classes.

    Attributes:
        template_name: Name of the template (or embed) this class renders
        parent_name: Name of the template it extends, if any
        block_names: Block name -> method name
        macro_names: Macro name -> method name
        source_hash: Hash of the AST the class was generated from
        render_code: Generated Python source of the whole template module
    """

    template_name: str = "template"
    parent_name: Optional[str] = None
    block_names: Dict[str, str] = {}
    macro_names: Dict[str, str] = {}
    source_hash: str = ""
    render_code: str = ""

    def __init__(self, environment: Optional["TemplateEnvironment"] = None) -> None:
        self.environment = environment

    def get_parent(self) -> Optional["CompiledTemplate"]:
        """
        Resolve the compiled parent template.

        Returns:
            The parent artifact, or None when this template extends nothing
            or has no environment to load the parent from
        """
        if self.parent_name is None or self.environment is None:
            return None
        return self.environment.load_compiled(self.parent_name)

    def new_context(self, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Build a render context: environment globals overlaid by ``context``."""
        ctx: Dict[str, Any] = {}
        if self.environment is not None:
            ctx.update(self.environment.globals)
        if context:
            ctx.update(context)
        return ctx

    def render(self, context: Optional[Dict[str, Any]] = None) -> str:
        """
        Render the template.

        Raises:
            TemplateRenderError: If generated code fails
        """
        ctx = self.new_context(context)
        try:
            return self.render_context(ctx, {})
        except TemplateError:
            raise
        except Exception as e:
            raise TemplateRenderError(f"Render error in {self.template_name}: {e}") from e

    def render_context(self, ctx: Dict[str, Any], blocks: Dict[str, BlockRenderer]) -> str:
        """Render with an existing context and block table."""
        for name, method in self.block_names.items():
            blocks.setdefault(name, getattr(self, method))

        if self.parent_name is None:
            return self.render_body(ctx, blocks)

        parent = self.get_parent()
        if parent is None:
            raise TemplateRenderError(
                f'Cannot render "{self.template_name}": parent "{self.parent_name}" '
                "is not available without an environment"
            )
        return parent.render_context(ctx, blocks)

    def render_body(self, _ctx: Dict[str, Any], _blocks: Dict[str, BlockRenderer]) -> str:
        return ""

    def render_block(self, name: str, ctx: Dict[str, Any], blocks: Dict[str, BlockRenderer]) -> str:
        """Render the most derived definition of block ``name``."""
        renderer = blocks.get(name)
        if renderer is None:
            renderer = getattr(self, self.block_names[name])
        return renderer(ctx, blocks)

    def render_embedded(self, cls: type, ctx: Dict[str, Any]) -> str:
        """Render an embed unit with a copy of the current context."""
        embedded = cls(self.environment)
        return embedded.render_context(dict(ctx), {})

    @property
    def _macros(self) -> MacroNamespace:
        return MacroNamespace(self)

    def __repr__(self) -> str:
        return f"<CompiledTemplate {self.template_name}>"
