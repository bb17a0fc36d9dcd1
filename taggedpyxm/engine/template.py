"""
PYXM Template Interface
=======================

High-level template API for loading, compiling, and rendering PYXM templates.

Features:
- File-based and in-memory template loading
- String template compilation
- Template inheritance and embedding
- Extensions (statements, compiler passes, filters)
- Automatic caching
- Async and sync rendering

Example:
    env = TemplateEnvironment("templates", extensions=[ContextTagExtension()])

    # Load and render template file
    html = await env.render("home.pyxm", {"title": "Home"})

    # Query context tags without rendering
    tags = env.get_template("home.pyxm").get_context_tags(include_parent=True)

    # Render string template
    html = await render("<h1>{{ title }}</h1>", {"title": "Hello"})
"""

from __future__ import annotations

import hashlib
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

import aiofiles

from taggedpyxm.core.config import Config, get_config
from taggedpyxm.engine.errors import (
    TemplateError,
    TemplateNotFoundError,
    TemplateSyntaxError,
)
from taggedpyxm.engine.extension import Extension
from taggedpyxm.engine.pyxm_compiler import PyxmCompiler, TemplateCache
from taggedpyxm.engine.pyxm_parser import PyxmAST, PyxmParser
from taggedpyxm.engine.runtime import CompiledTemplate
from taggedpyxm.engine.visitor import NodeTraverser
from taggedpyxm.utils.logger import LogLevel, get_logger


class BaseLoader:
    """Base class for template loaders."""

    def get_source(self, name: str) -> str:
        """
        Load the source of template ``name``.

        Raises:
            TemplateNotFoundError: If the template does not exist
        """
        raise NotImplementedError

    async def get_source_async(self, name: str) -> str:
        return self.get_source(name)

    def exists(self, name: str) -> bool:
        """Check if template exists."""
        try:
            self.get_source(name)
        except TemplateNotFoundError:
            return False
        return True

    def list_templates(self) -> List[str]:
        return []


class FileSystemLoader(BaseLoader):
    """
    Template loader with directory-based lookup.

    Manages template directories and provides path resolution
    for template loading.

    Example:
        loader = FileSystemLoader("templates")
        loader.add_path("shared")

        source = loader.get_source("pages/home")   # pages/home.pyxm
    """

    def __init__(
        self,
        *paths: Union[str, Path],
        extension: str = ".pyxm",
        encoding: str = "utf-8",
    ) -> None:
        """
        Initialize loader with template directories.

        Args:
            *paths: Template directory paths
            extension: Suffix tried when a name has none
            encoding: Source file encoding
        """
        self.paths: List[Path] = []
        self.extension = extension
        self.encoding = encoding
        for path in paths:
            self.add_path(path)

    def add_path(self, path: Union[str, Path]) -> None:
        """Add template directory."""
        path = Path(path)
        if path.exists() and path not in self.paths:
            self.paths.append(path)

    def resolve(self, name: str) -> Optional[Path]:
        """
        Resolve template name to file path.

        Args:
            name: Template name (relative path)

        Returns:
            Path to template file, or None if not found
        """
        candidates = [name]
        if not name.endswith(self.extension):
            candidates.append(f"{name}{self.extension}")

        for base in self.paths:
            root = base.resolve()
            for candidate in candidates:
                full_path = (base / candidate).resolve()
                # names never escape their template directory
                if root not in full_path.parents:
                    continue
                if full_path.is_file():
                    return full_path

        return None

    def _require(self, name: str) -> Path:
        path = self.resolve(name)
        if path is None:
            raise TemplateNotFoundError(
                f"Template '{name}' not found in paths: {[str(p) for p in self.paths]}"
            )
        return path

    def get_source(self, name: str) -> str:
        return self._require(name).read_text(encoding=self.encoding)

    async def get_source_async(self, name: str) -> str:
        async with aiofiles.open(self._require(name), "r", encoding=self.encoding) as f:
            return await f.read()

    def exists(self, name: str) -> bool:
        return self.resolve(name) is not None

    def list_templates(self) -> List[str]:
        """Names of all templates below the search paths."""
        names = set()
        for base in self.paths:
            for path in base.rglob(f"*{self.extension}"):
                names.add(path.relative_to(base).as_posix())
        return sorted(names)


class DictLoader(BaseLoader):
    """
    Loads templates from a mapping of name to source.

    Example:
        loader = DictLoader({"base.pyxm": "<title>{% block title %}{% endblock %}</title>"})
    """

    def __init__(self, mapping: Mapping[str, str]) -> None:
        self.mapping = dict(mapping)

    def get_source(self, name: str) -> str:
        try:
            return self.mapping[name]
        except KeyError:
            raise TemplateNotFoundError(f"Template '{name}' not found") from None

    def list_templates(self) -> List[str]:
        return sorted(self.mapping)


class Template:
    """
    Template wrapper providing high-level template operations.

    Handles parsing, compilation, caching, and rendering of PYXM templates
    through its environment.

    Example:
        # From string
        template = Template("<h1>{{ title }}</h1>")
        html = await template.render({"title": "Hello"})

        # From file
        template = Template.from_file("templates/page.pyxm")
        html = template.render_sync({"data": page_data})
    """

    def __init__(
        self,
        source: str,
        name: str = "template",
        environment: Optional["TemplateEnvironment"] = None,
        auto_compile: bool = True,
    ) -> None:
        """
        Create template from source string.

        Args:
            source: PYXM template source
            name: Template name for identification
            environment: Environment to compile in (default environment if None)
            auto_compile: Whether to compile immediately
        """
        self.source = source
        self.name = name
        self.environment = environment or get_environment()
        self._ast: Optional[PyxmAST] = None
        self._compiled: Optional[CompiledTemplate] = None

        if auto_compile:
            self._compile()

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        encoding: str = "utf-8",
        environment: Optional["TemplateEnvironment"] = None,
    ) -> "Template":
        """
        Load template from file.

        Args:
            path: Path to .pyxm file
            encoding: File encoding
            environment: Environment to compile in

        Returns:
            Template instance

        Raises:
            TemplateNotFoundError: If file doesn't exist
        """
        path = Path(path)

        if not path.exists():
            raise TemplateNotFoundError(f"Template not found: {path}")

        source = path.read_text(encoding=encoding)
        return cls(source, name=str(path), environment=environment)

    @classmethod
    async def from_file_async(
        cls,
        path: Union[str, Path],
        encoding: str = "utf-8",
        environment: Optional["TemplateEnvironment"] = None,
    ) -> "Template":
        """Load template from file without blocking the event loop."""
        path = Path(path)

        if not path.exists():
            raise TemplateNotFoundError(f"Template not found: {path}")

        async with aiofiles.open(path, "r", encoding=encoding) as f:
            source = await f.read()
        return cls(source, name=str(path), environment=environment)

    @classmethod
    def from_string(
        cls,
        source: str,
        name: str = "string",
        environment: Optional["TemplateEnvironment"] = None,
    ) -> "Template":
        """Create template from string source."""
        return cls(source, name=name, environment=environment)

    def _compile(self) -> None:
        """Parse and compile the template."""
        cache = self.environment.cache
        cache_key = self.environment.cache_key(self.name, self.source)

        cached = cache.get(cache_key)
        if cached is not None:
            self._compiled = cached
            return

        self._ast, self._compiled = self.environment.build(self.source, self.name)
        cache.set(cache_key, self._compiled)

    async def render(self, context: Optional[Dict[str, Any]] = None) -> str:
        """
        Render template with context.

        Args:
            context: Template variables

        Returns:
            Rendered HTML string

        Raises:
            TemplateRenderError: If rendering fails
        """
        return self.render_sync(context)

    def render_sync(self, context: Optional[Dict[str, Any]] = None) -> str:
        """Synchronous render."""
        if self._compiled is None:
            self._compile()
        return self._compiled.render(context)

    def get_context_tags(self, include_parent: bool = False) -> List[str]:
        """
        Context tags declared by this template.

        Args:
            include_parent: Prepend the parent template's tags

        Raises:
            TemplateError: If the environment has no context tag support
        """
        if self._compiled is None:
            self._compile()

        accessor = getattr(self._compiled, "get_context_tags", None)
        if accessor is None:
            raise TemplateError(
                f"Template {self.name} was compiled without context tag support"
            )
        return accessor(include_parent)

    @property
    def ast(self) -> Optional[PyxmAST]:
        """Get parsed AST (None when the compiled template came from cache)."""
        return self._ast

    @property
    def compiled(self) -> Optional[CompiledTemplate]:
        """Get compiled template."""
        return self._compiled

    def __repr__(self) -> str:
        return f"<Template {self.name}>"


class TemplateEnvironment:
    """
    Template environment with global configuration.

    Manages template loading, extensions, global variables and filters,
    and owns the cache of compiled templates.

    Example:
        env = TemplateEnvironment("templates", extensions=[ContextTagExtension()])
        env.add_global("site_name", "My Site")
        env.add_filter("markdown", markdown_to_html)

        html = await env.render("home.pyxm", {"page": "Home"})
    """

    def __init__(
        self,
        *paths: Union[str, Path],
        loader: Optional[BaseLoader] = None,
        config: Optional[Config] = None,
        extensions: Iterable[Extension] = (),
        auto_reload: Optional[bool] = None,
    ) -> None:
        """
        Initialize template environment.

        Args:
            *paths: Template directory paths (FileSystemLoader)
            loader: Explicit loader, replaces the path based one
            config: Configuration (global config if None)
            extensions: Extensions to register
            auto_reload: Re-read sources on every load (config default)
        """
        self.config = config if config is not None else get_config()
        self.loader = loader or FileSystemLoader(
            *paths, extension=self.config.get_str("templates.extension", ".pyxm"),
        )
        self.globals: Dict[str, Any] = {}
        self.filters: Dict[str, Any] = {}
        self.extensions: Dict[str, Extension] = {}
        self.auto_reload = (
            self.config.get_bool("templates.auto_reload") if auto_reload is None else auto_reload
        )
        self.cache = TemplateCache(max_size=self.config.get_int("cache.max_size", 100))
        self.logger = get_logger("taggedpyxm.engine")
        self._loaded: Dict[str, str] = {}

        for extension in extensions:
            self.add_extension(extension)

    def add_extension(self, extension: Extension) -> None:
        """Register an extension. Compiled templates are discarded."""
        self.extensions[extension.name] = extension
        self.filters.update(extension.get_filters())
        self.clear_cache()

    def has_extension(self, name: str) -> bool:
        return name in self.extensions

    def add_global(self, name: str, value: Any) -> None:
        """Add global template variable."""
        self.globals[name] = value

    def add_filter(self, name: str, func: Any) -> None:
        """Add custom filter function."""
        self.filters[name] = func
        self.clear_cache()

    def clear_cache(self) -> None:
        self.cache.clear()
        self._loaded.clear()

    # Compilation pipeline

    def create_parser(self) -> PyxmParser:
        return PyxmParser(
            statement_parsers=[
                parser
                for extension in self.extensions.values()
                for parser in extension.get_statement_parsers()
            ],
            trim_blocks=self.config.get_bool("lexer.trim_blocks", True),
        )

    def create_traverser(self) -> NodeTraverser:
        return NodeTraverser(
            visitor
            for extension in self.extensions.values()
            for visitor in extension.get_node_visitors()
        )

    def create_compiler(self) -> PyxmCompiler:
        compiler = PyxmCompiler(
            filters=self.filters,
            autoescape=self.config.get_bool("compiler.autoescape", True),
        )
        for extension in self.extensions.values():
            for node_type, node_compiler in extension.get_node_compilers().items():
                compiler.add_node_compiler(node_type, node_compiler)
        return compiler

    def parse(self, source: str, name: Optional[str] = None) -> PyxmAST:
        """Parse source into an AST (no compiler passes applied)."""
        return self.create_parser().parse(source, name)

    @contextmanager
    def _compiling(self, name: Optional[str]) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        except TemplateSyntaxError as e:
            self.logger.error(
                "Template syntax error",
                template=e.name or name,
                line=e.line,
                error=e.message,
            )
            raise
        self.logger.debug(
            "Compiled template",
            template=name,
            elapsed_ms=round((time.perf_counter() - start) * 1000, 2),
        )

    def build(self, source: str, name: Optional[str] = None) -> Tuple[PyxmAST, CompiledTemplate]:
        """
        Parse, run compiler passes, and compile.

        Returns:
            The visited AST and the compiled template

        Raises:
            TemplateSyntaxError: If the source is malformed
        """
        with self._compiling(name):
            ast = self.parse(source, name)
            self.create_traverser().traverse(ast)
            compiled = self.create_compiler().compile(ast, environment=self)

        if self.config.get_bool("compiler.debug"):
            self.logger.info("Generated code", template=name, code="\n" + compiled.render_code)
        return ast, compiled

    def compile(self, source: str, name: Optional[str] = None) -> CompiledTemplate:
        """Compile template source (uncached)."""
        return self.build(source, name)[1]

    @staticmethod
    def cache_key(name: str, source: str) -> str:
        """Generate cache key for template."""
        source_hash = hashlib.md5(source.encode()).hexdigest()
        return f"{name}:{source_hash}"

    def load_compiled(self, name: str) -> CompiledTemplate:
        """
        Load and compile template ``name`` through the cache.

        Raises:
            TemplateNotFoundError: If the loader has no such template
        """
        if not self.auto_reload and name in self._loaded:
            cached = self.cache.get(self._loaded[name])
            if cached is not None:
                if self.logger.is_enabled_for(LogLevel.DEBUG):
                    self.logger.debug("Template cache hit", template=name)
                return cached

        source = self.loader.get_source(name)
        key = self.cache_key(name, source)
        compiled = self.cache.get(key)
        if compiled is None:
            compiled = self.compile(source, name)
            self.cache.set(key, compiled)
        self._loaded[name] = key
        return compiled

    def get_template(self, name: str) -> Template:
        """Get template by name."""
        return Template(self.loader.get_source(name), name=name, environment=self)

    def from_string(self, source: str, name: str = "string") -> Template:
        """Create a template from source in this environment."""
        return Template(source, name=name, environment=self)

    async def render(
        self,
        name: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Load and render template.

        Args:
            name: Template name
            context: Template variables

        Returns:
            Rendered HTML string
        """
        source = await self.loader.get_source_async(name)
        template = Template(source, name=name, environment=self)
        return await template.render(context)

    def render_sync(
        self,
        name: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Synchronous render."""
        return self.get_template(name).render_sync(context)


# Convenience functions

_default_environment: Optional[TemplateEnvironment] = None


def configure(
    *paths: Union[str, Path],
    **kwargs: Any,
) -> TemplateEnvironment:
    """
    Configure default template environment.

    Args:
        *paths: Template directory paths
        **kwargs: Additional environment options

    Returns:
        Configured TemplateEnvironment
    """
    global _default_environment
    _default_environment = TemplateEnvironment(*paths, **kwargs)
    return _default_environment


def get_environment() -> TemplateEnvironment:
    """Get default template environment (with context tag support)."""
    global _default_environment
    if _default_environment is None:
        from taggedpyxm.tags import ContextTagExtension

        _default_environment = TemplateEnvironment(
            "templates", extensions=[ContextTagExtension()],
        )
    return _default_environment


async def render(
    source: str,
    context: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Render template string.

    Args:
        source: PYXM template source
        context: Template variables

    Returns:
        Rendered HTML string
    """
    template = Template(source)
    return await template.render(context)


async def render_file(
    path: Union[str, Path],
    context: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Load and render template file.

    Args:
        path: Path to template file
        context: Template variables

    Returns:
        Rendered HTML string
    """
    template = await Template.from_file_async(path)
    return await template.render(context)
