"""
PYXM Engine Errors
==================

Exception hierarchy shared by the lexer, parser, compiler and runtime.
"""

from __future__ import annotations

from typing import Optional


class TemplateError(Exception):
    """Base exception for template errors."""
    pass


class TemplateNotFoundError(TemplateError):
    """Raised when a template cannot be located by the loader."""
    pass


class TemplateSyntaxError(TemplateError):
    """
    Raised when template source cannot be compiled.

    Attributes:
        message: Error message without location
        line: Source line of the offending construct
        name: Template name (source identifier)
    """

    def __init__(
        self,
        message: str,
        line: int = 0,
        name: Optional[str] = None,
    ) -> None:
        self.message = message
        self.line = line
        self.name = name
        super().__init__(self._format())

    def _format(self) -> str:
        location = []
        if self.name:
            location.append(f'in "{self.name}"')
        if self.line:
            location.append(f"at line {self.line}")
        if not location:
            return self.message
        return f"{self.message} ({' '.join(location)})"


class TemplateRenderError(TemplateError):
    """Raised when rendering a compiled template fails."""
    pass


class TemplateLogicError(TemplateError, RuntimeError):
    """
    Raised on structural contract violations inside the compiler.

    These are programming errors (an extension misusing the AST), not
    errors in template source.
    """
    pass
