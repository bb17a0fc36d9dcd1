"""Structural type of templates compiled with context tag support."""

from __future__ import annotations

from typing import List, Protocol, runtime_checkable


@runtime_checkable
class TaggedTemplate(Protocol):
    """A compiled template exposing its context tags."""

    def get_context_tags(self, include_parent: bool = False) -> List[str]:
        ...
