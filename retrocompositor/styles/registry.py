"""Lookup of styles by name."""

from __future__ import annotations

from typing import Callable

from retrocompositor.styles.base import Style
from retrocompositor.styles.simple import BoardsStyle, FilmStyle, VintageStyle
from retrocompositor.styles.vhs import VhsStyle

StyleFactory = Callable[[], Style]


class StyleRegistry:
    """Maps style names to factories; built-in styles are registered up front."""

    def __init__(self) -> None:
        self._factories: dict[str, StyleFactory] = {
            "vhs": VhsStyle,
            "film": FilmStyle,
            "vintage": VintageStyle,
            "boards": BoardsStyle,
        }

    def register(self, name: str, factory: StyleFactory) -> None:
        """Register or replace the factory for ``name``."""
        self._factories[name] = factory

    def get_style(self, name: str) -> Style | None:
        """Return a new instance of the named style, or None if unknown."""
        factory = self._factories.get(name)
        return factory() if factory is not None else None

    def available_styles(self) -> list[str]:
        return list(self._factories)

    def has_style(self, name: str) -> bool:
        return name in self._factories

    def __len__(self) -> int:
        return len(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories