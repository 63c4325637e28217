"""Domain layer: editor document and selection state."""

from .entities import Coords, EditorDocument, MonospaceLayout, Selection, menu_position

__all__ = [
    "Coords",
    "EditorDocument",
    "MonospaceLayout",
    "Selection",
    "menu_position",
]
