"""Domain entities."""

from .document import Coords, EditorDocument, MonospaceLayout, Selection, menu_position

__all__ = [
    "Coords",
    "EditorDocument",
    "MonospaceLayout",
    "Selection",
    "menu_position",
]
