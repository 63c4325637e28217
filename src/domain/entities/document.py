"""Plain-text document and selection state used by the editor shell."""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple


@dataclass(frozen=True, slots=True)
class Selection:
    """Half-open range ``[start, end)`` over document positions."""

    start: int = 0
    end: int = 0

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def clamp(self, length: int) -> "Selection":
        start = max(0, min(int(self.start), length))
        end = max(0, min(int(self.end), length))
        if end < start:
            start, end = end, start
        return Selection(start, end)

    def as_tuple(self) -> tuple[int, int]:
        return (self.start, self.end)


class Coords(NamedTuple):
    left: float
    top: float


class EditorDocument:
    """Text buffer with a single selection.

    Positions are character offsets. Every edit bumps `version`, so callers
    can tell whether a selection they captured earlier may be stale.
    """

    def __init__(self, text: str = "", selection: Selection | None = None):
        self._text = text
        self.version = 1
        self._selection = (selection or Selection()).clamp(len(text))

    @property
    def text(self) -> str:
        return self._text

    @property
    def selection(self) -> Selection:
        return self._selection

    def select(self, start: int, end: int) -> Selection:
        self._selection = Selection(start, end).clamp(len(self._text))
        return self._selection

    def text_between(self, selection: Selection | None = None) -> str:
        span = (selection or self._selection).clamp(len(self._text))
        return self._text[span.start : span.end]

    def set_text(self, text: str) -> None:
        self._text = text
        self._selection = Selection()
        self.version += 1

    def replace_range(self, selection: Selection, replacement: str) -> Selection:
        """Replace `selection` (clamped to the current text) with `replacement`.

        Returns the range now covered by the inserted text, which also
        becomes the active selection.
        """
        span = selection.clamp(len(self._text))
        self._text = self._text[: span.start] + replacement + self._text[span.end :]
        self.version += 1
        self._selection = Selection(span.start, span.start + len(replacement))
        return self._selection

    def line_column(self, position: int) -> tuple[int, int]:
        position = max(0, min(position, len(self._text)))
        before = self._text[:position]
        line = before.count("\n")
        column = position - (before.rfind("\n") + 1)
        return line, column


@dataclass(slots=True)
class MonospaceLayout:
    """Maps document positions to screen coordinates for fixed-width text."""

    char_width: float = 8.0
    line_height: float = 20.0
    origin_left: float = 0.0
    origin_top: float = 0.0

    def coords_at(self, document: EditorDocument, position: int) -> Coords:
        line, column = document.line_column(position)
        return Coords(
            left=self.origin_left + column * self.char_width,
            top=self.origin_top + line * self.line_height,
        )


def menu_position(
    start: Coords,
    end: Coords,
    menu_width: float,
    menu_height: float,
    gap: float = 10.0,
) -> Coords:
    """Center a floating menu above a selection."""
    return Coords(
        left=(start.left + end.left) / 2 - menu_width / 2,
        top=start.top - menu_height - gap,
    )
