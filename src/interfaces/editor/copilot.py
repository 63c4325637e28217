"""Editor shell: binds selection events and menu actions to the transform API.

The rich-text widget itself is out of scope; this controller works against
`EditorDocument` and a layout object that turns positions into screen
coordinates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from src.application.schemas.transform import TransformAction
from src.domain.entities.document import (
    Coords,
    EditorDocument,
    MonospaceLayout,
    Selection,
    menu_position,
)
from src.shared.logging import get_logger

from .client import CopilotClient, TransformFailed

log = get_logger(__name__)

MSG_EMPTY_SELECTION = "Please select text to transform"
MSG_SUCCESS = "Text transformed successfully!"


class Layout(Protocol):
    def coords_at(self, document: EditorDocument, position: int) -> Coords: ...


@dataclass
class Notice:
    """Dismissible inline message."""

    kind: str  # "error" | "success"
    message: str


@dataclass
class ActionMenu:
    visible: bool = False
    left: float = 0.0
    top: float = 0.0
    width: float = 180.0
    height: float = 40.0


class CopilotEditor:
    """Selection-driven AI actions on top of an `EditorDocument`."""

    def __init__(
        self,
        document: EditorDocument,
        client: CopilotClient,
        layout: Layout | None = None,
    ):
        self.document = document
        self.client = client
        self.layout = layout or MonospaceLayout()
        self.menu = ActionMenu()
        self.notice: Notice | None = None
        self.last_result: str | None = None
        self._in_flight: set[tuple[int, int]] = set()

    @property
    def busy(self) -> bool:
        return bool(self._in_flight)

    def select(self, start: int, end: int) -> Selection:
        selection = self.document.select(start, end)
        self._update_menu(selection)
        return selection

    def _update_menu(self, selection: Selection) -> None:
        if selection.is_empty:
            self.menu.visible = False
            return
        pos = menu_position(
            self.layout.coords_at(self.document, selection.start),
            self.layout.coords_at(self.document, selection.end),
            self.menu.width,
            self.menu.height,
        )
        self.menu.visible = True
        self.menu.left, self.menu.top = pos.left, pos.top

    def is_pending(self, selection: Selection | None = None) -> bool:
        selection = selection or self.document.selection
        return selection.as_tuple() in self._in_flight

    async def apply_action(self, action: TransformAction | str) -> bool:
        """Run one transform against the current selection.

        Returns True when the result was spliced into the document. On any
        failure the document is left as it was and `notice` holds the error.
        """
        try:
            action = TransformAction(action)
        except ValueError:
            self.notice = Notice("error", f"Unsupported action: {action}")
            return False

        selection = self.document.selection
        text = self.document.text_between(selection)

        if not text.strip():
            self.notice = Notice("error", MSG_EMPTY_SELECTION)
            return False

        key = selection.as_tuple()
        if key in self._in_flight:
            log.debug("transform_already_pending", extra={"selection": key})
            return False

        self._in_flight.add(key)
        self.notice = None
        try:
            result = await self.client.transform(action, text)
        except TransformFailed as exc:
            log.warning(
                "transform_failed",
                extra={"action": action.value, "status_code": exc.status_code},
            )
            self.notice = Notice("error", exc.message)
            return False
        finally:
            self._in_flight.discard(key)

        # the document may have changed meanwhile; replace_range clamps
        inserted = self.document.replace_range(selection, result)
        self._update_menu(inserted)
        self.last_result = result
        self.notice = Notice("success", MSG_SUCCESS)
        return True

    def dismiss_notice(self) -> None:
        self.notice = None

    def clear_result(self) -> None:
        self.last_result = None
