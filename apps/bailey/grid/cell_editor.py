"""
Single-cell editor state machine.

A cell is either VIEWING (showing committed content, arrow keys belong to
the grid) or EDITING (a RichText draft with a caret/selection). Commits go
through the sanitizer and only reach on_commit when the content changed.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from bailey.grid.rich_text import RichText
from bailey.grid.sanitizer import sanitize_html

logger = logging.getLogger(__name__)

NAVIGATION_KEYS = {
    "ArrowUp": "up",
    "ArrowDown": "down",
    "ArrowLeft": "left",
    "ArrowRight": "right",
}

# Ctrl/Cmd + key while editing
SHORTCUTS = {
    "b": "bold",
    "u": "underline",
    "e": "highlight",
}


class EditorMode(enum.Enum):
    VIEWING = "viewing"
    EDITING = "editing"


@dataclass(frozen=True)
class KeyEvent:
    """A key press as delivered by the UI layer."""

    key: str
    ctrl: bool = False
    meta: bool = False
    shift: bool = False

    @property
    def modifier(self) -> bool:
        """Ctrl on most platforms, Cmd on macOS."""
        return self.ctrl or self.meta

    @property
    def printable(self) -> bool:
        return len(self.key) == 1 and not self.modifier


class CellEditor:
    """
    Editor for one cell.

    Args:
        content: Committed cell HTML
        on_commit: Called with the new sanitized HTML when a commit changes it
        on_navigate: Called with "up"/"down"/"left"/"right" navigation intents
        on_stop: Called whenever editing ends (commit or revert)
    """

    def __init__(
        self,
        content: str = "",
        on_commit: Optional[Callable[[str], None]] = None,
        on_navigate: Optional[Callable[[str], None]] = None,
        on_stop: Optional[Callable[[], None]] = None,
    ):
        self.content = sanitize_html(content)
        self.on_commit = on_commit
        self.on_navigate = on_navigate
        self.on_stop = on_stop
        self.mode = EditorMode.VIEWING
        self.draft: Optional[RichText] = None
        self.selection = (0, 0)
        self._modified = False

    @property
    def editing(self) -> bool:
        return self.mode == EditorMode.EDITING

    @property
    def value(self) -> str:
        """Current HTML: the draft while editing, else the committed content."""
        if self.editing and self.draft is not None:
            return sanitize_html(self.draft.to_html())
        return self.content

    def set_content(self, content: str) -> None:
        """Replace committed content from outside (undo, reorder). Ignored while editing."""
        if not self.editing:
            self.content = sanitize_html(content)

    # Mode transitions

    def start_editing(self, pending_input: Optional[str] = None) -> None:
        """Enter editing with the caret at the end; pending_input is typed first."""
        if self.editing:
            return
        self.mode = EditorMode.EDITING
        self.draft = RichText.from_html(self.content)
        end = len(self.draft)
        self.selection = (end, end)
        self._modified = False
        if pending_input:
            self.insert_text(pending_input)

    def click(self) -> None:
        self.start_editing()

    def blur(self) -> None:
        if self.editing:
            self.commit()
            self._stop()

    def revert(self) -> None:
        """Drop the draft and leave editing without committing."""
        if self.editing:
            self._stop()

    def _stop(self) -> None:
        self.mode = EditorMode.VIEWING
        self.draft = None
        self.selection = (0, 0)
        self._modified = False
        if self.on_stop:
            self.on_stop()

    def commit(self) -> bool:
        """
        Push the draft to on_commit if it differs from the committed content.

        Returns:
            True if on_commit was invoked
        """
        if not self.editing or self.draft is None or not self._modified:
            return False
        new_content = sanitize_html(self.draft.to_html())
        if new_content == self.content:
            return False
        self.content = new_content
        if self.on_commit:
            self.on_commit(new_content)
        return True

    def _navigate(self, direction: str) -> None:
        if self.on_navigate:
            self.on_navigate(direction)

    # Editing operations

    def select(self, start: int, end: Optional[int] = None) -> None:
        """Set the selection (plain-text offsets); end defaults to a caret."""
        if not self.editing:
            return
        size = len(self.draft)
        start = max(0, min(start, size))
        end = start if end is None else max(0, min(end, size))
        self.selection = (min(start, end), max(start, end))

    def insert_text(self, text: str) -> None:
        start, end = self.selection
        self.draft.insert_text(start, end, text)
        caret = start + len(text)
        self.selection = (caret, caret)
        self._modified = True

    def delete_backward(self) -> None:
        start, end = self.selection
        if start == end:
            if start == 0:
                return
            start -= 1
        self.selection = (start, end)
        self.insert_text("")

    def delete_forward(self) -> None:
        start, end = self.selection
        if start == end:
            if end >= len(self.draft):
                return
            end += 1
        self.selection = (start, end)
        self.insert_text("")

    def apply_shortcut(self, action: str) -> bool:
        start, end = self.selection
        if action == "bold":
            changed = self.draft.toggle_bold(start, end)
        elif action == "underline":
            changed = self.draft.toggle_underline(start, end)
        elif action == "highlight":
            changed = self.draft.cycle_highlight(start, end)
        else:
            raise ValueError(f"Unknown editor action: {action}")
        self._modified = self._modified or changed
        return changed

    # Keyboard

    def handle_key(self, event: KeyEvent) -> bool:
        """
        Route a key press.

        Returns:
            True if the editor consumed the key
        """
        if self.editing:
            return self._handle_editing_key(event)
        return self._handle_viewing_key(event)

    def _handle_viewing_key(self, event: KeyEvent) -> bool:
        if event.key == "Enter" and not event.modifier:
            self.start_editing()
            return True
        if event.key in NAVIGATION_KEYS:
            self._navigate(NAVIGATION_KEYS[event.key])
            return True
        if event.key == "Tab":
            self._navigate("left" if event.shift else "right")
            return True
        if event.printable:
            self.start_editing(pending_input=event.key)
            return True
        return False

    def _handle_editing_key(self, event: KeyEvent) -> bool:
        key = event.key

        if key == "Escape":
            self.revert()
            return True

        if key in ("ArrowUp", "ArrowDown"):
            self.commit()
            self._stop()
            self._navigate(NAVIGATION_KEYS[key])
            return True

        if key == "Enter":
            if event.shift:
                self.insert_text("\n")
                return True
            self.commit()
            self._stop()
            self._navigate("down")
            return True

        if key == "Tab":
            self.commit()
            self._stop()
            self._navigate("left" if event.shift else "right")
            return True

        if event.modifier and key.lower() in SHORTCUTS:
            self.apply_shortcut(SHORTCUTS[key.lower()])
            return True

        if key == "ArrowLeft":
            start, end = self.selection
            self.select(start - 1 if start == end else start)
            return True
        if key == "ArrowRight":
            start, end = self.selection
            self.select(end + 1 if start == end else end)
            return True
        if key == "Backspace":
            self.delete_backward()
            return True
        if key == "Delete":
            self.delete_forward()
            return True
        if event.printable:
            self.insert_text(key)
            return True
        return False
