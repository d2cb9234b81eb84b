"""
Bounded linear undo/redo history of cell edits.
"""

from dataclasses import dataclass
from typing import List, Optional

from bailey.utils.constants import MAX_UNDO_STACK


@dataclass(frozen=True)
class EditRecord:
    """Snapshot of one committed cell mutation."""

    col: int
    row: int
    previous_content: str
    new_content: str
    previous_color: Optional[str] = None
    new_color: Optional[str] = None


class UndoRedoStack:
    """
    Two stacks of EditRecords.

    push_edit() discards the redo branch; the oldest entries are evicted
    once the undo stack exceeds max_size.
    """

    def __init__(self, max_size: int = MAX_UNDO_STACK):
        self.max_size = max_size
        self._undo: List[EditRecord] = []
        self._redo: List[EditRecord] = []

    def push_edit(self, edit: EditRecord) -> None:
        self._undo.append(edit)
        if len(self._undo) > self.max_size:
            del self._undo[: len(self._undo) - self.max_size]
        self._redo.clear()

    def undo(self) -> Optional[EditRecord]:
        """Pop the latest edit; the caller applies its previous values."""
        if not self._undo:
            return None
        edit = self._undo.pop()
        self._redo.append(edit)
        return edit

    def redo(self) -> Optional[EditRecord]:
        """Pop the latest undone edit; the caller applies its new values."""
        if not self._redo:
            return None
        edit = self._redo.pop()
        self._undo.append(edit)
        return edit

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)
