"""
Grid view controller: keyboard focus, cell editing, undo/redo and drag reorder.

Presentation is left to the UI layer; this class holds the logical focus
position, owns the active CellEditor and turns user gestures into FlowGrid
mutations.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from bailey.grid.cell_editor import CellEditor, KeyEvent, NAVIGATION_KEYS
from bailey.grid.flow_grid import FlowGrid, UNSET
from bailey.grid.undo import EditRecord, UndoRedoStack
from bailey.utils.constants import SPEECH_COLUMNS

logger = logging.getLogger(__name__)


class GridView:
    """
    Args:
        grid: Data for the active flow tab
        undo: Edit history; a fresh stack is created when omitted
        columns: Column labels, one column per speech
    """

    def __init__(
        self,
        grid: FlowGrid,
        undo: Optional[UndoRedoStack] = None,
        columns: Sequence[str] = SPEECH_COLUMNS,
    ):
        self.grid = grid
        self.undo_stack = undo if undo is not None else UndoRedoStack()
        self.columns = list(columns)
        self.focus: Tuple[int, int] = (0, 0)
        self.editor: Optional[CellEditor] = None

    # Layout

    def row_slots(self, col: int) -> int:
        """Rows shown in a column: its row count plus one empty slot."""
        return self.grid.get_column_row_count(col) + 1

    def column_cells(self, col: int) -> List[dict]:
        """Visible slots of a column as dicts with row, content and color."""
        return [
            {
                "row": row,
                "content": self.grid.get_cell_content(col, row),
                "color": self.grid.get_cell_color(col, row),
            }
            for row in range(self.row_slots(col))
        ]

    # Focus

    def focus_cell(self, col: int, row: int) -> Tuple[int, int]:
        """Move focus, clamped to the grid."""
        col = max(0, min(col, len(self.columns) - 1))
        row = max(0, min(row, self.row_slots(col) - 1))
        self.focus = (col, row)
        return self.focus

    def navigate(self, direction: str) -> Tuple[int, int]:
        """Move focus one cell; edges clamp, there is no wraparound."""
        col, row = self.focus
        if direction == "up":
            row -= 1
        elif direction == "down":
            row += 1
        elif direction == "left":
            col -= 1
        elif direction == "right":
            col += 1
        else:
            raise ValueError(f"Unknown direction: {direction}")
        return self.focus_cell(col, row)

    # Editing

    @property
    def editing(self) -> bool:
        return self.editor is not None and self.editor.editing

    def start_editing(self, pending_input: Optional[str] = None) -> CellEditor:
        """Open an editor on the focused cell."""
        col, row = self.focus
        self.editor = CellEditor(
            self.grid.get_cell_content(col, row),
            on_commit=lambda content: self.commit_cell(col, row, content),
            on_navigate=self.navigate,
            on_stop=self._editor_stopped,
        )
        self.editor.start_editing(pending_input=pending_input)
        return self.editor

    def _editor_stopped(self) -> None:
        self.editor = None

    def commit_cell(self, col: int, row: int, content: str, color=UNSET) -> bool:
        """
        Record an edit in the undo history and write it to the grid.

        Returns:
            False if neither content nor colour changed
        """
        previous_content = self.grid.get_cell_content(col, row)
        previous_color = self.grid.get_cell_color(col, row)
        new_color = previous_color if color is UNSET else color
        if content == previous_content and new_color == previous_color:
            return False
        self.undo_stack.push_edit(EditRecord(
            col=col,
            row=row,
            previous_content=previous_content,
            new_content=content,
            previous_color=previous_color,
            new_color=new_color,
        ))
        self.grid.update_cell(col, row, content, new_color)
        return True

    def set_cell_color(self, col: int, row: int, color: Optional[str]) -> bool:
        return self.commit_cell(col, row, self.grid.get_cell_content(col, row), color)

    def undo(self) -> Optional[EditRecord]:
        edit = self.undo_stack.undo()
        if edit is None:
            return None
        self.grid.update_cell(edit.col, edit.row, edit.previous_content, edit.previous_color)
        self.focus = (edit.col, edit.row)
        return edit

    def redo(self) -> Optional[EditRecord]:
        edit = self.undo_stack.redo()
        if edit is None:
            return None
        self.grid.update_cell(edit.col, edit.row, edit.new_content, edit.new_color)
        self.focus = (edit.col, edit.row)
        return edit

    # Drag and drop

    def move_within_column(self, col: int, from_row: int, to_index: int) -> bool:
        """
        Reorder a column by dragging one cell.

        The column's cells with content or a colour form an ordered list; the
        dragged cell is removed and reinserted at to_index, then the column is
        rewritten with sequential rows through one bulk update. Rows left over
        at the end are cleared, so holes in the column disappear.

        Returns:
            False if from_row holds neither content nor a colour
        """
        row_count = self.grid.get_column_row_count(col)
        entries = [
            (row, self.grid.get_cell_content(col, row), self.grid.get_cell_color(col, row))
            for row in range(row_count)
            if self.grid.get_cell_content(col, row).strip() or self.grid.get_cell_color(col, row)
        ]
        rows = [entry[0] for entry in entries]
        if from_row not in rows:
            return False

        moved = entries.pop(rows.index(from_row))
        to_index = max(0, min(to_index, len(entries)))
        entries.insert(to_index, moved)

        updates = [
            {"col": col, "row": i, "content": content, "color": color}
            for i, (_, content, color) in enumerate(entries)
        ]
        for row in range(len(entries), row_count):
            if self.grid.get_cell(col, row) is not None:
                updates.append({"col": col, "row": row, "content": "", "color": None})
        self.grid.bulk_update_cells(updates)
        return True

    def move_across_columns(self, src_col: int, src_row: int, dst_col: int, dst_row: int) -> bool:
        """Move a cell to another coordinate; the source is cleared."""
        if (src_col, src_row) == (dst_col, dst_row):
            return False
        content = self.grid.get_cell_content(src_col, src_row)
        color = self.grid.get_cell_color(src_col, src_row)
        self.grid.update_cell(dst_col, dst_row, content, color)
        self.grid.update_cell(src_col, src_row, "", None)
        return True

    # Tabs

    async def select_flow(self, flow_id: int) -> None:
        """Switch tabs: the open editor commits, history is dropped, the old tab is flushed."""
        if self.editor is not None:
            self.editor.blur()
        self.undo_stack.clear()
        await self.grid.select_flow(flow_id)
        self.focus = (0, 0)

    # Keyboard

    async def handle_key(self, event: KeyEvent) -> bool:
        """
        Route a key press at grid level.

        While a cell is being edited the key goes to its editor. Otherwise
        arrows and Tab move focus, Enter or a printable key starts editing and
        Ctrl/Cmd shortcuts drive undo (Z), redo (Shift+Z or Y) and save (S).

        Returns:
            True if the key was consumed
        """
        if self.editing:
            return self.editor.handle_key(event)

        key = event.key.lower() if len(event.key) == 1 else event.key
        if event.modifier:
            if key == "z":
                if event.shift:
                    self.redo()
                else:
                    self.undo()
                return True
            if key == "y":
                self.redo()
                return True
            if key == "s":
                await self.grid.save_now()
                return True
            return False

        if event.key in NAVIGATION_KEYS:
            self.navigate(NAVIGATION_KEYS[event.key])
            return True
        if event.key == "Tab":
            self.navigate("left" if event.shift else "right")
            return True
        if event.key == "Enter":
            self.start_editing()
            return True
        if event.printable:
            self.start_editing(pending_input=event.key)
            return True
        return False
