"""
Tests for the undo/redo history.
"""

from bailey.grid.undo import EditRecord, UndoRedoStack


def edit(n, col=0, row=0):
    return EditRecord(col=col, row=row, previous_content=f"v{n - 1}", new_content=f"v{n}")


class TestUndoRedoStack:
    def test_empty_stack(self):
        stack = UndoRedoStack()
        assert stack.undo() is None
        assert stack.redo() is None
        assert not stack.can_undo
        assert not stack.can_redo

    def test_undo_returns_latest_and_moves_it_to_redo(self):
        stack = UndoRedoStack()
        stack.push_edit(edit(1))
        stack.push_edit(edit(2))

        undone = stack.undo()
        assert undone.new_content == "v2"
        assert undone.previous_content == "v1"
        assert stack.undo_depth == 1
        assert stack.redo_depth == 1

    def test_redo_mirrors_undo(self):
        stack = UndoRedoStack()
        stack.push_edit(edit(1))
        undone = stack.undo()
        assert stack.redo() == undone
        assert stack.undo_depth == 1
        assert stack.redo_depth == 0

    def test_push_after_undo_discards_redo_branch(self):
        stack = UndoRedoStack()
        stack.push_edit(edit(1))
        stack.push_edit(edit(2))
        stack.undo()
        stack.push_edit(edit(3, row=1))
        assert not stack.can_redo
        assert stack.undo_depth == 2

    def test_clear(self):
        stack = UndoRedoStack()
        stack.push_edit(edit(1))
        stack.push_edit(edit(2))
        stack.undo()
        stack.clear()
        assert stack.undo_depth == 0
        assert stack.redo_depth == 0

    def test_bounded_to_100_entries(self):
        stack = UndoRedoStack()
        for n in range(1, 151):
            stack.push_edit(edit(n))
        assert stack.undo_depth == 100

        undone = []
        while stack.can_undo:
            undone.append(stack.undo())
        assert len(undone) == 100
        # The 50 oldest are gone; the oldest recoverable edit is #51
        assert undone[-1].new_content == "v51"
        assert stack.undo() is None

    def test_round_trip_restores_state(self):
        """N undos then N redos reproduce the state after the Nth edit."""
        state = {}
        stack = UndoRedoStack()
        for n in range(1, 8):
            coordinate = (n % 3, n)
            record = EditRecord(
                col=coordinate[0],
                row=coordinate[1],
                previous_content=state.get(coordinate, ""),
                new_content=f"arg {n}",
                previous_color=None,
                new_color="yellow" if n % 2 else None,
            )
            state[coordinate] = record.new_content
            stack.push_edit(record)
        final = dict(state)

        for _ in range(7):
            record = stack.undo()
            state[(record.col, record.row)] = record.previous_content
        assert all(value == "" for value in state.values())

        for _ in range(7):
            record = stack.redo()
            state[(record.col, record.row)] = record.new_content
        assert state == final
