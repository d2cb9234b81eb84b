"""
Constants shared by the flowing backend and the grid core.
"""

# Speech columns in speaking order
SPEECH_COLUMNS = ["1AC", "1NC", "2AC", "2NC", "1NR", "1AR", "2NR", "2AR"]

# Side and speech length (minutes) per column
COLUMN_META = {
    "1AC": {"side": "aff", "minutes": 8},
    "1NC": {"side": "neg", "minutes": 8},
    "2AC": {"side": "aff", "minutes": 8},
    "2NC": {"side": "neg", "minutes": 8},
    "1NR": {"side": "neg", "minutes": 5},
    "1AR": {"side": "aff", "minutes": 5},
    "2NR": {"side": "neg", "minutes": 5},
    "2AR": {"side": "aff", "minutes": 5},
}

# Round labels, in display order (practice, prelims, elims)
ROUND_LABELS = [
    "Practice",
    "1", "2", "3", "4", "5", "6", "7", "8",
    "Doubles", "Octos", "Quarters", "Semis", "Finals",
]

# Highlight colours a cell (or an inline mark) may carry
CELL_COLORS = ("yellow", "green", "blue")

# Order the inline highlight shortcut walks through before removing the mark
HIGHLIGHT_CYCLE = ["yellow", "green", "blue"]

# Autosave
DEBOUNCE_MS = 500
NOTES_DEBOUNCE_MS = 500

# Undo history
MAX_UNDO_STACK = 100
