"""
UI-independent model of the flow editor: sanitizer, rich text, cell editor,
undo history, grid data with debounced autosave, grid view and timers.
"""
