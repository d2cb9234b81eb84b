"""
Autosaving free-form notes for a flow tab or a round.
"""

import logging
from typing import Dict, Optional

from bailey.grid.scheduler import AsyncioScheduler, Debouncer, Scheduler
from bailey.utils.constants import NOTES_DEBOUNCE_MS

logger = logging.getLogger(__name__)

NOTE_FIELDS = {
    "flow": ("notes_aff", "notes_neg"),
    "round": ("notes_aff", "notes_neg", "notes_decision"),
}


class NotesAutosave:
    """
    Notes editor state with debounced saving.

    Nothing is written until load() has completed, so an edit racing the
    initial fetch can never overwrite stored notes with blanks.

    Args:
        store: Backend store (see bailey.grid.stores)
        kind: "flow" or "round"
        target_id: Flow or round id
    """

    def __init__(
        self,
        store,
        kind: str,
        target_id: int,
        scheduler: Optional[Scheduler] = None,
        debounce_ms: int = NOTES_DEBOUNCE_MS,
    ):
        if kind not in NOTE_FIELDS:
            raise ValueError(f"Unknown notes kind: {kind}")
        self.store = store
        self.kind = kind
        self.target_id = target_id
        self.fields = NOTE_FIELDS[kind]
        self.notes: Dict[str, str] = {field: "" for field in self.fields}
        self.loaded = False
        self.error: Optional[str] = None
        self._debouncer = Debouncer(scheduler or AsyncioScheduler(), debounce_ms, self.save)

    async def load(self) -> None:
        try:
            if self.kind == "flow":
                data = await self.store.get_flow_analytics(self.target_id)
            else:
                data = await self.store.get_round_analytics(self.target_id)
            if data:
                for field in self.fields:
                    self.notes[field] = data.get(field) or ""
        except Exception as e:
            logger.error(f"Error loading {self.kind} notes {self.target_id}: {e}", exc_info=True)
            self.error = str(e) or "Failed to load notes"
        finally:
            self.loaded = True

    def set_note(self, field: str, value: str) -> None:
        if field not in self.fields:
            raise ValueError(f"Unknown notes field: {field}")
        self.notes[field] = value
        if self.loaded:
            self._debouncer.trigger()

    async def save(self) -> bool:
        self._debouncer.cancel()
        if not self.loaded:
            return False
        try:
            if self.kind == "flow":
                await self.store.upsert_flow_analytics(self.target_id, **self.notes)
            else:
                await self.store.upsert_round_analytics(self.target_id, **self.notes)
        except Exception as e:
            logger.error(f"Error saving {self.kind} notes {self.target_id}: {e}", exc_info=True)
            self.error = str(e) or "Failed to save notes"
            return False
        return True

    async def close(self) -> None:
        """Save whatever is pending when the notes panel goes away."""
        await self.save()
