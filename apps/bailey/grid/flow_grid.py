"""
In-memory cell map for the active flow tab with write-behind persistence.

Edits land in `cells` immediately and are recorded in a dirty map keyed by
flow id and coordinate, so a pending edit is always written to the tab it was
made on. A trailing-edge debounce flushes each flow's dirty coordinates as one
batched upsert. A flow's dirty map is cleared before the store is called; a
failed flush sets `error` and is not retried.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from bailey.grid.scheduler import AsyncioScheduler, Debouncer, Scheduler
from bailey.utils.constants import DEBOUNCE_MS

logger = logging.getLogger(__name__)

# Sentinel for "keep the cell's current colour"
UNSET = object()

Coordinate = Tuple[int, int]


def _error_message(error: Exception, fallback: str) -> str:
    return str(error) or fallback


class FlowGrid:
    """
    Grid data for one round.

    Args:
        store: Backend store (see bailey.grid.stores)
        round_id: Round whose flow tabs are shown
        scheduler: Timer source; defaults to the asyncio event loop
        debounce_ms: Quiet period before dirty cells are flushed
    """

    def __init__(
        self,
        store,
        round_id: Optional[int],
        scheduler: Optional[Scheduler] = None,
        debounce_ms: int = DEBOUNCE_MS,
    ):
        self.store = store
        self.round_id = round_id
        self.scheduler = scheduler or AsyncioScheduler()
        self.flows: List[Dict] = []
        self.active_flow_id: Optional[int] = None
        self.cells: Dict[Coordinate, Dict] = {}
        self.loading = True
        self.error: Optional[str] = None
        self._dirty: Dict[int, Dict[Coordinate, Dict]] = {}
        self._debouncer = Debouncer(self.scheduler, debounce_ms, self.flush)

    @property
    def active_flow(self) -> Optional[Dict]:
        for flow in self.flows:
            if flow["id"] == self.active_flow_id:
                return flow
        return None

    @property
    def dirty(self) -> Dict[Coordinate, Dict]:
        """Pending writes of the active flow, keyed by (col, row)."""
        return dict(self._dirty.get(self.active_flow_id, {}))

    @property
    def save_pending(self) -> bool:
        return self._debouncer.pending

    # Loading

    async def load(self) -> None:
        """Load the round's flow tabs, keeping the current selection if it still exists."""
        if self.round_id is None:
            self.flows = []
            self.active_flow_id = None
            self.cells = {}
            self.loading = False
            return
        self.loading = True
        self.error = None
        try:
            self.flows = await self.store.list_flows(self.round_id)
        except Exception as e:
            logger.error(f"Error loading flows for round {self.round_id}: {e}", exc_info=True)
            self.error = _error_message(e, "Failed to load flows")
            self.loading = False
            return

        ids = [flow["id"] for flow in self.flows]
        if self.active_flow_id not in ids:
            self.active_flow_id = ids[0] if ids else None
        await self._load_cells()
        self.loading = False

    async def _load_cells(self) -> None:
        self.cells = {}
        if self.active_flow_id is None:
            return
        try:
            data = await self.store.list_cells(self.active_flow_id)
        except Exception as e:
            logger.error(f"Error loading cells for flow {self.active_flow_id}: {e}", exc_info=True)
            self.error = _error_message(e, "Failed to load cells")
            return
        cells = {(c["column_index"], c["row_index"]): c for c in data}
        for key, pending in self._dirty.get(self.active_flow_id, {}).items():
            cells[key] = {**cells.get(key, {}), "flow_id": self.active_flow_id, **pending}
        self.cells = cells

    # Cell accessors

    def get_cell(self, col: int, row: int) -> Optional[Dict]:
        return self.cells.get((col, row))

    def get_cell_content(self, col: int, row: int) -> str:
        cell = self.cells.get((col, row))
        return cell["content"] if cell and cell.get("content") else ""

    def get_cell_color(self, col: int, row: int) -> Optional[str]:
        cell = self.cells.get((col, row))
        return cell.get("color") if cell else None

    def get_column_row_count(self, col: int) -> int:
        """One past the highest row of the column holding non-empty content."""
        rows = [
            row for (c, row), cell in self.cells.items()
            if c == col and (cell.get("content") or "").strip()
        ]
        return max(rows) + 1 if rows else 0

    # Mutations

    def _set_cell(self, col: int, row: int, content: str, color: Optional[str]) -> None:
        key = (col, row)
        existing = self.cells.get(key, {})
        self.cells[key] = {
            **existing,
            "flow_id": self.active_flow_id,
            "column_index": col,
            "row_index": row,
            "content": content,
            "color": color,
        }
        self._dirty.setdefault(self.active_flow_id, {})[key] = {
            "column_index": col,
            "row_index": row,
            "content": content,
            "color": color,
        }

    def update_cell(self, col: int, row: int, content: str, color=UNSET) -> None:
        """Write one cell and (re)start the autosave debounce. Color defaults to the current one."""
        if self.active_flow_id is None:
            return
        if color is UNSET:
            color = self.get_cell_color(col, row)
        self._set_cell(col, row, content, color)
        self._debouncer.trigger()

    def update_cell_color(self, col: int, row: int, color: Optional[str]) -> None:
        self.update_cell(col, row, self.get_cell_content(col, row), color)

    def bulk_update_cells(self, updates: Iterable[Dict]) -> None:
        """
        Write several cells with a single scheduled flush.

        Args:
            updates: Dicts with col, row, content and color
        """
        if self.active_flow_id is None:
            return
        for update in updates:
            self._set_cell(update["col"], update["row"], update["content"], update.get("color"))
        self._debouncer.trigger()

    # Persistence

    async def _flush_to(self, flow_id: Optional[int]) -> bool:
        pending = self._dirty.pop(flow_id, None)
        if flow_id is None or not pending:
            return False
        to_save = list(pending.values())
        try:
            await self.store.upsert_cells(flow_id, to_save)
        except Exception as e:
            logger.error(f"Error saving {len(to_save)} cell(s) to flow {flow_id}: {e}", exc_info=True)
            self.error = _error_message(e, "Failed to save cells")
            return False
        return True

    async def flush(self) -> bool:
        """Send each flow's dirty cells to that flow, one upsert per flow."""
        saved = False
        for flow_id in list(self._dirty):
            saved = await self._flush_to(flow_id) or saved
        return saved

    async def save_now(self) -> bool:
        """Cancel the pending debounce and flush immediately."""
        self._debouncer.cancel()
        return await self.flush()

    async def unload(self) -> None:
        """Best-effort flush when the page goes away; failures are only logged."""
        self._debouncer.cancel()
        while self._dirty:
            flow_id, pending = self._dirty.popitem()
            if flow_id is None or not pending:
                continue
            try:
                await self.store.flush_beacon(flow_id, list(pending.values()))
            except Exception as e:
                logger.warning(f"Unload flush for flow {flow_id} failed: {e}")

    # Flow tabs

    async def select_flow(self, flow_id: int) -> None:
        """Switch tabs. The previous tab's dirty cells are flushed before the pointer moves."""
        if flow_id == self.active_flow_id:
            return
        self._debouncer.cancel()
        await self._flush_to(self.active_flow_id)
        self.active_flow_id = flow_id
        await self._load_cells()
        if self._dirty:
            # edits made while the previous tab was flushing
            self._debouncer.trigger()

    async def add_flow(self, position_name: str, initiated_by: str = "aff") -> Optional[Dict]:
        """Create a tab at the end of the tab bar and make it active."""
        if self.round_id is None:
            return None
        try:
            flow = await self.store.create_flow(
                self.round_id,
                position_name=position_name,
                initiated_by=initiated_by,
                display_order=len(self.flows),
            )
        except Exception as e:
            logger.error(f"Error creating flow in round {self.round_id}: {e}", exc_info=True)
            self.error = _error_message(e, "Failed to create flow")
            return None
        self._debouncer.cancel()
        await self._flush_to(self.active_flow_id)
        self.flows.append(flow)
        self.active_flow_id = flow["id"]
        self.cells = {}
        if self._dirty:
            self._debouncer.trigger()
        return flow

    async def rename_flow(self, flow_id: int, position_name: str) -> Optional[Dict]:
        try:
            updated = await self.store.update_flow(flow_id, position_name=position_name)
        except Exception as e:
            logger.error(f"Error renaming flow {flow_id}: {e}", exc_info=True)
            self.error = _error_message(e, "Failed to rename flow")
            return None
        self.flows = [updated if f["id"] == flow_id else f for f in self.flows]
        return updated

    async def remove_flow(self, flow_id: int) -> bool:
        """Delete a tab; if it was active, the first remaining tab becomes active."""
        self._dirty.pop(flow_id, None)
        try:
            await self.store.delete_flow(flow_id)
        except Exception as e:
            logger.error(f"Error deleting flow {flow_id}: {e}", exc_info=True)
            self.error = _error_message(e, "Failed to delete flow")
            return False
        self.flows = [f for f in self.flows if f["id"] != flow_id]
        if self.active_flow_id == flow_id:
            self.active_flow_id = self.flows[0]["id"] if self.flows else None
            await self._load_cells()
        return True

    async def reorder_flows(self, flow_ids: List[int]) -> bool:
        """Apply a new tab order given as a list of flow ids."""
        by_id = {f["id"]: f for f in self.flows}
        self.flows = [
            {**by_id[flow_id], "display_order": i}
            for i, flow_id in enumerate(flow_ids)
            if flow_id in by_id
        ]
        updates = [{"id": f["id"], "display_order": f["display_order"]} for f in self.flows]
        try:
            await self.store.reorder_flows(updates)
        except Exception as e:
            logger.error(f"Error reordering flows: {e}", exc_info=True)
            self.error = _error_message(e, "Failed to reorder flows")
            return False
        return True
