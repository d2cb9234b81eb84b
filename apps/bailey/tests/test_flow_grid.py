"""
Tests for FlowGrid: cell map, debounced batched flushes and tab switching.
"""

import asyncio

import pytest

from bailey.grid.flow_grid import FlowGrid

ROUND_ID = 7


async def loaded_grid(store, scheduler, tabs=("Case",)):
    for name in tabs:
        store.seed_flow(ROUND_ID, name)
    grid = FlowGrid(store, ROUND_ID, scheduler=scheduler)
    await grid.load()
    return grid


# ============================================================================
# Loading Tests
# ============================================================================

@pytest.mark.asyncio
async def test_load_selects_first_tab_and_its_cells(store, scheduler):
    case = store.seed_flow(ROUND_ID, "Case")
    store.seed_flow(ROUND_ID, "T")
    store.seed_cell(case["id"], 0, 0, "Plan", "yellow")

    grid = FlowGrid(store, ROUND_ID, scheduler=scheduler)
    assert grid.loading
    await grid.load()

    assert not grid.loading
    assert grid.active_flow_id == case["id"]
    assert grid.active_flow["position_name"] == "Case"
    assert [f["position_name"] for f in grid.flows] == ["Case", "T"]
    assert grid.get_cell_content(0, 0) == "Plan"
    assert grid.get_cell_color(0, 0) == "yellow"


@pytest.mark.asyncio
async def test_reload_keeps_valid_selection(store, scheduler):
    grid = await loaded_grid(store, scheduler, tabs=("Case", "DA"))
    second = grid.flows[1]["id"]
    await grid.select_flow(second)
    await grid.load()
    assert grid.active_flow_id == second


@pytest.mark.asyncio
async def test_round_without_tabs(store, scheduler):
    grid = FlowGrid(store, ROUND_ID, scheduler=scheduler)
    await grid.load()
    assert grid.flows == []
    assert grid.active_flow_id is None
    assert grid.cells == {}


@pytest.mark.asyncio
async def test_no_round(store, scheduler):
    grid = FlowGrid(store, None, scheduler=scheduler)
    await grid.load()
    assert not grid.loading
    assert store.calls == []


@pytest.mark.asyncio
async def test_load_failure_sets_error(store, scheduler):
    store.fail_loads = True
    grid = FlowGrid(store, ROUND_ID, scheduler=scheduler)
    await grid.load()
    assert grid.error == "Failed to fetch"
    assert not grid.loading


# ============================================================================
# Cell Accessors Tests
# ============================================================================

@pytest.mark.asyncio
async def test_unwritten_cells_have_defaults(store, scheduler):
    grid = await loaded_grid(store, scheduler)
    for col, row in [(0, 0), (7, 99), (3, 1000)]:
        assert grid.get_cell_content(col, row) == ""
        assert grid.get_cell_color(col, row) is None
        assert grid.get_cell(col, row) is None


@pytest.mark.asyncio
async def test_row_count_ignores_trailing_empty_cells(store, scheduler):
    grid = await loaded_grid(store, scheduler)
    grid.update_cell(1, 0, "a")
    grid.update_cell(1, 4, "b")
    grid.update_cell(1, 6, "   ")
    assert grid.get_column_row_count(1) == 5
    assert grid.get_column_row_count(2) == 0


@pytest.mark.asyncio
async def test_cleared_cell_leaves_hole(store, scheduler):
    grid = await loaded_grid(store, scheduler)
    grid.update_cell(0, 0, "a")
    grid.update_cell(0, 1, "b")
    grid.update_cell(0, 2, "c")
    grid.update_cell(0, 1, "")
    assert grid.get_column_row_count(0) == 3
    assert grid.get_cell_content(0, 1) == ""


@pytest.mark.asyncio
async def test_update_keeps_color_unless_given(store, scheduler):
    grid = await loaded_grid(store, scheduler)
    grid.update_cell(0, 0, "a", "green")
    grid.update_cell(0, 0, "b")
    assert grid.get_cell_color(0, 0) == "green"
    grid.update_cell(0, 0, "b", None)
    assert grid.get_cell_color(0, 0) is None


@pytest.mark.asyncio
async def test_update_cell_color(store, scheduler):
    grid = await loaded_grid(store, scheduler)
    grid.update_cell(2, 3, "link turn")
    grid.update_cell_color(2, 3, "blue")
    assert grid.get_cell_content(2, 3) == "link turn"
    assert grid.get_cell_color(2, 3) == "blue"


@pytest.mark.asyncio
async def test_updates_without_active_flow_are_ignored(store, scheduler):
    grid = FlowGrid(store, ROUND_ID, scheduler=scheduler)
    await grid.load()
    grid.update_cell(0, 0, "x")
    grid.bulk_update_cells([{"col": 0, "row": 1, "content": "y", "color": None}])
    assert grid.cells == {}
    assert grid.dirty == {}
    assert not grid.save_pending


# ============================================================================
# Debounced Flush Tests
# ============================================================================

@pytest.mark.asyncio
async def test_edits_coalesce_into_one_flush(store, scheduler):
    grid = await loaded_grid(store, scheduler)
    flow_id = grid.active_flow_id

    grid.update_cell(0, 0, "first")
    await scheduler.advance(200)
    grid.update_cell(0, 0, "final")

    await scheduler.advance(499)
    assert store.upserts == []
    assert grid.dirty

    await scheduler.advance(1)
    assert scheduler.now() == 700
    assert store.upserts == [
        (flow_id, [{"column_index": 0, "row_index": 0, "content": "final", "color": None}])
    ]
    assert grid.dirty == {}

    await scheduler.advance(5000)
    assert len(store.upserts) == 1


@pytest.mark.asyncio
async def test_all_dirty_coordinates_in_one_batch(store, scheduler):
    grid = await loaded_grid(store, scheduler)
    grid.update_cell(0, 0, "a")
    grid.update_cell(1, 0, "b", "yellow")
    grid.update_cell(0, 1, "c")
    await scheduler.advance(500)

    assert len(store.upserts) == 1
    _, cells = store.upserts[0]
    assert sorted((c["column_index"], c["row_index"]) for c in cells) == [(0, 0), (0, 1), (1, 0)]


@pytest.mark.asyncio
async def test_bulk_update_schedules_single_flush(store, scheduler):
    grid = await loaded_grid(store, scheduler)
    grid.bulk_update_cells([
        {"col": 0, "row": 0, "content": "x", "color": None},
        {"col": 0, "row": 1, "content": "y", "color": "green"},
    ])
    await scheduler.advance(500)
    assert len(store.upserts) == 1
    assert len(store.upserts[0][1]) == 2


@pytest.mark.asyncio
async def test_save_now_cancels_timer_and_flushes(store, scheduler):
    grid = await loaded_grid(store, scheduler)
    grid.update_cell(0, 0, "x")
    assert grid.save_pending

    assert await grid.save_now() is True
    assert not grid.save_pending
    assert len(store.upserts) == 1

    await scheduler.advance(1000)
    assert len(store.upserts) == 1


@pytest.mark.asyncio
async def test_save_now_with_nothing_dirty(store, scheduler):
    grid = await loaded_grid(store, scheduler)
    assert await grid.save_now() is False
    assert store.upserts == []


@pytest.mark.asyncio
async def test_failed_flush_sets_error_without_retry(store, scheduler):
    grid = await loaded_grid(store, scheduler)
    store.fail_upserts = True
    grid.update_cell(0, 0, "lost")
    await scheduler.advance(500)

    assert grid.error == "Network request failed"
    assert grid.dirty == {}
    assert grid.get_cell_content(0, 0) == "lost"

    await scheduler.advance(10_000)
    assert len(store.upserts) == 1


@pytest.mark.asyncio
async def test_unload_sends_beacon(store, scheduler):
    grid = await loaded_grid(store, scheduler)
    grid.update_cell(3, 2, "last words")
    await grid.unload()

    assert store.upserts == []
    assert store.beacons == [
        (grid.active_flow_id, [{"column_index": 3, "row_index": 2, "content": "last words", "color": None}])
    ]
    await scheduler.advance(1000)
    assert store.upserts == []


# ============================================================================
# Flow Tabs Tests
# ============================================================================

@pytest.mark.asyncio
async def test_switch_flushes_previous_tab_first(store, scheduler):
    grid = await loaded_grid(store, scheduler, tabs=("Case", "DA"))
    case_id, da_id = grid.flows[0]["id"], grid.flows[1]["id"]
    store.seed_cell(da_id, 1, 0, "DA shell")

    grid.update_cell(0, 0, "case arg")
    await grid.select_flow(da_id)

    assert store.upserts == [
        (case_id, [{"column_index": 0, "row_index": 0, "content": "case arg", "color": None}])
    ]
    assert store.calls.index("upsert_cells") < len(store.calls) - 1
    assert store.calls[-1] == "list_cells"
    assert grid.active_flow_id == da_id
    assert grid.get_cell_content(1, 0) == "DA shell"
    assert grid.get_cell_content(0, 0) == ""

    await scheduler.advance(1000)
    assert len(store.upserts) == 1


@pytest.mark.asyncio
async def test_edit_during_tab_switch_is_saved_to_its_own_tab(store, scheduler, monkeypatch):
    grid = await loaded_grid(store, scheduler, tabs=("Case", "DA"))
    case_id, da_id = grid.flows[0]["id"], grid.flows[1]["id"]

    release = asyncio.Event()
    upsert_cells = store.upsert_cells

    async def slow_upsert(flow_id, cells):
        await release.wait()
        return await upsert_cells(flow_id, cells)

    monkeypatch.setattr(store, "upsert_cells", slow_upsert)

    grid.update_cell(0, 0, "case arg")
    switch = asyncio.create_task(grid.select_flow(da_id))
    await asyncio.sleep(0)
    grid.update_cell(0, 1, "typed on Case")
    release.set()
    await switch
    await scheduler.advance(1000)

    assert [(flow_id, [c["content"] for c in cells]) for flow_id, cells in store.upserts] == [
        (case_id, ["case arg"]),
        (case_id, ["typed on Case"]),
    ]
    assert store.cells[da_id] == {}
    assert grid.active_flow_id == da_id
    assert grid.get_cell_content(0, 1) == ""


@pytest.mark.asyncio
async def test_reload_that_moves_selection_keeps_pending_edits_on_their_tab(store, scheduler):
    grid = await loaded_grid(store, scheduler, tabs=("Case", "DA"))
    case_id, da_id = grid.flows[0]["id"], grid.flows[1]["id"]
    grid.update_cell(2, 0, "perm")

    # Case disappears from the tab list, e.g. deleted from another window
    del store.flows[case_id]
    await grid.load()
    assert grid.active_flow_id == da_id
    assert grid.dirty == {}

    await scheduler.advance(500)
    assert [(flow_id, [c["content"] for c in cells]) for flow_id, cells in store.upserts] == [
        (case_id, ["perm"]),
    ]


@pytest.mark.asyncio
async def test_select_same_flow_is_noop(store, scheduler):
    grid = await loaded_grid(store, scheduler)
    calls = list(store.calls)
    await grid.select_flow(grid.active_flow_id)
    assert store.calls == calls


@pytest.mark.asyncio
async def test_add_flow_appends_and_activates(store, scheduler):
    grid = await loaded_grid(store, scheduler, tabs=("Case", "DA"))
    flow = await grid.add_flow("K", initiated_by="neg")
    assert flow["display_order"] == 2
    assert flow["initiated_by"] == "neg"
    assert grid.active_flow_id == flow["id"]
    assert [f["position_name"] for f in grid.flows] == ["Case", "DA", "K"]
    assert grid.cells == {}


@pytest.mark.asyncio
async def test_rename_flow(store, scheduler):
    grid = await loaded_grid(store, scheduler)
    flow_id = grid.active_flow_id
    await grid.rename_flow(flow_id, "Case 2")
    assert grid.active_flow["position_name"] == "Case 2"
    assert store.flows[flow_id]["position_name"] == "Case 2"


@pytest.mark.asyncio
async def test_remove_active_flow_selects_first_remaining(store, scheduler):
    grid = await loaded_grid(store, scheduler, tabs=("Case", "DA", "CP"))
    da_id = grid.flows[1]["id"]
    await grid.select_flow(da_id)
    grid.update_cell(0, 0, "discarded")

    assert await grid.remove_flow(da_id) is True
    assert grid.active_flow_id == grid.flows[0]["id"]
    assert [f["position_name"] for f in grid.flows] == ["Case", "CP"]
    await scheduler.advance(1000)
    assert store.upserts == []


@pytest.mark.asyncio
async def test_reorder_flows(store, scheduler):
    grid = await loaded_grid(store, scheduler, tabs=("Case", "DA", "CP"))
    ids = [f["id"] for f in grid.flows]
    assert await grid.reorder_flows([ids[2], ids[0], ids[1]]) is True
    assert [f["position_name"] for f in grid.flows] == ["CP", "Case", "DA"]
    assert [f["display_order"] for f in grid.flows] == [0, 1, 2]
    assert store.flows[ids[2]]["display_order"] == 0


# ============================================================================
# End To End Tests
# ============================================================================

@pytest.mark.asyncio
async def test_typing_into_first_cell_upserts_after_debounce(store, scheduler):
    grid = await loaded_grid(store, scheduler)
    flow_id = grid.active_flow_id

    grid.update_cell(0, 0, "Plan text")
    await scheduler.advance(600)

    assert store.upserts == [
        (flow_id, [{"column_index": 0, "row_index": 0, "content": "Plan text", "color": None}])
    ]
