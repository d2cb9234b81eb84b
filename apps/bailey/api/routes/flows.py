"""Flow tab, cell and flow notes route handlers."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from bailey.api.auth_dependencies import get_current_user, require_confirmation
from bailey.database.db import get_db_session
from bailey.models.schemas import (
    FlowRequest,
    UpdateFlowRequest,
    ReorderFlowsRequest,
    UpsertCellsRequest,
    FlushRequest,
    FlowAnalyticsRequest,
)
from bailey.services import data_service

logger = logging.getLogger(__name__)
router = APIRouter()


async def _require_flow(session: AsyncSession, user_id: int, flow_id: int) -> Dict:
    flow = await data_service.get_flow(session, user_id, flow_id)
    if not flow:
        raise HTTPException(status_code=404, detail="Flow not found")
    return flow


# ---------------------------------------------------------------------------
# Flow tabs
# ---------------------------------------------------------------------------


@router.get("/api/rounds/{round_id}/flows", response_model=List[Dict[str, Any]])
async def list_flows(
    round_id: int,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List a round's flow tabs in display order."""
    try:
        if not await data_service.get_round(session, user["id"], round_id):
            raise HTTPException(status_code=404, detail="Round not found")
        return await data_service.list_flows(session, user["id"], round_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error listing flows: {str(e)}")


@router.post("/api/rounds/{round_id}/flows", response_model=Dict[str, Any])
async def create_flow(
    round_id: int,
    payload: FlowRequest,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a flow tab; display_order defaults to the end of the tab bar."""
    try:
        if not await data_service.get_round(session, user["id"], round_id):
            raise HTTPException(status_code=404, detail="Round not found")
        return await data_service.create_flow(session, user["id"], round_id, **payload.model_dump())
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error creating flow: {str(e)}")


# Registered before /api/flows/{flow_id} so "order" is not parsed as an id
@router.put("/api/flows/order", response_model=Dict[str, Any])
async def reorder_flows(
    payload: ReorderFlowsRequest,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Set the display order of several tabs (one update per tab)."""
    try:
        updated = await data_service.reorder_flows(
            session, user["id"], [item.model_dump() for item in payload.flows]
        )
        return {"success": True, "updated": updated}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error reordering flows: {str(e)}")


@router.put("/api/flows/{flow_id}", response_model=Dict[str, Any])
async def update_flow(
    flow_id: int,
    payload: UpdateFlowRequest,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Rename a flow tab, change its side or move it."""
    try:
        flow = await data_service.update_flow(
            session, user["id"], flow_id, **payload.model_dump(exclude_unset=True)
        )
        if not flow:
            raise HTTPException(status_code=404, detail="Flow not found")
        return flow
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating flow: {str(e)}")


@router.delete("/api/flows/{flow_id}", dependencies=[Depends(require_confirmation)])
async def delete_flow(
    flow_id: int,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a flow tab with its cells. Requires ?confirm=true."""
    try:
        success = await data_service.delete_flow(session, user["id"], flow_id)
        if not success:
            raise HTTPException(status_code=404, detail="Flow not found")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting flow: {str(e)}")


# ---------------------------------------------------------------------------
# Cells
# ---------------------------------------------------------------------------


@router.get("/api/flows/{flow_id}/cells", response_model=List[Dict[str, Any]])
async def list_cells(
    flow_id: int,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List the stored cells of a flow."""
    try:
        await _require_flow(session, user["id"], flow_id)
        return await data_service.list_cells(session, user["id"], flow_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error listing cells: {str(e)}")


@router.put("/api/flows/{flow_id}/cells", response_model=Dict[str, Any])
async def upsert_cells(
    flow_id: int,
    payload: UpsertCellsRequest,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Upsert cells keyed by (flow_id, column_index, row_index)."""
    try:
        await _require_flow(session, user["id"], flow_id)
        written = await data_service.upsert_cells(
            session, user["id"], flow_id, [cell.model_dump() for cell in payload.cells]
        )
        return {"success": True, "written": written}
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error saving cells for flow {flow_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error saving cells: {str(e)}")


@router.delete("/api/flows/{flow_id}/cells")
async def delete_cells_by_flow(
    flow_id: int,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Remove every cell of a flow."""
    try:
        await _require_flow(session, user["id"], flow_id)
        deleted = await data_service.delete_cells_by_flow(session, user["id"], flow_id)
        return {"success": True, "deleted": deleted}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting cells: {str(e)}")


@router.delete("/api/cells/{cell_id}")
async def delete_cell(
    cell_id: int,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Physically remove one cell."""
    try:
        if not await data_service.delete_cell(session, user["id"], cell_id):
            raise HTTPException(status_code=404, detail="Cell not found")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting cell: {str(e)}")


@router.post("/api/flush", response_model=Dict[str, Any])
async def flush_cells(
    payload: FlushRequest,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Unload beacon: the same upsert as PUT /api/flows/{flow_id}/cells."""
    try:
        await _require_flow(session, user["id"], payload.flow_id)
        written = await data_service.upsert_cells(
            session, user["id"], payload.flow_id, [cell.model_dump() for cell in payload.cells]
        )
        return {"success": True, "written": written}
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error flushing cells for flow {payload.flow_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error flushing cells: {str(e)}")


# ---------------------------------------------------------------------------
# Flow notes
# ---------------------------------------------------------------------------


@router.get("/api/flows/{flow_id}/analytics", response_model=Optional[Dict[str, Any]])
async def get_flow_analytics(
    flow_id: int,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Get a flow's notes (null if never saved)."""
    try:
        await _require_flow(session, user["id"], flow_id)
        return await data_service.get_flow_analytics(session, user["id"], flow_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error getting flow notes: {str(e)}")


@router.put("/api/flows/{flow_id}/analytics", response_model=Dict[str, Any])
async def upsert_flow_analytics(
    flow_id: int,
    payload: FlowAnalyticsRequest,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Create or update a flow's notes."""
    try:
        await _require_flow(session, user["id"], flow_id)
        return await data_service.upsert_flow_analytics(
            session, user["id"], flow_id, **payload.model_dump(exclude_unset=True)
        )
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error saving flow notes: {str(e)}")
