"""Tournament route handlers, including export/import."""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from bailey.api.auth_dependencies import get_current_user, require_confirmation
from bailey.database.db import get_db_session
from bailey.models.schemas import TournamentRequest, UpdateTournamentRequest
from bailey.services import data_service, transfer_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/tournaments", response_model=List[Dict[str, Any]])
async def list_tournaments(
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List the user's tournaments, most recently updated first."""
    try:
        return await data_service.list_tournaments(session, user["id"])
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error listing tournaments: {str(e)}")


@router.post("/api/tournaments", response_model=Dict[str, Any])
async def create_tournament(
    payload: TournamentRequest,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a tournament."""
    try:
        return await data_service.create_tournament(session, user["id"], **payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error creating tournament: {str(e)}")


@router.post("/api/tournaments/import", response_model=Dict[str, Any])
async def import_tournament(
    payload: Dict[str, Any] = Body(...),
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Import an exported tournament as new rows owned by the current user.
    The document is validated before anything is written.
    """
    try:
        return await transfer_service.import_tournament(session, user["id"], payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error importing tournament: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error importing tournament: {str(e)}")


@router.get("/api/tournaments/{tournament_id}", response_model=Dict[str, Any])
async def get_tournament(
    tournament_id: int,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Get a tournament by ID."""
    try:
        tournament = await data_service.get_tournament(session, user["id"], tournament_id)
        if not tournament:
            raise HTTPException(status_code=404, detail="Tournament not found")
        return tournament
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error getting tournament: {str(e)}")


@router.put("/api/tournaments/{tournament_id}", response_model=Dict[str, Any])
async def update_tournament(
    tournament_id: int,
    payload: UpdateTournamentRequest,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Update a tournament. Only fields present in the body are changed."""
    try:
        tournament = await data_service.update_tournament(
            session, user["id"], tournament_id, **payload.model_dump(exclude_unset=True)
        )
        if not tournament:
            raise HTTPException(status_code=404, detail="Tournament not found")
        return tournament
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating tournament: {str(e)}")


@router.delete("/api/tournaments/{tournament_id}", dependencies=[Depends(require_confirmation)])
async def delete_tournament(
    tournament_id: int,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a tournament with all rounds, flows and cells. Requires ?confirm=true."""
    try:
        success = await data_service.delete_tournament(session, user["id"], tournament_id)
        if not success:
            raise HTTPException(status_code=404, detail="Tournament not found")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting tournament: {str(e)}")


@router.get("/api/tournaments/{tournament_id}/export")
async def export_tournament(
    tournament_id: int,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Download a tournament with its rounds, flows and cells as JSON."""
    try:
        document = await transfer_service.export_tournament(session, user["id"], tournament_id)
        if not document:
            raise HTTPException(status_code=404, detail="Tournament not found")
        filename = transfer_service.export_filename(document["tournament"]["name"])
        return JSONResponse(
            content=document,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error exporting tournament: {str(e)}")
