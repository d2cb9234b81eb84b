"""Round route handlers, including round decision notes."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from bailey.api.auth_dependencies import get_current_user, require_confirmation
from bailey.database.db import get_db_session
from bailey.models.schemas import RoundRequest, UpdateRoundRequest, RoundAnalyticsRequest
from bailey.services import data_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/tournaments/{tournament_id}/rounds", response_model=List[Dict[str, Any]])
async def list_rounds(
    tournament_id: int,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List a tournament's rounds in round order (Practice, 1-8, elims)."""
    try:
        if not await data_service.get_tournament(session, user["id"], tournament_id):
            raise HTTPException(status_code=404, detail="Tournament not found")
        return await data_service.list_rounds(session, user["id"], tournament_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error listing rounds: {str(e)}")


@router.post("/api/tournaments/{tournament_id}/rounds", response_model=Dict[str, Any])
async def create_round(
    tournament_id: int,
    payload: RoundRequest,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a round in a tournament."""
    try:
        if not await data_service.get_tournament(session, user["id"], tournament_id):
            raise HTTPException(status_code=404, detail="Tournament not found")
        return await data_service.create_round(session, user["id"], tournament_id, **payload.model_dump())
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error creating round: {str(e)}")


@router.get("/api/rounds/{round_id}", response_model=Dict[str, Any])
async def get_round(
    round_id: int,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Get a round by ID."""
    try:
        round_ = await data_service.get_round(session, user["id"], round_id)
        if not round_:
            raise HTTPException(status_code=404, detail="Round not found")
        return round_
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error getting round: {str(e)}")


@router.put("/api/rounds/{round_id}", response_model=Dict[str, Any])
async def update_round(
    round_id: int,
    payload: UpdateRoundRequest,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Update a round. Only fields present in the body are changed."""
    try:
        round_ = await data_service.update_round(
            session, user["id"], round_id, **payload.model_dump(exclude_unset=True)
        )
        if not round_:
            raise HTTPException(status_code=404, detail="Round not found")
        return round_
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating round: {str(e)}")


@router.delete("/api/rounds/{round_id}", dependencies=[Depends(require_confirmation)])
async def delete_round(
    round_id: int,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a round with all of its flows. Requires ?confirm=true."""
    try:
        success = await data_service.delete_round(session, user["id"], round_id)
        if not success:
            raise HTTPException(status_code=404, detail="Round not found")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting round: {str(e)}")


@router.get("/api/rounds/{round_id}/analytics", response_model=Optional[Dict[str, Any]])
async def get_round_analytics(
    round_id: int,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Get a round's decision notes (null if never saved)."""
    try:
        if not await data_service.get_round(session, user["id"], round_id):
            raise HTTPException(status_code=404, detail="Round not found")
        return await data_service.get_round_analytics(session, user["id"], round_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error getting round notes: {str(e)}")


@router.put("/api/rounds/{round_id}/analytics", response_model=Dict[str, Any])
async def upsert_round_analytics(
    round_id: int,
    payload: RoundAnalyticsRequest,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Create or update a round's decision notes."""
    try:
        if not await data_service.get_round(session, user["id"], round_id):
            raise HTTPException(status_code=404, detail="Round not found")
        return await data_service.upsert_round_analytics(
            session, user["id"], round_id, **payload.model_dump(exclude_unset=True)
        )
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error saving round notes: {str(e)}")
