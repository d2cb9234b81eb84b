"""
Pydantic models for API request/response validation.
"""

from typing import Optional, List, Union
from pydantic import BaseModel, Field


class SignupRequest(BaseModel):
    """Request to create an account."""

    email: str
    password: str


class LoginRequest(BaseModel):
    """Request to login with email and password."""

    email: str
    password: str


class AuthResponse(BaseModel):
    """Token issued on signup/login."""

    access_token: str
    token_type: str = "bearer"
    user_id: int
    email: str


class UserResponse(BaseModel):
    """Current user."""

    id: int
    email: str
    created_at: Optional[str] = None


class TournamentRequest(BaseModel):
    """Request to create a tournament."""

    name: str
    date: Optional[str] = None
    location: Optional[str] = None
    tournament_type: Optional[str] = "competitor"
    team_name: Optional[str] = None


class UpdateTournamentRequest(BaseModel):
    """Request to update a tournament. Omitted fields are left unchanged."""

    name: Optional[str] = None
    date: Optional[str] = None
    location: Optional[str] = None
    tournament_type: Optional[str] = None
    team_name: Optional[str] = None


class RoundRequest(BaseModel):
    """Request to create a round."""

    round_number: Union[str, int] = "1"
    side: Optional[str] = None
    opponent: Optional[str] = None
    aff_team: Optional[str] = None
    neg_team: Optional[str] = None
    judge_names: Optional[str] = None
    result: Optional[str] = None


class UpdateRoundRequest(BaseModel):
    """Request to update a round. Omitted fields are left unchanged."""

    round_number: Optional[Union[str, int]] = None
    side: Optional[str] = None
    opponent: Optional[str] = None
    aff_team: Optional[str] = None
    neg_team: Optional[str] = None
    judge_names: Optional[str] = None
    result: Optional[str] = None


class FlowRequest(BaseModel):
    """Request to create a flow tab."""

    position_name: str
    initiated_by: str = "aff"
    display_order: Optional[int] = None


class UpdateFlowRequest(BaseModel):
    """Request to rename/move a flow tab."""

    position_name: Optional[str] = None
    initiated_by: Optional[str] = None
    display_order: Optional[int] = None


class FlowOrderItem(BaseModel):
    id: int
    display_order: int


class ReorderFlowsRequest(BaseModel):
    """New display order for several flow tabs."""

    flows: List[FlowOrderItem]


class CellWrite(BaseModel):
    """One cell write, keyed by coordinate."""

    column_index: int = Field(ge=0)
    row_index: int = Field(ge=0)
    content: str = ""
    color: Optional[str] = None


class UpsertCellsRequest(BaseModel):
    cells: List[CellWrite]


class FlushRequest(BaseModel):
    """Unload beacon payload."""

    flow_id: int
    cells: List[CellWrite]


class FlowAnalyticsRequest(BaseModel):
    notes_aff: Optional[str] = None
    notes_neg: Optional[str] = None


class RoundAnalyticsRequest(BaseModel):
    notes_aff: Optional[str] = None
    notes_neg: Optional[str] = None
    notes_decision: Optional[str] = None

