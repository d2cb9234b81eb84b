"""
Data service layer for database operations.
Handles all CRUD operations for tournaments, rounds, flow tabs and cells.

Every function takes the owning user's id and only ever touches that user's
rows; a row belonging to someone else behaves exactly like a missing row.
"""

import logging
from typing import List, Dict, Optional, Iterable, Union
from datetime import date

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from bailey.database.models import (
    Tournament, Round, FlowTab, FlowCell, FlowAnalytics, RoundAnalytics,
    TournamentType, Side, RoundResult, CellColor,
)
from bailey.grid.sanitizer import sanitize_html
from bailey.utils.constants import ROUND_LABELS
from bailey.utils.datetime_utils import isoformat_or_none, parse_iso_date

logger = logging.getLogger(__name__)

TOURNAMENT_FIELDS = ("name", "date", "location", "tournament_type", "team_name")
ROUND_FIELDS = (
    "round_number", "side", "opponent", "aff_team", "neg_team", "judge_names", "result",
)
FLOW_FIELDS = ("position_name", "initiated_by", "display_order")


#
# Helper functions
#

def _enum_value(value):
    return value.value if value is not None and hasattr(value, "value") else value


def _coerce_enum(enum_cls, value, field: str):
    """Convert a raw value to an enum member; None stays None."""
    if value is None or value == "":
        return None
    try:
        return enum_cls(_enum_value(value))
    except ValueError:
        raise ValueError(f"Invalid {field}: {value}")


def normalize_round_label(value: Union[str, int]) -> str:
    """
    Map a round number to its canonical label.

    Accepts ints (1 -> "1") and labels in any case ("semis" -> "Semis").

    Raises:
        ValueError: If the value is not a known round label
    """
    label = str(value).strip()
    for known in ROUND_LABELS:
        if known.lower() == label.lower():
            return known
    raise ValueError(f"Invalid round number: {value}")


def round_sort_key(round_dict: Dict) -> tuple:
    """Sort rounds in label order, then by creation."""
    try:
        position = ROUND_LABELS.index(round_dict["round_number"])
    except ValueError:
        position = len(ROUND_LABELS)
    return (position, round_dict["id"])


def format_round_name(round_dict: Dict, team_name: Optional[str] = None) -> str:
    """
    Display name of a round, e.g. "Round 1 vs Harvard KS" or
    "Semis: Lawrence PS (Aff) vs Harvard KS (Neg)".
    """
    label = round_dict["round_number"]
    prefix = label if not label.isdigit() else f"Round {label}"
    aff, neg = round_dict.get("aff_team"), round_dict.get("neg_team")
    if aff and neg:
        return f"{prefix}: {aff} (Aff) vs {neg} (Neg)"
    if round_dict.get("opponent"):
        return f"{prefix} vs {round_dict['opponent']}"
    return prefix


def tournament_to_dict(t: Tournament) -> Dict:
    return {
        "id": t.id,
        "user_id": t.user_id,
        "name": t.name,
        "date": isoformat_or_none(t.date),
        "location": t.location,
        "tournament_type": _enum_value(t.tournament_type),
        "team_name": t.team_name,
        "created_at": isoformat_or_none(t.created_at),
        "updated_at": isoformat_or_none(t.updated_at),
    }


def round_to_dict(r: Round) -> Dict:
    return {
        "id": r.id,
        "user_id": r.user_id,
        "tournament_id": r.tournament_id,
        "round_number": r.round_number,
        "side": _enum_value(r.side),
        "opponent": r.opponent,
        "aff_team": r.aff_team,
        "neg_team": r.neg_team,
        "judge_names": r.judge_names,
        "result": _enum_value(r.result),
        "created_at": isoformat_or_none(r.created_at),
        "updated_at": isoformat_or_none(r.updated_at),
    }


def flow_to_dict(f: FlowTab) -> Dict:
    return {
        "id": f.id,
        "user_id": f.user_id,
        "round_id": f.round_id,
        "position_name": f.position_name,
        "initiated_by": _enum_value(f.initiated_by),
        "display_order": f.display_order,
        "created_at": isoformat_or_none(f.created_at),
        "updated_at": isoformat_or_none(f.updated_at),
    }


def cell_to_dict(c: FlowCell) -> Dict:
    return {
        "id": c.id,
        "user_id": c.user_id,
        "flow_id": c.flow_id,
        "column_index": c.column_index,
        "row_index": c.row_index,
        "content": c.content,
        "color": _enum_value(c.color),
        "created_at": isoformat_or_none(c.created_at),
        "updated_at": isoformat_or_none(c.updated_at),
    }


def _analytics_to_dict(a, owner_field: str, fields: Iterable[str]) -> Dict:
    data = {"id": a.id, "user_id": a.user_id, owner_field: getattr(a, owner_field)}
    for field in fields:
        data[field] = getattr(a, field)
    data["created_at"] = isoformat_or_none(a.created_at)
    data["updated_at"] = isoformat_or_none(a.updated_at)
    return data


def _dialect_insert(session: AsyncSession):
    """Return the dialect-specific insert() that supports ON CONFLICT."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise RuntimeError(f"Upserts are not supported on dialect {dialect}")


async def _get_owned(session: AsyncSession, model, user_id: int, row_id: int):
    result = await session.execute(
        select(model).where(model.id == row_id, model.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def _delete_flows(session: AsyncSession, flow_ids: List[int]) -> None:
    """Delete flow tabs and everything they own."""
    if not flow_ids:
        return
    await session.execute(delete(FlowCell).where(FlowCell.flow_id.in_(flow_ids)))
    await session.execute(delete(FlowAnalytics).where(FlowAnalytics.flow_id.in_(flow_ids)))
    await session.execute(delete(FlowTab).where(FlowTab.id.in_(flow_ids)))


async def _delete_rounds(session: AsyncSession, round_ids: List[int]) -> None:
    """Delete rounds and everything they own."""
    if not round_ids:
        return
    result = await session.execute(select(FlowTab.id).where(FlowTab.round_id.in_(round_ids)))
    await _delete_flows(session, list(result.scalars().all()))
    await session.execute(delete(RoundAnalytics).where(RoundAnalytics.round_id.in_(round_ids)))
    await session.execute(delete(Round).where(Round.id.in_(round_ids)))


#
# Tournaments
#

async def list_tournaments(session: AsyncSession, user_id: int) -> List[Dict]:
    """List a user's tournaments, most recently updated first."""
    result = await session.execute(
        select(Tournament)
        .where(Tournament.user_id == user_id)
        .order_by(Tournament.updated_at.desc(), Tournament.id.desc())
    )
    return [tournament_to_dict(t) for t in result.scalars().all()]


async def get_tournament(session: AsyncSession, user_id: int, tournament_id: int) -> Optional[Dict]:
    """Get a tournament by ID."""
    tournament = await _get_owned(session, Tournament, user_id, tournament_id)
    return tournament_to_dict(tournament) if tournament else None


async def create_tournament(
    session: AsyncSession,
    user_id: int,
    name: str,
    date: Optional[Union[str, date]] = None,
    location: Optional[str] = None,
    tournament_type: Optional[str] = None,
    team_name: Optional[str] = None,
) -> Dict:
    """
    Create a new tournament.

    Raises:
        ValueError: If the name is blank or a field value is invalid
    """
    if not name or not name.strip():
        raise ValueError("Tournament name is required")
    tournament = Tournament(
        user_id=user_id,
        name=name.strip(),
        date=parse_iso_date(date),
        location=location or None,
        tournament_type=_coerce_enum(TournamentType, tournament_type, "tournament_type")
        or TournamentType.COMPETITOR,
        team_name=team_name or None,
    )
    session.add(tournament)
    await session.commit()
    await session.refresh(tournament)
    logger.info(f"Created tournament {tournament.id} for user {user_id}")
    return tournament_to_dict(tournament)


async def update_tournament(
    session: AsyncSession, user_id: int, tournament_id: int, **fields
) -> Optional[Dict]:
    """
    Update a tournament. Only TOURNAMENT_FIELDS are applied.

    Returns:
        Updated tournament dict, or None if not found
    """
    tournament = await _get_owned(session, Tournament, user_id, tournament_id)
    if not tournament:
        return None

    for key, value in fields.items():
        if key not in TOURNAMENT_FIELDS:
            continue
        if key == "name":
            if not value or not str(value).strip():
                raise ValueError("Tournament name is required")
            value = str(value).strip()
        elif key == "date":
            value = parse_iso_date(value)
        elif key == "tournament_type":
            value = _coerce_enum(TournamentType, value, "tournament_type") or TournamentType.COMPETITOR
        setattr(tournament, key, value)

    await session.commit()
    await session.refresh(tournament)
    return tournament_to_dict(tournament)


async def delete_tournament(session: AsyncSession, user_id: int, tournament_id: int) -> bool:
    """Delete a tournament with all of its rounds, flows and cells."""
    tournament = await _get_owned(session, Tournament, user_id, tournament_id)
    if not tournament:
        return False
    result = await session.execute(select(Round.id).where(Round.tournament_id == tournament_id))
    await _delete_rounds(session, list(result.scalars().all()))
    await session.execute(delete(Tournament).where(Tournament.id == tournament_id))
    await session.commit()
    logger.info(f"Deleted tournament {tournament_id}")
    return True


#
# Rounds
#

async def list_rounds(session: AsyncSession, user_id: int, tournament_id: int) -> List[Dict]:
    """List rounds of a tournament in round-label order."""
    result = await session.execute(
        select(Round).where(Round.tournament_id == tournament_id, Round.user_id == user_id)
    )
    rounds = [round_to_dict(r) for r in result.scalars().all()]
    return sorted(rounds, key=round_sort_key)


async def get_round(session: AsyncSession, user_id: int, round_id: int) -> Optional[Dict]:
    """Get a round by ID."""
    round_ = await _get_owned(session, Round, user_id, round_id)
    return round_to_dict(round_) if round_ else None


def _derive_teams(tournament: Tournament, side: Optional[Side], opponent: Optional[str]):
    """Aff/neg team names for a competitor round from the user's side and opponent."""
    if tournament.tournament_type != TournamentType.COMPETITOR or side is None:
        return None, None
    own = tournament.team_name or None
    if side == Side.AFF:
        return own, opponent or None
    return opponent or None, own


async def create_round(
    session: AsyncSession,
    user_id: int,
    tournament_id: int,
    round_number: Union[str, int] = "1",
    side: Optional[str] = None,
    opponent: Optional[str] = None,
    aff_team: Optional[str] = None,
    neg_team: Optional[str] = None,
    judge_names: Optional[str] = None,
    result: Optional[str] = None,
) -> Dict:
    """
    Create a round in a tournament.

    For competitor tournaments, aff_team/neg_team default to the tournament's
    team name and the opponent according to the user's side.

    Raises:
        ValueError: If the tournament is missing or a field value is invalid
    """
    tournament = await _get_owned(session, Tournament, user_id, tournament_id)
    if not tournament:
        raise ValueError("Tournament not found")

    side_value = _coerce_enum(Side, side, "side")
    derived_aff, derived_neg = _derive_teams(tournament, side_value, opponent)
    round_ = Round(
        user_id=user_id,
        tournament_id=tournament_id,
        round_number=normalize_round_label(round_number),
        side=side_value,
        opponent=opponent or None,
        aff_team=aff_team or derived_aff,
        neg_team=neg_team or derived_neg,
        judge_names=judge_names or None,
        result=_coerce_enum(RoundResult, result, "result"),
    )
    session.add(round_)
    await session.commit()
    await session.refresh(round_)
    return round_to_dict(round_)


async def update_round(session: AsyncSession, user_id: int, round_id: int, **fields) -> Optional[Dict]:
    """
    Update a round. Only ROUND_FIELDS are applied.

    Returns:
        Updated round dict, or None if not found
    """
    round_ = await _get_owned(session, Round, user_id, round_id)
    if not round_:
        return None

    for key, value in fields.items():
        if key not in ROUND_FIELDS:
            continue
        if key == "round_number":
            value = normalize_round_label(value)
        elif key == "side":
            value = _coerce_enum(Side, value, "side")
        elif key == "result":
            value = _coerce_enum(RoundResult, value, "result")
        setattr(round_, key, value)

    await session.commit()
    await session.refresh(round_)
    return round_to_dict(round_)


async def delete_round(session: AsyncSession, user_id: int, round_id: int) -> bool:
    """Delete a round with all of its flow tabs and cells."""
    round_ = await _get_owned(session, Round, user_id, round_id)
    if not round_:
        return False
    await _delete_rounds(session, [round_id])
    await session.commit()
    logger.info(f"Deleted round {round_id}")
    return True


#
# Flow tabs
#

async def list_flows(session: AsyncSession, user_id: int, round_id: int) -> List[Dict]:
    """List a round's flow tabs in display order."""
    result = await session.execute(
        select(FlowTab)
        .where(FlowTab.round_id == round_id, FlowTab.user_id == user_id)
        .order_by(FlowTab.display_order.asc(), FlowTab.id.asc())
        .execution_options(populate_existing=True)
    )
    return [flow_to_dict(f) for f in result.scalars().all()]


async def get_flow(session: AsyncSession, user_id: int, flow_id: int) -> Optional[Dict]:
    """Get a flow tab by ID."""
    flow = await _get_owned(session, FlowTab, user_id, flow_id)
    return flow_to_dict(flow) if flow else None


async def create_flow(
    session: AsyncSession,
    user_id: int,
    round_id: int,
    position_name: str,
    initiated_by: str = "aff",
    display_order: Optional[int] = None,
) -> Dict:
    """
    Create a flow tab in a round. display_order defaults to the end of the tab bar.

    Raises:
        ValueError: If the round is missing or a field value is invalid
    """
    round_ = await _get_owned(session, Round, user_id, round_id)
    if not round_:
        raise ValueError("Round not found")
    if not position_name or not position_name.strip():
        raise ValueError("Position name is required")

    if display_order is None:
        count = await session.execute(
            select(func.count()).select_from(FlowTab).where(FlowTab.round_id == round_id)
        )
        display_order = count.scalar() or 0

    flow = FlowTab(
        user_id=user_id,
        round_id=round_id,
        position_name=position_name.strip(),
        initiated_by=_coerce_enum(Side, initiated_by, "initiated_by") or Side.AFF,
        display_order=display_order,
    )
    session.add(flow)
    await session.commit()
    await session.refresh(flow)
    return flow_to_dict(flow)


async def update_flow(session: AsyncSession, user_id: int, flow_id: int, **fields) -> Optional[Dict]:
    """
    Update a flow tab (rename, change side, move). Only FLOW_FIELDS are applied.

    Returns:
        Updated flow dict, or None if not found
    """
    flow = await _get_owned(session, FlowTab, user_id, flow_id)
    if not flow:
        return None

    for key, value in fields.items():
        if key not in FLOW_FIELDS or value is None:
            continue
        if key == "position_name":
            if not str(value).strip():
                raise ValueError("Position name is required")
            value = str(value).strip()
        elif key == "initiated_by":
            value = _coerce_enum(Side, value, "initiated_by")
        setattr(flow, key, value)

    await session.commit()
    await session.refresh(flow)
    return flow_to_dict(flow)


async def delete_flow(session: AsyncSession, user_id: int, flow_id: int) -> bool:
    """Delete a flow tab with its cells and notes."""
    flow = await _get_owned(session, FlowTab, user_id, flow_id)
    if not flow:
        return False
    await _delete_flows(session, [flow_id])
    await session.commit()
    return True


async def reorder_flows(session: AsyncSession, user_id: int, flows: List[Dict]) -> int:
    """
    Apply new display orders, one update per tab.

    Args:
        flows: List of {"id": int, "display_order": int}

    Returns:
        Number of tabs updated (tabs of other users are skipped)
    """
    updated = 0
    for item in flows:
        result = await session.execute(
            update(FlowTab)
            .where(FlowTab.id == item["id"], FlowTab.user_id == user_id)
            .values(display_order=item["display_order"], updated_at=func.now())
        )
        updated += result.rowcount or 0
    await session.commit()
    return updated


#
# Cells
#

async def list_cells(session: AsyncSession, user_id: int, flow_id: int) -> List[Dict]:
    """List a flow's stored cells ordered by column, then row."""
    result = await session.execute(
        select(FlowCell)
        .where(FlowCell.flow_id == flow_id, FlowCell.user_id == user_id)
        .order_by(FlowCell.column_index.asc(), FlowCell.row_index.asc())
        .execution_options(populate_existing=True)  # upserts bypass the identity map
    )
    return [cell_to_dict(c) for c in result.scalars().all()]


def normalize_cell_payload(cells: Iterable[Dict]) -> List[Dict]:
    """
    Validate and canonicalize cell writes.

    Content is sanitized, colours are checked against the enumeration and
    duplicate coordinates collapse to the last write.

    Raises:
        ValueError: On negative coordinates or an unknown colour
    """
    by_coordinate: Dict[tuple, Dict] = {}
    for cell in cells:
        col, row = int(cell["column_index"]), int(cell["row_index"])
        if col < 0 or row < 0:
            raise ValueError(f"Invalid cell coordinate ({col}, {row})")
        by_coordinate[(col, row)] = {
            "column_index": col,
            "row_index": row,
            "content": sanitize_html(cell.get("content") or ""),
            "color": _coerce_enum(CellColor, cell.get("color"), "color"),
        }
    return list(by_coordinate.values())


async def upsert_cells(session: AsyncSession, user_id: int, flow_id: int, cells: List[Dict]) -> int:
    """
    Insert or update cells keyed by (flow_id, column_index, row_index).

    Repeating the same write is idempotent: the conflict key guarantees at
    most one row per coordinate.

    Returns:
        Number of cells written

    Raises:
        ValueError: If the flow does not exist for this user or a cell is invalid
    """
    flow = await _get_owned(session, FlowTab, user_id, flow_id)
    if not flow:
        raise ValueError("Flow not found")

    rows = [
        {"user_id": user_id, "flow_id": flow_id, **cell}
        for cell in normalize_cell_payload(cells)
    ]
    if not rows:
        return 0

    insert = _dialect_insert(session)
    stmt = insert(FlowCell).values(rows)
    stmt = stmt.on_conflict_do_update(
        index_elements=["flow_id", "column_index", "row_index"],
        set_={
            "content": stmt.excluded.content,
            "color": stmt.excluded.color,
            "updated_at": func.now(),
        },
    )
    await session.execute(stmt)
    await session.commit()
    logger.debug(f"Upserted {len(rows)} cell(s) into flow {flow_id}")
    return len(rows)


async def delete_cell(session: AsyncSession, user_id: int, cell_id: int) -> bool:
    """Physically remove one cell row."""
    result = await session.execute(
        delete(FlowCell).where(FlowCell.id == cell_id, FlowCell.user_id == user_id)
    )
    await session.commit()
    return (result.rowcount or 0) > 0


async def delete_cells_by_flow(session: AsyncSession, user_id: int, flow_id: int) -> int:
    """Remove every cell of a flow. Returns the number of rows deleted."""
    result = await session.execute(
        delete(FlowCell).where(FlowCell.flow_id == flow_id, FlowCell.user_id == user_id)
    )
    await session.commit()
    return result.rowcount or 0


#
# Analytics notes
#

FLOW_NOTE_FIELDS = ("notes_aff", "notes_neg")
ROUND_NOTE_FIELDS = ("notes_aff", "notes_neg", "notes_decision")


async def get_flow_analytics(session: AsyncSession, user_id: int, flow_id: int) -> Optional[Dict]:
    """Get the notes attached to a flow tab, or None if never saved."""
    result = await session.execute(
        select(FlowAnalytics)
        .where(FlowAnalytics.flow_id == flow_id, FlowAnalytics.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    analytics = result.scalar_one_or_none()
    return _analytics_to_dict(analytics, "flow_id", FLOW_NOTE_FIELDS) if analytics else None


async def upsert_flow_analytics(session: AsyncSession, user_id: int, flow_id: int, **notes) -> Dict:
    """
    Create or update the notes of a flow tab.

    Raises:
        ValueError: If the flow does not exist for this user
    """
    if not await _get_owned(session, FlowTab, user_id, flow_id):
        raise ValueError("Flow not found")
    values = {k: notes[k] for k in FLOW_NOTE_FIELDS if k in notes}

    insert = _dialect_insert(session)
    stmt = insert(FlowAnalytics).values(user_id=user_id, flow_id=flow_id, **values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["flow_id"], set_={**values, "updated_at": func.now()}
    )
    await session.execute(stmt)
    await session.commit()
    return await get_flow_analytics(session, user_id, flow_id)


async def get_round_analytics(session: AsyncSession, user_id: int, round_id: int) -> Optional[Dict]:
    """Get the decision notes attached to a round, or None if never saved."""
    result = await session.execute(
        select(RoundAnalytics)
        .where(RoundAnalytics.round_id == round_id, RoundAnalytics.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    analytics = result.scalar_one_or_none()
    return _analytics_to_dict(analytics, "round_id", ROUND_NOTE_FIELDS) if analytics else None


async def upsert_round_analytics(session: AsyncSession, user_id: int, round_id: int, **notes) -> Dict:
    """
    Create or update the decision notes of a round.

    Raises:
        ValueError: If the round does not exist for this user
    """
    if not await _get_owned(session, Round, user_id, round_id):
        raise ValueError("Round not found")
    values = {k: notes[k] for k in ROUND_NOTE_FIELDS if k in notes}

    insert = _dialect_insert(session)
    stmt = insert(RoundAnalytics).values(user_id=user_id, round_id=round_id, **values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["round_id"], set_={**values, "updated_at": func.now()}
    )
    await session.execute(stmt)
    await session.commit()
    return await get_round_analytics(session, user_id, round_id)
