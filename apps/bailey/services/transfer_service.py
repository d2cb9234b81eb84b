"""
Tournament export/import.

The export document is

    {"tournament": {...}, "rounds": [{...round, "flows": [{...flow, "cells": [...]}]}]}

with every user_id removed. Import validates the whole document before
writing anything, then creates fresh rows (new ids) owned by the importing
user inside a single transaction. Import never deduplicates.
"""

import logging
import re
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from bailey.database.models import (
    Tournament, Round, FlowTab, FlowCell, TournamentType, Side, RoundResult,
)
from bailey.services import data_service
from bailey.utils.datetime_utils import parse_iso_date

logger = logging.getLogger(__name__)

INVALID_FORMAT = "Invalid file format"


def _strip_user(row: Dict) -> Dict:
    return {k: v for k, v in row.items() if k != "user_id"}


def export_filename(tournament_name: Optional[str], today: Optional[date] = None) -> str:
    """Download name, e.g. bailey-States-2025-2025-03-01.json."""
    safe_name = re.sub(r"[^a-zA-Z0-9]", "-", tournament_name or "tournament")
    today = today or date.today()
    return f"bailey-{safe_name}-{today.isoformat()}.json"


async def export_tournament(session: AsyncSession, user_id: int, tournament_id: int) -> Optional[Dict]:
    """
    Build the export document for a tournament.

    Returns:
        Export dict, or None if the tournament does not exist for this user
    """
    tournament = await data_service.get_tournament(session, user_id, tournament_id)
    if not tournament:
        return None

    rounds = []
    for round_ in await data_service.list_rounds(session, user_id, tournament_id):
        flows = []
        for flow in await data_service.list_flows(session, user_id, round_["id"]):
            cells = await data_service.list_cells(session, user_id, flow["id"])
            flows.append({**_strip_user(flow), "cells": [_strip_user(c) for c in cells]})
        rounds.append({**_strip_user(round_), "flows": flows})

    return {"tournament": _strip_user(tournament), "rounds": rounds}


def _require(condition: bool) -> None:
    if not condition:
        raise ValueError(INVALID_FORMAT)


def _enum_or_none(enum_cls, value):
    if value is None or value == "":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise ValueError(INVALID_FORMAT)


def _int_or_invalid(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        raise ValueError(INVALID_FORMAT)


def prepare_import(data) -> Dict:
    """
    Validate an export document and convert it to column values.

    Raises:
        ValueError: "Invalid file format" if anything is missing or malformed
    """
    _require(isinstance(data, dict))
    tournament = data.get("tournament")
    rounds = data.get("rounds")
    _require(isinstance(tournament, dict) and isinstance(rounds, list))
    _require(bool(str(tournament.get("name") or "").strip()))

    try:
        tournament_date = parse_iso_date(tournament.get("date"))
    except ValueError:
        raise ValueError(INVALID_FORMAT)

    prepared = {
        "tournament": {
            "name": str(tournament["name"]).strip(),
            "date": tournament_date,
            "location": tournament.get("location"),
            "tournament_type": _enum_or_none(TournamentType, tournament.get("tournament_type"))
            or TournamentType.COMPETITOR,
            "team_name": tournament.get("team_name"),
        },
        "rounds": [],
    }

    for round_ in rounds:
        _require(isinstance(round_, dict))
        flows = round_.get("flows", [])
        _require(isinstance(flows, list))
        try:
            round_number = data_service.normalize_round_label(round_.get("round_number", ""))
        except ValueError:
            raise ValueError(INVALID_FORMAT)

        prepared_flows = []
        for flow in flows:
            _require(isinstance(flow, dict))
            cells = flow.get("cells", [])
            _require(isinstance(cells, list) and all(isinstance(c, dict) for c in cells))
            _require(bool(str(flow.get("position_name") or "").strip()))
            try:
                normalized_cells = data_service.normalize_cell_payload(cells)
            except (KeyError, TypeError, ValueError):
                raise ValueError(INVALID_FORMAT)
            prepared_flows.append({
                "position_name": str(flow["position_name"]).strip(),
                "initiated_by": _enum_or_none(Side, flow.get("initiated_by")) or Side.AFF,
                "display_order": _int_or_invalid(flow.get("display_order")),
                "cells": normalized_cells,
            })

        prepared["rounds"].append({
            "round_number": round_number,
            "side": _enum_or_none(Side, round_.get("side")),
            "opponent": round_.get("opponent"),
            "aff_team": round_.get("aff_team"),
            "neg_team": round_.get("neg_team"),
            "judge_names": round_.get("judge_names"),
            "result": _enum_or_none(RoundResult, round_.get("result")),
            "flows": prepared_flows,
        })

    return prepared


async def import_tournament(session: AsyncSession, user_id: int, data) -> Dict:
    """
    Import an export document as a new tournament owned by user_id.

    Returns:
        The new tournament dict

    Raises:
        ValueError: If the document is invalid (nothing is written)
    """
    prepared = prepare_import(data)

    try:
        tournament = Tournament(user_id=user_id, **prepared["tournament"])
        session.add(tournament)
        await session.flush()

        cell_count = 0
        for round_data in prepared["rounds"]:
            flows = round_data.pop("flows")
            round_ = Round(user_id=user_id, tournament_id=tournament.id, **round_data)
            session.add(round_)
            await session.flush()

            for flow_data in flows:
                cells = flow_data.pop("cells")
                flow = FlowTab(user_id=user_id, round_id=round_.id, **flow_data)
                session.add(flow)
                await session.flush()
                session.add_all([
                    FlowCell(user_id=user_id, flow_id=flow.id, **cell) for cell in cells
                ])
                cell_count += len(cells)

        await session.commit()
    except Exception:
        await session.rollback()
        raise

    await session.refresh(tournament)
    logger.info(
        f"Imported tournament {tournament.id} for user {user_id} "
        f"({len(prepared['rounds'])} rounds, {cell_count} cells)"
    )
    return data_service.tournament_to_dict(tournament)
