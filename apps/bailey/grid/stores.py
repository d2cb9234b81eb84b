"""
Store adapters used by FlowGrid and NotesAutosave.

A store exposes the async operations the grid core needs:

    list_flows(round_id), list_cells(flow_id), upsert_cells(flow_id, cells),
    flush_beacon(flow_id, cells), create_flow(round_id, ...),
    update_flow(flow_id, ...), delete_flow(flow_id), reorder_flows(updates),
    get_flow_analytics / upsert_flow_analytics,
    get_round_analytics / upsert_round_analytics

BaileyClient (bailey.services.api_client) implements them over HTTP;
ServiceStore below calls the service layer in-process.
"""

import logging
from typing import Dict, List, Optional

from bailey.database import db
from bailey.services import data_service

logger = logging.getLogger(__name__)


class ServiceStore:
    """In-process store: every call opens its own session as the given user."""

    def __init__(self, user_id: int):
        self.user_id = user_id

    async def list_flows(self, round_id: int) -> List[Dict]:
        async with db.AsyncSessionLocal() as session:
            return await data_service.list_flows(session, self.user_id, round_id)

    async def list_cells(self, flow_id: int) -> List[Dict]:
        async with db.AsyncSessionLocal() as session:
            return await data_service.list_cells(session, self.user_id, flow_id)

    async def upsert_cells(self, flow_id: int, cells: List[Dict]) -> int:
        async with db.AsyncSessionLocal() as session:
            return await data_service.upsert_cells(session, self.user_id, flow_id, cells)

    async def flush_beacon(self, flow_id: int, cells: List[Dict]) -> int:
        return await self.upsert_cells(flow_id, cells)

    async def create_flow(self, round_id: int, **fields) -> Dict:
        async with db.AsyncSessionLocal() as session:
            return await data_service.create_flow(session, self.user_id, round_id, **fields)

    async def update_flow(self, flow_id: int, **fields) -> Dict:
        async with db.AsyncSessionLocal() as session:
            flow = await data_service.update_flow(session, self.user_id, flow_id, **fields)
        if flow is None:
            raise ValueError("Flow not found")
        return flow

    async def delete_flow(self, flow_id: int) -> None:
        async with db.AsyncSessionLocal() as session:
            if not await data_service.delete_flow(session, self.user_id, flow_id):
                raise ValueError("Flow not found")

    async def reorder_flows(self, updates: List[Dict]) -> int:
        async with db.AsyncSessionLocal() as session:
            return await data_service.reorder_flows(session, self.user_id, updates)

    async def get_flow_analytics(self, flow_id: int) -> Optional[Dict]:
        async with db.AsyncSessionLocal() as session:
            return await data_service.get_flow_analytics(session, self.user_id, flow_id)

    async def upsert_flow_analytics(self, flow_id: int, **notes) -> Dict:
        async with db.AsyncSessionLocal() as session:
            return await data_service.upsert_flow_analytics(session, self.user_id, flow_id, **notes)

    async def get_round_analytics(self, round_id: int) -> Optional[Dict]:
        async with db.AsyncSessionLocal() as session:
            return await data_service.get_round_analytics(session, self.user_id, round_id)

    async def upsert_round_analytics(self, round_id: int, **notes) -> Dict:
        async with db.AsyncSessionLocal() as session:
            return await data_service.upsert_round_analytics(session, self.user_id, round_id, **notes)
