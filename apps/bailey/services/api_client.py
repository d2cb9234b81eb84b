"""
HTTP client for the Bailey API.

BaileyClient implements the store interface used by the grid core
(FlowGrid, NotesAutosave) on top of httpx, plus the tournament/round calls a
front end needs. Writes require a bearer token; attempting one without a
token raises NotAuthenticatedError before any request is sent.
"""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8000"


class NotAuthenticatedError(Exception):
    """A write was attempted without an authenticated identity."""


class ApiError(Exception):
    """The API answered with an error status."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


class BaileyClient:
    """
    Async client for the Bailey API.

    Args:
        base_url: API root; defaults to BAILEY_API_URL
        token: Bearer token from login/signup
        client: Pre-built httpx.AsyncClient (tests pass one with an ASGI transport)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url or os.getenv("BAILEY_API_URL", DEFAULT_API_URL)
        self.token = token
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "BaileyClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, write: bool = False, **kwargs) -> Any:
        if write and not self.token:
            raise NotAuthenticatedError("Not authenticated")
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        response = await self._client.request(method, path, headers=headers, **kwargs)
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            detail = body.get("detail", response.text) if isinstance(body, dict) else response.text
            logger.warning(f"{method} {path} failed with {response.status_code}: {detail}")
            raise ApiError(response.status_code, str(detail))
        if not response.content:
            return None
        return response.json()

    # Auth

    async def signup(self, email: str, password: str) -> Dict:
        data = await self._request("POST", "/api/auth/signup", json={"email": email, "password": password})
        self.token = data["access_token"]
        return data

    async def login(self, email: str, password: str) -> Dict:
        data = await self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        self.token = data["access_token"]
        return data

    async def me(self) -> Dict:
        return await self._request("GET", "/api/auth/me")

    # Tournaments

    async def list_tournaments(self) -> List[Dict]:
        return await self._request("GET", "/api/tournaments")

    async def get_tournament(self, tournament_id: int) -> Dict:
        return await self._request("GET", f"/api/tournaments/{tournament_id}")

    async def create_tournament(self, **fields) -> Dict:
        return await self._request("POST", "/api/tournaments", write=True, json=fields)

    async def update_tournament(self, tournament_id: int, **fields) -> Dict:
        return await self._request("PUT", f"/api/tournaments/{tournament_id}", write=True, json=fields)

    async def delete_tournament(self, tournament_id: int) -> None:
        """Delete after the user confirmed; the API refuses unconfirmed deletes."""
        await self._request(
            "DELETE", f"/api/tournaments/{tournament_id}", write=True, params={"confirm": "true"}
        )

    # Rounds

    async def list_rounds(self, tournament_id: int) -> List[Dict]:
        return await self._request("GET", f"/api/tournaments/{tournament_id}/rounds")

    async def get_round(self, round_id: int) -> Dict:
        return await self._request("GET", f"/api/rounds/{round_id}")

    async def create_round(self, tournament_id: int, **fields) -> Dict:
        return await self._request(
            "POST", f"/api/tournaments/{tournament_id}/rounds", write=True, json=fields
        )

    async def update_round(self, round_id: int, **fields) -> Dict:
        return await self._request("PUT", f"/api/rounds/{round_id}", write=True, json=fields)

    async def delete_round(self, round_id: int) -> None:
        await self._request("DELETE", f"/api/rounds/{round_id}", write=True, params={"confirm": "true"})

    # Flow tabs

    async def list_flows(self, round_id: int) -> List[Dict]:
        return await self._request("GET", f"/api/rounds/{round_id}/flows")

    async def create_flow(self, round_id: int, **fields) -> Dict:
        return await self._request("POST", f"/api/rounds/{round_id}/flows", write=True, json=fields)

    async def update_flow(self, flow_id: int, **fields) -> Dict:
        return await self._request("PUT", f"/api/flows/{flow_id}", write=True, json=fields)

    async def delete_flow(self, flow_id: int) -> None:
        await self._request("DELETE", f"/api/flows/{flow_id}", write=True, params={"confirm": "true"})

    async def reorder_flows(self, updates: List[Dict]) -> Dict:
        """Set display orders; the API applies one update per tab."""
        return await self._request("PUT", "/api/flows/order", write=True, json={"flows": updates})

    # Cells

    async def list_cells(self, flow_id: int) -> List[Dict]:
        return await self._request("GET", f"/api/flows/{flow_id}/cells")

    async def upsert_cells(self, flow_id: int, cells: List[Dict]) -> Dict:
        return await self._request("PUT", f"/api/flows/{flow_id}/cells", write=True, json={"cells": cells})

    async def flush_beacon(self, flow_id: int, cells: List[Dict]) -> Dict:
        """Unload-time flush through the beacon endpoint."""
        return await self._request(
            "POST", "/api/flush", write=True, json={"flow_id": flow_id, "cells": cells}
        )

    async def delete_cell(self, cell_id: int) -> None:
        await self._request("DELETE", f"/api/cells/{cell_id}", write=True)

    async def delete_cells_by_flow(self, flow_id: int) -> Dict:
        return await self._request("DELETE", f"/api/flows/{flow_id}/cells", write=True)

    # Analytics

    async def get_flow_analytics(self, flow_id: int) -> Optional[Dict]:
        return await self._request("GET", f"/api/flows/{flow_id}/analytics")

    async def upsert_flow_analytics(self, flow_id: int, **notes) -> Dict:
        return await self._request("PUT", f"/api/flows/{flow_id}/analytics", write=True, json=notes)

    async def get_round_analytics(self, round_id: int) -> Optional[Dict]:
        return await self._request("GET", f"/api/rounds/{round_id}/analytics")

    async def upsert_round_analytics(self, round_id: int, **notes) -> Dict:
        return await self._request("PUT", f"/api/rounds/{round_id}/analytics", write=True, json=notes)

    # Export / import

    async def export_tournament(self, tournament_id: int) -> Dict:
        """
        Assemble the export document from the list endpoints.

        Rounds, and the flows of each round, are fetched concurrently; the
        first failing request aborts the whole export.
        """
        tournament = await self.get_tournament(tournament_id)
        rounds = await self.list_rounds(tournament_id)

        async def flow_with_cells(flow: Dict) -> Dict:
            cells = await self.list_cells(flow["id"])
            return {**_strip_user(flow), "cells": [_strip_user(c) for c in cells]}

        async def round_with_flows(round_: Dict) -> Dict:
            flows = await self.list_flows(round_["id"])
            flows = await asyncio.gather(*(flow_with_cells(f) for f in flows))
            return {**_strip_user(round_), "flows": list(flows)}

        rounds = await asyncio.gather(*(round_with_flows(r) for r in rounds))
        return {"tournament": _strip_user(tournament), "rounds": list(rounds)}

    async def import_tournament(self, data: Dict) -> Dict:
        """Import an export document; returns the new tournament."""
        if not isinstance(data, dict) or not isinstance(data.get("tournament"), dict) \
                or not isinstance(data.get("rounds"), list):
            raise ValueError("Invalid file format")
        return await self._request("POST", "/api/tournaments/import", write=True, json=data)


def _strip_user(row: Dict) -> Dict:
    return {k: v for k, v in row.items() if k != "user_id"}
