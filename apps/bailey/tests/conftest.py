"""
Shared pytest configuration for Bailey tests.

Database tests run against TEST_DATABASE_URL when it is set, otherwise
against a throwaway SQLite file per test (aiosqlite).

SAFETY: This module REFUSES to run against any non-SQLite database whose
name does not contain the substring "test". Tables are dropped after every
test, so pointing the suite at a real database would destroy it.
"""

import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import asyncio  # noqa: E402
from typing import Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from bailey.database.db import Base  # noqa: E402
from bailey.grid.scheduler import ManualScheduler  # noqa: E402
from bailey.services import auth_service, user_service  # noqa: E402


def _resolve_test_database_url(tmp_path) -> str:
    """Build the test database URL with safety checks.

    Raises ``RuntimeError`` if a configured server database is not a test database.
    """
    url = os.getenv("TEST_DATABASE_URL", "")
    if not url:
        return f"sqlite+aiosqlite:///{tmp_path / 'bailey_test.db'}"
    if url.startswith("sqlite"):
        return url

    # ── Safety gate: database name MUST contain "test" ──────────────────
    db_name = url.rsplit("/", 1)[-1].split("?")[0]  # strip query params
    if "test" not in db_name.lower():
        raise RuntimeError(
            f"\n{'=' * 70}\n"
            f"  SAFETY: Refusing to run tests against database '{db_name}'.\n"
            f"  The database name must contain 'test' to prevent accidental\n"
            f"  data loss in development or production databases.\n\n"
            f"  Fix: set TEST_DATABASE_URL to a test database, e.g.:\n"
            f"    export TEST_DATABASE_URL=postgresql+asyncpg://.../bailey_test\n"
            f"{'=' * 70}"
        )
    return url


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a test database engine with all tables."""
    # Use NullPool to avoid connection reuse issues across event loops
    engine = create_async_engine(
        _resolve_test_database_url(tmp_path),
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        from bailey.database import models  # noqa: F401

        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # Code using db.AsyncSessionLocal() (ServiceStore, scripts) must hit the test engine
    from bailey.database import db

    test_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = test_session_maker

    yield engine

    db.AsyncSessionLocal = original_async_session_local

    await asyncio.sleep(0.01)  # let connections finish
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """Database session on the test engine."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest_asyncio.fixture
async def test_user(db_session):
    """A registered user to own test data."""
    email = "debater@example.com"
    user_id = await user_service.create_user(db_session, email, auth_service.hash_password("password123"))
    return {"id": user_id, "email": email}


@pytest_asyncio.fixture
async def other_user(db_session):
    """A second user, for ownership checks."""
    email = "rival@example.com"
    user_id = await user_service.create_user(db_session, email, auth_service.hash_password("password456"))
    return {"id": user_id, "email": email}


@pytest.fixture
def scheduler():
    """Simulated clock starting at t=0."""
    return ManualScheduler()


class RecordingStore:
    """In-memory store that records every call the grid core makes."""

    def __init__(self):
        self.flows: Dict[int, Dict] = {}
        self.cells: Dict[int, Dict[tuple, Dict]] = {}
        self.flow_analytics: Dict[int, Dict] = {}
        self.round_analytics: Dict[int, Dict] = {}
        self.upserts: List[tuple] = []
        self.beacons: List[tuple] = []
        self.calls: List[str] = []
        self.fail_upserts = False
        self.fail_loads = False
        self._next_id = 1

    def _id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    def seed_flow(self, round_id: int, position_name: str, initiated_by: str = "aff",
                  display_order: Optional[int] = None) -> Dict:
        flow_id = self._id()
        if display_order is None:
            display_order = len([f for f in self.flows.values() if f["round_id"] == round_id])
        flow = {
            "id": flow_id,
            "round_id": round_id,
            "position_name": position_name,
            "initiated_by": initiated_by,
            "display_order": display_order,
        }
        self.flows[flow_id] = flow
        self.cells[flow_id] = {}
        return dict(flow)

    def seed_cell(self, flow_id: int, col: int, row: int, content: str, color: Optional[str] = None) -> None:
        self.cells[flow_id][(col, row)] = {
            "flow_id": flow_id,
            "column_index": col,
            "row_index": row,
            "content": content,
            "color": color,
        }

    def _merge(self, flow_id: int, cells: List[Dict]) -> None:
        stored = self.cells.setdefault(flow_id, {})
        for cell in cells:
            stored[(cell["column_index"], cell["row_index"])] = {"flow_id": flow_id, **cell}

    async def list_flows(self, round_id: int) -> List[Dict]:
        self.calls.append("list_flows")
        if self.fail_loads:
            raise RuntimeError("Failed to fetch")
        flows = [dict(f) for f in self.flows.values() if f["round_id"] == round_id]
        return sorted(flows, key=lambda f: (f["display_order"], f["id"]))

    async def list_cells(self, flow_id: int) -> List[Dict]:
        self.calls.append("list_cells")
        return [dict(c) for c in self.cells.get(flow_id, {}).values()]

    async def upsert_cells(self, flow_id: int, cells: List[Dict]) -> int:
        self.calls.append("upsert_cells")
        self.upserts.append((flow_id, [dict(c) for c in cells]))
        if self.fail_upserts:
            raise RuntimeError("Network request failed")
        self._merge(flow_id, cells)
        return len(cells)

    async def flush_beacon(self, flow_id: int, cells: List[Dict]) -> int:
        self.calls.append("flush_beacon")
        self.beacons.append((flow_id, [dict(c) for c in cells]))
        self._merge(flow_id, cells)
        return len(cells)

    async def create_flow(self, round_id: int, **fields) -> Dict:
        self.calls.append("create_flow")
        return self.seed_flow(round_id, fields["position_name"], fields.get("initiated_by", "aff"),
                              fields.get("display_order"))

    async def update_flow(self, flow_id: int, **fields) -> Dict:
        self.calls.append("update_flow")
        self.flows[flow_id].update(fields)
        return dict(self.flows[flow_id])

    async def delete_flow(self, flow_id: int) -> None:
        self.calls.append("delete_flow")
        del self.flows[flow_id]
        self.cells.pop(flow_id, None)

    async def reorder_flows(self, updates: List[Dict]) -> int:
        self.calls.append("reorder_flows")
        for update in updates:
            self.flows[update["id"]]["display_order"] = update["display_order"]
        return len(updates)

    async def get_flow_analytics(self, flow_id: int) -> Optional[Dict]:
        self.calls.append("get_flow_analytics")
        return self.flow_analytics.get(flow_id)

    async def upsert_flow_analytics(self, flow_id: int, **notes) -> Dict:
        self.calls.append("upsert_flow_analytics")
        self.flow_analytics[flow_id] = {"flow_id": flow_id, **notes}
        return self.flow_analytics[flow_id]

    async def get_round_analytics(self, round_id: int) -> Optional[Dict]:
        self.calls.append("get_round_analytics")
        return self.round_analytics.get(round_id)

    async def upsert_round_analytics(self, round_id: int, **notes) -> Dict:
        self.calls.append("upsert_round_analytics")
        self.round_analytics[round_id] = {"round_id": round_id, **notes}
        return self.round_analytics[round_id]


@pytest.fixture
def store():
    """Recording in-memory store."""
    return RecordingStore()
