#!/usr/bin/env python3
"""
Seed local dev database with a demo user and tournament.

Creates demo@bailey.test (password: demo1234) owning "States 2025"
(competitor, team "Lawrence PS") with Round 1 vs Harvard KS on the
affirmative, a "Case" flow tab and a few cells. Idempotent: skips the
user and the tournament if they already exist.

Usage (local, from repo root):
    python scripts/seed_demo_tournament.py
"""

import asyncio
import os
import sys

# Add the apps directory to path
apps_dir = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "apps")
sys.path.insert(0, apps_dir)

from bailey.database import db  # noqa: E402
from bailey.services import auth_service, data_service, user_service  # noqa: E402

DEMO_EMAIL = "demo@bailey.test"
DEMO_PASSWORD = "demo1234"

DEMO_CELLS = [
    {"column_index": 0, "row_index": 0, "content": "<b>Plan</b>: the USFG should substantially increase funding", "color": None},
    {"column_index": 0, "row_index": 1, "content": "Adv 1 - <mark data-color=\"yellow\">economy</mark>", "color": None},
    {"column_index": 1, "row_index": 0, "content": "T - substantial means 20%", "color": "yellow"},
    {"column_index": 1, "row_index": 1, "content": "Econ DA - <u>no link</u>?", "color": None},
    {"column_index": 2, "row_index": 1, "content": "Link turn: funding boosts growth", "color": "green"},
]


async def main():
    """Create the demo user, tournament, round, flow tab and cells."""
    await db.init_database()

    async with db.AsyncSessionLocal() as session:
        user = await user_service.get_user_by_email(session, DEMO_EMAIL)
        if user:
            user_id = user["id"]
            print(f"  Demo user already exists (user #{user_id})")
        else:
            user_id = await user_service.create_user(
                session, DEMO_EMAIL, auth_service.hash_password(DEMO_PASSWORD)
            )
            print(f"  Created demo user #{user_id}")

        existing = [t for t in await data_service.list_tournaments(session, user_id) if t["name"] == "States 2025"]
        if existing:
            print(f"  States 2025 already exists (tournament #{existing[0]['id']})")
            return

        tournament = await data_service.create_tournament(
            session, user_id, "States 2025", tournament_type="competitor", team_name="Lawrence PS"
        )
        round_ = await data_service.create_round(
            session, user_id, tournament["id"], round_number="1", side="aff", opponent="Harvard KS"
        )
        flow = await data_service.create_flow(session, user_id, round_["id"], "Case", initiated_by="aff")
        written = await data_service.upsert_cells(session, user_id, flow["id"], DEMO_CELLS)

        print(f"  Created tournament #{tournament['id']}, round #{round_['id']}, flow #{flow['id']} ({written} cells)")

    print(f"\n  Login: {DEMO_EMAIL} / {DEMO_PASSWORD}\n")


if __name__ == "__main__":
    asyncio.run(main())
