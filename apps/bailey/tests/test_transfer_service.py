"""
Tests for tournament export and import.
"""

from datetime import date

import pytest

from bailey.services import data_service, transfer_service


async def seed_tournament(session, user_id):
    tournament = await data_service.create_tournament(
        session, user_id, "States 2025", date="2025-03-14", tournament_type="competitor", team_name="Lawrence PS"
    )
    round_ = await data_service.create_round(
        session, user_id, tournament["id"], round_number="1", side="aff", opponent="Harvard KS"
    )
    case = await data_service.create_flow(session, user_id, round_["id"], "Case")
    await data_service.create_flow(session, user_id, round_["id"], "T", initiated_by="neg")
    await data_service.upsert_cells(session, user_id, case["id"], [
        {"column_index": 0, "row_index": 0, "content": "<b>Plan</b>", "color": None},
        {"column_index": 1, "row_index": 2, "content": "no link", "color": "blue"},
    ])
    return tournament


class TestExport:
    @pytest.mark.asyncio
    async def test_export_document_shape(self, db_session, test_user):
        tournament = await seed_tournament(db_session, test_user["id"])
        doc = await transfer_service.export_tournament(db_session, test_user["id"], tournament["id"])

        assert doc["tournament"]["name"] == "States 2025"
        assert "user_id" not in doc["tournament"]
        assert len(doc["rounds"]) == 1
        round_ = doc["rounds"][0]
        assert "user_id" not in round_
        assert [f["position_name"] for f in round_["flows"]] == ["Case", "T"]
        cells = round_["flows"][0]["cells"]
        assert [(c["column_index"], c["row_index"], c["content"], c["color"]) for c in cells] == [
            (0, 0, "<b>Plan</b>", None),
            (1, 2, "no link", "blue"),
        ]
        assert all("user_id" not in c for c in cells)

    @pytest.mark.asyncio
    async def test_export_of_foreign_tournament(self, db_session, test_user, other_user):
        tournament = await seed_tournament(db_session, test_user["id"])
        assert await transfer_service.export_tournament(db_session, other_user["id"], tournament["id"]) is None

    def test_export_filename(self):
        assert transfer_service.export_filename("States 2025", date(2025, 3, 1)) == "bailey-States-2025-2025-03-01.json"
        assert transfer_service.export_filename("a/b c", date(2025, 1, 2)) == "bailey-a-b-c-2025-01-02.json"


class TestImport:
    @pytest.mark.asyncio
    async def test_export_then_import_creates_a_copy(self, db_session, test_user, other_user):
        original = await seed_tournament(db_session, test_user["id"])
        doc = await transfer_service.export_tournament(db_session, test_user["id"], original["id"])

        imported = await transfer_service.import_tournament(db_session, other_user["id"], doc)

        assert imported["id"] != original["id"]
        assert imported["user_id"] == other_user["id"]
        assert imported["name"] == "States 2025"
        assert imported["date"] == "2025-03-14"

        copy = await transfer_service.export_tournament(db_session, other_user["id"], imported["id"])
        flows = copy["rounds"][0]["flows"]
        assert [f["position_name"] for f in flows] == ["Case", "T"]
        assert flows[1]["initiated_by"] == "neg"
        assert [(c["column_index"], c["row_index"], c["content"], c["color"]) for c in flows[0]["cells"]] == [
            (0, 0, "<b>Plan</b>", None),
            (1, 2, "no link", "blue"),
        ]
        assert copy["rounds"][0]["aff_team"] == "Lawrence PS"

    @pytest.mark.asyncio
    async def test_import_twice_does_not_deduplicate(self, db_session, test_user):
        doc = {"tournament": {"name": "Twice"}, "rounds": []}
        await transfer_service.import_tournament(db_session, test_user["id"], doc)
        await transfer_service.import_tournament(db_session, test_user["id"], doc)
        names = [t["name"] for t in await data_service.list_tournaments(db_session, test_user["id"])]
        assert names == ["Twice", "Twice"]

    @pytest.mark.asyncio
    async def test_import_sanitizes_cells(self, db_session, test_user):
        doc = {
            "tournament": {"name": "Imported"},
            "rounds": [{
                "round_number": "Semis",
                "flows": [{
                    "position_name": "Case",
                    "cells": [{"column_index": 0, "row_index": 0, "content": "<script>x</script><u>y</u>"}],
                }],
            }],
        }
        imported = await transfer_service.import_tournament(db_session, test_user["id"], doc)
        exported = await transfer_service.export_tournament(db_session, test_user["id"], imported["id"])
        assert exported["rounds"][0]["flows"][0]["cells"][0]["content"] == "x<u>y</u>"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "doc",
        [
            None,
            [],
            {"rounds": []},
            {"tournament": {"name": "X"}},
            {"tournament": {"name": ""}, "rounds": []},
            {"tournament": {"name": "X", "date": "not a date"}, "rounds": []},
            {"tournament": {"name": "X"}, "rounds": [{"round_number": "99"}]},
            {"tournament": {"name": "X"}, "rounds": [{"round_number": "1", "side": "middle"}]},
            {"tournament": {"name": "X"}, "rounds": [{"round_number": "1", "flows": [{"position_name": ""}]}]},
            {"tournament": {"name": "X"}, "rounds": [{"round_number": "1", "flows": [
                {"position_name": "Case", "cells": [{"column_index": 0}]},
            ]}]},
            {"tournament": {"name": "X"}, "rounds": [{"round_number": "1", "flows": [
                {"position_name": "Case", "cells": [{"column_index": 0, "row_index": 0, "color": "pink"}]},
            ]}]},
        ],
    )
    async def test_invalid_documents_rejected_without_writes(self, db_session, test_user, doc):
        with pytest.raises(ValueError, match="Invalid file format"):
            await transfer_service.import_tournament(db_session, test_user["id"], doc)
        assert await data_service.list_tournaments(db_session, test_user["id"]) == []
