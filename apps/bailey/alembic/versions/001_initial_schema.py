"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2025-02-01 12:00:00.000000

Creates the flowing schema:
- users
- tournaments, rounds, flow_tabs, flow_cells
- flow_analytics, round_analytics
- enum types tournamenttype, side, roundresult, cellcolor

Every foreign key cascades on delete. flow_cells carries the
(flow_id, column_index, row_index) unique constraint used as the upsert key.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Types are created once up front; side is shared by two tables
tournament_type_enum = postgresql.ENUM("judge", "competitor", name="tournamenttype", create_type=False)
side_enum = postgresql.ENUM("aff", "neg", name="side", create_type=False)
round_result_enum = postgresql.ENUM("W", "L", name="roundresult", create_type=False)
cell_color_enum = postgresql.ENUM("yellow", "green", "blue", name="cellcolor", create_type=False)

ENUMS = (tournament_type_enum, side_enum, round_result_enum, cell_color_enum)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    ]


def _user_fk():
    return sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE")


def upgrade() -> None:
    """Create all tables and enum types."""
    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("idx_users_email", "users", ["email"])

    op.create_table(
        "tournaments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("tournament_type", tournament_type_enum, nullable=False),
        sa.Column("team_name", sa.String(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        _user_fk(),
    )
    op.create_index("idx_tournaments_user", "tournaments", ["user_id", "updated_at"])

    op.create_table(
        "rounds",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("round_number", sa.String(length=20), nullable=False),
        sa.Column("side", side_enum, nullable=True),
        sa.Column("opponent", sa.String(), nullable=True),
        sa.Column("aff_team", sa.String(), nullable=True),
        sa.Column("neg_team", sa.String(), nullable=True),
        sa.Column("judge_names", sa.String(), nullable=True),
        sa.Column("result", round_result_enum, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        _user_fk(),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournaments.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_rounds_tournament", "rounds", ["tournament_id"])

    op.create_table(
        "flow_tabs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("round_id", sa.Integer(), nullable=False),
        sa.Column("position_name", sa.String(), nullable=False),
        sa.Column("initiated_by", side_enum, nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        _user_fk(),
        sa.ForeignKeyConstraint(["round_id"], ["rounds.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_flow_tabs_round_order", "flow_tabs", ["round_id", "display_order"])

    op.create_table(
        "flow_cells",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("flow_id", sa.Integer(), nullable=False),
        sa.Column("column_index", sa.Integer(), nullable=False),
        sa.Column("row_index", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("color", cell_color_enum, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        _user_fk(),
        sa.ForeignKeyConstraint(["flow_id"], ["flow_tabs.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("flow_id", "column_index", "row_index", name="uq_flow_cells_coordinate"),
    )

    op.create_table(
        "flow_analytics",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("flow_id", sa.Integer(), nullable=False),
        sa.Column("notes_aff", sa.Text(), nullable=True),
        sa.Column("notes_neg", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        _user_fk(),
        sa.ForeignKeyConstraint(["flow_id"], ["flow_tabs.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("flow_id"),
    )

    op.create_table(
        "round_analytics",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("round_id", sa.Integer(), nullable=False),
        sa.Column("notes_aff", sa.Text(), nullable=True),
        sa.Column("notes_neg", sa.Text(), nullable=True),
        sa.Column("notes_decision", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        _user_fk(),
        sa.ForeignKeyConstraint(["round_id"], ["rounds.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("round_id"),
    )


def downgrade() -> None:
    """Drop all tables, children first, then the enum types."""
    for table in (
        "round_analytics",
        "flow_analytics",
        "flow_cells",
        "flow_tabs",
        "rounds",
        "tournaments",
        "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
