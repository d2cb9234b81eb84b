"""
SQLAlchemy ORM models for the Bailey flowing system.

Every row is scoped to the owning user. Cells are keyed by
(flow_id, column_index, row_index); the unique constraint on that triple is
what makes repeated cell flushes idempotent upserts.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from bailey.database.db import Base


def _values(enum_cls):
    return [e.value for e in enum_cls]


class TournamentType(str, enum.Enum):
    """Whether the user judges or competes at a tournament."""

    JUDGE = "judge"
    COMPETITOR = "competitor"


class Side(str, enum.Enum):
    """Debate side."""

    AFF = "aff"
    NEG = "neg"


class RoundResult(str, enum.Enum):
    """Win/loss result of a round."""

    WIN = "W"
    LOSS = "L"


class CellColor(str, enum.Enum):
    """Whole-cell highlight colour. Absence of a colour is stored as NULL."""

    YELLOW = "yellow"
    GREEN = "green"
    BLUE = "blue"


class User(Base):
    """User accounts with email/password authentication."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=False, unique=True)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    tournaments = relationship("Tournament", back_populates="user", passive_deletes=True)

    __table_args__ = (Index("idx_users_email", "email"),)


class Tournament(Base):
    """Top-level container for rounds."""

    __tablename__ = "tournaments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    date = Column(Date, nullable=True)
    location = Column(String, nullable=True)
    tournament_type = Column(
        Enum(TournamentType, values_callable=_values, name="tournamenttype"),
        default=TournamentType.COMPETITOR,
        nullable=False,
    )
    team_name = Column(String, nullable=True)  # Competitor mode only
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="tournaments")
    rounds = relationship("Round", back_populates="tournament", passive_deletes=True)

    __table_args__ = (Index("idx_tournaments_user", "user_id", "updated_at"),)


class Round(Base):
    """A single debate round within a tournament."""

    __tablename__ = "rounds"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    tournament_id = Column(
        Integer, ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False
    )
    round_number = Column(String(20), nullable=False)  # One of ROUND_LABELS
    side = Column(Enum(Side, values_callable=_values, name="side"), nullable=True)
    opponent = Column(String, nullable=True)
    aff_team = Column(String, nullable=True)
    neg_team = Column(String, nullable=True)
    judge_names = Column(String, nullable=True)
    result = Column(Enum(RoundResult, values_callable=_values, name="roundresult"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    tournament = relationship("Tournament", back_populates="rounds")
    flows = relationship("FlowTab", back_populates="round", passive_deletes=True)

    __table_args__ = (Index("idx_rounds_tournament", "tournament_id"),)


class FlowTab(Base):
    """A named set of note columns tracking one position across a round."""

    __tablename__ = "flow_tabs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    round_id = Column(Integer, ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False)
    position_name = Column(String, nullable=False)
    initiated_by = Column(Enum(Side, values_callable=_values, name="side"), nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    round = relationship("Round", back_populates="flows")
    cells = relationship("FlowCell", back_populates="flow", passive_deletes=True)

    __table_args__ = (Index("idx_flow_tabs_round_order", "round_id", "display_order"),)


class FlowCell(Base):
    """One (column, row) note entry within a flow tab."""

    __tablename__ = "flow_cells"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    flow_id = Column(Integer, ForeignKey("flow_tabs.id", ondelete="CASCADE"), nullable=False)
    column_index = Column(Integer, nullable=False)
    row_index = Column(Integer, nullable=False)
    content = Column(Text, nullable=False, default="")  # Sanitized HTML subset
    color = Column(Enum(CellColor, values_callable=_values, name="cellcolor"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    flow = relationship("FlowTab", back_populates="cells")

    __table_args__ = (
        UniqueConstraint(
            "flow_id", "column_index", "row_index", name="uq_flow_cells_coordinate"
        ),
    )


class FlowAnalytics(Base):
    """Free-form notes attached to a flow tab."""

    __tablename__ = "flow_analytics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    flow_id = Column(
        Integer, ForeignKey("flow_tabs.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    notes_aff = Column(Text, nullable=True)
    notes_neg = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class RoundAnalytics(Base):
    """
    Decision notes attached to a round.

    In competitor mode notes_neg holds general judge notes rather than
    negative-side feedback.
    """

    __tablename__ = "round_analytics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    round_id = Column(
        Integer, ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    notes_aff = Column(Text, nullable=True)
    notes_neg = Column(Text, nullable=True)
    notes_decision = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
