"""
RosterGuard Database Models
===========================

Two tables back the integrity engine:
- players: one denormalized JSON document per player, replaced wholesale
  on every accepted update batch
- data_updates: append-only history of accepted update batches

History rows are never updated or deleted by the update path. Retention
pruning (when configured) is the only thing that removes them.
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from rosterguard.database import Base


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def _enum_values(enum_class) -> list:
    """Store enum values ("csv_upload"), not member names."""
    return [member.value for member in enum_class]


# =============================================================================
# ENUMS
# =============================================================================

class UpdateSource(str, enum.Enum):
    """Where an update batch came from."""
    MANUAL = "manual"
    CSV_UPLOAD = "csv_upload"
    API_CALL = "api_call"
    AI_ANALYSIS = "ai_analysis"
    MEDICAL_UPDATE = "medical_update"
    PHYSIO_UPDATE = "physio_update"


class UpdateCategory(str, enum.Enum):
    """Which part of the player record an update batch is about."""
    PERSONAL = "personal"
    PHYSICAL = "physical"
    MEDICAL = "medical"
    PERFORMANCE = "performance"
    SKILLS = "skills"
    AI_RATING = "ai_rating"
    AVAILABILITY = "availability"


# =============================================================================
# PLAYER DOCUMENT
# =============================================================================

class Player(Base):
    """A roster member stored as a single JSON document."""
    __tablename__ = "players"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    document: Mapped[dict] = mapped_column(JSONDocument, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


# =============================================================================
# HISTORY - Append-only update log
# =============================================================================

class DataUpdate(Base):
    """
    One accepted update batch for one player.

    previous_value holds the pre-merge value of every changed path,
    new_value the post-cascade update map that was merged.
    """
    __tablename__ = "data_updates"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    source: Mapped[UpdateSource] = mapped_column(
        Enum(UpdateSource, values_callable=_enum_values), nullable=False
    )
    category: Mapped[UpdateCategory] = mapped_column(
        Enum(UpdateCategory, values_callable=_enum_values), nullable=False
    )
    player_id: Mapped[str] = mapped_column(String(100), nullable=False)

    previous_value: Mapped[Optional[dict]] = mapped_column(JSONDocument)
    new_value: Mapped[dict] = mapped_column(JSONDocument, nullable=False)

    updated_by: Mapped[str] = mapped_column(String(255), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    affected_metrics: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)

    __table_args__ = (
        Index("ix_data_updates_player_timestamp", "player_id", "timestamp"),
    )
