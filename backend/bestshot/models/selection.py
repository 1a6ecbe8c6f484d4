"""
Best Shot Backend — Selection SQLAlchemy Model
================================================

What:  ORM model for the `selections` table (the Selection Ledger).
       One row per (participant, photo) vote.

Rules:
    - Written in a single batch of ten at submission
    - Deleted in batch by admin reset
    - Never updated
    - Composite primary key: a participant cannot hold the same photo twice
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import TIMESTAMP, ForeignKey, Index, Integer, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from bestshot.database import Base


class Selection(Base):
    """A single vote: participant X picked photo Y."""

    __tablename__ = "selections"

    participant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("participants.id", ondelete="CASCADE"),
        primary_key=True,
    )

    photo_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("photos.id", ondelete="RESTRICT"),
        primary_key=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        # Tally aggregation groups by photo
        Index("idx_selections_photo_id", "photo_id"),
    )

    def __repr__(self) -> str:
        return f"<Selection(participant_id={self.participant_id}, photo_id={self.photo_id})>"
