"""
Best Shot Backend — Participant SQLAlchemy Model
==================================================

What:  ORM model for the `participants` table (the Participant Directory).
Who:   Read by the vote flow (lookup by access code) and the admin dashboard;
       mutated on submission (completion) and on admin reset.

Lifecycle:
    1. Created out-of-band by the seed command with a random access code
    2. selected_count tracks in-progress selection (0-10)
    3. Submission sets selected_count=10, is_completed=True, completed_at=now
    4. Admin reset returns it to 0 / False / NULL

Invariant (CHECK constraint):
    is_completed ⇒ selected_count = 10 AND completed_at IS NOT NULL
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    Index,
    Integer,
    String,
    Uuid,
    false,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from bestshot.database import Base


class Participant(Base):
    """A voter identified by a unique random access code."""

    __tablename__ = "participants"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Display name, may carry a trailing honorific",
    )

    # Exact, case-sensitive match on lookup
    code: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        unique=True,
        comment="Random access code embedded in the personal vote link",
    )

    selected_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    is_completed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    completed_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
        default=None,
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        CheckConstraint(
            "selected_count BETWEEN 0 AND 10",
            name="ck_participants_selected_count_range",
        ),
        CheckConstraint(
            "NOT is_completed OR (selected_count = 10 AND completed_at IS NOT NULL)",
            name="ck_participants_completion",
        ),
        # Admin dashboard lists participants oldest first
        Index("idx_participants_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Participant(id={self.id}, name='{self.name}', "
            f"selected_count={self.selected_count}, is_completed={self.is_completed})>"
        )
