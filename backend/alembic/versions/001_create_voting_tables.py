"""Create voting tables

Revision ID: 001
Revises: None
Create Date: 2025-05-01 00:00:00.000000+00:00

What:  Creates participants, photos and selections.
       See bestshot/models/ for column documentation.

Rollback: downgrade() drops all three tables (destructive, votes are lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "participants",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "name",
            sa.String(100),
            nullable=False,
            comment="Display name, may carry a trailing honorific",
        ),
        sa.Column(
            "code",
            sa.String(32),
            nullable=False,
            comment="Random access code embedded in the personal vote link",
        ),
        sa.Column("selected_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_participants_code"),
        sa.CheckConstraint(
            "selected_count BETWEEN 0 AND 10",
            name="ck_participants_selected_count_range",
        ),
        sa.CheckConstraint(
            "NOT is_completed OR (selected_count = 10 AND completed_at IS NOT NULL)",
            name="ck_participants_completion",
        ),
    )
    op.create_index("idx_participants_created_at", "participants", ["created_at"])

    op.create_table(
        "photos",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("url", sa.String(1024), nullable=False, comment="Full-resolution image URL"),
        sa.Column(
            "thumbnail_url",
            sa.String(1024),
            nullable=True,
            comment="Optional reduced-size image URL used by grids and the PDF",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "selections",
        sa.Column("participant_id", sa.Uuid(), nullable=False),
        sa.Column("photo_id", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["participant_id"], ["participants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["photo_id"], ["photos.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("participant_id", "photo_id"),
    )
    # Tally and ranking group ledger rows by photo
    op.create_index("idx_selections_photo_id", "selections", ["photo_id"])


def downgrade() -> None:
    op.drop_index("idx_selections_photo_id", table_name="selections")
    op.drop_table("selections")
    op.drop_table("photos")
    op.drop_index("idx_participants_created_at", table_name="participants")
    op.drop_table("participants")
