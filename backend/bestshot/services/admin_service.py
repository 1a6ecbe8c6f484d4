"""
Best Shot Backend — Admin Service
===================================

What:  Participant directory refresh, participant reset, vote counting and
       ranking for the admin dashboard.
Who:   Called by routes/admin.py and by the PDF export.

Reset Flow (POST /api/admin/participants/{id}/reset):
    1. Require explicit confirmation
    2. Delete every ledger row of the participant
    3. selected_count=0, is_completed=False, completed_at=NULL
    4. Commit steps 2-3 together, then publish a ledger delete event

    Delete comes before the flag reset; both sit in one transaction, so a
    failure leaves the participant exactly as they were.
"""

import logging
import uuid
from typing import Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bestshot.exceptions import (
    BestShotError,
    DatabaseError,
    NotFoundError,
    ValidationError,
    WriteError,
)
from bestshot.models.participant import Participant
from bestshot.models.selection import Selection
from bestshot.presenters import participant_row
from bestshot.schemas.admin import (
    ParticipantListResponse,
    RankedPhoto,
    RankingResponse,
    ResetResponse,
)
from bestshot.services import catalog
from bestshot.services.change_feed import (
    ChangeKind,
    SelectionChange,
    SelectionChangeFeed,
    change_feed,
)
from bestshot.services.ranking import rank_photos

logger = logging.getLogger(__name__)


async def list_participants_ordered(db: AsyncSession) -> List[Participant]:
    """Participant directory, oldest first."""
    result = await db.execute(
        select(Participant).order_by(Participant.created_at.asc())
    )
    return list(result.scalars().all())


async def load_vote_counts(db: AsyncSession) -> Dict[int, int]:
    """Ledger rows grouped by photo id."""
    result = await db.execute(
        select(Selection.photo_id, func.count()).group_by(Selection.photo_id)
    )
    return {photo_id: count for photo_id, count in result.all()}


class AdminService:
    """Business logic behind the admin dashboard."""

    def __init__(self, feed: Optional[SelectionChangeFeed] = None):
        self.feed = feed or change_feed

    async def list_participants(self, db: AsyncSession) -> ParticipantListResponse:
        try:
            participants = await list_participants_ordered(db)
        except SQLAlchemyError as e:
            logger.error("Database error listing participants: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load participants. Please try again.",
                context={"error_type": type(e).__name__},
            )

        rows = [participant_row(p) for p in participants]
        return ParticipantListResponse(
            participants=rows,
            total_count=len(rows),
            completed_count=sum(1 for r in rows if r.is_completed),
        )

    async def reset_participant(
        self,
        db: AsyncSession,
        participant_id: uuid.UUID,
        confirmed: bool,
    ) -> ResetResponse:
        """Wipe a participant's votes and completion flags."""
        if not confirmed:
            raise ValidationError(
                message="Please confirm the reset; it cannot be undone",
                field="confirmed",
            )

        try:
            participant = await db.get(Participant, participant_id)
            if participant is None:
                raise NotFoundError(resource="participant", resource_id=str(participant_id))

            result = await db.execute(
                select(Selection.photo_id).where(Selection.participant_id == participant_id)
            )
            removed = tuple(result.scalars().all())

            await db.execute(
                delete(Selection).where(Selection.participant_id == participant_id)
            )
            participant.selected_count = 0
            participant.is_completed = False
            participant.completed_at = None
            await db.flush()
            await db.commit()

        except BestShotError:
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(
                "Reset of participant %s failed and was rolled back: %s",
                participant_id,
                str(e),
                exc_info=True,
            )
            raise WriteError(
                message="Resetting the participant failed. Nothing was changed; please try again.",
                context={"participant_id": str(participant_id)},
            )

        logger.info("Participant %s reset (%d selections removed)", participant_id, len(removed))
        self.feed.publish(
            SelectionChange(
                kind=ChangeKind.DELETE,
                participant_id=participant_id,
                photo_ids=removed,
            )
        )

        return ResetResponse(
            deleted_selections=len(removed),
            participant=participant_row(participant),
        )

    async def ranking(self, db: AsyncSession, limit: int = 10) -> RankingResponse:
        """Top photos by vote count, ties in catalog order."""
        try:
            photos = await catalog.list_photos(db)
            counts = await load_vote_counts(db)
        except SQLAlchemyError as e:
            logger.error("Database error computing ranking: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not compute the ranking. Please try again.",
                context={"error_type": type(e).__name__},
            )

        ranked = rank_photos(photos, counts, limit=limit)
        return RankingResponse(
            photos=[
                RankedPhoto(
                    rank=position,
                    photo_id=photo.id,
                    url=photo.url,
                    thumbnail_url=photo.thumbnail_url,
                    count=count,
                )
                for position, (photo, count) in enumerate(ranked, start=1)
            ],
            total_votes=sum(counts.values()),
        )


admin_service = AdminService()
