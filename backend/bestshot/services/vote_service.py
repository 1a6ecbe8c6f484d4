"""
Best Shot Backend — Vote Service (Vote Flow Orchestrator)
===========================================================

What:  Resolves a participant by access code, renders the vote page, applies
       selection toggles and performs the final submission.
Who:   Called by the routes in routes/vote.py.

Submission Flow (POST /api/vote/{code}/submit):
    ┌──────────┐   ┌───────────┐   ┌──────────────────────────────┐   ┌──────────┐
    │ Confirm? │──▶│  Ballot   │──▶│ ONE transaction:             │──▶│ Publish  │
    │ Resolve  │   │ exactly 10│   │  (a) insert 10 ledger rows   │   │ ledger   │
    │ code     │   │ distinct, │   │  (b) mark participant done   │   │ insert   │
    └──────────┘   │ known ids │   └──────────────────────────────┘   └──────────┘
                   └───────────┘
Error Recovery:
    Unconfirmed / wrong count / unknown photo → ValidationError (400), nothing written
    Already completed                         → BallotStateError (409)
    Write failure in (a) or (b)               → rollback, WriteError (500), retriable
    Ledger rows already present               → rollback, ConflictError (409): a
                                                concurrent submit won, or leftover rows
                                                need an admin reset
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bestshot.domain.ballot import BALLOT_SIZE, Ballot, BallotState
from bestshot.exceptions import (
    BallotStateError,
    BestShotError,
    ConflictError,
    DatabaseError,
    NotFoundError,
    ValidationError,
    WriteError,
)
from bestshot.models.participant import Participant
from bestshot.models.selection import Selection
from bestshot.presenters import (
    build_photo_grid,
    participant_summary,
    selected_photos,
)
from bestshot.schemas.vote import SubmitResponse, ToggleResponse, VotePageResponse
from bestshot.services import catalog
from bestshot.services.change_feed import (
    ChangeKind,
    SelectionChange,
    SelectionChangeFeed,
    change_feed,
)
from bestshot.services.tally_service import TallyAggregator, tally_aggregator

logger = logging.getLogger(__name__)


class VoteService:
    """
    Business logic for the participant-facing vote flow.

    Stateless apart from its collaborators: the ballot in progress lives on
    the client and is sent back with each toggle and with the submission.
    """

    def __init__(
        self,
        feed: Optional[SelectionChangeFeed] = None,
        aggregator: Optional[TallyAggregator] = None,
    ):
        self.feed = feed or change_feed
        self.aggregator = aggregator or tally_aggregator

    async def _resolve(self, db: AsyncSession, code: str, for_update: bool = False) -> Participant:
        participant = await catalog.find_participant_by_code(db, code, for_update=for_update)
        if participant is None:
            # Never echo the code: it is the participant's only credential
            raise NotFoundError(resource="participant")
        return participant

    # ── Vote page ─────────────────────────────────────────────────────────

    async def get_vote_page(
        self,
        db: AsyncSession,
        code: str,
        selected: Sequence[int] = (),
    ) -> VotePageResponse:
        """
        Build the vote page for an access code.

        Completed participants get the read-only completed view with their
        historical picks; everyone else gets the selection grid, optionally
        re-rendered for the client's in-progress `selected` ids.
        """
        try:
            participant = await self._resolve(db, code)
            photos = await catalog.list_photos(db)

            if participant.is_completed:
                picked = await catalog.ledger_photo_ids(db, participant.id)
                completed_photos = selected_photos(photos, picked)
                ballot = Ballot.completed_with(p.id for p in completed_photos)
                return VotePageResponse(
                    participant=participant_summary(participant),
                    state=ballot.state,
                    selected_ids=list(ballot.selected_ids),
                    selected_count=ballot.count,
                    can_submit=ballot.can_submit,
                    selected_photos=completed_photos,
                )

            known = {p.id for p in photos}
            unknown = [pid for pid in selected if pid not in known]
            if unknown:
                raise ValidationError(
                    message="The selection contains photos that do not exist",
                    field="selected",
                    context={"unknown_ids": unknown},
                )
            ballot = Ballot(selected)
            voters = await self.aggregator.current_voters(db)

            return VotePageResponse(
                participant=participant_summary(participant),
                state=ballot.state,
                selected_ids=list(ballot.selected_ids),
                selected_count=ballot.count,
                can_submit=ballot.can_submit,
                photos=build_photo_grid(photos, ballot, voters),
            )

        except BestShotError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error loading vote page: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load the photos. Please try again.",
                context={"error_type": type(e).__name__},
            )

    # ── Toggle ────────────────────────────────────────────────────────────

    async def toggle(
        self,
        db: AsyncSession,
        code: str,
        selected_ids: Sequence[int],
        photo_id: int,
    ) -> ToggleResponse:
        """
        Apply one tap to the client's current selection.

        The resulting count is stored as the participant's progress so the
        admin dashboard can show who is midway through.
        """
        try:
            participant = await self._resolve(db, code)
            if participant.is_completed:
                raise BallotStateError(BallotState.COMPLETED.value, "change the selection")

            missing = await catalog.missing_photo_ids(db, [photo_id, *selected_ids])
            if photo_id in missing:
                raise NotFoundError(resource="photo", resource_id=str(photo_id))
            if missing:
                raise ValidationError(
                    message="The selection contains photos that do not exist",
                    field="selected_ids",
                    context={"unknown_ids": missing},
                )

            ballot = Ballot(selected_ids)
            changed = ballot.toggle(photo_id)

            if participant.selected_count != ballot.count:
                participant.selected_count = ballot.count
                await db.commit()

        except BestShotError:
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Failed to record selection progress: %s", str(e), exc_info=True)
            raise WriteError(context={"error_type": type(e).__name__})

        return ToggleResponse(
            selected_ids=list(ballot.selected_ids),
            selected_count=ballot.count,
            state=ballot.state,
            can_submit=ballot.can_submit,
            changed=changed,
        )

    # ── Submit ────────────────────────────────────────────────────────────

    async def submit(
        self,
        db: AsyncSession,
        code: str,
        photo_ids: Iterable[int],
        confirmed: bool,
    ) -> SubmitResponse:
        """
        Record the participant's ten photos and mark them completed.

        Ledger insert and participant update share one transaction: either
        both are persisted or neither is.
        """
        if not confirmed:
            raise ValidationError(
                message="Please confirm your selection before submitting",
                field="confirmed",
            )

        ids: List[int] = list(photo_ids)

        try:
            participant = await self._resolve(db, code, for_update=True)
            if participant.is_completed:
                raise BallotStateError(BallotState.COMPLETED.value, "submit")

            ballot = Ballot(ids)
            if not ballot.can_submit:
                raise ValidationError(
                    message=f"Exactly {BALLOT_SIZE} photos must be selected",
                    field="photo_ids",
                    context={"count": ballot.count},
                )
            missing = await catalog.missing_photo_ids(db, ids)
            if missing:
                raise ValidationError(
                    message="The selection contains photos that do not exist",
                    field="photo_ids",
                    context={"unknown_ids": missing},
                )
            photos = await catalog.list_photos(db)
        except BestShotError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error preparing submission: %s", str(e), exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})

        frozen = ballot.begin_submit()
        participant_id = participant.id
        now = datetime.now(timezone.utc)

        try:
            # (a) ledger rows
            db.add_all(
                [
                    Selection(participant_id=participant_id, photo_id=pid, created_at=now)
                    for pid in frozen
                ]
            )
            await db.flush()

            # (b) completion flag
            participant.selected_count = BALLOT_SIZE
            participant.is_completed = True
            participant.completed_at = now
            await db.flush()

            await db.commit()

        except IntegrityError as e:
            await db.rollback()
            ballot.abort_submit()
            logger.warning(
                "Submission for participant %s rejected by constraint: %s",
                participant_id,
                str(e.orig) if e.orig else str(e),
            )
            raise await self._submit_conflict(db, participant_id)
        except SQLAlchemyError as e:
            await db.rollback()
            ballot.abort_submit()
            logger.error(
                "Submission for participant %s failed and was rolled back: %s",
                participant_id,
                str(e),
                exc_info=True,
            )
            raise WriteError(
                message="Submitting your vote failed. Nothing was saved; please try again.",
                context={"participant_id": str(participant_id)},
            )

        ballot.complete()
        logger.info("Participant %s completed voting with photos %s", participant_id, list(frozen))

        self.feed.publish(
            SelectionChange(
                kind=ChangeKind.INSERT,
                participant_id=participant_id,
                photo_ids=frozen,
                occurred_at=now,
            )
        )

        return SubmitResponse(
            participant=participant_summary(participant),
            selected_photos=selected_photos(photos, frozen),
        )

    async def _submit_conflict(self, db: AsyncSession, participant_id) -> ConflictError:
        """Tell a lost race apart from leftover ledger rows of an unfinished vote."""
        try:
            completed = await db.scalar(
                select(Participant.is_completed).where(Participant.id == participant_id)
            )
        except SQLAlchemyError as e:
            logger.warning("Could not re-read participant %s after conflict: %s", participant_id, str(e))
            completed = False

        context = {"participant_id": str(participant_id)}
        if completed:
            return ConflictError(message="This vote has already been recorded.", context=context)

        logger.error(
            "Participant %s has ledger rows but is not completed; an admin reset is required",
            participant_id,
        )
        return ConflictError(
            message="Earlier votes for this link were only partly saved. "
            "Please ask the organizer to reset your ballot, then vote again.",
            context={**context, "needs_reset": True},
        )


vote_service = VoteService()
