"""
Best Shot Backend — Vote Service Tests (SQLite-backed)
========================================================

What we test:
    ✅ ABC123 scenario: empty grid → ten toggles → confirmed submit → completed view
    ✅ Unknown codes, unknown photos, missing confirmation, wrong counts
    ✅ Second submission rejected
    ✅ Failed commit leaves no partial rows and allows a retry
    ✅ Two concurrent submissions each keep their own ten rows
    ✅ Completed participants always hold exactly ten distinct photo ids
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from bestshot.domain.ballot import BallotState
from bestshot.exceptions import (
    BallotStateError,
    ConflictError,
    NotFoundError,
    ValidationError,
    WriteError,
)
from bestshot.models.participant import Participant
from bestshot.models.selection import Selection
from bestshot.services import catalog
from bestshot.services.change_feed import ChangeKind

TEN = list(range(1, 11))


async def ledger_for(session, code):
    participant = await catalog.find_participant_by_code(session, code)
    return participant, await catalog.ledger_photo_ids(session, participant.id)


class TestVotePage:

    @pytest.mark.asyncio
    async def test_fresh_participant_gets_empty_grid(self, vote_svc, db_session):
        page = await vote_svc.get_vote_page(db_session, "ABC123")

        assert page.state is BallotState.NOT_STARTED
        assert page.participant.display_name == "김철수"
        assert page.selected_count == 0
        assert page.max_selections == 10
        assert not page.can_submit
        assert len(page.photos) == 15
        assert all(card.selectable for card in page.photos)
        assert page.selected_photos == []

    @pytest.mark.asyncio
    async def test_page_reflects_client_selection(self, vote_svc, db_session):
        page = await vote_svc.get_vote_page(db_session, "ABC123", selected=TEN)

        assert page.state is BallotState.READY
        assert page.can_submit
        by_id = {c.id: c for c in page.photos}
        assert by_id[1].selected and by_id[1].selectable
        assert not by_id[11].selectable

    @pytest.mark.asyncio
    async def test_page_shows_other_voters(self, vote_svc, db_session, submit_rows):
        await submit_rows(db_session, "XYZ789", TEN)

        page = await vote_svc.get_vote_page(db_session, "ABC123")

        by_id = {c.id: c for c in page.photos}
        assert by_id[3].voters == ["이영희"]
        assert by_id[3].vote_count == 1
        assert by_id[12].vote_count == 0

    @pytest.mark.asyncio
    async def test_unknown_code_is_not_found(self, vote_svc, db_session):
        with pytest.raises(NotFoundError):
            await vote_svc.get_vote_page(db_session, "NOPE00")

    @pytest.mark.asyncio
    async def test_code_lookup_is_case_sensitive(self, vote_svc, db_session):
        with pytest.raises(NotFoundError):
            await vote_svc.get_vote_page(db_session, "abc123")

    @pytest.mark.asyncio
    async def test_unknown_selected_photo_rejected(self, vote_svc, db_session):
        with pytest.raises(ValidationError):
            await vote_svc.get_vote_page(db_session, "ABC123", selected=[1, 999])


class TestToggle:

    @pytest.mark.asyncio
    async def test_toggle_records_progress(self, vote_svc, db_session, session_factory):
        result = await vote_svc.toggle(db_session, "ABC123", [1, 2], 3)

        assert result.changed
        assert result.selected_ids == [1, 2, 3]
        assert result.state is BallotState.SELECTING

        async with session_factory() as check:
            participant = await catalog.find_participant_by_code(check, "ABC123")
            assert participant.selected_count == 3
            assert not participant.is_completed

    @pytest.mark.asyncio
    async def test_toggle_at_capacity_is_noop(self, vote_svc, db_session):
        result = await vote_svc.toggle(db_session, "ABC123", TEN, 11)
        assert not result.changed
        assert result.selected_ids == TEN
        assert result.can_submit

    @pytest.mark.asyncio
    async def test_toggle_removes_at_capacity(self, vote_svc, db_session):
        result = await vote_svc.toggle(db_session, "ABC123", TEN, 4)
        assert result.changed
        assert 4 not in result.selected_ids
        assert result.selected_count == 9

    @pytest.mark.asyncio
    async def test_toggle_unknown_photo(self, vote_svc, db_session):
        with pytest.raises(NotFoundError):
            await vote_svc.toggle(db_session, "ABC123", [], 999)

    @pytest.mark.asyncio
    async def test_toggle_after_completion_conflicts(self, vote_svc, db_session, submit_rows):
        await submit_rows(db_session, "ABC123", TEN)
        with pytest.raises(BallotStateError):
            await vote_svc.toggle(db_session, "ABC123", [], 11)


class TestSubmit:

    @pytest.mark.asyncio
    async def test_abc123_scenario(self, vote_svc, db_session, session_factory):
        """0/10 grid → select ten → confirm → reload shows exactly those ten."""
        page = await vote_svc.get_vote_page(db_session, "ABC123")
        assert page.selected_count == 0

        chosen = [15, 3, 8, 1, 12, 6, 9, 2, 14, 5]
        selected = []
        for photo_id in chosen:
            result = await vote_svc.toggle(db_session, "ABC123", selected, photo_id)
            selected = result.selected_ids
        assert selected == chosen
        assert result.can_submit

        submitted = await vote_svc.submit(db_session, "ABC123", selected, confirmed=True)
        assert submitted.participant.is_completed
        assert [p.id for p in submitted.selected_photos] == sorted(chosen)

        async with session_factory() as fresh:
            reloaded = await vote_svc.get_vote_page(fresh, "ABC123")
        assert reloaded.state is BallotState.COMPLETED
        assert reloaded.photos == []
        assert sorted(reloaded.selected_ids) == sorted(chosen)
        assert [p.id for p in reloaded.selected_photos] == sorted(chosen)
        assert reloaded.participant.completed_at is not None

    @pytest.mark.asyncio
    async def test_submit_publishes_insert_event(self, vote_svc, feed, db_session):
        queue = feed.subscribe()
        await vote_svc.submit(db_session, "ABC123", TEN, confirmed=True)

        change = queue.get_nowait()
        assert change.kind is ChangeKind.INSERT
        assert sorted(change.photo_ids) == TEN

    @pytest.mark.asyncio
    async def test_unconfirmed_submit_writes_nothing(self, vote_svc, db_session):
        with pytest.raises(ValidationError):
            await vote_svc.submit(db_session, "ABC123", TEN, confirmed=False)

        _, ids = await ledger_for(db_session, "ABC123")
        assert ids == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ids", [list(range(1, 10)), list(range(1, 12)), [1] * 10])
    async def test_wrong_selection_rejected(self, vote_svc, db_session, ids):
        with pytest.raises(ValidationError):
            await vote_svc.submit(db_session, "ABC123", ids, confirmed=True)

    @pytest.mark.asyncio
    async def test_unknown_photo_rejected(self, vote_svc, db_session):
        with pytest.raises(ValidationError):
            await vote_svc.submit(db_session, "ABC123", list(range(1, 10)) + [999], confirmed=True)

    @pytest.mark.asyncio
    async def test_unknown_code(self, vote_svc, db_session):
        with pytest.raises(NotFoundError):
            await vote_svc.submit(db_session, "NOPE00", TEN, confirmed=True)

    @pytest.mark.asyncio
    async def test_second_submission_conflicts(self, vote_svc, db_session):
        await vote_svc.submit(db_session, "ABC123", TEN, confirmed=True)
        with pytest.raises(BallotStateError):
            await vote_svc.submit(db_session, "ABC123", list(range(5, 15)), confirmed=True)

        _, ids = await ledger_for(db_session, "ABC123")
        assert sorted(ids) == TEN

    @pytest.mark.asyncio
    async def test_commit_failure_rolls_back_everything(self, vote_svc, feed, db_session, session_factory):
        queue = feed.subscribe()
        failing_commit = AsyncMock(side_effect=OperationalError("COMMIT", {}, Exception("disk I/O error")))

        with patch.object(db_session, "commit", failing_commit):
            with pytest.raises(WriteError):
                await vote_svc.submit(db_session, "ABC123", TEN, confirmed=True)

        assert queue.empty()
        async with session_factory() as check:
            participant, ids = await ledger_for(check, "ABC123")
            assert ids == []
            assert not participant.is_completed
            assert participant.completed_at is None

        # Retry succeeds once the database is healthy again
        async with session_factory() as retry:
            result = await vote_svc.submit(retry, "ABC123", TEN, confirmed=True)
        assert result.participant.is_completed

    @pytest.mark.asyncio
    async def test_constraint_violation_rolls_back(self, vote_svc, db_session, session_factory):
        # A stray ledger row written elsewhere collides with the batch insert
        async with session_factory() as other:
            participant = await catalog.find_participant_by_code(other, "ABC123")
            other.add(Selection(participant_id=participant.id, photo_id=1))
            await other.commit()

        with pytest.raises(ConflictError) as info:
            await vote_svc.submit(db_session, "ABC123", TEN, confirmed=True)

        # Leftover rows on an unfinished ballot need an admin reset
        assert "reset" in info.value.message
        assert info.value.context["needs_reset"] is True

        async with session_factory() as check:
            participant, ids = await ledger_for(check, "ABC123")
            assert ids == [1]
            assert not participant.is_completed

    @pytest.mark.asyncio
    async def test_conflict_after_completed_submit_reports_recorded_vote(self, vote_svc, db_session, submit_rows):
        participant = await submit_rows(db_session, "XYZ789", range(1, 11))

        error = await vote_svc._submit_conflict(db_session, participant.id)

        assert error.message == "This vote has already been recorded."
        assert "needs_reset" not in error.context

    @pytest.mark.asyncio
    async def test_concurrent_submissions_keep_their_own_rows(self, vote_svc, session_factory):
        first = list(range(1, 11))
        second = list(range(6, 16))

        async def submit(code, ids):
            async with session_factory() as session:
                return await vote_svc.submit(session, code, ids, confirmed=True)

        await asyncio.gather(submit("ABC123", first), submit("XYZ789", second))

        async with session_factory() as check:
            total = await check.scalar(select(func.count()).select_from(Selection))
            assert total == 20
            _, abc = await ledger_for(check, "ABC123")
            _, xyz = await ledger_for(check, "XYZ789")
            assert sorted(abc) == first
            assert sorted(xyz) == second

    @pytest.mark.asyncio
    async def test_completed_participants_hold_ten_distinct_photos(
        self, vote_svc, db_session, session_factory
    ):
        await vote_svc.submit(db_session, "ABC123", TEN, confirmed=True)
        await vote_svc.submit(db_session, "PQR456", list(range(3, 13)), confirmed=True)

        async with session_factory() as check:
            result = await check.execute(select(Participant).where(Participant.is_completed.is_(True)))
            completed = result.scalars().all()
            assert {p.code for p in completed} == {"ABC123", "PQR456"}
            for participant in completed:
                ids = await catalog.ledger_photo_ids(check, participant.id)
                assert len(ids) == 10
                assert len(set(ids)) == 10
                assert participant.selected_count == 10
