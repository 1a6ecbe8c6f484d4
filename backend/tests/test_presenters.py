"""
Best Shot Backend — Presenter Tests
=====================================

What we test:
    ✅ Honorific stripping
    ✅ Grid card flags at and below capacity, and while disabled
    ✅ Completed view keeps catalog order
    ✅ Participant status derivation
"""

import uuid
from datetime import datetime, timezone

import pytest

from bestshot.domain.ballot import Ballot
from bestshot.models.participant import Participant
from bestshot.models.photo import Photo
from bestshot.presenters import (
    build_photo_grid,
    display_name,
    participant_row,
    participant_status,
    selected_photos,
    tally_response,
)
from bestshot.schemas.admin import ParticipantStatus
from bestshot.services.tally_service import TallySnapshot


def catalog(n: int = 12):
    return [
        Photo(id=i, url=f"https://img/{i}.jpg", thumbnail_url=f"https://img/t/{i}.jpg" if i % 2 == 0 else None)
        for i in range(1, n + 1)
    ]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("김철수 님", "김철수"),
        ("김철수님", "김철수"),
        ("김철수", "김철수"),
        ("님", ""),
        ("Anna", "Anna"),
        ("님이 님", "님이"),
    ],
)
def test_display_name(raw, expected):
    assert display_name(raw) == expected


class TestPhotoGrid:

    def test_cards_below_capacity_are_all_selectable(self):
        cards = build_photo_grid(catalog(), Ballot([2, 5]))
        assert [c.id for c in cards] == list(range(1, 13))
        assert all(c.selectable for c in cards)
        assert [c.id for c in cards if c.selected] == [2, 5]

    def test_at_capacity_only_selected_cards_are_selectable(self):
        cards = build_photo_grid(catalog(), Ballot(range(1, 11)))
        by_id = {c.id: c for c in cards}
        assert by_id[3].selectable and by_id[3].selected
        assert not by_id[11].selectable
        assert not by_id[12].selectable

    def test_disabled_grid_blocks_everything(self):
        cards = build_photo_grid(catalog(), Ballot([1]), disabled=True)
        assert not any(c.selectable for c in cards)

    def test_display_url_prefers_thumbnail(self):
        cards = build_photo_grid(catalog(2), Ballot())
        assert cards[0].display_url == "https://img/1.jpg"
        assert cards[1].display_url == "https://img/t/2.jpg"

    def test_voter_badges_use_display_names(self):
        voters = {3: ("김철수 님", "이영희")}
        cards = build_photo_grid(catalog(4), Ballot(), voters)
        by_id = {c.id: c for c in cards}
        assert by_id[3].vote_count == 2
        assert by_id[3].voters == ["김철수", "이영희"]
        assert by_id[1].vote_count == 0
        assert by_id[1].voters == []


def test_selected_photos_keep_catalog_order():
    result = selected_photos(catalog(), [9, 2, 5])
    assert [p.id for p in result] == [2, 5, 9]


class TestParticipantRow:

    def make(self, **overrides):
        fields = dict(
            id=uuid.uuid4(),
            name="박민수 님",
            code="PQR456",
            selected_count=0,
            is_completed=False,
            completed_at=None,
            created_at=datetime(2025, 5, 3, tzinfo=timezone.utc),
        )
        fields.update(overrides)
        return Participant(**fields)

    def test_status(self):
        assert participant_status(self.make()) is ParticipantStatus.NOT_STARTED
        assert participant_status(self.make(selected_count=4)) is ParticipantStatus.IN_PROGRESS
        done = self.make(
            selected_count=10,
            is_completed=True,
            completed_at=datetime.now(timezone.utc),
        )
        assert participant_status(done) is ParticipantStatus.COMPLETED

    def test_row_contains_vote_link(self):
        row = participant_row(self.make())
        assert row.display_name == "박민수"
        assert row.vote_path == "/vote/PQR456"


def test_tally_response_counts_and_names():
    snapshot = TallySnapshot(version=3, voters={1: ("김철수 님",), 4: ("이영희", "박민수 님")})
    payload = tally_response(snapshot)
    assert payload.version == 3
    assert payload.counts == {1: 1, 4: 2}
    assert payload.voters[4] == ["이영희", "박민수"]
