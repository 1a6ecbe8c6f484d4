"""
Best Shot Backend — View Model Presenters
===========================================

What:  Turns ORM rows, ballots and tally snapshots into the response models
       the frontend renders (photo grid, completed view, admin roster).
Why:   Every view in the frontend shows the same derived values (display
       names without the honorific, selectable flags, vote badges). Computing
       them here keeps the rules in one place and testable.
"""

import re
from typing import Iterable, List, Mapping, Optional, Sequence

from bestshot.domain.ballot import Ballot
from bestshot.models.participant import Participant
from bestshot.models.photo import Photo
from bestshot.schemas.admin import ParticipantRow, ParticipantStatus
from bestshot.schemas.tally import TallyResponse
from bestshot.schemas.vote import ParticipantSummary, PhotoCard, PhotoResponse

# Names are stored the way the couple wrote them ("김철수 님"); views drop the
# trailing honorific and add their own
_HONORIFIC_RE = re.compile(r" ?님$")


def display_name(name: str) -> str:
    """Strip a trailing '님' (with or without a leading space)."""
    return _HONORIFIC_RE.sub("", name)


def participant_summary(participant: Participant) -> ParticipantSummary:
    return ParticipantSummary(
        name=participant.name,
        display_name=display_name(participant.name),
        selected_count=participant.selected_count,
        is_completed=participant.is_completed,
        completed_at=participant.completed_at,
    )


def participant_status(participant: Participant) -> ParticipantStatus:
    if participant.is_completed:
        return ParticipantStatus.COMPLETED
    if participant.selected_count > 0:
        return ParticipantStatus.IN_PROGRESS
    return ParticipantStatus.NOT_STARTED


def participant_row(participant: Participant) -> ParticipantRow:
    return ParticipantRow(
        id=participant.id,
        name=participant.name,
        display_name=display_name(participant.name),
        code=participant.code,
        vote_path=f"/vote/{participant.code}",
        selected_count=participant.selected_count,
        is_completed=participant.is_completed,
        completed_at=participant.completed_at,
        created_at=participant.created_at,
        status=participant_status(participant),
    )


def photo_response(photo: Photo) -> PhotoResponse:
    return PhotoResponse(
        id=photo.id,
        url=photo.url,
        thumbnail_url=photo.thumbnail_url,
        display_url=photo.display_url,
    )


def selected_photos(photos: Sequence[Photo], selected_ids: Iterable[int]) -> List[PhotoResponse]:
    """Completed view: the participant's picks in catalog order."""
    wanted = set(selected_ids)
    return [photo_response(p) for p in photos if p.id in wanted]


def build_photo_grid(
    photos: Sequence[Photo],
    ballot: Ballot,
    voters: Optional[Mapping[int, Sequence[str]]] = None,
    disabled: bool = False,
) -> List[PhotoCard]:
    """
    Build one card per catalog photo.

    A card is selectable when it is already selected (removal is always
    allowed) or when the ballot still has room. disabled (submission in
    flight) turns every card off.
    """
    voters = voters or {}
    cards = []
    for photo in photos:
        selected = ballot.is_selected(photo.id)
        names = [display_name(n) for n in voters.get(photo.id, ())]
        cards.append(
            PhotoCard(
                id=photo.id,
                url=photo.url,
                display_url=photo.display_url,
                selected=selected,
                selectable=not disabled and (selected or ballot.can_add(photo.id)),
                vote_count=len(names),
                voters=names,
            )
        )
    return cards


def tally_response(snapshot) -> TallyResponse:
    """Live tally payload with display names, as the grid badges show them."""
    voters = {
        photo_id: [display_name(n) for n in names]
        for photo_id, names in snapshot.voters.items()
    }
    return TallyResponse(
        version=snapshot.version,
        updated_at=snapshot.updated_at,
        voters=voters,
        counts={photo_id: len(names) for photo_id, names in voters.items()},
    )
