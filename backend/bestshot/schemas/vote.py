"""
Best Shot Backend — Vote Flow Schemas
=======================================

What:  Request/response contracts for the participant-facing routes.
How:   FastAPI validates request bodies against these models and serializes
       responses from them; the presenters build the response objects.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from bestshot.domain.ballot import BALLOT_SIZE, BallotState


# ══════════════════════════════════════════════════════════════════════════
# Building Blocks
# ══════════════════════════════════════════════════════════════════════════


class PhotoResponse(BaseModel):
    """A catalog photo."""
    id: int = Field(description="Photo identifier shown as #id")
    url: str = Field(description="Full-resolution image URL")
    thumbnail_url: Optional[str] = Field(default=None, description="Reduced-size image URL")
    display_url: str = Field(description="Thumbnail when available, otherwise the full image")

    model_config = {"from_attributes": True}


class PhotoCard(BaseModel):
    """
    One tile of the selection grid.

    selectable is False for unselected photos once ten are picked, and for
    every photo while a submission is in flight. A selected photo stays
    selectable so it can always be removed.
    """
    id: int
    url: str = Field(description="Full-resolution image used by the zoom view")
    display_url: str = Field(description="Grid image")
    selected: bool
    selectable: bool
    vote_count: int = Field(description="How many participants picked this photo so far")
    voters: List[str] = Field(description="Display names of those participants")


class ParticipantSummary(BaseModel):
    """What the participant sees about themselves. The access code is omitted."""
    name: str
    display_name: str
    selected_count: int
    is_completed: bool
    completed_at: Optional[datetime] = None


# ══════════════════════════════════════════════════════════════════════════
# Responses
# ══════════════════════════════════════════════════════════════════════════


class VotePageResponse(BaseModel):
    """
    Everything the vote page needs in one payload.

    Selection view:  state in {not_started, selecting, ready}, photos populated
    Completed view:  state == completed, selected_photos populated, photos empty
    """
    participant: ParticipantSummary
    state: BallotState
    selected_ids: List[int] = Field(default_factory=list)
    selected_count: int
    max_selections: int = BALLOT_SIZE
    can_submit: bool
    photos: List[PhotoCard] = Field(default_factory=list)
    selected_photos: List[PhotoResponse] = Field(default_factory=list)


class ToggleRequest(BaseModel):
    """The client's current selection plus the photo the user tapped."""
    selected_ids: List[int] = Field(default_factory=list, max_length=BALLOT_SIZE)
    photo_id: int


class ToggleResponse(BaseModel):
    selected_ids: List[int]
    selected_count: int
    max_selections: int = BALLOT_SIZE
    state: BallotState
    can_submit: bool
    changed: bool = Field(description="False when the tap was a no-op (ballot full)")


class SubmitRequest(BaseModel):
    """
    Final submission. confirmed must be true: the client asks the user
    "Submit these 10? This cannot be changed." before sending.
    """
    photo_ids: List[int]
    confirmed: bool = False


class SubmitResponse(BaseModel):
    message: str = Field(default="Your vote has been submitted. Thank you!")
    participant: ParticipantSummary
    selected_photos: List[PhotoResponse]
