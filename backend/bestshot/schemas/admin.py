"""
Best Shot Backend — Admin Dashboard Schemas
=============================================
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ParticipantStatus(str, Enum):
    COMPLETED = "completed"
    IN_PROGRESS = "in_progress"
    NOT_STARTED = "not_started"


class ParticipantRow(BaseModel):
    """One row of the admin participant table."""
    id: uuid.UUID
    name: str
    display_name: str
    code: str
    vote_path: str = Field(description="Relative personal vote link, e.g. /vote/ABC123")
    selected_count: int
    is_completed: bool
    completed_at: Optional[datetime] = None
    created_at: datetime
    status: ParticipantStatus


class ParticipantListResponse(BaseModel):
    """Whole participant directory, oldest first. Clients replace, never merge."""
    participants: List[ParticipantRow]
    total_count: int
    completed_count: int


class ResetRequest(BaseModel):
    """Reset wipes a participant's votes; the admin must confirm explicitly."""
    confirmed: bool = False


class ResetResponse(BaseModel):
    message: str = Field(default="Participant has been reset")
    deleted_selections: int
    participant: ParticipantRow


class RankedPhoto(BaseModel):
    rank: int = Field(description="1-based position")
    photo_id: int
    url: str
    thumbnail_url: Optional[str] = None
    count: int = Field(description="Number of ledger rows for this photo")


class RankingResponse(BaseModel):
    photos: List[RankedPhoto]
    total_votes: int
