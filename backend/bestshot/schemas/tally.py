"""
Best Shot Backend — Live Tally Schemas
========================================
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class TallyResponse(BaseModel):
    """
    Snapshot of who picked what, keyed by photo id.

    version increases by one per rebuilt snapshot; clients can drop any
    pushed snapshot whose version is not newer than the one they hold.
    """
    version: int = Field(description="Snapshot sequence number (0 = never loaded)")
    updated_at: Optional[datetime] = Field(default=None)
    voters: Dict[int, List[str]] = Field(description="photo id → voter display names")
    counts: Dict[int, int] = Field(description="photo id → number of votes")
