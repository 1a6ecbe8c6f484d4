"""
Best Shot Backend — Vote Route Handlers
=========================================

What:  The participant-facing vote flow, addressed by the access code from
       the participant's personal link (/vote/{code}).
How:   Thin handlers; VoteService owns the rules.

Caching:
    Every response is personal and changes with each tap, so all of them are
    sent with Cache-Control: no-store.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from bestshot.database import get_db_session
from bestshot.schemas.common import ErrorResponse
from bestshot.schemas.vote import (
    SubmitRequest,
    SubmitResponse,
    ToggleRequest,
    ToggleResponse,
    VotePageResponse,
)
from bestshot.services.vote_service import vote_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/vote", tags=["Vote"])


@router.get(
    "/{code}",
    response_model=VotePageResponse,
    responses={
        400: {"description": "Unknown photo in selection", "model": ErrorResponse},
        404: {"description": "Unknown access code", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Load the vote page for an access code",
)
async def get_vote_page(
    code: str,
    response: Response,
    selected: List[int] = Query(
        default=[],
        max_length=10,
        description="Photo ids the client currently has selected (repeat the parameter)",
    ),
    db: AsyncSession = Depends(get_db_session),
) -> VotePageResponse:
    """
    Completed participants get the read-only view of their ten photos; all
    others get the photo grid with live vote badges.
    """
    response.headers["Cache-Control"] = "no-store"
    return await vote_service.get_vote_page(db=db, code=code, selected=selected)


@router.post(
    "/{code}/toggle",
    response_model=ToggleResponse,
    responses={
        400: {"description": "Invalid selection", "model": ErrorResponse},
        404: {"description": "Unknown access code or photo", "model": ErrorResponse},
        409: {"description": "Participant already completed", "model": ErrorResponse},
    },
    summary="Select or deselect one photo",
)
async def toggle_photo(
    code: str,
    body: ToggleRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> ToggleResponse:
    response.headers["Cache-Control"] = "no-store"
    return await vote_service.toggle(
        db=db,
        code=code,
        selected_ids=body.selected_ids,
        photo_id=body.photo_id,
    )


@router.post(
    "/{code}/submit",
    response_model=SubmitResponse,
    status_code=201,
    responses={
        201: {"description": "Vote recorded", "model": SubmitResponse},
        400: {"description": "Not confirmed or not exactly 10 photos", "model": ErrorResponse},
        404: {"description": "Unknown access code", "model": ErrorResponse},
        409: {"description": "Participant already completed", "model": ErrorResponse},
        500: {"description": "Write failed; nothing was saved", "model": ErrorResponse},
    },
    summary="Submit exactly 10 photos",
)
async def submit_vote(
    code: str,
    body: SubmitRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> SubmitResponse:
    """
    Record the ballot. The client must send confirmed=true after the user
    accepted the "cannot be changed" prompt.
    """
    response.headers["Cache-Control"] = "no-store"
    return await vote_service.submit(
        db=db,
        code=code,
        photo_ids=body.photo_ids,
        confirmed=body.confirmed,
    )
