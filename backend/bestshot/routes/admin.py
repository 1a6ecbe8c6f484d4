"""
Best Shot Backend — Admin Route Handlers
==========================================

What:  Dashboard endpoints: participant roster, participant reset, photo
       ranking and the result PDF.
Who:   Called by the admin dashboard frontend.

Access control is out of scope; deployments put these routes behind their
own gateway.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from bestshot.config import settings
from bestshot.database import get_db_session
from bestshot.schemas.admin import (
    ParticipantListResponse,
    RankingResponse,
    ResetRequest,
    ResetResponse,
)
from bestshot.schemas.common import ErrorResponse
from bestshot.services.admin_service import admin_service
from bestshot.services.export_service import export_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get(
    "/participants",
    response_model=ParticipantListResponse,
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="List every participant, oldest first",
)
async def list_participants(
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> ParticipantListResponse:
    result = await admin_service.list_participants(db)
    response.headers["X-Total-Count"] = str(result.total_count)
    response.headers["Cache-Control"] = "no-store"
    return result


@router.post(
    "/participants/{participant_id}/reset",
    response_model=ResetResponse,
    responses={
        400: {"description": "Reset not confirmed", "model": ErrorResponse},
        404: {"description": "Participant not found", "model": ErrorResponse},
        500: {"description": "Write failed; nothing was changed", "model": ErrorResponse},
    },
    summary="Delete a participant's votes and reopen their ballot",
)
async def reset_participant(
    participant_id: uuid.UUID,
    body: ResetRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ResetResponse:
    """
    Irreversible. The dashboard asks the admin to confirm first and sends
    confirmed=true only after they accept.
    """
    return await admin_service.reset_participant(
        db=db,
        participant_id=participant_id,
        confirmed=body.confirmed,
    )


@router.get(
    "/ranking",
    response_model=RankingResponse,
    summary="Top photos by vote count",
)
async def get_ranking(
    limit: int = Query(default=10, ge=1, le=100),
    db: AsyncSession = Depends(get_db_session),
) -> RankingResponse:
    return await admin_service.ranking(db, limit=limit)


@router.get(
    "/export.pdf",
    response_class=Response,
    responses={
        200: {"description": "Result PDF", "content": {"application/pdf": {}}},
        409: {"description": "Another export is running", "model": ErrorResponse},
        500: {"description": "Export failed", "model": ErrorResponse},
    },
    summary="Download the result PDF",
)
async def export_pdf(db: AsyncSession = Depends(get_db_session)) -> Response:
    """
    Builds the PDF synchronously; images are downloaded and every page is
    rendered before the response starts, which can take several seconds.
    """
    content = await export_service.export_pdf(db)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{settings.export_filename}"',
            "Cache-Control": "no-store",
        },
    )
