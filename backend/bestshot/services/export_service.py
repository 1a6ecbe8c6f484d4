"""
Best Shot Backend — PDF Export Service
========================================

What:  Builds the downloadable result PDF for the admin dashboard.
Who:   Called by GET /api/admin/export.pdf.

Export Pipeline:
    ┌─────────────┐   ┌──────────┐   ┌──────────────────┐   ┌─────────────┐
    │ Load roster,│──▶│ Rank top │──▶│ Download images  │──▶│ Render PDF  │
    │ photos,     │   │ N photos │   │ (barrier: wait   │   │ (thread)    │
    │ vote counts │   │          │   │  for every one)  │   │             │
    └─────────────┘   └──────────┘   └──────────────────┘   └─────────────┘

Only one export runs at a time; a second request while one is in flight is
refused with ConflictError (409). There is no cancellation.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bestshot.config import settings
from bestshot.exceptions import ConflictError, DatabaseError, ExportError
from bestshot.models.participant import Participant
from bestshot.presenters import display_name
from bestshot.services import catalog
from bestshot.services.admin_service import list_participants_ordered, load_vote_counts
from bestshot.services.image_fetcher import ImageFetcher, image_fetcher
from bestshot.services.pdf_renderer import (
    ExportReport,
    ReportEntry,
    RosterEntry,
    render_pdf,
)
from bestshot.services.ranking import rank_photos

logger = logging.getLogger(__name__)


def local_time(value: datetime, offset_minutes: int) -> datetime:
    """Shift a stored timestamp to the display offset; naive values are UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone(timedelta(minutes=offset_minutes)))


def roster_entry(participant: Participant, offset_minutes: int) -> RosterEntry:
    completed_at = "-"
    if participant.completed_at is not None:
        completed_at = local_time(participant.completed_at, offset_minutes).strftime("%Y-%m-%d %H:%M")
    return RosterEntry(
        name=f"{display_name(participant.name)} 님",
        status="Completed" if participant.is_completed else "In progress",
        completed_at=completed_at,
    )


class ExportService:
    """Assembles the export report and renders it off the event loop."""

    def __init__(self, fetcher: Optional[ImageFetcher] = None):
        self.fetcher = fetcher or image_fetcher
        self._lock = asyncio.Lock()

    @property
    def in_progress(self) -> bool:
        return self._lock.locked()

    async def export_pdf(self, db: AsyncSession) -> bytes:
        if self._lock.locked():
            raise ConflictError(
                message="A PDF export is already being generated. Please wait for it to finish.",
            )

        async with self._lock:
            return await self._export(db)

    async def _export(self, db: AsyncSession) -> bytes:
        offset = settings.export_utc_offset_minutes

        try:
            participants = await list_participants_ordered(db)
            photos = await catalog.list_photos(db)
            counts = await load_vote_counts(db)
        except SQLAlchemyError as e:
            logger.error("Database error loading export data: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load the export data. Please try again.",
                context={"error_type": type(e).__name__},
            )

        ranked = rank_photos(photos, counts, limit=settings.export_top_n)

        # Barrier: rendering starts only once every download has settled
        images = await self.fetcher.fetch_all([photo.display_url for photo, _ in ranked])

        missing = [photo.id for (photo, _), image in zip(ranked, images) if image is None]
        if missing:
            logger.warning("Export renders placeholders for photos %s", missing)

        report = ExportReport(
            title=settings.export_title,
            subtitle=settings.export_subtitle,
            generated_on=local_time(datetime.now(timezone.utc), offset).strftime("%Y-%m-%d"),
            top_n=settings.export_top_n,
            roster=[roster_entry(p, offset) for p in participants],
            entries=[
                ReportEntry(rank=position, photo_id=photo.id, count=count, image=image)
                for position, ((photo, count), image) in enumerate(zip(ranked, images), start=1)
            ],
        )

        try:
            content = await asyncio.to_thread(render_pdf, report)
        except (OSError, ValueError) as e:
            logger.error("PDF rendering failed: %s", str(e), exc_info=True)
            raise ExportError(context={"error_type": type(e).__name__})

        logger.info(
            "Export generated: %d participants, %d photos, %d bytes",
            len(participants),
            len(report.entries),
            len(content),
        )
        return content


export_service = ExportService()
