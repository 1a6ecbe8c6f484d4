"""
Best Shot Backend — Photo Catalog & Participant Lookup Queries
================================================================

What:  Read-only queries shared by the vote flow and the admin dashboard.
How:   Plain async functions taking the request's session. SQLAlchemy errors
       propagate; callers translate them into DatabaseError.
"""

from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bestshot.models.participant import Participant
from bestshot.models.photo import Photo
from bestshot.models.selection import Selection


async def list_photos(db: AsyncSession) -> List[Photo]:
    """Whole catalog in id order (the grid order and the ranking input order)."""
    result = await db.execute(select(Photo).order_by(Photo.id.asc()))
    return list(result.scalars().all())


async def missing_photo_ids(db: AsyncSession, photo_ids: Iterable[int]) -> List[int]:
    """Return the ids that do not exist in the catalog, in the order given."""
    wanted = list(photo_ids)
    if not wanted:
        return []
    result = await db.execute(select(Photo.id).where(Photo.id.in_(set(wanted))))
    found = set(result.scalars().all())
    return [pid for pid in wanted if pid not in found]


async def find_participant_by_code(
    db: AsyncSession,
    code: str,
    for_update: bool = False,
) -> Optional[Participant]:
    """
    Exact, case-sensitive lookup by access code.

    for_update locks the row (PostgreSQL) so two submissions for the same
    participant serialize; SQLite ignores the clause.
    """
    if not code:
        return None
    query = select(Participant).where(Participant.code == code)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def ledger_photo_ids(db: AsyncSession, participant_id) -> List[int]:
    """Photo ids a participant has in the ledger, oldest vote first."""
    result = await db.execute(
        select(Selection.photo_id)
        .where(Selection.participant_id == participant_id)
        .order_by(Selection.created_at.asc(), Selection.photo_id.asc())
    )
    return list(result.scalars().all())
