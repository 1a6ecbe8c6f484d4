"""
Best Shot Backend — Photo SQLAlchemy Model
============================================

What:  ORM model for the `photos` table (the Photo Catalog).
       Seeded once, read-only at runtime. Images live on an external host;
       only their URLs are stored.
"""

from typing import Optional

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from bestshot.database import Base


class Photo(Base):
    """A candidate photo in the shared gallery."""

    __tablename__ = "photos"

    # Small sequential ids are shown to users as "#12"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    url: Mapped[str] = mapped_column(
        String(1024),
        nullable=False,
        comment="Full-resolution image URL",
    )

    thumbnail_url: Mapped[Optional[str]] = mapped_column(
        String(1024),
        nullable=True,
        default=None,
        comment="Optional reduced-size image URL used by grids and the PDF",
    )

    @property
    def display_url(self) -> str:
        """Thumbnail when available, otherwise the full image."""
        return self.thumbnail_url or self.url

    def __repr__(self) -> str:
        return f"<Photo(id={self.id})>"
