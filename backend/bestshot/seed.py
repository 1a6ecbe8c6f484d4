"""
Best Shot Backend — Seed Command
==================================

What:  Loads participants and the photo catalog before the wedding.

Usage:
    python -m bestshot.seed --participants names.txt --photos photos.txt \
        --base-url https://bestshot.example.com

    names.txt    one participant name per line
    photos.txt   one photo per line: "<url>" or "<url> <thumbnail_url>"

Blank lines and lines starting with # are ignored. Each new participant gets
a random access code; their personal vote link is logged.
"""

import argparse
import asyncio
import logging
import secrets
import string
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bestshot.config import settings
from bestshot.database import async_session_factory, dispose_engine
from bestshot.models.participant import Participant
from bestshot.models.photo import Photo

logger = logging.getLogger("bestshot.seed")

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_access_code(length: Optional[int] = None, taken: Iterable[str] = ()) -> str:
    """Random uppercase/digit code not present in `taken`."""
    length = length or settings.access_code_length
    taken = set(taken)
    while True:
        code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
        if code not in taken:
            return code


def read_lines(path: Path) -> List[str]:
    lines = []
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if line and not line.startswith("#"):
            lines.append(line)
    return lines


def parse_photo_line(line: str) -> Tuple[str, Optional[str]]:
    parts = line.split()
    if len(parts) > 2:
        raise ValueError(f"Expected '<url> [thumbnail_url]', got: {line!r}")
    return parts[0], parts[1] if len(parts) == 2 else None


async def seed(
    db: AsyncSession,
    names: Iterable[str],
    photo_lines: Iterable[str],
) -> Tuple[List[Participant], List[Photo]]:
    """Insert participants and photos in one transaction."""
    result = await db.execute(select(Participant.code))
    taken: Set[str] = set(result.scalars().all())

    participants = []
    for name in names:
        code = generate_access_code(taken=taken)
        taken.add(code)
        participants.append(Participant(name=name, code=code))

    photos = []
    for line in photo_lines:
        url, thumbnail_url = parse_photo_line(line)
        photos.append(Photo(url=url, thumbnail_url=thumbnail_url))

    db.add_all(participants)
    db.add_all(photos)
    await db.commit()
    return participants, photos


async def _main(args: argparse.Namespace) -> int:
    names = read_lines(args.participants) if args.participants else []
    photo_lines = read_lines(args.photos) if args.photos else []
    if not names and not photo_lines:
        logger.error("Nothing to seed; pass --participants and/or --photos")
        return 1

    try:
        async with async_session_factory() as db:
            participants, photos = await seed(db, names, photo_lines)
    finally:
        await dispose_engine()

    base = args.base_url.rstrip("/")
    for participant in participants:
        logger.info("%s → %s/vote/%s", participant.name, base, participant.code)
    logger.info("Seeded %d participants and %d photos", len(participants), len(photos))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="python -m bestshot.seed", description=__doc__.split("\n\n")[1])
    parser.add_argument("--participants", type=Path, help="file with one participant name per line")
    parser.add_argument("--photos", type=Path, help="file with one photo url (and optional thumbnail) per line")
    parser.add_argument("--base-url", default="", help="frontend origin used when printing vote links")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    return asyncio.run(_main(args))


if __name__ == "__main__":
    sys.exit(main())
