"""
Best Shot Backend — Seed Command Tests
========================================
"""

import pytest
from sqlalchemy import select

from bestshot.models.participant import Participant
from bestshot.models.photo import Photo
from bestshot.seed import CODE_ALPHABET, generate_access_code, parse_photo_line, read_lines, seed


def test_generate_access_code_shape():
    code = generate_access_code(length=8)
    assert len(code) == 8
    assert set(code) <= set(CODE_ALPHABET)


def test_generate_access_code_avoids_taken(monkeypatch):
    picks = iter("AAAABBBB")
    monkeypatch.setattr("bestshot.seed.secrets.choice", lambda alphabet: next(picks))

    assert generate_access_code(length=4, taken={"AAAA"}) == "BBBB"


def test_parse_photo_line():
    assert parse_photo_line("https://img/1.jpg") == ("https://img/1.jpg", None)
    assert parse_photo_line("https://img/1.jpg  https://img/t/1.jpg") == (
        "https://img/1.jpg",
        "https://img/t/1.jpg",
    )
    with pytest.raises(ValueError):
        parse_photo_line("a b c")


def test_read_lines_skips_comments(tmp_path):
    path = tmp_path / "names.txt"
    path.write_text("# guests\n김철수 님\n\n  이영희  \n", encoding="utf-8")
    assert read_lines(path) == ["김철수 님", "이영희"]


@pytest.mark.asyncio
async def test_seed_inserts_rows(db_session):
    participants, photos = await seed(
        db_session,
        ["New Guest", "Another Guest"],
        ["https://img.example.com/a.jpg https://img.example.com/thumbs/a.jpg"],
    )

    assert len(participants) == 2
    assert len({p.code for p in participants}) == 2
    assert photos[0].thumbnail_url == "https://img.example.com/thumbs/a.jpg"

    codes = (await db_session.execute(select(Participant.code))).scalars().all()
    assert len(codes) == 5
    total_photos = (await db_session.execute(select(Photo.id))).scalars().all()
    assert len(total_photos) == 16
