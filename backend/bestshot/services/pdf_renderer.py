"""
Best Shot Backend — PDF Page Renderer
=======================================

What:  Rasterizes the export report into A4 pages with Pillow and joins them
       into one multi-page PDF.
Who:   Called by export_service in a worker thread; pure CPU, no I/O.

Page Layout:
    Page 1       title, subtitle, date, participant roster (name, status,
                 completion time)
    Page 2..N    photos_per_page photos in a 2-column grid; each cell shows
                 the image (or a placeholder), a rank badge, "{count} votes"
                 and "Photo #{id}". Header "Top 10 Photos (a ~ b)".
    Every page   footer "Page i / N"

All geometry is expressed in millimetres and scaled by the DPI, so the same
layout renders at any resolution.
"""

import io
import logging
import math
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont, ImageOps

from bestshot.config import settings

logger = logging.getLogger(__name__)

A4_MM = (210.0, 297.0)
MARGIN_MM = 15.0
GRID_COLUMNS = 2

WHITE = (255, 255, 255)
INK = (41, 37, 36)          # stone-800
MUTED = (120, 113, 108)     # stone-500
FAINT = (168, 162, 158)     # stone-400
RULE = (231, 229, 228)      # stone-200
PANEL = (250, 250, 249)     # stone-50
BADGE = (244, 63, 94)       # rose-500


@dataclass
class RosterEntry:
    name: str
    status: str
    completed_at: str = "-"


@dataclass
class ReportEntry:
    rank: int
    photo_id: int
    count: int
    image: Optional[Image.Image] = None


@dataclass
class ExportReport:
    title: str
    subtitle: str
    generated_on: str
    top_n: int = 10
    roster: List[RosterEntry] = field(default_factory=list)
    entries: List[ReportEntry] = field(default_factory=list)


# Common system faces with Hangul coverage; Pillow searches the system font
# directories for bare file names
HANGUL_FONTS = (
    "NotoSansCJK-Regular.ttc",
    "NotoSansKR-Regular.otf",
    "NanumGothic.ttf",
    "AppleSDGothicNeo.ttc",
    "malgun.ttf",
)
LATIN_FONTS = ("DejaVuSans.ttf",)

_HANGUL_RE = re.compile("[\u1100-\u11ff\u3130-\u318f\uac00-\ud7a3]")


@lru_cache(maxsize=1)
def _font_path() -> Optional[str]:
    """Configured font first, then a Hangul-capable system face, then DejaVu."""
    for path in (settings.export_font_path, *HANGUL_FONTS, *LATIN_FONTS):
        if not path:
            continue
        try:
            ImageFont.truetype(path, 12)
        except OSError:
            logger.debug("Font %s not available", path)
            continue
        return path
    return None


def hangul_font_available() -> bool:
    """False when names in Hangul would render as empty boxes."""
    path = _font_path()
    return path is not None and path not in LATIN_FONTS


@lru_cache(maxsize=32)
def _load_font(size: int) -> ImageFont.ImageFont:
    path = _font_path()
    if path is None:
        return ImageFont.load_default(size=size)
    return ImageFont.truetype(path, size)


class _Canvas:
    """One A4 page plus the unit conversions used to draw on it."""

    def __init__(self, dpi: int):
        self.dpi = dpi
        self.width = self.mm(A4_MM[0])
        self.height = self.mm(A4_MM[1])
        self.image = Image.new("RGB", (self.width, self.height), WHITE)
        self.draw = ImageDraw.Draw(self.image)
        self.margin = self.mm(MARGIN_MM)

    def mm(self, value: float) -> int:
        return round(value / 25.4 * self.dpi)

    def font(self, points: float) -> ImageFont.ImageFont:
        return _load_font(max(1, round(points / 72 * self.dpi)))

    def text_height(self, font: ImageFont.ImageFont) -> int:
        left, top, right, bottom = self.draw.textbbox((0, 0), "Hg", font=font)
        return bottom - top

    def text(self, xy: Tuple[int, int], text: str, font, fill=INK) -> None:
        self.draw.text(xy, text, fill=fill, font=font)

    def centered(self, cx: int, y: int, text: str, font, fill=INK) -> None:
        width = self.draw.textlength(text, font=font)
        self.draw.text((cx - width / 2, y), text, fill=fill, font=font)

    def fit(self, text: str, font, max_width: int) -> str:
        """Truncate text with an ellipsis until it fits max_width."""
        if self.draw.textlength(text, font=font) <= max_width:
            return text
        while len(text) > 1 and self.draw.textlength(text + "…", font=font) > max_width:
            text = text[:-1]
        return text + "…"

    def footer(self, page: int, total: int) -> None:
        font = self.font(9)
        y = self.height - self.margin
        self.centered(self.width // 2, y, f"Page {page} / {total}", font, fill=FAINT)


def _draw_title_page(report: ExportReport, dpi: int, total_pages: int) -> Image.Image:
    page = _Canvas(dpi)
    cx = page.width // 2
    y = page.margin

    title_font = page.font(28)
    page.centered(cx, y, report.title, title_font)
    y += page.text_height(title_font) + page.mm(4)

    sub_font = page.font(13)
    page.centered(cx, y, report.subtitle, sub_font, fill=MUTED)
    y += page.text_height(sub_font) + page.mm(2)

    date_font = page.font(10)
    page.centered(cx, y, report.generated_on, date_font, fill=FAINT)
    y += page.text_height(date_font) + page.mm(6)

    page.draw.line((page.margin, y, page.width - page.margin, y), fill=RULE, width=max(1, page.mm(0.3)))
    y += page.mm(8)

    heading_font = page.font(18)
    page.text((page.margin, y), "Participants", heading_font)
    y += page.text_height(heading_font) + page.mm(6)

    # Name | Status | Completed at
    columns = [page.margin, page.margin + page.mm(85), page.margin + page.mm(125)]
    widths = [columns[1] - columns[0] - page.mm(4), columns[2] - columns[1] - page.mm(4),
              page.width - page.margin - columns[2]]
    row_font = page.font(11)
    row_height = page.mm(8)
    text_offset = (row_height - page.text_height(row_font)) // 2

    for x, label in zip(columns, ("Name", "Status", "Completed at")):
        page.text((x, y + text_offset), label, row_font, fill=(0, 0, 0))
    y += row_height
    page.draw.line((page.margin, y, page.width - page.margin, y), fill=FAINT, width=1)

    bottom = page.height - page.margin - page.mm(12)
    capacity = max(1, (bottom - y) // row_height)
    rows = report.roster
    hidden = 0
    if len(rows) > capacity:
        hidden = len(rows) - (capacity - 1)
        rows = rows[: capacity - 1]

    for entry in rows:
        cells = (entry.name, entry.status, entry.completed_at)
        for x, width, value in zip(columns, widths, cells):
            page.text((x, y + text_offset), page.fit(value, row_font, width), row_font)
        y += row_height
        page.draw.line((page.margin, y, page.width - page.margin, y), fill=RULE, width=1)

    if hidden:
        page.text((page.margin, y + text_offset), f"… and {hidden} more", row_font, fill=MUTED)

    page.footer(1, total_pages)
    return page.image


def _draw_photo_cell(page: _Canvas, entry: ReportEntry, box: Tuple[int, int, int, int]) -> None:
    x0, y0, x1, y1 = box
    count_font = page.font(22)
    label_font = page.font(13)
    caption_height = page.text_height(count_font) + page.text_height(label_font) + page.mm(6)

    # Portrait frame (2:3), shrunk to leave room for the caption
    frame_w = x1 - x0
    frame_h = min(round(frame_w * 1.5), (y1 - y0) - caption_height)
    frame_w = min(frame_w, round(frame_h / 1.5))
    fx0 = x0 + ((x1 - x0) - frame_w) // 2
    fy0 = y0
    frame = (fx0, fy0, fx0 + frame_w, fy0 + frame_h)

    page.draw.rectangle(frame, fill=PANEL, outline=RULE, width=max(1, page.mm(0.5)))

    if entry.image is not None:
        fitted = ImageOps.contain(entry.image, (frame_w - 2, frame_h - 2))
        page.image.paste(
            fitted,
            (fx0 + (frame_w - fitted.width) // 2, fy0 + (frame_h - fitted.height) // 2),
        )
    else:
        font = page.font(11)
        page.centered(fx0 + frame_w // 2, fy0 + frame_h // 2, "Image unavailable", font, fill=FAINT)

    badge = page.mm(12)
    page.draw.rectangle((fx0, fy0, fx0 + badge, fy0 + badge), fill=BADGE)
    badge_font = page.font(16)
    page.centered(
        fx0 + badge // 2,
        fy0 + (badge - page.text_height(badge_font)) // 2,
        str(entry.rank),
        badge_font,
        fill=WHITE,
    )

    cx = x0 + (x1 - x0) // 2
    y = fy0 + frame_h + page.mm(2)
    page.centered(cx, y, f"{entry.count} votes", count_font, fill=(0, 0, 0))
    y += page.text_height(count_font) + page.mm(2)
    page.centered(cx, y, f"Photo #{entry.photo_id}", label_font, fill=MUTED)


def _draw_photo_page(
    report: ExportReport,
    chunk: Sequence[ReportEntry],
    first_rank: int,
    dpi: int,
    per_page: int,
    page_number: int,
    total_pages: int,
) -> Image.Image:
    page = _Canvas(dpi)
    y = page.margin

    heading_font = page.font(18)
    last_rank = first_rank + len(chunk) - 1
    page.text((page.margin, y), f"Top {report.top_n} Photos ({first_rank} ~ {last_rank})", heading_font)
    y += page.text_height(heading_font) + page.mm(8)

    gap = page.mm(8)
    rows = math.ceil(per_page / GRID_COLUMNS)
    grid_bottom = page.height - page.margin - page.mm(10)
    cell_w = (page.width - 2 * page.margin - gap * (GRID_COLUMNS - 1)) // GRID_COLUMNS
    cell_h = (grid_bottom - y - gap * (rows - 1)) // rows

    for index, entry in enumerate(chunk):
        col = index % GRID_COLUMNS
        row = index // GRID_COLUMNS
        x0 = page.margin + col * (cell_w + gap)
        y0 = y + row * (cell_h + gap)
        _draw_photo_cell(page, entry, (x0, y0, x0 + cell_w, y0 + cell_h))

    page.footer(page_number, total_pages)
    return page.image


def render_pages(report: ExportReport, dpi: int, per_page: int) -> List[Image.Image]:
    """Render the title page followed by the photo pages."""
    if not hangul_font_available() and any(_HANGUL_RE.search(row.name) for row in report.roster):
        logger.warning(
            "No Hangul-capable font found; roster names will not render. "
            "Install Noto Sans CJK or Nanum Gothic, or set EXPORT_FONT_PATH"
        )

    chunks = [report.entries[i:i + per_page] for i in range(0, len(report.entries), per_page)]
    total = 1 + len(chunks)

    pages = [_draw_title_page(report, dpi, total)]
    for index, chunk in enumerate(chunks):
        pages.append(
            _draw_photo_page(
                report,
                chunk,
                first_rank=index * per_page + 1,
                dpi=dpi,
                per_page=per_page,
                page_number=index + 2,
                total_pages=total,
            )
        )
    return pages


def render_pdf(
    report: ExportReport,
    dpi: Optional[int] = None,
    per_page: Optional[int] = None,
) -> bytes:
    """Render the report and return the bytes of a multi-page A4 PDF."""
    dpi = dpi or settings.export_dpi
    per_page = per_page or settings.export_photos_per_page

    pages = render_pages(report, dpi, per_page)
    buffer = io.BytesIO()
    pages[0].save(
        buffer,
        format="PDF",
        save_all=True,
        append_images=pages[1:],
        resolution=float(dpi),
    )
    logger.info("Rendered export PDF: %d pages at %d dpi", len(pages), dpi)
    return buffer.getvalue()
