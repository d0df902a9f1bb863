"""PDF host document — pypdf for the file, reportlab for the marks.

Draw calls are queued per page.  On serialization each page's queue is
painted onto a one-page reportlab overlay which pypdf merges over the
original page, so existing content is never re-encoded.
"""

import io
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from pypdf import PageObject, PdfReader, PdfWriter
from pypdf.errors import PdfReadError
from reportlab.pdfgen import canvas

from signcompose.config import get_settings
from signcompose.documents.fonts import PDF_STANDARD_FONTS, StandardPdfFont
from signcompose.errors import DrawFailureError, InvalidPageError
from signcompose.models.document import Color, FontHandle
from signcompose.models.geometry import PageGeometry

logger = logging.getLogger("signcompose.pdf_document")


@dataclass(frozen=True)
class _QueuedText:
    content: str
    x: float
    y: float
    font: StandardPdfFont
    font_size: float
    color: Color


def _pdf_date(when: datetime) -> str:
    """Format *when* as a PDF date string (``D:YYYYMMDDHHmmSS+HH'mm'``)."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    offset = when.utcoffset()
    minutes = int(offset.total_seconds() // 60) if offset else 0
    sign = "+" if minutes >= 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    return f"D:{when:%Y%m%d%H%M%S}{sign}{hours:02d}'{mins:02d}'"


class PdfDocument:
    """An open, mutable PDF implementing the engine's document contract."""

    def __init__(self, reader: PdfReader) -> None:
        self._writer = PdfWriter(clone_from=reader)
        self._queued: dict[int, list[_QueuedText]] = {}
        self._fonts: dict[str, FontHandle] = {
            key: StandardPdfFont(name) for key, name in PDF_STANDARD_FONTS.items()
        }
        self._fonts["default"] = self._fonts["helvetica"]
        self.modified_at: datetime | None = None

    @classmethod
    def from_bytes(cls, data: bytes) -> "PdfDocument":
        try:
            reader = PdfReader(io.BytesIO(data))
        except PdfReadError as exc:
            raise ValueError(f"Not a readable PDF: {exc}") from exc
        return cls(reader)

    @classmethod
    def from_path(cls, path: str | Path) -> "PdfDocument":
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Cannot read PDF: {path}")
        return cls.from_bytes(path.read_bytes())

    # ------------------------------------------------------------------
    # Document contract
    # ------------------------------------------------------------------

    def page_count(self) -> int:
        return len(self._writer.pages)

    def page_geometry(self, index: int) -> PageGeometry:
        self._check_page(index)
        box = self._writer.pages[index].mediabox
        return PageGeometry(index=index, width=float(box.width), height=float(box.height))

    def draw_text(
        self,
        page_index: int,
        content: str,
        x: float,
        y: float,
        font: FontHandle,
        font_size: float,
        color: Color,
    ) -> None:
        self._check_page(page_index)
        if not isinstance(font, StandardPdfFont):
            raise DrawFailureError(f"Font {font.name} is not a standard PDF font")
        if not font.can_encode(content):
            raise DrawFailureError(f"Text {content!r} cannot be encoded in {font.name}")
        self._queued.setdefault(page_index, []).append(
            _QueuedText(content=content, x=x, y=y, font=font, font_size=font_size, color=color)
        )

    def embedded_fonts(self) -> dict[str, FontHandle]:
        return dict(self._fonts)

    def mark_modified(self, when: datetime) -> None:
        self.modified_at = when

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def pending_draws(self) -> int:
        return sum(len(items) for items in self._queued.values())

    def to_bytes(self) -> bytes:
        self._flush()
        if self.modified_at is not None:
            self._writer.add_metadata({
                "/ModDate": _pdf_date(self.modified_at),
                "/Producer": get_settings().app_name,
            })
        buffer = io.BytesIO()
        self._writer.write(buffer)
        return buffer.getvalue()

    def save(self, path: str | Path | None = None) -> Path:
        """Write the document to *path*, or to a new file in the output dir."""
        if path is None:
            settings = get_settings()
            settings.ensure_output_dir()
            path = settings.output_dir / f"{uuid.uuid4().hex}.pdf"
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.to_bytes())
        logger.info("Signed PDF saved: %s", path)
        return path

    def _flush(self) -> None:
        for page_index, items in sorted(self._queued.items()):
            page = self._writer.pages[page_index]
            overlay = self._build_overlay(items, page.mediabox)
            page.merge_page(overlay)
            logger.debug("Merged %d mark(s) onto page %d", len(items), page_index)
        self._queued.clear()

    @staticmethod
    def _build_overlay(items: list[_QueuedText], mediabox) -> PageObject:
        left, bottom = float(mediabox.left), float(mediabox.bottom)
        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=(float(mediabox.right), float(mediabox.top)))
        for item in items:
            r, g, b = item.color
            c.setFillColorRGB(r / 255, g / 255, b / 255)
            c.setFont(item.font.name, item.font_size)
            # Queued y is the bottom of the text box; drawString wants the baseline.
            baseline = bottom + item.y + item.font.descent_at_size(item.font_size)
            c.drawString(left + item.x, baseline, item.content)
        c.showPage()
        c.save()
        buffer.seek(0)
        return PdfReader(buffer).pages[0]

    def _check_page(self, index: int) -> None:
        if not 0 <= index < self.page_count():
            raise InvalidPageError(
                f"Page index {index} is outside the document (pages: {self.page_count()})"
            )
