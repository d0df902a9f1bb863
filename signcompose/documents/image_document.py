"""Scanned-page host document — one BGR image per page.

Page space for images is pixels with a bottom-left origin, so a page-space
``y`` becomes image row ``height - y``.  Text is drawn with Pillow using a
TrueType font when one is installed; otherwise OpenCV's stroke font is used.
"""

import logging
from datetime import datetime
from pathlib import Path

import cv2
import numpy as np
from PIL import Image, ImageDraw

from signcompose.config import get_settings
from signcompose.documents.fonts import HersheyFont, TrueTypeFont, find_truetype_font
from signcompose.errors import DrawFailureError, InvalidPageError
from signcompose.models.document import Color, FontHandle
from signcompose.models.geometry import PageGeometry

logger = logging.getLogger("signcompose.image_document")


def default_image_font() -> FontHandle:
    """TrueType from the configured or system font dirs, else OpenCV's font."""
    font_path = find_truetype_font(get_settings().font_dirs)
    if font_path:
        return TrueTypeFont(font_path)
    logger.warning("No TrueType font found; falling back to OpenCV text rendering")
    return HersheyFont()


class ImageDocument:
    """An open, mutable stack of page images."""

    def __init__(self, pages: list[np.ndarray], font: FontHandle | None = None) -> None:
        if not pages:
            raise ValueError("An image document needs at least one page")
        self.pages = pages
        self.modified_at: datetime | None = None
        self._font = font or default_image_font()

    @classmethod
    def from_paths(cls, paths: list[str | Path], font: FontHandle | None = None) -> "ImageDocument":
        pages: list[np.ndarray] = []
        for path in paths:
            img = cv2.imread(str(path))
            if img is None:
                raise FileNotFoundError(f"Cannot read image: {path}")
            pages.append(img)
        return cls(pages, font)

    # ------------------------------------------------------------------
    # Document contract
    # ------------------------------------------------------------------

    def page_count(self) -> int:
        return len(self.pages)

    def page_geometry(self, index: int) -> PageGeometry:
        self._check_page(index)
        height, width = self.pages[index].shape[:2]
        return PageGeometry(index=index, width=float(width), height=float(height))

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
        img = self.pages[page_index]
        bottom_row = img.shape[0] - y

        try:
            if isinstance(font, TrueTypeFont):
                self._draw_pil(img, content, x, bottom_row, font, font_size, color)
            elif isinstance(font, HersheyFont):
                self._draw_cv2(img, content, x, bottom_row, font, font_size, color)
            else:
                raise DrawFailureError(f"Font {font.name} cannot be drawn on an image page")
        except (OSError, cv2.error) as exc:
            raise DrawFailureError(f"Failed to draw {content!r}: {exc}") from exc

    def embedded_fonts(self) -> dict[str, FontHandle]:
        return {"default": self._font}

    def mark_modified(self, when: datetime) -> None:
        self.modified_at = when

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def save(self, directory: str | Path | None = None, stem: str = "page") -> list[Path]:
        """Write every page as ``<stem>_<n>.png``; returns the written paths."""
        if directory is None:
            settings = get_settings()
            settings.ensure_output_dir()
            directory = settings.output_dir
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        written: list[Path] = []
        for index, img in enumerate(self.pages, start=1):
            path = directory / f"{stem}_{index}.png"
            if not cv2.imwrite(str(path), img):
                raise OSError(f"Cannot write image: {path}")
            written.append(path)
        logger.info("Saved %d page image(s) to %s", len(written), directory)
        return written

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    @staticmethod
    def _draw_pil(
        img: np.ndarray,
        content: str,
        x: float,
        bottom_row: float,
        font: TrueTypeFont,
        font_size: float,
        color: Color,
    ) -> None:
        pil_img = Image.fromarray(cv2.cvtColor(img, cv2.COLOR_BGR2RGB))
        draw = ImageDraw.Draw(pil_img)
        # anchor="ld" = left-horizontal, descender-vertical
        draw.text((x, bottom_row), content, font=font.pil_font(font_size), fill=color, anchor="ld")
        np.copyto(img, cv2.cvtColor(np.array(pil_img), cv2.COLOR_RGB2BGR))

    @staticmethod
    def _draw_cv2(
        img: np.ndarray,
        content: str,
        x: float,
        bottom_row: float,
        font: HersheyFont,
        font_size: float,
        color: Color,
    ) -> None:
        _, below = font.extent_at_size(font_size)
        color_bgr = (color[2], color[1], color[0])
        cv2.putText(
            img, content, (round(x), round(bottom_row - below)),
            font.face, font.scale_for(font_size), color_bgr, font.thickness_for(font_size),
            cv2.LINE_AA,
        )

    def _check_page(self, index: int) -> None:
        if not 0 <= index < self.page_count():
            raise InvalidPageError(
                f"Page index {index} is outside the document (pages: {self.page_count()})"
            )
