"""Font handles for the bundled document adapters.

  StandardPdfFont → one of the PDF base-14 fonts, measured with reportlab's
                    AFM metrics.  Units are points.
  TrueTypeFont    → a TrueType file rendered with Pillow.  Units are pixels.
  HersheyFont     → OpenCV's built-in stroke font, the last resort when no
                    TrueType file is installed.
"""

import functools
import logging
from pathlib import Path

import cv2
from PIL import ImageFont
from reportlab.pdfbase import pdfmetrics

logger = logging.getLogger("signcompose.fonts")

# Font-set keys → base-14 names.  Keys match the style resolver's priority list.
PDF_STANDARD_FONTS: dict[str, str] = {
    "helvetica_bold": "Helvetica-Bold",
    "times_bold": "Times-Bold",
    "helvetica": "Helvetica",
    "times_roman": "Times-Roman",
}

# Base-14 fonts are drawn with WinAnsiEncoding.
PDF_STANDARD_ENCODING = "cp1252"

_SANS_BOLD_FONT_CANDIDATES = [
    "LiberationSans-Bold.ttf",  # Arial-compatible
    "DejaVuSans-Bold.ttf",
    "NotoSans-Bold.ttf",
    "FreeSansBold.ttf",
]

_SYSTEM_FONT_DIRS = [
    Path("/usr/share/fonts/truetype/liberation"),
    Path("/usr/share/fonts/truetype/dejavu"),
    Path("/usr/share/fonts/truetype/noto"),
    Path("/usr/share/fonts/truetype/freefont"),
]


def find_truetype_font(extra_dirs: list[Path] | None = None) -> str | None:
    """Find a bold sans-serif TrueType font, searching *extra_dirs* first."""
    for directory in [*(extra_dirs or []), *_SYSTEM_FONT_DIRS]:
        for name in _SANS_BOLD_FONT_CANDIDATES:
            candidate = Path(directory) / name
            if candidate.exists():
                return str(candidate)
    return None


@functools.lru_cache(maxsize=64)
def _get_pil_font(font_path: str, size: int) -> ImageFont.FreeTypeFont:
    """Load and cache a PIL TrueType font at the given em-box size."""
    return ImageFont.truetype(font_path, size=max(size, 6))


class StandardPdfFont:
    def __init__(self, name: str) -> None:
        self.name = name

    def width_of_text(self, text: str, size: float) -> float:
        return pdfmetrics.stringWidth(text, self.name, size)

    def height_at_size(self, size: float) -> float:
        ascent, descent = pdfmetrics.getAscentDescent(self.name, size)
        return ascent - descent

    def descent_at_size(self, size: float) -> float:
        """Distance from the baseline down to the bottom of the text box."""
        return -pdfmetrics.getAscentDescent(self.name, size)[1]

    def can_encode(self, text: str) -> bool:
        try:
            text.encode(PDF_STANDARD_ENCODING)
        except UnicodeEncodeError:
            return False
        return True

    def __repr__(self) -> str:
        return f"StandardPdfFont({self.name!r})"


class TrueTypeFont:
    """A TrueType file measured and drawn at integer pixel sizes."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.name = Path(path).stem

    def pil_font(self, size: float) -> ImageFont.FreeTypeFont:
        return _get_pil_font(self.path, int(round(size)))

    def width_of_text(self, text: str, size: float) -> float:
        return float(self.pil_font(size).getlength(text))

    def height_at_size(self, size: float) -> float:
        ascent, descent = self.pil_font(size).getmetrics()
        return float(ascent + descent)

    def __repr__(self) -> str:
        return f"TrueTypeFont({self.path!r})"


class HersheyFont:
    """OpenCV stroke font.  Size maps to scale as ``size / 30``."""

    name = "hershey_simplex"
    face = cv2.FONT_HERSHEY_SIMPLEX

    def scale_for(self, size: float) -> float:
        return max(size / 30.0, 0.4)

    def thickness_for(self, size: float) -> int:
        return max(round(self.scale_for(size) * 1.5), 1)

    def width_of_text(self, text: str, size: float) -> float:
        (width, _), _ = cv2.getTextSize(text, self.face, self.scale_for(size), self.thickness_for(size))
        return float(width)

    def height_at_size(self, size: float) -> float:
        return float(sum(self.extent_at_size(size)))

    def extent_at_size(self, size: float) -> tuple[int, int]:
        """Return ``(above_baseline, below_baseline)`` in pixels."""
        (_, height), baseline = cv2.getTextSize("Hg", self.face, self.scale_for(size), self.thickness_for(size))
        return height, baseline
