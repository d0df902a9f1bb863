"""Style resolver — pick a font and fit text to its own box.

Font family and ink color are fixed by policy (bold sans preferred, black
ink), so the only free variable is the font size.  Sizing is a bounded,
deterministic walk in 1pt steps:

  1. Clamp the requested size to ``[min_font_size, max_font_size]``.
  2. Shrink the available area by the configured padding on every side.
  3. If auto-sizing is on, measure at the current size; step up while the
     next size still fits (never past the request), or step down until the
     text fits or the floor is reached.

The resolver knows nothing about other marks on the page; collisions are
the embedder's concern.
"""

import logging
import math
from dataclasses import dataclass, field

from signcompose.errors import NoFontAvailableError
from signcompose.models.document import FontHandle
from signcompose.models.enums import ElementKind

logger = logging.getLogger("signcompose.style_resolver")

# Consulted in order; the first key present in the document's font set wins.
FONT_PRIORITY: tuple[str, ...] = (
    "helvetica_bold",
    "times_bold",
    "helvetica",
    "times_roman",
    "default",
)

MAX_FIT_ITERATIONS: int = 20

# Sizes within this many points of the floor draw a readability warning.
_SMALL_FONT_MARGIN: float = 2.0
# Text covering less than this share of *both* box dimensions looks lost.
_MIN_UTILIZATION: float = 0.3

# Preferred starting size per element kind.
PREFERRED_FONT_SIZES: dict[ElementKind, int] = {
    ElementKind.NAME: 14,
    ElementKind.DATE: 10,
    ElementKind.TEXT: 12,
}


def recommended_font_size(kind: ElementKind) -> int:
    return PREFERRED_FONT_SIZES.get(kind, 12)


@dataclass(frozen=True)
class StyleConfig:
    """Font sizing policy."""
    default_font_size: float = 12
    min_font_size: float = 8
    max_font_size: float = 72
    auto_size_text: bool = True
    # Padding per side, as a percentage of the box dimension.
    text_padding_percent: float = 5.0

    def clamp(self, size: float) -> float:
        return max(self.min_font_size, min(self.max_font_size, size))


@dataclass(frozen=True)
class ComputedStyle:
    """Resolved font and measured text extent for one element on one page."""
    font: FontHandle
    font_size: float
    text_width: float
    text_height: float


@dataclass(frozen=True)
class StyleAdjustment:
    """A deviation from what the element asked for, with the reason."""
    property: str
    original_value: object
    adjusted_value: object
    reason: str


@dataclass
class StyleResolution:
    style: ComputedStyle
    adjustments: list[StyleAdjustment] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _normalize_family(name: str) -> str:
    return "".join(ch for ch in name.lower() if ch.isalnum())


class StyleResolver:
    """Selects a font and computes a font size that fits a target box."""

    def __init__(self, config: StyleConfig | None = None) -> None:
        self.config = config or StyleConfig()

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def resolve(
        self,
        content: str,
        requested_font_size: float | None,
        font_family: str | None,
        bounds: tuple[float, float],
        fonts: dict[str, FontHandle],
    ) -> StyleResolution:
        """Fit *content* inside a ``(width, height)`` box.

        Args:
            content: Already-formatted text to measure.
            requested_font_size: Size asked for by the element; ``None``
                falls back to ``default_font_size``.
            font_family: Advisory family hint.  Recorded as an adjustment
                when policy overrides it.
            bounds: Box size in page units.
            fonts: The document's font set.

        Returns:
            The computed style plus any adjustments and warnings.

        Raises:
            NoFontAvailableError: if *fonts* holds nothing usable.
        """
        requested = (
            float(requested_font_size)
            if requested_font_size is not None
            else float(self.config.default_font_size)
        )
        adjustments: list[StyleAdjustment] = []
        warnings: list[str] = []

        font_key, font = self.select_font(fonts)
        if font_family and _normalize_family(font_family) not in (
            _normalize_family(font_key), _normalize_family(font.name),
        ):
            adjustments.append(StyleAdjustment(
                property="font_family",
                original_value=font_family,
                adjusted_value=font.name,
                reason="Font family is fixed by policy",
            ))

        font_size, reason = self._fit_font_size(content, requested, font, bounds)
        if font_size != requested:
            adjustments.append(StyleAdjustment(
                property="font_size",
                original_value=requested,
                adjusted_value=font_size,
                reason=reason or "Font size reduced to fit",
            ))

        text_width = font.width_of_text(content, font_size)
        text_height = font.height_at_size(font_size)
        warnings.extend(self._check_legibility(text_width, text_height, bounds, font_size))

        return StyleResolution(
            style=ComputedStyle(
                font=font,
                font_size=font_size,
                text_width=text_width,
                text_height=text_height,
            ),
            adjustments=adjustments,
            warnings=warnings,
        )

    def resolve_for_kind(
        self,
        kind: ElementKind,
        content: str,
        bounds: tuple[float, float],
        fonts: dict[str, FontHandle],
    ) -> ComputedStyle:
        """Resolve a style starting from the kind's preferred size."""
        return self.resolve(content, recommended_font_size(kind), None, bounds, fonts).style

    def select_font(self, fonts: dict[str, FontHandle]) -> tuple[str, FontHandle]:
        """Return ``(key, font)`` for the highest-priority available font."""
        for key in FONT_PRIORITY:
            font = fonts.get(key)
            if font is not None:
                return key, font
        for key, font in fonts.items():
            if font is not None:
                logger.warning("No preferred font available; falling back to %s", key)
                return key, font
        raise NoFontAvailableError("No fonts available in document")

    # ------------------------------------------------------------------
    # Sizing
    # ------------------------------------------------------------------

    def available_area(self, bounds: tuple[float, float]) -> tuple[float, float]:
        padding = self.config.text_padding_percent / 100
        width, height = bounds
        return width * (1 - padding * 2), height * (1 - padding * 2)

    def _fit_font_size(
        self,
        text: str,
        requested: float,
        font: FontHandle,
        bounds: tuple[float, float],
    ) -> tuple[float, str | None]:
        """Return ``(font_size, reason)``; reason is set when size != requested."""
        cfg = self.config
        font_size = cfg.clamp(requested)

        if not cfg.auto_size_text:
            reason = "Size clamped to valid range" if font_size != requested else None
            return font_size, reason

        avail_w, avail_h = self.available_area(bounds)

        def fits(size: float) -> bool:
            return (
                font.width_of_text(text, size) <= avail_w
                and font.height_at_size(size) <= avail_h
            )

        if not fits(font_size):
            # Jump close to the fitting size, then refine in 1pt steps
            width = font.width_of_text(text, font_size)
            height = font.height_at_size(font_size)
            scale = min(
                avail_w / width if width > 0 else 1.0,
                avail_h / height if height > 0 else 1.0,
            )
            font_size = cfg.clamp(math.floor(font_size * max(scale, 0.0)))

        for _ in range(MAX_FIT_ITERATIONS):
            if fits(font_size):
                larger = font_size + 1
                if font_size < requested and larger <= cfg.max_font_size and fits(larger):
                    font_size = larger
                    continue
                break
            font_size = max(cfg.min_font_size, font_size - 1)
            if font_size == cfg.min_font_size:
                break

        reason = None
        if font_size != requested:
            reason = f"Adjusted to fit bounds ({round(avail_w)}x{round(avail_h)})"
        return font_size, reason

    def _check_legibility(
        self,
        text_width: float,
        text_height: float,
        bounds: tuple[float, float],
        font_size: float,
    ) -> list[str]:
        warnings: list[str] = []
        avail_w, avail_h = self.available_area(bounds)
        width, height = bounds

        if text_width > avail_w or text_height > avail_h:
            warnings.append(
                f"Text does not fit its box at {font_size:g}pt "
                f"({round(text_width)}x{round(text_height)} > {round(avail_w)}x{round(avail_h)})"
            )

        if font_size < self.config.min_font_size + _SMALL_FONT_MARGIN:
            warnings.append(f"Font size ({font_size:g}) is very small and may be unreadable")

        if width > 0 and height > 0:
            if text_width / width < _MIN_UTILIZATION and text_height / height < _MIN_UTILIZATION:
                warnings.append("Text looks too small for its box")

        return warnings
