"""Element renderer — turn percent-space elements into page-ready instructions.

Per element:
  1. Normalize content by kind (name casing, date re-formatting, text trim).
  2. Convert the percent box to a page-space box.
  3. Resolve font and size against that box.
  4. Place the draw point: shift horizontally for alignment, then drop by
     the text height so the text's visual top sits on the box's top edge.

The batch form never aborts on a bad element; failures are collected and
the rest of the batch is rendered.
"""

import logging
import re
import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime

from signcompose.errors import (
    CompositionCancelledError,
    CompositionError,
    InvalidPageError,
)
from signcompose.models.document import DocumentHandle, FontHandle
from signcompose.models.enums import ElementKind, NameFormat, TextAlignment
from signcompose.models.geometry import EDGE_TOLERANCE, PageGeometry, PixelBox, Point, Rect
from signcompose.schemas.element import AnnotationElement
from signcompose.services.coordinates import box_to_pixels, ensure_valid_box, page_geometry_for
from signcompose.services.style_resolver import (
    ComputedStyle,
    StyleAdjustment,
    StyleResolver,
    recommended_font_size,
)

logger = logging.getLogger("signcompose.element_renderer")

# Accepted date inputs, tried after ISO 8601.
_DATE_INPUT_FORMATS: tuple[str, ...] = (
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d.%m.%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
)

_TODAY_PATTERN = re.compile(r"\b(today|now)\b", re.IGNORECASE)
_DATE_TOKEN_PATTERN = re.compile(r"YYYY|MM|DD|M|D")
_WORD_PATTERN = re.compile(r"\w\S*")


@dataclass(frozen=True)
class RenderConfig:
    """Content formatting and alignment policy."""
    enable_text_alignment: bool = True
    text_alignment: TextAlignment = TextAlignment.LEFT
    enable_date_formatting: bool = True
    date_format: str = "YYYY-MM-DD"
    enable_name_formatting: bool = False
    name_format: NameFormat = NameFormat.ORIGINAL
    # Starting size when the element requests none; None defers to the style config.
    preferred_font_size: float | None = None

    @classmethod
    def for_kind(cls, kind: ElementKind, base: "RenderConfig | None" = None) -> "RenderConfig":
        """Return the formatting/alignment preset for one element kind."""
        base = base or cls()
        if kind == ElementKind.NAME:
            return replace(
                base,
                enable_name_formatting=True,
                name_format=NameFormat.TITLECASE,
                text_alignment=TextAlignment.CENTER,
                preferred_font_size=recommended_font_size(kind),
            )
        if kind == ElementKind.DATE:
            return replace(
                base,
                enable_date_formatting=True,
                date_format="YYYY-MM-DD",
                text_alignment=TextAlignment.RIGHT,
                preferred_font_size=recommended_font_size(kind),
            )
        return replace(
            base,
            text_alignment=TextAlignment.LEFT,
            preferred_font_size=recommended_font_size(kind),
        )


@dataclass(frozen=True)
class RenderInstruction:
    """A fully resolved, page-space description of one mark."""
    id: str
    kind: ElementKind
    page_index: int
    content: str
    position: Point          # Bottom-left of the measured text box
    bounds: PixelBox         # The element's box; y is its top edge
    style: ComputedStyle
    adjustments: tuple[StyleAdjustment, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def text_rect(self) -> Rect:
        return Rect(
            x=self.position.x,
            y=self.position.y,
            width=self.style.text_width,
            height=self.style.text_height,
        )


@dataclass
class RenderResult:
    """Outcome of rendering a batch of elements."""
    instructions: list[RenderInstruction] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    failures: dict[str, CompositionError] = field(default_factory=dict)
    total_elements_processed: int = 0

    @property
    def success(self) -> bool:
        return not self.errors

    def extend(self, other: "RenderResult") -> None:
        self.instructions.extend(other.instructions)
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        self.failures.update(other.failures)
        self.total_elements_processed += other.total_elements_processed


# ─── Content formatting ─────────────────────────────────────────────────────

def parse_date(text: str) -> date | None:
    """Parse a user-entered date, or return None if it isn't one."""
    value = text.strip()
    if not value:
        return None
    if _TODAY_PATTERN.search(value):
        return date.today()
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        pass
    for fmt in _DATE_INPUT_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def format_date_by_pattern(value: date, pattern: str) -> str:
    """Render *value* with a ``YYYY``/``MM``/``DD``/``M``/``D`` pattern.

    Patterns containing ``%`` are treated as ``strftime`` formats.
    """
    if "%" in pattern:
        return value.strftime(pattern)

    tokens = {
        "YYYY": f"{value.year:04d}",
        "MM": f"{value.month:02d}",
        "DD": f"{value.day:02d}",
        "M": str(value.month),
        "D": str(value.day),
    }
    return _DATE_TOKEN_PATTERN.sub(lambda m: tokens[m.group(0)], pattern)


def format_name(name: str, name_format: NameFormat) -> str:
    trimmed = name.strip()
    if name_format == NameFormat.UPPERCASE:
        return trimmed.upper()
    if name_format == NameFormat.LOWERCASE:
        return trimmed.lower()
    if name_format == NameFormat.TITLECASE:
        return _WORD_PATTERN.sub(lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), trimmed)
    return trimmed


# ─── Instruction checks ─────────────────────────────────────────────────────

def instruction_issues(instruction: RenderInstruction, geometry: PageGeometry) -> list[str]:
    """List everything that makes *instruction* undrawable on *geometry*."""
    issues: list[str] = []
    pos = instruction.position
    box = instruction.bounds
    w, h = geometry.width, geometry.height

    if not -EDGE_TOLERANCE <= pos.x <= w + EDGE_TOLERANCE:
        issues.append(f"X position {pos.x:.2f} is outside page bounds (0-{w:g})")
    if not -EDGE_TOLERANCE <= pos.y <= h + EDGE_TOLERANCE:
        issues.append(f"Y position {pos.y:.2f} is outside page bounds (0-{h:g})")
    if box.x < -EDGE_TOLERANCE or box.right > w + EDGE_TOLERANCE:
        issues.append(f"Box spans x {box.x:.2f}-{box.right:.2f}, outside page width {w:g}")
    if box.bottom < -EDGE_TOLERANCE or box.y > h + EDGE_TOLERANCE:
        issues.append(f"Box spans y {box.bottom:.2f}-{box.y:.2f}, outside page height {h:g}")
    if not instruction.content or not instruction.content.strip():
        issues.append("Content is empty")
    if instruction.style.font is None:
        issues.append("Font is missing")
    if instruction.style.font_size <= 0:
        issues.append("Font size must be positive")
    return issues


# ─── Renderer ───────────────────────────────────────────────────────────────

class ElementRenderer:
    """Produces render instructions from annotation elements."""

    def __init__(
        self,
        style_resolver: StyleResolver | None = None,
        config: RenderConfig | None = None,
    ) -> None:
        self.style_resolver = style_resolver or StyleResolver()
        self.config = config or RenderConfig()

    @classmethod
    def for_kind(
        cls,
        kind: ElementKind,
        style_resolver: StyleResolver | None = None,
        base: RenderConfig | None = None,
    ) -> "ElementRenderer":
        return cls(style_resolver, RenderConfig.for_kind(kind, base))

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def render(
        self,
        element: AnnotationElement,
        fonts: dict[str, FontHandle],
        geometry: PageGeometry,
    ) -> RenderInstruction:
        """Render one element against the geometry of its page.

        Raises:
            InvalidPageError: if *geometry* belongs to another page.
            InvalidBoundsError: if the element's percent box is invalid.
            NoFontAvailableError: if *fonts* holds nothing usable.
        """
        if geometry.index != element.page_index:
            raise InvalidPageError(
                f"Element targets page {element.page_index} but geometry is for page {geometry.index}",
                element_id=element.id,
            )
        ensure_valid_box(element.position, element.id)

        content = self.normalize_content(element)
        box = box_to_pixels(element.position, geometry)

        requested = element.style.requested_font_size
        if requested is None:
            requested = self.config.preferred_font_size

        try:
            resolution = self.style_resolver.resolve(
                content,
                requested,
                element.style.requested_font_family,
                (box.width, box.height),
                fonts,
            )
        except CompositionError as exc:
            exc.element_id = exc.element_id or element.id
            raise

        position = self.draw_position(box, resolution.style)

        return RenderInstruction(
            id=element.id,
            kind=element.kind,
            page_index=element.page_index,
            content=content,
            position=position,
            bounds=box,
            style=resolution.style,
            adjustments=tuple(resolution.adjustments),
            warnings=tuple(resolution.warnings),
        )

    def render_many(
        self,
        elements: list[AnnotationElement],
        fonts: dict[str, FontHandle],
        document: DocumentHandle,
        cancel_event: threading.Event | None = None,
    ) -> RenderResult:
        """Render a batch, collecting per-element failures.

        Page geometry is looked up from *document* per element, so an
        element pointing past the last page fails alone.
        """
        result = RenderResult(total_elements_processed=len(elements))
        geometries: dict[int, PageGeometry] = {}

        for element in elements:
            try:
                if cancel_event is not None and cancel_event.is_set():
                    raise CompositionCancelledError("Composition cancelled", element_id=element.id)
                geometry = geometries.get(element.page_index)
                if geometry is None:
                    geometry = page_geometry_for(document, element.page_index)
                    geometries[element.page_index] = geometry
                instruction = self.render(element, fonts, geometry)
            except CompositionError as exc:
                exc.element_id = exc.element_id or element.id
                logger.warning("Failed to render element %s: %s", element.id, exc.message)
                result.errors.append(f"Failed to render element {element.id}: {exc.message}")
                result.failures[element.id] = exc
                continue

            result.instructions.append(instruction)
            result.warnings.extend(f"{element.id}: {w}" for w in instruction.warnings)

        return result

    def validate_instruction(self, instruction: RenderInstruction, geometry: PageGeometry) -> list[str]:
        return instruction_issues(instruction, geometry)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def normalize_content(self, element: AnnotationElement) -> str:
        if element.kind == ElementKind.NAME:
            if not self.config.enable_name_formatting:
                return element.content
            return format_name(element.content, self.config.name_format)
        if element.kind == ElementKind.DATE:
            return self._format_date(element.content)
        return element.content.strip()

    def _format_date(self, text: str) -> str:
        if not self.config.enable_date_formatting:
            return text
        parsed = parse_date(text)
        if parsed is None:
            logger.debug("Unparseable date %r kept verbatim", text)
            return text
        return format_date_by_pattern(parsed, self.config.date_format)

    def draw_position(self, box: PixelBox, style: ComputedStyle) -> Point:
        """Align within the box horizontally; top-align the text vertically."""
        x = box.x
        if self.config.enable_text_alignment:
            if self.config.text_alignment == TextAlignment.CENTER:
                x = box.x + (box.width - style.text_width) / 2
            elif self.config.text_alignment == TextAlignment.RIGHT:
                x = box.x + box.width - style.text_width
        return Point(x=x, y=box.y - style.text_height)
