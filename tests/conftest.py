"""Shared fixtures: an in-memory host document with predictable metrics."""

from dataclasses import dataclass, field
from datetime import datetime

import pytest

from signcompose.errors import DrawFailureError, InvalidPageError
from signcompose.models.document import Color, FontHandle
from signcompose.models.enums import ElementKind
from signcompose.models.geometry import PageGeometry, PixelBox, Point
from signcompose.schemas.element import AnnotationElement, PercentBox, StyleHints
from signcompose.services.element_renderer import RenderInstruction
from signcompose.services.style_resolver import ComputedStyle

A4 = (595.0, 842.0)


class FakeFont:
    """Each character is half the font size wide; line height equals the size."""

    def __init__(self, name: str = "Helvetica-Bold") -> None:
        self.name = name

    def width_of_text(self, text: str, size: float) -> float:
        return 0.5 * size * len(text)

    def height_at_size(self, size: float) -> float:
        return float(size)


@dataclass
class DrawCall:
    page_index: int
    content: str
    x: float
    y: float
    font_size: float
    color: Color


@dataclass
class FakeDocument:
    page_sizes: list[tuple[float, float]] = field(default_factory=lambda: [A4])
    fonts: dict[str, FontHandle] = field(
        default_factory=lambda: {"helvetica_bold": FakeFont(), "times_roman": FakeFont("Times-Roman")}
    )
    # content -> number of draw calls that should still fail
    fail_contents: dict[str, int] = field(default_factory=dict)
    draws: list[DrawCall] = field(default_factory=list)
    draw_attempts: dict[str, int] = field(default_factory=dict)
    modified_at: datetime | None = None

    def page_count(self) -> int:
        return len(self.page_sizes)

    def page_geometry(self, index: int) -> PageGeometry:
        if not 0 <= index < len(self.page_sizes):
            raise InvalidPageError(f"No page {index}")
        width, height = self.page_sizes[index]
        return PageGeometry(index=index, width=width, height=height)

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
        self.draw_attempts[content] = self.draw_attempts.get(content, 0) + 1
        remaining = self.fail_contents.get(content, 0)
        if remaining:
            self.fail_contents[content] = remaining - 1
            raise DrawFailureError(f"Simulated failure drawing {content!r}")
        self.draws.append(DrawCall(page_index, content, x, y, font_size, color))

    def embedded_fonts(self) -> dict[str, FontHandle]:
        return dict(self.fonts)

    def mark_modified(self, when: datetime) -> None:
        self.modified_at = when


def make_element(
    element_id: str,
    x: float = 10,
    y: float = 10,
    width: float = 30,
    height: float = 5,
    *,
    content: str = "Jane Doe",
    kind: ElementKind = ElementKind.TEXT,
    page_index: int = 0,
    font_size: float | None = None,
) -> AnnotationElement:
    return AnnotationElement(
        id=element_id,
        kind=kind,
        content=content,
        position=PercentBox(x=x, y=y, width=width, height=height),
        page_index=page_index,
        style=StyleHints(requested_font_size=font_size),
    )


def make_instruction(
    element_id: str,
    x: float,
    y: float,
    width: float,
    height: float,
    *,
    page_index: int = 0,
    content: str = "Signed",
    font_size: float = 12,
) -> RenderInstruction:
    """An instruction whose measured text box is exactly (x, y, width, height)."""
    return RenderInstruction(
        id=element_id,
        kind=ElementKind.TEXT,
        page_index=page_index,
        content=content,
        position=Point(x, y),
        bounds=PixelBox(x=x, y=y + height, width=width, height=height),
        style=ComputedStyle(font=FakeFont(), font_size=font_size, text_width=width, text_height=height),
    )


@pytest.fixture
def document() -> FakeDocument:
    return FakeDocument()


@pytest.fixture
def two_page_document() -> FakeDocument:
    return FakeDocument(page_sizes=[A4, A4])


@pytest.fixture
def fonts() -> dict[str, FontHandle]:
    return {"helvetica_bold": FakeFont()}


@pytest.fixture
def a4_page() -> PageGeometry:
    return PageGeometry(index=0, width=A4[0], height=A4[1])
