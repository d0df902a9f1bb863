"""Page-space geometry primitives.

Page space has its origin at the bottom-left corner of the page and uses the
page's native units (points for PDF, pixels for scanned images).  Every
rectangle here is stored as ``(x, y, width, height)`` with ``y`` at the
rectangle's *bottom* edge, except ``PixelBox`` whose ``y`` is the top edge of
an element box as produced by the percent → page transform.
"""

from dataclasses import dataclass

# Float slack when comparing positions against page edges.
EDGE_TOLERANCE: float = 1e-6


@dataclass(frozen=True)
class PageGeometry:
    """Immutable size of one page, supplied by the host document."""
    index: int
    width: float
    height: float


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class PixelBox:
    """An element box converted to page space.

    ``x`` is the left edge and ``y`` the *top* edge (the flipped percent-space
    origin); the box extends ``height`` units downward from ``y``.
    """
    x: float
    y: float
    width: float
    height: float

    @property
    def bottom(self) -> float:
        return self.y - self.height

    @property
    def right(self) -> float:
        return self.x + self.width


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle with a bottom-left anchor."""
    x: float
    y: float
    width: float
    height: float

    @property
    def left(self) -> float:
        return self.x

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y

    @property
    def top(self) -> float:
        return self.y + self.height

    def moved_to(self, x: float, y: float) -> "Rect":
        return Rect(x=x, y=y, width=self.width, height=self.height)


def rects_overlap(a: Rect, b: Rect) -> bool:
    """AABB overlap test.  Touching edges count as overlapping."""
    return not (
        a.right < b.left
        or b.right < a.left
        or a.top < b.bottom
        or b.top < a.bottom
    )
