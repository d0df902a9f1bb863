"""Coordinate transformer — percent space ↔ page space.

Percent space is the UI's coordinate system: origin top-left, both axes
0–100.  Page space is the document's: origin bottom-left, native units.
The vertical axis therefore flips on the way through.
"""

import logging
import math

from signcompose.errors import InvalidBoundsError, InvalidPageError
from signcompose.models.document import DocumentHandle
from signcompose.models.geometry import PageGeometry, PixelBox
from signcompose.schemas.element import PercentBox

logger = logging.getLogger("signcompose.coordinates")


def to_pixel(percent_x: float, percent_y: float, geometry: PageGeometry) -> tuple[float, float]:
    """Convert a percent-space point to page space."""
    pixel_x = (percent_x / 100) * geometry.width
    pixel_y = geometry.height - (percent_y / 100) * geometry.height
    return pixel_x, pixel_y


def to_percent(pixel_x: float, pixel_y: float, geometry: PageGeometry) -> tuple[float, float]:
    """Inverse of ``to_pixel``."""
    percent_x = (pixel_x / geometry.width) * 100
    percent_y = ((geometry.height - pixel_y) / geometry.height) * 100
    return percent_x, percent_y


def box_to_pixels(box: PercentBox, geometry: PageGeometry) -> PixelBox:
    """Convert an element box to page space.

    The returned ``PixelBox.y`` is the box's top edge; its bottom edge sits
    ``height`` units lower.
    """
    x, y = to_pixel(box.x, box.y, geometry)
    result = PixelBox(
        x=x,
        y=y,
        width=(box.width / 100) * geometry.width,
        height=(box.height / 100) * geometry.height,
    )
    logger.debug(
        "Page %d (%gx%g): box %s%% -> x=%.2f y=%.2f w=%.2f h=%.2f",
        geometry.index, geometry.width, geometry.height,
        (box.x, box.y, box.width, box.height),
        result.x, result.y, result.width, result.height,
    )
    return result


def page_geometry_for(document: DocumentHandle, page_index: int) -> PageGeometry:
    """Look up a page's geometry, raising ``InvalidPageError`` if absent."""
    count = document.page_count()
    if page_index < 0 or page_index >= count:
        raise InvalidPageError(
            f"Page index {page_index} is outside the document (pages: {count})"
        )
    return document.page_geometry(page_index)


def validate_percent_box(box: PercentBox) -> list[str]:
    """Return every way *box* violates the percent-space invariants.

    An empty list means the box is valid.
    """
    issues: list[str] = []
    values = {"x": box.x, "y": box.y, "width": box.width, "height": box.height}
    non_finite = [name for name, value in values.items() if not math.isfinite(value)]
    if non_finite:
        return [f"{name} is not a finite number: {values[name]}" for name in non_finite]
    if not 0 <= box.x <= 100:
        issues.append(f"x coordinate out of range (0-100): {box.x}%")
    if not 0 <= box.y <= 100:
        issues.append(f"y coordinate out of range (0-100): {box.y}%")
    if box.width <= 0 or box.height <= 0:
        issues.append(f"dimensions must be positive: {box.width}% x {box.height}%")
    if box.x + box.width > 100:
        issues.append(f"box exceeds the right edge: x+width = {box.x + box.width}%")
    if box.y + box.height > 100:
        issues.append(f"box exceeds the bottom edge: y+height = {box.y + box.height}%")
    return issues


def ensure_valid_box(box: PercentBox, element_id: str | None = None) -> None:
    """Raise ``InvalidBoundsError`` if *box* is not a valid percent box."""
    issues = validate_percent_box(box)
    if issues:
        raise InvalidBoundsError("; ".join(issues), element_id=element_id)
