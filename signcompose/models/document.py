"""Host contracts consumed by the engine.

The engine never opens, fetches or stores documents.  It is handed an
already-open, mutable document object implementing ``DocumentHandle`` and
draws into it through these narrow protocols.  Concrete adapters live in
``signcompose.documents``.
"""

from datetime import datetime
from typing import Protocol, runtime_checkable

from signcompose.models.geometry import PageGeometry

# RGB 0–255
Color = tuple[int, int, int]


@runtime_checkable
class FontHandle(Protocol):
    """A measurable font embedded in (or usable by) a document."""

    name: str

    def width_of_text(self, text: str, size: float) -> float:
        """Advance width of *text* at *size*, in page units."""
        ...

    def height_at_size(self, size: float) -> float:
        """Line height (ascent + descent) at *size*, in page units."""
        ...


@runtime_checkable
class DocumentHandle(Protocol):
    """An opened document the engine may draw into.

    Mutation is strictly sequential: one composition run per document
    instance at a time.
    """

    def page_count(self) -> int:
        ...

    def page_geometry(self, index: int) -> PageGeometry:
        """Return the size of page *index*.

        Raises:
            InvalidPageError: if the page does not exist.
        """
        ...

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
        """Draw *content* with its measured box's bottom-left corner at (x, y).

        Raises:
            DrawFailureError: if the document cannot render the text.
        """
        ...

    def embedded_fonts(self) -> dict[str, FontHandle]:
        ...

    def mark_modified(self, when: datetime) -> None:
        """Record a modification timestamp in the document metadata."""
        ...
