"""Pydantic schemas for annotation elements.

Elements are authored in *percent space* (origin top-left, both axes
0–100).  The schema only checks types; range invariants are enforced by the
composer's Validate stage and by the renderer, which reject a bad box
instead of clamping it.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from signcompose.models.enums import ElementKind


class PercentBox(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    width: float
    height: float


class StyleHints(BaseModel):
    """Advisory style requested by the UI.

    Family and color are fixed by policy; only the size is honoured, and
    only within the configured font size range.
    """
    model_config = ConfigDict(frozen=True)

    requested_font_size: float | None = None
    requested_font_family: str | None = None


class AnnotationElement(BaseModel):
    """A request to place one text mark on one page."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    kind: ElementKind = ElementKind.TEXT
    content: str = ""
    position: PercentBox
    page_index: int = 0
    style: StyleHints = StyleHints()

    @classmethod
    def from_placement_record(cls, record: dict[str, Any]) -> "AnnotationElement":
        """Build an element from a stored placement row.

        Placement rows keep percent coordinates as ``x_percent`` /
        ``y_percent`` / ``width_percent`` / ``height_percent`` and a 1-based
        ``page_number``.  Content falls back from ``signature_content`` to
        ``placeholder_text`` to the literal ``"Signature"``.
        """
        kind_raw = str(record.get("type") or ElementKind.TEXT.value).strip().lower()
        try:
            kind = ElementKind(kind_raw)
        except ValueError:
            kind = ElementKind.TEXT

        content = (
            record.get("signature_content")
            or record.get("placeholder_text")
            or "Signature"
        )
        font_size = record.get("font_size")

        return cls(
            id=str(record["id"]),
            kind=kind,
            content=str(content),
            position=PercentBox(
                x=float(record["x_percent"]),
                y=float(record["y_percent"]),
                width=float(record["width_percent"]),
                height=float(record["height_percent"]),
            ),
            page_index=int(record.get("page_number", 1)) - 1,
            style=StyleHints(
                requested_font_size=float(font_size) if font_size is not None else None,
            ),
        )
