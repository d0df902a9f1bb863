"""Unit tests for the coordinate transformer."""

import pytest

from signcompose.errors import InvalidBoundsError, InvalidPageError
from signcompose.models.geometry import PageGeometry
from signcompose.schemas.element import PercentBox
from signcompose.services.coordinates import (
    box_to_pixels,
    ensure_valid_box,
    page_geometry_for,
    to_percent,
    to_pixel,
    validate_percent_box,
)


class TestToPixel:
    def test_origin_maps_to_top_left(self, a4_page: PageGeometry) -> None:
        assert to_pixel(0, 0, a4_page) == (0, 842)

    def test_bottom_right(self, a4_page: PageGeometry) -> None:
        assert to_pixel(100, 100, a4_page) == (595, 0)

    def test_round_trip(self, a4_page: PageGeometry) -> None:
        for px, py in [(0, 0), (12.5, 87.25), (60, 80), (100, 100), (33.3, 0.1)]:
            x, y = to_pixel(px, py, a4_page)
            back_x, back_y = to_percent(x, y, a4_page)
            assert back_x == pytest.approx(px)
            assert back_y == pytest.approx(py)


class TestBoxToPixels:
    def test_a4_box(self, a4_page: PageGeometry) -> None:
        box = box_to_pixels(PercentBox(x=60, y=80, width=30, height=15), a4_page)
        assert box.x == pytest.approx(357)
        assert box.y == pytest.approx(168.4)
        assert box.width == pytest.approx(178.5)
        assert box.height == pytest.approx(126.3)

    def test_bottom_edge(self, a4_page: PageGeometry) -> None:
        box = box_to_pixels(PercentBox(x=0, y=50, width=10, height=50), a4_page)
        assert box.bottom == pytest.approx(0)
        assert box.right == pytest.approx(59.5)


class TestValidatePercentBox:
    def test_valid_box(self) -> None:
        assert validate_percent_box(PercentBox(x=0, y=0, width=100, height=100)) == []

    def test_overflowing_right_edge(self) -> None:
        issues = validate_percent_box(PercentBox(x=90, y=10, width=20, height=5))
        assert len(issues) == 1
        assert "right edge" in issues[0]

    def test_negative_coordinates(self) -> None:
        issues = validate_percent_box(PercentBox(x=-1, y=101, width=5, height=5))
        assert any("x coordinate" in i for i in issues)
        assert any("y coordinate" in i for i in issues)

    def test_zero_size(self) -> None:
        issues = validate_percent_box(PercentBox(x=10, y=10, width=0, height=5))
        assert any("positive" in i for i in issues)

    @pytest.mark.parametrize("field", ["x", "y", "width", "height"])
    def test_non_finite_values_are_reported(self, field: str) -> None:
        values = {"x": 10, "y": 10, "width": 20, "height": 5, field: float("nan")}
        issues = validate_percent_box(PercentBox(**values))
        assert issues == [f"{field} is not a finite number: nan"]

    def test_infinite_width_is_rejected(self) -> None:
        with pytest.raises(InvalidBoundsError):
            ensure_valid_box(PercentBox(x=10, y=10, width=float("inf"), height=5))

    def test_ensure_valid_box_raises_with_element_id(self) -> None:
        with pytest.raises(InvalidBoundsError) as exc_info:
            ensure_valid_box(PercentBox(x=10, y=98, width=10, height=5), "sig-1")
        assert exc_info.value.element_id == "sig-1"
        assert "sig-1" in str(exc_info.value)


class TestPageGeometryFor:
    def test_existing_page(self, document) -> None:
        geometry = page_geometry_for(document, 0)
        assert (geometry.width, geometry.height) == (595, 842)

    def test_missing_page(self, document) -> None:
        with pytest.raises(InvalidPageError):
            page_geometry_for(document, 1)

    def test_negative_index(self, document) -> None:
        with pytest.raises(InvalidPageError):
            page_geometry_for(document, -1)
