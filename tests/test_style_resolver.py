"""Unit tests for the style resolver."""

import pytest

from signcompose.errors import NoFontAvailableError
from signcompose.models.enums import ElementKind
from signcompose.services.style_resolver import (
    StyleConfig,
    StyleResolver,
    recommended_font_size,
)
from conftest import FakeFont

A4_DATE_BOX = (178.5, 126.3)


class TestFontSizeBounds:
    def test_huge_request_is_capped(self, fonts) -> None:
        resolution = StyleResolver().resolve("Hi", 200, None, A4_DATE_BOX, fonts)
        assert resolution.style.font_size <= 72
        assert any(a.property == "font_size" for a in resolution.adjustments)

    def test_tiny_request_is_raised_to_floor(self, fonts) -> None:
        resolution = StyleResolver().resolve("Hi", 1, None, A4_DATE_BOX, fonts)
        assert resolution.style.font_size >= 8

    def test_missing_request_uses_default(self, fonts) -> None:
        resolution = StyleResolver().resolve("Hi", None, None, A4_DATE_BOX, fonts)
        assert resolution.style.font_size == 12
        assert resolution.adjustments == []

    def test_custom_bounds(self, fonts) -> None:
        resolver = StyleResolver(StyleConfig(min_font_size=10, max_font_size=20))
        assert resolver.resolve("Hi", 50, None, A4_DATE_BOX, fonts).style.font_size == 20
        assert resolver.resolve("Hi", 2, None, A4_DATE_BOX, fonts).style.font_size == 10


class TestFitting:
    def test_shrinks_until_text_fits(self, fonts) -> None:
        resolver = StyleResolver()
        resolution = resolver.resolve("abcd", 50, None, (101, 60), fonts)
        avail_w, avail_h = resolver.available_area((101, 60))

        assert resolution.style.font_size == 45
        assert resolution.style.text_width <= avail_w
        assert resolution.style.text_height <= avail_h
        assert not any("does not fit" in w for w in resolution.warnings)

    def test_large_request_into_small_box_fits(self, fonts) -> None:
        resolver = StyleResolver()
        resolution = resolver.resolve("ABCDEFGHIJ", 60, None, (100, 40), fonts)
        avail_w, avail_h = resolver.available_area((100, 40))

        assert resolution.style.font_size == 18
        assert resolution.style.text_width <= avail_w
        assert resolution.style.text_height <= avail_h
        assert not any("does not fit" in w for w in resolution.warnings)

    def test_fitting_text_keeps_requested_size(self, fonts) -> None:
        resolution = StyleResolver().resolve("abcd", 30, None, (100, 50), fonts)
        assert resolution.style.font_size == 30
        assert resolution.style.text_width == pytest.approx(60)
        assert resolution.style.text_height == pytest.approx(30)

    def test_unfittable_text_stops_at_floor_with_warning(self, fonts) -> None:
        resolution = StyleResolver().resolve("x" * 40, 12, None, (100, 50), fonts)
        assert resolution.style.font_size == 8
        assert any("does not fit" in w for w in resolution.warnings)
        assert any("very small" in w for w in resolution.warnings)

    def test_auto_size_disabled_only_clamps(self, fonts) -> None:
        resolver = StyleResolver(StyleConfig(auto_size_text=False))
        resolution = resolver.resolve("x" * 40, 30, None, (100, 50), fonts)
        assert resolution.style.font_size == 30
        assert any("does not fit" in w for w in resolution.warnings)

    def test_small_text_in_large_box_warns(self, fonts) -> None:
        resolution = StyleResolver().resolve("Hi", 8, None, A4_DATE_BOX, fonts)
        assert "Text looks too small for its box" in resolution.warnings


class TestFontSelection:
    def test_priority_order(self) -> None:
        bold = FakeFont("Helvetica-Bold")
        fonts = {"times_roman": FakeFont("Times-Roman"), "helvetica_bold": bold}
        key, font = StyleResolver().select_font(fonts)
        assert key == "helvetica_bold"
        assert font is bold

    def test_falls_back_to_any_font(self) -> None:
        key, _ = StyleResolver().select_font({"custom": FakeFont("Custom")})
        assert key == "custom"

    def test_no_fonts_raises(self) -> None:
        with pytest.raises(NoFontAvailableError):
            StyleResolver().resolve("Hi", 12, None, A4_DATE_BOX, {})

    def test_family_hint_override_is_recorded(self, fonts) -> None:
        resolution = StyleResolver().resolve("Hi", 12, "Comic Sans", A4_DATE_BOX, fonts)
        family = [a for a in resolution.adjustments if a.property == "font_family"]
        assert len(family) == 1
        assert family[0].original_value == "Comic Sans"

    def test_matching_family_hint_is_not_an_adjustment(self, fonts) -> None:
        resolution = StyleResolver().resolve("Hi", 12, "Helvetica Bold", A4_DATE_BOX, fonts)
        assert all(a.property != "font_family" for a in resolution.adjustments)


class TestRecommendedFontSize:
    def test_presets(self) -> None:
        assert recommended_font_size(ElementKind.NAME) == 14
        assert recommended_font_size(ElementKind.DATE) == 10
        assert recommended_font_size(ElementKind.TEXT) == 12

    def test_resolve_for_kind(self, fonts) -> None:
        style = StyleResolver().resolve_for_kind(ElementKind.NAME, "Jane", A4_DATE_BOX, fonts)
        assert style.font_size == 14
