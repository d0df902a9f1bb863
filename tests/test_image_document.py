"""Tests for scanned-page documents drawn with OpenCV and Pillow."""

from pathlib import Path

import cv2
import numpy as np
import pytest

from signcompose.documents.fonts import HersheyFont, StandardPdfFont, TrueTypeFont, find_truetype_font
from signcompose.documents.image_document import ImageDocument
from signcompose.errors import DrawFailureError, InvalidPageError
from signcompose.services.composer import SignatureComposer
from conftest import make_element


def _white_page(width: int = 600, height: int = 400) -> np.ndarray:
    return np.ones((height, width, 3), dtype=np.uint8) * 255


class TestImageDocument:
    def test_geometry_is_in_pixels(self) -> None:
        document = ImageDocument([_white_page(), _white_page(300, 200)], HersheyFont())
        assert document.page_count() == 2
        geometry = document.page_geometry(1)
        assert (geometry.width, geometry.height) == (300, 200)

    def test_missing_page(self) -> None:
        document = ImageDocument([_white_page()], HersheyFont())
        with pytest.raises(InvalidPageError):
            document.page_geometry(1)

    def test_requires_a_page(self) -> None:
        with pytest.raises(ValueError):
            ImageDocument([], HersheyFont())

    def test_pdf_font_is_rejected(self) -> None:
        document = ImageDocument([_white_page()], HersheyFont())
        with pytest.raises(DrawFailureError):
            document.draw_text(0, "Signed", 10, 10, StandardPdfFont("Helvetica"), 12, (0, 0, 0))

    def test_from_paths_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            ImageDocument.from_paths([tmp_path / "missing.png"], HersheyFont())


class TestComposeIntoImage:
    def test_hershey_text_lands_in_the_box(self) -> None:
        page = _white_page()
        document = ImageDocument([page], HersheyFont())
        # Box covers image rows 40-120 and columns 60-360
        result = SignatureComposer().compose(document, [make_element("a", 10, 10, 50, 20, content="Signed")])

        assert result.success
        assert (page[30:130, 50:370] < 128).any()
        assert not (page[200:, :] < 128).any()
        assert document.modified_at is not None

    def test_truetype_text(self) -> None:
        font_path = find_truetype_font()
        if font_path is None:
            pytest.skip("No TrueType font installed")
        page = _white_page()
        document = ImageDocument([page], TrueTypeFont(font_path))
        result = SignatureComposer().compose(document, [make_element("a", 10, 10, 50, 20, content="Signed")])

        assert result.success
        assert (page[30:130, 50:370] < 128).any()

    def test_save_and_reload(self, tmp_path: Path) -> None:
        document = ImageDocument([_white_page(), _white_page()], HersheyFont())
        SignatureComposer().compose(document, [make_element("a", content="Signed", page_index=1)])
        paths = document.save(tmp_path)

        assert [p.name for p in paths] == ["page_1.png", "page_2.png"]
        reloaded = ImageDocument.from_paths(paths, HersheyFont())
        assert reloaded.page_count() == 2
        assert (cv2.imread(str(paths[1])) < 128).any()
        assert not (cv2.imread(str(paths[0])) < 128).any()
