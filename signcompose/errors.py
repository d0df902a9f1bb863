"""Composition error types.

Every per-element failure raised by the engine derives from
``CompositionError`` and carries an ``ErrorCode`` so batch loops can record
a machine-readable reason on the element's result and move on.
"""

from enum import Enum


class ErrorCode(str, Enum):
    INVALID_PAGE = "invalid_page"
    NO_FONT_AVAILABLE = "no_font_available"
    INVALID_BOUNDS = "invalid_bounds"
    EMPTY_CONTENT = "empty_content"
    DRAW_FAILURE = "draw_failure"
    DUPLICATE_ID = "duplicate_id"
    CANCELLED = "cancelled"
    UNEXPECTED = "unexpected"


class CompositionError(Exception):
    """Base exception for composition failures."""

    code: ErrorCode = ErrorCode.UNEXPECTED

    def __init__(self, message: str, *, element_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.element_id = element_id

    def __str__(self) -> str:
        if self.element_id:
            return f"[{self.element_id}] {self.message}"
        return self.message


class InvalidPageError(CompositionError):
    """Raised when a page index has no geometry in the document."""

    code = ErrorCode.INVALID_PAGE


class NoFontAvailableError(CompositionError):
    """Raised when the document's font set holds no usable font."""

    code = ErrorCode.NO_FONT_AVAILABLE


class InvalidBoundsError(CompositionError):
    """Raised when a box falls outside percent space or the page edges."""

    code = ErrorCode.INVALID_BOUNDS


class EmptyContentError(CompositionError):
    """Raised when a mark would have no visible text."""

    code = ErrorCode.EMPTY_CONTENT


class DuplicateElementError(CompositionError):
    """Raised for an element whose id an earlier element already uses."""

    code = ErrorCode.DUPLICATE_ID


class DrawFailureError(CompositionError):
    """Raised when the host document rejects a draw call."""

    code = ErrorCode.DRAW_FAILURE


class CompositionCancelledError(CompositionError):
    code = ErrorCode.CANCELLED
