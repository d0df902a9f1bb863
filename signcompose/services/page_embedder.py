"""Page embedder — burn render instructions into document pages.

Per instruction, on its page:
  1. Validate the draw point, the element box, content and style.
  2. Overlap check against marks already placed on the page.  A colliding
     mark is moved right past the collider (plus a gap), or else down past
     it; if neither stays on the page it is drawn where it was asked for and
     a page warning is recorded.  Overlap is never an error.
  3. Draw with the fixed black ink.
  4. Record the applied rectangle so later marks on the page avoid it.

Per-page occupancy lives in a ``PageStates`` map owned by the caller for
the length of one composition run.
"""

import logging
import threading
from dataclasses import dataclass, field

from signcompose.errors import (
    CompositionError,
    DrawFailureError,
    EmptyContentError,
    ErrorCode,
    InvalidBoundsError,
    InvalidPageError,
    NoFontAvailableError,
)
from signcompose.models.document import Color, DocumentHandle
from signcompose.models.geometry import PageGeometry, Point, Rect, rects_overlap
from signcompose.services.coordinates import page_geometry_for
from signcompose.services.element_renderer import RenderInstruction, instruction_issues

logger = logging.getLogger("signcompose.page_embedder")

# Ink for every mark (RGB).
INK_COLOR: Color = (0, 0, 0)


@dataclass(frozen=True)
class EmbedConfig:
    enable_overlap_protection: bool = True
    overlap_gap: float = 5.0


# ─── Occupancy bookkeeping ──────────────────────────────────────────────────

@dataclass(frozen=True)
class OccupiedArea:
    """A placed mark's rectangle in page space."""
    x: float
    y: float
    width: float
    height: float
    element_id: str

    @property
    def rect(self) -> Rect:
        return Rect(x=self.x, y=self.y, width=self.width, height=self.height)


@dataclass
class PageEmbedState:
    page_index: int
    elements_count: int = 0
    occupied_areas: list[OccupiedArea] = field(default_factory=list)

    def record(self, element_id: str, rect: Rect) -> None:
        self.elements_count += 1
        self.occupied_areas.append(OccupiedArea(
            x=rect.x, y=rect.y, width=rect.width, height=rect.height,
            element_id=element_id,
        ))


PageStates = dict[int, PageEmbedState]


def get_or_create_page_state(page_states: PageStates, page_index: int) -> PageEmbedState:
    state = page_states.get(page_index)
    if state is None:
        state = PageEmbedState(page_index=page_index)
        page_states[page_index] = state
    return state


def reset_page_states(page_states: PageStates) -> None:
    """Forget every placement, e.g. before a retry pass."""
    page_states.clear()


def page_state_stats(page_states: PageStates) -> dict[int, dict[str, int]]:
    """Per-page counts for diagnostics."""
    return {
        index: {
            "elements_count": state.elements_count,
            "occupied_areas": len(state.occupied_areas),
        }
        for index, state in sorted(page_states.items())
    }


# ─── Results ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class EmbedAdjustment:
    type: str
    reason: str
    original_value: object
    adjusted_value: object


@dataclass
class EmbedOperationResult:
    """Outcome of embedding one instruction."""
    success: bool
    element_id: str
    page_index: int
    applied_position: Point | None = None
    text_width: float = 0.0
    text_height: float = 0.0
    adjustments: list[EmbedAdjustment] = field(default_factory=list)
    error: str | None = None
    error_code: ErrorCode | None = None

    @classmethod
    def failed(
        cls,
        instruction: RenderInstruction,
        error: str,
        code: ErrorCode,
        adjustments: list[EmbedAdjustment] | None = None,
    ) -> "EmbedOperationResult":
        return cls(
            success=False,
            element_id=instruction.id,
            page_index=instruction.page_index,
            adjustments=adjustments or [],
            error=error,
            error_code=code,
        )


@dataclass
class PageEmbedResult:
    page_index: int
    operations: list[EmbedOperationResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class BatchEmbedResult:
    """Aggregate of every per-page result of one embed pass."""
    total_instructions: int = 0
    operations: list[EmbedOperationResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def successful_embeds(self) -> int:
        return sum(1 for op in self.operations if op.success)

    @property
    def failed_embeds(self) -> int:
        return self.total_instructions - self.successful_embeds

    @property
    def success(self) -> bool:
        return self.successful_embeds == self.total_instructions


# ─── Embedder ───────────────────────────────────────────────────────────────

def _group_by_page(instructions: list[RenderInstruction]) -> dict[int, list[RenderInstruction]]:
    grouped: dict[int, list[RenderInstruction]] = {}
    for instruction in instructions:
        grouped.setdefault(instruction.page_index, []).append(instruction)
    return grouped


def _issue_error(instruction: RenderInstruction, issues: list[str]) -> CompositionError:
    message = f"Invalid instruction: {', '.join(issues)}"
    if not instruction.content or not instruction.content.strip():
        return EmptyContentError(message, element_id=instruction.id)
    if instruction.style.font is None:
        return NoFontAvailableError(message, element_id=instruction.id)
    return InvalidBoundsError(message, element_id=instruction.id)


class PageEmbedder:
    """Applies render instructions to the pages of an open document."""

    def __init__(self, config: EmbedConfig | None = None) -> None:
        self.config = config or EmbedConfig()

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def embed_all(
        self,
        document: DocumentHandle,
        instructions: list[RenderInstruction],
        page_states: PageStates,
        cancel_event: threading.Event | None = None,
    ) -> BatchEmbedResult:
        """Embed *instructions* page by page.

        A failure confined to one page (e.g. the page doesn't exist) fails
        that page's instructions only; every other page is still processed.
        """
        result = BatchEmbedResult(total_instructions=len(instructions))

        for page_index, page_instructions in _group_by_page(instructions).items():
            if cancel_event is not None and cancel_event.is_set():
                result.operations.extend(
                    EmbedOperationResult.failed(i, "Composition cancelled", ErrorCode.CANCELLED)
                    for i in page_instructions
                )
                continue

            try:
                page_result = self.embed_to_page(document, page_index, page_instructions, page_states)
            except CompositionError as exc:
                message = f"Failed to process page {page_index}: {exc.message}"
                logger.warning(message)
                result.errors.append(message)
                result.operations.extend(
                    EmbedOperationResult.failed(i, message, exc.code) for i in page_instructions
                )
                continue

            result.operations.extend(page_result.operations)
            result.warnings.extend(page_result.warnings)

        logger.info(
            "Embedded %d/%d instructions", result.successful_embeds, result.total_instructions,
        )
        return result

    def embed_to_page(
        self,
        document: DocumentHandle,
        page_index: int,
        instructions: list[RenderInstruction],
        page_states: PageStates,
    ) -> PageEmbedResult:
        """Embed instructions that all target *page_index*.

        Raises:
            InvalidPageError: if the page does not exist.
        """
        geometry = page_geometry_for(document, page_index)
        state = get_or_create_page_state(page_states, page_index)
        result = PageEmbedResult(page_index=page_index)

        if self.config.enable_overlap_protection:
            pairs = self._overlapping_pairs(instructions)
            if pairs:
                result.warnings.append(
                    f"Page {page_index} has overlapping elements: {', '.join(pairs)}"
                )

        for instruction in instructions:
            operation = self.embed_instruction(document, geometry, instruction, state, result.warnings)
            result.operations.append(operation)

        return result

    def embed_instruction(
        self,
        document: DocumentHandle,
        geometry: PageGeometry,
        instruction: RenderInstruction,
        state: PageEmbedState,
        page_warnings: list[str],
    ) -> EmbedOperationResult:
        """Validate, de-overlap, draw and record a single instruction."""
        if instruction.page_index != geometry.index:
            error = InvalidPageError(
                f"Instruction targets page {instruction.page_index}, not {geometry.index}",
                element_id=instruction.id,
            )
            return EmbedOperationResult.failed(instruction, str(error), error.code)

        issues = instruction_issues(instruction, geometry)
        if issues:
            error = _issue_error(instruction, issues)
            return EmbedOperationResult.failed(instruction, error.message, error.code)

        adjustments: list[EmbedAdjustment] = []
        rect = instruction.text_rect
        if self.config.enable_overlap_protection:
            placed = self._avoid_overlap(rect, state, geometry)
            if placed is None:
                warning = (
                    f"Page {geometry.index}: element {instruction.id} overlaps an existing mark "
                    "and could not be relocated; embedded at its original position"
                )
                logger.warning(warning)
                page_warnings.append(warning)
            elif placed != rect:
                adjustments.append(EmbedAdjustment(
                    type="position",
                    reason="Adjusted to avoid overlap",
                    original_value=Point(rect.x, rect.y),
                    adjusted_value=Point(placed.x, placed.y),
                ))
                rect = placed

        try:
            document.draw_text(
                geometry.index,
                instruction.content,
                rect.x,
                rect.y,
                instruction.style.font,
                instruction.style.font_size,
                INK_COLOR,
            )
        except DrawFailureError as exc:
            return EmbedOperationResult.failed(
                instruction, f"Failed to embed element: {exc.message}", exc.code, adjustments,
            )
        except Exception as exc:
            logger.exception("Draw call failed for element %s", instruction.id)
            return EmbedOperationResult.failed(
                instruction, f"Failed to embed element: {exc}", ErrorCode.DRAW_FAILURE, adjustments,
            )

        state.record(instruction.id, rect)
        logger.debug(
            "Embedded %s on page %d at (%.2f, %.2f) size %g",
            instruction.id, geometry.index, rect.x, rect.y, instruction.style.font_size,
        )
        return EmbedOperationResult(
            success=True,
            element_id=instruction.id,
            page_index=geometry.index,
            applied_position=Point(rect.x, rect.y),
            text_width=rect.width,
            text_height=rect.height,
            adjustments=adjustments,
        )

    def page_state_stats(self, page_states: PageStates) -> dict[int, dict[str, int]]:
        return page_state_stats(page_states)

    # ------------------------------------------------------------------
    # Overlap handling
    # ------------------------------------------------------------------

    def _avoid_overlap(
        self,
        rect: Rect,
        state: PageEmbedState,
        geometry: PageGeometry,
    ) -> Rect | None:
        """Return a collision-free rectangle, or None if none was found.

        Greedy: for the first collider, try right of it, else below it, and
        repeat against the remaining marks.  Bounded by the number of marks.
        """
        gap = self.config.overlap_gap
        candidate = rect

        for _ in range(len(state.occupied_areas) + 1):
            collider = next(
                (area.rect for area in state.occupied_areas if rects_overlap(candidate, area.rect)),
                None,
            )
            if collider is None:
                return candidate

            right = candidate.moved_to(collider.right + gap, candidate.y)
            if right.right <= geometry.width:
                candidate = right
                continue

            down = candidate.moved_to(candidate.x, collider.bottom - candidate.height - gap)
            if down.bottom >= 0:
                candidate = down
                continue

            return None

        return None

    @staticmethod
    def _overlapping_pairs(instructions: list[RenderInstruction]) -> list[str]:
        pairs: list[str] = []
        for i in range(len(instructions)):
            for j in range(i + 1, len(instructions)):
                a, b = instructions[i], instructions[j]
                if rects_overlap(a.text_rect, b.text_rect):
                    pairs.append(f"{a.id} & {b.id}")
        return pairs
