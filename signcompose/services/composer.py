"""Signature composer — orchestrates Validate → Render → Embed → Finalize.

Stages:
  1. Validate (optional): report element problems.  With strict validation
     any issue aborts the run before anything is rendered.
  2. Render: elements become page-space instructions, grouped by page.
     Rendering never touches the document.
  3. Embed: instructions are drawn page by page.  Failed instructions are
     retried against a reset occupancy map until everything lands or the
     attempt budget is spent.
  4. Finalize: registered hooks run once something was drawn (by default,
     stamping the document's modification date).

Per-element failures are recorded on the result and never stop siblings.
"""

import logging
import threading
import time
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from signcompose.config import Settings
from signcompose.errors import CompositionError, DuplicateElementError
from signcompose.models.document import DocumentHandle, FontHandle
from signcompose.models.enums import CompositionStage, ElementKind
from signcompose.schemas.composition import CompositionConfig
from signcompose.schemas.element import AnnotationElement
from signcompose.services.coordinates import page_geometry_for, validate_percent_box
from signcompose.services.element_renderer import ElementRenderer, RenderInstruction, RenderResult
from signcompose.services.page_embedder import (
    EmbedOperationResult,
    PageEmbedder,
    PageStates,
    page_state_stats,
    reset_page_states,
)
from signcompose.services.progress import ProgressListener, ProgressNotifier
from signcompose.services.style_resolver import StyleResolver

logger = logging.getLogger("signcompose.composer")

Finalizer = Callable[[DocumentHandle], None]

# Processing order of compose_by_kind.
KIND_ORDER: tuple[ElementKind, ...] = (ElementKind.NAME, ElementKind.DATE, ElementKind.TEXT)


def touch_modification_date(document: DocumentHandle) -> None:
    """Default finalizer: stamp the document as modified now."""
    document.mark_modified(datetime.now(timezone.utc))


# ─── Results ────────────────────────────────────────────────────────────────

@dataclass
class CompositionMetadata:
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    document_page_count: int = 0
    elements_per_page: dict[int, int] = field(default_factory=dict)
    # Retries performed after the first embed pass
    retry_attempts: int = 0
    page_occupancy: dict[int, dict[str, int]] = field(default_factory=dict)


@dataclass
class CompositionResult:
    """Aggregate outcome of one composition run."""
    success: bool = False
    processed_elements: int = 0
    successful_embeds: int = 0
    failed_embeds: int = 0
    operations: list[EmbedOperationResult] = field(default_factory=list)
    instructions: list[RenderInstruction] = field(default_factory=list)
    validation_issues: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    processing_time: float = 0.0
    metadata: CompositionMetadata = field(default_factory=CompositionMetadata)

    def operation_for(self, element_id: str) -> EmbedOperationResult | None:
        return next((op for op in self.operations if op.element_id == element_id), None)


@dataclass
class SingleCompositionResult:
    success: bool
    operation: EmbedOperationResult
    instruction: RenderInstruction | None = None
    warnings: list[str] = field(default_factory=list)


def _render_failure(element: AnnotationElement, exc: CompositionError) -> EmbedOperationResult:
    return EmbedOperationResult(
        success=False,
        element_id=element.id,
        page_index=element.page_index,
        error=exc.message,
        error_code=exc.code,
    )


def _split_duplicates(
    elements: list[AnnotationElement],
) -> tuple[list[AnnotationElement], dict[int, EmbedOperationResult]]:
    """Return ``(unique, duplicates)``: later repeats of an id fail by index."""
    seen: set[str] = set()
    unique: list[AnnotationElement] = []
    duplicates: dict[int, EmbedOperationResult] = {}
    for index, element in enumerate(elements):
        if element.id in seen:
            exc = DuplicateElementError(
                f"Element id {element.id} is already used by an earlier element",
                element_id=element.id,
            )
            duplicates[index] = _render_failure(element, exc)
        else:
            seen.add(element.id)
            unique.append(element)
    return unique, duplicates


# ─── Composer ───────────────────────────────────────────────────────────────

class SignatureComposer:
    """Composes annotation elements into an open document."""

    def __init__(
        self,
        config: CompositionConfig | None = None,
        listener: ProgressListener | None = None,
        finalizers: list[Finalizer] | None = None,
    ) -> None:
        self.config = config or CompositionConfig()
        self.progress = ProgressNotifier(listener)
        self.finalizers: list[Finalizer] = (
            list(finalizers) if finalizers is not None else [touch_modification_date]
        )

        style_resolver = StyleResolver(self.config.style_config())
        render_config = self.config.render_config()
        self.renderer = ElementRenderer(style_resolver, render_config)
        self.kind_renderers: dict[ElementKind, ElementRenderer] = {
            kind: ElementRenderer.for_kind(kind, style_resolver, render_config)
            for kind in KIND_ORDER
        }
        self.embedder = PageEmbedder(self.config.embed_config())

    def add_finalizer(self, finalizer: Finalizer) -> None:
        self.finalizers.append(finalizer)

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def compose(
        self,
        document: DocumentHandle,
        elements: list[AnnotationElement],
        cancel_event: threading.Event | None = None,
    ) -> CompositionResult:
        """Run the full pipeline over *elements*, grouped by page."""
        return self._run(document, elements, cancel_event, by_kind=False)

    def compose_by_kind(
        self,
        document: DocumentHandle,
        elements: list[AnnotationElement],
        cancel_event: threading.Event | None = None,
    ) -> CompositionResult:
        """Run the pipeline processing names, then dates, then free text.

        Each kind uses its own renderer preset.  All kinds share one
        occupancy map, so later kinds avoid marks placed by earlier ones.
        """
        ordered = [e for kind in KIND_ORDER for e in elements if e.kind == kind]
        return self._run(document, ordered, cancel_event, by_kind=True)

    def compose_single(
        self,
        document: DocumentHandle,
        element: AnnotationElement,
        page_states: PageStates | None = None,
    ) -> SingleCompositionResult:
        """Render and embed one element, skipping validation and retry.

        Pass *page_states* to make consecutive calls avoid each other's marks.
        """
        states: PageStates = page_states if page_states is not None else {}
        try:
            geometry = page_geometry_for(document, element.page_index)
            instruction = self._renderer_for(element, by_kind=False).render(
                element, document.embedded_fonts(), geometry,
            )
            page_result = self.embedder.embed_to_page(
                document, element.page_index, [instruction], states,
            )
        except CompositionError as exc:
            logger.warning("Failed to compose element %s: %s", element.id, exc.message)
            return SingleCompositionResult(success=False, operation=_render_failure(element, exc))

        operation = page_result.operations[0]
        warnings = list(instruction.warnings) + page_result.warnings
        if operation.success:
            self._finalize(document, warnings)
        return SingleCompositionResult(
            success=operation.success,
            operation=operation,
            instruction=instruction,
            warnings=warnings,
        )

    def preview(self, document: DocumentHandle, elements: list[AnnotationElement]) -> RenderResult:
        """Render without drawing, to inspect placement and sizing."""
        return self.renderer.render_many(elements, document.embedded_fonts(), document)

    def validate(self, document: DocumentHandle, elements: list[AnnotationElement]) -> list[str]:
        """List problems with *elements* without rendering anything."""
        issues: list[str] = []
        page_count = document.page_count()
        counts = Counter(e.id for e in elements)
        for element_id, count in counts.items():
            if count > 1:
                issues.append(f"Duplicate element id {element_id} ({count} elements)")

        for element in elements:
            if not 0 <= element.page_index < page_count:
                issues.append(
                    f"{element.id}: page index {element.page_index} is outside the document "
                    f"(pages: {page_count})"
                )
            issues.extend(f"{element.id}: {issue}" for issue in validate_percent_box(element.position))
            if not element.content.strip():
                issues.append(f"{element.id}: content is empty")
        return issues

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _run(
        self,
        document: DocumentHandle,
        elements: list[AnnotationElement],
        cancel_event: threading.Event | None,
        by_kind: bool,
    ) -> CompositionResult:
        started = time.perf_counter()
        result = CompositionResult(processed_elements=len(elements))
        logger.info("Composing %d elements", len(elements))

        try:
            self._run_stages(document, elements, result, cancel_event, by_kind)
        except Exception as exc:
            logger.exception("Composition failed unexpectedly")
            self._handle_unexpected(exc, result)

        result.processing_time = time.perf_counter() - started
        logger.info(
            "Composition finished: %d/%d embedded in %.3fs",
            result.successful_embeds, result.processed_elements, result.processing_time,
        )
        return result

    def _run_stages(
        self,
        document: DocumentHandle,
        elements: list[AnnotationElement],
        result: CompositionResult,
        cancel_event: threading.Event | None,
        by_kind: bool,
    ) -> None:
        result.metadata.document_page_count = document.page_count()
        result.metadata.elements_per_page = dict(sorted(Counter(e.page_index for e in elements).items()))

        # Stage 1: Validate
        if self.config.enable_validation:
            self.progress.stage_start(CompositionStage.VALIDATION)
            result.validation_issues = self.validate(document, elements)
            self.progress.stage_complete(CompositionStage.VALIDATION)
            if result.validation_issues:
                logger.warning("Validation found %d issue(s)", len(result.validation_issues))
                if self.config.strict_validation:
                    result.errors.append(
                        f"Validation failed with {len(result.validation_issues)} issue(s)"
                    )
                    result.failed_embeds = len(elements)
                    result.success = False
                    return

        # Results are keyed by id, so only the first element per id is composed
        unique, duplicates = _split_duplicates(elements)

        # Stage 2: Render
        self.progress.stage_start(CompositionStage.RENDERING)
        failures = self._render_stage(document, unique, result, cancel_event, by_kind)
        self.progress.stage_complete(CompositionStage.RENDERING)

        # Stage 3: Embed
        self.progress.stage_start(CompositionStage.EMBEDDING)
        page_states: PageStates = {}
        operations = self._embed_stage(document, result, page_states, cancel_event)
        self.progress.stage_complete(CompositionStage.EMBEDDING)

        # Render failures and final embed outcomes, in element order
        by_id = {**operations, **failures}
        result.operations = [
            duplicates[index] if index in duplicates else by_id[e.id]
            for index, e in enumerate(elements)
            if index in duplicates or e.id in by_id
        ]
        for op in result.operations:
            self.progress.element_processed(op.element_id, op.success)
            if not op.success:
                result.errors.append(f"{op.element_id}: {op.error}")

        result.successful_embeds = sum(1 for op in result.operations if op.success)
        result.failed_embeds = result.processed_elements - result.successful_embeds
        result.metadata.page_occupancy = page_state_stats(page_states)

        # Stage 4: Finalize
        if result.successful_embeds:
            self.progress.stage_start(CompositionStage.FINALIZATION)
            self._finalize(document, result.errors)
            self.progress.stage_complete(CompositionStage.FINALIZATION)

        result.success = result.failed_embeds == 0 and not result.errors

    def _render_stage(
        self,
        document: DocumentHandle,
        elements: list[AnnotationElement],
        result: CompositionResult,
        cancel_event: threading.Event | None,
        by_kind: bool,
    ) -> dict[str, EmbedOperationResult]:
        fonts: dict[str, FontHandle] = document.embedded_fonts()
        groups: dict[object, list[AnnotationElement]] = {}
        for element in elements:
            key = element.kind if by_kind else element.page_index
            groups.setdefault(key, []).append(element)

        failures: dict[str, EmbedOperationResult] = {}
        done = 0
        for group in groups.values():
            renderer = self._renderer_for(group[0], by_kind)
            rendered = renderer.render_many(group, fonts, document, cancel_event)
            result.instructions.extend(rendered.instructions)
            result.warnings.extend(rendered.warnings)
            for element in group:
                exc = rendered.failures.get(element.id)
                if exc is not None:
                    failures[element.id] = _render_failure(element, exc)
            done += len(group)
            self.progress.stage_progress(CompositionStage.RENDERING, done, len(elements))

        logger.info("Rendered %d/%d elements", len(result.instructions), len(elements))
        return failures

    def _embed_stage(
        self,
        document: DocumentHandle,
        result: CompositionResult,
        page_states: PageStates,
        cancel_event: threading.Event | None,
    ) -> dict[str, EmbedOperationResult]:
        max_attempts = self.config.max_retry_attempts if self.config.enable_retry else 1
        instructions = list(result.instructions)
        operations: dict[str, EmbedOperationResult] = {}
        attempt = 0

        while instructions and attempt < max_attempts:
            if attempt:
                logger.info("Retry %d: re-embedding %d failed instruction(s)", attempt, len(instructions))
                reset_page_states(page_states)
            batch = self.embedder.embed_all(document, instructions, page_states, cancel_event)
            attempt += 1
            operations.update((op.element_id, op) for op in batch.operations)
            result.warnings.extend(batch.warnings)
            self.progress.stage_progress(CompositionStage.EMBEDDING, attempt, max_attempts)

            if cancel_event is not None and cancel_event.is_set():
                break
            failed_ids = {op.element_id for op in batch.operations if not op.success}
            instructions = [i for i in instructions if i.id in failed_ids]

        result.metadata.retry_attempts = max(0, attempt - 1)
        return operations

    def _finalize(self, document: DocumentHandle, errors: list[str]) -> None:
        for finalizer in self.finalizers:
            name = getattr(finalizer, "__name__", repr(finalizer))
            try:
                finalizer(document)
            except Exception as exc:
                logger.exception("Finalizer %s failed", name)
                errors.append(f"Finalizer {name} failed: {exc}")

    def _renderer_for(self, element: AnnotationElement, by_kind: bool) -> ElementRenderer:
        if by_kind:
            return self.kind_renderers[element.kind]
        return self.renderer

    @staticmethod
    def _handle_unexpected(exc: Exception, result: CompositionResult) -> None:
        result.success = False
        result.errors.append(f"Composition failed: {exc}")
        result.successful_embeds = sum(1 for op in result.operations if op.success)
        result.failed_embeds = result.processed_elements - result.successful_embeds


def compose_document(
    document: DocumentHandle,
    elements: list[AnnotationElement],
    *,
    settings: Settings | None = None,
    listener: ProgressListener | None = None,
    cancel_event: threading.Event | None = None,
) -> CompositionResult:
    """Compose *elements* into *document* with settings-derived defaults."""
    composer = SignatureComposer(CompositionConfig.from_settings(settings), listener)
    return composer.compose(document, elements, cancel_event)

