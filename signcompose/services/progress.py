"""Progress side channel for composition runs.

Listeners observe a run; they never steer it.  A listener that raises is
logged and ignored so a broken UI callback cannot fail a composition.
"""

import logging

from signcompose.models.enums import CompositionStage

logger = logging.getLogger("signcompose.progress")


class ProgressListener:
    """Base listener.  Every hook is a no-op; override what you need."""

    def on_stage_start(self, stage: CompositionStage) -> None:
        pass

    def on_stage_progress(self, stage: CompositionStage, progress: float) -> None:
        """*progress* is a fraction in ``[0, 1]``."""

    def on_stage_complete(self, stage: CompositionStage) -> None:
        pass

    def on_element_processed(self, element_id: str, success: bool) -> None:
        pass


class ProgressNotifier:
    """Fans events out to one listener, shielding the run from its errors."""

    def __init__(self, listener: ProgressListener | None = None) -> None:
        self.listener = listener or ProgressListener()

    def stage_start(self, stage: CompositionStage) -> None:
        self._dispatch("on_stage_start", stage)

    def stage_progress(self, stage: CompositionStage, done: int, total: int) -> None:
        progress = 1.0 if total <= 0 else min(1.0, done / total)
        self._dispatch("on_stage_progress", stage, progress)

    def stage_complete(self, stage: CompositionStage) -> None:
        self._dispatch("on_stage_complete", stage)

    def element_processed(self, element_id: str, success: bool) -> None:
        self._dispatch("on_element_processed", element_id, success)

    def _dispatch(self, hook: str, *args: object) -> None:
        try:
            getattr(self.listener, hook)(*args)
        except Exception:
            logger.exception("Progress listener failed in %s", hook)
