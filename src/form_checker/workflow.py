"""
Form-check workflow controller.

Sequences the stages of one analysis attempt and owns the ``Session``:

    SELECT_EXERCISE -> ACQUIRE_MEDIA -> TRIM -> ANNOTATE -> REVIEW

Only the forward edges in ``state.TRANSITIONS`` are allowed, plus
:meth:`WorkflowController.reset` from anywhere. Collaborators never touch
the session; they return values and the controller applies them.

Every reset bumps a generation counter. A submission captures the counter
before its first await and only applies its outcome if the counter is
unchanged afterwards, so a result arriving after "start over" is dropped.
"""

import logging
from typing import Optional

from .acquisition import MediaAcquisition
from .config import CAMERA_PERMISSION_MESSAGE, EXERCISE_MAP, PIPELINE_FAILURE_MESSAGE
from .errors import PermissionDenied, PipelineError, WorkflowBusyError
from .feedback import generate_feedback
from .geometry import Rectangle
from .state import Session, Stage, TrimSelection, validate_transition
from .submission import AnalysisSubmissionPipeline
from .trim import TrimSelector

logger = logging.getLogger(__name__)


class WorkflowController:
    """Finite state machine for the form-check screen.

    Args:
        pipeline: Submission pipeline; one instance may be shared.
    """

    def __init__(self, pipeline: Optional[AnalysisSubmissionPipeline] = None):
        self.pipeline = pipeline or AnalysisSubmissionPipeline()
        self.session = Session()
        self._generation = 0

    @property
    def stage(self) -> Stage:
        return self.session.stage

    @property
    def generation(self) -> int:
        return self._generation

    def _advance(self, target: Stage) -> None:
        validate_transition(self.session.stage, target)
        logger.info("Stage %s -> %s", self.session.stage.name, target.name)
        self.session.stage = target

    # ------------------------------------------------------------------
    # 0 -> 1
    # ------------------------------------------------------------------

    def choose_exercise(self, exercise_kind: str) -> None:
        if exercise_kind not in EXERCISE_MAP:
            raise ValueError(
                f"Unknown exercise '{exercise_kind}'. "
                f"Available: {', '.join(EXERCISE_MAP)}"
            )
        validate_transition(self.session.stage, Stage.ACQUIRE_MEDIA)
        self.session.exercise_kind = exercise_kind
        self._advance(Stage.ACQUIRE_MEDIA)

    # ------------------------------------------------------------------
    # 1 -> 2
    # ------------------------------------------------------------------

    def accept_media(self, media_ref: Optional[str]) -> bool:
        """Apply an acquisition outcome. ``None`` means the user cancelled."""
        validate_transition(self.session.stage, Stage.TRIM)
        if media_ref is None:
            logger.info("No video chosen; staying at %s.", self.session.stage.name)
            return False
        self.session.source_media_ref = media_ref
        self.session.advisory = None
        self._advance(Stage.TRIM)
        return True

    async def acquire_media(self, acquisition: MediaAcquisition) -> bool:
        """Run an acquisition and apply its result.

        A refused camera permission becomes an advisory on the session and
        leaves the workflow waiting for another acquisition.
        """
        validate_transition(self.session.stage, Stage.TRIM)
        generation = self._generation
        try:
            media_ref = await acquisition.acquire()
        except PermissionDenied as exc:
            if generation == self._generation:
                logger.info("Capture permission denied: %s", exc)
                self.session.advisory = CAMERA_PERMISSION_MESSAGE
            return False
        if generation != self._generation:
            logger.info("Discarding acquisition result from before reset.")
            return False
        return self.accept_media(media_ref)

    # ------------------------------------------------------------------
    # 2 -> 3
    # ------------------------------------------------------------------

    def confirm_trim(self, selection: TrimSelection) -> None:
        validate_transition(self.session.stage, Stage.ANNOTATE)
        self.session.trim = selection
        self._advance(Stage.ANNOTATE)

    async def select_trim(self, selector: TrimSelector) -> bool:
        validate_transition(self.session.stage, Stage.ANNOTATE)
        generation = self._generation
        selection = await selector.select(self.session.source_media_ref)
        if generation != self._generation:
            logger.info("Discarding trim selection from before reset.")
            return False
        if selection is None:
            return False
        self.confirm_trim(selection)
        return True

    # ------------------------------------------------------------------
    # 3 -> 4
    # ------------------------------------------------------------------

    async def confirm_region(self, region: Rectangle) -> bool:
        """Submit the annotated clip and move to review on success.

        The region and trim window stay on the session after a failure so
        the user can resubmit without redoing them.

        Returns:
            ``True`` if the session reached ``REVIEW``.

        Raises:
            WorkflowBusyError: A submission is already in flight.
            InvalidTransitionError: Not in the ``ANNOTATE`` stage.
        """
        session = self.session
        if session.is_busy:
            raise WorkflowBusyError("Analysis already in progress.")
        validate_transition(session.stage, Stage.REVIEW)

        session.region_of_interest = region
        session.error_message = None
        session.is_busy = True
        generation = self._generation

        try:
            result = await self.pipeline.submit(
                source_media_ref=session.source_media_ref,
                trim=session.trim,
                region=region,
                exercise_kind=session.exercise_kind,
            )
        except PipelineError as exc:
            session.is_busy = False
            if generation != self._generation:
                logger.info("Ignoring failure of a submission abandoned by reset: %s", exc)
                return False
            logger.warning("Analysis failed: %s", exc, exc_info=exc.__cause__ is not None)
            session.error_message = PIPELINE_FAILURE_MESSAGE
            return False
        except Exception as exc:
            session.is_busy = False
            if generation != self._generation:
                logger.info("Ignoring error of a submission abandoned by reset: %r", exc)
                return False
            raise
        except BaseException:
            session.is_busy = False
            raise

        if generation != self._generation:
            session.is_busy = False
            logger.info("Discarding result of a submission abandoned by reset.")
            return False

        feedback = generate_feedback(result.phase_signal)
        session.processed_media_ref = result.processed_media_ref
        session.phase_signal = result.phase_signal
        session.phase_feedback = feedback
        session.is_busy = False
        self._advance(Stage.REVIEW)
        return True

    # ------------------------------------------------------------------
    # any -> 0
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Start over: discard the session and orphan any in-flight work."""
        if self.session.is_busy:
            logger.info("Reset during submission; its outcome will be discarded.")
        self._generation += 1
        self.session = Session()
        logger.info("Workflow reset (generation %d).", self._generation)
