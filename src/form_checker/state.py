"""
Data model for one form-check attempt.

``Session`` is the only mutable object and belongs to the workflow
controller. Everything else here is immutable and passed between the
components by value.
"""

from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .config import PHASE_SIGNAL_LENGTH
from .errors import InvalidTransitionError
from .geometry import Rectangle


# ============================================================================
# Stages
# ============================================================================

class Stage(IntEnum):
    SELECT_EXERCISE = 0
    ACQUIRE_MEDIA = 1
    TRIM = 2
    ANNOTATE = 3
    REVIEW = 4


# Forward edges only. Reset to SELECT_EXERCISE is handled separately.
TRANSITIONS: dict[Stage, frozenset[Stage]] = {
    Stage.SELECT_EXERCISE: frozenset({Stage.ACQUIRE_MEDIA}),
    Stage.ACQUIRE_MEDIA: frozenset({Stage.TRIM}),
    Stage.TRIM: frozenset({Stage.ANNOTATE}),
    Stage.ANNOTATE: frozenset({Stage.REVIEW}),
    Stage.REVIEW: frozenset(),
}


def validate_transition(current: Stage, requested: Stage) -> None:
    """Raise ``InvalidTransitionError`` unless the edge is in ``TRANSITIONS``."""
    if requested not in TRANSITIONS[current]:
        raise InvalidTransitionError(current, requested)


# ============================================================================
# Collaborator outputs
# ============================================================================

class TrimSelection(BaseModel):
    """Time window chosen by the trim step plus its still frame."""

    model_config = ConfigDict(frozen=True)

    start_time: float = Field(ge=0.0, description="Seconds from start of video")
    end_time: float = Field(description="Seconds from start of video")
    video_duration: float = Field(gt=0.0)
    frame_ref: str = Field(description="Still frame at start_time")

    @model_validator(mode="after")
    def _check_bounds(self) -> "TrimSelection":
        if not self.start_time < self.end_time <= self.video_duration:
            raise ValueError(
                f"Trim window must satisfy 0 <= start < end <= duration, got "
                f"start={self.start_time} end={self.end_time} "
                f"duration={self.video_duration}"
            )
        return self


class PhaseFeedback(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: str
    message: str


# ============================================================================
# Analyzer request / result
# ============================================================================

class AnalysisRequest(BaseModel):
    """Everything one submission sends to the analyzer."""

    model_config = ConfigDict(frozen=True)

    exercise_kind: str
    start_time: float
    end_time: float
    region_of_interest: Rectangle = Field(description="Source-media pixel space")
    source_media_ref: str

    def to_payload(self, video_url: str) -> dict:
        """JSON body for the metadata call, given the uploaded video locator."""
        return {
            "exercise": self.exercise_kind,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "barbell_area": self.region_of_interest.to_payload(),
            "video_url": video_url,
        }


class AnalysisResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    processed_media_ref: str
    phase_signal: tuple[float, ...] = Field(
        min_length=PHASE_SIGNAL_LENGTH,
        max_length=PHASE_SIGNAL_LENGTH,
        description="Average horizontal bar offset per phase",
    )


# ============================================================================
# Session
# ============================================================================

class Session(BaseModel):
    """Transient state of one analysis attempt. Never persisted."""

    model_config = ConfigDict(validate_assignment=True)

    stage: Stage = Stage.SELECT_EXERCISE
    exercise_kind: Optional[str] = None
    source_media_ref: Optional[str] = None
    trim: Optional[TrimSelection] = None
    region_of_interest: Optional[Rectangle] = None
    processed_media_ref: Optional[str] = None
    phase_signal: Optional[tuple[float, ...]] = None
    phase_feedback: list[PhaseFeedback] = Field(default_factory=list)
    is_busy: bool = False

    # User-facing messages
    error_message: Optional[str] = None
    advisory: Optional[str] = None
