"""
Bar path form checker.

Acquires a barbell lift video, lets the user trim it and mark the barbell,
submits the clip to the bar path analyzer and turns the returned per-phase
offsets into feedback:

    Stage 0: Select exercise
    Stage 1: Acquire media (library pick or camera capture)
    Stage 2: Trim (time window + representative frame)
    Stage 3: Annotate (barbell region, submitted for analysis)
    Stage 4: Review (processed video + phase feedback)
"""

from .annotation import RegionSelector, SelectorState
from .feedback import generate_feedback
from .geometry import PreviewGeometry, Rectangle, to_display_space, to_source_space
from .state import AnalysisRequest, AnalysisResult, PhaseFeedback, Session, Stage, TrimSelection
from .submission import AnalysisSubmissionPipeline
from .workflow import WorkflowController

__all__ = [
    "RegionSelector",
    "SelectorState",
    "generate_feedback",
    "PreviewGeometry",
    "Rectangle",
    "to_display_space",
    "to_source_space",
    "AnalysisRequest",
    "AnalysisResult",
    "PhaseFeedback",
    "Session",
    "Stage",
    "TrimSelection",
    "AnalysisSubmissionPipeline",
    "WorkflowController",
]
