"""
Exception taxonomy for the form checker workflow.

``AcquisitionCancelled`` and ``GeometryNotReady`` are control-flow signals,
not user-facing failures. Every ``PipelineError`` collapses into one
user-visible message at the workflow boundary; the subclass and its cause
are kept for diagnostics.
"""

from typing import Optional


class FormCheckerError(Exception):
    """Base class for all form checker errors."""


# ---------------------------------------------------------------------------
# Acquisition
# ---------------------------------------------------------------------------

class AcquisitionCancelled(FormCheckerError):
    """The user dismissed the picker or camera without choosing a video."""


class PermissionDenied(FormCheckerError):
    """Device capture permission was refused. Library picks still work."""


# ---------------------------------------------------------------------------
# Annotation
# ---------------------------------------------------------------------------

class GeometryNotReady(FormCheckerError):
    """Container layout or media size is not known yet."""


class EmptyRegionError(FormCheckerError, ValueError):
    """The drawn region has no area inside the media frame."""


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------

class InvalidTransitionError(FormCheckerError):
    """A stage change not listed in the transition table was requested."""

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move from {current.name} to {requested.name}."
        )


class WorkflowBusyError(FormCheckerError):
    """A submission is already in flight for this session."""


# ---------------------------------------------------------------------------
# Analysis pipeline
# ---------------------------------------------------------------------------

class PipelineError(FormCheckerError):
    """A step of the analysis submission failed.

    Attributes:
        step: Pipeline step that failed (``upload``, ``submit``, ...).
        status_code: HTTP status returned by the analyzer, if any.
    """

    step: str = "pipeline"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"[{self.step}] {base} (HTTP {self.status_code})"
        return f"[{self.step}] {base}"


class UploadError(PipelineError):
    step = "upload"


class SubmissionError(PipelineError):
    step = "submit"


class MalformedResponseError(PipelineError):
    step = "parse"


class DownloadError(PipelineError):
    step = "download"


class CacheWriteError(PipelineError):
    step = "persist"
