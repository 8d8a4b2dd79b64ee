"""
FastAPI entry point for the form-check screen.

Each session is one in-memory ``WorkflowController``; the endpoints are the
screen-level actions of the workflow:

    POST   /api/form-check/sessions                 create
    GET    /api/form-check/sessions/{id}            snapshot
    POST   /api/form-check/sessions/{id}/exercise   SELECT_EXERCISE -> ACQUIRE_MEDIA
    POST   /api/form-check/sessions/{id}/media      ACQUIRE_MEDIA -> TRIM
    POST   /api/form-check/sessions/{id}/trim       TRIM -> ANNOTATE
    POST   /api/form-check/sessions/{id}/region     ANNOTATE -> REVIEW (submits)
    POST   /api/form-check/sessions/{id}/reset      any -> SELECT_EXERCISE
    DELETE /api/form-check/sessions/{id}            discard

Media paths are read from the server's filesystem. Set
``FORM_CHECKER_MEDIA_ROOT`` to confine them to one directory; without it the
API must only be exposed to trusted hosts.

Run:
    cd <project_root>
    uvicorn form_checker.main:app --host 0.0.0.0 --port 8000 --reload
"""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from form_checker.acquisition import FileAcquisition, MediaSource
from form_checker.annotation import RegionSelector
from form_checker.config import (
    API_BASE,
    CACHE_DIR,
    DEFAULT_EXERCISE,
    MEDIA_ROOT,
    PIPELINE_FAILURE_MESSAGE,
)
from form_checker.errors import (
    EmptyRegionError,
    FormCheckerError,
    GeometryNotReady,
    InvalidTransitionError,
    WorkflowBusyError,
)
from form_checker.geometry import Rectangle
from form_checker.state import PhaseFeedback, Session, TrimSelection
from form_checker.submission import AnalysisSubmissionPipeline
from form_checker.trim import VideoTrimmer, read_image_size
from form_checker.workflow import WorkflowController

logger = logging.getLogger("form_checker")
logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(name)s | %(message)s")


# ============================================================================
# Pydantic request / response models
# ============================================================================

class ExerciseRequest(BaseModel):
    exercise: str = DEFAULT_EXERCISE


class MediaRequest(BaseModel):
    media_uri: Optional[str] = Field(
        default=None, description="Chosen video; null when the user cancelled"
    )
    source: MediaSource = MediaSource.LIBRARY
    camera_permission: bool = True


class TrimRequest(BaseModel):
    start_time: float
    end_time: float
    video_duration: Optional[float] = None
    frame_uri: Optional[str] = None


class Point(BaseModel):
    x: float = Field(..., allow_inf_nan=False)
    y: float = Field(..., allow_inf_nan=False)


class RegionRequest(BaseModel):
    start: Point = Field(..., description="Drag start in display space")
    end: Point = Field(..., description="Drag release in display space")
    container_width: float = Field(..., ge=0.0, allow_inf_nan=False)
    container_height: float = Field(..., ge=0.0, allow_inf_nan=False)
    media_width: Optional[float] = Field(default=None, ge=0.0, allow_inf_nan=False)
    media_height: Optional[float] = Field(default=None, ge=0.0, allow_inf_nan=False)


class SessionSnapshot(BaseModel):
    session_id: str
    stage: int
    stage_name: str
    exercise: Optional[str]
    source_media_uri: Optional[str]
    trim: Optional[TrimSelection]
    region_of_interest: Optional[Rectangle]
    processed_media_uri: Optional[str]
    phase_signal: Optional[list[float]]
    feedback: list[PhaseFeedback]
    is_busy: bool
    error_message: Optional[str]
    advisory: Optional[str]


class ErrorResponse(BaseModel):
    error_code: str
    message: str


# ============================================================================
# App lifecycle
# ============================================================================

_controllers: dict[str, WorkflowController] = {}
_pipeline: Optional[AnalysisSubmissionPipeline] = None


def get_pipeline() -> AnalysisSubmissionPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = AnalysisSubmissionPipeline()
    return _pipeline


def set_pipeline(pipeline: Optional[AnalysisSubmissionPipeline]) -> None:
    """Replace the shared pipeline (``None`` restores the default)."""
    global _pipeline
    _pipeline = pipeline


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting form checker (analyzer at %s) …", API_BASE)
    CACHE_DIR.mkdir(parents=True, exist_ok=True)
    yield
    _controllers.clear()
    logger.info("Shutting down.")


app = FastAPI(
    title="Bar Path Form Checker API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error_code": code, "message": message},
    )


def _not_found(session_id: str) -> JSONResponse:
    return _error(404, "SESSION_NOT_FOUND", f"No form-check session '{session_id}'.")


def _snapshot(session_id: str, session: Session) -> SessionSnapshot:
    return SessionSnapshot(
        session_id=session_id,
        stage=int(session.stage),
        stage_name=session.stage.name,
        exercise=session.exercise_kind,
        source_media_uri=session.source_media_ref,
        trim=session.trim,
        region_of_interest=session.region_of_interest,
        processed_media_uri=session.processed_media_ref,
        phase_signal=list(session.phase_signal) if session.phase_signal else None,
        feedback=session.phase_feedback,
        is_busy=session.is_busy,
        error_message=session.error_message,
        advisory=session.advisory,
    )


# ============================================================================
# Health-check
# ============================================================================

@app.get("/health")
async def health():
    return {"status": "ok"}


# ============================================================================
# Session endpoints
# ============================================================================

_ERRORS = {404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}


@app.post("/api/form-check/sessions", response_model=SessionSnapshot, status_code=201)
async def create_session():
    session_id = uuid.uuid4().hex
    controller = WorkflowController(get_pipeline())
    _controllers[session_id] = controller
    logger.info("Created form-check session %s", session_id)
    return _snapshot(session_id, controller.session)


@app.get("/api/form-check/sessions/{session_id}", response_model=SessionSnapshot, responses=_ERRORS)
async def get_session(session_id: str):
    controller = _controllers.get(session_id)
    if controller is None:
        return _not_found(session_id)
    return _snapshot(session_id, controller.session)


@app.delete("/api/form-check/sessions/{session_id}", status_code=204, responses=_ERRORS)
async def discard_session(session_id: str):
    controller = _controllers.pop(session_id, None)
    if controller is None:
        return _not_found(session_id)
    controller.reset()
    return None


@app.post("/api/form-check/sessions/{session_id}/reset", response_model=SessionSnapshot, responses=_ERRORS)
async def reset_session(session_id: str):
    controller = _controllers.get(session_id)
    if controller is None:
        return _not_found(session_id)
    controller.reset()
    return _snapshot(session_id, controller.session)


@app.post("/api/form-check/sessions/{session_id}/exercise", response_model=SessionSnapshot, responses=_ERRORS)
async def choose_exercise(session_id: str, request: ExerciseRequest):
    controller = _controllers.get(session_id)
    if controller is None:
        return _not_found(session_id)
    try:
        controller.choose_exercise(request.exercise)
    except InvalidTransitionError as exc:
        return _error(409, "INVALID_TRANSITION", str(exc))
    except ValueError as exc:
        return _error(400, "UNKNOWN_EXERCISE", str(exc))
    return _snapshot(session_id, controller.session)


@app.post("/api/form-check/sessions/{session_id}/media", response_model=SessionSnapshot, responses=_ERRORS)
async def choose_media(session_id: str, request: MediaRequest):
    controller = _controllers.get(session_id)
    if controller is None:
        return _not_found(session_id)
    acquisition = FileAcquisition(
        request.media_uri,
        source=request.source,
        permission_check=lambda: request.camera_permission,
        media_root=MEDIA_ROOT,
    )
    try:
        await controller.acquire_media(acquisition)
    except InvalidTransitionError as exc:
        return _error(409, "INVALID_TRANSITION", str(exc))
    except (FileNotFoundError, ValueError) as exc:
        return _error(400, "INVALID_MEDIA", str(exc))
    return _snapshot(session_id, controller.session)


@app.post("/api/form-check/sessions/{session_id}/trim", response_model=SessionSnapshot, responses=_ERRORS)
async def confirm_trim(session_id: str, request: TrimRequest):
    controller = _controllers.get(session_id)
    if controller is None:
        return _not_found(session_id)
    trimmer = VideoTrimmer(
        start_time=request.start_time,
        end_time=request.end_time,
        video_duration=request.video_duration,
        frame_ref=request.frame_uri,
    )
    try:
        await controller.select_trim(trimmer)
    except InvalidTransitionError as exc:
        return _error(409, "INVALID_TRANSITION", str(exc))
    except (ValidationError, ValueError) as exc:
        return _error(400, "INVALID_TRIM", str(exc))
    return _snapshot(session_id, controller.session)


@app.post(
    "/api/form-check/sessions/{session_id}/region",
    response_model=SessionSnapshot,
    responses={**_ERRORS, 400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def confirm_region(session_id: str, request: RegionRequest):
    """Replay the drag on a RegionSelector, confirm, and submit for analysis."""
    controller = _controllers.get(session_id)
    if controller is None:
        return _not_found(session_id)
    session = controller.session
    if session.trim is None:
        return _error(409, "INVALID_TRANSITION", f"No trimmed frame to annotate (stage {session.stage.name}).")

    if session.is_busy:
        return _error(409, "SUBMISSION_IN_PROGRESS", "Analysis already in progress.")

    confirmed: list[Rectangle] = []
    selector = RegionSelector(session.trim.frame_ref, confirmed.append)
    selector.set_container_size(request.container_width, request.container_height)
    if request.media_width is not None and request.media_height is not None:
        selector.set_media_size(request.media_width, request.media_height)
    else:
        size = read_image_size(session.trim.frame_ref)
        if size is not None:
            selector.set_media_size(*size)

    selector.touch_start(request.start.x, request.start.y)
    selector.touch_move(request.end.x, request.end.y)
    selector.touch_end(request.end.x, request.end.y)

    try:
        selector.confirm()
    except GeometryNotReady as exc:
        return _error(409, "GEOMETRY_NOT_READY", str(exc))
    except EmptyRegionError as exc:
        return _error(400, "EMPTY_REGION", str(exc))
    except FormCheckerError as exc:
        return _error(400, "NO_REGION", str(exc))

    generation = controller.generation
    try:
        reviewed = await controller.confirm_region(confirmed[0])
    except WorkflowBusyError as exc:
        return _error(409, "SUBMISSION_IN_PROGRESS", str(exc))
    except InvalidTransitionError as exc:
        return _error(409, "INVALID_TRANSITION", str(exc))

    if not reviewed and generation == controller.generation:
        return _error(502, "ANALYSIS_FAILED", controller.session.error_message or PIPELINE_FAILURE_MESSAGE)
    return _snapshot(session_id, controller.session)
