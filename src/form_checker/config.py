"""
Configuration constants for the bar path form checker.

Centralizes the analyzer API location, the fixed constants of the analyzer
contract, exercise mappings and cache paths. Environment variables are
loaded from the project ``.env`` file.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_PATH = PROJECT_ROOT / ".env"
load_dotenv(_ENV_PATH)

# Processed videos and extracted still frames. Lives in the platform temp
# area so the OS cache lifecycle applies; never a user-managed location.
CACHE_DIR = Path(tempfile.gettempdir()) / "form_checker"

# ---------------------------------------------------------------------------
# Analyzer API
# ---------------------------------------------------------------------------
API_BASE: str = os.environ.get("FORM_CHECKER_API_BASE", "https://localhost:25561").rstrip("/")

UPLOAD_VIDEO_PATH: str = "/upload/video"
UPLOAD_METADATA_PATH: str = "/upload/metadata"
UPLOAD_FIELD_NAME: str = "video"

# Bar tracking runs synchronously inside the metadata call.
REQUEST_TIMEOUT_SECONDS: float = 300.0

# ---------------------------------------------------------------------------
# Analyzer contract: must match the server, never change one side alone
# ---------------------------------------------------------------------------
PHASE_NAMES: tuple[str, ...] = (
    "Start of Descent",
    "Middle of Descent",
    "End of Descent",
    "Start of Ascent",
    "Middle of Ascent",
    "End of Ascent",
)
PHASE_SIGNAL_LENGTH: int = len(PHASE_NAMES)

# Horizontal bar offset (px) below which a phase counts as on-path.
# Positive offsets are forward of the reference path.
DEVIATION_THRESHOLD: float = 3.0

# ---------------------------------------------------------------------------
# Exercises
# ---------------------------------------------------------------------------
EXERCISE_MAP: dict[str, str] = {
    "bench": "Bench Press",
}
DEFAULT_EXERCISE: str = "bench"

# ---------------------------------------------------------------------------
# Acquisition
# ---------------------------------------------------------------------------
MAX_CAPTURE_SECONDS: int = 60
VIDEO_EXTENSIONS: frozenset[str] = frozenset({".mp4", ".mov", ".m4v", ".avi"})

# When set, the HTTP surface only accepts videos under this directory.
# Unset means the API trusts every local path it is given.
_media_root = os.environ.get("FORM_CHECKER_MEDIA_ROOT")
MEDIA_ROOT: Optional[Path] = Path(_media_root) if _media_root else None

PIPELINE_FAILURE_MESSAGE: str = "Failed to analyze the video. Please try again."
CAMERA_PERMISSION_MESSAGE: str = "Camera permission is required to record videos."
