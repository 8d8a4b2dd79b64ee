"""
Video acquisition: library pick or camera capture.

The interactive picker/camera is outside this package; what the workflow
consumes is the ``MediaAcquisition`` contract below. ``FileAcquisition``
implements it for a file the host application already has on disk.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Protocol, Union
from urllib.parse import unquote, urlparse

from .config import MAX_CAPTURE_SECONDS, VIDEO_EXTENSIONS
from .errors import PermissionDenied

logger = logging.getLogger(__name__)


class MediaSource(str, Enum):
    LIBRARY = "library"
    CAMERA = "camera"


class MediaAcquisition(Protocol):
    """Yields a local video reference, or ``None`` if the user cancelled."""

    async def acquire(self) -> Optional[str]:
        ...


def media_path(ref: str) -> Path:
    """Resolve a local media reference (plain path or ``file://`` URI)."""
    parsed = urlparse(ref)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(ref)


class FileAcquisition:
    """Acquisition of a video file already present on the device.

    Args:
        path: Chosen file, or ``None`` when the user dismissed the picker.
        source: Library pick or fresh camera capture.
        permission_check: Returns ``True`` if camera access is granted.
            Only consulted for ``MediaSource.CAMERA``.
        media_root: If set, only files under this directory are accepted.
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]],
        source: MediaSource = MediaSource.LIBRARY,
        permission_check: Optional[Callable[[], bool]] = None,
        media_root: Optional[Union[str, Path]] = None,
    ):
        self.path = path
        self.source = source
        self.permission_check = permission_check
        self.media_root = Path(media_root) if media_root is not None else None

    async def acquire(self) -> Optional[str]:
        """Return the file reference.

        Raises:
            PermissionDenied: Camera capture without camera permission.
            FileNotFoundError: The chosen path does not exist.
            ValueError: The chosen file is not a supported video type
                or lies outside ``media_root``.
        """
        if self.source == MediaSource.CAMERA and self.permission_check is not None:
            if not self.permission_check():
                raise PermissionDenied("Camera permission was not granted.")

        if self.path is None:
            logger.info("Acquisition cancelled by user (%s).", self.source.value)
            return None

        path = media_path(str(self.path))
        if self.media_root is not None and not path.resolve().is_relative_to(self.media_root.resolve()):
            raise ValueError(f"Video {path} is outside the media directory {self.media_root}")
        if not path.is_file():
            raise FileNotFoundError(f"Video not found: {path}")
        if path.suffix.lower() not in VIDEO_EXTENSIONS:
            raise ValueError(
                f"Unsupported video type '{path.suffix}'. "
                f"Use one of: {', '.join(sorted(VIDEO_EXTENSIONS))}"
            )

        if self.source == MediaSource.CAMERA:
            self._warn_if_over_capture_limit(path)

        logger.info("Acquired video from %s: %s", self.source.value, path)
        return str(path)

    @staticmethod
    def _warn_if_over_capture_limit(path: Path) -> None:
        from .trim import probe_video

        try:
            info = probe_video(path)
        except ValueError:
            logger.warning("Could not probe captured video %s.", path)
            return
        if info.duration > MAX_CAPTURE_SECONDS:
            logger.warning(
                "Captured video is %.1fs, over the %ds capture limit.",
                info.duration, MAX_CAPTURE_SECONDS,
            )
