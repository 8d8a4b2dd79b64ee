"""
Trim window selection and still-frame extraction.

The scrubbing UI is owned by the host application; the workflow only
consumes the ``TrimSelector`` contract. ``VideoTrimmer`` implements it for
programmatic bounds using OpenCV to probe the video and grab the
representative frame at the window start.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union

import cv2
import numpy as np

from .acquisition import media_path
from .config import CACHE_DIR
from .state import TrimSelection

logger = logging.getLogger(__name__)


class TrimSelector(Protocol):
    """Yields the chosen window for a video, or ``None`` if abandoned."""

    async def select(self, media_ref: str) -> Optional[TrimSelection]:
        ...


@dataclass(frozen=True)
class VideoInfo:
    duration: float
    width: int
    height: int
    fps: float
    frame_count: int


def probe_video(path: Union[str, Path]) -> VideoInfo:
    """Read duration and frame size of a video.

    Raises:
        ValueError: If OpenCV cannot open the file or it has no frames.
    """
    cap = cv2.VideoCapture(str(path))
    try:
        if not cap.isOpened():
            raise ValueError(f"Could not open video: {path}")
        fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
        frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        if frame_count <= 0:
            raise ValueError(f"Video has no readable frames: {path}")
        return VideoInfo(
            duration=frame_count / fps,
            width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            fps=fps,
            frame_count=frame_count,
        )
    finally:
        cap.release()


def _read_frame_at(cap: cv2.VideoCapture, at_seconds: float, fps: float) -> Optional[np.ndarray]:
    cap.set(cv2.CAP_PROP_POS_FRAMES, int(round(at_seconds * fps)))
    ok, frame = cap.read()
    if ok and frame is not None:
        return frame
    # Some containers report a frame count past the last decodable frame.
    cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
    ok, frame = cap.read()
    return frame if ok else None


def extract_frame(
    path: Union[str, Path],
    at_seconds: float,
    cache_dir: Path = CACHE_DIR,
) -> str:
    """Write the frame at ``at_seconds`` as a JPEG in ``cache_dir``.

    Returns:
        Path of the written still frame.

    Raises:
        ValueError: If no frame can be decoded.
    """
    cap = cv2.VideoCapture(str(path))
    try:
        if not cap.isOpened():
            raise ValueError(f"Could not open video: {path}")
        fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
        frame = _read_frame_at(cap, at_seconds, fps)
    finally:
        cap.release()

    if frame is None:
        raise ValueError(f"Could not decode a frame at {at_seconds:.2f}s from {path}")

    cache_dir.mkdir(parents=True, exist_ok=True)
    out_path = cache_dir / f"frame_{uuid.uuid4().hex[:12]}.jpg"
    if not cv2.imwrite(str(out_path), frame):
        raise ValueError(f"Could not write still frame to {out_path}")
    logger.info("Extracted frame at %.2fs -> %s", at_seconds, out_path)
    return str(out_path)


def read_image_size(frame_ref: str) -> Optional[tuple[int, int]]:
    """``(width, height)`` of a still frame, or ``None`` if unreadable."""
    image = cv2.imread(str(media_path(frame_ref)))
    if image is None:
        return None
    height, width = image.shape[:2]
    return width, height


class VideoTrimmer:
    """``TrimSelector`` for bounds chosen outside the scrubbing UI.

    Missing duration or frame are filled in from the video itself.
    """

    def __init__(
        self,
        start_time: float,
        end_time: float,
        video_duration: Optional[float] = None,
        frame_ref: Optional[str] = None,
        cache_dir: Path = CACHE_DIR,
    ):
        self.start_time = start_time
        self.end_time = end_time
        self.video_duration = video_duration
        self.frame_ref = frame_ref
        self.cache_dir = cache_dir

    async def select(self, media_ref: str) -> Optional[TrimSelection]:
        path = media_path(media_ref)
        duration = self.video_duration
        if duration is None:
            info = await asyncio.to_thread(probe_video, path)
            duration = info.duration

        # Validate before paying for frame extraction.
        TrimSelection(
            start_time=self.start_time,
            end_time=self.end_time,
            video_duration=duration,
            frame_ref=self.frame_ref or "",
        )

        frame_ref = self.frame_ref
        if frame_ref is None:
            frame_ref = await asyncio.to_thread(
                extract_frame, path, self.start_time, self.cache_dir
            )

        return TrimSelection(
            start_time=self.start_time,
            end_time=self.end_time,
            video_duration=duration,
            frame_ref=frame_ref,
        )
