"""
Region-of-interest selection over a still frame.

The user drags a rectangle over the letterboxed preview of the trim start
frame; on confirm the rectangle is mapped into source-media pixels and
handed to the caller through a one-shot callback.

States: ``idle -> dragging -> drawn -> confirmed``. Once confirmed the
selector ignores touches until :meth:`RegionSelector.reset`.
"""

import logging
from enum import Enum
from typing import Callable, Optional

from .errors import EmptyRegionError, FormCheckerError, GeometryNotReady
from .geometry import PreviewGeometry, Rectangle, build_geometry, to_source_space

logger = logging.getLogger(__name__)


class SelectorState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    DRAWN = "drawn"
    CONFIRMED = "confirmed"


class RegionSelector:
    """Drag-to-draw rectangle selection with source-space output.

    Args:
        frame_ref: Path/URI of the still frame being annotated.
        on_confirm: Called exactly once with the source-space rectangle.
        is_loading: Initial loading flag; confirm is refused while set.
    """

    def __init__(
        self,
        frame_ref: str,
        on_confirm: Callable[[Rectangle], None],
        is_loading: bool = False,
    ):
        self.frame_ref = frame_ref
        self.is_loading = is_loading
        self._on_confirm = on_confirm
        self._container_size: Optional[tuple[float, float]] = None
        self._media_size: Optional[tuple[float, float]] = None
        self._state = SelectorState.IDLE
        self._touch_start: Optional[tuple[float, float]] = None
        self._candidate: Optional[Rectangle] = None

    # ------------------------------------------------------------------
    # Layout events
    # ------------------------------------------------------------------

    def set_container_size(self, width: float, height: float) -> None:
        self._container_size = (width, height)

    def set_media_size(self, width: float, height: float) -> None:
        self._media_size = (width, height)

    @property
    def geometry(self) -> Optional[PreviewGeometry]:
        return build_geometry(self._container_size, self._media_size)

    @property
    def state(self) -> SelectorState:
        return self._state

    @property
    def candidate(self) -> Optional[Rectangle]:
        """Rectangle currently shown on the preview, in display space."""
        return self._candidate

    @property
    def can_confirm(self) -> bool:
        return (
            self._state == SelectorState.DRAWN
            and not self.is_loading
            and self.geometry is not None
        )

    # ------------------------------------------------------------------
    # Touch handling
    # ------------------------------------------------------------------

    def touch_start(self, x: float, y: float) -> None:
        if self._state == SelectorState.CONFIRMED:
            logger.debug("Selector confirmed; ignoring touch at (%.1f, %.1f).", x, y)
            return
        self._touch_start = (x, y)
        self._candidate = Rectangle(x=x, y=y, width=0.0, height=0.0)
        self._state = SelectorState.DRAGGING

    def touch_move(self, x: float, y: float) -> None:
        if self._state != SelectorState.DRAGGING or self._touch_start is None:
            return
        x0, y0 = self._touch_start
        self._candidate = Rectangle.from_points(x0, y0, x, y)

    def touch_end(self, x: float, y: float) -> None:
        if self._state != SelectorState.DRAGGING or self._touch_start is None:
            return
        x0, y0 = self._touch_start
        self._touch_start = None
        rect = Rectangle.from_points(x0, y0, x, y)
        if rect.is_empty:
            # A tap, not a drag.
            self._candidate = None
            self._state = SelectorState.IDLE
            return
        self._candidate = rect
        self._state = SelectorState.DRAWN

    # ------------------------------------------------------------------
    # Preview / confirm
    # ------------------------------------------------------------------

    def preview(self) -> Optional[Rectangle]:
        """Candidate mapped onto the full-resolution frame, if mappable."""
        geometry = self.geometry
        if self._candidate is None or geometry is None:
            return None
        return to_source_space(self._candidate, geometry)

    def confirm(self) -> Rectangle:
        """Emit the drawn region in source-media pixels.

        Raises:
            FormCheckerError: Nothing drawn, already confirmed, or loading.
            GeometryNotReady: Container layout or frame size unresolved.
            EmptyRegionError: The region lies entirely in letterbox padding.
        """
        if self._state != SelectorState.DRAWN or self._candidate is None:
            raise FormCheckerError(f"No region to confirm (selector is {self._state.value}).")
        if self.is_loading:
            raise FormCheckerError("Cannot confirm while loading.")

        geometry = self.geometry
        if geometry is None:
            raise GeometryNotReady(
                f"Frame size or preview layout unknown for {self.frame_ref}."
            )

        region = to_source_space(self._candidate, geometry).clip(
            geometry.media_width, geometry.media_height
        )
        if region.is_empty:
            raise EmptyRegionError("Selected area does not overlap the video frame.")

        self._state = SelectorState.CONFIRMED
        logger.info(
            "Region confirmed: display=%s source=%s",
            self._candidate.to_payload(), region.to_payload(),
        )
        self._on_confirm(region)
        return region

    def reset(self) -> None:
        self._state = SelectorState.IDLE
        self._touch_start = None
        self._candidate = None
