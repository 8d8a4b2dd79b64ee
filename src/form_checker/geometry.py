"""
Coordinate mapping between the annotation preview and the source media.

The preview shows the still frame with uniform "contain" scaling: the media
is scaled by the smaller of the two axis ratios and centered, leaving
letterbox padding on one axis. Rectangles drawn by touch live in display
space; the analyzer expects source-media pixel space.

A ``Rectangle`` never records which space it is in. Callers keep track.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import GeometryNotReady


class Rectangle(BaseModel):
    """Axis-aligned rectangle with non-negative size."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    width: float = Field(ge=0.0)
    height: float = Field(ge=0.0)

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0.0 or self.height <= 0.0

    @classmethod
    def from_points(cls, x0: float, y0: float, x1: float, y1: float) -> "Rectangle":
        """Build a well-formed rectangle from two corners in any order."""
        return cls(
            x=min(x0, x1),
            y=min(y0, y1),
            width=abs(x1 - x0),
            height=abs(y1 - y0),
        )

    def clip(self, width: float, height: float) -> "Rectangle":
        """Intersect with the frame ``(0, 0, width, height)``."""
        left = min(max(self.x, 0.0), width)
        top = min(max(self.y, 0.0), height)
        right = min(max(self.right, 0.0), width)
        bottom = min(max(self.bottom, 0.0), height)
        return Rectangle(x=left, y=top, width=right - left, height=bottom - top)

    def to_payload(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


class PreviewGeometry(BaseModel):
    """One letterboxing computation: preview container vs. media size.

    Derived fresh on every layout or image-size event. Zero in any
    dimension means the mapping is not defined yet.
    """

    model_config = ConfigDict(frozen=True)

    container_width: float = Field(ge=0.0)
    container_height: float = Field(ge=0.0)
    media_width: float = Field(ge=0.0)
    media_height: float = Field(ge=0.0)

    @property
    def is_ready(self) -> bool:
        return min(
            self.container_width,
            self.container_height,
            self.media_width,
            self.media_height,
        ) > 0.0

    @property
    def scale(self) -> float:
        self._require_ready()
        return min(
            self.container_width / self.media_width,
            self.container_height / self.media_height,
        )

    @property
    def offset(self) -> tuple[float, float]:
        """Letterbox padding ``(offset_x, offset_y)`` in display pixels."""
        scale = self.scale
        offset_x = (self.container_width - self.media_width * scale) / 2.0
        offset_y = (self.container_height - self.media_height * scale) / 2.0
        return offset_x, offset_y

    def _require_ready(self) -> None:
        if not self.is_ready:
            raise GeometryNotReady(
                f"Preview geometry incomplete: container "
                f"{self.container_width}x{self.container_height}, media "
                f"{self.media_width}x{self.media_height}."
            )


def build_geometry(
    container_size: Optional[tuple[float, float]],
    media_size: Optional[tuple[float, float]],
) -> Optional[PreviewGeometry]:
    """Combine the two layout events, or ``None`` until both are usable."""
    if container_size is None or media_size is None:
        return None
    geometry = PreviewGeometry(
        container_width=container_size[0],
        container_height=container_size[1],
        media_width=media_size[0],
        media_height=media_size[1],
    )
    return geometry if geometry.is_ready else None


def to_source_space(rect: Rectangle, geometry: PreviewGeometry) -> Rectangle:
    """Map a display-space rectangle to source-media pixels.

    Raises:
        GeometryNotReady: If any geometry dimension is zero.
    """
    scale = geometry.scale
    offset_x, offset_y = geometry.offset
    return Rectangle(
        x=(rect.x - offset_x) / scale,
        y=(rect.y - offset_y) / scale,
        width=rect.width / scale,
        height=rect.height / scale,
    )


def to_display_space(rect: Rectangle, geometry: PreviewGeometry) -> Rectangle:
    """Inverse of :func:`to_source_space`."""
    scale = geometry.scale
    offset_x, offset_y = geometry.offset
    return Rectangle(
        x=rect.x * scale + offset_x,
        y=rect.y * scale + offset_y,
        width=rect.width * scale,
        height=rect.height * scale,
    )
