"""
Data models shared by the engine, the compositor and the Qt host.

Everything here is plain data.  ``Rect`` and ``CropRegion`` live in display
space (pixels of the editing viewport); ``ViewportTransform`` describes how
the source bitmap is laid out in that space.  Geometry operations on these
types live in ``viewport`` and ``crop_region``.
"""

from dataclasses import dataclass, field
from enum import Enum


# =============================================================================
# Primitives
# =============================================================================
@dataclass(frozen=True)
class Point:
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class Size:
    width: float = 0.0
    height: float = 0.0

    @property
    def aspect(self) -> float:
        return self.width / self.height

    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle, origin at the top-left corner."""
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def left(self) -> float:
        return self.x

    @property
    def top(self) -> float:
        return self.y

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)

    @property
    def size(self) -> Size:
        return Size(self.width, self.height)

    def contains(self, point: Point) -> bool:
        return self.left <= point.x <= self.right and self.top <= point.y <= self.bottom

    def translated(self, dx: float, dy: float) -> "Rect":
        return Rect(self.x + dx, self.y + dy, self.width, self.height)

    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


# =============================================================================
# Engine state
# =============================================================================
@dataclass(frozen=True)
class ViewportTransform:
    """Zoom, pan and quarter-turn rotation of the displayed image.

    ``pan_x``/``pan_y`` are the top-left corner of the unrotated display
    rectangle.  Rotation is drawn around that rectangle's center.
    """
    scale: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    rotation_quadrant: int = 0

    @property
    def rotation_degrees(self) -> int:
        return self.rotation_quadrant * 90


@dataclass(frozen=True)
class CropRegion:
    """Crop rectangle in display space with an optional locked aspect ratio."""
    rect: Rect = field(default_factory=Rect)
    aspect_ratio: float | None = None


class Handle(Enum):
    NONE = "none"
    NW = "nw"
    NE = "ne"
    SW = "sw"
    SE = "se"


class DragMode(Enum):
    IDLE = "idle"
    PANNING_IMAGE = "panning_image"
    MOVING_CROP = "moving_crop"
    RESIZING_CROP = "resizing_crop"


@dataclass(frozen=True)
class InteractionState:
    """Transient drag state; ``drag_anchor`` is the pointer offset captured on press."""
    mode: DragMode = DragMode.IDLE
    active_handle: Handle = Handle.NONE
    drag_anchor: Point = field(default_factory=Point)

    @property
    def is_dragging(self) -> bool:
        return self.mode is not DragMode.IDLE


IDLE = InteractionState()


@dataclass(frozen=True)
class Output:
    """Encoded result of one apply action."""
    data: bytes
    width: int
    height: int
    media_type: str
