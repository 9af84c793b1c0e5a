"""
Pointer-driven drag state machine.

A pointer press is hit-tested (corner handle, then crop body, then image)
to pick one of three drag modes; subsequent moves are dispatched to that
mode until the pointer is released or leaves the surface.  All editor state
touched by input lives in one frozen ``EditorState`` that is threaded
through ``update``.  Nothing here raises on pointer input.
"""

import logging
from dataclasses import dataclass, replace

from image_crop_tool import crop_region, viewport
from image_crop_tool.config import HANDLE_SIZE
from image_crop_tool.models import (
    IDLE, CropRegion, DragMode, Handle, InteractionState, Point, Rect, Size,
    ViewportTransform,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Events
# =============================================================================
@dataclass(frozen=True)
class PointerDown:
    point: Point


@dataclass(frozen=True)
class PointerMove:
    point: Point


@dataclass(frozen=True)
class PointerUp:
    pass


@dataclass(frozen=True)
class PointerLeave:
    pass


@dataclass(frozen=True)
class Wheel:
    """One discrete scroll notch; positive ``delta_y`` scrolls down (zoom out)."""
    delta_y: float


@dataclass(frozen=True)
class ZoomStep:
    steps: int


@dataclass(frozen=True)
class Rotate:
    pass


@dataclass(frozen=True)
class ContainerResized:
    size: Size


PointerEvent = PointerDown | PointerMove | PointerUp | PointerLeave | Wheel
EditorEvent = PointerEvent | ZoomStep | Rotate | ContainerResized


# =============================================================================
# State
# =============================================================================
@dataclass(frozen=True)
class EditorState:
    """Everything an input event may change, plus the geometry it depends on."""
    container: Size
    intrinsic: Size
    transform: ViewportTransform
    crop: CropRegion
    interaction: InteractionState = IDLE
    crop_mode: bool = False

    @property
    def image_rect(self) -> Rect:
        """Unrotated layout rect; the image is drawn turned about its center."""
        return viewport.compute_display_rect(self.transform, self.container, self.intrinsic)

    @property
    def display_rect(self) -> Rect:
        """Bounds of the image as drawn; the crop must stay inside."""
        return viewport.visible_rect(self.transform, self.container, self.intrinsic)


def initial_state(container: Size, intrinsic: Size, aspect_ratio: float | None) -> EditorState:
    transform = viewport.initial_transform(container, intrinsic)
    display = viewport.visible_rect(transform, container, intrinsic)
    return EditorState(
        container=container,
        intrinsic=intrinsic,
        transform=transform,
        crop=crop_region.initialize(display, aspect_ratio),
    )


# =============================================================================
# Hit testing
# =============================================================================
def hit_test(point: Point, crop: Rect, crop_mode: bool) -> tuple[DragMode, Handle]:
    """Return (mode, handle) for a press at *point*; first match wins."""
    if crop_mode:
        for handle, corner in crop_region.handle_positions(crop).items():
            if abs(point.x - corner.x) <= HANDLE_SIZE and abs(point.y - corner.y) <= HANDLE_SIZE:
                return DragMode.RESIZING_CROP, handle
        if crop.contains(point):
            return DragMode.MOVING_CROP, Handle.NONE
    return DragMode.PANNING_IMAGE, Handle.NONE


# =============================================================================
# Update
# =============================================================================
def _with_transform(state: EditorState, transform: ViewportTransform) -> EditorState:
    """Swap in a new transform and pull the crop back inside the image."""
    display = viewport.visible_rect(transform, state.container, state.intrinsic)
    return replace(state, transform=transform, crop=crop_region.fit_within(state.crop, display))


def _press(state: EditorState, point: Point) -> EditorState:
    mode, handle = hit_test(point, state.crop.rect, state.crop_mode)
    if mode is DragMode.PANNING_IMAGE:
        anchor = Point(point.x - state.transform.pan_x, point.y - state.transform.pan_y)
    elif mode is DragMode.MOVING_CROP:
        anchor = Point(point.x - state.crop.rect.x, point.y - state.crop.rect.y)
    else:
        anchor = point
    logger.debug("Pointer down at (%.1f, %.1f): %s %s", point.x, point.y, mode.value, handle.value)
    return replace(state, interaction=InteractionState(mode, handle, anchor))


def _drag(state: EditorState, point: Point) -> EditorState:
    drag = state.interaction
    if drag.mode is DragMode.PANNING_IMAGE:
        transform = viewport.pan(state.transform, point, drag.drag_anchor, state.container, state.intrinsic)
        return _with_transform(state, transform)
    if drag.mode is DragMode.MOVING_CROP:
        rect = state.crop.rect
        dx = point.x - drag.drag_anchor.x - rect.x
        dy = point.y - drag.drag_anchor.y - rect.y
        return replace(state, crop=crop_region.move_to(state.crop, dx, dy, state.display_rect))
    if drag.mode is DragMode.RESIZING_CROP:
        crop = crop_region.resize_corner(state.crop, drag.active_handle, point, state.display_rect)
        return replace(state, crop=crop)
    return state


def update(state: EditorState, event: EditorEvent) -> EditorState:
    """Apply one input event and return the next editor state."""
    if isinstance(event, PointerDown):
        return _press(state, event.point)
    if isinstance(event, PointerMove):
        return _drag(state, event.point)
    if isinstance(event, (PointerUp, PointerLeave)):
        if state.interaction.is_dragging:
            return replace(state, interaction=IDLE)
        return state
    if isinstance(event, Wheel):
        steps = -1 if event.delta_y > 0 else 1
        return update(state, ZoomStep(steps))
    if isinstance(event, ZoomStep):
        transform = viewport.zoom(state.transform, event.steps, state.container, state.intrinsic)
        return _with_transform(state, transform)
    if isinstance(event, Rotate):
        return _with_transform(state, viewport.rotate(state.transform, state.container, state.intrinsic))
    if isinstance(event, ContainerResized):
        resized = replace(state, container=event.size)
        return _with_transform(resized, viewport.recenter(state.transform, event.size, state.intrinsic))
    return state


# =============================================================================
# Controller
# =============================================================================
class InteractionController:
    """Mutable holder for an ``EditorState`` with one method per input."""

    def __init__(self, container: Size, intrinsic: Size, aspect_ratio: float | None = None):
        self._aspect_ratio = aspect_ratio
        self._state = initial_state(container, intrinsic, aspect_ratio)

    @property
    def state(self) -> EditorState:
        return self._state

    @property
    def transform(self) -> ViewportTransform:
        return self._state.transform

    @property
    def crop(self) -> CropRegion:
        return self._state.crop

    @property
    def interaction(self) -> InteractionState:
        return self._state.interaction

    @property
    def crop_mode(self) -> bool:
        return self._state.crop_mode

    @property
    def image_rect(self) -> Rect:
        return self._state.image_rect

    @property
    def display_rect(self) -> Rect:
        return self._state.display_rect

    def dispatch(self, event: EditorEvent) -> EditorState:
        self._state = update(self._state, event)
        return self._state

    def pointer_down(self, x: float, y: float) -> EditorState:
        return self.dispatch(PointerDown(Point(x, y)))

    def pointer_move(self, x: float, y: float) -> EditorState:
        return self.dispatch(PointerMove(Point(x, y)))

    def pointer_up(self) -> EditorState:
        return self.dispatch(PointerUp())

    def pointer_leave(self) -> EditorState:
        return self.dispatch(PointerLeave())

    def wheel(self, delta_y: float) -> EditorState:
        return self.dispatch(Wheel(delta_y))

    def zoom(self, steps: int) -> EditorState:
        return self.dispatch(ZoomStep(steps))

    def rotate(self) -> EditorState:
        return self.dispatch(Rotate())

    def resize_container(self, size: Size) -> EditorState:
        return self.dispatch(ContainerResized(size))

    def set_crop_mode(self, enabled: bool) -> EditorState:
        self._state = replace(self._state, crop_mode=enabled)
        return self._state

    def hover(self, x: float, y: float) -> tuple[DragMode, Handle]:
        """Mode a press at (x, y) would start; used for cursor feedback."""
        return hit_test(Point(x, y), self._state.crop.rect, self._state.crop_mode)

    def reset(self) -> EditorState:
        """Back to scale 1, no rotation, centered image and a fresh crop; keeps crop mode."""
        fresh = initial_state(self._state.container, self._state.intrinsic, self._aspect_ratio)
        self._state = replace(fresh, crop_mode=self._state.crop_mode)
        return self._state
