"""
Viewport geometry: where the source image sits in display space.

Every mutation (initialise, zoom, rotate, pan, container resize) goes through
``compute_display_rect`` so the displayed rectangle is derived the same way
everywhere.  All functions are pure and return new ``ViewportTransform``
instances.
"""

import logging
from dataclasses import replace

from image_crop_tool.config import (
    DISPLAY_FILL, FALLBACK_CONTAINER_HEIGHT, FALLBACK_CONTAINER_WIDTH,
    PAN_LIMIT, SCALE_MAX, SCALE_MIN, ZOOM_STEP,
)
from image_crop_tool.errors import ResourceUnavailable
from image_crop_tool.models import Point, Rect, Size, ViewportTransform

logger = logging.getLogger(__name__)

FALLBACK_CONTAINER = Size(FALLBACK_CONTAINER_WIDTH, FALLBACK_CONTAINER_HEIGHT)


def measured_container(width: float, height: float) -> Size:
    """Return the container size, or raise if it cannot be measured yet."""
    if width <= 0 or height <= 0:
        raise ResourceUnavailable(f"container not measurable ({width}x{height})")
    return Size(float(width), float(height))


def container_or_fallback(width: float, height: float) -> Size:
    try:
        return measured_container(width, height)
    except ResourceUnavailable as exc:
        logger.debug("%s; using %sx%s", exc, FALLBACK_CONTAINER.width, FALLBACK_CONTAINER.height)
        return FALLBACK_CONTAINER


def base_display_size(container: Size, intrinsic: Size) -> Size:
    """Display size at scale 1.0: fill 80% of the width, capped at 80% of the height."""
    aspect = intrinsic.aspect
    width = container.width * DISPLAY_FILL
    height = width / aspect
    if height > container.height * DISPLAY_FILL:
        height = container.height * DISPLAY_FILL
        width = height * aspect
    return Size(width, height)


def compute_display_rect(transform: ViewportTransform, container: Size, intrinsic: Size) -> Rect:
    """Displayed (unrotated) image rectangle in display space."""
    base = base_display_size(container, intrinsic)
    return Rect(
        transform.pan_x,
        transform.pan_y,
        base.width * transform.scale,
        base.height * transform.scale,
    )


def visible_rect(transform: ViewportTransform, container: Size, intrinsic: Size) -> Rect:
    """Bounds of the image as drawn, i.e. the display rect turned by the current quadrant.

    Width and height swap about the center for quarter and three-quarter turns.
    """
    display = compute_display_rect(transform, container, intrinsic)
    if transform.rotation_quadrant % 2 == 0:
        return display
    center = display.center
    return Rect(
        center.x - display.height / 2,
        center.y - display.width / 2,
        display.height,
        display.width,
    )


def unrotate_rect(rect: Rect, transform: ViewportTransform, container: Size, intrinsic: Size) -> Rect:
    """Map a rect drawn over the rotated image back onto the unrotated display rect.

    Rotation is counter-clockwise on screen, so each quarter turn is undone
    by mapping an offset ``(dx, dy)`` from the center to ``(-dy, dx)``.
    """
    center = compute_display_rect(transform, container, intrinsic).center
    left, top = rect.left - center.x, rect.top - center.y
    right, bottom = rect.right - center.x, rect.bottom - center.y
    for _ in range(transform.rotation_quadrant % 4):
        left, top, right, bottom = -bottom, left, -top, right
    return Rect(center.x + left, center.y + top, right - left, bottom - top)


def centered_pan(scale: float, container: Size, intrinsic: Size) -> Point:
    base = base_display_size(container, intrinsic)
    return Point(
        (container.width - base.width * scale) / 2,
        (container.height - base.height * scale) / 2,
    )


def recenter(transform: ViewportTransform, container: Size, intrinsic: Size) -> ViewportTransform:
    pan = centered_pan(transform.scale, container, intrinsic)
    return replace(transform, pan_x=pan.x, pan_y=pan.y)


def initial_transform(container: Size, intrinsic: Size) -> ViewportTransform:
    """Scale 1, no rotation, image centered in the container."""
    return recenter(ViewportTransform(), container, intrinsic)


def clamp_scale(scale: float) -> float:
    # Rounding keeps repeated 0.1 steps from drifting past the bounds
    return round(max(SCALE_MIN, min(SCALE_MAX, scale)), 6)


def zoom(transform: ViewportTransform, steps: int, container: Size, intrinsic: Size) -> ViewportTransform:
    """Zoom by ``steps`` increments of ZOOM_STEP, then re-center (not cursor-anchored)."""
    scale = clamp_scale(transform.scale + steps * ZOOM_STEP)
    return recenter(replace(transform, scale=scale), container, intrinsic)


def rotate(transform: ViewportTransform, container: Size, intrinsic: Size) -> ViewportTransform:
    """Rotate a quarter turn counter-clockwise and re-center."""
    quadrant = (transform.rotation_quadrant + 1) % 4
    return recenter(replace(transform, rotation_quadrant=quadrant), container, intrinsic)


def pan(
    transform: ViewportTransform,
    pointer: Point,
    anchor: Point,
    container: Size,
    intrinsic: Size,
) -> ViewportTransform:
    """Move the image so that its top-left sits at ``pointer - anchor``.

    The offset from the centered position is limited to PAN_LIMIT of the
    container, and the image as drawn (rotation included) may never leave
    the container fully uncovered.
    """
    display = compute_display_rect(transform, container, intrinsic)
    visible = visible_rect(transform, container, intrinsic)
    center = centered_pan(transform.scale, container, intrinsic)

    max_dx = container.width * PAN_LIMIT
    max_dy = container.height * PAN_LIMIT
    offset_x = max(-max_dx, min(max_dx, pointer.x - anchor.x - center.x))
    offset_y = max(-max_dy, min(max_dy, pointer.y - anchor.y - center.y))

    # Clamp the drawn rect, then convert back to the unrotated origin
    shift_x = (display.width - visible.width) / 2
    shift_y = (display.height - visible.height) / 2
    slack_x = container.width - visible.width
    slack_y = container.height - visible.height
    left = max(min(0.0, slack_x), min(max(0.0, slack_x), center.x + offset_x + shift_x))
    top = max(min(0.0, slack_y), min(max(0.0, slack_y), center.y + offset_y + shift_y))
    return replace(transform, pan_x=left - shift_x, pan_y=top - shift_y)


def display_to_source_scale(transform: ViewportTransform, container: Size, intrinsic: Size) -> tuple[float, float]:
    """Source pixels per display pixel along x and y at the current zoom."""
    display = compute_display_rect(transform, container, intrinsic)
    return intrinsic.width / display.width, intrinsic.height / display.height
