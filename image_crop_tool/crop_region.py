"""
Crop-rectangle geometry in display space.

The functions here keep three invariants on a ``CropRegion``: it stays inside
the displayed image bounds, both sides are at least MIN_CROP_SIZE, and the
aspect lock (if any) holds.  When the bounds are too small for the minimum
size, containment wins.  None of these functions raise.
"""

from dataclasses import replace

from image_crop_tool.config import ASPECT_TOLERANCE, INITIAL_CROP_FILL, MIN_CROP_SIZE
from image_crop_tool.models import CropRegion, Handle, Point, Rect

_EPSILON = 1e-6


def _clamp_position(x: float, y: float, width: float, height: float, bounds: Rect) -> Rect:
    x = max(bounds.left, min(x, bounds.right - width))
    y = max(bounds.top, min(y, bounds.bottom - height))
    return Rect(x, y, width, height)


def _fit_side(side: float, limit: float) -> float:
    return min(max(side, MIN_CROP_SIZE), limit)


def _fit_size(width: float, height: float, bounds: Rect, aspect_ratio: float | None) -> tuple[float, float]:
    """Bring a size up to the minimum and down to the bounds.

    Free crops are fitted per axis.  Locked crops grow and shrink uniformly
    so the ratio survives.
    """
    if not aspect_ratio:
        return _fit_side(width, bounds.width), _fit_side(height, bounds.height)
    smaller = min(width, height)
    if 0 < smaller < MIN_CROP_SIZE:
        factor = MIN_CROP_SIZE / smaller
        width, height = width * factor, height * factor
    if width > bounds.width or height > bounds.height:
        factor = min(bounds.width / width, bounds.height / height)
        width, height = width * factor, height * factor
    return width, height


def initialize(display: Rect, aspect_ratio: float | None = None) -> CropRegion:
    """Centered crop at 80% of the displayed image, trimmed to the aspect ratio."""
    width = display.width * INITIAL_CROP_FILL
    height = display.height * INITIAL_CROP_FILL
    if aspect_ratio:
        if width / height > aspect_ratio:
            width = height * aspect_ratio
        else:
            height = width / aspect_ratio
    width, height = _fit_size(width, height, display, aspect_ratio)
    x = display.x + (display.width - width) / 2
    y = display.y + (display.height - height) / 2
    return CropRegion(Rect(x, y, width, height), aspect_ratio or None)


def fit_within(region: CropRegion, bounds: Rect) -> CropRegion:
    """Reconcile a region with new image bounds.

    Used after zoom, rotate, pan and container resize.  The region keeps its
    display position where possible and is only shrunk when it no longer
    fits: per axis for a free crop, uniformly under an aspect lock.
    """
    rect = region.rect
    if rect.is_empty():
        return initialize(bounds, region.aspect_ratio)
    width, height = _fit_size(rect.width, rect.height, bounds, region.aspect_ratio)
    return replace(region, rect=_clamp_position(rect.x, rect.y, width, height, bounds))


def move_to(region: CropRegion, dx: float, dy: float, bounds: Rect) -> CropRegion:
    """Translate by the pointer delta, clamped to the image bounds."""
    region = fit_within(region, bounds)
    rect = region.rect
    return replace(region, rect=_clamp_position(rect.x + dx, rect.y + dy, rect.width, rect.height, bounds))


def resize_corner(region: CropRegion, handle: Handle, pointer: Point, bounds: Rect) -> CropRegion:
    """Resize by dragging *handle* to *pointer*; the opposite corner stays fixed.

    Under an aspect lock, the axis whose size changed more drives the other.
    """
    if handle is Handle.NONE:
        return region
    region = fit_within(region, bounds)
    rect = region.rect
    ar = region.aspect_ratio

    west = handle in (Handle.NW, Handle.SW)
    north = handle in (Handle.NW, Handle.NE)
    anchor_x = rect.right if west else rect.left
    anchor_y = rect.bottom if north else rect.top

    new_w = anchor_x - pointer.x if west else pointer.x - anchor_x
    new_h = anchor_y - pointer.y if north else pointer.y - anchor_y

    if ar:
        if abs(new_w - rect.width) > abs(new_h - rect.height):
            new_h = new_w / ar
        else:
            new_w = new_h * ar

    # Minimum size
    if new_w < MIN_CROP_SIZE:
        new_w = MIN_CROP_SIZE
        if ar:
            new_h = new_w / ar
    if new_h < MIN_CROP_SIZE:
        new_h = MIN_CROP_SIZE
        if ar:
            new_w = new_h * ar

    # Clamp to the space available from the anchor
    max_w = anchor_x - bounds.left if west else bounds.right - anchor_x
    max_h = anchor_y - bounds.top if north else bounds.bottom - anchor_y
    if new_w > max_w:
        new_w = max_w
        if ar:
            new_h = new_w / ar
    if new_h > max_h:
        new_h = max_h
        if ar:
            new_w = new_h * ar

    new_x = anchor_x - new_w if west else anchor_x
    new_y = anchor_y - new_h if north else anchor_y
    return replace(region, rect=Rect(new_x, new_y, new_w, new_h))


def handle_positions(rect: Rect) -> dict[Handle, Point]:
    """Display-space position of each corner handle."""
    return {
        Handle.NW: Point(rect.left, rect.top),
        Handle.NE: Point(rect.right, rect.top),
        Handle.SW: Point(rect.left, rect.bottom),
        Handle.SE: Point(rect.right, rect.bottom),
    }


def contains_region(bounds: Rect, rect: Rect) -> bool:
    return (
        rect.left >= bounds.left - _EPSILON
        and rect.top >= bounds.top - _EPSILON
        and rect.right <= bounds.right + _EPSILON
        and rect.bottom <= bounds.bottom + _EPSILON
    )


def aspect_holds(region: CropRegion) -> bool:
    if not region.aspect_ratio:
        return True
    rect = region.rect
    return abs(rect.width / rect.height - region.aspect_ratio) < ASPECT_TOLERANCE
