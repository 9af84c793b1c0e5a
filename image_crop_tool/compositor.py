"""
Output compositing (Qt-free).

Maps the display-space crop rectangle back to source pixels, applies the
current quarter-turn rotation, resamples the region to the output size and
encodes it in the source media type.  ``render_job`` runs on a snapshot so
it can execute on a background thread while the session is torn down.
"""

import logging
from dataclasses import dataclass

from PIL import Image

from image_crop_tool import viewport
from image_crop_tool.config import JPEG_QUALITY_DEFAULT, OUTPUT_LONG_SIDE
from image_crop_tool.errors import DegenerateRegion
from image_crop_tool.image_io import ImageSource, encode_image
from image_crop_tool.models import CropRegion, Output, Rect, Size, ViewportTransform

logger = logging.getLogger(__name__)

# Counter-clockwise quarter turns, matching how the editor draws the rotation
_TRANSPOSE_FOR_QUADRANT = {
    1: Image.Transpose.ROTATE_90,
    2: Image.Transpose.ROTATE_180,
    3: Image.Transpose.ROTATE_270,
}


@dataclass(frozen=True)
class RenderJob:
    """Everything one render needs, detached from the live session."""
    bitmap: Image.Image
    intrinsic: Size
    media_type: str
    transform: ViewportTransform
    crop: Rect
    container: Size
    output_long_side: int = OUTPUT_LONG_SIDE
    quality: int = JPEG_QUALITY_DEFAULT


# =============================================================================
# Geometry
# =============================================================================
def source_rect(crop: Rect, transform: ViewportTransform, container: Size, intrinsic: Size) -> Rect:
    """Crop rectangle in unrotated source pixels, clipped to the bitmap.

    *crop* is drawn over the rotated image, so it is first turned back onto
    the unrotated display rect.  Clipping shrinks the rectangle; the origin
    is never pushed inward.
    """
    crop = viewport.unrotate_rect(crop, transform, container, intrinsic)
    scale_x, scale_y = viewport.display_to_source_scale(transform, container, intrinsic)
    sx = (crop.x - transform.pan_x) * scale_x
    sy = (crop.y - transform.pan_y) * scale_y
    sw = crop.width * scale_x
    sh = crop.height * scale_y

    x0 = min(max(sx, 0.0), intrinsic.width)
    y0 = min(max(sy, 0.0), intrinsic.height)
    x1 = min(sx + sw, intrinsic.width)
    y1 = min(sy + sh, intrinsic.height)
    return Rect(x0, y0, x1 - x0, y1 - y0)


def rotated_rect(rect: Rect, quadrant: int, intrinsic: Size) -> Rect:
    """Remap a source rectangle into the coordinates of the rotated bitmap."""
    w, h = intrinsic.width, intrinsic.height
    sx, sy, sw, sh = rect.x, rect.y, rect.width, rect.height
    if quadrant == 1:
        return Rect(sy, w - sx - sw, sh, sw)
    if quadrant == 2:
        return Rect(w - sx - sw, h - sy - sh, sw, sh)
    if quadrant == 3:
        return Rect(h - sy - sh, sx, sh, sw)
    return rect


def output_size(crop: Rect, long_side: int) -> tuple[int, int]:
    """Output dimensions with the crop's aspect ratio and the given longer side."""
    aspect = crop.width / crop.height
    if aspect >= 1:
        return long_side, max(1, round(long_side / aspect))
    return max(1, round(long_side * aspect)), long_side


def rotate_bitmap(img: Image.Image, quadrant: int) -> Image.Image:
    transpose = _TRANSPOSE_FOR_QUADRANT.get(quadrant % 4)
    return img.transpose(transpose) if transpose is not None else img


# =============================================================================
# Compositing
# =============================================================================
def composite(job: RenderJob) -> Image.Image:
    """Extract, rotate and resample the crop; returns the output raster."""
    if job.crop.is_empty():
        raise DegenerateRegion(f"crop rectangle has no area: {job.crop}")

    region = source_rect(job.crop, job.transform, job.container, job.intrinsic)
    if region.is_empty():
        raise DegenerateRegion(f"crop lies outside the image: {region}")

    quadrant = job.transform.rotation_quadrant % 4
    rotated = rotate_bitmap(job.bitmap, quadrant)
    region = rotated_rect(region, quadrant, job.intrinsic)
    if region.is_empty():
        raise DegenerateRegion(f"rotated crop has no area: {region}")

    box = (
        max(region.left, 0.0),
        max(region.top, 0.0),
        min(region.right, rotated.width),
        min(region.bottom, rotated.height),
    )
    size = output_size(job.crop, job.output_long_side)
    logger.debug("Resampling box %s of %dx%d bitmap to %dx%d", box, rotated.width, rotated.height, *size)
    return rotated.resize(size, Image.Resampling.LANCZOS, box=box)


def render_job(job: RenderJob) -> Output:
    """Composite and encode a detached job."""
    result = composite(job)
    data = encode_image(result, job.media_type, job.quality)
    logger.info("Rendered %dx%d %s (%d bytes)", result.width, result.height, job.media_type, len(data))
    return Output(data=data, width=result.width, height=result.height, media_type=job.media_type)


def make_job(
    source: ImageSource,
    transform: ViewportTransform,
    crop: CropRegion,
    container: Size,
    output_long_side: int = OUTPUT_LONG_SIDE,
    quality: int = JPEG_QUALITY_DEFAULT,
    detach: bool = False,
) -> RenderJob:
    """Snapshot the inputs of a render; ``detach`` copies the bitmap."""
    bitmap = source.bitmap.copy() if detach else source.bitmap
    return RenderJob(
        bitmap=bitmap,
        intrinsic=source.intrinsic_size,
        media_type=source.export_media_type,
        transform=transform,
        crop=crop.rect,
        container=container,
        output_long_side=output_long_side,
        quality=quality,
    )


def render(
    source: ImageSource,
    transform: ViewportTransform,
    crop: CropRegion,
    container: Size,
    output_long_side: int = OUTPUT_LONG_SIDE,
    quality: int = JPEG_QUALITY_DEFAULT,
) -> Output:
    """Produce the cropped, rotation-corrected output for the current view."""
    return render_job(make_job(source, transform, crop, container, output_long_side, quality))
