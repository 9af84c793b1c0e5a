"""
Qt-free image I/O utilities.

Decodes input bytes (including PSD) into an ``ImageSource``, encodes output
rasters back to a media type, and generates unique output paths.  Safe to
import in worker threads.
"""

import io
import logging
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError
from psd_tools import PSDImage

from image_crop_tool.config import (
    JPEG_QUALITY_DEFAULT, MEDIA_TYPE_FORMATS, OPAQUE_FORMATS,
    PNG_COMPRESS_LEVEL, PSD_EXPORT_MEDIA_TYPE, PSD_MEDIA_TYPE,
)
from image_crop_tool.errors import DecodeError, EncodeError, SessionError
from image_crop_tool.models import Size

logger = logging.getLogger(__name__)

_PSD_SIGNATURE = b"8BPS"
_NATIVE_MODES = {"RGB", "RGBA", "L", "LA"}


# =============================================================================
# ImageSource
# =============================================================================
class ImageSource:
    """A decoded bitmap plus its intrinsic size and media type.

    The bitmap is owned by this object and released by ``close()``; use it
    as a context manager to scope the decoded memory.
    """

    def __init__(self, bitmap: Image.Image, media_type: str):
        self._bitmap: Image.Image | None = bitmap
        self._width, self._height = bitmap.size
        self._media_type = media_type

    @property
    def bitmap(self) -> Image.Image:
        if self._bitmap is None:
            raise SessionError("image source has been released")
        return self._bitmap

    @property
    def intrinsic_width(self) -> int:
        return self._width

    @property
    def intrinsic_height(self) -> int:
        return self._height

    @property
    def intrinsic_size(self) -> Size:
        return Size(self._width, self._height)

    @property
    def media_type(self) -> str:
        return self._media_type

    @property
    def export_media_type(self) -> str:
        """Media type used for the cropped output."""
        if self._media_type == PSD_MEDIA_TYPE:
            return PSD_EXPORT_MEDIA_TYPE
        return self._media_type

    @property
    def released(self) -> bool:
        return self._bitmap is None

    def close(self) -> None:
        if self._bitmap is None:
            return
        self._bitmap.close()
        self._bitmap = None
        logger.debug("Released %dx%d bitmap", self._width, self._height)

    def __enter__(self) -> "ImageSource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "released" if self.released else "loaded"
        return f"<ImageSource {self._width}x{self._height} {self._media_type} {state}>"


# =============================================================================
# Decoding
# =============================================================================
def _is_psd(data: bytes, media_type: str) -> bool:
    return media_type == PSD_MEDIA_TYPE or data[:4] == _PSD_SIGNATURE


def _normalize_mode(img: Image.Image) -> Image.Image:
    """Convert palette/bit-depth modes to something Lanczos can resample."""
    if img.mode in _NATIVE_MODES:
        return img
    has_alpha = "A" in img.getbands() or "transparency" in img.info
    return img.convert("RGBA" if has_alpha else "RGB")


def _decode_psd(data: bytes) -> Image.Image:
    try:
        psd = PSDImage.open(io.BytesIO(data))
        composite = psd.composite()
    except Exception as exc:
        raise DecodeError(f"Could not read PSD data: {exc}") from exc
    if composite is None:
        raise DecodeError("PSD file has no visible pixels")
    return composite


def _decode_pillow(data: bytes) -> tuple[Image.Image, str]:
    try:
        with Image.open(io.BytesIO(data)) as img:
            # Force a full decode so truncated buffers fail here, not at export
            img.load()
            detected = Image.MIME.get(img.format or "", "")
            bitmap = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Not a valid raster image: {exc}") from exc
    return bitmap, detected


def load(data: bytes, media_type: str = "") -> ImageSource:
    """Decode *data* into an ``ImageSource``.

    *media_type* is kept as the export type when it can be encoded;
    otherwise the type sniffed from the decoded format is used.  Raises
    ``DecodeError`` for empty, truncated or unsupported input.
    """
    if not data:
        raise DecodeError("No image data")
    media_type = (media_type or "").strip().lower()

    if _is_psd(data, media_type):
        bitmap = _decode_psd(data)
        media_type = PSD_MEDIA_TYPE
    else:
        bitmap, detected = _decode_pillow(data)
        if media_type not in MEDIA_TYPE_FORMATS:
            if media_type:
                logger.warning("Cannot export %s; using detected type %s", media_type, detected or "unknown")
            media_type = detected
        if not media_type:
            raise DecodeError("Could not determine the image media type")

    if bitmap.width <= 0 or bitmap.height <= 0:
        raise DecodeError(f"Image has no pixels ({bitmap.width}x{bitmap.height})")

    source = ImageSource(_normalize_mode(bitmap), media_type)
    logger.info("Decoded %s image %dx%d", media_type, source.intrinsic_width, source.intrinsic_height)
    return source


def load_path(path: Path, media_type: str = "") -> ImageSource:
    """Read a file and decode it, guessing the media type from its extension."""
    if not media_type:
        media_type = media_type_for_path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise DecodeError(f"Could not read {path}: {exc}") from exc
    return load(data, media_type)


def media_type_for_path(path: Path) -> str:
    """Best-effort media type from a file extension ('' if unknown)."""
    ext = path.suffix.lower()
    if ext == ".psd":
        return PSD_MEDIA_TYPE
    fmt = Image.registered_extensions().get(ext)
    return Image.MIME.get(fmt, "") if fmt else ""


def extension_for_media_type(media_type: str) -> str:
    """Preferred file extension for *media_type* ('.png' if unknown)."""
    fmt = MEDIA_TYPE_FORMATS.get(media_type.lower())
    if fmt == "JPEG":
        return ".jpg"
    if fmt:
        return f".{fmt.lower()}"
    return ".png"


# =============================================================================
# Encoding
# =============================================================================
def _flatten(img: Image.Image) -> Image.Image:
    """Composite an alpha image onto white for formats without alpha."""
    if img.mode in ("RGB", "L"):
        return img
    if "A" not in img.getbands():
        return img.convert("RGB")
    rgba = img.convert("RGBA")
    background = Image.new("RGB", rgba.size, (255, 255, 255))
    background.paste(rgba, mask=rgba.getchannel("A"))
    return background


def encode_image(img: Image.Image, media_type: str, quality: int = JPEG_QUALITY_DEFAULT) -> bytes:
    """Encode *img* as *media_type*; raises ``EncodeError`` if that is not possible."""
    fmt = MEDIA_TYPE_FORMATS.get(media_type.lower())
    if fmt is None:
        raise EncodeError(f"Unsupported output media type: {media_type!r}")

    if fmt in OPAQUE_FORMATS:
        img = _flatten(img)

    options: dict = {}
    if fmt == "JPEG":
        options = {"quality": quality, "optimize": True, "subsampling": 0}
    elif fmt == "WEBP":
        options = {"quality": quality}
    elif fmt == "PNG":
        options = {"compress_level": PNG_COMPRESS_LEVEL}

    buffer = io.BytesIO()
    try:
        img.save(buffer, fmt, **options)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"Could not encode {fmt}: {exc}") from exc
    return buffer.getvalue()


def unique_path(out_path: Path) -> Path:
    """Return a unique path by appending -01, -02, etc. if file already exists."""
    if not out_path.exists():
        return out_path
    stem = out_path.stem
    suffix = out_path.suffix
    parent = out_path.parent
    counter = 1
    while True:
        candidate = parent / f"{stem}-{counter:02d}{suffix}"
        if not candidate.exists():
            return candidate
        counter += 1
