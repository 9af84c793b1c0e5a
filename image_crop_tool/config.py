"""
Application constants and configuration.

All geometry constants are in display-space pixels unless noted otherwise.
Runtime user preferences (output size, quality, default aspect ratio) are
loaded from settings.json via the settings module; the values here are the
built-in defaults.

The ``config_dir()`` helper returns the platform-appropriate config
directory and is shared by all persistence modules.
"""

import os
import sys
from pathlib import Path

# =============================================================================
# APP IDENTITY & CONFIG DIRECTORY
# =============================================================================
APP_NAME = "image-crop-tool"


def config_dir() -> Path:
    """Return the platform-appropriate config directory, creating it if needed."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    directory = base / APP_NAME
    directory.mkdir(parents=True, exist_ok=True)
    return directory


# =============================================================================
# VIEWPORT
# =============================================================================
# Share of the container the image occupies at scale 1.0
DISPLAY_FILL = 0.8

# Zoom bounds and wheel/button step
SCALE_MIN = 0.5
SCALE_MAX = 3.0
ZOOM_STEP = 0.1

# Max pan offset from the centered position, as a share of the container
PAN_LIMIT = 0.3

# Used when the host cannot measure its rendering surface yet
FALLBACK_CONTAINER_WIDTH = 800
FALLBACK_CONTAINER_HEIGHT = 500

# =============================================================================
# CROP REGION
# =============================================================================
# Minimum crop size (display pixels)
MIN_CROP_SIZE = 50

# Initial crop size relative to the displayed image
INITIAL_CROP_FILL = 0.8

# Hit area around each corner handle (display pixels, half-width)
HANDLE_SIZE = 12

# Tolerance used when checking the aspect lock
ASPECT_TOLERANCE = 1e-3

# Default aspect ratio for new sessions (None = unconstrained)
DEFAULT_ASPECT_RATIO = 1.0

# =============================================================================
# EXPORT
# =============================================================================
# Longer side of the exported raster (pixels)
OUTPUT_LONG_SIDE = 800
OUTPUT_LONG_SIDE_MIN = 16
OUTPUT_LONG_SIDE_MAX = 16384

# JPEG/WebP quality
JPEG_QUALITY_DEFAULT = 95
JPEG_QUALITY_MIN = 1
JPEG_QUALITY_MAX = 100

# PNG compression level (0-9, 9 = maximum compression)
PNG_COMPRESS_LEVEL = 9

# Media type used for sources that cannot be re-encoded in their own format
PSD_MEDIA_TYPE = "image/vnd.adobe.photoshop"
PSD_EXPORT_MEDIA_TYPE = "image/png"

# Map media types to Pillow encoder names
MEDIA_TYPE_FORMATS = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/pjpeg": "JPEG",
    "image/mpo": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
    "image/gif": "GIF",
    "image/bmp": "BMP",
    "image/x-ms-bmp": "BMP",
    "image/tiff": "TIFF",
}

# Formats whose encoder cannot store an alpha channel
OPAQUE_FORMATS = {"JPEG", "BMP"}

# =============================================================================
# DEFAULT SETTINGS: built-in fallback when settings.json is missing or corrupt
# =============================================================================
DEFAULT_SETTINGS = {
    "output_long_side": OUTPUT_LONG_SIDE,
    "quality": JPEG_QUALITY_DEFAULT,
    "aspect_ratio": DEFAULT_ASPECT_RATIO,
    "show_grid": False,
}

# Supported image extensions for the file picker
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".tiff", ".tif", ".webp", ".gif", ".psd"}
