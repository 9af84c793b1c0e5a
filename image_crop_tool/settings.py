"""
Settings persistence: load, save, and validate user preferences.

Runtime settings are stored in a JSON file in the user's config directory
(provided by ``config.config_dir()``).  On first launch (or if the file is
missing/corrupt), the file is created from DEFAULT_SETTINGS.  This module is
Qt-free.

The on-disk format uses a versioned envelope::

    {"version": 1, "settings": {"output_long_side": 800, "quality": 95,
                                "aspect_ratio": 1.0, "show_grid": false}}

``aspect_ratio`` is ``null`` for a free (unconstrained) crop.
"""

import json
import logging
from copy import deepcopy
from fractions import Fraction
from pathlib import Path

from image_crop_tool.config import (
    DEFAULT_SETTINGS, JPEG_QUALITY_MAX, JPEG_QUALITY_MIN,
    OUTPUT_LONG_SIDE_MAX, OUTPUT_LONG_SIDE_MIN, config_dir,
)
from image_crop_tool.errors import SettingsError

logger = logging.getLogger(__name__)

_SETTINGS_FILENAME = "settings.json"
_FORMAT_VERSION = 1

_FREE_ASPECT_NAMES = {"free", "none", "any", ""}


# =============================================================================
# Aspect-ratio helpers
# =============================================================================
def parse_aspect_ratio(text: str) -> float | None:
    """Parse '16:9', '4/3', '1.5' or 'free' into a ratio (None = unconstrained).

    Raises ValueError for malformed or non-positive input.
    """
    value = text.strip().lower()
    if value in _FREE_ASPECT_NAMES:
        return None
    for sep in (":", "/", "x"):
        if sep in value:
            w_text, h_text = value.split(sep, 1)
            w, h = float(w_text), float(h_text)
            break
    else:
        w, h = float(value), 1.0
    if w <= 0 or h <= 0:
        raise ValueError(f"aspect ratio must be positive, got {text!r}")
    return w / h


def aspect_label(ratio: float | None) -> str:
    """Human-readable label for a ratio. 1.7777 → '16:9', None → 'Free'"""
    if ratio is None:
        return "Free"
    frac = Fraction(ratio).limit_denominator(32)
    if abs(float(frac) - ratio) < 1e-3:
        return f"{frac.numerator}:{frac.denominator}"
    return f"{ratio:.3g}:1"


# =============================================================================
# Config directory helpers
# =============================================================================
def _settings_path() -> Path:
    """Return the full path to settings.json."""
    return config_dir() / _SETTINGS_FILENAME


# =============================================================================
# Validation
# =============================================================================
def validate_settings(data: object) -> list[str]:
    """
    Validate a settings dict.

    Returns a list of error strings (empty means valid).
    """
    errors: list[str] = []

    if not isinstance(data, dict):
        errors.append("Settings data must be a dict")
        return errors

    missing = DEFAULT_SETTINGS.keys() - data.keys()
    if missing:
        errors.append(f"missing keys: {', '.join(sorted(missing))}")

    long_side = data.get("output_long_side")
    if "output_long_side" in data and (
        not isinstance(long_side, int) or isinstance(long_side, bool)
        or not OUTPUT_LONG_SIDE_MIN <= long_side <= OUTPUT_LONG_SIDE_MAX
    ):
        errors.append(
            f"output_long_side must be an integer in "
            f"[{OUTPUT_LONG_SIDE_MIN}, {OUTPUT_LONG_SIDE_MAX}], got {long_side!r}"
        )

    quality = data.get("quality")
    if "quality" in data and (
        not isinstance(quality, int) or isinstance(quality, bool)
        or not JPEG_QUALITY_MIN <= quality <= JPEG_QUALITY_MAX
    ):
        errors.append(f"quality must be an integer in [{JPEG_QUALITY_MIN}, {JPEG_QUALITY_MAX}], got {quality!r}")

    ratio = data.get("aspect_ratio")
    if ratio is not None and (not isinstance(ratio, (int, float)) or isinstance(ratio, bool) or ratio <= 0):
        errors.append(f"aspect_ratio must be a positive number or null, got {ratio!r}")

    grid = data.get("show_grid")
    if "show_grid" in data and not isinstance(grid, bool):
        errors.append(f"show_grid must be a boolean, got {grid!r}")

    unknown = data.keys() - DEFAULT_SETTINGS.keys()
    if unknown:
        errors.append(f"unknown keys: {', '.join(sorted(unknown))}")

    return errors


# =============================================================================
# Load / Save
# =============================================================================
def load_settings() -> dict:
    """
    Load settings from settings.json.

    If the file is missing, corrupt, or fails validation, writes the
    defaults and returns them.
    """
    path = _settings_path()

    if not path.exists():
        logger.info("settings.json not found — creating with defaults at %s", path)
        _write_defaults(path)
        return deepcopy(DEFAULT_SETTINGS)

    try:
        text = path.read_text(encoding="utf-8")
        raw = json.loads(text)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read settings.json (%s) — restoring defaults", exc)
        _write_defaults(path)
        return deepcopy(DEFAULT_SETTINGS)

    if not isinstance(raw, dict) or raw.get("version") != _FORMAT_VERSION or "settings" not in raw:
        logger.warning("settings.json missing version envelope — restoring defaults")
        _write_defaults(path)
        return deepcopy(DEFAULT_SETTINGS)

    data = raw["settings"]
    errors = validate_settings(data)
    if errors:
        logger.warning(
            "settings.json validation failed:\n  %s\nRestoring defaults.",
            "\n  ".join(errors),
        )
        _write_defaults(path)
        return deepcopy(DEFAULT_SETTINGS)

    return data


def save_settings(settings: dict) -> None:
    """
    Validate and write settings to settings.json in versioned envelope.

    Raises SettingsError if validation fails.
    Raises OSError if the file cannot be written.
    """
    errors = validate_settings(settings)
    if errors:
        raise SettingsError("Invalid settings data:\n  " + "\n  ".join(errors))

    envelope = {"version": _FORMAT_VERSION, "settings": settings}
    path = _settings_path()
    path.write_text(json.dumps(envelope, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Saved settings to %s", path)


def _write_defaults(path: Path) -> None:
    """Write DEFAULT_SETTINGS to the given path in versioned envelope."""
    try:
        envelope = {"version": _FORMAT_VERSION, "settings": deepcopy(DEFAULT_SETTINGS)}
        path.write_text(
            json.dumps(envelope, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
    except OSError as exc:
        logger.error("Could not write default settings to %s: %s", path, exc)
