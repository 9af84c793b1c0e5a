"""Exception hierarchy for the crop engine."""


class CropToolError(Exception):
    """Base class for all errors raised by the crop engine."""


class DecodeError(CropToolError):
    """Raised when input bytes are not a decodable raster image."""


class CompositeError(CropToolError):
    """Base class for failures while producing the output raster."""


class DegenerateRegion(CompositeError):
    """Raised when the crop maps to a rectangle with no area."""


class EncodeError(CompositeError):
    """Raised when the output raster cannot be encoded."""


class ResourceUnavailable(CropToolError):
    """Raised when the rendering surface cannot be measured yet."""


class SessionError(CropToolError):
    """Raised when a session operation is used out of order."""


class RenderInProgress(SessionError):
    """Raised when a second render is requested while one is in flight."""


class SettingsError(CropToolError):
    """Raised when settings data fails validation."""
