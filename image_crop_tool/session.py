"""
Crop session: the engine's external contract.

A ``CropSession`` owns the decoded bitmap and the interaction controller for
one editing session.  Hosts feed it input (pointer, wheel, keys, viewport
size), read its state back for drawing, and finish it with ``apply()`` (or
the ``begin_render``/``finish_render`` pair when rendering on a worker
thread) or ``cancel()``.  The bitmap is released when the session ends.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from image_crop_tool import image_io, viewport
from image_crop_tool.compositor import RenderJob, make_job, render_job
from image_crop_tool.config import DEFAULT_ASPECT_RATIO, JPEG_QUALITY_DEFAULT, OUTPUT_LONG_SIDE
from image_crop_tool.errors import RenderInProgress, SessionError
from image_crop_tool.image_io import ImageSource
from image_crop_tool.interaction import InteractionController
from image_crop_tool.models import (
    CropRegion, DragMode, Handle, InteractionState, Output, Rect, Size, ViewportTransform,
)

logger = logging.getLogger(__name__)

CropCallback = Callable[[Output], None]
CancelCallback = Callable[[], None]


@dataclass(frozen=True)
class SessionStatus:
    """Values shown in the host's status bar."""
    image_width: int
    image_height: int
    crop_width: int
    crop_height: int
    rotation_degrees: int
    zoom_percent: int
    crop_mode: bool


# =============================================================================
# Keyboard
# =============================================================================
class KeyboardSubscription:
    """Key bindings owned by a session: R rotates, Escape cancels, Ctrl/Cmd+Enter confirms.

    Hosts forward key presses to ``dispatch``; after ``close()`` (or the
    session closing) every key is ignored.
    """

    def __init__(self, session: "CropSession", on_confirm: Callable[[], object]):
        self._session: CropSession | None = session
        self._on_confirm = on_confirm

    @property
    def active(self) -> bool:
        return self._session is not None

    def dispatch(self, key: str, ctrl: bool = False, meta: bool = False) -> bool:
        """Handle a key press; returns True if it was consumed."""
        session = self._session
        if session is None:
            return False
        key = key.lower()
        if key == "r" and not (ctrl or meta):
            session.rotate()
            return True
        if key == "escape":
            session.cancel()
            return True
        if key in ("enter", "return") and (ctrl or meta):
            if session.crop_mode:
                self._on_confirm()
            return True
        return False

    def close(self) -> None:
        self._session = None


# =============================================================================
# Session
# =============================================================================
class CropSession:
    """One interactive crop of one image."""

    def __init__(
        self,
        on_crop: CropCallback | None = None,
        on_cancel: CancelCallback | None = None,
        aspect_ratio: float | None = DEFAULT_ASPECT_RATIO,
        output_long_side: int = OUTPUT_LONG_SIDE,
        quality: int = JPEG_QUALITY_DEFAULT,
        show_grid: bool = False,
    ):
        self._on_crop = on_crop
        self._on_cancel = on_cancel
        self._aspect_ratio = aspect_ratio or None
        self._output_long_side = output_long_side
        self._quality = quality
        self._show_grid = show_grid

        self._container = viewport.FALLBACK_CONTAINER
        self._source: ImageSource | None = None
        self._controller: InteractionController | None = None
        self._subscriptions: list[KeyboardSubscription] = []
        self._render_in_flight = False
        self._closed = False

    @classmethod
    def from_settings(cls, settings: dict, **kwargs) -> "CropSession":
        """Build a session from a settings dict; keyword arguments take precedence."""
        kwargs.setdefault("aspect_ratio", settings.get("aspect_ratio"))
        kwargs.setdefault("output_long_side", settings.get("output_long_side", OUTPUT_LONG_SIDE))
        kwargs.setdefault("quality", settings.get("quality", JPEG_QUALITY_DEFAULT))
        kwargs.setdefault("show_grid", settings.get("show_grid", False))
        return cls(**kwargs)

    # --- Lifecycle ---

    def open(self, data: bytes, media_type: str = "", viewport_size: Size | None = None) -> None:
        """Decode *data* and start editing it.

        Raises ``DecodeError``; on failure the session keeps no partial state.
        """
        self._ensure_open()
        source = image_io.load(data, media_type)
        self.attach(source, viewport_size)

    def attach(self, source: ImageSource, viewport_size: Size | None = None) -> None:
        """Start editing an already-decoded source; the session takes ownership."""
        self._ensure_open()
        if self._source is not None and self._source is not source:
            self._source.close()
        if viewport_size is not None:
            self._container = viewport.container_or_fallback(viewport_size.width, viewport_size.height)
        self._source = source
        self._controller = InteractionController(self._container, source.intrinsic_size, self._aspect_ratio)
        logger.debug(
            "Session attached %r in %sx%s container",
            source, self._container.width, self._container.height,
        )

    def close(self) -> None:
        """Release the bitmap and key bindings.  Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        for sub in self._subscriptions:
            sub.close()
        self._subscriptions.clear()
        if self._source is not None:
            self._source.close()
            self._source = None
        self._controller = None
        logger.debug("Session closed")

    def cancel(self) -> None:
        """Abort the session: release everything, then notify the host once."""
        if self._closed:
            return
        self.close()
        logger.info("Crop cancelled")
        if self._on_cancel is not None:
            self._on_cancel()

    def __enter__(self) -> "CropSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionError("session is closed")

    def _require_image(self) -> InteractionController:
        self._ensure_open()
        if self._controller is None:
            raise SessionError("no image loaded")
        return self._controller

    # --- State ---

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_loaded(self) -> bool:
        return self._controller is not None

    @property
    def source(self) -> ImageSource | None:
        return self._source

    @property
    def container(self) -> Size:
        return self._container

    @property
    def aspect_ratio(self) -> float | None:
        return self._aspect_ratio

    @property
    def transform(self) -> ViewportTransform:
        return self._require_image().transform

    @property
    def crop(self) -> CropRegion:
        return self._require_image().crop

    @property
    def image_rect(self) -> Rect:
        return self._require_image().image_rect

    @property
    def display_rect(self) -> Rect:
        return self._require_image().display_rect

    @property
    def interaction(self) -> InteractionState:
        return self._require_image().interaction

    @property
    def crop_mode(self) -> bool:
        return self._controller is not None and self._controller.crop_mode

    @property
    def show_grid(self) -> bool:
        return self._show_grid

    @property
    def render_in_flight(self) -> bool:
        return self._render_in_flight

    def status(self) -> SessionStatus:
        controller = self._require_image()
        rect = controller.crop.rect
        transform = controller.transform
        return SessionStatus(
            image_width=self._source.intrinsic_width,
            image_height=self._source.intrinsic_height,
            crop_width=round(rect.width),
            crop_height=round(rect.height),
            rotation_degrees=transform.rotation_degrees,
            zoom_percent=round(transform.scale * 100),
            crop_mode=controller.crop_mode,
        )

    # --- View controls ---

    def set_viewport_size(self, width: float, height: float) -> None:
        """Re-supply the rendering surface size; unmeasurable sizes fall back to 800x500."""
        if self._closed:
            return
        self._container = viewport.container_or_fallback(width, height)
        if self._controller is not None:
            self._controller.resize_container(self._container)

    def zoom_in(self) -> None:
        if self._controller is not None:
            self._controller.zoom(1)

    def zoom_out(self) -> None:
        if self._controller is not None:
            self._controller.zoom(-1)

    def wheel(self, delta_y: float) -> None:
        if self._controller is not None:
            self._controller.wheel(delta_y)

    def rotate(self) -> None:
        if self._controller is not None:
            self._controller.rotate()
            logger.debug("Rotated to %d°", self._controller.transform.rotation_degrees)

    def reset(self) -> None:
        if self._controller is not None:
            self._controller.reset()

    def set_crop_mode(self, enabled: bool) -> None:
        if self._controller is not None:
            self._controller.set_crop_mode(enabled)

    def toggle_crop_mode(self) -> None:
        self.set_crop_mode(not self.crop_mode)

    def toggle_grid(self) -> None:
        self._show_grid = not self._show_grid

    # --- Pointer input (never raises) ---

    def pointer_down(self, x: float, y: float) -> None:
        if self._controller is not None:
            self._controller.pointer_down(x, y)

    def pointer_move(self, x: float, y: float) -> None:
        if self._controller is not None:
            self._controller.pointer_move(x, y)

    def pointer_up(self) -> None:
        if self._controller is not None:
            self._controller.pointer_up()

    def pointer_leave(self) -> None:
        if self._controller is not None:
            self._controller.pointer_leave()

    def hover(self, x: float, y: float) -> tuple[DragMode, Handle]:
        if self._controller is None:
            return DragMode.IDLE, Handle.NONE
        return self._controller.hover(x, y)

    def subscribe_keys(self, on_confirm: Callable[[], object] | None = None) -> KeyboardSubscription:
        """Bind the session's keys; the subscription ends when the session closes."""
        self._ensure_open()
        sub = KeyboardSubscription(self, on_confirm or self.apply)
        self._subscriptions.append(sub)
        return sub

    # --- Rendering ---

    def begin_render(self, detach: bool = True) -> RenderJob:
        """Snapshot the current crop for rendering.

        With ``detach`` the job owns a copy of the bitmap, so the session may
        be cancelled while the job runs elsewhere.  Only one render may be in
        flight at a time, and only while crop mode is on.
        """
        controller = self._require_image()
        if not controller.crop_mode:
            raise SessionError("crop mode is off")
        if self._render_in_flight:
            raise RenderInProgress("a render is already in progress")
        job = make_job(
            self._source, controller.transform, controller.crop, self._container,
            self._output_long_side, self._quality, detach=detach,
        )
        self._render_in_flight = True
        return job

    def finish_render(self, output: Output) -> bool:
        """Deliver a finished render; returns False if the session ended meanwhile."""
        self._render_in_flight = False
        if self._closed:
            logger.debug("Discarding %dx%d render for closed session", output.width, output.height)
            return False
        self.close()
        logger.info("Crop applied: %dx%d %s", output.width, output.height, output.media_type)
        if self._on_crop is not None:
            self._on_crop(output)
        return True

    def fail_render(self, exc: BaseException) -> None:
        """Record a failed render; the session stays open for retry or cancel."""
        self._render_in_flight = False
        logger.warning("Render failed: %s", exc)

    def apply(self) -> Output:
        """Render synchronously, hand the output to ``on_crop`` and end the session."""
        job = self.begin_render(detach=False)
        try:
            output = render_job(job)
        except Exception as exc:
            self.fail_render(exc)
            raise
        self.finish_render(output)
        return output
