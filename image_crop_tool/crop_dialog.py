"""
Crop editor dialog.

Hosts one ``CropSession``: decodes the input on a background thread, shows
the editor widget with zoom/rotate/crop-mode controls and a status bar, and
renders the final output on a background thread when the user confirms.
"""

import logging

from PyQt6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QPushButton, QLabel,
    QMessageBox, QToolBar, QWidget, QSizePolicy,
)
from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction

from image_crop_tool.crop_widget import DecodeThread, ImageCropWidget, RenderThread
from image_crop_tool.errors import CropToolError
from image_crop_tool.image_io import ImageSource
from image_crop_tool.models import Output, Size
from image_crop_tool.session import CropSession
from image_crop_tool.settings import aspect_label

logger = logging.getLogger(__name__)


class CropDialog(QDialog):
    """Modal editor for cropping one image.

    ``on_crop`` receives the ``Output`` once the user confirms; ``on_cancel``
    is called when they abort.  After ``exec()`` the result is also
    available as ``output`` (None when cancelled or failed).
    """

    def __init__(
        self,
        data: bytes,
        media_type: str,
        settings: dict,
        on_crop=None,
        on_cancel=None,
        title: str = "Crop Image",
        parent=None,
    ):
        super().__init__(parent)
        self.setWindowTitle(title)
        self.setMinimumSize(720, 600)
        self.resize(960, 720)

        self._data = data
        self._media_type = media_type
        self._host_on_crop = on_crop
        self._host_on_cancel = on_cancel
        self._loader: DecodeThread | None = None
        self._renderer: RenderThread | None = None
        self.output: Output | None = None
        self.error_message: str | None = None

        self._session = CropSession.from_settings(
            settings,
            on_crop=self._handle_crop,
            on_cancel=self._handle_cancel,
        )

        self._build_ui()
        self._update_controls()
        self._start_decode()

    # =========================================================================
    # UI construction
    # =========================================================================

    def _build_ui(self):
        layout = QVBoxLayout(self)
        layout.setContentsMargins(8, 8, 8, 8)

        layout.addWidget(self._build_toolbar())

        hint = QLabel(
            "Drag the image to move it, scroll to zoom, press R to rotate. "
            "In crop mode, drag the frame to reposition it and the corners to resize it."
        )
        hint.setWordWrap(True)
        hint.setStyleSheet("color: #aaa; padding: 4px;")
        layout.addWidget(hint)

        self._crop_widget = ImageCropWidget()
        self._crop_widget.crop_changed.connect(self._update_controls)
        self._crop_widget.view_changed.connect(self._update_controls)
        layout.addWidget(self._crop_widget, stretch=1)

        self._status_label = QLabel("")
        self._status_label.setStyleSheet("color: #aaa; font-size: 9pt; padding: 2px;")
        layout.addWidget(self._status_label)

        buttons = QHBoxLayout()
        buttons.addStretch()
        self._btn_cancel = QPushButton("Cancel")
        self._btn_cancel.clicked.connect(self._cancel)
        buttons.addWidget(self._btn_cancel)
        self._btn_apply = QPushButton("✂ Apply Changes")
        self._btn_apply.setToolTip("Crop and export (Ctrl+Enter)")
        self._btn_apply.clicked.connect(self._apply)
        buttons.addWidget(self._btn_apply)
        layout.addLayout(buttons)

    def _build_toolbar(self) -> QToolBar:
        toolbar = QToolBar("Crop")
        toolbar.setMovable(False)

        self._act_zoom_out = QAction("➖", self)
        self._act_zoom_out.setToolTip("Zoom out")
        self._act_zoom_out.triggered.connect(self._zoom_out)
        toolbar.addAction(self._act_zoom_out)

        self._zoom_label = QLabel("100%")
        self._zoom_label.setMinimumWidth(60)
        self._zoom_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        toolbar.addWidget(self._zoom_label)

        self._act_zoom_in = QAction("➕", self)
        self._act_zoom_in.setToolTip("Zoom in")
        self._act_zoom_in.triggered.connect(self._zoom_in)
        toolbar.addAction(self._act_zoom_in)

        toolbar.addSeparator()

        self._act_rotate = QAction("⟲ Rotate", self)
        self._act_rotate.setToolTip("Rotate 90° (R)")
        self._act_rotate.triggered.connect(self._rotate)
        toolbar.addAction(self._act_rotate)

        self._act_crop_mode = QAction("✂ Crop", self)
        self._act_crop_mode.setToolTip("Toggle crop mode")
        self._act_crop_mode.setCheckable(True)
        self._act_crop_mode.toggled.connect(self._set_crop_mode)
        toolbar.addAction(self._act_crop_mode)

        self._act_grid = QAction("▦ Grid", self)
        self._act_grid.setToolTip("Toggle grid overlay")
        self._act_grid.setCheckable(True)
        self._act_grid.setChecked(self._session.show_grid)
        self._act_grid.toggled.connect(self._toggle_grid)
        toolbar.addAction(self._act_grid)

        self._act_reset = QAction("↺ Reset", self)
        self._act_reset.setToolTip("Reset zoom, rotation and crop")
        self._act_reset.triggered.connect(self._reset)
        toolbar.addAction(self._act_reset)

        spacer = QWidget()
        spacer.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Preferred)
        toolbar.addWidget(spacer)
        toolbar.addWidget(QLabel(f"Aspect: {aspect_label(self._session.aspect_ratio)}"))
        return toolbar

    # =========================================================================
    # Loading
    # =========================================================================

    def _start_decode(self):
        if self._loader is not None and self._loader.isRunning():
            return
        self._crop_widget.set_loading(True)
        self._loader = DecodeThread(self._data, self._media_type, self)
        self._loader.finished_ok.connect(self._on_decoded)
        self._loader.error.connect(self._on_decode_error)
        self._loader.start()

    def _on_decoded(self, source: ImageSource):
        if self._session.closed:
            source.close()
            return
        size = Size(self._crop_widget.width(), self._crop_widget.height())
        self._session.attach(source, size)
        self._crop_widget.set_session(self._session, on_confirm=self._apply)
        self._crop_widget.setFocus()
        self._update_controls()

    def _on_decode_error(self, error: str):
        self._crop_widget.set_loading(False)
        self.error_message = error
        logger.error("Could not decode image: %s", error)
        QMessageBox.critical(self, "Cannot open image", f"This file could not be opened:\n\n{error}")
        self._cancel()

    # =========================================================================
    # Controls
    # =========================================================================

    def _zoom_in(self):
        self._session.zoom_in()
        self._refresh()

    def _zoom_out(self):
        self._session.zoom_out()
        self._refresh()

    def _rotate(self):
        self._session.rotate()
        self._refresh()

    def _reset(self):
        self._session.reset()
        self._refresh()

    def _set_crop_mode(self, enabled: bool):
        self._session.set_crop_mode(enabled)
        self._refresh()

    def _toggle_grid(self, _checked: bool):
        self._session.toggle_grid()
        self._refresh()

    def _refresh(self):
        self._crop_widget.update()
        self._update_controls()

    def _update_controls(self):
        loaded = self._session.is_loaded
        busy = self._session.render_in_flight
        for action in (self._act_zoom_in, self._act_zoom_out, self._act_rotate,
                       self._act_crop_mode, self._act_grid, self._act_reset):
            action.setEnabled(loaded and not busy)
        self._btn_apply.setEnabled(loaded and self._session.crop_mode and not busy)

        if not loaded:
            self._status_label.setText("")
            return

        status = self._session.status()
        self._zoom_label.setText(f"{status.zoom_percent}%")
        self._act_zoom_in.setEnabled(not busy and status.zoom_percent < 300)
        self._act_zoom_out.setEnabled(not busy and status.zoom_percent > 50)
        if self._act_crop_mode.isChecked() != status.crop_mode:
            self._act_crop_mode.blockSignals(True)
            self._act_crop_mode.setChecked(status.crop_mode)
            self._act_crop_mode.blockSignals(False)

        parts = [f"Image: {status.image_width} × {status.image_height}px"]
        if status.crop_mode:
            parts.append(f"Crop: {status.crop_width} × {status.crop_height}px")
        if status.rotation_degrees:
            parts.append(f"Rotated: {status.rotation_degrees}°")
        if busy:
            parts.append("Exporting…")
        self._status_label.setText("  •  ".join(parts))

    # =========================================================================
    # Apply / cancel
    # =========================================================================

    def _apply(self):
        if not self._session.is_loaded or not self._session.crop_mode:
            return
        if self._renderer is not None and self._renderer.isRunning():
            return
        try:
            job = self._session.begin_render()
        except CropToolError as exc:
            logger.warning("Cannot start render: %s", exc)
            return
        self._renderer = RenderThread(job, self)
        self._renderer.finished_ok.connect(self._on_rendered)
        self._renderer.error.connect(self._on_render_error)
        self._renderer.start()
        self._update_controls()

    def _on_rendered(self, output: Output):
        # Invokes _handle_crop unless the session was cancelled meanwhile
        self._session.finish_render(output)

    def _on_render_error(self, exc: Exception):
        self._session.fail_render(exc)
        self._update_controls()
        QMessageBox.warning(
            self, "Export failed",
            f"The cropped image could not be created:\n\n{exc}\n\nAdjust the crop and try again, or cancel.",
        )

    def _cancel(self):
        if self._session.closed:
            self.reject()
            return
        self._session.cancel()

    def _handle_crop(self, output: Output):
        self.output = output
        self._crop_widget.clear()
        if self._host_on_crop is not None:
            self._host_on_crop(output)
        self.accept()

    def _handle_cancel(self):
        self._crop_widget.clear()
        if self._host_on_cancel is not None:
            self._host_on_cancel()
        self.reject()

    def reject(self):
        # Escape and the window close button land here as well
        if not self._session.closed:
            self._session.cancel()
            return
        super().reject()

    def closeEvent(self, event):
        if not self._session.closed:
            self._session.cancel()
        for thread in (self._loader, self._renderer):
            if thread is not None and thread.isRunning():
                thread.wait()
        super().closeEvent(event)
