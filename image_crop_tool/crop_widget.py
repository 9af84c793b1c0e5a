"""
Interactive crop editor widget and Qt helpers.

This module contains everything that touches both Qt **and** image display:
``pil_to_qpixmap``, the background ``DecodeThread`` and ``RenderThread``,
and the ``ImageCropWidget`` that draws a ``CropSession`` and forwards input
to it.
"""

from PIL import Image
from PyQt6.QtWidgets import QWidget, QSizePolicy
from PyQt6.QtCore import Qt, QRectF, QPointF, pyqtSignal, QThread
from PyQt6.QtGui import (
    QPainter, QPixmap, QColor, QPen, QBrush, QImage,
    QKeyEvent, QMouseEvent, QPaintEvent, QResizeEvent, QWheelEvent,
)

from image_crop_tool import image_io
from image_crop_tool.compositor import RenderJob, render_job
from image_crop_tool.config import HANDLE_SIZE
from image_crop_tool.crop_region import handle_positions
from image_crop_tool.models import DragMode, Handle, Rect
from image_crop_tool.session import CropSession, KeyboardSubscription

_KEY_NAMES = {
    Qt.Key.Key_R.value: "r",
    Qt.Key.Key_Escape.value: "escape",
    Qt.Key.Key_Return.value: "enter",
    Qt.Key.Key_Enter.value: "enter",
}


# =============================================================================
# Qt ↔ PIL helpers
# =============================================================================

def pil_to_qpixmap(pil_img: Image.Image) -> QPixmap:
    """Convert a PIL Image to QPixmap."""
    img_rgba = pil_img.convert("RGBA")
    data = img_rgba.tobytes("raw", "RGBA")
    qimg = QImage(data, img_rgba.width, img_rgba.height, QImage.Format.Format_RGBA8888)
    # QImage does not own ``data``; copy before it goes out of scope
    return QPixmap.fromImage(qimg.copy())


def _qrect(rect: Rect) -> QRectF:
    return QRectF(rect.x, rect.y, rect.width, rect.height)


# =============================================================================
# Background workers
# =============================================================================

class DecodeThread(QThread):
    """Background thread that decodes image bytes into an ``ImageSource``."""
    finished_ok = pyqtSignal(object)
    error = pyqtSignal(str)

    def __init__(self, data: bytes, media_type: str, parent=None):
        super().__init__(parent)
        self._data = data
        self._media_type = media_type

    def run(self):
        try:
            source = image_io.load(self._data, self._media_type)
        except Exception as e:
            self.error.emit(str(e))
            return
        self.finished_ok.emit(source)


class RenderThread(QThread):
    """Background thread that composites and encodes a detached ``RenderJob``."""
    finished_ok = pyqtSignal(object)
    error = pyqtSignal(object)

    def __init__(self, job: RenderJob, parent=None):
        super().__init__(parent)
        self._job = job

    def run(self):
        try:
            output = render_job(self._job)
        except Exception as e:
            self.error.emit(e)
            return
        finally:
            self._job.bitmap.close()
        self.finished_ok.emit(output)


# =============================================================================
# Image Crop Widget: draws the session and forwards input to it
# =============================================================================

class ImageCropWidget(QWidget):
    """Widget that displays an image with a pannable view and a resizable crop overlay."""

    crop_changed = pyqtSignal()
    view_changed = pyqtSignal()

    DIM_COLOR = QColor(0, 0, 0, 150)
    ACCENT_COLOR = QColor(37, 99, 235)

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setMinimumSize(400, 300)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setMouseTracking(True)

        self._session: CropSession | None = None
        self._keys: KeyboardSubscription | None = None
        self._pixmap: QPixmap | None = None
        self._loading = False

    def set_loading(self, loading: bool):
        """Show/hide loading indicator."""
        self._loading = loading
        self.update()

    def set_session(self, session: CropSession, on_confirm=None):
        """Display *session* (which must have an image attached) and bind its keys."""
        self.clear()
        self._loading = False
        self._session = session
        self._keys = session.subscribe_keys(on_confirm)
        self._pixmap = pil_to_qpixmap(session.source.bitmap)
        session.set_viewport_size(self.width(), self.height())
        self.update()

    def has_image(self) -> bool:
        """Return True if a session with an image is attached."""
        return self._session is not None and self._session.is_loaded

    def clear(self):
        if self._keys is not None:
            self._keys.close()
            self._keys = None
        self._session = None
        self._pixmap = None
        self.update()

    # --- Painting ---

    def paintEvent(self, event: QPaintEvent):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.fillRect(self.rect(), QColor(30, 30, 30))

        if not self.has_image() or self._pixmap is None:
            painter.setPen(QColor(128, 128, 128))
            msg = "Loading image…" if self._loading else "No image loaded"
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, msg)
            painter.end()
            return

        session = self._session
        display = session.image_rect

        # Draw the image turned counter-clockwise about the center of its layout rect
        center = display.center
        painter.save()
        painter.translate(center.x, center.y)
        painter.rotate(-session.transform.rotation_degrees)
        painter.drawPixmap(
            QRectF(-display.width / 2, -display.height / 2, display.width, display.height),
            self._pixmap,
            QRectF(self._pixmap.rect()),
        )
        painter.restore()

        if session.crop_mode:
            self._paint_crop_overlay(painter, _qrect(session.crop.rect))

        painter.end()

    def _paint_crop_overlay(self, painter: QPainter, crop_rect: QRectF):
        full = QRectF(self.rect())

        # Dim everything outside the crop
        painter.fillRect(QRectF(full.left(), full.top(), full.width(), crop_rect.top() - full.top()), self.DIM_COLOR)
        painter.fillRect(QRectF(full.left(), crop_rect.bottom(), full.width(), full.bottom() - crop_rect.bottom()), self.DIM_COLOR)
        painter.fillRect(QRectF(full.left(), crop_rect.top(), crop_rect.left() - full.left(), crop_rect.height()), self.DIM_COLOR)
        painter.fillRect(QRectF(crop_rect.right(), crop_rect.top(), full.right() - crop_rect.right(), crop_rect.height()), self.DIM_COLOR)

        # Rule-of-thirds grid
        if self._session.show_grid:
            pen_thirds = QPen(QColor(255, 255, 255, 80), 1, Qt.PenStyle.DashLine)
            painter.setPen(pen_thirds)
            for i in range(1, 3):
                x = crop_rect.left() + crop_rect.width() * i / 3
                painter.drawLine(QPointF(x, crop_rect.top()), QPointF(x, crop_rect.bottom()))
                y = crop_rect.top() + crop_rect.height() * i / 3
                painter.drawLine(QPointF(crop_rect.left(), y), QPointF(crop_rect.right(), y))

        # Crop border
        painter.setPen(QPen(QColor(255, 255, 255), 3))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawRect(crop_rect)

        # Corner handles
        painter.setPen(QPen(QColor(255, 255, 255), 2))
        painter.setBrush(QBrush(self.ACCENT_COLOR))
        for corner in handle_positions(self._session.crop.rect).values():
            painter.drawEllipse(QPointF(corner.x, corner.y), HANDLE_SIZE, HANDLE_SIZE)

        # Crop size label
        status = self._session.status()
        painter.setPen(QColor(255, 255, 255))
        painter.drawText(
            crop_rect.adjusted(0, -28, 0, 0).toRect(),
            Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignTop,
            f"{status.crop_width} × {status.crop_height} px",
        )

    def resizeEvent(self, event: QResizeEvent):
        if self._session is not None:
            self._session.set_viewport_size(self.width(), self.height())
            self.view_changed.emit()
        super().resizeEvent(event)

    # --- Mouse interaction ---

    def mousePressEvent(self, event: QMouseEvent):
        if event.button() != Qt.MouseButton.LeftButton or not self.has_image():
            return
        pos = event.position()
        self._session.pointer_down(pos.x(), pos.y())
        self._update_cursor(pos)

    def mouseMoveEvent(self, event: QMouseEvent):
        if not self.has_image():
            return
        pos = event.position()
        mode = self._session.interaction.mode
        if mode == DragMode.IDLE:
            self._update_cursor(pos)
            return

        self._session.pointer_move(pos.x(), pos.y())
        if mode == DragMode.PANNING_IMAGE:
            self.view_changed.emit()
        else:
            self.crop_changed.emit()
        self.update()

    def mouseReleaseEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.LeftButton and self.has_image():
            self._session.pointer_up()
            self._update_cursor(event.position())

    def leaveEvent(self, event):
        if self.has_image():
            self._session.pointer_leave()
        super().leaveEvent(event)

    def wheelEvent(self, event: QWheelEvent):
        if not self.has_image():
            return
        delta = event.angleDelta().y()
        if delta:
            # Qt reports scrolling away from the user as positive
            self._session.wheel(-delta)
            self.view_changed.emit()
            self.update()
        event.accept()

    def _update_cursor(self, pos: QPointF):
        interaction = self._session.interaction
        if interaction.is_dragging:
            mode, handle = interaction.mode, interaction.active_handle
        else:
            mode, handle = self._session.hover(pos.x(), pos.y())
        if mode == DragMode.RESIZING_CROP:
            if handle in (Handle.NW, Handle.SE):
                self.setCursor(Qt.CursorShape.SizeFDiagCursor)
            else:
                self.setCursor(Qt.CursorShape.SizeBDiagCursor)
        elif mode == DragMode.MOVING_CROP:
            self.setCursor(Qt.CursorShape.SizeAllCursor)
        elif interaction.mode == DragMode.PANNING_IMAGE:
            self.setCursor(Qt.CursorShape.ClosedHandCursor)
        else:
            self.setCursor(Qt.CursorShape.OpenHandCursor)

    # --- Keyboard ---

    def keyPressEvent(self, event: QKeyEvent):
        key = _KEY_NAMES.get(event.key())
        if key is None or self._keys is None:
            super().keyPressEvent(event)
            return
        modifiers = event.modifiers()
        ctrl = bool(modifiers & Qt.KeyboardModifier.ControlModifier)
        meta = bool(modifiers & Qt.KeyboardModifier.MetaModifier)
        if self._keys.dispatch(key, ctrl=ctrl, meta=meta):
            self.view_changed.emit()
            self.update()
        else:
            super().keyPressEvent(event)
