"""
RefViewer Crop Overlay
Full-screen, frameless, topmost surface showing a captured frame so the
user can drag out a crop rectangle or take the whole frame.

Drag: crop  |  Enter / double-click: full frame  |  Esc / right-click: cancel
"""

from PyQt5.QtWidgets import QWidget
from PyQt5.QtGui import QPainter, QColor, QPen, QFont, QPainterPath
from PyQt5.QtCore import Qt, QRect, QPoint, QTimer, pyqtSignal

from refviewer.capture import pixmap_from_bytes
from refviewer.models import CropRect


class CropOverlay(QWidget):
    """Overlay covering one display."""

    region_selected = pyqtSignal(QRect)   # in frame pixels
    full_frame_requested = pyqtSignal()
    cancelled = pyqtSignal()

    # Drags smaller than this are treated as clicks
    MIN_SELECTION = 3

    def __init__(self, display, frame, parent=None):
        super().__init__(parent)
        self.frame = pixmap_from_bytes(frame)
        self.selecting = False
        self.start_pos = QPoint()
        self.end_pos = QPoint()
        self.current_pos = QPoint()
        self._finished = False

        self.overlay_color = QColor(0, 0, 0, 120)
        self.selection_border = QColor("#89b4fa")
        self.crosshair_color = QColor("#cdd6f4")
        self.text_color = QColor("#cdd6f4")
        self.text_bg = QColor(30, 30, 46, 200)

        self.setWindowFlags(
            Qt.WindowStaysOnTopHint |
            Qt.FramelessWindowHint |
            Qt.Tool
        )
        self.setCursor(Qt.CrossCursor)
        self.setMouseTracking(True)

        self._display_geo = QRect(display.x, display.y, display.width, display.height)
        self.setFixedSize(display.width, display.height)
        self.move(display.x, display.y)

    def show_spanning(self):
        self.show()
        self.setGeometry(self._display_geo)
        self.activateWindow()
        self.raise_()

    def close_silently(self):
        self._finished = True
        self.hide()
        self.close()

    # --- Coordinate mapping (frame may be in device pixels) ---

    def _to_frame_rect(self, rect):
        sx = self.frame.width() / max(1, self.width())
        sy = self.frame.height() / max(1, self.height())
        left = round(rect.x() * sx)
        top = round(rect.y() * sy)
        right = min(self.frame.width(), round((rect.x() + rect.width()) * sx))
        bottom = min(self.frame.height(), round((rect.y() + rect.height()) * sy))
        return QRect(left, top, right - left, bottom - top)

    # --- Painting ---

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing)
        painter.drawPixmap(self.rect(), self.frame)

        if self.selecting and self.start_pos != self.end_pos:
            selection = QRect(self.start_pos, self.end_pos).normalized()
            self._draw_overlay_with_hole(painter, selection)
            self._draw_selection_border(painter, selection)
            self._draw_dimensions(painter, selection)
        else:
            painter.fillRect(self.rect(), self.overlay_color)
            self._draw_crosshair(painter)

        self._draw_mode_hint(painter)
        painter.end()

    def _draw_overlay_with_hole(self, painter, selection):
        path = QPainterPath()
        path.addRect(0, 0, self.width(), self.height())
        hole = QPainterPath()
        hole.addRect(selection.x(), selection.y(),
                     selection.width(), selection.height())
        painter.fillPath(path.subtracted(hole), self.overlay_color)

    def _draw_selection_border(self, painter, selection):
        painter.setPen(QPen(self.selection_border, 2, Qt.SolidLine))
        painter.setBrush(Qt.NoBrush)
        painter.drawRect(selection)

    def _draw_dimensions(self, painter, selection):
        frame_rect = self._to_frame_rect(selection)
        text = f"{frame_rect.width()} x {frame_rect.height()}"
        painter.setFont(QFont("Segoe UI", 10))
        fm = painter.fontMetrics()
        text_w = fm.horizontalAdvance(text) + 16
        text_h = fm.height() + 8
        tx = selection.center().x() - text_w // 2
        ty = selection.bottom() + 8
        if ty + text_h > self.height():
            ty = selection.top() - text_h - 8
        tx = max(4, min(tx, self.width() - text_w - 4))
        painter.setBrush(self.text_bg)
        painter.setPen(Qt.NoPen)
        painter.drawRoundedRect(tx, ty, text_w, text_h, 4, 4)
        painter.setPen(self.text_color)
        painter.drawText(tx + 8, ty + fm.ascent() + 4, text)

    def _draw_crosshair(self, painter):
        pos = self.current_pos
        painter.setPen(QPen(self.crosshair_color, 1, Qt.DashLine))
        painter.drawLine(pos.x(), 0, pos.x(), self.height())
        painter.drawLine(0, pos.y(), self.width(), pos.y())

    def _draw_mode_hint(self, painter):
        label = "Drag: crop  |  Enter: whole screen  |  Esc: cancel"
        painter.setFont(QFont("Segoe UI", 9))
        fm = painter.fontMetrics()
        tw = fm.horizontalAdvance(label) + 20
        th = fm.height() + 10
        x = (self.width() - tw) // 2
        y = 10
        painter.setBrush(self.text_bg)
        painter.setPen(Qt.NoPen)
        painter.drawRoundedRect(x, y, tw, th, 5, 5)
        painter.setPen(self.text_color)
        painter.drawText(x + 10, y + fm.ascent() + 5, label)

    # --- Results ---

    def _finish(self, emit):
        if self._finished:
            return
        self._finished = True
        self.hide()
        QTimer.singleShot(50, emit)

    # --- Mouse / keyboard ---

    def mousePressEvent(self, event):
        if event.button() == Qt.LeftButton:
            self.selecting = True
            self.start_pos = event.pos()
            self.end_pos = event.pos()
            self.update()
        elif event.button() == Qt.RightButton:
            self._finish(self.cancelled.emit)

    def mouseMoveEvent(self, event):
        self.current_pos = event.pos()
        if self.selecting:
            self.end_pos = event.pos()
        self.update()

    def mouseReleaseEvent(self, event):
        if event.button() != Qt.LeftButton or not self.selecting:
            return
        self.selecting = False
        self.end_pos = event.pos()
        selection = QRect(self.start_pos, self.end_pos).normalized()
        selection = selection.intersected(self.rect())
        if selection.width() >= self.MIN_SELECTION and selection.height() >= self.MIN_SELECTION:
            rect = self._to_frame_rect(selection)
            self._finish(lambda r=QRect(rect): self.region_selected.emit(r))
        else:
            self.update()

    def mouseDoubleClickEvent(self, event):
        if event.button() == Qt.LeftButton:
            self._finish(self.full_frame_requested.emit)

    def keyPressEvent(self, event):
        if event.key() == Qt.Key_Escape:
            self._finish(self.cancelled.emit)
        elif event.key() in (Qt.Key_Return, Qt.Key_Enter):
            self._finish(self.full_frame_requested.emit)
        else:
            super().keyPressEvent(event)


class OverlayHandle:
    """What CaptureSession holds on to; close() never reports back."""

    def __init__(self, overlay):
        self._overlay = overlay

    def close(self):
        if self._overlay is not None:
            self._overlay.close_silently()
            self._overlay = None


def open_crop_overlay(display, frame, on_region, on_full_frame, on_cancel):
    """Overlay factory with the signature CaptureSession expects."""
    overlay = CropOverlay(display, frame)
    overlay.region_selected.connect(
        lambda r: on_region(CropRect(r.x(), r.y(), r.width(), r.height()))
    )
    overlay.full_frame_requested.connect(on_full_frame)
    overlay.cancelled.connect(on_cancel)
    overlay.show_spanning()
    return OverlayHandle(overlay)
