"""
RefViewer Viewer Window
Shows the current image and turns menu actions, drops and pastes into
channel requests. Receives imageLoaded / cleared / notice / error / palette
messages back from its Session.
"""

from PyQt5.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QToolBar, QAction,
    QLabel, QScrollArea, QFileDialog, QApplication, QDialog, QFormLayout,
    QSpinBox, QDialogButtonBox, QPushButton
)
from PyQt5.QtGui import QKeySequence
from PyQt5.QtCore import Qt, pyqtSignal

from refviewer.capture import clipboard_image_bytes, image_to_png, pixmap_from_bytes
from refviewer.config import config
from refviewer.logger import log
from refviewer.settings_dialog import SettingsDialog
from refviewer.theme import apply_theme

OPEN_FILTER = "Images (*.png *.jpg *.jpeg *.bmp *.gif *.tiff *.tif *.webp);;All Files (*)"


class CropDialog(QDialog):
    """Numeric crop rectangle entry, bounded by the image size."""

    def __init__(self, width, height, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Crop Image")
        layout = QFormLayout(self)

        self.x_spin = self._spin(0, width - 1, 0)
        self.y_spin = self._spin(0, height - 1, 0)
        self.w_spin = self._spin(1, width, width)
        self.h_spin = self._spin(1, height, height)
        layout.addRow("X:", self.x_spin)
        layout.addRow("Y:", self.y_spin)
        layout.addRow("Width:", self.w_spin)
        layout.addRow("Height:", self.h_spin)

        buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addRow(buttons)

    @staticmethod
    def _spin(lo, hi, value):
        spin = QSpinBox()
        spin.setRange(lo, max(lo, hi))
        spin.setValue(value)
        return spin

    def params(self):
        return {"x": self.x_spin.value(), "y": self.y_spin.value(),
                "w": self.w_spin.value(), "h": self.h_spin.value()}


class PaletteBar(QWidget):
    """Row of swatch buttons; clicking copies the hex value."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self._layout = QHBoxLayout(self)
        self._layout.setContentsMargins(4, 2, 4, 2)
        self._layout.setSpacing(3)
        self.setStyleSheet("background: #181825;")
        self.hide()

    def set_swatches(self, swatches):
        self.clear()
        for swatch in swatches:
            btn = QPushButton(swatch.hex)
            btn.setFixedHeight(22)
            fg = "#1e1e2e" if swatch.label.startswith("Light") else "#cdd6f4"
            btn.setStyleSheet(
                f"QPushButton {{ background-color: {swatch.hex}; color: {fg};"
                f" border: 1px solid #45475a; border-radius: 3px; padding: 0 6px; }}"
            )
            if config.TOOLTIPS:
                btn.setToolTip(f"{swatch.label} ({swatch.population} px)")
            btn.clicked.connect(
                lambda checked, h=swatch.hex: QApplication.clipboard().setText(h))
            self._layout.addWidget(btn)
        self._layout.addStretch()
        self.setVisible(bool(swatches))

    def clear(self):
        while self._layout.count():
            item = self._layout.takeAt(0)
            if item.widget():
                item.widget().deleteLater()
        self.hide()


class ViewerWindow(QMainWindow):
    """Reference image window. Also the origin window for captures."""

    requested = pyqtSignal(str, tuple)      # request name, args
    new_window_requested = pyqtSignal()
    closed = pyqtSignal(object)             # emits self

    def __init__(self, parent=None):
        super().__init__(parent)
        self._pixmap = None
        self._zoom = float(config.ZOOM) or 1.0

        self.setWindowTitle("RefViewer")
        self.setMinimumSize(480, 360)
        self.setAcceptDrops(True)

        central = QWidget()
        layout = QVBoxLayout(central)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        self.palette_bar = PaletteBar()
        layout.addWidget(self.palette_bar)

        self.image_label = QLabel("Drop, paste or open an image")
        self.image_label.setAlignment(Qt.AlignCenter)
        self.image_label.setStyleSheet("color: #6c7086; font-size: 12pt;")

        self.scroll_area = QScrollArea()
        self.scroll_area.setWidget(self.image_label)
        self.scroll_area.setWidgetResizable(True)
        self.scroll_area.setAlignment(Qt.AlignCenter)
        self.scroll_area.setStyleSheet("QScrollArea { background-color: #11111b; border: none; }")
        layout.addWidget(self.scroll_area)

        self.setCentralWidget(central)
        self._create_menubar()
        self._create_toolbar()
        self.statusBar().showMessage("  Ready")

    # --- Origin window interface for captures ---

    def position(self):
        return (self.x(), self.y())

    # --- Actions ---

    def _action(self, text, handler, shortcut=None, tooltip=None):
        action = QAction(text, self)
        if shortcut:
            action.setShortcut(QKeySequence(shortcut))
        if tooltip and config.TOOLTIPS:
            action.setToolTip(tooltip)
        action.triggered.connect(handler)
        return action

    def _request(self, name, *args):
        self.requested.emit(name, args)

    def _create_menubar(self):
        menubar = self.menuBar()

        file_menu = menubar.addMenu("&File")
        file_menu.addAction(self._action("&Open...", self.open_file, QKeySequence.Open))
        file_menu.addAction(self._action("&Paste Image", self.paste_image, QKeySequence.Paste))
        file_menu.addAction(self._action("Take &Screenshot", lambda: self._request("startCapture"),
                                         "Ctrl+Shift+S"))
        file_menu.addSeparator()
        file_menu.addAction(self._action("Save &As...", lambda: self._request("save"),
                                         QKeySequence.SaveAs))
        file_menu.addSeparator()
        file_menu.addAction(self._action("&New Window", lambda: self.new_window_requested.emit(),
                                         QKeySequence.New))
        file_menu.addAction(self._action("Close", self.close, "Ctrl+W"))

        edit_menu = menubar.addMenu("&Edit")
        edit_menu.addAction(self._action("&Undo", lambda: self._request("undo"), QKeySequence.Undo))
        edit_menu.addSeparator()
        edit_menu.addAction(self._action("Rotate &Left", lambda: self._edit("rotateLeft"), "Ctrl+L"))
        edit_menu.addAction(self._action("Rotate &Right", lambda: self._edit("rotateRight"), "Ctrl+R"))
        edit_menu.addAction(self._action("Flip &Horizontal", lambda: self._edit("flipHorizontal"), "Ctrl+H"))
        edit_menu.addAction(self._action("Flip &Vertical", lambda: self._edit("flipVertical"), "Ctrl+J"))
        edit_menu.addAction(self._action("&Crop...", self.crop_image, "Ctrl+Shift+X"))
        edit_menu.addSeparator()
        edit_menu.addAction(self._action("Color &Palette", lambda: self._request("getPalette"), "Ctrl+P"))
        edit_menu.addAction(self._action("C&lear", lambda: self._request("clear"), "Ctrl+Backspace"))

        view_menu = menubar.addMenu("&View")
        view_menu.addAction(self._action("Zoom &In", lambda: self.set_zoom(self._zoom * 1.25),
                                         QKeySequence.ZoomIn))
        view_menu.addAction(self._action("Zoom &Out", lambda: self.set_zoom(self._zoom / 1.25),
                                         QKeySequence.ZoomOut))
        view_menu.addAction(self._action("&Actual Size", lambda: self.set_zoom(1.0), "Ctrl+0"))
        view_menu.addSeparator()
        self.pin_action = self._action("&Pin on Top", self.set_pinned, "Ctrl+T",
                                       tooltip="Keep this window above other windows")
        self.pin_action.setCheckable(True)
        view_menu.addAction(self.pin_action)
        view_menu.addSeparator()
        view_menu.addAction(self._action("&Preferences...", self.open_settings, "Ctrl+,"))

    def _create_toolbar(self):
        toolbar = QToolBar("Edit")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)
        toolbar.addAction(self._action("Screenshot", lambda: self._request("startCapture"),
                                       tooltip="Capture part of the screen"))
        toolbar.addSeparator()
        toolbar.addAction(self._action("Undo", lambda: self._request("undo"),
                                       tooltip="Undo last edit (Ctrl+Z)"))
        toolbar.addAction(self._action("Rotate L", lambda: self._edit("rotateLeft"),
                                       tooltip="Rotate 90 degrees counter-clockwise"))
        toolbar.addAction(self._action("Rotate R", lambda: self._edit("rotateRight"),
                                       tooltip="Rotate 90 degrees clockwise"))
        toolbar.addAction(self._action("Flip H", lambda: self._edit("flipHorizontal"),
                                       tooltip="Mirror left to right"))
        toolbar.addAction(self._action("Flip V", lambda: self._edit("flipVertical"),
                                       tooltip="Mirror top to bottom"))
        toolbar.addSeparator()
        toolbar.addAction(self._action("Palette", lambda: self._request("getPalette"),
                                       tooltip="Extract dominant colors"))
        toolbar.addSeparator()
        toolbar.addAction(self.pin_action)

    def _edit(self, operation, params=None):
        self._request("edit", operation, params)

    def open_file(self):
        filepath, _ = QFileDialog.getOpenFileName(self, "Open image", "", OPEN_FILTER)
        if filepath:
            self._request("loadFile", filepath)

    def paste_image(self):
        data = clipboard_image_bytes()
        if data:
            self._request("loadFromClipboardOrDrop", data)
        else:
            self.statusBar().showMessage("  No image found in clipboard", 2000)

    def crop_image(self):
        if self._pixmap is None:
            self.show_notice("No image loaded")
            return
        dialog = CropDialog(self._pixmap.width(), self._pixmap.height(), self)
        if dialog.exec_() == QDialog.Accepted:
            self._edit("crop", dialog.params())

    def set_pinned(self, pinned):
        self.setWindowFlag(Qt.WindowStaysOnTopHint, pinned)
        # Changing window flags hides the window
        self.show()
        self.pin_action.setChecked(pinned)
        self.statusBar().showMessage("  Pinned on top" if pinned else "  Unpinned", 2000)

    def open_settings(self):
        dialog = SettingsDialog(parent=self)
        if dialog.exec_() != QDialog.Accepted:
            return
        apply_theme(QApplication.instance(), config.THEME)
        self._zoom = config.ZOOM
        self._render()

    def set_zoom(self, zoom):
        self._zoom = max(0.05, min(zoom, 16.0))
        config.ZOOM = round(self._zoom, 3)
        config.save()
        self._render()

    # --- Drag and drop ---

    def dragEnterEvent(self, event):
        mime = event.mimeData()
        if mime.hasUrls() or mime.hasImage():
            event.acceptProposedAction()

    def dropEvent(self, event):
        mime = event.mimeData()
        paths = [u.toLocalFile() for u in mime.urls() if u.isLocalFile()]
        if paths:
            self._request("loadFromClipboardOrDrop", paths)
        elif mime.hasImage():
            self._request("loadFromClipboardOrDrop", image_to_png(mime.imageData()))
        event.acceptProposedAction()

    # --- Messages from the session ---

    def deliver(self, kind, payload=None):
        if kind == "imageLoaded":
            self.show_image(payload)
        elif kind == "cleared":
            self.show_cleared()
        elif kind == "notice":
            self.show_notice(payload)
        elif kind == "error":
            self.show_error(payload)
        elif kind == "palette":
            self.palette_bar.set_swatches(payload)
        else:
            log.warning(f"Viewer got unknown message: {kind}")

    def show_image(self, image):
        pixmap = pixmap_from_bytes(image.data)
        if pixmap.isNull():
            self.show_error("Could not display this image")
            return
        self._pixmap = pixmap
        self.palette_bar.clear()
        self.setWindowTitle(f"RefViewer - {image.name}" if image.name else "RefViewer")
        self._render()
        self.statusBar().showMessage(f"  {pixmap.width()} x {pixmap.height()}")

    def show_cleared(self):
        self._pixmap = None
        self.palette_bar.clear()
        self.image_label.clear()
        self.image_label.setText("Drop, paste or open an image")
        self.setWindowTitle("RefViewer")
        self.statusBar().showMessage("  Cleared", 2000)

    def show_notice(self, text):
        self.statusBar().showMessage(f"  {text}", 3000)

    def show_error(self, text):
        self.statusBar().showMessage(f"  Error: {text}", 5000)

    def _render(self):
        if self._pixmap is None:
            return
        if self._zoom == 1.0:
            shown = self._pixmap
        else:
            shown = self._pixmap.scaled(
                max(1, int(self._pixmap.width() * self._zoom)),
                max(1, int(self._pixmap.height() * self._zoom)),
                Qt.KeepAspectRatio, Qt.SmoothTransformation
            )
        self.image_label.setPixmap(shown)

    def closeEvent(self, event):
        self.closed.emit(self)
        super().closeEvent(event)
