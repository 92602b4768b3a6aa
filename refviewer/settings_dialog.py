"""
RefViewer Settings Dialog
Tabbed preferences for the viewer, screenshot autosave and editing.
Values are validated and written through Config.update().
"""

from PyQt5.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QTabWidget, QWidget,
    QFormLayout, QComboBox, QCheckBox, QSpinBox, QDoubleSpinBox, QLineEdit,
    QPushButton, QFileDialog, QMessageBox, QDialogButtonBox
)
from PyQt5.QtGui import QDesktopServices
from PyQt5.QtCore import QUrl

from refviewer.config import config
from refviewer.logger import log, log_file_path


class SettingsDialog(QDialog):
    """Tabbed settings dialog."""

    def __init__(self, settings=None, parent=None):
        super().__init__(parent)
        self.settings = settings or config
        self.setWindowTitle("RefViewer - Preferences")
        self.setMinimumSize(440, 360)

        layout = QVBoxLayout(self)

        self.tabs = QTabWidget()
        self.tabs.addTab(self._create_viewer_tab(), "Viewer")
        self.tabs.addTab(self._create_capture_tab(), "Screenshots")
        self.tabs.addTab(self._create_editing_tab(), "Editing")
        layout.addWidget(self.tabs)

        btn_row = QHBoxLayout()

        reset_btn = QPushButton("Reset to Defaults")
        reset_btn.setToolTip("Reset all settings to factory defaults")
        reset_btn.clicked.connect(self._reset_defaults)
        btn_row.addWidget(reset_btn)

        log_btn = QPushButton("Open Log")
        log_btn.clicked.connect(self._open_log)
        btn_row.addWidget(log_btn)

        btn_row.addStretch()

        buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self._apply_and_close)
        buttons.rejected.connect(self.reject)
        btn_row.addWidget(buttons)

        layout.addLayout(btn_row)

    # --- Tab: Viewer ---

    def _create_viewer_tab(self):
        w = QWidget()
        layout = QFormLayout(w)
        layout.setSpacing(10)

        self.overwrite = QCheckBox("Replace the open image when loading another")
        self.overwrite.setChecked(self.settings.OVERWRITE)
        layout.addRow(self.overwrite)

        self.tooltips = QCheckBox("Show tooltips")
        self.tooltips.setChecked(self.settings.TOOLTIPS)
        layout.addRow(self.tooltips)

        self.theme = QComboBox()
        self.theme.addItems(["dark", "light"])
        idx = self.theme.findText(self.settings.THEME)
        if idx >= 0:
            self.theme.setCurrentIndex(idx)
        layout.addRow("Theme:", self.theme)

        self.zoom = QDoubleSpinBox()
        self.zoom.setRange(0.05, 16.0)
        self.zoom.setSingleStep(0.25)
        self.zoom.setValue(self.settings.ZOOM)
        self.zoom.setSuffix("x")
        layout.addRow("Default zoom:", self.zoom)

        return w

    # --- Tab: Screenshots ---

    def _create_capture_tab(self):
        w = QWidget()
        layout = QFormLayout(w)
        layout.setSpacing(10)

        self.autosave = QCheckBox("Save every screenshot automatically")
        self.autosave.setChecked(self.settings.AUTOSAVE)
        layout.addRow(self.autosave)

        dir_row = QHBoxLayout()
        self.savedir = QLineEdit(self.settings.SAVEDIR)
        self.savedir.setPlaceholderText("(choose a folder)")
        dir_row.addWidget(self.savedir)
        browse_btn = QPushButton("Browse...")
        browse_btn.clicked.connect(self._browse_savedir)
        dir_row.addWidget(browse_btn)
        layout.addRow("Save directory:", dir_row)

        self.filename_pattern = QLineEdit(self.settings.AUTOSAVE_FILENAME_PATTERN)
        self.filename_pattern.setToolTip(
            "Variables: {YYYY}, {MM}, {DD}, {hh}, {mm}, {ss}")
        layout.addRow("Filename pattern:", self.filename_pattern)

        self.watchdog = QDoubleSpinBox()
        self.watchdog.setRange(0.1, 60.0)
        self.watchdog.setSuffix(" s")
        self.watchdog.setValue(self.settings.CAPTURE_WATCHDOG_SECONDS)
        self.watchdog.setToolTip("Show the window again if the grab takes longer")
        layout.addRow("Capture timeout:", self.watchdog)

        return w

    # --- Tab: Editing ---

    def _create_editing_tab(self):
        w = QWidget()
        layout = QFormLayout(w)
        layout.setSpacing(10)

        self.history_limit = QSpinBox()
        self.history_limit.setRange(1, 500)
        self.history_limit.setValue(self.settings.HISTORY_LIMIT)
        self.history_limit.setToolTip("Applies to windows opened afterwards")
        layout.addRow("Undo steps:", self.history_limit)

        self.palette_size = QSpinBox()
        self.palette_size.setRange(1, 32)
        self.palette_size.setValue(self.settings.PALETTE_SIZE)
        layout.addRow("Palette colors:", self.palette_size)

        self.jpeg_quality = QSpinBox()
        self.jpeg_quality.setRange(1, 100)
        self.jpeg_quality.setValue(self.settings.OUTPUT_JPEG_QUALITY)
        self.jpeg_quality.setSuffix("%")
        layout.addRow("JPEG quality:", self.jpeg_quality)

        return w

    # --- Actions ---

    def _browse_savedir(self):
        path = QFileDialog.getExistingDirectory(self, "Select Save Directory")
        if path:
            self.savedir.setText(path)

    def _open_log(self):
        QDesktopServices.openUrl(QUrl.fromLocalFile(log_file_path()))

    def _reset_defaults(self):
        reply = QMessageBox.question(
            self, "Reset Settings",
            "Reset all settings to factory defaults?",
            QMessageBox.Yes | QMessageBox.No, QMessageBox.No
        )
        if reply == QMessageBox.Yes:
            self.settings.reset_to_defaults()
            log.info("Settings reset to defaults")
            self.accept()

    def values(self):
        return {
            "OVERWRITE": self.overwrite.isChecked(),
            "TOOLTIPS": self.tooltips.isChecked(),
            "THEME": self.theme.currentText(),
            "ZOOM": self.zoom.value(),
            "AUTOSAVE": self.autosave.isChecked(),
            "SAVEDIR": self.savedir.text().strip(),
            "AUTOSAVE_FILENAME_PATTERN": self.filename_pattern.text().strip()
            or type(self.settings).AUTOSAVE_FILENAME_PATTERN,
            "CAPTURE_WATCHDOG_SECONDS": self.watchdog.value(),
            "HISTORY_LIMIT": self.history_limit.value(),
            "PALETTE_SIZE": self.palette_size.value(),
            "OUTPUT_JPEG_QUALITY": self.jpeg_quality.value(),
        }

    def _apply_and_close(self):
        values = self.values()
        if values["AUTOSAVE"] and not values["SAVEDIR"]:
            QMessageBox.warning(self, "Preferences",
                                "Choose a save directory to autosave screenshots.")
            return
        try:
            self.settings.update(values)
        except ValueError as e:
            QMessageBox.warning(self, "Preferences", str(e))
            return
        log.info("Settings saved")
        self.accept()
