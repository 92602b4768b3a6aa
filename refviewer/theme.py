"""
RefViewer Themes
Dark (default) and light palettes selected by the THEME setting.
"""

from PyQt5.QtWidgets import QApplication
from PyQt5.QtGui import QPalette, QColor

from refviewer.logger import log


DARK_STYLESHEET = """
QMenuBar {
    background-color: #181825;
    color: #cdd6f4;
    border-bottom: 1px solid #313244;
    padding: 2px;
}
QMenuBar::item:selected, QMenu::item:selected {
    background-color: #45475a;
}
QMenu {
    background-color: #1e1e2e;
    color: #cdd6f4;
    border: 1px solid #45475a;
    padding: 4px;
}
QToolBar {
    background-color: #181825;
    border: none;
    spacing: 4px;
}
QStatusBar {
    background-color: #181825;
    color: #a6adc8;
}
"""


def _dark_palette():
    palette = QPalette()
    palette.setColor(QPalette.Window, QColor("#1e1e2e"))
    palette.setColor(QPalette.WindowText, QColor("#cdd6f4"))
    palette.setColor(QPalette.Base, QColor("#313244"))
    palette.setColor(QPalette.AlternateBase, QColor("#45475a"))
    palette.setColor(QPalette.ToolTipBase, QColor("#313244"))
    palette.setColor(QPalette.ToolTipText, QColor("#cdd6f4"))
    palette.setColor(QPalette.Text, QColor("#cdd6f4"))
    palette.setColor(QPalette.Button, QColor("#313244"))
    palette.setColor(QPalette.ButtonText, QColor("#cdd6f4"))
    palette.setColor(QPalette.Highlight, QColor("#89b4fa"))
    palette.setColor(QPalette.HighlightedText, QColor("#1e1e2e"))
    palette.setColor(QPalette.Disabled, QPalette.Text, QColor("#6c7086"))
    palette.setColor(QPalette.Disabled, QPalette.ButtonText, QColor("#6c7086"))
    return palette


def apply_theme(app: QApplication, name="dark"):
    app.setStyle("Fusion")
    if name == "light":
        app.setPalette(app.style().standardPalette())
        app.setStyleSheet("")
    else:
        if name != "dark":
            log.warning(f"Unknown theme {name!r}, using dark")
        app.setPalette(_dark_palette())
        app.setStyleSheet(DARK_STYLESHEET)
