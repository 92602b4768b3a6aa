"""
RefViewer Qt capture backend
Enumerates monitors and grabs one of them as PNG bytes for CaptureSession.
Also converts clipboard images to bytes for the intake.
"""

import asyncio

from PyQt5.QtWidgets import QApplication
from PyQt5.QtGui import QPixmap
from PyQt5.QtCore import QBuffer, QByteArray, QIODevice

from refviewer.errors import CaptureError
from refviewer.logger import log
from refviewer.models import Display

# Give the window manager a moment to actually unmap the hidden window
HIDE_SETTLE_SECONDS = 0.15


def image_to_png(image):
    """Encode a QPixmap or QImage as PNG bytes."""
    data = QByteArray()
    buf = QBuffer(data)
    buf.open(QIODevice.WriteOnly)
    ok = image.save(buf, "PNG")
    buf.close()
    if not ok:
        return b""
    return bytes(data)


def clipboard_image_bytes():
    """PNG bytes of the image on the clipboard, or None."""
    image = QApplication.clipboard().image()
    if image is None or image.isNull():
        return None
    return image_to_png(image) or None


class QtDisplayProvider:
    """Monitor enumeration and capture via QScreen."""

    async def list_displays(self):
        displays = []
        for index, screen in enumerate(QApplication.screens()):
            geo = screen.geometry()
            displays.append(Display(
                id=index, x=geo.x(), y=geo.y(),
                width=geo.width(), height=geo.height()
            ))
        return displays

    async def capture(self, display):
        await asyncio.sleep(HIDE_SETTLE_SECONDS)
        QApplication.processEvents()

        screens = QApplication.screens()
        if display.id >= len(screens):
            raise CaptureError("The selected display is no longer connected")
        screen = screens[display.id]
        geometry = screen.geometry()
        primary = QApplication.primaryScreen()
        pixmap = primary.grabWindow(
            0, geometry.x(), geometry.y(),
            geometry.width(), geometry.height()
        )
        if pixmap is None or pixmap.isNull():
            raise CaptureError("Screen grab returned nothing")
        log.info(f"Display {display.id} captured: "
                 f"{pixmap.width()}x{pixmap.height()}")
        return image_to_png(pixmap)


def pixmap_from_bytes(data):
    pixmap = QPixmap()
    pixmap.loadFromData(data)
    return pixmap
