"""
RefViewer Application Core
Owns the viewer windows, gives each one its own Session and MessageChannel,
and runs the asyncio loop that drives them from inside the Qt event loop.
"""

import os
import asyncio

from PyQt5.QtWidgets import QApplication, QFileDialog
from PyQt5.QtCore import QTimer

from refviewer.capture import QtDisplayProvider
from refviewer.channel import MessageChannel
from refviewer.config import config
from refviewer.logger import log
from refviewer.overlay import open_crop_overlay
from refviewer.session import Session
from refviewer.viewer import ViewerWindow

SAVE_FILTER = (
    "PNG (*.png);;JPEG (*.jpg *.jpeg);;BMP (*.bmp);;"
    "GIF (*.gif);;TIFF (*.tiff *.tif);;WebP (*.webp)"
)


class AsyncioPump:
    """Steps an asyncio loop from a QTimer on the GUI thread."""

    def __init__(self, loop, interval_ms=10):
        self.loop = loop
        self._timer = QTimer()
        self._timer.timeout.connect(self._step)
        self._interval_ms = interval_ms

    def start(self):
        self._timer.start(self._interval_ms)

    def stop(self):
        self._timer.stop()

    def _step(self):
        # A modal dialog opened from a coroutine spins a nested Qt loop
        if self.loop.is_running():
            return
        self.loop.call_soon(self.loop.stop)
        self.loop.run_forever()


class RefViewerApp:
    """Main application controller."""

    def __init__(self, app: QApplication):
        self.app = app
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        self.pump = AsyncioPump(self.loop)
        self.displays = QtDisplayProvider()
        self.windows = {}
        self._tasks = set()

    def start(self, initial_path=None):
        self.pump.start()
        window = self.new_window()
        if initial_path:
            self._submit(window, "loadFile", (os.path.abspath(initial_path),))
        log.info("RefViewer started successfully")

    def new_window(self):
        window = ViewerWindow()
        session = Session(
            send=window.deliver,
            window=window,
            displays=self.displays,
            open_overlay=open_crop_overlay,
            choose_save_path=lambda default: self._choose_save_path(window, default),
        )
        channel = MessageChannel(session)
        self.windows[window] = channel

        window.requested.connect(lambda name, args: self._submit(window, name, args))
        window.new_window_requested.connect(self.new_window)
        window.closed.connect(self._window_closed)

        window.resize(900, 700)
        window.show()
        window.raise_()
        window.activateWindow()
        log.info(f"Opened viewer window ({len(self.windows)} open)")
        return window

    def _submit(self, window, name, args):
        channel = self.windows.get(window)
        if channel is None:
            return
        task = self.loop.create_task(channel.dispatch(name, *args))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _choose_save_path(self, window, default_path):
        filepath, _ = QFileDialog.getSaveFileName(
            window, "Save image", default_path, SAVE_FILTER
        )
        return filepath or None

    def _window_closed(self, window):
        channel = self.windows.pop(window, None)
        if channel is not None:
            capture = channel.session.capture
            if capture is not None and capture.active:
                capture.cancel()
        if not self.windows:
            self.exit_app()

    def exit_app(self):
        log.info("RefViewer shutting down")
        config.save()
        for task in list(self._tasks):
            task.cancel()
        self.pump.stop()
        self.app.quit()
