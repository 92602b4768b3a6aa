"""
RefViewer Session
Controller for one viewer window. Owns the current image, the undo history,
the palette cache and the active screenshot capture, and reports every
outcome to the presentation layer through `send(kind, payload)`.

Outgoing kinds: imageLoaded, cleared, notice, error, palette.
"""

import os
import functools

from refviewer.capture_session import CaptureSession, WindowVisibility
from refviewer.config import config
from refviewer.edit_engine import EditEngine
from refviewer.errors import (
    CaptureCancelled, CaptureError, EditInProgress, HistoryEmpty,
    NoImageLoaded, RefViewerError, SaveError
)
from refviewer.history_store import HistoryStore
from refviewer.image_intake import ImageIntake
from refviewer.logger import log


def reported(method):
    """Turn every failure of a public operation into an `error` message."""
    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except RefViewerError as e:
            log.warning(f"{method.__name__} failed: {e.kind}: {e}")
            self.notify("error", str(e))
        except Exception as e:
            log.error(f"Unexpected error in {method.__name__}: {e}", exc_info=True)
            self.notify("error", f"Unexpected error: {e}")
        return None
    return wrapper


class Session:
    """One loaded image and its edit chain."""

    def __init__(self, send, intake=None, engine=None, history=None,
                 settings=None, window=None, displays=None, open_overlay=None,
                 choose_save_path=None):
        self._send = send
        self._settings = settings or config
        self.intake = intake or ImageIntake()
        self.engine = engine or EditEngine(self._settings)
        self.history = history or HistoryStore(self._settings.HISTORY_LIMIT)

        # Capture collaborators (origin window, display provider, overlay)
        self._window = WindowVisibility(window) if window is not None else None
        self._displays = displays
        self._open_overlay = open_overlay
        self._choose_save_path = choose_save_path

        self._current = None
        self._palette = None     # (image, swatches) for the current image
        self._capture = None
        self._busy = False
        self._generation = 0

    @property
    def current_image(self):
        return self._current

    @property
    def capture(self):
        return self._capture

    @property
    def busy(self):
        return self._busy

    def notify(self, kind, payload=None):
        self._send(kind, payload)

    def _set_current(self, image):
        self._current = image
        self._palette = None
        self.notify("imageLoaded", image)

    def _replace_image(self, image):
        """A genuinely new image: the old edit chain no longer applies."""
        self._generation += 1
        self.history.flush()
        self._set_current(image)

    # --- Loading ---

    @reported
    async def load_new(self, source):
        if self._current is not None and not self._settings.OVERWRITE:
            self.notify("notice", "An image is already open")
            return None
        image = await self.intake.normalize(source)
        self._replace_image(image)
        return image

    @reported
    async def start_capture(self):
        if self._window is None or self._displays is None or self._open_overlay is None:
            raise CaptureError("Screen capture is not available")
        if self._capture is not None and self._capture.active:
            log.info("New capture requested, cancelling the previous one")
            self._capture.cancel()

        autosave_dir = None
        if self._settings.AUTOSAVE and self._settings.SAVEDIR:
            autosave_dir = self._settings.SAVEDIR

        capture = CaptureSession(
            self._window, self._displays, self._open_overlay,
            self.intake, self.engine,
            watchdog_seconds=self._settings.CAPTURE_WATCHDOG_SECONDS,
            autosave_dir=autosave_dir, settings=self._settings)
        self._capture = capture
        try:
            image = await capture.run()
        except CaptureCancelled:
            log.info("Capture was cancelled")
            return None
        self._replace_image(image)
        return image

    # --- Editing ---

    @reported
    async def request_edit(self, operation, params=None):
        if operation == "save":
            return await self._save((params or {}).get("path"))
        if operation == "getPalette":
            return await self._palette_for_current()

        if self._current is None:
            raise NoImageLoaded()
        if self._busy:
            raise EditInProgress()

        source, generation = self._current, self._generation
        self._busy = True
        evicted = self.history.push(source)
        try:
            result = await self.engine.apply(source, operation, params)
        except BaseException:
            if generation == self._generation and self.history.peek() is source:
                self.history.unpush(evicted)
            raise
        finally:
            self._busy = False

        if generation != self._generation:
            log.info(f"Dropping {operation} result, a different image is loaded now")
            return None
        log.info(f"Applied {operation}")
        self._set_current(result)
        return result

    @reported
    async def undo(self):
        if self._busy:
            raise EditInProgress()
        try:
            image = self.history.pop()
        except HistoryEmpty as e:
            self.notify("notice", str(e))
            return None
        self._set_current(image)
        return image

    @reported
    async def clear(self):
        if self._capture is not None and self._capture.active:
            self._capture.cancel()
        self._generation += 1
        self._current = None
        self._palette = None
        self.history.flush()
        self.notify("cleared")

    # --- Palette / save ---

    @reported
    async def get_palette(self):
        return await self._palette_for_current()

    async def _palette_for_current(self):
        image = self._current
        if image is None:
            raise NoImageLoaded()
        if self._palette is not None and self._palette[0] is image:
            swatches = self._palette[1]
        else:
            swatches = await self.engine.extract_palette(image)
            if self._current is not image:
                log.info("Dropping palette, a different image is shown now")
                return None
            self._palette = (image, swatches)
        self.notify("palette", swatches)
        return swatches

    @reported
    async def save(self, destination=None):
        return await self._save(destination)

    async def _save(self, destination):
        image = self._current
        if image is None:
            raise NoImageLoaded()
        if destination is None:
            if self._choose_save_path is None:
                raise SaveError("No destination to save to")
            destination = await self._choose_save_path(self._default_save_path(image))
            if not destination:
                log.info("Save cancelled")
                return None

        path = await self.engine.convert_and_save(image, destination)
        self._settings.LAST_SAVE_DIR = os.path.dirname(os.path.abspath(path))
        self._settings.save()
        self.notify("notice", "Image saved!")
        return path

    def _default_save_path(self, image):
        name = image.name or "image.png"
        if not os.path.splitext(name)[1]:
            name += ".png"
        if self._settings.LAST_SAVE_DIR:
            return os.path.join(self._settings.LAST_SAVE_DIR, name)
        return name
