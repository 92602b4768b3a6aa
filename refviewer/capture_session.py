"""
RefViewer Capture Session
Screenshot -> crop-or-full-frame -> deliver, as an explicit state machine.

IDLE -> CAPTURING -> AWAITING_SELECTION -> CROPPING | FULL_FRAME -> COMPLETED
Any non-terminal state may move to CANCELLED.

The origin window is hidden while the screen is grabbed and is always shown
again afterwards, whatever the outcome. A watchdog shows it early if the
grab takes too long.
"""

import os
import asyncio
from enum import Enum

from refviewer.config import config
from refviewer.errors import CaptureCancelled, CaptureError, RefViewerError
from refviewer.logger import log
from refviewer.models import CaptureRequest

DEFAULT_WATCHDOG_SECONDS = 5.0


class CaptureState(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    AWAITING_SELECTION = "awaiting_selection"
    CROPPING = "cropping"
    FULL_FRAME = "full_frame"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TRANSITIONS = {
    CaptureState.IDLE: {CaptureState.CAPTURING, CaptureState.CANCELLED},
    CaptureState.CAPTURING: {CaptureState.AWAITING_SELECTION, CaptureState.CANCELLED},
    CaptureState.AWAITING_SELECTION: {CaptureState.CROPPING, CaptureState.FULL_FRAME,
                                      CaptureState.CANCELLED},
    CaptureState.CROPPING: {CaptureState.COMPLETED, CaptureState.CANCELLED},
    CaptureState.FULL_FRAME: {CaptureState.COMPLETED, CaptureState.CANCELLED},
    CaptureState.COMPLETED: set(),
    CaptureState.CANCELLED: set(),
}

TERMINAL_STATES = {CaptureState.COMPLETED, CaptureState.CANCELLED}


def nearest_display(displays, point):
    """The display containing `point`, else the closest one (first wins ties)."""
    px, py = point
    return min(displays, key=lambda d: d.distance_to(px, py))


class WindowVisibility:
    """Idempotent show/hide around an origin window.

    The wrapped window needs position(), show() and hide(). It is assumed
    visible when wrapped.
    """

    def __init__(self, window):
        self._window = window
        self._hidden = False

    @property
    def hidden(self):
        return self._hidden

    def position(self):
        return self._window.position()

    def hide(self):
        if self._hidden:
            return
        self._window.hide()
        self._hidden = True

    def show(self):
        if not self._hidden:
            return
        self._window.show()
        self._hidden = False


class CaptureSession:
    """One screenshot attempt for one origin window.

    `displays` provides `async list_displays()` and `async capture(display)`.
    `open_overlay(display, frame, on_region, on_full_frame, on_cancel)`
    shows the crop surface and returns an object with `close()`.
    """

    def __init__(self, window, displays, open_overlay, intake, engine,
                 watchdog_seconds=DEFAULT_WATCHDOG_SECONDS, autosave_dir=None,
                 settings=None):
        if not isinstance(window, WindowVisibility):
            window = WindowVisibility(window)
        self.window = window
        self.state = CaptureState.IDLE
        self.request = None
        self._displays = displays
        self._open_overlay = open_overlay
        self._intake = intake
        self._engine = engine
        self._watchdog_seconds = watchdog_seconds
        self._autosave_dir = autosave_dir
        self._settings = settings or config
        self._overlay = None
        self._selection = None
        self._watchdog = None
        self._restored = False
        self.autosave_task = None

    @property
    def active(self):
        return self.state not in TERMINAL_STATES

    def _transition(self, new_state):
        if new_state not in TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal capture transition {self.state.name} -> {new_state.name}")
        log.debug(f"Capture {self.state.name} -> {new_state.name}")
        self.state = new_state

    # --- Flow ---

    async def run(self):
        """Drive the capture to completion and return the CanonicalImage.

        Raises CaptureCancelled if cancelled, CaptureError if the grab fails,
        or InvalidRegion if the selection cannot be cropped.
        """
        if self.state is CaptureState.CANCELLED:
            raise CaptureCancelled()
        loop = asyncio.get_running_loop()
        self._transition(CaptureState.CAPTURING)
        origin = self.window.position()
        self.window.hide()
        self._watchdog = loop.call_later(self._watchdog_seconds, self._on_watchdog)

        try:
            try:
                display, frame = await self._grab(origin)
            finally:
                self._disarm_watchdog()
            self._raise_if_cancelled()

            self.request = CaptureRequest(display=display, frame=frame)
            self._selection = loop.create_future()
            try:
                self._overlay = self._open_overlay(
                    display, frame, self.select_region,
                    self.select_full_frame, self.cancel)
            except Exception as e:
                log.error(f"Could not open capture overlay: {e}", exc_info=True)
                raise CaptureError("Could not show the screenshot") from e
            self._transition(CaptureState.AWAITING_SELECTION)

            selection = await self._selection
            image = await self._intake.normalize(frame)
            if selection is not None:
                image = await self._engine.crop(image, selection)
            self._raise_if_cancelled()
            self._transition(CaptureState.COMPLETED)
        except CaptureCancelled:
            raise
        except (RefViewerError, asyncio.CancelledError):
            self._abort()
            raise
        except Exception as e:
            log.error(f"Capture failed: {e}", exc_info=True)
            self._abort()
            raise CaptureError() from e
        finally:
            self._teardown_overlay()
            self._restore_window()

        log.info(f"Capture completed ({'cropped' if selection else 'full frame'})")
        if self._autosave_dir:
            self._schedule_autosave(image)
        return image

    async def _grab(self, origin):
        try:
            displays = await self._displays.list_displays()
        except Exception as e:
            log.error(f"Display enumeration failed: {e}")
            raise CaptureError("Could not find any displays") from e
        if not displays:
            raise CaptureError("Could not find any displays")

        display = nearest_display(displays, origin)
        log.info(f"Capturing display {display.id} nearest to {origin}")
        try:
            frame = await self._displays.capture(display)
        except CaptureError:
            raise
        except Exception as e:
            log.error(f"Screen capture failed: {e}")
            raise CaptureError() from e
        if not frame:
            raise CaptureError("Screenshot came back empty")
        return display, frame

    # --- Selection (overlay callbacks, first one wins) ---

    def select_region(self, rect):
        if not self._can_select():
            return False
        self._transition(CaptureState.CROPPING)
        self.request.selection = rect
        self._teardown_overlay()
        self._selection.set_result(rect)
        return True

    def select_full_frame(self):
        if not self._can_select():
            return False
        self._transition(CaptureState.FULL_FRAME)
        self._teardown_overlay()
        self._selection.set_result(None)
        return True

    def _can_select(self):
        return (self.state is CaptureState.AWAITING_SELECTION
                and self._selection is not None
                and not self._selection.done())

    # --- Cancellation / teardown ---

    def cancel(self):
        """Abandon the capture: close the overlay and show the window."""
        if not self.active:
            return False
        self._abort()
        if self._selection is not None and not self._selection.done():
            self._selection.set_exception(CaptureCancelled())
        log.info("Capture cancelled")
        return True

    def _abort(self):
        if self.active:
            self._transition(CaptureState.CANCELLED)
        self._disarm_watchdog()
        self._teardown_overlay()
        self._restore_window()

    def _raise_if_cancelled(self):
        if self.state is CaptureState.CANCELLED:
            raise CaptureCancelled()

    def _teardown_overlay(self):
        overlay, self._overlay = self._overlay, None
        if overlay is None:
            return
        try:
            overlay.close()
        except Exception as e:
            log.warning(f"Overlay close failed: {e}")

    def _restore_window(self):
        # Once per session: a stale session must not re-show a window a newer
        # capture has just hidden.
        if self._restored:
            return
        self._restored = True
        self.window.show()

    def _disarm_watchdog(self):
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None

    def _on_watchdog(self):
        self._watchdog = None
        if self.state is CaptureState.CAPTURING:
            log.warning(f"Capture still running after {self._watchdog_seconds}s, "
                        "restoring window")
            self.window.show()

    # --- Autosave ---

    def _schedule_autosave(self, image):
        try:
            path = self._settings.autosave_filename(self._autosave_dir)
        except OSError as e:
            log.warning(f"Autosave skipped, cannot write to {self._autosave_dir}: {e}")
            return
        self.autosave_task = asyncio.ensure_future(
            self._engine.convert_and_save(image, path))
        self.autosave_task.add_done_callback(
            lambda task: self._on_autosave_done(task, path))

    @staticmethod
    def _on_autosave_done(task, path):
        if not task.cancelled() and task.exception() is None:
            log.info(f"Autosaved capture to {task.result()}")
            return
        if not task.cancelled():
            log.warning(f"Autosave failed: {task.exception()}")
        # Drop the reserved placeholder
        try:
            if os.path.getsize(path) == 0:
                os.remove(path)
        except OSError:
            pass
