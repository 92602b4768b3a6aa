"""
RefViewer message channel.
Maps presentation-layer request names onto Session operations.
"""

from refviewer.logger import log


class MessageChannel:

    def __init__(self, session):
        self.session = session
        self._handlers = {
            "loadFile": session.load_new,
            "loadFromClipboardOrDrop": session.load_new,
            "startCapture": session.start_capture,
            "edit": session.request_edit,
            "undo": session.undo,
            "clear": session.clear,
            "getPalette": session.get_palette,
            "save": session.save,
        }

    def requests(self):
        return sorted(self._handlers)

    async def dispatch(self, request, *args):
        handler = self._handlers.get(request)
        if handler is None:
            log.warning(f"Unknown request: {request!r}")
            self.session.notify("error", f"Unknown request: {request}")
            return None
        log.debug(f"Dispatching {request}")
        return await handler(*args)
