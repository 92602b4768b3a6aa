"""
RefViewer error types.
Every error is recoverable; str(error) is the notice shown to the user.
"""


class RefViewerError(Exception):
    """Base class for all pipeline errors."""

    default_message = "Something went wrong"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)

    @property
    def kind(self):
        return type(self).__name__


class UnsupportedSourceKind(RefViewerError):
    default_message = "Unsupported image source"


class SourceReadError(RefViewerError):
    default_message = "Could not read image"


class CodecError(RefViewerError):
    default_message = "Could not decode image"


class UnsupportedOperation(RefViewerError):
    default_message = "Unknown edit operation"


class InvalidRegion(RefViewerError):
    default_message = "Crop region is outside the image"


class SaveError(RefViewerError):
    default_message = "Failed to save image"


class CaptureError(RefViewerError):
    default_message = "Failed to take a screenshot"


class CaptureCancelled(CaptureError):
    default_message = "Screenshot cancelled"


class NoImageLoaded(RefViewerError):
    default_message = "No image loaded"


class EditInProgress(RefViewerError):
    default_message = "Another edit is still running"


class HistoryEmpty(RefViewerError):
    default_message = "Nothing to undo"
