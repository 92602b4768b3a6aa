"""RefViewer - reference image viewer with screenshot capture and quick edits."""

__version__ = "1.0.0"
