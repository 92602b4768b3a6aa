"""
RefViewer Image Intake
Turns file paths, data URIs, dropped files and raw clipboard/capture buffers
into a CanonicalImage. Decoding is deferred to the first edit.
"""

import os
import base64
import asyncio
import binascii
import mimetypes
from pathlib import Path

from refviewer.codec import sniff_mime
from refviewer.errors import SourceReadError, UnsupportedSourceKind
from refviewer.logger import log
from refviewer.models import CanonicalImage

DEFAULT_MIME = "application/octet-stream"


class ImageIntake:
    """Stateless source normaliser."""

    async def normalize(self, source):
        if isinstance(source, (list, tuple)):
            # Drag-and-drop hands over a file list; only the first is shown
            if not source:
                raise UnsupportedSourceKind("Nothing was dropped")
            source = source[0]

        if isinstance(source, (bytes, bytearray, memoryview)):
            return self._from_buffer(bytes(source))

        if isinstance(source, str) and source.startswith("data:"):
            return self._from_data_uri(source)

        if isinstance(source, (str, os.PathLike)):
            return await self._from_path(Path(source))

        raise UnsupportedSourceKind(
            f"Unsupported image source: {type(source).__name__}")

    def _from_buffer(self, data, declared_mime=None, name=None):
        if not data:
            raise SourceReadError("Image data is empty")
        mime = sniff_mime(data) or declared_mime or DEFAULT_MIME
        return CanonicalImage(data=data, mime=mime, name=name)

    def _from_data_uri(self, uri):
        header, sep, payload = uri.partition(",")
        if not sep:
            raise SourceReadError("Malformed data URI")
        meta = header[len("data:"):].split(";")
        if "base64" not in meta[1:]:
            raise UnsupportedSourceKind("Only base64 data URIs are supported")
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise SourceReadError(f"Malformed data URI payload: {e}") from e
        return self._from_buffer(data, declared_mime=meta[0] or None)

    async def _from_path(self, path):
        if not path.is_absolute():
            raise UnsupportedSourceKind(f"Not an absolute path: {path}")
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            log.warning(f"Could not read {path}: {e}")
            raise SourceReadError(f"Could not read {path.name}") from e
        guessed, _ = mimetypes.guess_type(path.name)
        image = self._from_buffer(data, declared_mime=guessed, name=path.name)
        log.info(f"Loaded {path} ({len(data)} bytes, {image.mime})")
        return image
