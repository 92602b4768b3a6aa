"""
RefViewer Edit Engine
Applies one transformation to a CanonicalImage and returns a new one.
Pillow work runs in a worker thread; codec failures become typed errors.
"""

import os
import stat
import asyncio
import tempfile

from PIL import Image, UnidentifiedImageError

from refviewer import codec
from refviewer.config import config
from refviewer.errors import (
    CodecError, InvalidRegion, SaveError, UnsupportedOperation
)
from refviewer.logger import log
from refviewer.models import CanonicalImage, CropRect

_CODEC_ERRORS = (UnidentifiedImageError, Image.DecompressionBombError,
                 OSError, ValueError, SyntaxError)


def _new_file_mode():
    # os.umask can only be read by setting it
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


class EditEngine:
    """Stateless image transformer."""

    def __init__(self, settings=None):
        self._settings = settings or config

    # --- Dispatch ---

    async def apply(self, image, operation, params=None):
        params = params or {}
        if operation == "rotateRight":
            return await self.rotate(image, "right")
        if operation == "rotateLeft":
            return await self.rotate(image, "left")
        if operation == "flipHorizontal":
            return await self.flip(image, "horizontal")
        if operation == "flipVertical":
            return await self.flip(image, "vertical")
        if operation == "crop":
            try:
                rect = CropRect.from_params(params)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise InvalidRegion(f"Bad crop parameters: {params!r}") from e
            return await self.crop(image, rect)
        raise UnsupportedOperation(f"Unknown edit operation: {operation}")

    # --- Transformations ---

    async def rotate(self, image, direction):
        if direction not in ("left", "right"):
            raise UnsupportedOperation(f"Unknown rotation: {direction}")
        return await self._transform(
            image, lambda img: codec.rotate(img, direction), "rotate")

    async def flip(self, image, axis):
        if axis not in ("horizontal", "vertical"):
            raise UnsupportedOperation(f"Unknown flip axis: {axis}")
        return await self._transform(
            image, lambda img: codec.flip(img, axis), "flip")

    async def crop(self, image, rect):
        def _crop(img):
            if not rect.contains_within(img.width, img.height):
                raise InvalidRegion(
                    f"Region {rect.w}x{rect.h}+{rect.x}+{rect.y} does not fit "
                    f"a {img.width}x{img.height} image")
            return codec.crop(img, rect.box())
        return await self._transform(image, _crop, "crop")

    async def _transform(self, image, fn, label):
        def work():
            img = codec.decode(image.data)
            return codec.encode(fn(img), 'PNG')
        try:
            data = await asyncio.to_thread(work)
        except _CODEC_ERRORS as e:
            log.warning(f"{label} failed: {e}")
            raise CodecError(f"Failed to {label} image") from e
        return CanonicalImage(data=data, mime="image/png", name=image.name)

    # --- Persistence ---

    async def convert_and_save(self, image, destination):
        """Encode to the format implied by the extension and write atomically."""
        destination = os.fspath(destination)
        fmt = codec.format_for_path(destination)
        if fmt is None:
            raise SaveError(f"Unsupported file type: {os.path.basename(destination)}")
        directory = os.path.dirname(os.path.abspath(destination))
        if not os.path.isdir(directory):
            raise SaveError(f"Folder does not exist: {directory}")

        quality = self._settings.OUTPUT_JPEG_QUALITY
        new_mode = _new_file_mode()

        def work():
            img = codec.decode(image.data)
            data = codec.encode(img, fmt, quality=quality)
            try:
                mode = stat.S_IMODE(os.stat(destination).st_mode)
            except FileNotFoundError:
                mode = new_mode
            fd, tmp_path = tempfile.mkstemp(
                prefix=".refviewer-", suffix=".tmp", dir=directory)
            try:
                with os.fdopen(fd, 'wb') as f:
                    f.write(data)
                # mkstemp creates 0600; keep the permissions the file would
                # have had if written in place
                os.chmod(tmp_path, mode)
                os.replace(tmp_path, destination)
            except BaseException:
                try:
                    os.remove(tmp_path)
                except OSError:
                    pass
                raise

        try:
            await asyncio.to_thread(work)
        except OSError as e:
            log.error(f"Failed to save image to {destination}: {e}")
            raise SaveError(f"Could not write {os.path.basename(destination)}") from e
        except _CODEC_ERRORS as e:
            log.error(f"Failed to encode image as {fmt}: {e}")
            raise SaveError(f"Could not convert image to {fmt}") from e
        log.info(f"Image saved: {destination}")
        return destination

    # --- Analysis ---

    async def extract_palette(self, image, count=None):
        count = count or self._settings.PALETTE_SIZE
        try:
            return await asyncio.to_thread(
                lambda: codec.palette(codec.decode(image.data), count))
        except _CODEC_ERRORS as e:
            log.warning(f"Palette extraction failed: {e}")
            raise CodecError("Failed to extract palette") from e
