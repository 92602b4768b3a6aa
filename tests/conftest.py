"""
Pytest configuration and shared fixtures for RefViewer tests.

Points the app directory at a throwaway location before the package is
imported, so the global config and log file never touch the real profile.
"""

import io
import os
import asyncio
import tempfile

os.environ.setdefault("REFVIEWER_HOME", tempfile.mkdtemp(prefix="refviewer-tests-"))

import pytest
from PIL import Image

from refviewer.config import Config


def _pattern_image(width, height):
    img = Image.new("RGB", (width, height))
    img.putdata([
        ((x * 5) % 256, (y * 9) % 256, (x + y) % 256)
        for y in range(height) for x in range(width)
    ])
    return img


@pytest.fixture
def make_png():
    """
    Factory for PNG bytes with a position-dependent pattern, so any
    rotation or mirroring changes the pixel content.
    """
    def _make(width=100, height=50):
        buf = io.BytesIO()
        _pattern_image(width, height).save(buf, format="PNG")
        return buf.getvalue()
    return _make


@pytest.fixture
def decode():
    """Decode encoded bytes into (size, RGB pixel bytes)."""
    def _decode(data):
        with Image.open(io.BytesIO(data)) as img:
            return img.size, img.convert("RGB").tobytes()
    return _decode


@pytest.fixture
def image_file(tmp_path, make_png):
    """A 100x50 PNG on disk named a.png."""
    path = tmp_path / "a.png"
    path.write_bytes(make_png(100, 50))
    return path


@pytest.fixture
def settings(tmp_path):
    """Isolated configuration stored under the test's tmp dir."""
    return Config(config_dir=str(tmp_path / "config"))


@pytest.fixture
def run():
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run


class Messages:
    """Collects (kind, payload) pairs sent by a Session."""

    def __init__(self):
        self.sent = []

    def __call__(self, kind, payload=None):
        self.sent.append((kind, payload))

    def kinds(self):
        return [kind for kind, _ in self.sent]

    def last(self, kind):
        for k, payload in reversed(self.sent):
            if k == kind:
                return payload
        return None


@pytest.fixture
def messages():
    return Messages()


async def wait_for(predicate, steps=200):
    """Yield to the loop until predicate() holds."""
    for _ in range(steps):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was never met")


@pytest.fixture
def until():
    return wait_for
