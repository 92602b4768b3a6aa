"""Tests for request routing through the MessageChannel."""

import pytest

from refviewer.channel import MessageChannel
from refviewer.session import Session


@pytest.fixture
def channel(messages, settings):
    return MessageChannel(Session(messages, settings=settings))


class TestMessageChannel:

    def test_known_requests(self, channel):
        assert channel.requests() == [
            "clear", "edit", "getPalette", "loadFile",
            "loadFromClipboardOrDrop", "save", "startCapture", "undo",
        ]

    def test_load_edit_undo(self, channel, messages, image_file, decode, run):
        loaded = run(channel.dispatch("loadFile", str(image_file)))
        rotated = run(channel.dispatch("edit", "rotateLeft"))
        assert decode(rotated.data)[0] == (50, 100)

        restored = run(channel.dispatch("undo"))

        assert restored is loaded
        assert messages.kinds() == ["imageLoaded"] * 3

    def test_drop_and_clipboard_share_intake(self, channel, image_file, make_png, run):
        dropped = run(channel.dispatch("loadFromClipboardOrDrop", [str(image_file)]))
        assert dropped.name == "a.png"

        pasted = run(channel.dispatch("loadFromClipboardOrDrop", make_png(4, 4)))
        assert pasted.mime == "image/png"
        assert channel.session.current_image is pasted

    def test_edit_with_params(self, channel, image_file, decode, run):
        run(channel.dispatch("loadFile", str(image_file)))
        result = run(channel.dispatch("edit", "crop", {"x": 5, "y": 5, "w": 20, "h": 10}))
        assert decode(result.data)[0] == (20, 10)

    def test_palette_and_save(self, channel, messages, image_file, tmp_path, run):
        run(channel.dispatch("loadFile", str(image_file)))

        swatches = run(channel.dispatch("getPalette"))
        path = run(channel.dispatch("save", str(tmp_path / "copy.png")))

        assert messages.last("palette") == swatches
        assert path == str(tmp_path / "copy.png")

    def test_clear(self, channel, messages, image_file, run):
        run(channel.dispatch("loadFile", str(image_file)))
        run(channel.dispatch("clear"))
        assert channel.session.current_image is None
        assert messages.kinds()[-1] == "cleared"

    def test_unknown_request(self, channel, messages, run):
        assert run(channel.dispatch("sharpen")) is None
        assert messages.sent == [("error", "Unknown request: sharpen")]
