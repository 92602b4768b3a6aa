"""Tests for EditEngine transformations, persistence and palette extraction."""

import io
import os
import stat

import pytest
from PIL import Image

from refviewer import codec
from refviewer.edit_engine import EditEngine
from refviewer.errors import (
    CodecError, InvalidRegion, SaveError, UnsupportedOperation
)
from refviewer.models import CanonicalImage, CropRect


@pytest.fixture
def engine(settings):
    return EditEngine(settings)


@pytest.fixture
def image(make_png):
    return CanonicalImage(data=make_png(100, 50), mime="image/png", name="a.png")


def _encoded(img, fmt="PNG"):
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


class TestRotateFlip:

    def test_rotate_right_swaps_dimensions(self, engine, image, decode, run):
        rotated = run(engine.rotate(image, "right"))

        size, _ = decode(rotated.data)
        assert size == (50, 100)
        assert rotated.mime == "image/png"
        assert rotated.name == "a.png"

    def test_rotate_right_is_clockwise(self, engine, run):
        img = Image.new("RGB", (2, 1))
        img.putpixel((0, 0), (255, 0, 0))
        img.putpixel((1, 0), (0, 0, 255))
        source = CanonicalImage(data=_encoded(img), mime="image/png")

        rotated = codec.decode(run(engine.rotate(source, "right")).data)

        # Left pixel ends up on top after a clockwise turn
        assert rotated.size == (1, 2)
        assert rotated.getpixel((0, 0))[:3] == (255, 0, 0)
        assert rotated.getpixel((0, 1))[:3] == (0, 0, 255)

    def test_rotate_right_then_left_restores_pixels(self, engine, image, decode, run):
        turned = run(engine.rotate(image, "right"))
        back = run(engine.rotate(turned, "left"))
        assert decode(back.data) == decode(image.data)

    def test_four_right_turns_restore_pixels(self, engine, image, decode, run):
        current = image
        for _ in range(4):
            current = run(engine.rotate(current, "right"))
        assert decode(current.data) == decode(image.data)

    @pytest.mark.parametrize("axis", ["horizontal", "vertical"])
    def test_flip_twice_restores_pixels(self, engine, image, decode, run, axis):
        once = run(engine.flip(image, axis))
        twice = run(engine.flip(once, axis))

        assert decode(once.data) != decode(image.data)
        assert decode(twice.data) == decode(image.data)

    def test_input_is_untouched(self, engine, image, run):
        original = image.data
        run(engine.flip(image, "horizontal"))
        assert image.data == original

    def test_unknown_direction(self, engine, image, run):
        with pytest.raises(UnsupportedOperation):
            run(engine.rotate(image, "sideways"))

    def test_unknown_axis(self, engine, image, run):
        with pytest.raises(UnsupportedOperation):
            run(engine.flip(image, "diagonal"))

    def test_undecodable_input(self, engine, run):
        garbage = CanonicalImage(data=b"definitely not an image")
        with pytest.raises(CodecError):
            run(engine.rotate(garbage, "right"))


class TestCrop:

    def test_crop_size(self, engine, image, decode, run):
        cropped = run(engine.crop(image, CropRect(10, 5, 30, 20)))
        size, _ = decode(cropped.data)
        assert size == (30, 20)

    def test_crop_full_image(self, engine, image, decode, run):
        cropped = run(engine.crop(image, CropRect(0, 0, 100, 50)))
        assert decode(cropped.data) == decode(image.data)

    @pytest.mark.parametrize("rect", [
        CropRect(0, 0, 0, 10),
        CropRect(0, 0, 10, 0),
        CropRect(-1, 0, 10, 10),
        CropRect(0, -1, 10, 10),
        CropRect(95, 0, 10, 10),
        CropRect(0, 45, 10, 10),
        CropRect(0, 0, 101, 50),
    ])
    def test_invalid_regions(self, engine, image, run, rect):
        with pytest.raises(InvalidRegion):
            run(engine.crop(image, rect))


class TestApply:

    @pytest.mark.parametrize("operation,size", [
        ("rotateRight", (50, 100)),
        ("rotateLeft", (50, 100)),
        ("flipHorizontal", (100, 50)),
        ("flipVertical", (100, 50)),
    ])
    def test_dispatch(self, engine, image, decode, run, operation, size):
        result = run(engine.apply(image, operation))
        assert decode(result.data)[0] == size

    def test_crop_params(self, engine, image, decode, run):
        result = run(engine.apply(image, "crop", {"x": 0, "y": 0, "width": 40, "height": 25}))
        assert decode(result.data)[0] == (40, 25)

    def test_crop_short_params(self, engine, image, decode, run):
        result = run(engine.apply(image, "crop", {"x": 1, "y": 1, "w": 4, "h": 3}))
        assert decode(result.data)[0] == (4, 3)

    @pytest.mark.parametrize("params", [
        None,
        {"x": 0, "y": 0},
        {"x": "left", "y": 0, "w": 4, "h": 4},
        [1, 2, 3, 4],
        "0,0,4,4",
        {"x": 0.5, "y": 0, "w": 4, "h": 4},
        {"x": 0, "y": 0, "w": True, "h": 4},
        {"x": 0, "y": 0, "w": [4], "h": 4},
    ])
    def test_bad_crop_params(self, engine, image, run, params):
        with pytest.raises(InvalidRegion):
            run(engine.apply(image, "crop", params))

    def test_whole_float_crop_params(self, engine, image, decode, run):
        result = run(engine.apply(image, "crop", {"x": 0.0, "y": 0, "w": 8.0, "h": 6}))
        assert decode(result.data)[0] == (8, 6)

    def test_unknown_operation(self, engine, image, run):
        with pytest.raises(UnsupportedOperation):
            run(engine.apply(image, "sharpen"))


class TestConvertAndSave:

    def test_save_png(self, engine, image, decode, tmp_path, run):
        destination = tmp_path / "out.png"
        path = run(engine.convert_and_save(image, destination))

        assert path == str(destination)
        assert decode(destination.read_bytes()) == decode(image.data)

    def test_save_jpeg_converts(self, engine, image, tmp_path, run):
        destination = tmp_path / "out.jpg"
        run(engine.convert_and_save(image, destination))

        with Image.open(destination) as saved:
            assert saved.format == "JPEG"
            assert saved.size == (100, 50)

    def test_save_jpeg_flattens_alpha(self, engine, tmp_path, run):
        img = Image.new("RGBA", (4, 4), (0, 0, 0, 0))
        source = CanonicalImage(data=_encoded(img), mime="image/png")
        destination = tmp_path / "flat.jpg"

        run(engine.convert_and_save(source, destination))

        with Image.open(destination) as saved:
            assert saved.mode == "RGB"
            r, g, b = saved.getpixel((1, 1))
            assert min(r, g, b) > 240

    @pytest.mark.parametrize("name,fmt", [
        ("out.bmp", "BMP"), ("out.gif", "GIF"), ("out.webp", "WEBP"), ("out.tiff", "TIFF"),
    ])
    def test_other_formats(self, engine, image, tmp_path, run, name, fmt):
        destination = tmp_path / name
        run(engine.convert_and_save(image, destination))
        with Image.open(destination) as saved:
            assert saved.format == fmt

    def test_overwrites_existing_file(self, engine, image, tmp_path, run):
        destination = tmp_path / "out.png"
        destination.write_bytes(b"old")
        run(engine.convert_and_save(image, destination))
        assert destination.read_bytes() != b"old"

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
    def test_overwrite_keeps_file_mode(self, engine, image, tmp_path, run):
        destination = tmp_path / "out.png"
        destination.write_bytes(b"old")
        os.chmod(destination, 0o644)

        run(engine.convert_and_save(image, destination))

        assert stat.S_IMODE(os.stat(destination).st_mode) == 0o644

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
    def test_new_file_follows_umask(self, engine, image, tmp_path, run):
        umask = os.umask(0o022)
        try:
            destination = tmp_path / "new.png"
            run(engine.convert_and_save(image, destination))
        finally:
            os.umask(umask)

        assert stat.S_IMODE(os.stat(destination).st_mode) == 0o644

    def test_missing_directory(self, engine, image, tmp_path, run):
        destination = tmp_path / "nope" / "out.png"
        with pytest.raises(SaveError):
            run(engine.convert_and_save(image, destination))
        assert not destination.exists()

    def test_unknown_extension(self, engine, image, tmp_path, run):
        with pytest.raises(SaveError):
            run(engine.convert_and_save(image, tmp_path / "out.xyz"))
        assert os.listdir(tmp_path) == ["config"]

    def test_failure_leaves_no_partial_file(self, engine, tmp_path, run):
        destination = tmp_path / "out.png"
        destination.write_bytes(b"keep me")
        garbage = CanonicalImage(data=b"not an image")

        with pytest.raises(SaveError):
            run(engine.convert_and_save(garbage, destination))

        assert destination.read_bytes() == b"keep me"
        assert sorted(os.listdir(tmp_path)) == ["config", "out.png"]


class TestPalette:

    def test_dominant_colour_first(self, engine, run):
        img = Image.new("RGB", (40, 40), (255, 0, 0))
        img.paste((0, 0, 255), (0, 0, 40, 10))
        source = CanonicalImage(data=_encoded(img), mime="image/png")

        swatches = run(engine.extract_palette(source))

        assert 1 <= len(swatches) <= 6
        top = swatches[0]
        assert top.population >= swatches[-1].population
        assert top.rgb[0] > 200 and top.rgb[2] < 50
        assert top.hex.startswith("#") and len(top.hex) == 7
        assert top.label == "Vibrant"

    def test_count_respected(self, engine, image, run):
        swatches = run(engine.extract_palette(image, count=3))
        assert 1 <= len(swatches) <= 3
        populations = [s.population for s in swatches]
        assert populations == sorted(populations, reverse=True)

    def test_palette_size_setting(self, settings, image, run):
        settings.PALETTE_SIZE = 2
        swatches = run(EditEngine(settings).extract_palette(image))
        assert len(swatches) <= 2

    def test_undecodable_input(self, engine, run):
        with pytest.raises(CodecError):
            run(engine.extract_palette(CanonicalImage(data=b"nope")))

    @pytest.mark.parametrize("rgb,label", [
        ((255, 0, 0), "Vibrant"),
        ((0, 0, 0), "DarkMuted"),
        ((255, 255, 255), "LightMuted"),
        ((128, 128, 128), "Muted"),
        ((20, 0, 80), "DarkVibrant"),
    ])
    def test_swatch_labels(self, rgb, label):
        assert codec.classify_swatch(rgb) == label
