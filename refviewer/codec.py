"""
RefViewer image codec.
Thin synchronous wrapper over Pillow for decode/encode/transform/palette.
Callers run these in a worker via asyncio.to_thread and own error mapping.
"""

import io
import os
import colorsys

from PIL import Image

from refviewer.models import Swatch

# Extension -> Pillow format name
FORMATS = {
    '.png': 'PNG', '.jpg': 'JPEG', '.jpeg': 'JPEG', '.bmp': 'BMP',
    '.gif': 'GIF', '.tiff': 'TIFF', '.tif': 'TIFF', '.webp': 'WEBP',
}

_MAGIC = [
    (b'\x89PNG\r\n\x1a\n', 'image/png'),
    (b'\xff\xd8\xff', 'image/jpeg'),
    (b'GIF87a', 'image/gif'),
    (b'GIF89a', 'image/gif'),
    (b'BM', 'image/bmp'),
    (b'II*\x00', 'image/tiff'),
    (b'MM\x00*', 'image/tiff'),
]

_PNG_MODES = {'1', 'L', 'LA', 'I', 'I;16', 'P', 'RGB', 'RGBA'}


def sniff_mime(data):
    """Content type from magic bytes, or None if unrecognised."""
    head = bytes(data[:16])
    if head[:4] == b'RIFF' and head[8:12] == b'WEBP':
        return 'image/webp'
    for magic, mime in _MAGIC:
        if head.startswith(magic):
            return mime
    return None


def format_for_path(path):
    """Pillow format name for a destination path, or None if unsupported."""
    ext = os.path.splitext(str(path))[1].lower()
    return FORMATS.get(ext)


def decode(data):
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def _flatten(img, background=(255, 255, 255)):
    rgba = img.convert('RGBA')
    base = Image.new('RGB', rgba.size, background)
    base.paste(rgba, mask=rgba.getchannel('A'))
    return base


def _has_alpha(img):
    return img.mode in ('RGBA', 'LA', 'PA') or (
        img.mode == 'P' and 'transparency' in img.info)


def prepare_for(img, fmt):
    """Convert to a pixel mode the target format can store."""
    if fmt == 'JPEG':
        if _has_alpha(img):
            return _flatten(img)
        if img.mode not in ('L', 'RGB', 'CMYK'):
            return img.convert('RGB')
    elif fmt == 'BMP':
        if _has_alpha(img):
            return _flatten(img)
        if img.mode not in ('1', 'L', 'P', 'RGB'):
            return img.convert('RGB')
    elif fmt == 'PNG':
        if img.mode not in _PNG_MODES:
            return img.convert('RGBA' if _has_alpha(img) else 'RGB')
    elif fmt == 'WEBP':
        if img.mode not in ('RGB', 'RGBA'):
            return img.convert('RGBA' if _has_alpha(img) else 'RGB')
    return img


def encode(img, fmt='PNG', quality=90):
    img = prepare_for(img, fmt)
    buf = io.BytesIO()
    if fmt in ('JPEG', 'WEBP'):
        img.save(buf, format=fmt, quality=quality)
    else:
        img.save(buf, format=fmt)
    return buf.getvalue()


def rotate(img, direction):
    """90 degree lossless rotation; 'right' is clockwise."""
    if direction == "right":
        return img.transpose(Image.Transpose.ROTATE_270)
    if direction == "left":
        return img.transpose(Image.Transpose.ROTATE_90)
    raise ValueError(f"Unknown rotation direction: {direction!r}")


def flip(img, axis):
    if axis == "horizontal":
        return img.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
    if axis == "vertical":
        return img.transpose(Image.Transpose.FLIP_TOP_BOTTOM)
    raise ValueError(f"Unknown flip axis: {axis!r}")


def crop(img, box):
    return img.crop(box)


def classify_swatch(rgb):
    """Vibrant-style label from HSL lightness and saturation."""
    r, g, b = (c / 255.0 for c in rgb)
    _, lightness, saturation = colorsys.rgb_to_hls(r, g, b)
    if lightness < 0.3:
        tone = "Dark"
    elif lightness > 0.7:
        tone = "Light"
    else:
        tone = ""
    kind = "Vibrant" if saturation >= 0.35 else "Muted"
    return tone + kind


def palette(img, count=6):
    """Dominant colours, most populous first."""
    rgb = img.convert('RGB')
    rgb.thumbnail((128, 128))
    quantized = rgb.quantize(colors=count, method=Image.Quantize.MEDIANCUT)
    flat = quantized.getpalette()
    swatches = []
    for population, index in sorted(quantized.getcolors(), reverse=True):
        color = tuple(flat[index * 3:index * 3 + 3])
        swatches.append(Swatch(
            hex="#{:02X}{:02X}{:02X}".format(*color),
            rgb=color,
            population=population,
            label=classify_swatch(color),
        ))
    return swatches[:count]
