"""
Value types shared by the RefViewer image pipeline.

Classes:
    CanonicalImage: Encoded image bytes plus a content-type tag
    CropRect: Integer rectangle used for crops and screenshot selections
    Display: Geometry of one monitor
    CaptureRequest: In-flight screenshot state owned by a CaptureSession
    Swatch: One palette colour
"""

import base64
import math
from dataclasses import dataclass, field
from collections.abc import Mapping
from typing import Optional, Tuple

RgbColor = Tuple[int, int, int]


def _whole(value) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise TypeError(f"Expected a whole number, got {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"Expected a whole number, got {value!r}")
    return int(value)


@dataclass(frozen=True)
class CanonicalImage:
    """The single unit of exchange between pipeline components.

    Never mutated; every edit produces a new instance, so the viewer and the
    undo history can hold on to older values safely.
    """
    data: bytes = field(repr=False)
    mime: str = "application/octet-stream"
    name: Optional[str] = None

    def to_data_uri(self) -> str:
        payload = base64.b64encode(self.data).decode('ascii')
        return f"data:{self.mime};base64,{payload}"


@dataclass(frozen=True)
class CropRect:
    x: int
    y: int
    w: int
    h: int

    @classmethod
    def from_params(cls, params) -> 'CropRect':
        """Build from a mapping with x/y/w/h (or width/height) keys.

        Raises TypeError for a non-mapping or non-numeric value and
        ValueError for a fractional one.
        """
        if not isinstance(params, Mapping):
            raise TypeError(f"Crop parameters must be a mapping, got {type(params).__name__}")
        w = params.get("w", params.get("width"))
        h = params.get("h", params.get("height"))
        return cls(_whole(params["x"]), _whole(params["y"]), _whole(w), _whole(h))

    def contains_within(self, width: int, height: int) -> bool:
        if self.w <= 0 or self.h <= 0:
            return False
        if self.x < 0 or self.y < 0:
            return False
        return self.x + self.w <= width and self.y + self.h <= height

    def box(self) -> Tuple[int, int, int, int]:
        """(left, upper, right, lower) as Pillow expects."""
        return (self.x, self.y, self.x + self.w, self.y + self.h)


@dataclass(frozen=True)
class Display:
    id: object
    x: int
    y: int
    width: int
    height: int

    def distance_to(self, px: int, py: int) -> float:
        """0 inside the display, else the distance to its nearest edge."""
        dx = max(self.x - px, 0, px - (self.x + self.width - 1))
        dy = max(self.y - py, 0, py - (self.y + self.height - 1))
        return math.hypot(dx, dy)


@dataclass
class CaptureRequest:
    display: Display
    frame: Optional[bytes] = field(default=None, repr=False)
    selection: Optional[CropRect] = None


@dataclass(frozen=True)
class Swatch:
    hex: str
    rgb: RgbColor
    population: int
    label: str = ""
