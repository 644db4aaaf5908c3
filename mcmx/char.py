"""MAX7456 pixel model, packed 64-byte characters and the character builder.

Each character is 12x18 pixels with 2 bits per pixel, so the visible glyph
takes ((12 * 18) * 2) / 8 = 54 bytes. MCM files store 64 bytes per
character; the trailing 10 bytes are never displayed and may carry
metadata (e.g. FrSkyOSD feature flags).
"""

from enum import IntEnum
from typing import Iterator, NamedTuple

import numpy as np
from PIL import Image

from mcmx.errors import FormatError, RangeError
from mcmx.raster import RasterView

CHAR_WIDTH = 12
CHAR_HEIGHT = 18

# Bytes holding the 216 visible pixels
MIN_CHAR_BYTES = 54
# Bytes per character in .mcm files
CHAR_BYTES = 64
METADATA_BYTES = CHAR_BYTES - MIN_CHAR_BYTES

CHAR_NUM = 256
# FrSkyOSD and AT7456 support 2 pages of characters
EXTENDED_CHAR_NUM = 512

# All four pixels = 01
TRANSPARENT_BYTE = 0x55

BLACK_COLOR = (0, 0, 0, 255)
WHITE_COLOR = (255, 255, 255, 255)
DEFAULT_TRANSPARENT_COLOR = (128, 128, 128, 255)  # 50% gray

Color = tuple[int, ...]


class Pixel(IntEnum):
    BLACK = 0
    TRANSPARENT = 1
    WHITE = 2
    # Not a documented code, displayed as transparent by most OSDs
    UNDEFINED = 3

    @property
    def is_transparent(self) -> bool:
        # LSB set means transparent, the MSB is ignored
        return bool(self & Pixel.TRANSPARENT)


class PixelInfo(NamedTuple):
    x: int
    y: int
    unused: bool
    pixel: Pixel


def _rgba(color: Color) -> Color:
    if len(color) == 3:
        return (*color, 255)
    return tuple(color)


# ---------------------------------------------------------------------------
# Char
# ---------------------------------------------------------------------------

class Char:
    """One immutable 64-byte character."""

    __slots__ = ("_data",)

    def __init__(self, data: bytes | bytearray):
        if len(data) != CHAR_BYTES:
            raise RangeError(f"invalid char data size {len(data)}, must be {CHAR_BYTES}")
        self._data = bytes(data)

    @classmethod
    def blank(cls) -> "Char":
        """The all-transparent character used to fill missing entries."""
        return _BLANK

    @classmethod
    def from_image(cls, image: "Image.Image | RasterView", x0: int = 0, y0: int = 0) -> "Char":
        """Sample the 12x18 window of *image* starting at (x0, y0)."""
        builder = CharBuilder()
        builder.set_image(image, x0, y0)
        return builder.char()

    @property
    def data(self) -> bytes:
        return self._data

    @property
    def pixel_data(self) -> bytes:
        return self._data[:MIN_CHAR_BYTES]

    @property
    def metadata(self) -> bytes:
        return self._data[MIN_CHAR_BYTES:]

    def iter_pixels(self) -> Iterator[PixelInfo]:
        """Yield every 2-bit code in row-major order.

        0 <= x < 12 while y keeps growing past the visible rows: the codes
        stored after row 17 are yielded with unused=True.
        """
        x = 0
        y = 0
        for v in self._data:
            unused = y >= CHAR_HEIGHT
            yield PixelInfo(x, y, unused, Pixel((v & 0xC0) >> 6))
            yield PixelInfo(x + 1, y, unused, Pixel((v & 0x30) >> 4))
            yield PixelInfo(x + 2, y, unused, Pixel((v & 0x0C) >> 2))
            yield PixelInfo(x + 3, y, unused, Pixel(v & 0x03))
            x += 4
            if x == CHAR_WIDTH:
                x = 0
                y += 1

    def image_strict(self, transparent: Color | None, undefined: Color | None) -> Image.Image:
        """Render a 12x18 RGBA image.

        Raises RangeError if a transparent (or undefined) pixel is found and
        no color was given for it. See Char.image() for the lenient variant.
        """
        arr = np.zeros((CHAR_HEIGHT, CHAR_WIDTH, 4), dtype=np.uint8)
        for x, y, unused, p in self.iter_pixels():
            if unused:
                continue
            if p == Pixel.BLACK:
                color = BLACK_COLOR
            elif p == Pixel.WHITE:
                color = WHITE_COLOR
            elif p == Pixel.TRANSPARENT:
                if transparent is None:
                    raise RangeError(f"no color was provided for transparent pixel {p.value} @ ({x}, {y})")
                color = transparent
            else:
                if undefined is None:
                    raise RangeError(f"no color was provided for undefined pixel {p.value} @ ({x}, {y})")
                color = undefined
            arr[y, x] = _rgba(color)
        return Image.fromarray(arr)

    def image(self, transparent: Color | None = None) -> Image.Image:
        """Render a 12x18 RGBA image, treating code 3 as transparent."""
        if transparent is None:
            transparent = DEFAULT_TRANSPARENT_COLOR
        return self.image_strict(transparent, transparent)

    def is_blank(self) -> bool:
        """True iff every visible pixel is transparent (code 1)."""
        return all(p == Pixel.TRANSPARENT for _, _, unused, p in self.iter_pixels() if not unused)

    def visually_equal(self, other: "Char") -> bool:
        """Compare visible pixels only, ignoring the metadata region."""
        for a, b in zip(self.iter_pixels(), other.iter_pixels()):
            if a.unused:
                break
            if a.pixel != b.pixel:
                return False
        return True

    def metadata_is_blank(self) -> bool:
        return all(b == TRANSPARENT_BYTE for b in self.metadata)

    def __eq__(self, other):
        if not isinstance(other, Char):
            return NotImplemented
        return self._data == other._data

    def __hash__(self):
        return hash(self._data)

    def __repr__(self):
        return f"Char({self._data.hex()})"


# ---------------------------------------------------------------------------
# CharBuilder
# ---------------------------------------------------------------------------

class CharBuilder:
    """Packs pixels 4 per byte, most significant pair first."""

    _SHIFTS = (6, 4, 2, 0)

    def __init__(self):
        self.reset()

    def reset(self):
        self._data = bytearray()
        self._slot = 0

    def is_empty(self) -> bool:
        return len(self._data) == 0

    def is_complete(self) -> bool:
        return len(self._data) == CHAR_BYTES and self._slot == 0

    def append_pixel(self, p: int):
        # Codes are stored verbatim. Rewriting 11 as 01 would break OSDs
        # that display 11 as gray or read the metadata region.
        if not 0 <= p <= 3:
            raise RangeError(f"invalid pixel {p}, must be in 0-3")
        if self._slot == 0:
            if len(self._data) == CHAR_BYTES:
                raise RangeError(f"character already has {CHAR_BYTES} bytes")
            self._data.append(0)
        self._data[-1] |= p << self._SHIFTS[self._slot]
        self._slot = (self._slot + 1) % 4

    def char(self) -> Char:
        if not self.is_complete():
            raise FormatError(
                f"incomplete character: {len(self._data)} bytes, pixel slot {self._slot}"
            )
        return Char(self._data)

    def set_image(self, image: "Image.Image | RasterView", x0: int, y0: int):
        """Reset and sample the 12x18 window at (x0, y0).

        Opaque pure black becomes BLACK, opaque pure white becomes WHITE,
        anything else TRANSPARENT. The rest of the character, including the
        metadata region, is padded with TRANSPARENT.
        """
        view = RasterView.of(image)
        if x0 < 0 or y0 < 0 or x0 + CHAR_WIDTH > view.width or y0 + CHAR_HEIGHT > view.height:
            raise FormatError(
                f"character window @ ({x0}, {y0}) doesn't fit in a {view.width}x{view.height} image"
            )
        self.reset()
        cell = view.rgba()[y0:y0 + CHAR_HEIGHT, x0:x0 + CHAR_WIDTH]
        opaque = cell[..., 3] == 255
        black = (cell[..., :3] == 0).all(axis=2) & opaque
        white = (cell[..., :3] == 255).all(axis=2) & opaque

        codes = np.full((CHAR_HEIGHT, CHAR_WIDTH), Pixel.TRANSPARENT, dtype=np.uint8)
        codes[black] = Pixel.BLACK
        codes[white] = Pixel.WHITE
        for code in codes.ravel():
            self.append_pixel(int(code))
        while not self.is_complete():
            self.append_pixel(Pixel.TRANSPARENT)


_BLANK = Char(bytes([TRANSPARENT_BYTE]) * CHAR_BYTES)
