"""Raster views: a rectangle over a backing Pillow image."""

from dataclasses import dataclass

import numpy as np
from PIL import Image

from mcmx.errors import FormatError


@dataclass(frozen=True)
class RasterView:
    """A rectangular window (left, top, right, bottom) into an image.

    Coordinates passed to the view are relative to its top-left corner.
    """
    image: Image.Image
    left: int = 0
    top: int = 0
    right: int | None = None
    bottom: int | None = None

    def __post_init__(self):
        if self.right is None:
            object.__setattr__(self, "right", self.image.width)
        if self.bottom is None:
            object.__setattr__(self, "bottom", self.image.height)
        if not (0 <= self.left <= self.right <= self.image.width
                and 0 <= self.top <= self.bottom <= self.image.height):
            raise FormatError(
                f"view ({self.left}, {self.top}, {self.right}, {self.bottom}) "
                f"exceeds image bounds {self.image.width}x{self.image.height}"
            )

    @classmethod
    def of(cls, source: "Image.Image | RasterView") -> "RasterView":
        if isinstance(source, RasterView):
            return source
        return cls(source)

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def crop(self, x0: int, y0: int, x1: int, y1: int) -> "RasterView":
        """Sub-view with coordinates relative to this view."""
        if not (0 <= x0 <= x1 <= self.width and 0 <= y0 <= y1 <= self.height):
            raise FormatError(f"crop ({x0}, {y0}, {x1}, {y1}) exceeds view size {self.width}x{self.height}")
        return RasterView(self.image, self.left + x0, self.top + y0, self.left + x1, self.top + y1)

    def rgba(self) -> np.ndarray:
        """RGBA pixels of the view as a (height, width, 4) uint8 array."""
        region = self.image.crop((self.left, self.top, self.right, self.bottom))
        if region.mode != "RGBA":
            region = region.convert("RGBA")
        return np.array(region, dtype=np.uint8)
