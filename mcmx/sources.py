"""Glyph sources: PNG directories and PNG grids, plus grid and per-char export.

Directory sources hold one PNG per character or group of characters. The
file name declares the indices: ``-`` separates segments and ``_`` joins
the ends of an inclusive range, so ``065_090.png`` holds characters 65 to
90 and ``001-003.png`` characters 1 and 3. Cells are read left to right,
top to bottom.

Grid sources hold the whole font in one PNG, ``columns`` cells per row with
``margin`` pixels around and between cells.
"""

import math
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from PIL import Image

from mcmx.char import BLACK_COLOR, CHAR_HEIGHT, CHAR_NUM, CHAR_WIDTH, EXTENDED_CHAR_NUM, Char
from mcmx.errors import ConflictError, FormatError
from mcmx.fileio import Options, output_file
from mcmx.logging import audit, get_logger, trace
from mcmx.raster import RasterView

log = get_logger("sources")

SOURCE_DIRECTORY = "directory"
SOURCE_GRID = "grid"


@dataclass
class GlyphSource:
    """Characters imported from images.

    origins maps each index to the image it came from; only directory
    sources fill it, since a grid cell can't be removed on its own.
    """
    chars: dict[int, Char]
    kind: str
    path: Path
    origins: dict[int, Path] = field(default_factory=dict)

    @property
    def deletable(self) -> bool:
        return self.kind == SOURCE_DIRECTORY


def _open_png(path: Path) -> Image.Image:
    try:
        im = Image.open(path)
        im.load()
    except FileNotFoundError:
        raise
    except OSError as exc:
        raise FormatError(f"error decoding {path}: {exc}") from exc
    if im.format != "PNG":
        raise FormatError(f"{path}: invalid image format {im.format}, must be png")
    return im


# ---------------------------------------------------------------------------
# Directory sources
# ---------------------------------------------------------------------------

def parse_filename_char_nums(stem: str, width: int, height: int) -> list[int]:
    """Character indices declared by an image file name."""
    if width % CHAR_WIDTH != 0:
        raise FormatError(f"invalid image width {width}, must be a multiple of {CHAR_WIDTH}")
    if height % CHAR_HEIGHT != 0:
        raise FormatError(f"invalid image height {height}, must be a multiple of {CHAR_HEIGHT}")
    total = (width // CHAR_WIDTH) * (height // CHAR_HEIGHT)

    nums: list[int] = []
    for segment in stem.split("-"):
        prev = None
        for item in segment.split("_"):
            try:
                n = int(item, 10)
            except ValueError:
                raise FormatError(f"invalid number {item!r} in image filename {stem!r}") from None
            if prev is not None:
                nums.extend(range(prev + 1, n + 1))
            else:
                nums.append(n)
            prev = n
    if len(nums) != total:
        raise FormatError(
            f"image {stem!r} with size {width}x{height} must contain {total} characters, {len(nums)} declared"
        )
    return nums


@trace
def load_directory(directory: str | Path) -> GlyphSource:
    """Import every PNG in *directory*."""
    directory = Path(directory)
    chars: dict[int, Char] = {}
    origins: dict[int, Path] = {}
    for path in sorted(directory.iterdir()):
        if path.is_dir() or path.suffix.lower() != ".png":
            continue
        im = _open_png(path)
        nums = parse_filename_char_nums(path.stem, im.width, im.height)
        view = RasterView(im)
        cols = im.width // CHAR_WIDTH
        for ii, num in enumerate(nums):
            if num in chars:
                raise ConflictError(f"duplicate character {num} in {path} and {origins[num]}", num)
            x0 = (ii % cols) * CHAR_WIDTH
            y0 = (ii // cols) * CHAR_HEIGHT
            log.debug("importing char %d from image %s @%d,%d", num, path.name, x0, y0)
            chars[num] = Char.from_image(view, x0, y0)
            origins[num] = path
    audit("sources.directory_loaded", logger=log, path=str(directory), chars=len(chars))
    return GlyphSource(chars=chars, kind=SOURCE_DIRECTORY, path=directory, origins=origins)


# ---------------------------------------------------------------------------
# Grid sources
# ---------------------------------------------------------------------------

def grid_size(char_num: int, columns: int, margin: int) -> tuple[int, int]:
    """Pixel size of a grid holding *char_num* characters."""
    rows = math.ceil(char_num / columns)
    return (CHAR_WIDTH + margin) * columns + margin, (CHAR_HEIGHT + margin) * rows + margin


def _cell_origin(index: int, columns: int, margin: int) -> tuple[int, int]:
    row, col = divmod(index, columns)
    return col * (CHAR_WIDTH + margin) + margin, row * (CHAR_HEIGHT + margin) + margin


@trace
def load_grid(path: str | Path, columns: int, margin: int) -> GlyphSource:
    """Import a whole font from a PNG grid. Blank cells are skipped."""
    path = Path(path)
    im = _open_png(path)
    width, height = grid_size(CHAR_NUM, columns, margin)
    _, extended_height = grid_size(EXTENDED_CHAR_NUM, columns, margin)
    if im.width != width:
        raise FormatError(f"invalid image width {im.width}, must be {width}")
    if im.height == height:
        char_num = CHAR_NUM
    elif im.height == extended_height:
        char_num = EXTENDED_CHAR_NUM
    else:
        raise FormatError(
            f"invalid image height {im.height}, must be {height} ({CHAR_NUM} characters) "
            f"or {extended_height} ({EXTENDED_CHAR_NUM} characters)"
        )
    view = RasterView(im)
    chars: dict[int, Char] = {}
    for index in range(char_num):
        x0, y0 = _cell_origin(index, columns, margin)
        log.debug("importing char %d from image %s @%d,%d", index, path.name, x0, y0)
        cell = view.crop(x0, y0, x0 + CHAR_WIDTH, y0 + CHAR_HEIGHT)
        ch = Char.from_image(cell)
        if not ch.is_blank():
            chars[index] = ch
    audit("sources.grid_loaded", logger=log, path=str(path), chars=len(chars), extended=char_num == EXTENDED_CHAR_NUM)
    return GlyphSource(chars=chars, kind=SOURCE_GRID, path=path)


def load_source(path: str | Path, options: Options) -> GlyphSource:
    """Load a directory or grid source depending on what *path* is."""
    path = Path(path)
    if path.is_dir():
        return load_directory(path)
    return load_grid(path, options.columns, options.margin)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

@trace
def render_grid(chars: list[Char], columns: int, margin: int) -> Image.Image:
    """Draw *chars* into a grid image with black separator lines."""
    width, height = grid_size(len(chars), columns, margin)
    arr = np.zeros((height, width, 4), dtype=np.uint8)
    arr[:, :] = BLACK_COLOR
    img = Image.fromarray(arr)
    for index, ch in enumerate(chars):
        img.paste(ch.image(), _cell_origin(index, columns, margin))
    return img


@trace
def write_grid(chars: list[Char], output: str | Path, options: Options):
    img = render_grid(chars, options.columns, options.margin)
    with output_file(output, options) as f:
        img.save(f, format="PNG")
    audit("sources.grid_written", logger=log, path=str(output), chars=len(chars))


@trace
def extract(chars: list[Char], directory: str | Path, options: Options, blanks: bool = False) -> list[Path]:
    """Write one NNN.png per character, skipping blanks unless asked."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    written = []
    for index, ch in enumerate(chars):
        if not blanks and ch.is_blank():
            continue
        output = directory / f"{index:03d}.png"
        with output_file(output, options) as f:
            ch.image().save(f, format="PNG")
        written.append(output)
    audit("sources.extracted", logger=log, path=str(directory), chars=len(written))
    return written
