"""Shared fixtures for mcmx tests."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest
from PIL import Image

from mcmx.char import BLACK_COLOR, CHAR_HEIGHT, CHAR_WIDTH, WHITE_COLOR, Char
from mcmx.codec import Encoder
from mcmx.fileio import Options

GRAY = (128, 128, 128, 255)


def _glyph_image(black=(), white=(), cols: int = 1, rows: int = 1) -> Image.Image:
    img = Image.new("RGBA", (CHAR_WIDTH * cols, CHAR_HEIGHT * rows), GRAY)
    for xy in black:
        img.putpixel(xy, BLACK_COLOR)
    for xy in white:
        img.putpixel(xy, WHITE_COLOR)
    return img


@pytest.fixture
def glyph_image() -> Callable[..., Image.Image]:
    """Build an image of gray (transparent) cells with the given black and
    white pixel coordinates."""
    return _glyph_image


@pytest.fixture
def make_char() -> Callable[..., Char]:
    """Build a Char from black/white pixel coordinates."""
    def make(black=(), white=()) -> Char:
        return Char.from_image(_glyph_image(black, white))
    return make


@pytest.fixture
def options() -> Options:
    return Options(force=True)


@pytest.fixture
def write_glyph(glyph_image) -> Callable[..., Path]:
    """Save a glyph PNG into a directory and return its path."""
    def write(directory: Path, name: str, black=(), white=(), cols: int = 1, rows: int = 1) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{name}.png"
        glyph_image(black, white, cols, rows).save(path)
        return path
    return write


@pytest.fixture
def blank_mcm_bytes() -> bytes:
    """A 256 character map where every line is 01010101."""
    return b"MAX7456\r\n" + b"\r\n".join([b"01010101"] * (256 * 64))


@pytest.fixture
def write_mcm() -> Callable[..., Path]:
    def write(path: Path, chars: dict[int, Char]) -> Path:
        path.write_bytes(Encoder(chars).encode_bytes())
        return path
    return write
