"""Raw binary export of .mcm character data."""

from pathlib import Path

from mcmx.char import MIN_CHAR_BYTES, Char
from mcmx.codec import decode_file
from mcmx.fileio import Options, output_file
from mcmx.logging import audit, get_logger, trace

log = get_logger("binfile")


def flip_horizontal_byte_pixels(b: int) -> int:
    """Reverse the order of the four 2-bit pixels in a byte."""
    return ((b >> 6) | (b << 6) | ((b >> 2) & (3 << 2)) | ((b << 2) & (3 << 4))) & 0xFF


def chars_to_bin(chars: list[Char], flip_horizontal_pixels: bool = False) -> bytes:
    buf = bytearray()
    for ch in chars:
        data = bytearray(ch.data)
        if flip_horizontal_pixels:
            for ii in range(MIN_CHAR_BYTES):
                data[ii] = flip_horizontal_byte_pixels(data[ii])
        buf.extend(data)
    return bytes(buf)


@trace
def build_bin(input_mcm: str | Path, output: str | Path, options: Options,
              flip_horizontal_pixels: bool = False):
    data = chars_to_bin(decode_file(input_mcm), flip_horizontal_pixels)
    with output_file(output, options) as f:
        f.write(data)
    audit("binfile.written", logger=log, path=str(output), size=len(data), flipped=flip_horizontal_pixels)
