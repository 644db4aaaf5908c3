"""Build .mcm files from image sources."""

from pathlib import Path
from typing import Sequence

from mcmx.codec import CharTable, Encoder, decode_file
from mcmx.composer import NamedFont, compose
from mcmx.extradata import ExtraDataSet
from mcmx.fileio import Options, output_file
from mcmx.logging import audit, get_logger, trace
from mcmx.sources import load_source, write_grid

log = get_logger("build")


@trace
def write_mcm(chars: CharTable, output: str | Path, options: Options):
    """Encode *chars* into *output*. A failed encode leaves no file behind."""
    encoder = Encoder(chars, fill=options.fill)
    with output_file(output, options) as f:
        encoder.encode(f)
    audit("build.mcm_written", logger=log, path=str(output), extended=encoder.is_extended())


@trace
def build_font(source: str | Path, output: str | Path, options: Options,
               extra: ExtraDataSet | None = None, parents: Sequence[NamedFont] = ()) -> CharTable:
    """Build *output* from a directory or grid *source*.

    Returns the composed table so it can be used as a parent font.
    """
    primary = load_source(source, options)
    result = compose(primary, parents, extra, duplicates=options.duplicates)
    write_mcm(result.chars, output, options)
    return result.chars


def load_parent(path: str | Path) -> NamedFont:
    """Decode an existing .mcm to use as a parent font."""
    chars = decode_file(path)
    return NamedFont(name=str(path), chars=dict(enumerate(chars)))


@trace
def build_png(input_mcm: str | Path, output: str | Path, options: Options):
    """Render an .mcm as a PNG grid."""
    write_grid(decode_file(input_mcm), output, options)
