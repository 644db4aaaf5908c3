"""Run options and output file handling."""

import contextlib
import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Iterator

from mcmx.logging import get_logger

log = get_logger("fileio")

DEFAULT_MARGIN = 1
DEFAULT_COLUMNS = 16

DUPLICATE_MODES = ("off", "report", "remove")


@dataclass
class Options:
    """Settings threaded through every command.

    Attributes:
        force: Overwrite existing output files without asking.
        fill: Fill missing characters with blanks when encoding.
        columns: Characters per row in PNG grids.
        margin: Pixels around and between cells in PNG grids.
        duplicates: Handling of glyphs identical to the parent font's,
            one of "off", "report" or "remove".
        verbose: Debug logging was requested.
    """
    force: bool = False
    fill: bool = True
    columns: int = DEFAULT_COLUMNS
    margin: int = DEFAULT_MARGIN
    duplicates: str = "off"
    verbose: bool = False

    def __post_init__(self):
        if self.columns <= 0:
            raise ValueError(f"invalid number of columns {self.columns}, must be > 0")
        if self.margin < 0:
            raise ValueError(f"invalid margin {self.margin}, must be >= 0")
        if self.duplicates not in DUPLICATE_MODES:
            raise ValueError(f"invalid duplicates mode {self.duplicates!r}, must be one of {DUPLICATE_MODES}")


def open_output_file(path: str | Path, options: Options,
                     prompt: Callable[[str], str] = input) -> BinaryIO:
    """Open *path* for binary writing.

    Existing files are only replaced with options.force set or after the
    user agrees. Answering "a" sets options.force for the rest of the run.
    """
    path = Path(path)
    if options.force:
        return open(path, "wb")
    try:
        return open(path, "xb")
    except FileExistsError:
        while True:
            answer = prompt(f"File {path} already exists, would you like to overwrite it? [y/N/a]: ")
            answer = answer.strip().lower()
            if answer == "a":
                options.force = True
                return open(path, "wb")
            if answer == "y":
                return open(path, "wb")
            if answer in ("n", ""):
                raise


@contextlib.contextmanager
def output_file(path: str | Path, options: Options,
                prompt: Callable[[str], str] = input) -> Iterator[BinaryIO]:
    """Open an output file, removing it if the block fails.

    A partially written .mcm or image is never left behind.
    """
    f = open_output_file(path, options, prompt)
    try:
        with f:
            yield f
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.remove(path)
        log.debug("removed partial output %s", path)
        raise
