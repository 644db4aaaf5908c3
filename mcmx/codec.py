""".mcm character map codec.

File layout: a ``MAX7456`` header line followed by 64 lines per character,
each line one byte written as 8 binary digits. Lines are separated by CRLF
with no separator after the last one. Standard maps hold 256 characters,
extended (two page) maps hold 512.
"""

import io
from pathlib import Path
from typing import BinaryIO, Iterator, Mapping

from mcmx.char import CHAR_NUM, EXTENDED_CHAR_NUM, Char, CharBuilder
from mcmx.errors import FormatError, RangeError
from mcmx.logging import audit, get_logger, trace

log = get_logger("codec")

MAX7456_HEADER = b"MAX7456\r\n"
# Accepted when reading, never written
MAX7456_ALT_HEADER = b"MAX7456\n"

LINE_SEPARATOR = b"\r\n"

CharTable = dict[int, Char]


def is_extended(chars: Mapping[int, Char]) -> bool:
    """True if any index requires the second character page."""
    return any(k >= CHAR_NUM for k in chars)


def required_char_num(chars: Mapping[int, Char]) -> int:
    """Number of characters an .mcm holding *chars* must contain."""
    return EXTENDED_CHAR_NUM if is_extended(chars) else CHAR_NUM


# ---------------------------------------------------------------------------
# Decoder
# ---------------------------------------------------------------------------

class Decoder:
    """Decodes a well formed MAX7456 character map from a binary stream."""

    def __init__(self, stream: BinaryIO):
        self.chars: list[Char] = self._decode(stream)

    @staticmethod
    def _decode(stream: BinaryIO) -> list[Char]:
        hdr = stream.readline()
        if hdr not in (MAX7456_HEADER, MAX7456_ALT_HEADER):
            raise FormatError(f"unknown character map header {hdr[:32]!r}")

        builder = CharBuilder()
        chars: list[Char] = []
        lineno = 1
        while True:
            raw = stream.readline()
            if not raw:
                if builder.is_empty():
                    break
                raise FormatError(
                    f"truncated character map: character {len(chars)} is incomplete at line {lineno}"
                )
            lineno += 1
            line = raw.strip()
            if not line:
                continue
            if len(line) != 8:
                raise FormatError(f"line {lineno} has invalid length {len(line)} (must be 8)")
            if line.strip(b"01"):
                raise FormatError(f"line {lineno} has invalid characters {line!r} (must be 0 or 1)")
            value = int(line, 2)
            for shift in (6, 4, 2, 0):
                builder.append_pixel((value >> shift) & 0x03)
            if builder.is_complete():
                chars.append(builder.char())
                builder.reset()
        return chars

    @property
    def n_chars(self) -> int:
        """Number of characters found, 256 or 512 in well formed maps."""
        return len(self.chars)

    def char_at(self, i: int) -> Char:
        return self.chars[i]

    def table(self) -> CharTable:
        return dict(enumerate(self.chars))

    def __len__(self):
        return len(self.chars)

    def __iter__(self) -> Iterator[Char]:
        return iter(self.chars)


@trace
def decode(stream: BinaryIO) -> list[Char]:
    """Decode an .mcm stream into its characters, in file order."""
    chars = Decoder(stream).chars
    audit("codec.decoded", logger=log, chars=len(chars))
    return chars


def decode_bytes(data: bytes) -> list[Char]:
    return decode(io.BytesIO(data))


@trace
def decode_file(path: str | Path) -> list[Char]:
    """Decode the .mcm file at *path*."""
    with open(path, "rb") as f:
        try:
            return Decoder(f).chars
        except FormatError as exc:
            raise FormatError(f"{path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Encoder
# ---------------------------------------------------------------------------

class Encoder:
    """Encodes a character table as an .mcm file.

    Missing characters are replaced by blanks when *fill* is set, otherwise
    they are an error.
    """

    def __init__(self, chars: Mapping[int, Char], fill: bool = True):
        self.chars = chars
        self.fill = fill

    def is_extended(self) -> bool:
        return is_extended(self.chars)

    def char_num(self) -> int:
        return required_char_num(self.chars)

    def expand(self) -> list[Char]:
        """All characters in index order, validated and blank filled."""
        char_num = self.char_num()
        for k in self.chars:
            if not 0 <= k < char_num:
                raise RangeError(f"invalid character number {k}, max is {char_num - 1}")
        result = []
        for ii in range(char_num):
            c = self.chars.get(ii)
            if c is None:
                if not self.fill:
                    raise RangeError(f"missing character {ii}")
                c = Char.blank()
            result.append(c)
        return result

    def encode(self, stream: BinaryIO):
        chars = self.expand()
        stream.write(MAX7456_HEADER)
        lines = (format(b, "08b").encode("ascii") for c in chars for b in c.data)
        stream.write(LINE_SEPARATOR.join(lines))
        audit("codec.encoded", logger=log, chars=len(chars), extended=len(chars) == EXTENDED_CHAR_NUM)

    def encode_bytes(self) -> bytes:
        buf = io.BytesIO()
        self.encode(buf)
        return buf.getvalue()
