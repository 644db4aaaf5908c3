"""Extra data: typed binary payloads stored inside characters.

Extra data documents map a character index to two optional lists, ``data``
and ``metadata``. Each list entry is a single-key record naming a value
kind and its value::

    200:
      data:
        - s: "FW"
        - lu16: 0x0102
      metadata:
        - u8: 1

``data`` fills the character from offset 0 and is used to define whole
characters for data storage. ``metadata`` goes into the 10 bytes after the
visible pixels and may be added to characters that also have an image.
"""

import copy
import struct
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Mapping

import yaml

from mcmx.char import CHAR_BYTES, EXTENDED_CHAR_NUM, METADATA_BYTES, MIN_CHAR_BYTES, TRANSPARENT_BYTE, Char
from mcmx.errors import ConflictError, FormatError, RangeError
from mcmx.logging import audit, get_logger, trace

log = get_logger("extradata")

SECTIONS = ("data", "metadata")


# ---------------------------------------------------------------------------
# Value kinds
# ---------------------------------------------------------------------------

class ValueKind(Enum):
    """Closed set of value kinds accepted in extra data documents.

    Each numeric kind carries its struct format: byte order and width.
    """
    S = ("s", None)
    U8 = ("u8", "<B")
    I8 = ("i8", "<b")
    LU16 = ("lu16", "<H")
    BU16 = ("bu16", ">H")
    LI16 = ("li16", "<h")
    BI16 = ("bi16", ">h")
    LU32 = ("lu32", "<I")
    BU32 = ("bu32", ">I")
    LI32 = ("li32", "<i")
    BI32 = ("bi32", ">i")
    LU64 = ("lu64", "<Q")
    BU64 = ("bu64", ">Q")
    LI64 = ("li64", "<q")
    BI64 = ("bi64", ">q")

    def __init__(self, key: str, fmt: str | None):
        self.key = key
        self.fmt = fmt

    @classmethod
    def from_key(cls, key: str) -> "ValueKind":
        try:
            return _KINDS_BY_KEY[key]
        except KeyError:
            raise FormatError(
                f"unknown value kind {key!r}, must be one of {', '.join(_KINDS_BY_KEY)}"
            ) from None

    @property
    def width(self) -> int:
        return struct.calcsize(self.fmt) if self.fmt else 0

    @property
    def signed(self) -> bool:
        return bool(self.fmt) and self.fmt[1].islower()

    @property
    def byteorder(self) -> str | None:
        if not self.fmt:
            return None
        return "little" if self.fmt[0] == "<" else "big"

    @property
    def bounds(self) -> tuple[int, int]:
        bits = self.width * 8
        if self.signed:
            return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
        return 0, (1 << bits) - 1


_KINDS_BY_KEY = {k.key: k for k in ValueKind}


def to_int(value: Any) -> int:
    """Convert a document scalar to an integer.

    Accepts integers, decimal strings, 0x-prefixed hex strings and single
    character strings (converted to the first byte of their UTF-8
    encoding).
    """
    if isinstance(value, bool):
        raise FormatError(f"can't convert boolean {value!r} to an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        if len(value) == 1:
            return value.encode("utf-8")[0]
        try:
            if value.lower().startswith("0x"):
                return int(value[2:], 16)
            return int(value, 10)
        except ValueError:
            raise FormatError(f"invalid integer {value!r}") from None
    raise FormatError(f"can't convert {type(value).__name__} {value!r} to an integer")


@dataclass(frozen=True)
class Instruction:
    """One typed value to append to a character payload."""
    kind: ValueKind
    value: int | str

    @classmethod
    def parse(cls, key: Any, raw: Any) -> "Instruction":
        if not isinstance(key, str):
            raise FormatError(f"value kind {key!r} is not a string, it's {type(key).__name__}")
        kind = ValueKind.from_key(key)
        if kind is ValueKind.S:
            if not isinstance(raw, str):
                raise FormatError(f"argument to s must be a string, it's {raw!r} ({type(raw).__name__})")
            return cls(kind, raw)
        value = to_int(raw)
        lo, hi = kind.bounds
        if not lo <= value <= hi:
            raise RangeError(f"can't encode {value} as {kind.key}, must be in [{lo}, {hi}]")
        return cls(kind, value)

    def encode(self) -> bytes:
        if self.kind is ValueKind.S:
            return self.value.encode("utf-8")
        return struct.pack(self.kind.fmt, self.value)


def parse_instructions(entries: Any, section: str) -> list[Instruction]:
    """Parse a data/metadata list into instructions."""
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise FormatError(f"{section} key is not a list, it's {type(entries).__name__}")
    result = []
    for ii, entry in enumerate(entries, start=1):
        if not isinstance(entry, Mapping):
            raise FormatError(f"key {section}, entry {ii} is not a map, it's {type(entry).__name__}")
        if len(entry) != 1:
            raise FormatError(f"map in key {section} at entry {ii} contains {len(entry)} keys, must be 1")
        (key, raw), = entry.items()
        try:
            result.append(Instruction.parse(key, raw))
        except (FormatError, RangeError) as exc:
            raise type(exc)(f"{section} entry {ii}: {exc}") from None
    return result


def parse_index(key: Any) -> int:
    if isinstance(key, bool):
        raise FormatError(f"invalid character index {key!r}")
    if isinstance(key, str):
        try:
            key = int(key, 10)
        except ValueError:
            raise FormatError(f"invalid character index {key!r}") from None
    if not isinstance(key, int):
        raise FormatError(f"invalid character index {key!r}")
    if not 0 <= key < EXTENDED_CHAR_NUM:
        raise RangeError(f"character index {key} out of range, must be in [0, {EXTENDED_CHAR_NUM - 1}]")
    return key


# ---------------------------------------------------------------------------
# Per character payload
# ---------------------------------------------------------------------------

def _pad(buf: bytearray, size: int):
    if len(buf) < size:
        buf.extend(bytes([TRANSPARENT_BYTE]) * (size - len(buf)))


@dataclass
class CharExtraData:
    """Accumulated data and metadata bytes for one character."""
    data: bytearray = field(default_factory=bytearray)
    metadata: bytearray = field(default_factory=bytearray)

    def append(self, section: str, instructions: list[Instruction]):
        target = self.data if section == "data" else self.metadata
        for ins in instructions:
            target.extend(ins.encode())

    def _check_metadata(self, index: int | None):
        if len(self.metadata) > METADATA_BYTES:
            raise RangeError(
                f"{_label(index)}metadata with {len(self.metadata)} bytes exceeds the maximum {METADATA_BYTES}"
            )

    def char(self, index: int | None = None) -> Char:
        """Synthesize a whole character from this payload."""
        total = len(self.data) + len(self.metadata)
        if total == 0:
            raise RangeError(f"{_label(index)}character is empty")
        if total > CHAR_BYTES:
            raise RangeError(
                f"{_label(index)}character has too many bytes "
                f"({len(self.data)}+{len(self.metadata)})={total} > {CHAR_BYTES}"
            )
        self._check_metadata(index)
        buf = bytearray(self.data)
        if self.metadata:
            # Metadata goes into the last 10 bytes
            _pad(buf, MIN_CHAR_BYTES)
            buf.extend(self.metadata)
        _pad(buf, CHAR_BYTES)
        return Char(buf)

    def merge_to(self, char: Char, index: int | None = None) -> Char:
        """Overlay this payload's metadata onto an existing character."""
        if self.data:
            raise ConflictError(f"{_label(index)}character has both an image and extra data", index)
        self._check_metadata(index)
        buf = bytearray(char.data[:MIN_CHAR_BYTES])
        _pad(buf, MIN_CHAR_BYTES)
        buf.extend(self.metadata)
        _pad(buf, CHAR_BYTES)
        return Char(buf)


def _label(index: int | None) -> str:
    return "" if index is None else f"character {index}: "


# ---------------------------------------------------------------------------
# Data set
# ---------------------------------------------------------------------------

class ExtraDataSet:
    """Extra data for a font, merged from any number of documents."""

    def __init__(self):
        self._entries: dict[int, CharExtraData] = {}

    def __len__(self):
        return len(self._entries)

    def __contains__(self, index: int):
        return index in self._entries

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._entries))

    def get(self, index: int) -> CharExtraData | None:
        return self._entries.get(index)

    def items(self) -> Iterator[tuple[int, CharExtraData]]:
        for index in sorted(self._entries):
            yield index, self._entries[index]

    def clone(self) -> "ExtraDataSet":
        other = ExtraDataSet()
        other._entries = copy.deepcopy(self._entries)
        return other

    def add_document(self, doc: Any, source: str = "<document>"):
        """Append the values of a parsed document.

        The whole document is validated before anything is appended.
        """
        if doc is None:
            return
        if not isinstance(doc, Mapping):
            raise FormatError(f"error parsing extra data from {source}: top level is not a map")
        parsed: list[tuple[int, str, list[Instruction]]] = []
        for key, value in doc.items():
            try:
                index = parse_index(key)
                if not isinstance(value, Mapping):
                    raise FormatError(f"can't add data from {type(value).__name__}")
                unknown = [k for k in value if k not in SECTIONS]
                if unknown:
                    raise FormatError(f"unknown keys {unknown!r}, must be data or metadata")
                for section in SECTIONS:
                    parsed.append((index, section, parse_instructions(value.get(section), section)))
            except (FormatError, RangeError) as exc:
                raise type(exc)(f"error parsing extra data from {source}, character {key}: {exc}") from None

        for index, section, instructions in parsed:
            self._entries.setdefault(index, CharExtraData()).append(section, instructions)
        audit("extradata.parsed", logger=log, source=source, chars=len(doc))

    def parse_text(self, text: str, source: str = "<string>"):
        try:
            doc = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise FormatError(f"error parsing extra data from {source}: {exc}") from exc
        self.add_document(doc, source)

    @trace
    def parse_file(self, path: str | Path):
        path = Path(path)
        self.parse_text(path.read_text(encoding="utf-8"), str(path))

    def parse_argument(self, value: str):
        """Parse a command line value: a file path, or inline YAML."""
        if Path(value).is_file():
            self.parse_file(value)
        else:
            self.parse_text(value, "<argument>")

    def apply_to(self, chars: Mapping[int, Char]) -> dict[int, Char]:
        """Return a copy of *chars* with every entry applied.

        Existing characters get a metadata overlay, missing ones are
        synthesized from the payload.
        """
        result = dict(chars)
        for index, entry in self.items():
            existing = result.get(index)
            if existing is not None:
                result[index] = entry.merge_to(existing, index)
            else:
                result[index] = entry.char(index)
        return result


@trace
def load_extra_data(sources: list[str] | None) -> ExtraDataSet:
    """Build a data set from command line values, merged left to right."""
    data_set = ExtraDataSet()
    for value in sources or ():
        data_set.parse_argument(value)
    return data_set
