"""Tests for extra data parsing and materialization."""

import pytest

from mcmx.char import CHAR_BYTES, MIN_CHAR_BYTES, TRANSPARENT_BYTE, Char
from mcmx.errors import ConflictError, FormatError, RangeError
from mcmx.extradata import (
    CharExtraData,
    ExtraDataSet,
    Instruction,
    ValueKind,
    load_extra_data,
    parse_instructions,
    to_int,
)

PAD = bytes([TRANSPARENT_BYTE])


def _single(doc) -> CharExtraData:
    data_set = ExtraDataSet()
    data_set.add_document(doc)
    (index,) = list(data_set)
    return data_set.get(index)


def test_synthesized_char_from_data():
    entry = _single({7: {"data": [{"u8": 5}, {"lu16": 300}]}})
    ch = entry.char()
    assert ch.data[:3] == bytes([0x05, 0x2C, 0x01])
    assert ch.data[3:] == PAD * 61


def test_synthesized_char_metadata_only():
    entry = _single({7: {"metadata": [{"bu16": 0x0102}]}})
    ch = entry.char()
    assert ch.data[:MIN_CHAR_BYTES] == PAD * MIN_CHAR_BYTES
    assert ch.data[MIN_CHAR_BYTES:MIN_CHAR_BYTES + 2] == b"\x01\x02"
    assert ch.data[MIN_CHAR_BYTES + 2:] == PAD * 8


def test_synthesized_char_data_and_metadata():
    entry = _single({0: {"data": [{"s": "AB"}], "metadata": [{"u8": 9}]}})
    ch = entry.char()
    assert ch.data[:2] == b"AB"
    assert ch.data[2:MIN_CHAR_BYTES] == PAD * (MIN_CHAR_BYTES - 2)
    assert ch.data[MIN_CHAR_BYTES] == 9
    assert len(ch.data) == CHAR_BYTES


def test_full_data_char():
    entry = CharExtraData(data=bytearray(range(CHAR_BYTES)))
    assert entry.char().data == bytes(range(CHAR_BYTES))


def test_empty_char_is_an_error():
    with pytest.raises(RangeError, match="character is empty"):
        CharExtraData().char()


def test_too_many_bytes():
    entry = CharExtraData(data=bytearray(60), metadata=bytearray(5))
    with pytest.raises(RangeError, match="too many bytes"):
        entry.char()


def test_metadata_limit():
    entry = CharExtraData(metadata=bytearray(11))
    with pytest.raises(RangeError, match="exceeds the maximum 10"):
        entry.char()
    with pytest.raises(RangeError):
        entry.merge_to(Char.blank())


def test_merge_to_overlays_metadata(make_char):
    existing = make_char(black=[(3, 3)], white=[(7, 12)])
    metadata = bytes(range(1, 11))
    merged = CharExtraData(metadata=bytearray(metadata)).merge_to(existing)
    assert merged.data == existing.data[:MIN_CHAR_BYTES] + metadata


def test_merge_to_pads_short_metadata(make_char):
    existing = make_char(black=[(0, 0)])
    merged = CharExtraData(metadata=bytearray(b"\x01")).merge_to(existing)
    assert merged.data == existing.pixel_data + b"\x01" + PAD * 9


def test_merge_to_replaces_existing_metadata():
    existing = Char(PAD * MIN_CHAR_BYTES + bytes(10))
    merged = CharExtraData(metadata=bytearray(b"\x07")).merge_to(existing)
    assert merged.metadata == b"\x07" + PAD * 9


def test_merge_to_conflict(make_char):
    entry = CharExtraData(data=bytearray(b"\x01"))
    with pytest.raises(ConflictError) as excinfo:
        entry.merge_to(make_char(black=[(1, 1)]), 42)
    assert excinfo.value.index == 42


@pytest.mark.parametrize("raw, expected", [
    (17, 17),
    ("42", 42),
    ("-3", -3),
    ("0x10", 16),
    ("0XfF", 255),
    ("A", 65),
    ("5", 53),
    ("é", 0xC3),
    ("€", 0xE2),
])
def test_to_int(raw, expected):
    assert to_int(raw) == expected


@pytest.mark.parametrize("raw", [True, 1.5, None, "twelve", "0xZZ", [1]])
def test_to_int_rejects(raw):
    with pytest.raises(FormatError):
        to_int(raw)


@pytest.mark.parametrize("key, value, expected", [
    ("u8", 255, b"\xff"),
    ("i8", -1, b"\xff"),
    ("lu16", 0x0102, b"\x02\x01"),
    ("bu16", 0x0102, b"\x01\x02"),
    ("li16", -2, b"\xfe\xff"),
    ("bi16", -2, b"\xff\xfe"),
    ("lu32", 0x01020304, b"\x04\x03\x02\x01"),
    ("bu32", 0x01020304, b"\x01\x02\x03\x04"),
    ("li32", -1, b"\xff\xff\xff\xff"),
    ("bi32", 1, b"\x00\x00\x00\x01"),
    ("lu64", 2**64 - 1, b"\xff" * 8),
    ("bu64", 1, b"\x00" * 7 + b"\x01"),
    ("li64", -(2**63), b"\x00" * 7 + b"\x80"),
    ("bi64", 2, b"\x00" * 7 + b"\x02"),
    ("s", "hé", "hé".encode("utf-8")),
])
def test_instruction_encoding(key, value, expected):
    assert Instruction.parse(key, value).encode() == expected


@pytest.mark.parametrize("key, value", [
    ("u8", 256),
    ("u8", -1),
    ("i8", 128),
    ("i8", -129),
    ("lu16", 65536),
    ("bi16", -32769),
    ("lu32", 2**32),
    ("li32", 2**31),
    ("bu64", 2**64),
    ("li64", 2**63),
])
def test_instruction_range_checks(key, value):
    with pytest.raises(RangeError, match=f"can't encode {value} as {key}"):
        Instruction.parse(key, value)


def test_instruction_rejects_unknown_kind_and_bad_strings():
    with pytest.raises(FormatError, match="unknown value kind"):
        Instruction.parse("u24", 1)
    with pytest.raises(FormatError, match="argument to s must be a string"):
        Instruction.parse("s", 12)


def test_value_kind_properties():
    assert ValueKind.from_key("li16") is ValueKind.LI16
    assert ValueKind.LI16.width == 2
    assert ValueKind.LI16.signed
    assert ValueKind.LI16.byteorder == "little"
    assert ValueKind.BU32.byteorder == "big"
    assert not ValueKind.BU32.signed
    assert ValueKind.U8.bounds == (0, 255)
    assert ValueKind.BI64.bounds == (-(2**63), 2**63 - 1)
    assert len(ValueKind) == 15


def test_parse_instructions_validation():
    assert parse_instructions(None, "data") == []
    with pytest.raises(FormatError, match="not a list"):
        parse_instructions({"u8": 1}, "data")
    with pytest.raises(FormatError, match="entry 1 is not a map"):
        parse_instructions([5], "data")
    with pytest.raises(FormatError, match="contains 2 keys"):
        parse_instructions([{"u8": 1, "i8": 2}], "metadata")


def test_document_validation():
    data_set = ExtraDataSet()
    with pytest.raises(FormatError, match="unknown keys"):
        data_set.add_document({1: {"pixels": []}})
    with pytest.raises(FormatError):
        data_set.add_document({1: [1, 2]})
    with pytest.raises(FormatError):
        data_set.add_document([1, 2])
    with pytest.raises(RangeError):
        data_set.add_document({512: {"data": [{"u8": 1}]}})
    with pytest.raises(FormatError, match="invalid character index"):
        data_set.add_document({"x": {"data": [{"u8": 1}]}})
    assert len(data_set) == 0


def test_document_is_applied_atomically():
    data_set = ExtraDataSet()
    with pytest.raises(RangeError):
        data_set.add_document({1: {"data": [{"u8": 1}]}, 2: {"data": [{"u8": 999}]}})
    assert 1 not in data_set


def test_documents_accumulate_in_order():
    data_set = ExtraDataSet()
    data_set.parse_text("10:\n  data:\n    - u8: 1\n  metadata:\n    - u8: 7\n")
    data_set.parse_text("10:\n  data:\n    - u8: 2\n    - s: xy\n'11':\n  metadata:\n    - u8: 3\n")
    entry = data_set.get(10)
    assert bytes(entry.data) == b"\x01\x02xy"
    assert bytes(entry.metadata) == b"\x07"
    assert list(data_set) == [10, 11]


def test_yaml_hex_and_char_scalars():
    data_set = ExtraDataSet()
    data_set.parse_text("3:\n  data:\n    - u8: 0x41\n    - u8: 'B'\n    - lu16: '0x0102'\n")
    assert bytes(data_set.get(3).data) == b"AB\x02\x01"


def test_parse_text_rejects_invalid_yaml():
    with pytest.raises(FormatError):
        ExtraDataSet().parse_text("1: [unclosed")


def test_parse_file_and_argument(tmp_path):
    path = tmp_path / "extra.yaml"
    path.write_text("5:\n  data:\n    - u8: 1\n", encoding="utf-8")
    data_set = load_extra_data([str(path), "{5: {data: [{u8: 2}]}, 6: {metadata: [{u8: 3}]}}"])
    assert bytes(data_set.get(5).data) == b"\x01\x02"
    assert bytes(data_set.get(6).metadata) == b"\x03"


def test_parse_file_error_names_source(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("5:\n  data:\n    - q8: 1\n", encoding="utf-8")
    with pytest.raises(FormatError, match="bad.yaml"):
        ExtraDataSet().parse_file(path)


def test_clone_is_independent():
    data_set = ExtraDataSet()
    data_set.add_document({1: {"data": [{"u8": 1}]}})
    clone = data_set.clone()
    clone.add_document({1: {"data": [{"u8": 2}]}, 2: {"metadata": [{"u8": 3}]}})
    assert bytes(data_set.get(1).data) == b"\x01"
    assert 2 not in data_set
    assert bytes(clone.get(1).data) == b"\x01\x02"


def test_apply_to(make_char):
    glyph = make_char(black=[(2, 2)])
    data_set = ExtraDataSet()
    data_set.add_document({
        1: {"metadata": [{"u8": 9}]},
        300: {"data": [{"s": "OSD"}]},
    })
    table = {1: glyph}
    result = data_set.apply_to(table)
    assert table == {1: glyph}
    assert result[1].pixel_data == glyph.pixel_data
    assert result[1].metadata[0] == 9
    assert result[300].data[:3] == b"OSD"


def test_apply_to_conflict(make_char):
    data_set = ExtraDataSet()
    data_set.add_document({4: {"data": [{"u8": 1}]}})
    with pytest.raises(ConflictError, match="character 4"):
        data_set.apply_to({4: make_char(black=[(0, 0)])})
