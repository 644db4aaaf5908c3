"""End to end tests for the mcmx command line."""

import json

from mcmx.cli import build_parser, main
from mcmx.codec import decode_file


def test_build_and_round_trip(write_glyph, make_char, tmp_path, capsys):
    src = tmp_path / "glyphs"
    write_glyph(src, "065", black=[(0, 0)])
    out = tmp_path / "font.mcm"
    assert main(["-f", "build", str(src), str(out)]) == 0
    assert f"Built: {out}" in capsys.readouterr().out

    chars = decode_file(out)
    assert chars[65] == make_char(black=[(0, 0)])

    png = tmp_path / "font.png"
    assert main(["-f", "png", str(out), str(png)]) == 0
    grid = tmp_path / "again.mcm"
    assert main(["-f", "build", str(png), str(grid)]) == 0
    assert grid.read_bytes() == out.read_bytes()


def test_build_with_parent_and_extra(write_glyph, make_char, write_mcm, tmp_path):
    parent = write_mcm(tmp_path / "parent.mcm", {7: make_char(white=[(1, 1)])})
    src = tmp_path / "glyphs"
    write_glyph(src, "065", black=[(0, 0)])
    out = tmp_path / "font.mcm"
    argv = ["-f", "build", str(src), str(out), "-p", str(parent), "-e", "{65: {metadata: [{u8: 3}]}}"]
    assert main(argv) == 0

    chars = decode_file(out)
    assert chars[7] == make_char(white=[(1, 1)])
    assert chars[65].metadata[0] == 3


def test_build_without_blanks_fails_on_gaps(write_glyph, tmp_path):
    src = tmp_path / "glyphs"
    write_glyph(src, "001", black=[(0, 0)])
    out = tmp_path / "font.mcm"
    assert main(["-f", "build", "--no-blanks", str(src), str(out)]) == 1
    assert not out.exists()


def test_errors_return_nonzero(tmp_path, capsys):
    assert main(["-f", "build", str(tmp_path / "missing.png"), str(tmp_path / "out.mcm")]) == 1
    bad = tmp_path / "bad.mcm"
    bad.write_bytes(b"MAX7457\r\n")
    assert main(["-f", "png", str(bad), str(tmp_path / "out.png")]) == 1
    assert "unknown character map header" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage: mcmx" in capsys.readouterr().out


def test_extract_and_bin(make_char, write_mcm, tmp_path, capsys):
    mcm = write_mcm(tmp_path / "font.mcm", {3: make_char(black=[(0, 0)])})
    assert main(["-f", "extract", str(mcm), str(tmp_path / "chars")]) == 0
    assert [p.name for p in (tmp_path / "chars").iterdir()] == ["003.png"]
    assert main(["-f", "extract", "-b", str(mcm), str(tmp_path / "all")]) == 0
    assert len(list((tmp_path / "all").iterdir())) == 256

    out = tmp_path / "font.bin"
    assert main(["-f", "bin", "--flip-horizontal-pixels", str(mcm), str(out)]) == 0
    assert len(out.read_bytes()) == 256 * 64
    assert "Generated:" in capsys.readouterr().out


def test_generate(write_glyph, tmp_path, capsys):
    write_glyph(tmp_path / "default", "001", black=[(0, 0)])
    write_glyph(tmp_path / "child", "002", black=[(1, 1)])
    config = tmp_path / "fonts.yaml"
    config.write_text("default: default\nfonts:\n  - source: default\n  - source: child\n", encoding="utf-8")
    assert main(["-f", "generate", str(config)]) == 0
    assert "Generated 2 fonts." in capsys.readouterr().out
    assert (tmp_path / "child.mcm").exists()


def test_log_file_is_json(write_glyph, tmp_path):
    src = tmp_path / "glyphs"
    write_glyph(src, "001", black=[(0, 0)])
    log_file = tmp_path / "mcmx.log"
    assert main(["-f", "--log-file", str(log_file), "build", str(src), str(tmp_path / "font.mcm")]) == 0
    events = [json.loads(line).get("event") for line in log_file.read_text().splitlines()]
    assert "cli.start" in events
    assert "build.mcm_written" in events


def test_parser_defaults():
    args = build_parser().parse_args(["build", "in", "out.mcm"])
    assert args.columns == 16
    assert args.margin == 1
    assert args.duplicates == "off"
    assert args.extra is None
