"""mcmx CLI: tool for managing .mcm character sets for MAX7456."""

import argparse
import sys

from mcmx.errors import McmError
from mcmx.fileio import DEFAULT_COLUMNS, DEFAULT_MARGIN, DUPLICATE_MODES, Options
from mcmx.logging import audit, get_logger, setup_logging

log = get_logger("cli")

EXTRA_DATA_HELP = (
    "Extra data to add to the font, either a YAML file or an inline YAML string. "
    "Stores metadata in the non visible region of a character or defines entire "
    "characters used for data storage. Repeat to combine several sources."
)


def _options(args, **overrides) -> Options:
    values = {
        "force": args.force,
        "verbose": args.verbose,
        "columns": getattr(args, "columns", DEFAULT_COLUMNS),
        "margin": getattr(args, "margin", DEFAULT_MARGIN),
    }
    values.update(overrides)
    return Options(**values)


def cmd_extract(args):
    """Extract all characters to individual images."""
    from mcmx.codec import decode_file
    from mcmx.sources import extract

    written = extract(decode_file(args.input), args.output, _options(args), blanks=args.add_blanks)
    print(f"Extracted {len(written)} characters to {args.output}")


def cmd_build(args):
    """Build a .mcm from a directory of images or a PNG grid."""
    from mcmx.build import build_font, load_parent
    from mcmx.extradata import load_extra_data

    options = _options(args, fill=not args.no_blanks, duplicates=args.duplicates)
    extra = load_extra_data(args.extra)
    parents = [load_parent(p) for p in args.parent or ()]
    chars = build_font(args.input, args.output, options, extra=extra, parents=parents)
    print(f"Built: {args.output} ({len(chars)} characters)")


def cmd_png(args):
    """Generate a PNG grid from an .mcm."""
    from mcmx.build import build_png

    build_png(args.input, args.output, _options(args))
    print(f"Generated: {args.output}")


def cmd_bin(args):
    """Dump the raw character data of an .mcm."""
    from mcmx.binfile import build_bin

    build_bin(args.input, args.output, _options(args), flip_horizontal_pixels=args.flip_horizontal_pixels)
    print(f"Generated: {args.output}")


def cmd_generate(args):
    """Build every font declared in a configuration file."""
    from mcmx.generate import generate_from_file

    options = _options(args, duplicates=args.duplicates)
    built = generate_from_file(args.config, options)
    for name, chars in built.items():
        print(f"  {name}: {len(chars)} characters")
    print(f"Generated {len(built)} fonts.")


def _add_grid_args(p, what: str):
    p.add_argument("-m", "--margin", type=int, default=DEFAULT_MARGIN,
                   help=f"Margin between each character{what}")
    p.add_argument("-c", "--columns", type=int, default=DEFAULT_COLUMNS,
                   help=f"Number of columns in the image{what}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mcmx", description="Tool for managing .mcm character sets for MAX7456")

    # Global flags
    parser.add_argument("-f", "--force", action="store_true", help="Overwrite output files without asking")
    parser.add_argument("-V", "--verbose", action="store_true", help="Enable DEBUG-level logging")
    parser.add_argument("--log-file", default=None, help="Write JSON logs to file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- extract ---
    p_ext = subparsers.add_parser("extract", help="Extract all characters to individual images")
    p_ext.add_argument("input", help="Input .mcm file")
    p_ext.add_argument("output", help="Output directory")
    p_ext.add_argument("-b", "--add-blanks", action="store_true",
                       help="Include blank characters in the extracted files")

    # --- build ---
    p_build = subparsers.add_parser("build", help="Build a .mcm from the files in a directory or a .png grid")
    p_build.add_argument("input", help="Input directory or .png grid")
    p_build.add_argument("output", help="Output .mcm file")
    p_build.add_argument("--no-blanks", action="store_true",
                         help="Don't fill missing characters with blanks")
    _add_grid_args(p_build, " (used only for image input)")
    p_build.add_argument("-e", "--extra", action="append", help=EXTRA_DATA_HELP)
    p_build.add_argument("-p", "--parent", action="append",
                         help="Parent .mcm providing missing characters, in precedence order")
    p_build.add_argument("--duplicates", default="off", choices=DUPLICATE_MODES,
                         help="Report or remove images identical to the parent's characters")

    # --- png ---
    p_png = subparsers.add_parser("png", help="Generate a .png from an .mcm")
    p_png.add_argument("input", help="Input .mcm file")
    p_png.add_argument("output", help="Output .png file")
    _add_grid_args(p_png, "")

    # --- bin ---
    p_bin = subparsers.add_parser("bin", help="Generate a raw .bin from an .mcm")
    p_bin.add_argument("input", help="Input .mcm file")
    p_bin.add_argument("output", help="Output .bin file")
    p_bin.add_argument("--flip-horizontal-pixels", action="store_true",
                       help="Reverse the pixel order within each byte of the glyph data")

    # --- generate ---
    p_gen = subparsers.add_parser("generate", help="Build the fonts declared in a YAML configuration")
    p_gen.add_argument("config", help="Configuration file")
    _add_grid_args(p_gen, " (used for grid sources and previews)")
    p_gen.add_argument("--duplicates", default="off", choices=DUPLICATE_MODES,
                       help="Report or remove images identical to the parent's characters")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging before any command runs
    level = "DEBUG" if args.verbose else "WARNING"
    setup_logging(level=level, log_file=args.log_file)
    audit("cli.start", logger=log, command=args.command, verbose=args.verbose)

    if args.command is None:
        parser.print_help()
        return 1

    commands = {
        "extract": cmd_extract,
        "build": cmd_build,
        "png": cmd_png,
        "bin": cmd_bin,
        "generate": cmd_generate,
    }
    try:
        commands[args.command](args)
    except (McmError, OSError, ValueError) as exc:
        log.error("%s: %s", args.command, exc)
        return 1
    audit("cli.done", logger=log, command=args.command)
    return 0


if __name__ == "__main__":
    sys.exit(main())
