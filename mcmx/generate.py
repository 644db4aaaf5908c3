"""Generate several fonts from a YAML configuration.

Example configuration::

    previews: true
    extra: [common.yaml]
    default: default
    fonts:
      - source: default
      - source: large
        extra: true
      - source: bold.png
        output: out/bold.mcm
        parent: large

Every font except the default inherits from the default font unless it
names its own ``parent``. Parents are always built before their children
and the built tables are reused, nothing is decoded back from disk.
"""

from dataclasses import dataclass, field
from graphlib import CycleError, TopologicalSorter
from pathlib import Path
from typing import Any, Mapping

import yaml

from mcmx.build import build_font
from mcmx.codec import CharTable, Encoder
from mcmx.composer import NamedFont
from mcmx.errors import ConfigurationError, McmError
from mcmx.extradata import ExtraDataSet
from mcmx.fileio import Options
from mcmx.logging import audit, get_logger, trace
from mcmx.sources import write_grid

log = get_logger("generate")

_FONT_KEYS = {"source", "extra", "output", "parent"}
_CONFIG_KEYS = {"previews", "extra", "default", "fonts"}


def _replace_ext(path: Path, ext: str) -> Path:
    return path.with_name(path.stem + ext)


@dataclass
class FontConfig:
    source: str
    extra: list[str] | str | bool | None = None
    output: str | None = None
    parent: str | None = None

    @classmethod
    def from_dict(cls, data: Any, position: int) -> "FontConfig":
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"font {position} is not a map, it's {type(data).__name__}")
        unknown = set(data) - _FONT_KEYS
        if unknown:
            raise ConfigurationError(f"font {position} has unknown keys {sorted(map(str, unknown))}")
        source = data.get("source")
        if not source:
            raise ConfigurationError(f"source {position} is empty")
        if not isinstance(source, str):
            raise ConfigurationError(f"source {position} is not a string, it's {type(source).__name__}")
        return cls(source=source, extra=data.get("extra"), output=data.get("output"), parent=data.get("parent"))

    def extra_data_files(self, directory: Path) -> list[Path]:
        """Extra data files for this font: a list, a single file, or
        ``true`` for ``<source>.yaml``."""
        x = self.extra
        if x is None or x is False:
            return []
        if x is True:
            return [directory / _replace_ext(Path(self.source), ".yaml")]
        if isinstance(x, str):
            return [directory / x] if x else []
        if isinstance(x, list):
            files = []
            for ii, v in enumerate(x, start=1):
                if not isinstance(v, str):
                    raise ConfigurationError(
                        f"item {ii} in extra data for source {self.source} is not a string, it's {type(v).__name__}"
                    )
                if v:
                    files.append(directory / v)
            return files
        raise ConfigurationError(f"can't specify extra data files as {type(x).__name__} = {x!r}")

    def output_path(self, directory: Path) -> Path:
        if self.output:
            return directory / self.output
        return _replace_ext(directory / self.source, ".mcm")

    def preview_path(self, directory: Path) -> Path:
        source = directory / self.source
        if source.is_dir():
            return source.with_name(source.name + ".png")
        # Don't overwrite a grid source with its own preview
        return _replace_ext(source, ".preview.png")


@dataclass
class GenerateConfig:
    fonts: list[FontConfig]
    previews: bool = False
    extra: list[str] = field(default_factory=list)
    default: str | None = None
    dir: Path = field(default_factory=Path)

    @classmethod
    def from_dict(cls, data: Any, directory: Path) -> "GenerateConfig":
        if not isinstance(data, Mapping):
            raise ConfigurationError("configuration must be a map")
        unknown = set(data) - _CONFIG_KEYS
        if unknown:
            raise ConfigurationError(f"unknown configuration keys {sorted(map(str, unknown))}")
        fonts = data.get("fonts") or []
        if not isinstance(fonts, list):
            raise ConfigurationError(f"fonts must be a list, it's {type(fonts).__name__}")
        extra = data.get("extra") or []
        if isinstance(extra, str):
            extra = [extra]
        if not isinstance(extra, list) or not all(isinstance(v, str) for v in extra):
            raise ConfigurationError("global extra data must be a list of file names")
        return cls(
            fonts=[FontConfig.from_dict(f, ii) for ii, f in enumerate(fonts, start=1)],
            previews=bool(data.get("previews", False)),
            extra=extra,
            default=data.get("default") or None,
            dir=directory,
        )

    @classmethod
    def load(cls, path: str | Path) -> "GenerateConfig":
        """Load and validate a configuration file.

        Relative paths in the configuration are resolved against the
        directory holding it.
        """
        path = Path(path)
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigurationError(f"error reading config file {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"error parsing config file {path}: {exc}") from exc
        config = cls.from_dict(data, path.parent)
        config.validate()
        return config

    def extra_data_files(self) -> list[Path]:
        return [self.dir / v for v in self.extra]

    def font(self, source: str) -> FontConfig:
        for f in self.fonts:
            if f.source == source:
                return f
        raise ConfigurationError(f"font {source!r} not found in the fonts list ({self._names()})")

    def _names(self) -> str:
        return ", ".join(repr(f.source) for f in self.fonts)

    def parent_of(self, font: FontConfig) -> str | None:
        if font.parent:
            return font.parent
        if self.default and self.default != font.source:
            return self.default
        return None

    def validate(self):
        """Check every file and the inheritance graph before building."""
        for v in self.extra_data_files():
            if not v.exists():
                raise ConfigurationError(f"global extra data file {v} is not readable")
            if v.is_dir():
                raise ConfigurationError(f"global extra data file {v} is a directory, not a file")

        seen = set()
        for f in self.fonts:
            if f.source in seen:
                raise ConfigurationError(f"source {f.source!r} is listed more than once")
            seen.add(f.source)
            p = self.dir / f.source
            if not p.exists():
                raise ConfigurationError(f"source {f.source!r} ({p}) doesn't exist")
            for extra in f.extra_data_files(self.dir):
                if not extra.is_file():
                    raise ConfigurationError(f"extra data file {extra} for source {f.source!r} doesn't exist")

        if self.default and self.default not in seen:
            raise ConfigurationError(f"default font {self.default!r} not found in the fonts list ({self._names()})")
        for f in self.fonts:
            if f.parent is None:
                continue
            if f.parent == f.source:
                raise ConfigurationError(f"font {f.source!r} can't be its own parent")
            if f.parent not in seen:
                raise ConfigurationError(
                    f"parent font {f.parent!r} of {f.source!r} not found in the fonts list ({self._names()})"
                )
        self.build_order()

    def build_order(self) -> list[FontConfig]:
        """Fonts sorted so every parent comes before its children."""
        graph = {}
        for f in self.fonts:
            parent = self.parent_of(f)
            graph[f.source] = [parent] if parent else []
        try:
            order = list(TopologicalSorter(graph).static_order())
        except CycleError as exc:
            cycle = " -> ".join(exc.args[1]) if len(exc.args) > 1 else ""
            raise ConfigurationError(f"cyclic font inheritance: {cycle}") from exc
        return [self.font(name) for name in order]


@trace
def load_font_data(config: GenerateConfig) -> dict[str, ExtraDataSet]:
    """Parse the global and per-font extra data of every font, keyed by source.

    Everything is parsed up front so a bad document stops generation before
    any font is written.
    """
    global_data = ExtraDataSet()
    for path in config.extra_data_files():
        log.debug("parsing global extra data from %s", path)
        global_data.parse_file(path)

    font_data = {}
    for font in config.fonts:
        data = global_data.clone()
        for path in font.extra_data_files(config.dir):
            log.debug("parsing extra data from %s", path)
            data.parse_file(path)
        font_data[font.source] = data
    return font_data


@trace
def generate(config: GenerateConfig, options: Options) -> dict[str, CharTable]:
    """Build every font in *config*, parents first.

    Returns the built tables keyed by source name.
    """
    order = config.build_order()

    font_data = load_font_data(config)

    built: dict[str, CharTable] = {}
    for font in order:
        parents = []
        parent = config.parent_of(font)
        if parent is not None:
            parents.append(NamedFont(name=parent, chars=built[parent]))

        source = config.dir / font.source
        output = font.output_path(config.dir)
        output.parent.mkdir(parents=True, exist_ok=True)
        try:
            chars = build_font(source, output, options, extra=font_data[font.source], parents=parents)
        except McmError as exc:
            raise type(exc)(f"{font.source}: {exc}") from exc
        built[font.source] = chars
        audit("generate.font_built", logger=log, source=font.source, output=str(output), parent=parent)

        if config.previews:
            preview = font.preview_path(config.dir)
            write_grid(Encoder(chars, fill=options.fill).expand(), preview, options)
    return built


@trace
def generate_from_file(path: str | Path, options: Options) -> dict[str, CharTable]:
    return generate(GenerateConfig.load(path), options)
