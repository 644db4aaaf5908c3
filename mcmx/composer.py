"""Font composition: primary glyphs + parent fonts + extra data."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from mcmx.char import Char
from mcmx.codec import CharTable, required_char_num
from mcmx.extradata import ExtraDataSet
from mcmx.logging import audit, event, get_logger, trace
from mcmx.sources import GlyphSource

log = get_logger("composer")


@dataclass(frozen=True)
class NamedFont:
    """An already built font that other fonts may inherit from."""
    name: str
    chars: CharTable


@dataclass(frozen=True)
class Duplicate:
    """A primary glyph that its parent font already provides."""
    index: int
    parent: str
    origin: Path | None


@dataclass
class CompositionResult:
    chars: CharTable
    duplicates: list[Duplicate] = field(default_factory=list)
    removed: list[Path] = field(default_factory=list)


def is_redundant(char: Char, parent: Char) -> bool:
    """True if inheriting *parent* would produce the same character."""
    if char == parent:
        return True
    return char.visually_equal(parent) and parent.metadata_is_blank()


def find_duplicates(primary: GlyphSource, parents: Sequence[NamedFont]) -> list[Duplicate]:
    """Primary glyphs equal to the character they would inherit.

    Only the first parent holding an index is compared, since that is the
    one the glyph would be inherited from.
    """
    duplicates = []
    for index in sorted(primary.chars):
        ch = primary.chars[index]
        for parent in parents:
            pch = parent.chars.get(index)
            if pch is None:
                continue
            if is_redundant(ch, pch):
                duplicates.append(Duplicate(index, parent.name, primary.origins.get(index)))
            break
    return duplicates


def remove_duplicate_images(primary: GlyphSource, duplicates: list[Duplicate]) -> list[Path]:
    """Delete source images whose characters are all redundant.

    An image declaring several characters is only deleted when every one of
    them is a duplicate.
    """
    redundant = {d.index for d in duplicates}
    by_image: dict[Path, list[int]] = {}
    for index, origin in primary.origins.items():
        by_image.setdefault(origin, []).append(index)

    removed = []
    for image, indices in sorted(by_image.items()):
        if not all(i in redundant for i in indices):
            if any(i in redundant for i in indices):
                event(log, logging.WARNING, "composer.duplicate_kept", image=str(image),
                      reason="image holds non duplicate characters")
            continue
        image.unlink()
        removed.append(image)
        audit("composer.duplicate_removed", logger=log, image=str(image), chars=sorted(indices))
    return removed


@trace
def compose(primary: GlyphSource, parents: Sequence[NamedFont] = (), extra: ExtraDataSet | None = None,
            duplicates: str = "off") -> CompositionResult:
    """Build the final character table for one font.

    Characters missing from *primary* come from the first parent that has
    them, shared by reference. Extra data is applied last. Duplicate
    handling only reports (or deletes source images), it never changes the
    result.
    """
    char_num = max([required_char_num(primary.chars)] + [required_char_num(p.chars) for p in parents])

    found: list[Duplicate] = []
    removed: list[Path] = []
    if duplicates != "off" and parents:
        if not primary.deletable:
            event(log, logging.WARNING, "composer.duplicates_skipped", source=str(primary.path),
                  reason=f"can't remove characters from a {primary.kind} source")
        else:
            found = find_duplicates(primary, parents)
            for d in found:
                event(log, logging.INFO, "composer.duplicate", index=d.index, parent=d.parent,
                      image=str(d.origin))
            if duplicates == "remove":
                removed = remove_duplicate_images(primary, found)

    # Out of range primary indices are kept so the encoder rejects them
    chars: CharTable = dict(primary.chars)
    for index in range(char_num):
        if index in chars:
            continue
        for parent in parents:
            ch = parent.chars.get(index)
            if ch is not None:
                log.debug("char %d inherited from %s", index, parent.name)
                chars[index] = ch
                break

    if extra is not None:
        chars = extra.apply_to(chars)

    audit("composer.composed", logger=log, source=str(primary.path), chars=len(chars),
          parents=[p.name for p in parents], duplicates=len(found))
    return CompositionResult(chars=chars, duplicates=found, removed=removed)
