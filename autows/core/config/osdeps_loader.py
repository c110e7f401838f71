"""
Osdeps loader — reads ``*.osdeps`` files into definition tables.

An osdeps file maps an abstract dependency name to its per-OS
definition.  Tables coming from several files are layered with
``merge_tables``: the later layer wins, and the provenance of every
name follows the winning definition.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, NamedTuple

import yaml

from autows.core.errors import ConfigError

logger = logging.getLogger(__name__)

OSDEPS_SUFFIX = ".osdeps"


class OsdepsConflict(NamedTuple):
    """A name defined differently by two layers."""

    name: str
    old_source: str | None
    new_source: str | None


@dataclass
class OsdepsTable:
    """Raw osdeps definitions plus the file each one comes from."""

    definitions: dict[str, Any] = field(default_factory=dict)
    sources: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_definitions(cls, definitions: dict[str, Any], source: str | None = None) -> OsdepsTable:
        table = cls(definitions=dict(definitions))
        if source:
            table.sources = {name: source for name in definitions}
        return table

    def source_of(self, name: str) -> str | None:
        return self.sources.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.definitions

    def __len__(self) -> int:
        return len(self.definitions)


def verify_definitions(data: Any) -> None:
    """Check that every key and scalar value is a string.

    YAML turns unquoted numbers into ints, which would silently break OS
    version matching, so they are refused.

    Raises:
        ValueError: on the first non-string key or value.
    """
    items = data.items() if isinstance(data, dict) else enumerate(data)
    for key, value in items:
        if isinstance(data, dict) and not isinstance(key, str):
            raise ValueError(
                f"invalid osdeps definition: found an {type(key).__name__}. "
                "Don't forget to put quotes around numbers"
            )
        if value is None:
            continue
        if isinstance(value, (dict, list)):
            verify_definitions(value)
        elif not isinstance(value, str):
            raise ValueError(
                f"invalid osdeps definition: found an {type(value).__name__}. "
                "Don't forget to put quotes around numbers"
            )


def load_osdeps(path: Path) -> OsdepsTable:
    """Load and verify one osdeps file.

    Raises:
        ConfigError: if the file is not valid YAML, not a mapping, or
            contains non-string keys or values.
    """
    path = path.resolve()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        verify_definitions(data)
    except ValueError as e:
        raise ConfigError(f"error in {path}: {e}") from e

    logger.debug("Loaded %d osdeps definitions from %s", len(data), path)
    return OsdepsTable.from_definitions(data, str(path))


def merge_tables(base: OsdepsTable, layer: OsdepsTable) -> tuple[OsdepsTable, list[OsdepsConflict]]:
    """Fold ``layer`` on top of ``base``.

    Neither input is modified.  Returns the merged table and the names
    whose definition changed, with the file that defined them before and
    the file that defines them now.
    """
    conflicts = [
        OsdepsConflict(name, base.source_of(name), layer.source_of(name))
        for name, value in layer.definitions.items()
        if name in base.definitions and base.definitions[name] != value
    ]
    sources = dict(base.sources)
    for name in layer.definitions:
        if name in layer.sources:
            sources[name] = layer.sources[name]
        else:
            sources.pop(name, None)

    merged = OsdepsTable(definitions={**base.definitions, **layer.definitions}, sources=sources)
    return merged, conflicts


def find_osdeps_files(directory: Path) -> list[Path]:
    """All ``*.osdeps`` files of a package-set directory, sorted by name."""
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.suffix == OSDEPS_SUFFIX and p.is_file())
