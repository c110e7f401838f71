"""
Osdeps values — the closed set of shapes an osdeps entry can take.

Raw YAML is turned into one of these once, by ``parse_definition``;
resolution then switches over the variants instead of probing shapes:

    ignore                       → Ignore
    nonexistent                  → Nonexistent
    gem                          → Gem([name])
    [pkg, pkg]                   → PackageList (valid on every OS)
    {os,os: leaf, gem: [...]}    → PerOs
    {os: {ver,ver: leaf}}        → PerOs holding a PerVersion

A malformed leaf under an OS or version key is kept as ``Malformed``
and only reported when resolution selects it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Union

from autows.core.errors import ConfigError

IGNORE_KEYWORD = "ignore"
NONEXISTENT_KEYWORD = "nonexistent"
GEM_KEYWORD = "gem"

_PACKAGE_NAME_RX = re.compile(r"\w+")


@dataclass(frozen=True)
class Ignore:
    """Nothing needs to be installed."""


@dataclass(frozen=True)
class Nonexistent:
    """The dependency is known to be unavailable."""


@dataclass(frozen=True)
class Gem:
    """Only language packages are needed."""

    names: tuple[str, ...]


@dataclass(frozen=True)
class PackageList:
    """Native package names."""

    packages: tuple[str, ...]


@dataclass(frozen=True)
class Malformed:
    """A leaf that is neither a keyword nor a package list."""

    value: Any


Leaf = Union[Ignore, Nonexistent, PackageList, Malformed]


@dataclass(frozen=True)
class PerVersion:
    """Version patterns (comma-split, regexes) mapped to leaves."""

    entries: tuple[tuple[tuple[str, ...], Leaf], ...]


@dataclass(frozen=True)
class PerOs:
    """OS names (comma-split, lowercased) mapped to leaves or version maps.

    ``gems`` collects the language packages listed under the ``gem`` key.
    """

    entries: tuple[tuple[tuple[str, ...], Union[Leaf, PerVersion]], ...]
    gems: tuple[str, ...] = ()


OsdepValue = Union[Ignore, Nonexistent, Gem, PackageList, PerOs]


def _split_names(key: str) -> tuple[str, ...]:
    return tuple(n.strip().lower() for n in str(key).split(",") if n.strip())


def _as_list(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, list):
        return tuple(str(v) for v in value)
    return (str(value),)


def _parse_leaf(value: Any) -> Leaf:
    if value is None or value == IGNORE_KEYWORD:
        return Ignore()
    if value == NONEXISTENT_KEYWORD:
        return Nonexistent()
    if isinstance(value, list):
        return PackageList(tuple(str(v) for v in value))
    if isinstance(value, str) and _PACKAGE_NAME_RX.search(value):
        return PackageList((value,))
    return Malformed(value)


def _parse_os_value(value: Any) -> Union[Leaf, PerVersion]:
    if not isinstance(value, dict):
        return _parse_leaf(value)
    entries = []
    for version_key, leaf in value.items():
        if isinstance(leaf, dict):
            leaf = Malformed(leaf)
        else:
            leaf = _parse_leaf(leaf)
        entries.append((_split_names(version_key), leaf))
    return PerVersion(tuple(entries))


def parse_definition(name: str, raw: Any, source: str | None = None) -> OsdepValue:
    """Turn the raw YAML definition of ``name`` into an osdeps value.

    Raises:
        ConfigError: on an unknown top-level keyword or value.
    """
    if raw is None or raw == IGNORE_KEYWORD:
        return Ignore()
    if isinstance(raw, str):
        if raw == NONEXISTENT_KEYWORD:
            return Nonexistent()
        if raw == GEM_KEYWORD:
            return Gem((name,))
        message = f"unknown OS-independent package management type {raw} for {name}"
        if source:
            message += f" (defined in {source})"
        raise ConfigError(message)
    if isinstance(raw, list):
        return PackageList(tuple(str(v) for v in raw))
    if not isinstance(raw, dict):
        raise ConfigError(f"invalid package specification {raw!r} in {source}")

    gems: list[str] = []
    entries = []
    for os_key, value in raw.items():
        if os_key == GEM_KEYWORD:
            gems.extend(_as_list(value))
            continue
        entries.append((_split_names(os_key), _parse_os_value(value)))
    return PerOs(tuple(entries), tuple(gems))
