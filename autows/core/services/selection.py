"""
Package selection — what a list of user specs resolved to.

A selection maps every spec to the package names it matched.  Source
packages and osdeps are tracked apart so that the caller knows which
names go to the build and which to the OS installer.

After ``filter_excluded_and_ignored_packages``:

    - excluded names are gone, with their reasons kept in ``exclusions``
    - ignored names are gone, and kept in ``ignores``
    - a spec whose entry lost every name is gone too
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Iterator

if TYPE_CHECKING:
    from autows.core.services.manifest import Manifest

logger = logging.getLogger(__name__)


class PackageSelection:
    """Result of ``Manifest.expand_package_selection``."""

    def __init__(self) -> None:
        # spec -> matched names (insertion-ordered, used as a set)
        self.selection: dict[str, dict[str, None]] = {}
        self.source_packages: dict[str, None] = {}
        self.osdeps: dict[str, None] = {}
        self.weak_dependencies: dict[str, bool] = {}
        # spec -> [(name, reason)]
        self.exclusions: dict[str, list[tuple[str, str]]] = {}
        # spec -> [name]
        self.ignores: dict[str, list[str]] = {}

    def select(
        self,
        spec: str,
        packages: str | Iterable[str],
        *,
        weak: bool = False,
        osdep: bool = False,
    ) -> None:
        """Record that ``spec`` matched ``packages``.

        A spec stays weak only as long as every one of its matches is.
        """
        names = [packages] if isinstance(packages, str) else list(packages)
        entry = self.selection.setdefault(spec, {})
        for name in names:
            entry[name] = None
            if osdep:
                self.osdeps[name] = None
            else:
                self.source_packages[name] = None
        self.weak_dependencies[spec] = self.weak_dependencies.get(spec, True) and weak

    # ── Queries ────────────────────────────────────────────────

    def match_for(self, spec: str) -> set[str]:
        return set(self.selection.get(spec, ()))

    def has_match_for(self, spec: str) -> bool:
        return bool(self.selection.get(spec))

    def each_source_package_name(self) -> Iterator[str]:
        return iter(list(self.source_packages))

    def each_osdep_package_name(self) -> Iterator[str]:
        return iter(list(self.osdeps))

    def each_package_name(self) -> Iterator[str]:
        yield from self.source_packages
        yield from self.osdeps

    def __contains__(self, name: str) -> bool:
        return name in self.source_packages or name in self.osdeps

    def __len__(self) -> int:
        return len(self.source_packages) + len(self.osdeps)

    def __bool__(self) -> bool:
        return bool(self.selection)

    # ── Filtering ──────────────────────────────────────────────

    def _drop(self, names: Iterable[str]) -> None:
        for name in names:
            self.source_packages.pop(name, None)
            self.osdeps.pop(name, None)

    def filter_excluded_and_ignored_packages(self, manifest: Manifest) -> None:
        """Remove what the manifest excludes or ignores.

        A spec that is not weak and matched an excluded package is
        dropped entirely, as building it partially would not honour
        what was asked.  A weak spec keeps its other matches.
        """
        for spec in list(self.selection):
            names = list(self.selection[spec])
            excluded = [n for n in names if manifest.excluded(n)]
            others = [n for n in names if n not in excluded]
            ignored = [n for n in others if manifest.ignored(n)]
            kept = [n for n in others if n not in ignored]

            if excluded:
                self.exclusions[spec] = [(n, manifest.exclusion_reason(n)) for n in excluded]
                if not self.weak_dependencies.get(spec):
                    logger.info(
                        "%s removed from the selection: it includes excluded packages (%s)",
                        spec, ", ".join(excluded),
                    )
                    del self.selection[spec]
                    self._drop(names)
                    continue
                self._drop(excluded)

            if ignored:
                self.ignores[spec] = ignored
                self._drop(ignored)

            if kept:
                self.selection[spec] = dict.fromkeys(kept)
            else:
                del self.selection[spec]

        # a name dropped for one spec may still be selected by another
        for spec_names in self.selection.values():
            for name in spec_names:
                if name not in self:
                    self._restore(name, manifest)

    def _restore(self, name: str, manifest: Manifest) -> None:
        if manifest.find_package(name) is not None:
            self.source_packages[name] = None
        else:
            self.osdeps[name] = None
