"""
Override resolution — the effective VCS definition of a package.

Package sets are kept in import order: a set always comes after the
sets it imports, and the workspace's main set comes last.  The
definition of a package is built by folding, in that order:

    1. the ``version_control`` entries of the package's own set, or the
       package's own definition when no entry matches
    2. the ``overrides`` entries of every set after it

Folding stops at ``mainline`` when one is given, so that a set's own
source can be resolved without the overrides of sets that import it.
The folding itself does no I/O.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, Sequence, Union

from autows.adapters.vcs.importers import IMPORTERS
from autows.core.errors import ConfigError
from autows.core.models.package import PackageRecord, PackageSetRecord
from autows.core.models.vcs import VCSDefinition, merge_raw_vcs

logger = logging.getLogger(__name__)

PKG_SET_KEY_PREFIX = "pkg_set:"

SetRef = Union[str, PackageSetRecord, None]


# ── Repository identity ─────────────────────────────────────────


def repository_id_of(vcs: VCSDefinition) -> str:
    """Fingerprint of the repository described by ``vcs``.

    Local sets are identified by their path.  Other VCS types use the
    importer's fingerprint when it has one, ``str(vcs)`` otherwise.
    """
    if vcs.is_local:
        return str(vcs.url)
    importer_class = IMPORTERS.get(vcs.type)
    if importer_class is not None:
        repository_id = importer_class(vcs).repository_id
        if repository_id:
            return repository_id
    return str(vcs)


def raw_local_dir_of(remotes_dir: Path, vcs: VCSDefinition) -> Path:
    """Where the package set described by ``vcs`` lives on disk."""
    if vcs.is_local:
        return Path(str(vcs.url))
    return remotes_dir / re.sub(r"[^\w]", "_", repository_id_of(vcs))


def overrides_key(vcs: VCSDefinition) -> str:
    """Key under which overrides target the package set ``vcs``."""
    if vcs.is_local:
        return f"{PKG_SET_KEY_PREFIX}{vcs}"
    return f"{PKG_SET_KEY_PREFIX}{repository_id_of(vcs)}"


# ── Import order ────────────────────────────────────────────────


def sort_package_sets_by_import_order(
    package_sets: Iterable[PackageSetRecord],
    root: SetRef = None,
) -> list[PackageSetRecord]:
    """Order ``package_sets`` so that imports come first and ``root`` last.

    Imports naming a set that is not in ``package_sets`` are ignored.

    Raises:
        ConfigError: if the imports form a cycle.
    """
    sets = list(package_sets)
    by_name = {s.name: s for s in sets}
    root_name = root.name if isinstance(root, PackageSetRecord) else root

    result: list[PackageSetRecord] = []
    done: set[str] = set()
    stack: list[str] = []

    def visit(pkg_set: PackageSetRecord) -> None:
        if pkg_set.name in done:
            return
        if pkg_set.name in stack:
            cycle = stack[stack.index(pkg_set.name):] + [pkg_set.name]
            raise ConfigError(f"cycle in package set imports: {' -> '.join(cycle)}")
        stack.append(pkg_set.name)
        for name in pkg_set.imports:
            imported = by_name.get(name)
            if imported is not None and name != root_name:
                visit(imported)
        stack.pop()
        done.add(pkg_set.name)
        result.append(pkg_set)

    for pkg_set in sets:
        if pkg_set.name != root_name:
            visit(pkg_set)
    if root_name is not None and root_name in by_name:
        visit(by_name[root_name])
    return result


# ── Resolver ────────────────────────────────────────────────────


class OverrideResolver:
    """Folds VCS entries over an ordered sequence of package sets."""

    def __init__(self, package_sets: Sequence[PackageSetRecord]) -> None:
        self.package_sets = list(package_sets)

    def _index_of(self, ref: SetRef, *, role: str) -> int | None:
        if ref is None:
            return None
        name = ref.name if isinstance(ref, PackageSetRecord) else ref
        for i, pkg_set in enumerate(self.package_sets):
            if pkg_set.name == name:
                return i
        raise ConfigError(f"{role} {name} is not a registered package set")

    def _overriding_sets(self, first: int, mainline: SetRef) -> list[PackageSetRecord]:
        """Sets whose overrides apply, from index ``first`` up to ``mainline``."""
        last = self._index_of(mainline, role="mainline")
        stop = len(self.package_sets) if last is None else last + 1
        return self.package_sets[first:stop]

    def importer_definition_for(
        self,
        package: PackageRecord,
        mainline: SetRef = None,
        require_existing: bool = True,
    ) -> VCSDefinition:
        """Effective VCS definition of ``package``.

        Raises:
            ConfigError: if nothing defines the package's VCS and
                ``require_existing`` is set, or if an entry is invalid.
        """
        try:
            own = self._index_of(package.package_set, role="package set") if package.package_set else None
        except ConfigError:
            own = None
            logger.debug("package set %s of %s is not registered", package.package_set, package.name)

        raw: dict = {}
        if own is not None:
            for fields in self.package_sets[own].version_control_for(package.name):
                raw = merge_raw_vcs(raw, fields)
        if not raw and not package.vcs.is_none:
            raw = package.vcs.to_raw()

        first = 0 if own is None else own + 1
        for pkg_set in self._overriding_sets(first, mainline):
            for fields in pkg_set.overrides_for(package.name):
                logger.debug("%s: applying overrides from %s: %s", package.name, pkg_set.name, fields)
                raw = merge_raw_vcs(raw, fields)

        if not raw:
            if require_existing:
                raise ConfigError(
                    f"package {package.name} has no version control definition"
                    f" in package set {package.package_set or '<none>'}"
                )
            return VCSDefinition.none()
        return VCSDefinition.from_raw(raw, source=f"the definition of {package.name}")

    def package_set_definition_for(
        self, vcs: VCSDefinition, mainline: SetRef = None
    ) -> VCSDefinition:
        """Effective VCS definition of the package set described by ``vcs``."""
        key = overrides_key(vcs)
        raw = vcs.to_raw()
        for pkg_set in self._overriding_sets(0, mainline):
            for fields in pkg_set.overrides_for(key):
                logger.debug("%s: applying overrides from %s: %s", key, pkg_set.name, fields)
                raw = merge_raw_vcs(raw, fields)
        return VCSDefinition.from_raw(raw, source=key)
