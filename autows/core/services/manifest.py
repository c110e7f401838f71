"""
Manifest — the registry of a workspace and its selection rules.

The manifest knows every source package, package set and metapackage
of the workspace, the layout (what is built by default), which
packages are ignored or excluded, and how osdeps are replaced by
source packages.  From that it answers:

    resolve_package_name(name)       what a single name stands for
    expand_package_selection(specs)  what a list of user specs selects
    importer_definition_for(pkg)     where a package is fetched from

Ignored packages are not built but stay resolvable by name.  Excluded
packages cannot be selected at all and always carry a reason.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, Union

from autows.core.errors import PackageNotFound, UnregisteredPackage
from autows.core.models.config import ManifestConfig, OsdepsOverrideConfig
from autows.core.models.package import Metapackage, PackageRecord, PackageSetRecord
from autows.core.models.vcs import VCSDefinition
from autows.core.services.osdeps.resolver import OSDependencyResolver, OsdepStatus
from autows.core.services.overrides import OverrideResolver
from autows.core.services.query import PARTIAL, Query
from autows.core.services.selection import PackageSelection

logger = logging.getLogger(__name__)

PackageRef = Union[str, PackageRecord]


class Manifest:
    """Packages, package sets and selection state of one workspace."""

    def __init__(self, resolver: OSDependencyResolver | None = None) -> None:
        self.resolver = resolver or OSDependencyResolver()
        self._packages: dict[str, PackageRecord] = {}
        self._package_sets: list[PackageSetRecord] = []
        self.metapackages: dict[str, Metapackage] = {}
        self.osdeps_overrides: dict[str, OsdepsOverrideConfig] = {}

        # None: no layout given, every source package is selected
        self.layout: list[Any] | None = None
        self.package_set_specs: list[Any] = []

        self._manifest_exclusions: list[str] = []
        self._automatic_exclusions: dict[str, str] = {}
        self._manifest_ignores: list[str] = []
        self._ignored: list[str] = []

    # ── Registration ───────────────────────────────────────────

    def register_package(self, package: PackageRecord) -> PackageRecord:
        """Add ``package`` to the registry and to its package set's metapackage."""
        self._packages[package.name] = package
        if package.package_set:
            self.metapackages.setdefault(
                package.package_set, Metapackage(name=package.package_set)
            ).add(package.name)
        return package

    def register_package_set(self, pkg_set: PackageSetRecord) -> PackageSetRecord:
        """Append ``pkg_set``; registration order is the override order."""
        self._package_sets = [s for s in self._package_sets if s.name != pkg_set.name]
        self._package_sets.append(pkg_set)
        self.metapackages.setdefault(pkg_set.name, Metapackage(name=pkg_set.name))
        return pkg_set

    def reset_package_sets(self) -> None:
        self._package_sets = []

    def find_package(self, name: str) -> PackageRecord | None:
        return self._packages.get(name)

    def package(self, name: str) -> PackageRecord:
        """The registered package ``name``.

        Raises:
            PackageNotFound: if there is none.
        """
        pkg = self._packages.get(name)
        if pkg is None:
            raise PackageNotFound(f"cannot find a package called {name}")
        return pkg

    def each_package(self) -> Iterator[PackageRecord]:
        return iter(list(self._packages.values()))

    def all_package_names(self) -> list[str]:
        return list(self._packages)

    def each_package_set(self) -> Iterator[PackageSetRecord]:
        return iter(list(self._package_sets))

    def package_set(self, name: str) -> PackageSetRecord | None:
        for pkg_set in self._package_sets:
            if pkg_set.name == name:
                return pkg_set
        return None

    @property
    def main_package_set(self) -> PackageSetRecord | None:
        for pkg_set in self._package_sets:
            if pkg_set.main:
                return pkg_set
        return None

    def _validate(self, package: PackageRef, *, require_existing: bool = True) -> str:
        """Name of ``package``, checking that it refers to something known.

        Raises:
            UnregisteredPackage: if a package object is not ours.
            PackageNotFound: if a name is neither a package, an osdep nor
                a metapackage and ``require_existing`` is set.
        """
        if isinstance(package, PackageRecord):
            if self._packages.get(package.name) is not package:
                raise UnregisteredPackage(f"{package.name} is not registered in this manifest")
            return package.name
        if require_existing and not self.is_known(package):
            raise PackageNotFound(f"{package} is neither a package, an osdep nor a metapackage")
        return package

    def is_known(self, name: str) -> bool:
        return name in self._packages or name in self.metapackages or self.resolver.is_defined(name)

    # ── Metapackages ───────────────────────────────────────────

    def metapackage(self, name: str, *members: PackageRef) -> Metapackage:
        """Create or extend the metapackage ``name``.

        Members that are metapackages are expanded into their own members.

        Raises:
            ValueError: if a member is an osdep.
            PackageNotFound: if a member is unknown.
        """
        meta = self.metapackages.setdefault(name, Metapackage(name=name))
        for member in members:
            if isinstance(member, PackageRecord):
                meta.add(self._validate(member))
            elif member in self.metapackages:
                for pkg_name in self.metapackages[member].packages:
                    meta.add(pkg_name)
            elif member in self._packages:
                meta.add(member)
            elif self.resolver.has(member):
                raise ValueError(f"cannot specify the osdep {member} as an element of a metapackage")
            else:
                raise PackageNotFound(f"cannot find a package called {member}")
        return meta

    def find_metapackage(self, name: str) -> Metapackage | None:
        return self.metapackages.get(name)

    def each_metapackage(self) -> Iterator[Metapackage]:
        return iter(list(self.metapackages.values()))

    def _metapackages_including(self, names: Iterable[str], package_name: str) -> Iterator[str]:
        for name in names:
            meta = self.metapackages.get(name)
            if meta is not None and meta.include(package_name):
                yield name

    # ── Manifest file ──────────────────────────────────────────

    def initialize_from_hash(self, data: dict[str, Any]) -> None:
        """Apply the content of a manifest file given as a raw mapping."""
        self.apply_config(ManifestConfig.model_validate(data))

    def apply_config(self, config: ManifestConfig) -> None:
        self.package_set_specs = list(config.package_sets)
        self.layout = None if config.layout is None else list(config.layout)
        self._manifest_exclusions = list(config.exclude_packages)
        self._manifest_ignores = list(config.ignore_packages)

    # ── Ignores ────────────────────────────────────────────────

    def ignore_package(self, package: PackageRef) -> None:
        """Do not build ``package``.  Unknown names are accepted."""
        name = self._validate(package, require_existing=False)
        if name not in self._ignored:
            self._ignored.append(name)

    def ignored(self, package: PackageRef) -> bool:
        name = self._validate(package)
        entries = self._manifest_ignores + self._ignored
        if name in entries:
            return True
        return any(True for _ in self._metapackages_including(entries, name))

    def clear_ignored(self) -> None:
        self._manifest_ignores.clear()
        self._ignored.clear()

    def each_ignored_package(self) -> Iterator[PackageRecord]:
        for pkg in self.each_package():
            if self.ignored(pkg.name):
                yield pkg

    # ── Exclusions ─────────────────────────────────────────────

    def exclude_package(self, package: PackageRef, reason: str) -> None:
        """Exclude ``package`` for ``reason``.  Unknown names are accepted."""
        name = self._validate(package, require_existing=False)
        self._automatic_exclusions[name] = reason

    def _manifest_exclusion_reason(self, name: str) -> str | None:
        for entry in self._manifest_exclusions:
            if entry == name:
                return f"{name} is listed in the exclude_packages section of the manifest"
            meta = self.metapackages.get(entry)
            if meta is not None and meta.include(name):
                return (
                    f"{entry} is a metapackage listed in the exclude_packages section "
                    f"of the manifest, and it includes {name}"
                )
        return None

    def excluded_in_manifest(self, package: PackageRef) -> bool:
        return self._manifest_exclusion_reason(self._validate(package)) is not None

    def exclusion_reason(self, package: PackageRef) -> str | None:
        """Why ``package`` is excluded, None if it is not."""
        name = self._validate(package)
        reason = self._manifest_exclusion_reason(name)
        if reason is not None:
            return reason
        if name in self._automatic_exclusions:
            return self._automatic_exclusions[name]
        for meta_name in self._metapackages_including(self._automatic_exclusions, name):
            return (
                f"{meta_name} is an excluded metapackage, and it includes {name}: "
                f"{self._automatic_exclusions[meta_name]}"
            )
        return None

    def excluded(self, package: PackageRef) -> bool:
        return self.exclusion_reason(package) is not None

    def clear_exclusions(self) -> None:
        self._manifest_exclusions.clear()
        self._automatic_exclusions.clear()

    def each_excluded_package(self) -> Iterator[PackageRecord]:
        for pkg in self.each_package():
            if self.excluded(pkg.name):
                yield pkg

    # ── Name resolution ────────────────────────────────────────

    def add_osdeps_overrides(
        self,
        osdep_name: str,
        package: str | None = None,
        packages: Iterable[str] | None = None,
        force: bool = False,
    ) -> None:
        """Use source packages instead of the osdep ``osdep_name``.

        Without ``force`` the override only applies where the osdep is
        not available.  With neither ``package`` nor ``packages``, the
        source package of the same name is used.
        """
        self.osdeps_overrides[osdep_name] = OsdepsOverrideConfig(
            package=package, packages=list(packages or []), force=force
        )

    def _resolve_as_source_package(self, name: str) -> list[tuple[str, str]]:
        if name not in self._packages:
            raise PackageNotFound(f"cannot resolve {name}: it is neither a package nor an osdep")
        return [("package", name)]

    def _resolve_as_osdep(self, name: str) -> list[tuple[str, str]]:
        availability = self.resolver.availability_of(name)
        if availability == OsdepStatus.NO_PACKAGE:
            raise PackageNotFound(f"{name} is not an osdep")

        available = availability in (OsdepStatus.AVAILABLE, OsdepStatus.IGNORE)
        override = self.osdeps_overrides.get(name)
        if override is not None and (not available or override.force):
            result: list[tuple[str, str]] = []
            for src_name in override.package_names(name):
                for item in self._resolve_as_source_package(src_name):
                    if item not in result:
                        result.append(item)
            return result
        if not available and name in self._packages:
            return [("package", name)]
        if available or availability == OsdepStatus.UNKNOWN_OS:
            return [("osdeps", name)]
        if availability == OsdepStatus.WRONG_OS:
            raise PackageNotFound(f"{name} is an osdep, but it is not available for this operating system")
        if availability == OsdepStatus.WRONG_OS_VERSION:
            raise PackageNotFound(
                f"{name} is an osdep, but it is not available for this operating system version"
            )
        raise PackageNotFound(
            f"{name} is an osdep, but it is explicitely marked as 'nonexistent' for this operating system"
        )

    def resolve_single_package_name(self, name: str) -> list[tuple[str, str]]:
        try:
            return self._resolve_as_osdep(name)
        except PackageNotFound as osdep_error:
            try:
                return self._resolve_as_source_package(name)
            except PackageNotFound:
                raise PackageNotFound(
                    f"{osdep_error} and it cannot be resolved as a source package"
                ) from None

    def resolve_package_name(self, name: str) -> list[tuple[str, str]]:
        """What ``name`` stands for, as ``("package"|"osdeps", name)`` pairs.

        Metapackages resolve to their members.  An available osdep wins
        over a source package of the same name, and an osdeps override
        wins over both when the osdep is unavailable or the override is
        forced.

        Raises:
            PackageNotFound: if a name is neither an osdep nor a package.
        """
        meta = self.metapackages.get(name)
        names = list(meta.packages) if meta is not None else [name]

        result: list[tuple[str, str]] = []
        for pkg_name in names:
            try:
                result.extend(self.resolve_single_package_name(pkg_name))
            except PackageNotFound as e:
                raise PackageNotFound(f"cannot resolve {pkg_name}: {e}") from None
        return result

    # ── Layout ─────────────────────────────────────────────────

    def add_package_to_layout(self, package: PackageRef) -> None:
        name = self._validate(package)
        if self.layout is None:
            self.layout = []
        self.layout.append(name)

    def add_metapackage_to_layout(self, meta: Metapackage | str) -> None:
        name = meta.name if isinstance(meta, Metapackage) else meta
        if self.layout is None:
            self.layout = []
        self.layout.append(name)

    def clear_layout(self) -> None:
        """Select nothing by default."""
        self.layout = []

    def has_layout(self) -> bool:
        return self.layout is not None

    def normalized_layout(self) -> dict[str, str]:
        """Map every layout entry to its layout level (``/``, ``/sub/``...)."""
        result: dict[str, str] = {}

        def walk(entries: list[Any], level: str) -> None:
            for entry in entries:
                if isinstance(entry, dict):
                    for sublayout, subentries in entry.items():
                        walk(list(subentries or []), f"{level}{sublayout}/")
                else:
                    result.setdefault(str(entry), level)

        walk(self.layout or [], "/")
        return result

    def layout_packages(self) -> PackageSelection:
        """Selection made by the layout, exclusions and ignores applied.

        Raises:
            PackageNotFound: if a layout entry cannot be resolved.
        """
        result = PackageSelection()
        for name in self.normalized_layout():
            meta = self.metapackages.get(name)
            weak = meta.weak_dependencies if meta is not None else False
            try:
                resolved = self.resolve_package_name(name)
            except PackageNotFound as e:
                raise PackageNotFound(f"{name}, which is selected in the layout, is unknown: {e}") from None
            for kind, pkg_name in resolved:
                result.select(name, pkg_name, weak=weak, osdep=(kind == "osdeps"))
        result.filter_excluded_and_ignored_packages(self)
        return result

    def default_packages(self) -> PackageSelection:
        """The layout selection, or every source package without a layout."""
        if self.has_layout():
            return self.layout_packages()

        result = PackageSelection()
        for name in self.all_package_names():
            kind, pkg_name = self.resolve_single_package_name(name)[0]
            if self.excluded(pkg_name) or self.ignored(pkg_name):
                continue
            result.select(pkg_name, pkg_name, osdep=(kind == "osdeps"))
        return result

    def all_selected_packages(self) -> list[str]:
        """Default packages and everything they depend on."""
        default = self.default_packages()
        result: dict[str, None] = dict.fromkeys(default.each_osdep_package_name())
        queue = list(default.each_source_package_name())
        while queue:
            name = queue.pop(0)
            if name in result:
                continue
            result[name] = None
            pkg = self._packages.get(name)
            if pkg is None:
                continue
            for dep in pkg.dependencies:
                if dep not in result:
                    queue.append(dep)
        return list(result)

    # ── Selection ──────────────────────────────────────────────

    def _exact_matches(self, spec: str, osdep_names: set[str]) -> list[str]:
        matches = []
        if spec in self.metapackages:
            matches.append(spec)
        dir_spec = f"{spec.rstrip('/')}/"
        for pkg in self._packages.values():
            srcdir = pkg.srcdir.rstrip("/")
            if pkg.name == spec or (srcdir and dir_spec.startswith(f"{srcdir}/")):
                matches.append(pkg.name)
        if spec in osdep_names and spec not in matches:
            matches.append(spec)
        return matches

    def _partial_matches(self, spec: str, osdep_names: set[str], selected: set[str]) -> list[str]:
        query = Query("autobuild.name", spec, partial=True)
        dir_prefix = f"{spec.rstrip('/')}/"
        scored: dict[str, int] = {}

        for name in list(self.metapackages) + list(self._packages) + sorted(osdep_names):
            priority = query.match_value(name)
            pkg = self._packages.get(name)
            if pkg is not None and name in selected and pkg.srcdir.startswith(dir_prefix):
                priority = max(priority or 0, PARTIAL)
            if priority is not None and name not in scored:
                scored[name] = priority

        in_selection = {n: p for n, p in scored.items() if n in selected}
        pool = in_selection or scored
        if not pool:
            return []
        best = max(pool.values())
        return [name for name, priority in pool.items() if priority == best]

    def _select_match(self, selection: PackageSelection, spec: str, name: str, osdep_names: set[str]) -> None:
        meta = self.metapackages.get(name)
        if meta is not None:
            selection.select(spec, meta.packages, weak=meta.weak_dependencies)
        elif name in osdep_names and name in self._packages:
            for kind, pkg_name in self.resolve_single_package_name(name):
                selection.select(spec, pkg_name, osdep=(kind == "osdeps"))
        elif name in osdep_names:
            selection.select(spec, name, osdep=True)
        else:
            selection.select(spec, name)

    def expand_package_selection(
        self, specs: Iterable[str], filter: bool = True
    ) -> tuple[PackageSelection, list[str]]:
        """Resolve user specs (names or directories) into a selection.

        Each spec is matched against, in order: exact names and source
        directories containing it, then partial name matches and
        directories below it.  Partial matches among the selected
        packages win over the others; directories below the spec only
        count for selected packages.

        Returns:
            The selection and the specs that matched nothing.
        """
        selected = set(self.all_selected_packages())
        osdep_names = set(self.resolver.all_package_names())
        result = PackageSelection()
        unresolved: list[str] = []

        for spec in specs:
            matches = self._exact_matches(spec, osdep_names)
            if not matches:
                matches = self._partial_matches(spec, osdep_names, selected)
            if not matches:
                logger.debug("%s does not match any package", spec)
                unresolved.append(spec)
                continue
            for name in matches:
                self._select_match(result, spec, name, osdep_names)

        if filter:
            result.filter_excluded_and_ignored_packages(self)
        return result, unresolved

    def exclude_unavailable_osdeps(self) -> list[str]:
        """Exclude osdeps marked nonexistent here that nothing can replace."""
        excluded = []
        for name in self.resolver.all_package_names():
            if name in self._packages or name in self.osdeps_overrides:
                continue
            if self.resolver.availability_of(name) == OsdepStatus.NONEXISTENT:
                self.exclude_package(
                    name,
                    f"{name} is an osdep and it is explicitely marked as 'nonexistent' "
                    f"for this operating system",
                )
                excluded.append(name)
        return excluded

    # ── VCS ────────────────────────────────────────────────────

    def importer_definition_for(
        self,
        package: PackageRef,
        mainline: str | PackageSetRecord | None = None,
        require_existing: bool = True,
    ) -> VCSDefinition:
        pkg = package if isinstance(package, PackageRecord) else self.package(package)
        return OverrideResolver(self._package_sets).importer_definition_for(
            pkg, mainline=mainline, require_existing=require_existing
        )

    def package_set_definition_for(
        self, vcs: VCSDefinition, mainline: str | PackageSetRecord | None = None
    ) -> VCSDefinition:
        return OverrideResolver(self._package_sets).package_set_definition_for(vcs, mainline=mainline)
