"""
Workspace — loads everything a workspace defines into a Manifest.

Loading order:

    1. .autows/config.yml          user configuration
    2. autows/manifest             package sets, layout, exclusions
    3. package sets                recursively through their imports,
                                   then sorted in import order with the
                                   main configuration last
    4. osdeps files                merged in the same order, later wins
    5. packages                    registered with their package set

The main configuration is the ``autows/`` directory itself: its
``*.osdeps`` files and its ``overrides.yml`` win over every other set.
"""

from __future__ import annotations

import logging
from pathlib import Path

from autows.core.config.loader import (
    MAIN_CONFIG_DIR,
    MANIFEST_FILE,
    OVERRIDES_FILE,
    REMOTES_DIR,
    WORKSPACE_DIR,
    find_prefix_dir,
    find_workspace_dir,
    load_config,
    load_manifest_config,
    load_yaml_mapping,
    save_config,
)
from autows.core.config.osdeps_loader import find_osdeps_files, load_osdeps
from autows.core.config.package_set_loader import (
    LoadedPackageSet,
    load_package_set,
    normalize_vcs_list,
    resolve_definition,
)
from autows.core.context import ResolverContext, get_context
from autows.core.errors import ConfigError
from autows.core.models.config import WorkspaceConfig
from autows.core.models.package import PackageRecord, PackageSetRecord
from autows.core.models.vcs import LOCAL_TYPE, VCSDefinition
from autows.core.services.manifest import Manifest
from autows.core.services.osdeps.resolver import OSDependencyResolver
from autows.core.services.overrides import (
    OverrideResolver,
    repository_id_of,
    sort_package_sets_by_import_order,
)

logger = logging.getLogger(__name__)

MAIN_PACKAGE_SET_NAME = "main configuration"


class Workspace:
    """A workspace root and everything loaded from it."""

    def __init__(
        self,
        root_dir: Path,
        config: WorkspaceConfig | None = None,
        context: ResolverContext | None = None,
    ) -> None:
        self.root_dir = Path(root_dir).resolve()
        self.config = config if config is not None else load_config(self.root_dir)
        self.context = context or get_context()
        self.resolver = OSDependencyResolver(context=self.context, config=self.config)
        self.manifest = Manifest(self.resolver)

    @classmethod
    def from_dir(cls, base_dir: Path | None = None, context: ResolverContext | None = None) -> Workspace:
        """Workspace containing ``base_dir`` (default: cwd).

        Raises:
            ConfigError: if ``base_dir`` is not inside a workspace.
        """
        root = find_workspace_dir(base_dir)
        if root is None:
            raise ConfigError(
                f"{base_dir or Path.cwd()} is not inside a workspace (no {WORKSPACE_DIR} directory found)"
            )
        return cls(root, context=context)

    # ── Paths ──────────────────────────────────────────────────

    @property
    def dot_dir(self) -> Path:
        return self.root_dir / WORKSPACE_DIR

    @property
    def prefix_dir(self) -> Path:
        """Install prefix, the root itself unless config.yml sets ``prefix``."""
        return find_prefix_dir(self.root_dir) or self.root_dir

    @property
    def config_dir(self) -> Path:
        return self.root_dir / MAIN_CONFIG_DIR

    @property
    def remotes_dir(self) -> Path:
        return self.dot_dir / REMOTES_DIR

    @property
    def manifest_file_path(self) -> Path:
        return self.config_dir / MANIFEST_FILE

    def save_config(self) -> Path:
        return save_config(self.config, self.root_dir)

    # ── Loading ────────────────────────────────────────────────

    def setup(self) -> Manifest:
        """Load the manifest, the package sets and the osdeps."""
        self.load_manifest()
        self.load_package_sets()
        self.manifest.exclude_unavailable_osdeps()
        return self.manifest

    def load_manifest(self) -> None:
        self.manifest.apply_config(load_manifest_config(self.manifest_file_path))
        for name, override in self.config.osdeps_overrides.items():
            self.manifest.add_osdeps_overrides(
                name, package=override.package, packages=override.packages, force=override.force
            )

    def main_package_set(self) -> PackageSetRecord:
        """The ``autows/`` directory seen as a package set."""
        vcs = VCSDefinition.from_raw({"type": LOCAL_TYPE, "url": str(self.config_dir)})
        record = PackageSetRecord(
            name=MAIN_PACKAGE_SET_NAME,
            vcs=vcs,
            raw_local_dir=str(self.config_dir),
            main=True,
            osdeps_files=[str(p) for p in find_osdeps_files(self.config_dir)],
        )
        overrides_file = self.config_dir / OVERRIDES_FILE
        if overrides_file.is_file():
            data = load_yaml_mapping(overrides_file, allow_empty=True)
            if data.get("version_control") is not None:
                record.version_control = normalize_vcs_list(
                    "version_control", str(overrides_file), data["version_control"]
                )
            if data.get("overrides") is not None:
                record.overrides = normalize_vcs_list("overrides", str(overrides_file), data["overrides"])
        return record

    def load_package_sets(self) -> list[PackageSetRecord]:
        """Load, sort and register every package set and its packages."""
        main = self.main_package_set()
        loaded: dict[str, LoadedPackageSet] = {}
        by_name: dict[str, LoadedPackageSet] = {}

        def load(vcs: VCSDefinition, options: dict, explicit: bool) -> str:
            known = [main] + [s.record for s in loaded.values()]
            vcs = OverrideResolver(known).package_set_definition_for(vcs)
            repository_id = repository_id_of(vcs)
            if repository_id in loaded:
                return loaded[repository_id].record.name

            pkg_set = load_package_set(
                vcs,
                config_dir=self.config_dir,
                remotes_dir=self.remotes_dir,
                root_dir=self.root_dir,
                explicit=explicit,
            )
            name = pkg_set.record.name
            if name in by_name:
                raise ConfigError(
                    f"package set {name} is defined twice, in "
                    f"{by_name[name].record.raw_local_dir} and {pkg_set.record.raw_local_dir}"
                )
            loaded[repository_id] = pkg_set
            by_name[name] = pkg_set

            if options.get("auto_imports", True):
                for import_vcs, import_options in pkg_set.imports:
                    imported = load(import_vcs, import_options, False)
                    if imported not in pkg_set.record.imports:
                        pkg_set.record.imports.append(imported)
            return name

        for spec in self.manifest.package_set_specs:
            try:
                vcs, options = resolve_definition(self.config_dir, spec)
            except ValueError as e:
                raise ConfigError(f"{self.manifest_file_path}: {e}") from e
            name = load(vcs, options, True)
            if name not in main.imports:
                main.imports.append(name)

        records = [s.record for s in loaded.values()] + [main]
        ordered = sort_package_sets_by_import_order(records, main)

        self.manifest.reset_package_sets()
        for record in ordered:
            self.manifest.register_package_set(record)
            for osdeps_file in record.osdeps_files:
                self.resolver.merge(load_osdeps(Path(osdeps_file)))
            if record.name in by_name:
                for package in by_name[record.name].packages:
                    if self.manifest.find_package(package.name) is not None:
                        other = self.manifest.package(package.name).package_set
                        raise ConfigError(
                            f"package {package.name} is defined in both {other} and {record.name}"
                        )
                    self.manifest.register_package(package)

        logger.info(
            "Workspace %s: %d package sets, %d packages, %d osdeps",
            self.root_dir, len(ordered), len(self.manifest.all_package_names()),
            len(self.resolver.all_package_names()),
        )
        return ordered

    def resolved_packages(self) -> list[PackageRecord]:
        """Copies of the registered packages carrying their effective VCS."""
        return [
            pkg.model_copy(update={
                "vcs": self.manifest.importer_definition_for(pkg, require_existing=False),
            })
            for pkg in self.manifest.each_package()
        ]
