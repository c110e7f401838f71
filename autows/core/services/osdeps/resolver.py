"""
OS dependency resolver — abstract dependency names to package lists.

Holds the merged osdeps table of the workspace and answers, for the
detected operating system, what a name resolves to:

    NO_PACKAGE        no definition at all
    WRONG_OS          defined, but not for this OS family
    WRONG_OS_VERSION  defined for this OS, not for this release
    IGNORE            defined as "nothing to install"
    PACKAGES          native package names to install
    UNKNOWN_OS        the OS could not be identified
    NONEXISTENT       defined as unavailable on this OS
    AVAILABLE         (availability_of only) installable or ignorable

Language packages (gems) are separated from native ones by
``partition_packages``; only native names go through the OS lookup.
"""

from __future__ import annotations

import logging
import re
from enum import IntEnum
from typing import Any, Iterable, NamedTuple

from autows.core.config.osdeps_loader import OsdepsConflict, OsdepsTable, merge_tables
from autows.core.context import ResolverContext, get_context, get_workspace_root
from autows.core.errors import ConfigError, MissingOsdep, UnsupportedOperatingSystem
from autows.core.models.config import WorkspaceConfig
from autows.core.models.platform import OsIdentity
from autows.core.services.osdeps import detection
from autows.core.services.osdeps.definitions import (
    Gem,
    Ignore,
    Malformed,
    Nonexistent,
    OsdepValue,
    PackageList,
    PerOs,
    PerVersion,
    parse_definition,
)
from autows.core.services.osdeps.package_managers import is_supported_os

logger = logging.getLogger(__name__)


class OsdepStatus(IntEnum):
    NO_PACKAGE = 0
    WRONG_OS = 1
    WRONG_OS_VERSION = 2
    IGNORE = 3
    PACKAGES = 4
    UNKNOWN_OS = 7
    NONEXISTENT = 8
    AVAILABLE = 10


class Resolution(NamedTuple):
    status: OsdepStatus
    packages: tuple[str, ...] = ()


_MISSING_MESSAGES = {
    OsdepStatus.NO_PACKAGE: "there is no osdeps definition for {name}",
    OsdepStatus.WRONG_OS: "there is an osdeps definition for {name}, but not for this operating system",
    OsdepStatus.WRONG_OS_VERSION: (
        "there is an osdeps definition for {name}, "
        "but not for this particular operating system version"
    ),
    OsdepStatus.NONEXISTENT: (
        "there is an osdeps definition for {name}, "
        "but it is explicitely marked as 'nonexistent' for this operating system"
    ),
}


def _unique(names: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(names))


class OSDependencyResolver:
    """Resolution of osdeps names against the merged definition table."""

    def __init__(
        self,
        definitions: dict[str, Any] | None = None,
        source: str | None = None,
        *,
        context: ResolverContext | None = None,
        config: WorkspaceConfig | None = None,
    ) -> None:
        self.table = OsdepsTable.from_definitions(definitions or {}, source)
        self.context = context or get_context()
        self.config = config
        self.aliases: dict[str, str] = {}
        self.conflicts: list[OsdepsConflict] = []
        self._parsed: dict[str, OsdepValue] = {}

    # ── Table ───────────────────────────────────────────────────

    @property
    def definitions(self) -> dict[str, Any]:
        return self.table.definitions

    def source_of(self, name: str) -> str | None:
        """File that provides the current definition of ``name``."""
        return self.table.source_of(name)

    def all_package_names(self) -> list[str]:
        return list(self.table.definitions)

    def merge(self, other: OsdepsTable | OSDependencyResolver) -> None:
        """Fold another table in; its definitions take precedence."""
        layer = other.table if isinstance(other, OSDependencyResolver) else other
        self.table, conflicts = merge_tables(self.table, layer)
        for conflict in conflicts:
            logger.warning(
                "osdeps definition for %s, previously defined in %s overriden by %s",
                conflict.name,
                self._display_path(conflict.old_source),
                self._display_path(conflict.new_source),
            )
        self.conflicts.extend(conflicts)
        for name in layer.definitions:
            self._parsed.pop(name, None)

    @staticmethod
    def _display_path(path: str | None) -> str:
        if not path:
            return "<unknown>"
        root = get_workspace_root()
        if root is not None:
            prefix = f"{root}/"
            if path.startswith(prefix):
                return path[len(prefix):]
        return path

    def add_alias(self, name: str, target: str) -> None:
        """Resolve requests for ``name`` as requests for ``target``."""
        self.aliases[name] = target

    def definition_of(self, name: str) -> OsdepValue | None:
        """Parsed definition of ``name``, None if it has none.

        Raises:
            ConfigError: if the definition is malformed.
        """
        if name not in self.table.definitions:
            return None
        if name not in self._parsed:
            self._parsed[name] = parse_definition(
                name, self.table.definitions[name], self.source_of(name)
            )
        return self._parsed[name]

    # ── Operating system ───────────────────────────────────────

    @property
    def operating_system(self) -> OsIdentity | None:
        return detection.operating_system(self.context, self.config)

    @operating_system.setter
    def operating_system(self, value: OsIdentity | tuple | None) -> None:
        if value is not None and not isinstance(value, OsIdentity):
            family, versions = value
            value = OsIdentity.of(family, versions)
        self.context.set_operating_system(value)

    def supported_operating_system(self) -> bool:
        """True if native packages can be installed on this OS."""
        identity = self.operating_system
        return identity is not None and is_supported_os(identity.family)

    # ── Resolution ─────────────────────────────────────────────

    def resolve_package(self, name: str) -> Resolution:
        """Resolve ``name`` for the current operating system.

        Any defined name resolves to UNKNOWN_OS when the OS could not be
        identified.

        Raises:
            ConfigError: if the definition of ``name`` is malformed, or
                the entry selected for this OS is not a package list.
        """
        value = self.definition_of(name)
        if value is None:
            return Resolution(OsdepStatus.NO_PACKAGE)

        identity = self.operating_system
        if identity is None:
            return Resolution(OsdepStatus.UNKNOWN_OS)

        if isinstance(value, (Ignore, Gem)):
            return Resolution(OsdepStatus.IGNORE)
        if isinstance(value, Nonexistent):
            return Resolution(OsdepStatus.NONEXISTENT)
        if isinstance(value, PerOs) and not value.entries:
            return Resolution(OsdepStatus.IGNORE)
        if isinstance(value, PackageList):
            return Resolution(OsdepStatus.PACKAGES, value.packages)

        data = None
        for os_names, os_value in value.entries:
            if identity.family in os_names:
                data = os_value
                break
        else:
            return Resolution(OsdepStatus.WRONG_OS)

        if isinstance(data, PerVersion):
            data = self._match_version(name, data, identity)
            if data is None:
                return Resolution(OsdepStatus.WRONG_OS_VERSION)

        if isinstance(data, Ignore):
            return Resolution(OsdepStatus.IGNORE)
        if isinstance(data, Nonexistent):
            return Resolution(OsdepStatus.NONEXISTENT)
        if isinstance(data, Malformed):
            raise ConfigError(
                f"invalid package specification {data.value!r} in {self.source_of(name)}"
            )
        return Resolution(OsdepStatus.PACKAGES, data.packages)

    def _match_version(self, name: str, value: PerVersion, identity: OsIdentity):
        for patterns, leaf in value.entries:
            for pattern in patterns:
                try:
                    rx = re.compile(pattern, re.IGNORECASE)
                except re.error as e:
                    raise ConfigError(
                        f"invalid version pattern '{pattern}' for {name} in {self.source_of(name)}: {e}"
                    ) from e
                if any(rx.search(v) for v in identity.versions):
                    return leaf
        return None

    def resolve_os_dependencies(self, names: Iterable[str]) -> list[str]:
        """Native packages needed for ``names`` on this OS.

        Raises:
            MissingOsdep: if a name has no usable definition for this OS.
            UnsupportedOperatingSystem: if the OS is unknown or we cannot
                install native packages on it.
        """
        packages: list[str] = []
        for name in names:
            status, resolved = self.resolve_package(name)
            if status in _MISSING_MESSAGES:
                raise MissingOsdep(self._missing_message(name, status), name, status)
            if status == OsdepStatus.PACKAGES:
                packages.extend(resolved)

        identity = self.operating_system
        if identity is None or not is_supported_os(identity.family):
            family = identity.family if identity else "an unknown operating system"
            raise UnsupportedOperatingSystem(f"I don't know how to install packages on {family}")
        return _unique(packages)

    def _missing_message(self, name: str, status: OsdepStatus) -> str:
        message = _MISSING_MESSAGES[status].format(name=name)
        source = self.source_of(name)
        if status != OsdepStatus.NO_PACKAGE and source:
            message += f" (defined in {self._display_path(source)})"
        return message

    def partition_packages(self, names: Iterable[str]) -> tuple[list[str], list[str]]:
        """Split ``names`` into (native osdeps, language packages).

        Names without a definition are kept on the native side: they are
        reported when the native side is resolved, since a source package
        of the same name may legitimately exist.

        Raises:
            ConfigError: on an unknown OS-independent keyword.
        """
        osdeps: list[str] = []
        gems: list[str] = []
        for name in _unique(self.aliases.get(n, n) for n in names):
            value = self.definition_of(name)
            if value is None or isinstance(value, (PackageList, Nonexistent)):
                osdeps.append(name)
            elif isinstance(value, Gem):
                gems.extend(value.names)
            elif isinstance(value, PerOs):
                gems.extend(value.gems)
                if value.entries:
                    osdeps.append(name)
        return osdeps, _unique(gems)

    def availability_of(self, name: str) -> OsdepStatus:
        """AVAILABLE if ``name`` can be handled here, else its status."""
        osdeps, _ = self.partition_packages([name])
        if not osdeps:
            return OsdepStatus.AVAILABLE
        status = self.resolve_package(osdeps[0]).status
        if status in (OsdepStatus.PACKAGES, OsdepStatus.IGNORE):
            return OsdepStatus.AVAILABLE
        return status

    def has(self, name: str) -> bool:
        return self.availability_of(name) == OsdepStatus.AVAILABLE

    def is_defined(self, name: str) -> bool:
        return name in self.table.definitions
