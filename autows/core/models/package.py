"""
Package models — source packages, package sets and metapackages.

Records are created while the workspace loads (package-set
descriptions, manifest) and are only read during resolution.
"""

from __future__ import annotations

import re
from typing import Any, Iterator

from pydantic import BaseModel, Field

from autows.core.models.vcs import VCSDefinition


class PackageRecord(BaseModel):
    """A source package.

    ``name`` is unique across the workspace and path-like
    (``drivers/camera``).  ``class_name`` is the build-system tag
    (``cmake``, ``autotools``, ``ruby``...).
    """

    name: str
    srcdir: str = ""
    class_name: str = "cmake"
    package_set: str = ""
    vcs: VCSDefinition = Field(default_factory=VCSDefinition.none)
    dependencies: list[str] = Field(default_factory=list)

    def depends_on(self, *names: str) -> None:
        """Declare dependencies on other packages or osdeps."""
        for name in names:
            if name not in self.dependencies:
                self.dependencies.append(name)


class VcsEntry(BaseModel):
    """One element of a ``version_control`` or ``overrides`` list.

    ``key`` is either a package name, a regular expression (when
    ``pattern`` is set) or a ``pkg_set:<repository id>`` key that
    targets a package set.
    """

    key: str
    pattern: bool = False
    fields: dict[str, Any] = Field(default_factory=dict)
    source: str | None = None

    def matches(self, name: str) -> bool:
        if self.pattern:
            return re.search(self.key, name) is not None
        return self.key == name


class PackageSetRecord(BaseModel):
    """A named collection of package definitions and osdeps files."""

    name: str
    vcs: VCSDefinition = Field(default_factory=VCSDefinition.none)
    raw_local_dir: str | None = None
    imports: list[str] = Field(default_factory=list)
    explicit: bool = False
    main: bool = False
    version_control: list[VcsEntry] = Field(default_factory=list)
    overrides: list[VcsEntry] = Field(default_factory=list)
    osdeps_files: list[str] = Field(default_factory=list)

    @property
    def is_local(self) -> bool:
        return self.vcs.is_local

    def add_version_control_entry(self, key: str, fields: dict[str, Any], *, pattern: bool = False) -> None:
        self.version_control.append(VcsEntry(key=key, pattern=pattern, fields=fields))

    def add_overrides_entry(self, key: str, fields: dict[str, Any], *, pattern: bool = False) -> None:
        self.overrides.append(VcsEntry(key=key, pattern=pattern, fields=fields))

    def version_control_for(self, name: str) -> Iterator[dict[str, Any]]:
        """Raw fields of every version_control entry matching ``name``, in order."""
        for entry in self.version_control:
            if entry.matches(name):
                yield entry.fields

    def overrides_for(self, name: str) -> Iterator[dict[str, Any]]:
        """Raw fields of every overrides entry matching ``name``, in order."""
        for entry in self.overrides:
            if entry.matches(name):
                yield entry.fields


class Metapackage(BaseModel):
    """A named group of source packages.

    With ``weak_dependencies`` set, excluding one member does not pull
    the other members out of a selection.
    """

    name: str
    packages: list[str] = Field(default_factory=list)
    weak_dependencies: bool = False

    def add(self, name: str) -> None:
        if name not in self.packages:
            self.packages.append(name)

    def include(self, name: str) -> bool:
        return name in self.packages
