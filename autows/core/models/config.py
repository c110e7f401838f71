"""
Configuration models — the workspace's persisted settings and manifest.

``WorkspaceConfig`` mirrors ``.autows/config.yml``; ``ManifestConfig``
mirrors the ``autows/manifest`` file written by the user.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from autows.core.models.platform import OsIdentity


class OsdepsOverrideConfig(BaseModel):
    """Replacement of an osdep by source packages."""

    package: str | None = None
    packages: list[str] = Field(default_factory=list)
    force: bool = False

    def package_names(self, osdep_name: str) -> list[str]:
        if self.packages:
            return list(self.packages)
        return [self.package or osdep_name]


class WorkspaceConfig(BaseModel):
    """Persisted user configuration (``.autows/config.yml``)."""

    model_config = ConfigDict(extra="allow")

    workspace: str | None = None
    prefix: str | None = None
    operating_system: tuple[str, list[str]] | None = None
    osdeps_mode: str | None = None
    osdeps_overrides: dict[str, OsdepsOverrideConfig] = Field(default_factory=dict)

    def os_identity(self) -> OsIdentity | None:
        if not self.operating_system:
            return None
        family, versions = self.operating_system
        return OsIdentity.of(family, versions)

    def store_os_identity(self, identity: OsIdentity) -> None:
        self.operating_system = (identity.family, list(identity.versions))


class ManifestConfig(BaseModel):
    """The workspace manifest: which package sets, which packages."""

    package_sets: list[Any] = Field(default_factory=list)
    layout: list[Any] | None = None
    exclude_packages: list[str] = Field(default_factory=list)
    ignore_packages: list[str] = Field(default_factory=list)

    @field_validator("package_sets", "exclude_packages", "ignore_packages", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value
