"""
VCS definition model — where and how a package or package set is fetched.

A definition is built from the raw mappings found in ``version_control``
and ``overrides`` sections.  Those sections are folded one after the
other with ``merge_raw_vcs``: fields are inherited unless the VCS type
changes, in which case the newer mapping replaces the older one.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from autows.core.errors import ConfigError

NONE_TYPE = "none"
LOCAL_TYPE = "local"


def merge_raw_vcs(old: dict[str, Any], new: dict[str, Any]) -> dict[str, Any]:
    """Fold ``new`` on top of ``old`` and return the result.

    Neither argument is modified.
    """
    new_type = new.get("type")
    if new_type and new_type != old.get("type"):
        return dict(new)
    merged = dict(old)
    merged.update(new)
    return merged


class VCSDefinition(BaseModel):
    """Effective version-control definition."""

    model_config = ConfigDict(frozen=True)

    type: str = NONE_TYPE
    url: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def none(cls) -> VCSDefinition:
        """Definition of something that is not under version control."""
        return cls(type=NONE_TYPE)

    @classmethod
    def from_raw(cls, raw: dict[str, Any] | None, source: str | None = None) -> VCSDefinition:
        """Build a definition from a raw ``{type:, url:, ...}`` mapping.

        Raises:
            ConfigError: if the type is missing, or the URL is missing
                for anything but ``none``.
        """
        fields = {str(k): v for k, v in (raw or {}).items()}
        vcs_type = fields.pop("type", None)
        url = fields.pop("url", None)
        where = f" in {source}" if source else ""

        if not vcs_type:
            raise ConfigError(f"the type of VCS is not specified in {raw!r}{where}")
        if vcs_type != NONE_TYPE and url is None:
            raise ConfigError(f"the VCS definition {raw!r}{where} has no URL")

        return cls(
            type=str(vcs_type),
            url=str(url) if url is not None else None,
            options=fields,
        )

    @property
    def is_none(self) -> bool:
        return self.type == NONE_TYPE

    @property
    def is_local(self) -> bool:
        return self.type == LOCAL_TYPE

    def to_raw(self) -> dict[str, Any]:
        """Inverse of ``from_raw``."""
        raw: dict[str, Any] = {"type": self.type}
        if self.url is not None:
            raw["url"] = self.url
        raw.update(self.options)
        return raw

    def update(self, fields: dict[str, Any], source: str | None = None) -> VCSDefinition:
        """Return a new definition with ``fields`` folded on top of this one."""
        return VCSDefinition.from_raw(merge_raw_vcs(self.to_raw(), fields), source=source)

    def __str__(self) -> str:
        if self.is_none:
            return NONE_TYPE
        desc = f"{self.type}:{self.url}"
        if self.options:
            opts = " ".join(f"{k}={v}" for k, v in sorted(self.options.items()))
            desc = f"{desc} {opts}"
        return desc
