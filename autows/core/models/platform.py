"""
Operating-system identity — the (family, versions) pair osdeps resolve against.
"""

from __future__ import annotations

from typing import Iterable, NamedTuple


class OsIdentity(NamedTuple):
    """Detected operating system.

    ``family`` is the lowercase distribution name (``debian``, ``ubuntu``,
    ``gentoo``, ``arch``).  ``versions`` holds every token that describes
    the release, codename and number alike (``["wheezy", "7"]``).
    """

    family: str
    versions: tuple[str, ...] = ()

    @classmethod
    def of(cls, family: str, versions: Iterable[str] = ()) -> OsIdentity:
        """Build a normalized (lowercased, stripped) identity."""
        return cls(
            family.strip().lower(),
            tuple(str(v).strip().lower() for v in versions if str(v).strip()),
        )

    @classmethod
    def parse(cls, value: str) -> OsIdentity | None:
        """Parse the ``family:ver1,ver2`` form used by AUTOWS_OPERATING_SYSTEM."""
        family, _, versions = value.partition(":")
        if not family.strip():
            return None
        return cls.of(family, versions.split(","))

    def to_raw(self) -> list:
        """Form persisted in config.yml."""
        return [self.family, list(self.versions)]

    def __str__(self) -> str:
        if not self.versions:
            return self.family
        return f"{self.family} ({', '.join(self.versions)})"
