"""
Resolver context — the process-wide caches behind osdeps resolution.

Detecting the operating system, probing the package database and
querying the gem index are slow and their answers do not change while
a command runs, so they are computed once and kept here.  Everything
lives on an explicit ``ResolverContext`` that resolvers receive at
construction time:

    - CLI:    main.py builds the workspace with the default context
    - Tests:  each test builds a fresh ``ResolverContext()``

``reset()`` drops every cached answer, which is what a long-lived
process must call after the configuration changes.

The workspace root is kept here too, as a module-level value set once
by the entry point (used to shorten paths in messages).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from autows.core.models.platform import OsIdentity

if TYPE_CHECKING:
    from autows.core.services.osdeps.plan import OsdepsMode


@dataclass
class ResolverContext:
    """Lazily-filled caches shared by every resolver of one workspace."""

    # OS identity; ``os_detected`` tells "not detected yet" from "unknown"
    operating_system: OsIdentity | None = None
    os_detected: bool = False

    # dpkg status database, parsed once
    dpkg_installed: set[str] | None = None
    # (package manager, package) -> installed?
    package_probes: dict[tuple[str, str], bool] = field(default_factory=dict)

    # gem name -> versions available on the remote index
    gem_remote_versions: dict[str, list[str]] = field(default_factory=dict)

    # osdeps already handled by this process
    installed_osdeps: set[str] = field(default_factory=set)

    osdeps_mode: Optional["OsdepsMode"] = None

    def set_operating_system(self, identity: OsIdentity | None) -> None:
        """Force the OS identity, bypassing detection."""
        self.operating_system = identity
        self.os_detected = True

    def mark_installed(self, names) -> None:
        """Record osdeps that were handled in this process."""
        self.installed_osdeps.update(names)

    def reset(self) -> None:
        """Forget every cached answer."""
        self.operating_system = None
        self.os_detected = False
        self.dpkg_installed = None
        self.package_probes.clear()
        self.gem_remote_versions.clear()
        self.installed_osdeps.clear()
        self.osdeps_mode = None


_context: Optional[ResolverContext] = None
_workspace_root: Optional[Path] = None


def get_context() -> ResolverContext:
    """Return the process default context, creating it on first use."""
    global _context
    if _context is None:
        _context = ResolverContext()
    return _context


def set_context(context: ResolverContext) -> None:
    """Replace the process default context."""
    global _context
    _context = context


def reset_context() -> None:
    """Drop every cache held by the process default context."""
    if _context is not None:
        _context.reset()


def set_workspace_root(root: Path | None) -> None:
    """Register the workspace root for the current process."""
    global _workspace_root
    _workspace_root = root


def get_workspace_root() -> Optional[Path]:
    """Return the current workspace root, or None if not yet set."""
    return _workspace_root
