"""
Install plans — what would be run to install a set of osdeps.

``build_install_plan`` resolves osdeps names into native packages and
gems, drops what is already installed, and produces the root shell
script, the command a user could run by hand, and the ``gem install``
command line.  Nothing is executed here: an installer runs the plan.

The osdeps mode decides which halves of the plan are meant to be
installed automatically:

    all   native packages and gems
    ruby  gems only
    os    native packages only
    none  nothing
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

from autows.core.context import ResolverContext
from autows.core.models.config import WorkspaceConfig
from autows.core.models.platform import OsIdentity
from autows.core.services.osdeps.gems import GemManager
from autows.core.services.osdeps.package_managers import (
    InstalledPackages,
    install_script,
    user_install_command,
)
from autows.core.services.osdeps.resolver import OSDependencyResolver

logger = logging.getLogger(__name__)

ENV_OSDEPS_MODE = "AUTOWS_OSDEPS_MODE"


class OsdepsMode(str, Enum):
    ALL = "all"
    RUBY = "ruby"
    OS = "os"
    NONE = "none"

    @classmethod
    def parse(cls, value: str) -> OsdepsMode:
        """Mode from its name, case-insensitively.

        Raises:
            ValueError: if ``value`` is not a mode name.
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"invalid osdeps mode string '{value}'") from None

    @property
    def installs_os(self) -> bool:
        return self in (OsdepsMode.ALL, OsdepsMode.OS)

    @property
    def installs_gems(self) -> bool:
        return self in (OsdepsMode.ALL, OsdepsMode.RUBY)


def osdeps_mode(
    context: ResolverContext,
    config: WorkspaceConfig | None = None,
    supported_os: bool = True,
    environ: Mapping[str, str] | None = None,
) -> OsdepsMode:
    """Mode chosen by the user, cached in the context.

    The configuration wins over AUTOWS_OSDEPS_MODE.  Invalid values are
    reported and ignored; the default is ``all`` on a supported OS and
    ``ruby`` elsewhere.
    """
    if context.osdeps_mode is not None:
        return context.osdeps_mode

    env = os.environ if environ is None else environ
    mode: OsdepsMode | None = None
    if config is not None and config.osdeps_mode:
        try:
            mode = OsdepsMode.parse(config.osdeps_mode)
        except ValueError:
            logger.warning("invalid osdeps mode stored in configuration file (%s)", config.osdeps_mode)
    elif env.get(ENV_OSDEPS_MODE):
        try:
            mode = OsdepsMode.parse(env[ENV_OSDEPS_MODE])
        except ValueError:
            logger.warning(
                "invalid osdeps mode given through %s (%s)", ENV_OSDEPS_MODE, env[ENV_OSDEPS_MODE]
            )

    if mode is None:
        mode = OsdepsMode.ALL if supported_os else OsdepsMode.RUBY
    context.osdeps_mode = mode
    return mode


@dataclass
class InstallPlan:
    """Everything an installer needs to handle a set of osdeps."""

    mode: OsdepsMode
    operating_system: OsIdentity | None = None
    requested: list[str] = field(default_factory=list)
    os_names: list[str] = field(default_factory=list)
    os_packages: list[str] = field(default_factory=list)
    manual_osdeps: list[str] = field(default_factory=list)
    gems: list[str] = field(default_factory=list)
    os_script: str | None = None
    user_command: str | None = None
    gem_command: list[str] | None = None

    @property
    def install_os(self) -> bool:
        """Native packages should be installed automatically."""
        return self.mode.installs_os and bool(self.os_packages) and self.os_script is not None

    @property
    def install_gems(self) -> bool:
        return self.mode.installs_gems and bool(self.gems)

    @property
    def is_empty(self) -> bool:
        return not (self.os_packages or self.gems or self.manual_osdeps)

    def to_dict(self) -> dict[str, Any]:
        identity = self.operating_system
        return {
            "mode": self.mode.value,
            "operating_system": identity.to_raw() if identity else None,
            "requested": self.requested,
            "os_names": self.os_names,
            "os_packages": self.os_packages,
            "manual_osdeps": self.manual_osdeps,
            "gems": self.gems,
            "os_script": self.os_script,
            "user_command": self.user_command,
            "gem_command": self.gem_command,
            "install_os": self.install_os,
            "install_gems": self.install_gems,
        }


def build_install_plan(
    resolver: OSDependencyResolver,
    names: Iterable[str],
    *,
    mode: OsdepsMode | None = None,
    reinstall: bool = False,
    update: bool = True,
    gem_manager: GemManager | None = None,
    installed: InstalledPackages | None = None,
) -> InstallPlan:
    """Plan the installation of the osdeps ``names``.

    Names already handled by this process are skipped.  With
    ``reinstall`` nothing is filtered out as already installed.  Gems are
    checked against the remote index only when the mode installs them
    and ``update`` is set.

    Raises:
        MissingOsdep: if a native name cannot be resolved on this OS.
        ConfigError: if an installed gem cannot be found remotely.
    """
    context = resolver.context
    gem_manager = gem_manager or GemManager(context)
    installed = installed or InstalledPackages(context)

    requested = [n for n in dict.fromkeys(names) if n not in context.installed_osdeps]
    supported = resolver.supported_operating_system()
    mode = mode or osdeps_mode(context, resolver.config, supported)
    identity = resolver.operating_system

    plan = InstallPlan(mode=mode, operating_system=identity, requested=requested)
    if not requested:
        return plan

    os_names, gems = resolver.partition_packages(requested)
    plan.os_names = os_names

    if os_names:
        if supported and identity is not None:
            packages = resolver.resolve_os_dependencies(os_names)
            if not reinstall:
                packages = installed.filter_uptodate(identity.family, packages)
            plan.os_packages = packages
            if packages:
                plan.os_script = install_script(identity.family, packages)
                plan.user_command = user_install_command(identity.family, packages)
        else:
            plan.manual_osdeps = os_names
            logger.warning(
                "cannot install native osdeps on this operating system, install manually: %s",
                ", ".join(os_names),
            )

    if gems and not reinstall and mode.installs_gems:
        gems = gem_manager.filter_uptodate_gems(gems, update=update)
    plan.gems = gems
    if gems:
        plan.gem_command = gem_manager.install_command(gems)

    logger.info(
        "osdeps plan: %d native packages, %d gems (mode=%s)",
        len(plan.os_packages), len(plan.gems), mode.value,
    )
    return plan
