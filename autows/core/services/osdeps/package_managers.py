"""
Native package managers — install commands and installed-package checks.

Maps an OS family to its package manager, builds the shell commands
that would install a package list (nothing here runs them), and
answers "is this package already installed?" so already-present
packages can be dropped from an install plan.

Installed checks:
    apt     → /var/lib/dpkg/status, parsed once per process
    dnf/yum/zypper → rpm -q PKG
    pacman  → pacman -Q PKG
    apk     → apk info -e PKG
    brew    → brew ls --versions PKG

A failing probe never aborts resolution: the package is reported as
not installed.
"""

from __future__ import annotations

import logging
import re
import shlex
import subprocess
from pathlib import Path
from typing import Iterable

from autows.core.context import ResolverContext

logger = logging.getLogger(__name__)

DPKG_STATUS_FILE = Path("/var/lib/dpkg/status")

PACKAGE_MANAGERS: dict[str, str] = {
    "debian": "apt",
    "ubuntu": "apt",
    "gentoo": "emerge",
    "arch": "pacman",
    "manjaro": "pacman",
    "fedora": "dnf",
    "centos": "yum",
    "opensuse": "zypper",
    "alpine": "apk",
    "darwin": "brew",
}

# Commands run non-interactively as root by an installer
AUTO_INSTALL_COMMANDS: dict[str, str] = {
    "apt": "export DEBIAN_FRONTEND=noninteractive; apt-get install -y {packages}",
    "emerge": "emerge --noreplace {packages}",
    "pacman": "pacman -Sy --noconfirm {packages}",
    "dnf": "dnf install -y {packages}",
    "yum": "yum install -y {packages}",
    "zypper": "zypper --non-interactive install {packages}",
    "apk": "apk add {packages}",
    "brew": "brew install {packages}",
}

# Commands shown to a user who installs by hand
USER_INSTALL_COMMANDS: dict[str, str] = {
    "apt": "apt-get install {packages}",
    "emerge": "emerge {packages}",
    "pacman": "pacman -S {packages}",
    "dnf": "dnf install {packages}",
    "yum": "yum install {packages}",
}

GAIN_ROOT_ACCESS = """\
# Gain root access using sudo
if test `id -u` != "0"; then
    exec sudo /bin/bash $0 "$@"
fi
"""

_PROBED_MANAGERS = ("dnf", "yum", "zypper", "pacman", "apk", "brew")
_DEBIAN_PACKAGE_RX = re.compile(r"^(\w[a-z0-9+\-.]+)")


def package_manager_for(family: str | None) -> str | None:
    if not family:
        return None
    return PACKAGE_MANAGERS.get(family)


def is_supported_os(family: str | None) -> bool:
    """True if we know how to install native packages on ``family``."""
    return package_manager_for(family) in AUTO_INSTALL_COMMANDS


def _quoted(packages: Iterable[str]) -> str:
    return " ".join(shlex.quote(p) for p in packages)


def auto_install_command(family: str, packages: Iterable[str]) -> str:
    pm = package_manager_for(family)
    if pm is None:
        raise KeyError(family)
    return AUTO_INSTALL_COMMANDS[pm].format(packages=_quoted(packages))


def user_install_command(family: str, packages: Iterable[str]) -> str:
    pm = package_manager_for(family)
    template = USER_INSTALL_COMMANDS.get(pm or "")
    if template is None:
        return auto_install_command(family, packages)
    return template.format(packages=_quoted(packages))


def install_script(family: str, packages: Iterable[str]) -> str:
    """Complete root shell script installing ``packages``."""
    return "#! /bin/bash\n" + GAIN_ROOT_ACCESS + auto_install_command(family, packages) + "\n"


# ── dpkg ────────────────────────────────────────────────────────


def parse_dpkg_status(text: str) -> set[str]:
    """Names of the packages in state ``install ok installed``."""
    installed: set[str] = set()
    package: str | None = None
    for line in text.splitlines():
        if line.startswith("Package:"):
            package = line.split(":", 1)[1].strip()
        elif line.startswith("Status:") and package:
            if line.split(":", 1)[1].strip() == "install ok installed":
                installed.add(package)
        elif not line.strip():
            package = None
    return installed


class InstalledPackages:
    """Cached answers to "is this native package installed?"."""

    def __init__(self, context: ResolverContext, dpkg_status: Path = DPKG_STATUS_FILE) -> None:
        self.context = context
        self.dpkg_status = dpkg_status

    def can_filter(self, family: str | None) -> bool:
        pm = package_manager_for(family)
        return pm == "apt" or pm in _PROBED_MANAGERS

    def is_installed(self, family: str, package: str) -> bool:
        pm = package_manager_for(family)
        if pm == "apt":
            return self._dpkg_installed(package)
        if pm in _PROBED_MANAGERS:
            key = (pm, package)
            if key not in self.context.package_probes:
                self.context.package_probes[key] = _probe(package, pm)
            return self.context.package_probes[key]
        return False

    def filter_uptodate(self, family: str, packages: Iterable[str]) -> list[str]:
        """The packages of ``packages`` that still need installing."""
        packages = list(packages)
        if not self.can_filter(family):
            return packages
        return [p for p in packages if not self.is_installed(family, p)]

    def _dpkg_installed(self, package: str) -> bool:
        if self.context.dpkg_installed is None:
            try:
                text = self.dpkg_status.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                logger.warning("Cannot read %s: %s", self.dpkg_status, exc)
                text = ""
            self.context.dpkg_installed = parse_dpkg_status(text)

        m = _DEBIAN_PACKAGE_RX.match(package)
        if not m:
            logger.warning("%s is not a valid Debian package name", package)
            return False
        return m.group(1) in self.context.dpkg_installed


def _probe(package: str, pm: str) -> bool:
    """Ask the package manager whether ``package`` is installed."""
    if pm in ("dnf", "yum", "zypper"):
        cmd = ["rpm", "-q", package]
    elif pm == "pacman":
        cmd = ["pacman", "-Q", package]
    elif pm == "apk":
        cmd = ["apk", "info", "-e", package]
    else:
        cmd = ["brew", "ls", "--versions", package]

    try:
        r = subprocess.run(cmd, capture_output=True, timeout=30 if pm == "brew" else 10)
        return r.returncode == 0
    except FileNotFoundError:
        logger.warning("Package checker not found for pm=%s (checking %s)", pm, package)
    except subprocess.TimeoutExpired:
        logger.warning("Timeout checking package %s with pm=%s", package, pm)
    except OSError as exc:
        logger.warning("OS error checking package %s with pm=%s: %s", package, pm, exc)
    return False
