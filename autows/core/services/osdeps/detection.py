"""
OS identity detection.

Cascade, first success wins:
    1. stored configuration (config.yml), then AUTOWS_OPERATING_SYSTEM
    2. ``lsb_release`` output, unless it reports plain ``debian``
       (lsb_release cannot tell testing from unstable)
    3. /etc/debian_version (``sid`` adds the ``unstable`` and ``sid`` tokens)
    4. /etc/gentoo-release, /etc/arch-release

Family and versions are lowercased.  When nothing matches the identity
stays unknown, which resolution reports as UNKNOWN_OS.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Mapping

from autows.core.context import ResolverContext
from autows.core.models.config import WorkspaceConfig
from autows.core.models.platform import OsIdentity

logger = logging.getLogger(__name__)

ENV_OPERATING_SYSTEM = "AUTOWS_OPERATING_SYSTEM"
ETC_DIR = Path("/etc")


def _run_lsb_release(flag: str) -> str | None:
    try:
        r = subprocess.run(
            ["lsb_release", flag, "-s"],
            capture_output=True, text=True, timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.warning("lsb_release %s failed: %s", flag, exc)
        return None
    if r.returncode != 0:
        return None
    return r.stdout.strip().lower()


def os_from_lsb() -> OsIdentity | None:
    """Identity reported by ``lsb_release``, None if unavailable."""
    if shutil.which("lsb_release") is None:
        return None

    distributor = _run_lsb_release("-i")
    if not distributor:
        return None
    codename = _run_lsb_release("-c") or ""
    version = _run_lsb_release("-r") or ""
    return OsIdentity.of(distributor, [codename, version])


def os_from_release_files(etc_dir: Path = ETC_DIR) -> OsIdentity | None:
    """Identity guessed from distribution marker files."""
    debian_version = etc_dir / "debian_version"
    if debian_version.exists():
        codename = debian_version.read_text(encoding="utf-8").strip()
        versions = [codename]
        if "sid" in codename:
            versions += ["unstable", "sid"]
        return OsIdentity.of("debian", versions)

    gentoo_release = etc_dir / "gentoo-release"
    if gentoo_release.exists():
        tokens = gentoo_release.read_text(encoding="utf-8").split()
        return OsIdentity.of("gentoo", tokens[-1:])

    if (etc_dir / "arch-release").exists():
        return OsIdentity.of("arch")
    return None


def detect_operating_system(
    config: WorkspaceConfig | None = None,
    environ: Mapping[str, str] | None = None,
    etc_dir: Path = ETC_DIR,
) -> OsIdentity | None:
    """Run the detection cascade once, without caching."""
    if config is not None:
        identity = config.os_identity()
        if identity:
            return identity

    env = os.environ if environ is None else environ
    if env.get(ENV_OPERATING_SYSTEM):
        identity = OsIdentity.parse(env[ENV_OPERATING_SYSTEM])
        if identity:
            return identity

    logger.info("autodetecting the operating system")
    identity = os_from_lsb()
    if identity and identity.family != "debian":
        return identity

    return os_from_release_files(etc_dir)


def operating_system(
    context: ResolverContext,
    config: WorkspaceConfig | None = None,
    environ: Mapping[str, str] | None = None,
    etc_dir: Path = ETC_DIR,
) -> OsIdentity | None:
    """Cached OS identity; detects it on first call.

    A freshly detected identity is stored into ``config`` so that the
    next run does not have to detect it again.
    """
    if not context.os_detected:
        identity = detect_operating_system(config, environ=environ, etc_dir=etc_dir)
        context.set_operating_system(identity)
        if identity is None:
            logger.warning("cannot detect the operating system, native osdeps will not be handled")
        elif config is not None and config.os_identity() != identity:
            config.store_os_identity(identity)
        logger.debug("operating system: %s", identity)
    return context.operating_system
