"""
Language packages — RubyGems handling for osdeps.

Installed-ness of a gem is version-aware: an installed gem is kept in
the install list only if the remote index has a newer version.  Remote
lookups are slow, so their answers are cached in the resolver context.
"""

from __future__ import annotations

import functools
import logging
import re
import shutil
import subprocess
from typing import Iterable

from autows.core.context import ResolverContext
from autows.core.errors import ConfigError

logger = logging.getLogger(__name__)

_GEM_LINE_RX = re.compile(r"^(\S+) \((.*)\)\s*$")
_SEGMENT_RX = re.compile(r"\d+|[A-Za-z]+")


def parse_gem_list(output: str, name: str) -> list[str]:
    """Versions of ``name`` listed in ``gem list`` output.

    Lines look like ``rake (13.0.6, 12.3.3)`` or ``json (default: 2.6.1)``.
    """
    versions: list[str] = []
    for line in output.splitlines():
        m = _GEM_LINE_RX.match(line.strip())
        if not m or m.group(1) != name:
            continue
        for item in m.group(2).split(","):
            item = item.strip()
            if item.startswith("default:"):
                item = item[len("default:"):].strip()
            if item:
                versions.append(item.split()[0])
    return versions


def _segments(version: str) -> list[int | str]:
    return [int(s) if s.isdigit() else s for s in _SEGMENT_RX.findall(version)]


def compare_versions(a: str, b: str) -> int:
    """RubyGems ordering: missing segments are 0, letters sort before numbers.

    So ``1.0.rc1 < 1.0 == 1.0.0 < 1.0.1``.
    """
    sa, sb = _segments(a), _segments(b)
    for i in range(max(len(sa), len(sb))):
        x = sa[i] if i < len(sa) else 0
        y = sb[i] if i < len(sb) else 0
        if isinstance(x, str) != isinstance(y, str):
            return -1 if isinstance(x, str) else 1
        if x != y:
            return -1 if x < y else 1  # type: ignore[operator]
    return 0


version_key = functools.cmp_to_key(compare_versions)


def latest_version(versions: Iterable[str]) -> str | None:
    versions = list(versions)
    return max(versions, key=version_key) if versions else None


class GemManager:
    """Queries ``gem`` for local and remote versions."""

    def __init__(
        self,
        context: ResolverContext,
        gem_program: str | None = None,
        with_prerelease: bool = False,
    ) -> None:
        self.context = context
        self.gem_program = gem_program or shutil.which("gem") or "gem"
        self.with_prerelease = with_prerelease

    def _gem_list(self, *args: str) -> str | None:
        cmd = [self.gem_program, "list", *args]
        try:
            r = subprocess.run(cmd, capture_output=True, text=True, timeout=120)
        except FileNotFoundError:
            logger.warning("gem program not found: %s", self.gem_program)
            return None
        except subprocess.TimeoutExpired:
            logger.warning("Timeout running %s", " ".join(cmd))
            return None
        except OSError as exc:
            logger.warning("OS error running %s: %s", " ".join(cmd), exc)
            return None
        if r.returncode != 0:
            logger.warning("%s failed: %s", " ".join(cmd), r.stderr.strip())
            return None
        return r.stdout

    def installed_versions(self, name: str) -> list[str]:
        output = self._gem_list("--local", "--exact", name)
        return parse_gem_list(output, name) if output else []

    def remote_versions(self, name: str) -> list[str]:
        """Versions on the remote index, cached per process."""
        cache = self.context.gem_remote_versions
        if name not in cache:
            logger.info("looking for RubyGems updates of %s", name)
            args = ["--remote", "--exact", name]
            if self.with_prerelease:
                args.insert(0, "--prerelease")
            output = self._gem_list(*args)
            cache[name] = parse_gem_list(output, name) if output else []
        return cache[name]

    def filter_uptodate_gems(self, names: Iterable[str], update: bool = True) -> list[str]:
        """The gems of ``names`` that need installing or upgrading.

        Raises:
            ConfigError: if an installed gem must be checked for updates
                and the remote index does not know it.
        """
        result = []
        for name in names:
            installed = self.installed_versions(name)
            if not installed:
                result.append(name)
                continue
            if not update:
                continue

            available = latest_version(self.remote_versions(name))
            if available is None:
                raise ConfigError(f"cannot find any gem with the name '{name}'")
            if compare_versions(available, latest_version(installed) or "0") > 0:
                result.append(name)
        return result

    def install_command(self, gems: Iterable[str]) -> list[str]:
        cmd = [self.gem_program, "install"]
        if self.with_prerelease:
            cmd.append("--prerelease")
        cmd.extend(gems)
        return cmd
