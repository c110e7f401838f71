"""
VCS importers — git, svn, hg, archive, local and none.

Each importer turns a VCSDefinition into a repository fingerprint and
the client commands that would fetch it.  Options come straight from
the ``version_control`` entries (``branch``, ``tag``, ``commit``,
``revision``...).
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath

from autows.adapters.base import Importer
from autows.core.errors import ConfigError
from autows.core.models.vcs import VCSDefinition

logger = logging.getLogger(__name__)


class GitImporter(Importer):
    """Git repositories.

    Options:
        branch (str): Branch to track (default: the remote's HEAD).
        tag (str): Tag to check out.
        commit (str): Commit to check out.
    """

    program = "git"

    @property
    def name(self) -> str:
        return "git"

    @property
    def repository_id(self) -> str | None:
        return f"git:{self.vcs.url}"

    def checkout_commands(self, srcdir: str) -> list[list[str]]:
        opts = self.vcs.options
        clone = ["git", "clone"]
        branch = opts.get("branch") or opts.get("tag")
        if branch:
            clone += ["--branch", str(branch)]
        commands = [clone + [str(self.vcs.url), srcdir]]
        if opts.get("commit"):
            commands.append(["git", "-C", srcdir, "checkout", str(opts["commit"])])
        return commands

    def update_commands(self, srcdir: str) -> list[list[str]]:
        opts = self.vcs.options
        if opts.get("commit") or opts.get("tag"):
            target = str(opts.get("commit") or opts.get("tag"))
            return [
                ["git", "-C", srcdir, "fetch", "--tags", "origin"],
                ["git", "-C", srcdir, "checkout", target],
            ]
        return [["git", "-C", srcdir, "pull", "--ff-only"]]


class SvnImporter(Importer):
    """Subversion repositories.  Option: revision."""

    program = "svn"

    @property
    def name(self) -> str:
        return "svn"

    @property
    def repository_id(self) -> str | None:
        return f"svn:{self.vcs.url}"

    def _revision(self) -> list[str]:
        rev = self.vcs.options.get("revision")
        return ["-r", str(rev)] if rev else []

    def checkout_commands(self, srcdir: str) -> list[list[str]]:
        return [["svn", "checkout", *self._revision(), str(self.vcs.url), srcdir]]

    def update_commands(self, srcdir: str) -> list[list[str]]:
        return [["svn", "update", *self._revision(), srcdir]]


class HgImporter(Importer):
    """Mercurial repositories.  Option: branch."""

    program = "hg"

    @property
    def name(self) -> str:
        return "hg"

    @property
    def repository_id(self) -> str | None:
        return f"hg:{self.vcs.url}"

    def checkout_commands(self, srcdir: str) -> list[list[str]]:
        cmd = ["hg", "clone"]
        if self.vcs.options.get("branch"):
            cmd += ["-u", str(self.vcs.options["branch"])]
        return [cmd + [str(self.vcs.url), srcdir]]

    def update_commands(self, srcdir: str) -> list[list[str]]:
        return [["hg", "pull", "-u", "-R", srcdir]]


class ArchiveImporter(Importer):
    """Tarballs and zip files downloaded over HTTP(S)."""

    program = "curl"

    @property
    def name(self) -> str:
        return "archive"

    def _filename(self) -> str:
        return self.vcs.options.get("filename") or PurePosixPath(str(self.vcs.url)).name

    def checkout_commands(self, srcdir: str) -> list[list[str]]:
        archive = f"{srcdir}.{self._filename()}"
        if archive.endswith(".zip"):
            extract = ["unzip", "-q", archive, "-d", srcdir]
        else:
            extract = ["tar", "-xf", archive, "-C", srcdir, "--strip-components=1"]
        return [
            ["curl", "-L", "-o", archive, str(self.vcs.url)],
            ["mkdir", "-p", srcdir],
            extract,
        ]

    def update_commands(self, srcdir: str) -> list[list[str]]:
        return []


class LocalImporter(Importer):
    """Directories already present on disk."""

    @property
    def name(self) -> str:
        return "local"

    def checkout_commands(self, srcdir: str) -> list[list[str]]:
        return []

    def update_commands(self, srcdir: str) -> list[list[str]]:
        return []


class NoneImporter(LocalImporter):
    """Packages that are not under version control."""

    @property
    def name(self) -> str:
        return "none"


IMPORTERS: dict[str, type[Importer]] = {
    "git": GitImporter,
    "svn": SvnImporter,
    "hg": HgImporter,
    "archive": ArchiveImporter,
    "local": LocalImporter,
    "none": NoneImporter,
}


def create_importer(vcs: VCSDefinition) -> Importer:
    """Importer for ``vcs``.

    Raises:
        ConfigError: if the VCS type is unknown.
    """
    try:
        importer_class = IMPORTERS[vcs.type]
    except KeyError:
        raise ConfigError(
            f"unknown VCS type '{vcs.type}' in {vcs}, known types: {', '.join(sorted(IMPORTERS))}"
        ) from None
    return importer_class(vcs)
