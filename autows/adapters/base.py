"""
Importer base — the contract between resolution and VCS tools.

An importer knows, for one VCS definition, how the repository is
identified and which commands would fetch or update it.  Importers
only describe commands: running them is the job of an external
orchestrator.

To add a VCS type:
    1. Subclass Importer
    2. Implement name, checkout_commands and update_commands
    3. Register the class in ``autows.adapters.vcs.importers.IMPORTERS``
"""

from __future__ import annotations

import shutil
from abc import ABC, abstractmethod

from autows.core.models.vcs import VCSDefinition


class Importer(ABC):
    """Abstract base class for all importers."""

    #: Client program used by the commands, None if there is none.
    program: str | None = None

    def __init__(self, vcs: VCSDefinition) -> None:
        self.vcs = vcs

    @property
    @abstractmethod
    def name(self) -> str:
        """The VCS type this importer handles (e.g. 'git', 'svn')."""

    @property
    def repository_id(self) -> str | None:
        """Fingerprint of the repository, None if the VCS has none."""
        return None

    def is_available(self) -> bool:
        """Check whether the client program is on PATH.  Never raises."""
        if self.program is None:
            return True
        return shutil.which(self.program) is not None

    @abstractmethod
    def checkout_commands(self, srcdir: str) -> list[list[str]]:
        """Commands that would create ``srcdir`` from the repository."""

    @abstractmethod
    def update_commands(self, srcdir: str) -> list[list[str]]:
        """Commands that would update an existing checkout in ``srcdir``."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.vcs}>"
