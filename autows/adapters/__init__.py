"""Adapters — bindings for the version-control tools packages come from.

Public re-exports for convenient access.
"""

from autows.adapters.base import Importer
from autows.adapters.vcs.importers import IMPORTERS, create_importer

__all__ = [
    "IMPORTERS",
    "Importer",
    "create_importer",
]
