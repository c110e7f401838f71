"""
Domain models — Pydantic types for autows.

All models are re-exported here for convenient access:

    from autows.core.models import PackageRecord, PackageSetRecord, VCSDefinition
"""

from autows.core.models.config import ManifestConfig, OsdepsOverrideConfig, WorkspaceConfig
from autows.core.models.package import Metapackage, PackageRecord, PackageSetRecord, VcsEntry
from autows.core.models.platform import OsIdentity
from autows.core.models.vcs import VCSDefinition, merge_raw_vcs

__all__ = [
    # config.py
    "ManifestConfig",
    "OsdepsOverrideConfig",
    "WorkspaceConfig",
    # package.py
    "Metapackage",
    "PackageRecord",
    "PackageSetRecord",
    "VcsEntry",
    # platform.py
    "OsIdentity",
    # vcs.py
    "VCSDefinition",
    "merge_raw_vcs",
]
