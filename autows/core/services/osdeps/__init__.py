"""
OS dependencies — resolution of abstract dependency names.

    from autows.core.services.osdeps import OSDependencyResolver, OsdepStatus
"""

from autows.core.services.osdeps.plan import InstallPlan, OsdepsMode, build_install_plan
from autows.core.services.osdeps.resolver import OSDependencyResolver, OsdepStatus, Resolution

__all__ = [
    "InstallPlan",
    "OSDependencyResolver",
    "OsdepStatus",
    "OsdepsMode",
    "Resolution",
    "build_install_plan",
]
