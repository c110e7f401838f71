"""
Error taxonomy — every failure autows reports on purpose.

Configuration errors are always fatal and always name the file or
section they come from.  Resolution errors (PackageNotFound,
MissingOsdep) are expected, user-fixable conditions: the message text
is part of the scripting contract and must stay stable.
"""

from __future__ import annotations


class AutowsError(Exception):
    """Base class for all errors raised by autows."""


class ConfigError(AutowsError):
    """Raised when a configuration file or definition is invalid."""


class InvalidYAMLFormatting(ConfigError):
    """Raised when a YAML section does not have the expected shape."""


class MissingOsdep(ConfigError):
    """Raised when an OS dependency cannot be resolved for this system.

    Carries the dependency ``name`` and the resolution ``status`` that
    caused the failure so callers can react without parsing the message.
    """

    def __init__(self, message: str, name: str, status: int) -> None:
        super().__init__(message)
        self.name = name
        self.status = status


class UnsupportedOperatingSystem(ConfigError):
    """Raised when native packages are needed on an OS we cannot handle."""


class PackageNotFound(AutowsError):
    """Raised when a name is neither a source package nor an osdep."""


class UnregisteredPackage(AutowsError):
    """Raised when a package object is not registered in the manifest."""


class QueryError(AutowsError, ValueError):
    """Raised when a query string refers to an unknown field."""


class InternalError(AutowsError):
    """Raised when an operation is called in an invalid internal state."""
