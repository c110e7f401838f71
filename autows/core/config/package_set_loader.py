"""
Package-set loader — reads package-set directories into records.

A package set is a directory holding a ``source.yml`` description and
any number of ``*.osdeps`` files::

    name: rock.core
    imports:
      - type: git
        url: https://github.com/rock-core/package_set
    version_control:
      - base/.*:
          type: git
          url: https://github.com/rock-core/base
    overrides:
      - base/types:
          branch: next
    packages:
      - base/types
      - name: base/logging
        class: autotools
        depends: [base/types, boost]

Package sets are either local (a directory anywhere on disk) or remote
(checked out by an external tool under the workspace's remotes
directory).  A remote set that is not checked out cannot be loaded.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from autows.core.config.loader import load_yaml_mapping
from autows.core.config.osdeps_loader import find_osdeps_files
from autows.core.errors import ConfigError, InternalError, InvalidYAMLFormatting
from autows.core.models.package import PackageRecord, PackageSetRecord, VcsEntry
from autows.core.models.vcs import LOCAL_TYPE, VCSDefinition
from autows.core.services.overrides import raw_local_dir_of

logger = logging.getLogger(__name__)

SOURCE_FILE = "source.yml"

# Names made of anything else are regular expressions
_PLAIN_NAME_RX = re.compile(r"[^\w/.-]")


@dataclass
class LoadedPackageSet:
    """A package set as read from disk, before import resolution."""

    record: PackageSetRecord
    packages: list[PackageRecord] = field(default_factory=list)
    # (vcs, options) of every import, in declaration order
    imports: list[tuple[VCSDefinition, dict[str, Any]]] = field(default_factory=list)


# ── Definitions ─────────────────────────────────────────────────


def resolve_definition(config_dir: Path, spec: Any) -> tuple[VCSDefinition, dict[str, Any]]:
    """VCS definition and import options of a package-set spec.

    A string names a local directory, relative to ``config_dir`` or
    absolute.  A mapping is a VCS definition, possibly with an
    ``auto_imports`` option.

    Raises:
        ValueError: if a string does not name an existing directory.
        ConfigError: if a mapping is not a valid VCS definition.
    """
    if isinstance(spec, str):
        local_path = (config_dir / spec).resolve()
        if not local_path.is_dir():
            raise ValueError(
                f"'{spec}' is neither a remote source specification, nor an existing local directory"
            )
        vcs = VCSDefinition.from_raw({"type": LOCAL_TYPE, "url": str(local_path)})
        return vcs, {"auto_imports": True}

    if not isinstance(spec, dict):
        raise ConfigError(f"invalid package set specification {spec!r}")
    raw = dict(spec)
    options = {"auto_imports": bool(raw.pop("auto_imports", True))}
    return VCSDefinition.from_raw(raw), options


def raw_description_file(directory: Path, package_set_name: str | None = None) -> dict[str, Any]:
    """Content of ``directory/source.yml``.

    Raises:
        ConfigError: if the file is missing or has no ``name`` field.
    """
    path = Path(directory) / SOURCE_FILE
    if not path.is_file():
        raise ConfigError(
            f"package set {package_set_name} present in {directory} should have "
            f"a {SOURCE_FILE} file, but does not"
        )
    data = load_yaml_mapping(path, allow_empty=True)
    if not data.get("name"):
        raise ConfigError(f"{directory}/{SOURCE_FILE} does not have a 'name' field")
    return data


def name_of(vcs: VCSDefinition, raw_local_dir: Path) -> str:
    """Name of a package set: the one on disk if present, ``str(vcs)`` otherwise."""
    if Path(raw_local_dir).is_dir():
        return str(raw_description_file(raw_local_dir)["name"])
    return str(vcs)


# ── version_control / overrides sections ────────────────────────


def number_to_nth(number: int) -> str:
    """1 -> '1st', 2 -> '2nd', 11 -> '11th', 23 -> '23rd'."""
    if 10 <= number % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"


def normalize_vcs_list(section: str, file: str, entries: Any) -> list[VcsEntry]:
    """Validate a ``version_control`` or ``overrides`` list.

    Accepts both ways YAML may load an entry::

        - name:           {"name": {"type": "git"}}
            type: git
        - name:           {"name": None, "type": "git"}
          type: git

    and the ``name: none`` shorthand.  Names using characters other than
    word characters, ``/``, ``.`` and ``-`` are regular expressions
    anchored at the start of the package name.

    Raises:
        InvalidYAMLFormatting: if the section or an entry is badly shaped.
        ConfigError: if a shorthand names anything but ``none``.
    """
    if isinstance(entries, dict):
        raise InvalidYAMLFormatting(
            f"wrong format for the {section} section of {file}, "
            "you forgot the '-' in front of the package names"
        )
    if not isinstance(entries, list):
        raise InvalidYAMLFormatting(f"wrong format for the {section} section of {file}")

    result = []
    for idx, spec in enumerate(entries):
        nth = number_to_nth(idx + 1)
        if not isinstance(spec, dict):
            raise InvalidYAMLFormatting(
                f"wrong format for the {nth} entry ({spec!r}) of the {section} section of {file}, "
                "expected a package name, followed by a colon, and one importer option per following line"
            )

        if len(spec) != 1:
            name = next((k for k, v in spec.items() if v is None), None)
            if name is None:
                raise InvalidYAMLFormatting(
                    f"cannot make sense of the {nth} entry in the {section} section of {file}: {spec!r}"
                )
            fields = {k: v for k, v in spec.items() if k != name}
        else:
            name, fields = next(iter(spec.items()))
            if isinstance(fields, str):
                if fields != "none":
                    raise ConfigError(
                        f"invalid VCS specification in the {section} section of {file}: "
                        f"'{name}: {fields}'. One can only use this shorthand to declare "
                        "the absence of a VCS with the 'none' keyword"
                    )
                fields = {"type": "none"}
            elif fields is None:
                raise InvalidYAMLFormatting(
                    f"expected '{name}:' followed by version control options, but got nothing, "
                    f"in the {nth} entry of the {section} section of {file}"
                )
            elif not isinstance(fields, dict):
                raise InvalidYAMLFormatting(
                    f"cannot make sense of the {nth} entry in the {section} section of {file}: {spec!r}"
                )

        name = str(name)
        if _PLAIN_NAME_RX.search(name):
            result.append(VcsEntry(key=f"^{name}", pattern=True, fields=dict(fields), source=file))
        else:
            result.append(VcsEntry(key=name, fields=dict(fields), source=file))
    return result


# ── Packages ────────────────────────────────────────────────────


def parse_packages(
    entries: Any, file: str, package_set: str, root_dir: Path
) -> list[PackageRecord]:
    """Package records of a ``packages`` section.

    Source directories are relative to the workspace root and default
    to the package name.
    """
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise InvalidYAMLFormatting(f"wrong format for the packages section of {file}, expected a list")

    packages = []
    for entry in entries:
        if isinstance(entry, str):
            entry = {"name": entry}
        if not isinstance(entry, dict) or not entry.get("name"):
            raise ConfigError(f"invalid package definition {entry!r} in {file}")

        name = str(entry["name"])
        depends = entry.get("depends") or []
        if isinstance(depends, str):
            depends = [depends]
        packages.append(PackageRecord(
            name=name,
            srcdir=str(root_dir / str(entry.get("srcdir") or name)),
            class_name=str(entry.get("class") or "cmake"),
            package_set=package_set,
            dependencies=[str(d) for d in depends],
        ))
    return packages


# ── Loading ─────────────────────────────────────────────────────


def load_package_set(
    vcs: VCSDefinition,
    *,
    config_dir: Path,
    remotes_dir: Path,
    root_dir: Path,
    explicit: bool = False,
) -> LoadedPackageSet:
    """Read the package set described by ``vcs``.

    Raises:
        InternalError: if a remote set has not been checked out yet.
        ConfigError: if its description is invalid.
    """
    raw_local_dir = raw_local_dir_of(remotes_dir, vcs)
    if not raw_local_dir.is_dir():
        raise InternalError(f"source {vcs} has not been fetched yet, cannot load description for it")

    description = raw_description_file(raw_local_dir, package_set_name=str(vcs))
    file = str(raw_local_dir / SOURCE_FILE)
    name = str(description["name"])

    record = PackageSetRecord(
        name=name,
        vcs=vcs,
        raw_local_dir=str(raw_local_dir),
        explicit=explicit,
        osdeps_files=[str(p) for p in find_osdeps_files(raw_local_dir)],
    )
    if description.get("version_control") is not None:
        record.version_control = normalize_vcs_list("version_control", file, description["version_control"])
    if description.get("overrides") is not None:
        record.overrides = normalize_vcs_list("overrides", file, description["overrides"])

    imports = []
    for spec in description.get("imports") or []:
        try:
            imports.append(resolve_definition(config_dir, spec))
        except ValueError as e:
            raise ConfigError(f"{file}: {e}") from e

    packages = parse_packages(description.get("packages"), file, name, root_dir)
    logger.info(
        "Loaded package set %s from %s: %d packages, %d imports",
        name, raw_local_dir, len(packages), len(imports),
    )
    return LoadedPackageSet(record=record, packages=packages, imports=imports)
