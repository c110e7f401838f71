"""
Configuration loader — finds the workspace and reads its YAML files.

A workspace is a directory holding a ``.autows/`` directory (internal
state, ``config.yml``) and an ``autows/`` directory (the user's main
package set: ``manifest``, ``*.osdeps``, ``overrides.yml``).

YAML is read with ``yaml.safe_load`` and validated into Pydantic models;
every failure is reported as a ConfigError naming the file.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping

import yaml

from autows.core.errors import ConfigError
from autows.core.models.config import ManifestConfig, WorkspaceConfig

logger = logging.getLogger(__name__)

WORKSPACE_DIR = ".autows"
CONFIG_FILE = "config.yml"
MAIN_CONFIG_DIR = "autows"
MANIFEST_FILE = "manifest"
OVERRIDES_FILE = "overrides.yml"
REMOTES_DIR = "remotes"

ENV_CURRENT_ROOT = "AUTOWS_CURRENT_ROOT"

__all__ = [
    "ConfigError",
    "config_path",
    "default_find_base_dir",
    "find_prefix_dir",
    "find_workspace_dir",
    "load_config",
    "load_manifest_config",
    "load_yaml_mapping",
    "save_config",
]


def default_find_base_dir(environ: Mapping[str, str] | None = None) -> Path:
    """Directory the workspace search starts from."""
    env = os.environ if environ is None else environ
    root = env.get(ENV_CURRENT_ROOT)
    return Path(root) if root else Path.cwd()


def _find_root_dir(base_dir: Path, config_field: str) -> Path | None:
    """Walk up from ``base_dir`` to the directory holding ``.autows``.

    If ``.autows/config.yml`` sets ``config_field``, that value is
    returned instead, resolved against the directory holding ``.autows``.
    """
    current = base_dir.resolve()
    while True:
        if (current / WORKSPACE_DIR).exists():
            break
        parent = current.parent
        if parent == current:
            return None  # filesystem root
        current = parent

    cfg = current / WORKSPACE_DIR / CONFIG_FILE
    if not cfg.is_file():
        return current

    data = load_yaml_mapping(cfg, allow_empty=True)
    result = data.get(config_field)
    if not result:
        return current
    return (current / str(result)).resolve()


def find_workspace_dir(base_dir: Path | None = None) -> Path | None:
    """Root of the workspace containing ``base_dir`` (default: cwd)."""
    return _find_root_dir(base_dir or default_find_base_dir(), "workspace")


def find_prefix_dir(base_dir: Path | None = None) -> Path | None:
    """Install prefix of the workspace containing ``base_dir``."""
    return _find_root_dir(base_dir or default_find_base_dir(), "prefix")


def load_yaml_mapping(path: Path, *, allow_empty: bool = False) -> dict[str, Any]:
    """Read a YAML file that must contain a mapping.

    Args:
        path: File to read.
        allow_empty: Return ``{}`` for an empty file instead of failing.

    Raises:
        ConfigError: if the file cannot be read, is not valid YAML, or
            does not hold a mapping.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None and allow_empty:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def config_path(root: Path) -> Path:
    return root / WORKSPACE_DIR / CONFIG_FILE


def load_config(root: Path) -> WorkspaceConfig:
    """Load ``.autows/config.yml``, or a fresh config if there is none."""
    path = config_path(root)
    if not path.is_file():
        logger.info("No config file at %s, using defaults", path)
        return WorkspaceConfig()

    data = load_yaml_mapping(path, allow_empty=True)
    try:
        config = WorkspaceConfig.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e
    logger.debug("Loaded workspace config from %s", path)
    return config


def save_config(config: WorkspaceConfig, root: Path) -> Path:
    """Write ``.autows/config.yml`` atomically (temp file, then rename)."""
    path = config_path(root)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(mode="json", exclude_none=True, exclude_defaults=True)
    content = yaml.safe_dump(data, default_flow_style=False, sort_keys=True)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".config_", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as io:
            io.write(content)
        os.replace(tmp, path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("Config saved to %s", path)
    return path


def load_manifest_config(path: Path) -> ManifestConfig:
    """Load the workspace manifest file."""
    if not path.is_file():
        raise ConfigError(f"Manifest file not found: {path}")

    data = load_yaml_mapping(path, allow_empty=True)
    try:
        manifest = ManifestConfig.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid manifest {path}: {e}") from e

    logger.info(
        "Loaded manifest %s: %d package sets, %s layout",
        path, len(manifest.package_sets),
        "no" if manifest.layout is None else f"{len(manifest.layout)}-entry",
    )
    return manifest
