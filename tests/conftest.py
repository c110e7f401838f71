"""
Shared test fixtures and configuration.
"""

import logging
import textwrap
from pathlib import Path

import pytest

from autows.core.context import ResolverContext, reset_context, set_workspace_root
from autows.core.services.manifest import Manifest
from autows.core.services.osdeps.resolver import OSDependencyResolver

TEST_OS = ("test_os_family", ["test_os_version"])


@pytest.fixture(autouse=True)
def _fresh_process_state(monkeypatch):
    """Every test starts with empty caches and no inherited environment."""
    for var in (
        "AUTOWS_OPERATING_SYSTEM",
        "AUTOWS_OSDEPS_MODE",
        "AUTOWS_CURRENT_ROOT",
        "AUTOWS_LOG_LEVEL",
        "AUTOWS_LOG_FILE",
        "AUTOWS_LOG_FILE_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    reset_context()
    set_workspace_root(None)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    reset_context()
    set_workspace_root(None)


@pytest.fixture
def context() -> ResolverContext:
    """A private resolver context."""
    return ResolverContext()


@pytest.fixture
def make_resolver(context):
    """Build a resolver on the test OS from raw definitions."""

    def _make(definitions=None, operating_system=TEST_OS, source="test.osdeps"):
        resolver = OSDependencyResolver(definitions or {}, source, context=context)
        resolver.operating_system = operating_system
        return resolver

    return _make


@pytest.fixture
def manifest(make_resolver) -> Manifest:
    """An empty manifest whose resolver runs on the test OS."""
    return Manifest(make_resolver())


@pytest.fixture
def write_file():
    """Write dedented text to a file, creating parent directories."""

    def _write(path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content))
        return path

    return _write


@pytest.fixture
def workspace_dir(tmp_path: Path, write_file) -> Path:
    """A workspace with a local package set, a remote one and osdeps.

    Layout::

        ws/.autows/config.yml
        ws/.autows/remotes/git_https___example_com_remote_set/source.yml
        ws/autows/manifest
        ws/autows/overrides.yml
        ws/autows/main.osdeps
        ws/autows/local_set/source.yml
        ws/autows/local_set/local.osdeps
    """
    root = tmp_path / "ws"
    write_file(root / ".autows" / "config.yml", """\
        operating_system: [debian, [wheezy, "7"]]
    """)
    write_file(root / "autows" / "manifest", """\
        package_sets:
          - local_set
        layout:
          - drivers/camera
          - tools/viewer
        exclude_packages:
          - tools/broken
    """)
    write_file(root / "autows" / "overrides.yml", """\
        overrides:
          - drivers/camera:
              branch: stable
    """)
    write_file(root / "autows" / "main.osdeps", """\
        boost:
          debian: libboost-dev-main
    """)
    write_file(root / "autows" / "local_set" / "source.yml", """\
        name: local.set
        imports:
          - type: git
            url: https://example.com/remote_set
        version_control:
          - drivers/.*:
              type: git
              url: https://example.com/drivers
        packages:
          - drivers/camera
          - name: tools/viewer
            class: autotools
            depends: [drivers/camera, boost]
          - tools/broken
    """)
    write_file(root / "autows" / "local_set" / "local.osdeps", """\
        boost:
          debian: libboost-dev
        eigen:
          debian,ubuntu: libeigen3-dev
        gone: nonexistent
    """)
    write_file(
        root / ".autows" / "remotes" / "git_https___example_com_remote_set" / "source.yml",
        """\
        name: remote.set
        version_control:
          - tools/.*:
              type: git
              url: https://example.com/tools
        overrides:
          - drivers/camera:
              branch: next
        packages:
          - name: base/types
            depends: [eigen]
        """,
    )
    write_file(
        root / ".autows" / "remotes" / "git_https___example_com_remote_set" / "remote.osdeps",
        """\
        eigen: [libeigen-remote]
        """,
    )
    (root / "tools").mkdir(parents=True, exist_ok=True)
    return root
