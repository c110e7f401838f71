"""
autows — CLI entrypoint.

Usage:
    autows --help
    autows query 'name~drivers'
    autows osdeps plan
    autows select drivers/camera
"""

from __future__ import annotations

import os
from pathlib import Path

import click

from autows import __version__
from autows.core.observability.logging_config import level_from_flags, setup_logging_from_env


@click.group()
@click.version_option(version=__version__, prog_name="autows")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--root",
    "root",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Directory inside the workspace (default: current directory).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    root: str | None,
) -> None:
    """autows — resolve packages, osdeps and VCS definitions of a workspace."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["root"] = Path(root) if root else None

    # Register the workspace root in the core context (used to shorten paths)
    from autows.core.config.loader import find_workspace_dir
    from autows.core.context import set_workspace_root as _set_ctx_root
    _set_ctx_root(find_workspace_dir(ctx.obj["root"]))

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging_from_env(level_from_flags(verbose, quiet, debug, os.environ))


# ── Register sub-command groups ─────────────────────────────────

from autows.ui.cli.locate import locate  # noqa: E402
from autows.ui.cli.osdeps import osdeps  # noqa: E402
from autows.ui.cli.query import query  # noqa: E402
from autows.ui.cli.select import select  # noqa: E402
from autows.ui.cli.vcs import vcs  # noqa: E402

cli.add_command(query)
cli.add_command(osdeps)
cli.add_command(select)
cli.add_command(vcs)
cli.add_command(locate)


if __name__ == "__main__":
    cli()
