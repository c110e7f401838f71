"""
CLI command for workspace locations.

Thin wrapper over ``Workspace`` paths and ``Manifest.package``.
"""

from __future__ import annotations

import sys

import click

from autows.core.errors import AutowsError


@click.command()
@click.argument("package", required=False)
@click.option("--prefix", is_flag=True, help="Print the install prefix instead of the root.")
@click.pass_context
def locate(ctx: click.Context, package: str | None, prefix: bool) -> None:
    """Print the workspace root, its install prefix, or PACKAGE's source directory."""
    from autows.core.config.workspace import Workspace

    try:
        ws = Workspace.from_dir(ctx.obj.get("root"))
        if package is None:
            click.echo(str(ws.prefix_dir if prefix else ws.root_dir))
            return
        ws.setup()
        pkg = ws.manifest.package(package)
    except AutowsError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    click.echo(pkg.srcdir)
