"""
CLI command for effective VCS definitions.

Thin wrapper over ``autows.core.services.overrides``.
"""

from __future__ import annotations

import json
import shlex
import sys

import click

from autows.core.errors import AutowsError


@click.command()
@click.argument("package")
@click.option("--mainline", default=None, help="Apply overrides up to this package set only.")
@click.option("--update", is_flag=True, help="Show the update commands instead of the checkout.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def vcs(ctx: click.Context, package: str, mainline: str | None, update: bool, as_json: bool) -> None:
    """Show where PACKAGE is fetched from, overrides applied."""
    from autows.adapters.vcs.importers import create_importer
    from autows.core.config.workspace import Workspace

    try:
        ws = Workspace.from_dir(ctx.obj.get("root"))
        ws.setup()
        pkg = ws.manifest.package(package)
        definition = ws.manifest.importer_definition_for(pkg, mainline=mainline)
        importer = create_importer(definition)
    except AutowsError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if update:
        action, commands = "update", importer.update_commands(pkg.srcdir)
    else:
        action, commands = "checkout", importer.checkout_commands(pkg.srcdir)

    if as_json:
        click.echo(json.dumps({
            "package": pkg.name,
            "package_set": pkg.package_set,
            "vcs": definition.to_raw(),
            "repository_id": importer.repository_id,
            action: commands,
        }, indent=2))
        return

    click.secho(f"📦 {pkg.name}", fg="cyan", bold=True)
    click.echo(f"   Package set: {pkg.package_set}")
    click.echo(f"   VCS: {definition}")
    if not importer.is_available():
        click.secho(f"   ⚠️  {importer.program} is not installed", fg="yellow")
    for cmd in commands:
        click.echo(f"   $ {shlex.join(cmd)}")
