"""
CLI command for package selection.

Thin wrapper over ``Manifest.expand_package_selection``.
"""

from __future__ import annotations

import json
import os
import sys

import click

from autows.core.errors import AutowsError


@click.command()
@click.argument("specs", nargs=-1, required=True)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def select(ctx: click.Context, specs: tuple[str, ...], as_json: bool) -> None:
    """Resolve package names or directories into a selection.

    Exits with status 1 if a spec matches nothing.
    """
    from autows.core.config.workspace import Workspace

    # existing directories are matched by absolute path
    specs = tuple(os.path.abspath(s) if os.path.isdir(s) else s for s in specs)

    try:
        ws = Workspace.from_dir(ctx.obj.get("root"))
        ws.setup()
        selection, unresolved = ws.manifest.expand_package_selection(specs)
    except AutowsError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps({
            "selection": {spec: sorted(selection.match_for(spec)) for spec in specs},
            "source_packages": list(selection.each_source_package_name()),
            "osdeps": list(selection.each_osdep_package_name()),
            "exclusions": {
                spec: [{"name": n, "reason": r} for n, r in items]
                for spec, items in selection.exclusions.items()
            },
            "ignores": selection.ignores,
            "unresolved": unresolved,
        }, indent=2))
    else:
        for spec in specs:
            matches = sorted(selection.match_for(spec))
            if matches:
                click.echo(f"   {spec} → {', '.join(matches)}")
        for spec, items in selection.exclusions.items():
            for name, reason in items:
                click.secho(f"   ⚠️  {name} excluded ({spec}): {reason}", fg="yellow")
        for spec, names in selection.ignores.items():
            click.echo(f"   ➖ ignored ({spec}): {', '.join(names)}")
        for spec in unresolved:
            click.secho(f"   ❌ {spec} does not match any package", fg="red")

    if unresolved:
        sys.exit(1)
