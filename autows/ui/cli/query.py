"""
CLI command for package queries.

Thin wrapper over ``autows.core.services.query``.
"""

from __future__ import annotations

import json
import sys

import click

from autows.core.errors import AutowsError


@click.command()
@click.argument("query_string", required=False, default="")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def query(ctx: click.Context, query_string: str, as_json: bool) -> None:
    """List the packages matching QUERY_STRING, best match first.

    \b
    Examples:
        autows query drivers
        autows query 'vcs.type=git:name~camera'
    """
    from autows.core.config.workspace import Workspace
    from autows.core.services.query import Query, find_matches

    try:
        matcher = Query.parse_query(query_string)
        ws = Workspace.from_dir(ctx.obj.get("root"))
        ws.setup()
    except AutowsError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    matches = find_matches(matcher, ws.resolved_packages())

    if as_json:
        click.echo(json.dumps([
            {
                "name": pkg.name,
                "priority": priority,
                "srcdir": pkg.srcdir,
                "package_set": pkg.package_set,
                "vcs": str(pkg.vcs),
            }
            for pkg, priority in matches
        ], indent=2))
        return

    if not matches:
        click.secho("⚠️  No package matches", fg="yellow")
        return

    for pkg, priority in matches:
        click.echo(f"   {priority}  {pkg.name:<30} {pkg.srcdir}")
