"""
CLI commands for OS dependencies.

Thin wrappers over ``autows.core.services.osdeps``.  Nothing is
installed: ``plan`` prints the commands an installer would run.
"""

from __future__ import annotations

import json
import sys

import click

from autows.core.errors import AutowsError


def _load_workspace(ctx: click.Context):
    from autows.core.config.workspace import Workspace

    try:
        ws = Workspace.from_dir(ctx.obj.get("root"))
        ws.setup()
    except AutowsError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    return ws


@click.group()
def osdeps() -> None:
    """OS dependencies — resolution, install plan, OS identity."""


@osdeps.command("os")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def os_identity(ctx: click.Context, as_json: bool) -> None:
    """Show the detected operating system."""
    from autows.core.services.osdeps.package_managers import package_manager_for

    ws = _load_workspace(ctx)
    identity = ws.resolver.operating_system

    if as_json:
        click.echo(json.dumps({
            "operating_system": identity.to_raw() if identity else None,
            "package_manager": package_manager_for(identity.family) if identity else None,
        }, indent=2))
        return

    if identity is None:
        click.secho("⚠️  Unknown operating system", fg="yellow")
        return
    click.secho(f"🖥️  {identity}", fg="cyan", bold=True)
    pm = package_manager_for(identity.family)
    click.echo(f"   Package manager: {pm or 'none known'}")


@osdeps.command()
@click.argument("names", nargs=-1, required=True)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def resolve(ctx: click.Context, names: tuple[str, ...], as_json: bool) -> None:
    """Show how each of NAMES resolves on this operating system."""
    ws = _load_workspace(ctx)

    results = []
    for name in names:
        try:
            status, packages = ws.resolver.resolve_package(name)
            results.append({
                "name": name,
                "status": status.name,
                "packages": list(packages),
                "source": ws.resolver.source_of(name),
            })
        except AutowsError as e:
            results.append({"name": name, "status": "ERROR", "error": str(e)})

    if as_json:
        click.echo(json.dumps(results, indent=2))
        return

    for r in results:
        if r["status"] == "ERROR":
            click.secho(f"   ❌ {r['name']}: {r['error']}", fg="red")
        elif r["status"] == "PACKAGES":
            click.echo(f"   ✅ {r['name']:<25} {' '.join(r['packages'])}")
        elif r["status"] == "IGNORE":
            click.echo(f"   ➖ {r['name']:<25} nothing to install")
        else:
            click.secho(f"   ⚠️  {r['name']:<25} {r['status']}", fg="yellow")


@osdeps.command()
@click.argument("names", nargs=-1)
@click.option(
    "--mode",
    type=click.Choice(["all", "ruby", "os", "none"]),
    default=None,
    help="Osdeps mode (default: from configuration).",
)
@click.option("--reinstall", is_flag=True, help="Do not skip installed packages.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def plan(
    ctx: click.Context,
    names: tuple[str, ...],
    mode: str | None,
    reinstall: bool,
    as_json: bool,
) -> None:
    """Show what installing NAMES (default: every selected osdep) would run."""
    from autows.core.services.osdeps.plan import OsdepsMode, build_install_plan

    ws = _load_workspace(ctx)
    try:
        requested = list(names) or [
            n for n in ws.manifest.all_selected_packages()
            if ws.resolver.is_defined(n) and ws.manifest.find_package(n) is None
        ]
        result = build_install_plan(
            ws.resolver,
            requested,
            mode=OsdepsMode.parse(mode) if mode else None,
            reinstall=reinstall,
        )
    except AutowsError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if result.is_empty:
        click.secho("✅ Nothing to install", fg="green")
        return

    if result.os_packages:
        label = "auto" if result.install_os else "manual"
        click.secho(f"📦 OS packages ({label}):", fg="cyan", bold=True)
        click.echo(f"   {' '.join(result.os_packages)}")
        if result.user_command:
            click.echo(f"   $ {result.user_command}")
    if result.manual_osdeps:
        click.secho("⚠️  Install manually (unsupported OS):", fg="yellow", bold=True)
        click.echo(f"   {' '.join(result.manual_osdeps)}")
    if result.gems:
        label = "auto" if result.install_gems else "manual"
        click.secho(f"💎 Gems ({label}):", fg="cyan", bold=True)
        click.echo(f"   $ {' '.join(result.gem_command or [])}")
