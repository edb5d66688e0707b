"""
CLI commands for the config store.

Thin wrappers over ``agentdeploy.core.config.store`` and
``agentdeploy.core.use_cases.config_check``.

Usage::

    agentdeploy config init
    agentdeploy config check --json
    agentdeploy config get TARGET_SERVER_IP
    agentdeploy config set TARGET_SERVER_IP 192.0.2.10
    agentdeploy config list
"""

from __future__ import annotations

import json
import sys

import click

from agentdeploy.core.config.requirements import required_for_snapshot
from agentdeploy.core.config.store import ConfigStore
from agentdeploy.core.errors import StoreInitError


def _store(ctx: click.Context) -> ConfigStore:
    return ConfigStore(ctx.obj["env_file"])


def _mask(value: str) -> str:
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}…{value[-2:]}"


@click.group()
def config() -> None:
    """Config store — init, check, get, set, list."""


@config.command("init")
@click.pass_context
def config_init(ctx: click.Context) -> None:
    """Create the store from the template if it does not exist."""
    store = _store(ctx)
    try:
        created = store.ensure()
    except StoreInitError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if created:
        click.secho(f"✅ Created {store.path}", fg="green", bold=True)
        click.echo("   Fill in the placeholder values, then run 'agentdeploy config check'.")
    else:
        click.echo(f"   {store.path} already exists — left unchanged")


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate the store against the required variables."""
    from agentdeploy.core.use_cases.config_check import check_config

    result = check_config(_store(ctx))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        click.secho("✅ Configuration is complete", fg="green", bold=True)
        click.echo(f"   Store: {result.store_path}")
        click.echo(f"   Infrastructure: {result.infrastructure_type}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)


@config.command("get")
@click.argument("key")
@click.pass_context
def config_get(ctx: click.Context, key: str) -> None:
    """Print the value of KEY (exit 1 when unset)."""
    store = _store(ctx)
    value = store.get(key)
    if not value:
        sys.exit(1)
    click.echo(value)


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Set KEY to VALUE (replaces the existing line)."""
    store = _store(ctx)
    try:
        store.set(key, value)
    except ValueError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    click.secho(f"✓ {key} updated in {store.path}", fg="green")


@config.command("list")
@click.option("--show-secrets", is_flag=True, help="Print secret values unmasked.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_list(ctx: click.Context, show_secrets: bool, as_json: bool) -> None:
    """List every entry with its placeholder state."""
    store = _store(ctx)
    if not store.exists():
        click.secho(f"❌ No config store at {store.path}", fg="red")
        sys.exit(1)

    snapshot = store.snapshot()
    secrets = {r.key for r in required_for_snapshot(snapshot) if r.secret}
    entries = store.entries()

    def shown(key: str, value: str) -> str:
        if key in secrets and value and not show_secrets and not snapshot.is_placeholder(key):
            return _mask(value)
        return value

    if as_json:
        click.echo(json.dumps(
            [
                {"key": e.key, "value": shown(e.key, e.value), "is_placeholder": e.is_placeholder}
                for e in entries
            ],
            indent=2,
        ))
        return

    for entry in entries:
        if entry.is_placeholder:
            click.secho(f"   ✗ {entry.key}", fg="yellow", nl=False)
            click.echo(f" = {entry.value}  (placeholder)")
        elif not entry.value:
            click.secho(f"   ✗ {entry.key}", fg="yellow", nl=False)
            click.echo(" = (empty)")
        else:
            click.secho(f"   ✓ {entry.key}", fg="green", nl=False)
            click.echo(f" = {shown(entry.key, entry.value)}")
