"""
agentdeploy — CLI entrypoint.

Usage:
    agentdeploy --help
    agentdeploy run
    agentdeploy status --json
    agentdeploy config check
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from agentdeploy import __version__
from agentdeploy.core.config.store import DEFAULT_STORE_FILE, ConfigStore
from agentdeploy.core.errors import DeployError
from agentdeploy.core.observability.logging_config import resolve_level, setup_logging

_STATUS_STYLE = {
    "healthy": ("💚", "green"),
    "degraded": ("🟡", "yellow"),
    "unhealthy": ("🔴", "red"),
    "deployed": ("✅", "green"),
    "partial": ("🟡", "yellow"),
    "not_deployed": ("⬜", "white"),
}

_OUTCOME_STYLE = {
    "resolved": ("✅", "green"),
    "manual_intervention_required": ("⚠️ ", "yellow"),
    "config_incomplete": ("❌", "red"),
    "aborted": ("❌", "red"),
    "unreachable": ("❌", "red"),
}


def _store(ctx: click.Context) -> ConfigStore:
    return ConfigStore(ctx.obj["env_file"])


def _channel(mock: bool):
    if mock:
        from agentdeploy.adapters.mock import MockChannel

        return MockChannel.healthy()
    from agentdeploy.adapters.remote.ssh import KindRoutedChannel

    return KindRoutedChannel()


def _fail(message: str) -> None:
    click.secho(f"❌ {message}", fg="red")
    sys.exit(1)


def _print_health(report, verbose: bool) -> None:
    icon, color = _STATUS_STYLE.get(report.status.value, ("❔", "white"))
    click.secho(
        f"{icon} Health: {report.status.value.upper()} ({report.score}%)",
        fg=color,
        bold=True,
    )
    for check in report.checks:
        if not check.applicable:
            click.secho(f"   ⊘ {check.label}", fg="white", nl=False)
            click.echo("  (not installed)")
        elif check.passed:
            click.secho(f"   ✓ {check.label}", fg="green")
        else:
            click.secho(f"   ✗ {check.label}", fg="red", nl=False)
            hint = f"  → fix: {check.fix}" if check.fix else ""
            click.echo(f"{hint}")

    if verbose and report.details:
        click.echo()
        for key, val in report.details.items():
            click.echo(f"   {key}: {val}")


def _print_run(result, verbose: bool) -> None:
    outcome = result.outcome.value if result.outcome else "unknown"
    icon, color = _OUTCOME_STYLE.get(outcome, ("❔", "white"))

    click.echo()
    if result.target is not None and result.target.is_addressable:
        click.echo(f"   Target: {result.target.describe()}")
    click.echo(f"   Path:   {' → '.join(result.visited)}")
    if result.missing:
        click.echo(f"   Missing: {', '.join(result.missing)}")
    for dispatch in result.dispatches:
        for action in dispatch.results:
            mark, fg = ("✓", "green") if action.ok else ("✗", "red")
            click.secho(f"   {mark} {action.action.name}", fg=fg, nl=False)
            click.echo(f"  ({action.receipt.duration_ms}ms)")
            if not action.ok and action.receipt.error:
                for line in action.receipt.error.split("\n")[:5]:
                    click.echo(f"     │ {line}")
    if result.health is not None and verbose:
        click.echo()
        _print_health(result.health, verbose)

    click.echo()
    click.secho(f"{icon} {outcome.replace('_', ' ').capitalize()}", fg=color, bold=True)
    if result.error:
        click.echo(f"   {result.error}")
    click.echo()


@click.group()
@click.version_option(version=__version__, prog_name="agentdeploy")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--env-file",
    "-e",
    "env_file",
    type=click.Path(dir_okay=False),
    default=DEFAULT_STORE_FILE,
    show_default=True,
    help="Path to the config store.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    env_file: str,
) -> None:
    """agentdeploy — deploy and verify the agent service on a remote host."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["env_file"] = Path(env_file)

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(level=resolve_level(verbose=verbose, quiet=quiet, debug=debug))


@cli.command()
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Answer yes at every confirmation.")
@click.option("--no-input", is_flag=True, help="Fail instead of prompting for missing config.")
@click.option("--no-connect", is_flag=True, help="Don't open a session when done.")
@click.option("--mock", is_flag=True, help="Simulate a healthy host (no network, no installer).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run(
    ctx: click.Context,
    assume_yes: bool,
    no_input: bool,
    no_connect: bool,
    mock: bool,
    as_json: bool,
) -> None:
    """Bring the target to a healthy deployment, then connect.

    Examples:

        agentdeploy run

        agentdeploy run --yes --no-connect

        agentdeploy run --mock
    """
    from agentdeploy.core.use_cases.orchestrate import Orchestrator, build_registry
    from agentdeploy.ui.cli.prompts import ClickOperator

    quiet = ctx.obj.get("quiet", False) or as_json
    operator = ClickOperator(assume_yes=assume_yes, interactive=not no_input, quiet=quiet)
    channel = _channel(mock)

    orchestrator = Orchestrator(
        store=_store(ctx),
        operator=operator,
        channel=channel,
        registry=build_registry(channel, mock_mode=mock),
        connect=not (no_connect or mock or as_json),
    )

    if not quiet:
        mode_label = "[mock] " if mock else ""
        click.secho(f"\n🚀 {mode_label}agentdeploy run", fg="cyan", bold=True)

    try:
        result = orchestrator.run()
    except DeployError as e:
        _fail(str(e))
        return

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _print_run(result, ctx.obj.get("verbose", False))
        if result.instructions and result.session_exit_code is None:
            click.secho("   To connect:", bold=True)
            for line in result.instructions:
                click.echo(f"   {line}")
            click.echo()

    sys.exit(result.exit_code)


@cli.command()
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Answer yes at every confirmation.")
@click.option("--mock", is_flag=True, help="Simulate a healthy host.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def verify(ctx: click.Context, assume_yes: bool, mock: bool, as_json: bool) -> None:
    """Check health of a deployed target and offer fixes."""
    from agentdeploy.core.use_cases.orchestrate import Orchestrator, build_registry
    from agentdeploy.ui.cli.prompts import ClickOperator

    quiet = ctx.obj.get("quiet", False) or as_json
    channel = _channel(mock)
    orchestrator = Orchestrator(
        store=_store(ctx),
        operator=ClickOperator(assume_yes=assume_yes, interactive=False, quiet=quiet),
        channel=channel,
        registry=build_registry(channel, mock_mode=mock),
        connect=False,
    )

    try:
        result = orchestrator.verify()
    except DeployError as e:
        _fail(str(e))
        return

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        if result.health is not None:
            click.echo()
            _print_health(result.health, ctx.obj.get("verbose", False))
        _print_run(result, verbose=False)

    sys.exit(result.exit_code)


@cli.command()
@click.option("--last", is_flag=True, help="Show the last recorded run (no network).")
@click.option("--mock", is_flag=True, help="Simulate a healthy host.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, last: bool, mock: bool, as_json: bool) -> None:
    """Show configuration, deployment and health status."""
    from agentdeploy.core.use_cases.status import get_status, last_status

    store = _store(ctx)
    if last:
        result = last_status(store.path.resolve().parent)
    else:
        result = get_status(store, _channel(mock))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error:
            sys.exit(1)
        return

    if result.error:
        _fail(result.error)
        return

    click.echo()
    if result.state is not None:
        state = result.state
        click.secho(f"📋 {state.target or '(no target)'}", fg="cyan", bold=True)
        click.echo(f"   Deployment: {state.deployment_status or 'unknown'}")
        if state.health_status:
            click.echo(f"   Health:     {state.health_status} ({state.health_score}%)")
        if state.last_run.run_id:
            click.echo(f"   Last run:   {state.last_run.outcome} at {state.last_run.ended_at}")
        click.echo()
        return

    target = result.target
    click.secho(f"📋 {target.describe() if target and target.is_addressable else '(no target)'}", fg="cyan", bold=True)
    if result.missing:
        click.secho(f"   Missing config: {', '.join(result.missing)}", fg="yellow")

    deployment = result.deployment
    if deployment is not None:
        icon, color = _STATUS_STYLE.get(deployment.status.value, ("❔", "white"))
        click.secho(
            f"   {icon} Deployment: {deployment.status.value} ({deployment.score}/{deployment.max_score})",
            fg=color,
        )
        if deployment.reason:
            click.echo(f"      {deployment.reason}")

    if result.health is not None:
        click.echo()
        _print_health(result.health, ctx.obj.get("verbose", False))
    click.echo()


@cli.command()
@click.option("--mock", is_flag=True, help="Simulate a healthy host.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def health(ctx: click.Context, mock: bool, as_json: bool) -> None:
    """Run the health battery with the detailed report."""
    from agentdeploy.core.use_cases.status import get_health

    result = get_health(_store(ctx), _channel(mock))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif result.error:
        _fail(result.error)
        return
    else:
        click.echo()
        _print_health(result.health, verbose=True)
        click.echo()

    if result.error or (result.health is not None and not result.health.reachable):
        sys.exit(1)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def doctor(ctx: click.Context, as_json: bool) -> None:
    """Check the tools this machine needs to reach the target."""
    from agentdeploy.core.models.target import Target
    from agentdeploy.core.use_cases.doctor import check_prerequisites

    target = Target.from_snapshot(_store(ctx).snapshot())
    result = check_prerequisites(_channel(False), target)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        click.echo()
        click.secho(f"🩺 Prerequisites for {result.kind} targets", fg="cyan", bold=True)
        for tool in result.tools:
            if tool.found:
                click.secho(f"   ✓ {tool.name}", fg="green", nl=False)
                click.echo(f"  {tool.label}")
            else:
                fg = "red" if tool.required else "yellow"
                click.secho(f"   ✗ {tool.name}", fg=fg, nl=False)
                click.echo(f"  {tool.label} ({'required' if tool.required else 'optional'})")
        click.echo()

    if not result.ok:
        sys.exit(1)


@cli.command()
@click.option("--print", "print_only", is_flag=True, help="Only print the connection commands.")
@click.pass_context
def connect(ctx: click.Context, print_only: bool) -> None:
    """Open an interactive session on the target."""
    from agentdeploy.adapters.remote.session import SessionLauncher, manual_instructions
    from agentdeploy.core.models.target import Target
    from agentdeploy.core.probes.remote_probe import RemoteProbe

    target = Target.from_snapshot(_store(ctx).snapshot())
    if not target.is_addressable:
        _fail("Target address is not configured")
        return

    if print_only:
        for line in manual_instructions(target):
            click.echo(line)
        return

    try:
        RemoteProbe(_channel(False)).ensure_reachable(target)
    except DeployError as e:
        _fail(str(e))
        return

    sys.exit(SessionLauncher().launch(target))


@cli.command()
@click.option("-n", "count", default=10, show_default=True, help="Number of entries.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history(ctx: click.Context, count: int, as_json: bool) -> None:
    """Show recent runs from the audit ledger."""
    from agentdeploy.core.persistence.audit import AuditWriter

    writer = AuditWriter(root=_store(ctx).path.resolve().parent)
    entries = writer.read_recent(count)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.echo("   No runs recorded yet.")
        return

    click.echo()
    for entry in entries:
        icon, color = _OUTCOME_STYLE.get(entry.outcome, ("❔", "white"))
        click.secho(f"   {icon} {entry.timestamp[:19]} {entry.operation_type:<7}", fg=color, nl=False)
        score = f" {entry.health_score}%" if entry.health_score is not None else ""
        click.echo(f" {entry.outcome}{score}  {entry.target}")
    click.echo()


# ── Register sub-command groups from agentdeploy/ui/cli/ ──────────

from agentdeploy.ui.cli.config import config  # noqa: E402

cli.add_command(config)


if __name__ == "__main__":
    cli()
