"""
Click-backed operator — confirmations and guided input on the terminal.
"""

from __future__ import annotations

import click

from agentdeploy.core.interaction import Operator
from agentdeploy.core.models.config import RequiredVariable


class ClickOperator(Operator):
    """Prompt the operator with click.

    Args:
        assume_yes: Answer every confirmation with yes (``--yes``).
        interactive: Allow guided input for missing configuration.
        quiet: Suppress progress lines.
    """

    def __init__(self, assume_yes: bool = False, interactive: bool = True, quiet: bool = False):
        self._assume_yes = assume_yes
        self._interactive = interactive
        self._quiet = quiet

    @property
    def can_provide(self) -> bool:
        return self._interactive

    def confirm(self, question: str, default: bool = True) -> bool:
        if self._assume_yes:
            if not self._quiet:
                click.echo(f"   {question} [auto: yes]")
            return True
        try:
            return click.confirm(f"   {question}", default=default)
        except click.Abort:
            return False

    def provide(self, requirement: RequiredVariable, current: str = "") -> str | None:
        if requirement.description:
            click.secho(f"\n   {requirement.description}", fg="cyan")

        prompt_type = click.Choice(requirement.choices) if requirement.choices else str
        default = current if current and current != requirement.placeholder else None

        while True:
            try:
                value = click.prompt(
                    f"   {requirement.key}",
                    type=prompt_type,
                    default=default,
                    hide_input=requirement.secret,
                    show_default=not requirement.secret,
                )
            except click.Abort:
                return None

            value = str(value).strip()
            if value and value != requirement.placeholder:
                return value
            click.secho("   ⚠️  Please enter a real value (or Ctrl-C to abort).", fg="yellow")

    def report(self, message: str) -> None:
        if message and not self._quiet:
            click.echo(f"   {message}")
