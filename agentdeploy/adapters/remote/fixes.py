"""
Remote fix collaborators — idempotent repairs run over the channel.

Each fix is one remote command. Starting an already-running unit or
enabling an already-active firewall is a no-op on the host, so running
a fix whose condition no longer holds is harmless.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from agentdeploy.adapters.base import Collaborator, InvocationContext, RemoteChannel
from agentdeploy.core.models.action import Receipt
from agentdeploy.core.models.target import RemoteCommand, Target

logger = logging.getLogger(__name__)

FIX_TIMEOUT = 60


def _start_unit(unit_of: Callable[[Target], str]) -> Callable[[Target], RemoteCommand]:
    def build(target: Target) -> RemoteCommand:
        return RemoteCommand.of("sudo", "-n", "systemctl", "start", unit_of(target))
    return build


FIX_COMMANDS: dict[str, Callable[[Target], RemoteCommand]] = {
    "service-restart": _start_unit(lambda t: t.primary_unit),
    "optional-service-restart": _start_unit(lambda t: t.optional_unit),
    "audit-restart": _start_unit(lambda t: t.audit_unit),
    "firewall-enable": lambda t: RemoteCommand.of("sudo", "-n", "ufw", "--force", "enable"),
}


class RemoteFixCollaborator(Collaborator):
    """Run one named fix command on the target."""

    def __init__(
        self,
        fix_name: str,
        channel: RemoteChannel,
        build: Callable[[Target], RemoteCommand] | None = None,
        timeout: int = FIX_TIMEOUT,
    ):
        if build is None:
            if fix_name not in FIX_COMMANDS:
                raise ValueError(f"Unknown fix: {fix_name}")
            build = FIX_COMMANDS[fix_name]
        self._name = fix_name
        self._channel = channel
        self._build = build
        self._timeout = timeout

    @property
    def name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return self._channel.is_available()

    def command_for(self, target: Target) -> RemoteCommand:
        return self._build(target)

    def invoke(self, context: InvocationContext) -> Receipt:
        command = self.command_for(context.target)
        logger.info("Fix %s: %s on %s", self._name, command, context.target.describe())
        result = self._channel.execute(context.target, command, timeout=self._timeout)

        metadata = {"command": command.render(), "channel": self._channel.name}
        if result.ok:
            return Receipt.success(
                collaborator=self._name,
                action=context.action.name,
                output=result.stdout.strip(),
                return_code=0,
                duration_ms=result.duration_ms,
                metadata=metadata,
            )

        if result.launch_error:
            error = f"Channel could not be started: {result.launch_error}"
        elif result.timed_out:
            error = f"Fix timed out after {self._timeout}s"
        else:
            error = result.stderr.strip() or f"Fix exited with code {result.returncode}"
        return Receipt.failure(
            collaborator=self._name,
            action=context.action.name,
            error=error,
            return_code=result.returncode,
            duration_ms=result.duration_ms,
            metadata=metadata,
        )


def remote_fixes(channel: RemoteChannel) -> list[RemoteFixCollaborator]:
    """One collaborator per known fix, all sharing ``channel``."""
    return [RemoteFixCollaborator(name, channel) for name in FIX_COMMANDS]
