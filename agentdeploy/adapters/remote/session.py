"""
Interactive session handoff.

Once the target is verified, the operator is dropped into an
interactive session on the host, in the project directory, with the
agent CLI started. The process inherits the terminal.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Callable, Sequence

from agentdeploy.core.models.target import Target, TargetKind

logger = logging.getLogger(__name__)

Runner = Callable[[Sequence[str]], int]


def _default_runner(argv: Sequence[str]) -> int:
    return subprocess.call(list(argv))


def session_command(target: Target) -> str:
    """Remote shell line that opens the agent CLI in the project directory."""
    return f"cd {shlex.quote(target.session_dir)} && {shlex.quote(target.cli_binary)}"


def handoff_argv(target: Target) -> list[str]:
    """argv for the interactive session."""
    if target.kind == TargetKind.GCLOUD:
        argv = ["gcloud", "compute", "ssh", target.login()]
        if target.zone:
            argv.append(f"--zone={target.zone}")
        return argv

    argv = ["ssh", "-o", "StrictHostKeyChecking=accept-new"]
    if target.identity_file:
        argv.extend(["-i", os.path.expanduser(target.identity_file)])
    argv.extend(["-t", target.login(), session_command(target)])
    return argv


def manual_instructions(target: Target) -> list[str]:
    """What to type to connect by hand."""
    if target.kind == TargetKind.GCLOUD:
        return [
            f"Connect: {shlex.join(handoff_argv(target))}",
            f"Then:    {session_command(target)}",
        ]

    login = ["ssh"]
    if target.identity_file:
        login.extend(["-i", target.identity_file])
    login.append(target.login())
    return [
        f"Connect: {shlex.join(login)}",
        f"Then:    {session_command(target)}",
    ]


class SessionLauncher:
    """Hand the terminal over to an interactive session on the target."""

    def __init__(self, runner: Runner | None = None):
        self._runner = runner or _default_runner

    def launch(self, target: Target) -> int:
        """Run the session and return its exit code.

        Launch failures (client binary missing) return 127.
        """
        argv = handoff_argv(target)
        logger.info("Handing off to %s", target.describe())
        logger.debug("Session argv: %s", shlex.join(argv))
        try:
            return self._runner(argv)
        except OSError as e:
            logger.error("Could not start session: %s", e)
            return 127
