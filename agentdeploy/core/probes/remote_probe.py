"""
Remote probe — one command on the target, classified.

The probe is the only thing resolvers use to look at the host. It
turns a raw ChannelResult into a ProbeResult and decides *why* a
command failed: the channel never connected, the host refused the
credentials, nothing answered in time, or the command ran and exited
non-zero. It never retries.
"""

from __future__ import annotations

import logging

from agentdeploy.adapters.base import ChannelResult, RemoteChannel
from agentdeploy.core.errors import ConnectivityError
from agentdeploy.core.models.probe import FailureCause, ProbeResult
from agentdeploy.core.models.target import RemoteCommand, Target

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 5

# ssh reserves this exit code for its own errors
SSH_CHANNEL_EXIT = 255

_AUTH_MARKERS = ("Permission denied", "Authentication failed", "Host key verification failed")


def classify(result: ChannelResult) -> FailureCause | None:
    """Failure cause for a channel result, None when it succeeded."""
    if result.launch_error is not None:
        return FailureCause.CONNECT
    if result.timed_out:
        return FailureCause.TIMEOUT
    if result.returncode == 0:
        return None
    if result.returncode == SSH_CHANNEL_EXIT:
        if any(marker in result.stderr for marker in _AUTH_MARKERS):
            return FailureCause.AUTH
        return FailureCause.CONNECT
    return FailureCause.EXIT


class RemoteProbe:
    """Run checks on a target through a RemoteChannel."""

    def __init__(self, channel: RemoteChannel, timeout: float = PROBE_TIMEOUT):
        self._channel = channel
        self._timeout = timeout

    @property
    def channel(self) -> RemoteChannel:
        return self._channel

    def run(
        self,
        target: Target,
        command: RemoteCommand,
        timeout: float | None = None,
        check_name: str | None = None,
    ) -> ProbeResult:
        """Execute ``command`` and report success, output and failure cause."""
        name = check_name or command.render()
        result = self._channel.execute(target, command, timeout=timeout or self._timeout)
        cause = classify(result)

        if cause is None:
            logger.debug("probe %s on %s: ok", name, target.login())
            return ProbeResult(
                check_name=name,
                succeeded=True,
                observed_value=result.stdout.strip(),
                return_code=0,
                duration_ms=result.duration_ms,
            )

        error = result.launch_error or result.stderr.strip() or f"exit code {result.returncode}"
        logger.debug("probe %s on %s: %s (%s)", name, target.login(), cause.value, error)
        return ProbeResult(
            check_name=name,
            succeeded=False,
            observed_value=result.stdout.strip(),
            error=error,
            cause=cause,
            return_code=result.returncode,
            duration_ms=result.duration_ms,
        )

    def run_captured(
        self,
        target: Target,
        command: RemoteCommand,
        timeout: float | None = None,
    ) -> tuple[str, bool]:
        """Trimmed stdout and whether the command succeeded."""
        result = self.run(target, command, timeout=timeout)
        return result.observed_value, result.succeeded

    def ensure_reachable(self, target: Target, timeout: float | None = None) -> None:
        """Raise ConnectivityError unless a no-op command succeeds.

        Raises:
            ConnectivityError: The channel failed or the no-op exited
                non-zero.
        """
        if not target.is_addressable:
            raise ConnectivityError("Target address is not set")
        result = self.run(target, RemoteCommand.of("true"), timeout=timeout, check_name="connectivity")
        if not result.succeeded:
            raise ConnectivityError(
                f"Cannot reach {target.login()}: {result.error or 'no response'}"
            )
