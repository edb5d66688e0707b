"""
Remote command channels — ssh for home servers, gcloud for GCE instances.

Both build an argv list (never a local shell string) and run it with
``subprocess.run``. Options always include a connect timeout and batch
mode so a missing credential fails fast instead of prompting.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import time
from collections.abc import Sequence

from agentdeploy.adapters.base import ChannelResult, RemoteChannel
from agentdeploy.core.models.target import RemoteCommand, Target, TargetKind

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 5


def ssh_options(target: Target, connect_timeout: int = DEFAULT_CONNECT_TIMEOUT) -> list[str]:
    """ssh ``-o`` options shared by probes, fixes and sessions."""
    opts = [
        "-o", "BatchMode=yes",
        "-o", f"ConnectTimeout={int(connect_timeout)}",
        "-o", "StrictHostKeyChecking=accept-new",
    ]
    if target.identity_file:
        opts.extend(["-o", "IdentitiesOnly=yes", "-i", os.path.expanduser(target.identity_file)])
    return opts


def build_ssh_argv(
    target: Target,
    command: RemoteCommand | None = None,
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
    tty: bool = False,
    ssh_binary: str = "ssh",
) -> list[str]:
    """argv for ``ssh [opts] user@address [command]``."""
    argv = [ssh_binary, *ssh_options(target, connect_timeout)]
    if tty:
        argv.append("-t")
    argv.append(target.login())
    if command is not None:
        argv.append(command.render())
    return argv


def build_gcloud_argv(
    target: Target,
    command: RemoteCommand | None = None,
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
    gcloud_binary: str = "gcloud",
) -> list[str]:
    """argv for ``gcloud compute ssh user@instance --zone=Z [--command=...]``."""
    argv = [gcloud_binary, "compute", "ssh", target.login()]
    if target.zone:
        argv.append(f"--zone={target.zone}")
    if command is not None:
        argv.append(f"--command={command.render()}")
        argv.append("--quiet")
    argv.append("--")
    argv.extend(["-o", "BatchMode=yes", "-o", f"ConnectTimeout={int(connect_timeout)}"])
    return argv


def _run(argv: Sequence[str], timeout: float) -> ChannelResult:
    logger.debug("Channel exec: %s", " ".join(shlex.quote(a) for a in argv))
    start = time.monotonic()
    try:
        proc = subprocess.run(
            list(argv),
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        return ChannelResult(
            returncode=-1,
            timed_out=True,
            stderr=f"timed out after {timeout}s",
            duration_ms=int((time.monotonic() - start) * 1000),
        )
    except OSError as e:
        return ChannelResult(
            returncode=-1,
            launch_error=str(e),
            duration_ms=int((time.monotonic() - start) * 1000),
        )

    return ChannelResult(
        returncode=proc.returncode,
        stdout=proc.stdout,
        stderr=proc.stderr,
        duration_ms=int((time.monotonic() - start) * 1000),
    )


class SshChannel(RemoteChannel):
    """OpenSSH client channel."""

    def __init__(self, ssh_binary: str = "ssh"):
        self._ssh = ssh_binary

    @property
    def name(self) -> str:
        return "ssh"

    def is_available(self) -> bool:
        return shutil.which(self._ssh) is not None

    def execute(self, target: Target, command: RemoteCommand, timeout: float) -> ChannelResult:
        connect_timeout = max(1, int(timeout))
        argv = build_ssh_argv(target, command, connect_timeout=connect_timeout, ssh_binary=self._ssh)
        # Allow the remote command a little longer than the connect phase
        return _run(argv, timeout=timeout + 2)


class GcloudChannel(RemoteChannel):
    """``gcloud compute ssh`` channel for cloud-provisioned instances."""

    def __init__(self, gcloud_binary: str = "gcloud"):
        self._gcloud = gcloud_binary

    @property
    def name(self) -> str:
        return "gcloud"

    def is_available(self) -> bool:
        return shutil.which(self._gcloud) is not None

    def execute(self, target: Target, command: RemoteCommand, timeout: float) -> ChannelResult:
        connect_timeout = max(1, int(timeout))
        argv = build_gcloud_argv(target, command, connect_timeout=connect_timeout, gcloud_binary=self._gcloud)
        # gcloud adds its own API round-trip before ssh starts
        return _run(argv, timeout=timeout + 10)


class KindRoutedChannel(RemoteChannel):
    """Dispatch to the channel matching ``target.kind``."""

    def __init__(self, channels: dict[TargetKind, RemoteChannel] | None = None):
        self._channels = channels or {
            TargetKind.HOME_SERVER: SshChannel(),
            TargetKind.GCLOUD: GcloudChannel(),
        }

    @property
    def name(self) -> str:
        return "routed"

    def channel_for(self, target: Target) -> RemoteChannel:
        return self._channels.get(target.kind) or self._channels[TargetKind.HOME_SERVER]

    def is_available(self) -> bool:
        return any(c.is_available() for c in self._channels.values())

    def execute(self, target: Target, command: RemoteCommand, timeout: float) -> ChannelResult:
        return self.channel_for(target).execute(target, command, timeout)
