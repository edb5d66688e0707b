"""
Mock adapters — test doubles for the channel and collaborators.

Used in mock mode to simulate a target host without touching the
network, and by the test-suite to script host behaviour and count
calls. Configurable per command prefix / per collaborator.
"""

from __future__ import annotations

from collections.abc import Callable

from agentdeploy.adapters.base import ChannelResult, Collaborator, InvocationContext, RemoteChannel
from agentdeploy.core.models.action import Receipt
from agentdeploy.core.models.target import RemoteCommand, Target

# Canned output for a host where everything is installed and running
HEALTHY_FREE_M = (
    "               total        used        free      shared  buff/cache   available\n"
    "Mem:            7962        2100        3900          12        1962        5600\n"
    "Swap:           2047           0        2047\n"
)
HEALTHY_DF_P = (
    "Filesystem     1024-blocks     Used Available Capacity Mounted on\n"
    "/dev/sda1        101430960 30429288  70985288      31% /\n"
)


class MockChannel(RemoteChannel):
    """Scriptable remote channel.

    Responses are matched by prefix against the rendered command; the
    longest matching prefix wins. Unmatched commands use the default
    (exit 0, no output) unless ``unreachable`` is set, in which case
    every call fails the way ssh does when the host is down.
    """

    def __init__(
        self,
        channel_name: str = "mock",
        available: bool = True,
        unreachable: bool = False,
    ):
        self._name = channel_name
        self._available = available
        self.unreachable = unreachable
        self._responses: dict[str, ChannelResult | Callable[[Target, RemoteCommand], ChannelResult]] = {}
        self._call_log: list[tuple[Target, RemoteCommand]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[tuple[Target, RemoteCommand]]:
        """Every (target, command) this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def commands(self) -> list[str]:
        """Rendered commands in call order."""
        return [c.render() for _, c in self._call_log]

    def is_available(self) -> bool:
        return self._available

    def set_response(
        self,
        prefix: str,
        result: ChannelResult | Callable[[Target, RemoteCommand], ChannelResult],
    ) -> None:
        """Answer commands starting with ``prefix``."""
        self._responses[prefix] = result

    def set_output(self, prefix: str, stdout: str, returncode: int = 0) -> None:
        self.set_response(prefix, ChannelResult(returncode=returncode, stdout=stdout))

    def set_failure(self, prefix: str, returncode: int = 1, stderr: str = "") -> None:
        self.set_response(prefix, ChannelResult(returncode=returncode, stderr=stderr))

    def execute(self, target: Target, command: RemoteCommand, timeout: float) -> ChannelResult:
        self._call_log.append((target, command))

        if self.unreachable:
            return ChannelResult(
                returncode=255,
                stderr=f"ssh: connect to host {target.address} port 22: Connection refused",
            )

        rendered = command.render()
        matches = [p for p in self._responses if rendered.startswith(p)]
        if matches:
            response = self._responses[max(matches, key=len)]
            if callable(response):
                return response(target, command)
            return response

        return ChannelResult(returncode=0)

    def reset(self) -> None:
        """Clear call log and scripted responses."""
        self._call_log.clear()
        self._responses.clear()

    @classmethod
    def healthy(cls, **kwargs) -> MockChannel:
        """A host where every deployment and health check passes."""
        mock = cls(**kwargs)
        mock.set_output("systemctl is-active", "active\n")
        mock.set_output("systemctl list-unit-files", "claude-code.service enabled enabled\n")
        mock.set_output("free -m", HEALTHY_FREE_M)
        mock.set_output("df -P", HEALTHY_DF_P)
        mock.set_output("sudo -n ufw status", "Status: active\n")
        mock.set_output("bash -lc 'claude --version'", "1.0.0 (mock)\n")
        mock.set_output("cat /proc/loadavg", "0.08 0.03 0.01 1/180 4242\n")
        return mock


class MockCollaborator(Collaborator):
    """Collaborator double.

    Succeeds by default. ``on_invoke`` lets a test change the simulated
    host (e.g. make every battery probe pass after an install).
    """

    def __init__(
        self,
        collaborator_name: str = "mock",
        available: bool = True,
        default_output: str = "[mock] executed",
        fail_with: str | None = None,
        return_code: int = 1,
        on_invoke: Callable[[InvocationContext], None] | None = None,
    ):
        self._name = collaborator_name
        self._available = available
        self._default_output = default_output
        self._fail_with = fail_with
        self._return_code = return_code
        self._on_invoke = on_invoke
        self._call_log: list[InvocationContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[InvocationContext]:
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def is_available(self) -> bool:
        return self._available

    def validate(self, context: InvocationContext) -> tuple[bool, str]:
        return True, ""

    def invoke(self, context: InvocationContext) -> Receipt:
        self._call_log.append(context)
        if self._on_invoke is not None:
            self._on_invoke(context)

        if self._fail_with is not None:
            return Receipt.failure(
                collaborator=self._name,
                action=context.action.name,
                error=self._fail_with,
                return_code=self._return_code,
            )

        return Receipt.success(
            collaborator=self._name,
            action=context.action.name,
            output=self._default_output,
            return_code=0,
            metadata={"mock": True, "flags": context.action_flags},
        )
