"""
Adapter base — the contracts between the core and the outside world.

Two kinds of adapters:

- RemoteChannel: runs one command on the target host and hands back
  exit code and output. Probes are built on it.
- Collaborator: performs a named remediation (install, service restart,
  firewall enable, ...) and returns a Receipt.

The core only talks to the outside through these. Neither raises:
failures are captured in the ChannelResult / Receipt.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from agentdeploy.core.models.action import Receipt, RemediationAction
from agentdeploy.core.models.config import ConfigSnapshot
from agentdeploy.core.models.target import RemoteCommand, Target


class ChannelResult(BaseModel):
    """Raw outcome of one channel invocation."""

    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    launch_error: str | None = None     # client binary missing, OSError, ...
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out and self.launch_error is None


class RemoteChannel(ABC):
    """Executes short-lived commands on a target host."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The channel identifier (e.g., 'ssh', 'gcloud')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the local client binary exists. Fast, never raises."""

    @abstractmethod
    def execute(self, target: Target, command: RemoteCommand, timeout: float) -> ChannelResult:
        """Run ``command`` on ``target`` and return its raw result.

        MUST never raise. Launch errors and timeouts are captured in
        the ChannelResult.
        """

    def channel_for(self, target: Target) -> RemoteChannel:
        """The channel that actually serves ``target``."""
        return self

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class InvocationContext(BaseModel):
    """Everything a collaborator needs to perform an action.

    Mirrors the fixed collaborator contract: target address, user
    identity, action flags. The snapshot carries the rest (tokens,
    script paths) without the collaborator re-reading the store.
    """

    action: RemediationAction
    target: Target
    snapshot: ConfigSnapshot = Field(default_factory=ConfigSnapshot)
    working_dir: str = "."
    dry_run: bool = False

    @property
    def target_address(self) -> str:
        return self.target.address

    @property
    def user_identity(self) -> str:
        return self.target.user

    @property
    def action_flags(self) -> list[str]:
        return list(self.action.flags)


class Collaborator(ABC):
    """Abstract base class for remediation collaborators.

    Collaborators perform external side effects and return receipts.
    They NEVER raise exceptions — failures are captured in the Receipt.
    Every collaborator must be idempotent: running it when the
    condition it fixes no longer holds is harmless.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The collaborator identifier (e.g., 'install', 'firewall-enable')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check whether the collaborator can run here. Never raises."""

    def validate(self, context: InvocationContext) -> tuple[bool, str]:
        """Validate that the action can be performed.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """
        if not context.target.is_addressable:
            return False, "Target address is not set"
        return True, ""

    @abstractmethod
    def invoke(self, context: InvocationContext) -> Receipt:
        """Perform the action and return a receipt.

        MUST never raise exceptions. A non-zero exit is a Receipt
        with status='failed'.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
