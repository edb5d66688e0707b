"""
Target host and remote command models.

A Target is built from a ConfigSnapshot once per checkpoint. Remote
commands are argv tuples rendered with ``shlex.join`` so configuration
values never get spliced into a shell string unquoted.
"""

from __future__ import annotations

import shlex
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from agentdeploy.core.models.config import ConfigSnapshot

DEFAULT_USER = "claude-user"
DEFAULT_FALLBACK_USER = "ubuntu"

# Address values that mean "nobody filled this in"
PLACEHOLDER_ADDRESSES = frozenset({"YOUR_SERVER_IP_HERE"})


class TargetKind(str, Enum):
    HOME_SERVER = "home-server"
    GCLOUD = "gcloud"


class RemoteCommand(BaseModel):
    """An argv to run on the remote host."""

    model_config = ConfigDict(frozen=True)

    argv: tuple[str, ...]

    @classmethod
    def of(cls, *argv: str) -> RemoteCommand:
        return cls(argv=tuple(argv))

    @classmethod
    def login_shell(cls, script: str) -> RemoteCommand:
        """Run ``script`` through ``bash -lc`` so the user's profile is loaded."""
        return cls(argv=("bash", "-lc", script))

    def render(self) -> str:
        """Quoted command line for the remote shell."""
        return shlex.join(self.argv)

    def __str__(self) -> str:
        return self.render()


class Target(BaseModel):
    """Coordinates and layout of the host being deployed to."""

    model_config = ConfigDict(frozen=True)

    kind: TargetKind = TargetKind.HOME_SERVER
    address: str = ""
    user: str = DEFAULT_USER
    fallback_user: str | None = DEFAULT_FALLBACK_USER
    identity_file: str | None = None
    zone: str | None = None
    project_dir: str = ""

    # ── Host layout (matches the installer) ─────────────────────
    cli_binary: str = "claude"
    runtime_binary: str = "node"
    primary_unit: str = "claude-code.service"
    optional_unit: str = "claude-mcp-server.service"
    audit_unit: str = "auditd"
    workspace_dir: str = ""
    data_mount: str = "/home"

    extra: dict[str, str] = Field(default_factory=dict)

    @property
    def is_addressable(self) -> bool:
        address = self.address.strip()
        return bool(address) and address not in PLACEHOLDER_ADDRESSES

    @property
    def workspace(self) -> str:
        return self.workspace_dir or f"/home/{self.user}/workspaces"

    @property
    def session_dir(self) -> str:
        return self.project_dir or f"{self.workspace}/sample-project"

    def login(self, user: str | None = None) -> str:
        return f"{user or self.user}@{self.address}"

    def with_user(self, user: str) -> Target:
        return self.model_copy(update={"user": user})

    def describe(self) -> str:
        if self.kind == TargetKind.GCLOUD:
            return f"{self.login()} (zone {self.zone or '?'})"
        return self.login()

    @classmethod
    def from_snapshot(cls, snapshot: ConfigSnapshot) -> Target:
        """Build the target for the infrastructure kind the snapshot selects."""
        raw_kind = snapshot.resolved("INFRASTRUCTURE_TYPE", TargetKind.HOME_SERVER.value)
        try:
            kind = TargetKind(raw_kind)
        except ValueError:
            kind = TargetKind.HOME_SERVER

        user = snapshot.resolved("CLAUDE_USER_NAME") or snapshot.resolved("CLAUDE_USER", DEFAULT_USER)
        common = {
            "kind": kind,
            "user": user,
            "fallback_user": snapshot.get("SSH_FALLBACK_USER", DEFAULT_FALLBACK_USER) or None,
            "identity_file": snapshot.resolved("SSH_KEY_PATH") or None,
            "project_dir": snapshot.resolved("CLAUDE_PROJECT_DIR"),
        }

        if kind == TargetKind.GCLOUD:
            return cls(
                address=snapshot.resolved("GCP_INSTANCE_NAME"),
                zone=snapshot.resolved("GCP_INSTANCE_ZONE") or snapshot.resolved("GOOGLE_CLOUD_ZONE") or None,
                **common,
            )

        return cls(address=snapshot.resolved("TARGET_SERVER_IP"), **common)
