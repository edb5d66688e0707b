"""
Doctor use case — prerequisites on the control machine.

The channel client for the selected target kind (ssh or gcloud) is
required: without it every probe fails at launch and a live host reads
as NotDeployed. git and gh are reported but never block a run.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field

from agentdeploy.adapters.base import RemoteChannel
from agentdeploy.core.errors import ConnectivityError
from agentdeploy.core.models.target import Target

logger = logging.getLogger(__name__)

# (binary, what it is for)
OPTIONAL_TOOLS: tuple[tuple[str, str], ...] = (
    ("git", "Git"),
    ("gh", "GitHub CLI"),
)


@dataclass
class ToolCheck:
    name: str
    label: str
    found: bool
    required: bool = False
    path: str | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "label": self.label,
            "found": self.found,
            "required": self.required,
            "path": self.path,
        }


@dataclass
class DoctorResult:
    """Local tools the run depends on."""

    kind: str = ""
    tools: list[ToolCheck] = field(default_factory=list)

    @property
    def missing_required(self) -> list[str]:
        return [t.name for t in self.tools if t.required and not t.found]

    @property
    def missing_optional(self) -> list[str]:
        return [t.name for t in self.tools if not t.required and not t.found]

    @property
    def ok(self) -> bool:
        return not self.missing_required

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "ok": self.ok,
            "tools": [t.to_dict() for t in self.tools],
        }


def check_prerequisites(channel: RemoteChannel, target: Target) -> DoctorResult:
    """Look for the channel client and the optional tools on PATH."""
    client = channel.channel_for(target)
    result = DoctorResult(kind=target.kind.value)
    result.tools.append(
        ToolCheck(
            name=client.name,
            label="Remote channel client",
            found=client.is_available(),
            required=True,
            path=shutil.which(client.name),
        )
    )
    for name, label in OPTIONAL_TOOLS:
        path = shutil.which(name)
        result.tools.append(ToolCheck(name=name, label=label, found=path is not None, path=path))

    if result.missing_optional:
        logger.info("Optional tools not found: %s", ", ".join(result.missing_optional))
    return result


def require_prerequisites(channel: RemoteChannel, target: Target) -> DoctorResult:
    """check_prerequisites, raising when the channel client is missing.

    Raises:
        ConnectivityError: The client for ``target.kind`` is not installed.
    """
    result = check_prerequisites(channel, target)
    if not result.ok:
        raise ConnectivityError(
            f"{', '.join(result.missing_required)} not found on this machine; "
            f"it is needed to reach {target.kind.value} targets"
        )
    return result
