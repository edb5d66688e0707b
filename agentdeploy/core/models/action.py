"""
RemediationAction and Receipt models — the remediation contract.

Actions name an external collaborator invocation chosen for a resolved
state. Receipts capture what the collaborator did. The dispatcher sends
actions, collaborators return receipts. Never exceptions.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class RemediationAction(BaseModel):
    """A remediation the dispatcher decided to offer.

    Built per resolved state. ``collaborator`` is the registry key of
    the external invocation, ``flags`` are passed to it verbatim.
    """

    name: str                           # e.g. install, service-restart
    target_condition: str               # e.g. "partial", "deployed/degraded:firewall"
    collaborator: str                   # registry key
    flags: list[str] = Field(default_factory=list)
    description: str = ""


class Receipt(BaseModel):
    """Result of a collaborator invocation.

    Collaborators NEVER raise. A non-zero exit code is captured here
    with status='failed' and the dispatcher reports it as a fix that
    did not take.
    """

    collaborator: str
    action: str
    status: Literal["ok", "skipped", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None
    return_code: int | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the action succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the action failed."""
        return self.status == "failed"

    @classmethod
    def success(
        cls,
        collaborator: str,
        action: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        return cls(
            collaborator=collaborator,
            action=action,
            status="ok",
            output=output,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        collaborator: str,
        action: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(
            collaborator=collaborator,
            action=action,
            status="failed",
            error=error,
            **kwargs,
        )

    @classmethod
    def skip(
        cls,
        collaborator: str,
        action: str,
        reason: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a skip receipt."""
        return cls(
            collaborator=collaborator,
            action=action,
            status="skipped",
            output=reason,
            **kwargs,
        )
