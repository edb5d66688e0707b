"""
DeploymentState — the last observed state of the target.

Serialized to .state/current.json after every run so `status --last`
and `history` can answer without touching the network. It's disposable:
delete it and the next run rebuilds it from live probes.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class RunRecord(BaseModel):
    """Summary of the last orchestrator run."""

    run_id: str = ""
    started_at: str = ""
    ended_at: str = ""
    outcome: str = ""               # resolved, config_incomplete, manual_intervention_required, ...
    exit_code: int = 0
    actions_attempted: list[str] = Field(default_factory=list)
    actions_failed: list[str] = Field(default_factory=list)


class DeploymentState(BaseModel):
    """Root state model — serialized to .state/current.json."""

    # ── Schema ───────────────────────────────────────────────────
    schema_version: int = 1

    # ── Identity ─────────────────────────────────────────────────
    target: str = ""
    infrastructure_type: str = ""

    # ── Timestamps ───────────────────────────────────────────────
    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)

    # ── Observed state ───────────────────────────────────────────
    deployment_status: str | None = None
    health_status: str | None = None
    health_score: int | None = None
    missing_config: list[str] = Field(default_factory=list)

    # ── Last run ─────────────────────────────────────────────────
    last_run: RunRecord = Field(default_factory=RunRecord)

    # ── Extensible metadata ──────────────────────────────────────
    metadata: dict[str, Any] = Field(default_factory=dict)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()
