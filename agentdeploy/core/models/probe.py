"""
Probe and resolver models — what the remote host looked like.

ProbeResult is produced per remote command and consumed immediately by
a resolver. The two reports are what resolvers hand back: a closed
status plus the evidence it was derived from.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from agentdeploy.core.errors import ConnectivityError, ProbeError


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class FailureCause(str, Enum):
    """Why a probe did not succeed."""

    CONNECT = "connect"     # channel could not reach the host
    AUTH = "auth"           # host reached, credentials refused
    TIMEOUT = "timeout"     # no answer before the probe timeout
    EXIT = "exit"           # command ran and exited non-zero

    @property
    def is_channel_failure(self) -> bool:
        return self is not FailureCause.EXIT


class ProbeResult(BaseModel):
    """Outcome of one remote command."""

    check_name: str
    succeeded: bool
    observed_value: str = ""
    error: str | None = None
    cause: FailureCause | None = None
    return_code: int | None = None
    duration_ms: int = 0

    def raise_for_failure(self) -> None:
        """Turn a failed probe into ConnectivityError or ProbeError."""
        if self.succeeded:
            return
        message = f"{self.check_name}: {self.error or 'failed'}"
        if self.cause is not None and self.cause.is_channel_failure:
            raise ConnectivityError(message)
        raise ProbeError(message, check_name=self.check_name)


class DeploymentStatus(str, Enum):
    NOT_DEPLOYED = "not_deployed"
    PARTIAL = "partial"
    DEPLOYED = "deployed"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class DeploymentReport(BaseModel):
    """Evidence behind a DeploymentStatus."""

    status: DeploymentStatus = DeploymentStatus.NOT_DEPLOYED
    score: int = 0
    max_score: int = 0
    reachable: bool = False
    identity: str | None = None
    reason: str = ""
    probes: list[ProbeResult] = Field(default_factory=list)
    checked_at: str = Field(default_factory=_now_iso)

    @property
    def missing(self) -> list[str]:
        """Battery checks that did not pass."""
        return [p.check_name for p in self.probes if not p.succeeded]


class HealthCheckResult(BaseModel):
    """One weighted check in the health battery."""

    name: str
    label: str = ""
    weight: int = 1
    applicable: bool = True
    passed: bool = False
    observed: str = ""
    fix: str | None = None

    @property
    def failing(self) -> bool:
        return self.applicable and not self.passed


class HealthReport(BaseModel):
    """Classification and operator-facing detail from one probe pass."""

    status: HealthStatus = HealthStatus.UNHEALTHY
    score: int = 0
    passed_weight: int = 0
    max_weight: int = 0
    reachable: bool = False
    checks: list[HealthCheckResult] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)
    checked_at: str = Field(default_factory=_now_iso)

    @property
    def failing(self) -> list[HealthCheckResult]:
        """Applicable checks that did not pass, in battery order."""
        return [c for c in self.checks if c.failing]

    def check(self, name: str) -> HealthCheckResult | None:
        for c in self.checks:
            if c.name == name:
                return c
        return None
