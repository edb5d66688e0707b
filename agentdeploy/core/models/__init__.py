"""
Domain models — Pydantic types for the deployment core.

All models are re-exported here for convenient access:

    from agentdeploy.core.models import Target, HealthReport, Receipt
"""

from agentdeploy.core.models.action import Receipt, RemediationAction
from agentdeploy.core.models.config import ConfigEntry, ConfigSnapshot, RequiredVariable
from agentdeploy.core.models.probe import (
    DeploymentReport,
    DeploymentStatus,
    FailureCause,
    HealthCheckResult,
    HealthReport,
    HealthStatus,
    ProbeResult,
)
from agentdeploy.core.models.state import DeploymentState, RunRecord
from agentdeploy.core.models.target import RemoteCommand, Target, TargetKind

__all__ = [
    # config.py
    "ConfigEntry",
    "ConfigSnapshot",
    # probe.py
    "DeploymentReport",
    "DeploymentState",
    "DeploymentStatus",
    "FailureCause",
    "HealthCheckResult",
    "HealthReport",
    "HealthStatus",
    "ProbeResult",
    # action.py
    "Receipt",
    "RemediationAction",
    # target.py
    "RemoteCommand",
    "RequiredVariable",
    # state.py
    "RunRecord",
    "Target",
    "TargetKind",
]
