"""
Status use case — read-only view of the target.

Live mode probes the host without changing anything; ``last`` mode
answers from .state/current.json without touching the network.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from agentdeploy.adapters.base import RemoteChannel
from agentdeploy.core.config.requirements import required_for_snapshot
from agentdeploy.core.config.store import ConfigStore
from agentdeploy.core.models.probe import DeploymentReport, DeploymentStatus, HealthReport
from agentdeploy.core.models.state import DeploymentState
from agentdeploy.core.models.target import Target
from agentdeploy.core.persistence.state_file import default_state_path, load_state
from agentdeploy.core.probes.remote_probe import RemoteProbe
from agentdeploy.core.resolvers.deployment import DeploymentStatusResolver
from agentdeploy.core.resolvers.health import HealthResolver


@dataclass
class StatusResult:
    """Aggregated target status."""

    store_path: Path | None = None
    target: Target | None = None
    missing: list[str] = field(default_factory=list)
    deployment: DeploymentReport | None = None
    health: HealthReport | None = None
    state: DeploymentState | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        result: dict = {"store": str(self.store_path) if self.store_path else None}
        if self.error:
            result["error"] = self.error

        result["missing_config"] = list(self.missing)
        if self.target is not None:
            result["target"] = {
                "kind": self.target.kind.value,
                "address": self.target.address,
                "user": self.target.user,
                "zone": self.target.zone,
            }
        if self.deployment is not None:
            result["deployment"] = self.deployment.model_dump(mode="json")
        if self.health is not None:
            result["health"] = self.health.model_dump(mode="json")
        if self.state is not None:
            result["state"] = self.state.model_dump(mode="json")
        return result


def get_status(
    store: ConfigStore,
    channel: RemoteChannel,
    with_health: bool = True,
) -> StatusResult:
    """Probe the configured target; health only when it is deployed."""
    result = StatusResult(store_path=store.path)
    if not store.exists():
        result.error = f"No config store at {store.path}. Run 'agentdeploy config init'."
        return result

    snapshot = store.snapshot()
    _, result.missing = store.validate_required(required_for_snapshot(snapshot))
    target = Target.from_snapshot(snapshot)
    result.target = target

    probe = RemoteProbe(channel)
    result.deployment = DeploymentStatusResolver(probe).inspect(target)
    if with_health and result.deployment.status == DeploymentStatus.DEPLOYED:
        result.health = HealthResolver(probe).inspect(target)
    return result


def get_health(store: ConfigStore, channel: RemoteChannel) -> StatusResult:
    """Health battery only, with the verbose report."""
    result = StatusResult(store_path=store.path)
    snapshot = store.snapshot()
    target = Target.from_snapshot(snapshot)
    result.target = target
    if not target.is_addressable:
        result.error = "Target address is not configured"
        return result

    result.health = HealthResolver(RemoteProbe(channel)).inspect(target)
    return result


def last_status(root: Path) -> StatusResult:
    """Last persisted state; no network."""
    path = default_state_path(root)
    result = StatusResult()
    if not path.is_file():
        result.error = f"No recorded runs ({path} not found)"
        return result
    result.state = load_state(path)
    return result
