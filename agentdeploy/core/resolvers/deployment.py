"""
Deployment status resolver — is the agent service installed?

Flow:
    placeholder address → NotDeployed (no network)
    preflight as user → preflight as fallback user → NotDeployed (unreachable)
    battery of presence checks → score → status

Every battery check is worth one point. All points → Deployed, none →
NotDeployed, anything in between → Partial.
"""

from __future__ import annotations

import logging
import shlex
from collections.abc import Callable
from dataclasses import dataclass

from agentdeploy.core.models.probe import DeploymentReport, DeploymentStatus, ProbeResult
from agentdeploy.core.models.target import RemoteCommand, Target
from agentdeploy.core.probes.remote_probe import RemoteProbe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PresenceCheck:
    """One point of the deployment battery."""

    name: str
    label: str
    command: Callable[[Target], RemoteCommand]
    # Exit 0 is not always enough (list-unit-files exits 0 on no match)
    needs_output: bool = False


DEPLOYMENT_BATTERY: tuple[PresenceCheck, ...] = (
    PresenceCheck(
        "service_account",
        "Service account exists",
        lambda t: RemoteCommand.of("id", "-u", t.user),
    ),
    PresenceCheck(
        "cli",
        "Agent CLI installed",
        lambda t: RemoteCommand.login_shell(f"command -v {shlex.quote(t.cli_binary)}"),
    ),
    PresenceCheck(
        "service_unit",
        "Service unit registered",
        lambda t: RemoteCommand.of("systemctl", "list-unit-files", "--no-legend", t.primary_unit),
        needs_output=True,
    ),
    PresenceCheck(
        "workspace",
        "Workspace directory exists",
        lambda t: RemoteCommand.of("test", "-d", t.workspace),
    ),
    PresenceCheck(
        "runtime",
        "Runtime installed",
        lambda t: RemoteCommand.login_shell(f"command -v {shlex.quote(t.runtime_binary)}"),
    ),
)


def classify_score(score: int, max_score: int) -> DeploymentStatus:
    if max_score > 0 and score == max_score:
        return DeploymentStatus.DEPLOYED
    if score == 0:
        return DeploymentStatus.NOT_DEPLOYED
    return DeploymentStatus.PARTIAL


class DeploymentStatusResolver:
    """Classify a target as NotDeployed, Partial or Deployed."""

    def __init__(
        self,
        probe: RemoteProbe,
        battery: tuple[PresenceCheck, ...] = DEPLOYMENT_BATTERY,
    ):
        self._probe = probe
        self._battery = battery

    def resolve(self, target: Target) -> DeploymentStatus:
        return self.inspect(target).status

    def preflight(self, target: Target) -> tuple[str | None, ProbeResult]:
        """Find an identity the host accepts.

        Tries ``target.user`` first, then ``target.fallback_user``.
        Returns (identity or None, last preflight result).
        """
        user = target.user
        result = self._preflight_as(target, user)
        if result.succeeded:
            return user, result

        fallback = target.fallback_user
        if fallback and fallback != user:
            result = self._preflight_as(target, fallback)
            if result.succeeded:
                return fallback, result

        return None, result

    def _preflight_as(self, target: Target, user: str) -> ProbeResult:
        result = self._probe.run(target.with_user(user), RemoteCommand.of("true"), check_name="preflight")
        if not result.succeeded:
            logger.info("Preflight as %s@%s failed: %s", user, target.address, result.error)
        return result

    def inspect(self, target: Target) -> DeploymentReport:
        """Resolve status and keep the per-check evidence."""
        max_score = len(self._battery)

        if not target.is_addressable:
            logger.info("Target address is empty or a placeholder — not deployed")
            return DeploymentReport(
                status=DeploymentStatus.NOT_DEPLOYED,
                max_score=max_score,
                reason="Target address is not configured",
            )

        identity, preflight = self.preflight(target)
        if identity is None:
            return DeploymentReport(
                status=DeploymentStatus.NOT_DEPLOYED,
                max_score=max_score,
                reachable=False,
                reason=f"Cannot reach {target.address}: {preflight.error or 'no response'}",
                probes=[preflight],
            )

        # Probe as whoever got in; checks still refer to the service account
        probing = target.with_user(identity)
        probes: list[ProbeResult] = []
        for check in self._battery:
            command = check.command(target)
            result = self._probe.run(probing, command, check_name=check.name)
            if result.succeeded and check.needs_output and not result.observed_value:
                result = result.model_copy(update={"succeeded": False, "error": "no output"})
            probes.append(result)

        score = sum(1 for p in probes if p.succeeded)
        missing = [p.check_name for p in probes if not p.succeeded]
        status = classify_score(score, max_score)
        logger.info("Deployment status of %s: %s (%d/%d)", target.address, status.value, score, max_score)

        return DeploymentReport(
            status=status,
            score=score,
            max_score=max_score,
            reachable=True,
            identity=identity,
            reason=f"Missing: {', '.join(missing)}" if missing else "",
            probes=probes,
        )
