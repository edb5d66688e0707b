"""
Remediation dispatcher — pick and run the action for a resolved state.

    NotDeployed          → confirm → install → readiness poll → re-resolve
    Partial              → confirm → install again → re-resolve
    Deployed + Healthy   → Resolved
    Deployed + otherwise → failing checks → named fixes → re-verify advised

Every action is an external invocation through the collaborator
registry. A non-zero exit means the fix did not take; it is reported,
never retried. An action already executed in this run is not run
again, its condition goes to the operator instead.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from agentdeploy.adapters.registry import CollaboratorRegistry
from agentdeploy.core.engine import catalog
from agentdeploy.core.engine.readiness import ReadinessResult, wait_until_ready
from agentdeploy.core.errors import RemediationError
from agentdeploy.core.interaction import Operator
from agentdeploy.core.models.action import Receipt, RemediationAction
from agentdeploy.core.models.config import ConfigSnapshot
from agentdeploy.core.models.probe import DeploymentReport, DeploymentStatus, HealthReport, HealthStatus
from agentdeploy.core.models.target import Target
from agentdeploy.core.probes.remote_probe import RemoteProbe
from agentdeploy.core.resolvers.deployment import DeploymentStatusResolver

logger = logging.getLogger(__name__)


class DispatchState(str, Enum):
    RESOLVED = "resolved"
    INSTALLED = "installed"
    REMEDIATED = "remediated"
    MANUAL = "manual_intervention_required"


@dataclass
class ActionResult:
    """One invoked action and what came back."""

    action: RemediationAction
    receipt: Receipt

    @property
    def ok(self) -> bool:
        return self.receipt.ok

    @property
    def error(self) -> RemediationError | None:
        if self.receipt.ok:
            return None
        return RemediationError(
            f"{self.action.name} did not take: {self.receipt.error or 'failed'}",
            action=self.action.name,
            return_code=self.receipt.return_code,
        )

    def to_dict(self) -> dict:
        return {
            "action": self.action.name,
            "collaborator": self.action.collaborator,
            "flags": list(self.action.flags),
            "status": self.receipt.status,
            "return_code": self.receipt.return_code,
            "error": self.receipt.error,
        }


@dataclass
class DispatchOutcome:
    """What the dispatcher did for one resolved state."""

    state: DispatchState
    offered: list[str] = field(default_factory=list)
    results: list[ActionResult] = field(default_factory=list)
    unknown_checks: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)    # already executed this run
    declined: bool = False
    reverify_recommended: bool = False
    resolved_status: DeploymentStatus | None = None
    resolved_report: DeploymentReport | None = None
    readiness: ReadinessResult | None = None
    resolved_target: Target | None = None
    message: str = ""

    @property
    def attempted(self) -> list[str]:
        return [r.action.name for r in self.results]

    @property
    def failed(self) -> list[str]:
        return [r.action.name for r in self.results if not r.ok]

    @property
    def errors(self) -> list[RemediationError]:
        return [e for e in (r.error for r in self.results) if e is not None]

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "offered": list(self.offered),
            "results": [r.to_dict() for r in self.results],
            "unknown_checks": list(self.unknown_checks),
            "skipped": list(self.skipped),
            "declined": self.declined,
            "reverify_recommended": self.reverify_recommended,
            "resolved_status": self.resolved_status.value if self.resolved_status else None,
            "readiness": self.readiness.to_dict() if self.readiness else None,
            "message": self.message,
        }


class RemediationDispatcher:
    """Choose, confirm and run remediations."""

    def __init__(
        self,
        registry: CollaboratorRegistry,
        resolver: DeploymentStatusResolver,
        probe: RemoteProbe,
        operator: Operator,
        working_dir: str = ".",
        readiness_attempts: int | None = None,
        readiness_interval: float | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        self._registry = registry
        self._resolver = resolver
        self._probe = probe
        self._operator = operator
        self._working_dir = working_dir
        self._readiness_kwargs = {
            k: v for k, v in (
                ("attempts", readiness_attempts),
                ("interval", readiness_interval),
                ("sleep", sleep),
            ) if v is not None
        }

    def dispatch(
        self,
        target: Target,
        status: DeploymentStatus,
        health: HealthReport | None,
        available_fixes: set[str],
        executed: set[str],
        snapshot: ConfigSnapshot | None = None,
        refresh: Callable[[], Target] | None = None,
    ) -> DispatchOutcome:
        """Act on one resolved state.

        ``executed`` is the run's ledger of action names; it is updated
        in place. ``refresh`` is called after an install to rebuild the
        target from the updated configuration.
        """
        if status != DeploymentStatus.DEPLOYED:
            return self._install(target, status, executed, snapshot, refresh)

        if health is None or health.status == HealthStatus.HEALTHY:
            return DispatchOutcome(state=DispatchState.RESOLVED, message="Deployment is healthy")

        return self._fix(target, health, available_fixes, executed, snapshot)

    # ── Install / complete ──────────────────────────────────────

    def _install(
        self,
        target: Target,
        status: DeploymentStatus,
        executed: set[str],
        snapshot: ConfigSnapshot | None,
        refresh: Callable[[], Target] | None,
    ) -> DispatchOutcome:
        action = catalog.install_action(status)

        if action.name in executed:
            logger.warning("%s already ran this run; not repeating it", action.name)
            return DispatchOutcome(
                state=DispatchState.MANUAL,
                skipped=[action.name],
                resolved_status=status,
                message=f"{action.description} already ran and the target is still {status.value}",
            )

        where = target.describe() if target.is_addressable else "the target"
        if status == DeploymentStatus.PARTIAL:
            question = f"{where} is partially deployed. Complete the installation?"
        else:
            question = f"Nothing is deployed on {where}. Run the full installation?"
        if not self._operator.confirm(question):
            return DispatchOutcome(
                state=DispatchState.MANUAL,
                offered=[action.name],
                declined=True,
                resolved_status=status,
                message="Installation declined",
            )

        self._operator.report(f"Running {action.name} ...")
        receipt = self._registry.invoke(
            action, target, snapshot=snapshot, working_dir=self._working_dir,
        )
        executed.add(action.name)
        result = ActionResult(action=action, receipt=receipt)
        if not result.ok:
            logger.warning("%s", result.error)

        outcome = DispatchOutcome(
            state=DispatchState.INSTALLED,
            offered=[action.name],
            results=[result],
        )

        if refresh is not None:
            target = refresh()
        outcome.resolved_target = target

        if status == DeploymentStatus.NOT_DEPLOYED:
            outcome.readiness = wait_until_ready(self._probe, target, **self._readiness_kwargs)

        # Installer exit codes are not trusted; look again
        outcome.resolved_report = self._resolver.inspect(target)
        outcome.resolved_status = outcome.resolved_report.status
        outcome.message = f"After {action.name}: {outcome.resolved_status.value}"
        return outcome

    # ── Named fixes ─────────────────────────────────────────────

    def _fix(
        self,
        target: Target,
        health: HealthReport,
        available_fixes: set[str],
        executed: set[str],
        snapshot: ConfigSnapshot | None,
    ) -> DispatchOutcome:
        outcome = DispatchOutcome(state=DispatchState.MANUAL, resolved_status=DeploymentStatus.DEPLOYED)
        to_run: list[RemediationAction] = []

        for check in health.failing:
            fix = catalog.fix_for_check(check.name)
            if fix is None or fix not in available_fixes:
                outcome.unknown_checks.append(check.name)
                continue
            if fix in outcome.offered:
                continue
            outcome.offered.append(fix)
            if fix in executed:
                outcome.skipped.append(fix)
                continue
            to_run.append(catalog.fix_action(fix, check.name))

        if outcome.unknown_checks:
            logger.info("No automatic fix for: %s", ", ".join(outcome.unknown_checks))

        if not to_run:
            outcome.message = "No automatic fix left to try"
            return outcome

        names = ", ".join(a.name for a in to_run)
        if not self._operator.confirm(f"Apply fixes ({names})?"):
            outcome.declined = True
            outcome.message = "Fixes declined"
            return outcome

        for action in to_run:
            self._operator.report(f"Applying {action.name} ...")
            receipt = self._registry.invoke(
                action, target, snapshot=snapshot, working_dir=self._working_dir,
            )
            executed.add(action.name)
            result = ActionResult(action=action, receipt=receipt)
            if not result.ok:
                logger.warning("%s", result.error)
            outcome.results.append(result)

        outcome.state = DispatchState.REMEDIATED
        outcome.reverify_recommended = True
        ok = len(outcome.results) - len(outcome.failed)
        outcome.message = f"{ok}/{len(outcome.results)} fix(es) applied; re-verify recommended"
        return outcome
