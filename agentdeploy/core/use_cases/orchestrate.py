"""
Orchestrate use case — one end-to-end deployment run.

This is the top-level state machine: it makes sure the configuration
is complete, classifies the target, dispatches remediation until the
target is healthy or needs a human, hands the operator a session, and
persists what happened.

    lock → ensure store → snapshot → validate ⟲ guided input
         → local prerequisites
         → deployment status ⟲ install/complete
         → health ⟲ fixes + re-verify
         → handoff → persist

Remediation is never trusted on its own word: after every action the
target is re-resolved from a fresh snapshot.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from agentdeploy.adapters.base import RemoteChannel
from agentdeploy.adapters.registry import CollaboratorRegistry
from agentdeploy.adapters.remote.session import SessionLauncher, manual_instructions
from agentdeploy.core.config.lock import store_lock
from agentdeploy.core.config.requirements import required_for_snapshot
from agentdeploy.core.config.store import ConfigStore
from agentdeploy.core.engine.dispatcher import DispatchOutcome, DispatchState, RemediationDispatcher
from agentdeploy.core.errors import ConnectivityError, StoreInitError
from agentdeploy.core.interaction import Operator
from agentdeploy.core.models.config import ConfigSnapshot
from agentdeploy.core.models.probe import (
    DeploymentReport,
    DeploymentStatus,
    HealthReport,
)
from agentdeploy.core.models.state import RunRecord
from agentdeploy.core.models.target import Target
from agentdeploy.core.persistence.audit import AuditEntry, AuditWriter
from agentdeploy.core.persistence.state_file import default_state_path, load_state, save_state
from agentdeploy.core.probes.remote_probe import RemoteProbe
from agentdeploy.core.resolvers.deployment import DeploymentStatusResolver
from agentdeploy.core.resolvers.health import HealthResolver
from agentdeploy.core.use_cases.doctor import require_prerequisites

logger = logging.getLogger(__name__)


class RunOutcome(str, Enum):
    RESOLVED = "resolved"
    CONFIG_INCOMPLETE = "config_incomplete"
    ABORTED = "aborted"
    MANUAL = "manual_intervention_required"
    UNREACHABLE = "unreachable"


# Outcomes that mean the run could not do its job
_FAILING_OUTCOMES = {RunOutcome.CONFIG_INCOMPLETE, RunOutcome.ABORTED, RunOutcome.UNREACHABLE}


@dataclass
class RunResult:
    """Everything one orchestrator run saw and did."""

    run_id: str = ""
    operation: str = "run"
    started_at: str = ""
    ended_at: str = ""
    visited: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    target: Target | None = None
    deployment: DeploymentReport | None = None
    health: HealthReport | None = None
    dispatches: list[DispatchOutcome] = field(default_factory=list)
    outcome: RunOutcome | None = None
    instructions: list[str] = field(default_factory=list)
    session_exit_code: int | None = None
    error: str | None = None
    duration_ms: int = 0

    @property
    def exit_code(self) -> int:
        return 1 if self.outcome in _FAILING_OUTCOMES else 0

    @property
    def actions_attempted(self) -> list[str]:
        return [name for d in self.dispatches for name in d.attempted]

    @property
    def actions_failed(self) -> list[str]:
        return [name for d in self.dispatches for name in d.failed]

    def visit(self, state: str) -> None:
        self.visited.append(state)

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "operation": self.operation,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "outcome": self.outcome.value if self.outcome else None,
            "exit_code": self.exit_code,
            "visited": list(self.visited),
            "missing": list(self.missing),
            "target": self.target.describe() if self.target and self.target.is_addressable else None,
            "deployment": self.deployment.model_dump(mode="json") if self.deployment else None,
            "health": self.health.model_dump(mode="json") if self.health else None,
            "dispatches": [d.to_dict() for d in self.dispatches],
            "instructions": list(self.instructions),
            "session_exit_code": self.session_exit_code,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }


def build_registry(channel: RemoteChannel, mock_mode: bool = False) -> CollaboratorRegistry:
    """Registry with the installer and every remote fix."""
    from agentdeploy.adapters.remote.fixes import remote_fixes
    from agentdeploy.adapters.shell.command import InstallerCollaborator

    registry = CollaboratorRegistry(mock_mode=mock_mode)
    registry.register(InstallerCollaborator())
    for fix in remote_fixes(channel):
        registry.register(fix)
    return registry


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class Orchestrator:
    """Drive one target from whatever state it is in to Resolved.

    Args:
        store: The operator's config store.
        operator: Answers confirmations and supplies missing values.
        channel: Remote channel for probes and fixes.
        registry: Collaborators; defaults to the installer plus every
            remote fix over ``channel``.
        session: Interactive handoff launcher.
        connect: Offer the interactive session once Resolved.
        state_dir: Where ``current.json`` and the audit ledger live
            (default: beside the store).
        sleep: Readiness-poll sleep, injectable for tests.
    """

    def __init__(
        self,
        store: ConfigStore,
        operator: Operator,
        channel: RemoteChannel,
        registry: CollaboratorRegistry | None = None,
        session: SessionLauncher | None = None,
        connect: bool = True,
        state_dir: Path | None = None,
        sleep: Callable[[float], None] | None = None,
        readiness_attempts: int | None = None,
    ):
        self._store = store
        self._operator = operator
        self._channel = channel
        self._registry = registry or build_registry(channel)
        self._session = session or SessionLauncher()
        self._connect = connect

        root = state_dir if state_dir is not None else store.path.resolve().parent
        self._state_path = default_state_path(root)
        self._audit = AuditWriter(root=root)

        self._probe = RemoteProbe(channel)
        self._deployment = DeploymentStatusResolver(self._probe)
        self._health = HealthResolver(self._probe)
        self._dispatcher = RemediationDispatcher(
            self._registry,
            self._deployment,
            self._probe,
            operator,
            working_dir=str(store.path.resolve().parent),
            readiness_attempts=readiness_attempts,
            sleep=sleep,
        )

    @property
    def state_path(self) -> Path:
        return self._state_path

    @property
    def audit(self) -> AuditWriter:
        return self._audit

    # ── Entry points ────────────────────────────────────────────

    def run(self) -> RunResult:
        """Full run: config, deployment, health, handoff.

        Raises:
            StoreLockedError: Another run holds the store.
            ConnectivityError: The channel client is not installed.
        """
        return self._locked("run", self._run)

    def verify(self) -> RunResult:
        """Health check plus fixes for an already deployed target."""
        return self._locked("verify", self._verify)

    def _locked(self, operation: str, body: Callable[[RunResult], None]) -> RunResult:
        result = RunResult(
            run_id=f"{operation}-{uuid.uuid4().hex[:12]}",
            operation=operation,
            started_at=_now_iso(),
        )
        start = time.monotonic()

        with store_lock(self._store.path):
            try:
                self._store.ensure()
            except StoreInitError as e:
                logger.warning("%s — continuing with an empty store", e)

            try:
                body(result)
            except ConnectivityError as e:
                result.outcome = RunOutcome.UNREACHABLE
                result.error = str(e)
                self._finish(result, start)
                raise
            self._finish(result, start)

        logger.info("%s finished: %s (exit %d)", result.run_id, result.outcome, result.exit_code)
        return result

    def _finish(self, result: RunResult, start: float) -> None:
        result.ended_at = _now_iso()
        result.duration_ms = int((time.monotonic() - start) * 1000)
        self._persist(result)

    # ── Phases ──────────────────────────────────────────────────

    def _run(self, result: RunResult) -> None:
        snapshot = self._complete_config(result)
        if snapshot is None:
            return
        self._check_prerequisites(result, snapshot)

        executed: set[str] = set()
        target, snapshot = self._deploy(result, snapshot, executed)
        if result.outcome is not None:
            return

        self._verify_health(result, target, snapshot, executed)
        if result.outcome == RunOutcome.RESOLVED:
            self._handoff(result, target)

    def _verify(self, result: RunResult) -> None:
        snapshot = self._complete_config(result)
        if snapshot is None:
            return
        self._check_prerequisites(result, snapshot)

        target = Target.from_snapshot(snapshot)
        result.target = target
        report = self._deployment.inspect(target)
        result.deployment = report
        result.visit(report.status.value)

        if report.status != DeploymentStatus.DEPLOYED:
            result.outcome = RunOutcome.UNREACHABLE if self._unreachable(report, target) else RunOutcome.MANUAL
            result.error = report.reason or f"Target is {report.status.value}"
            return

        self._verify_health(result, target, snapshot, set())

    def _complete_config(self, result: RunResult) -> ConfigSnapshot | None:
        """Validate the store, running guided input until complete or aborted."""
        while True:
            snapshot = self._store.snapshot()
            ok, missing = self._store.validate_required(required_for_snapshot(snapshot))
            if ok:
                result.missing = []
                result.visit("config_complete")
                return snapshot

            result.missing = missing
            result.visit("config_incomplete")
            logger.info("Missing configuration: %s", ", ".join(missing))

            if not self._operator.can_provide:
                result.outcome = RunOutcome.CONFIG_INCOMPLETE
                result.error = f"Missing configuration: {', '.join(missing)}"
                return None

            if not self._guided_input(snapshot, missing):
                result.outcome = RunOutcome.ABORTED
                result.error = "Configuration aborted by operator"
                return None

    def _check_prerequisites(self, result: RunResult, snapshot: ConfigSnapshot) -> None:
        """Stop before any probe when the channel client is missing."""
        target = Target.from_snapshot(snapshot)
        result.target = target
        require_prerequisites(self._channel, target)

    def _guided_input(self, snapshot: ConfigSnapshot, missing: list[str]) -> bool:
        requirements = {r.key: r for r in required_for_snapshot(snapshot)}
        for key in missing:
            requirement = requirements[key]
            value = self._operator.provide(requirement, snapshot.get(key))
            if value is None:
                return False
            self._store.set(key, value)
        return True

    def _deploy(
        self,
        result: RunResult,
        snapshot: ConfigSnapshot,
        executed: set[str],
    ) -> tuple[Target, ConfigSnapshot]:
        """Resolve deployment status, installing until Deployed or stuck."""
        target = Target.from_snapshot(snapshot)
        report = self._deployment.inspect(target)

        while True:
            result.target = target
            result.deployment = report
            result.visit(report.status.value)

            if report.status == DeploymentStatus.DEPLOYED:
                return target, snapshot

            outcome = self._dispatcher.dispatch(
                target, report.status, None, self._registry.available(), executed, snapshot,
                refresh=self._refresh_target,
            )
            result.dispatches.append(outcome)
            self._operator.report(outcome.message)

            if outcome.state == DispatchState.MANUAL:
                result.outcome = RunOutcome.UNREACHABLE if self._unreachable(report, target) else RunOutcome.MANUAL
                result.error = report.reason or outcome.message
                return target, snapshot

            snapshot = self._store.snapshot()
            target = outcome.resolved_target or Target.from_snapshot(snapshot)
            report = outcome.resolved_report or self._deployment.inspect(target)

    def _refresh_target(self) -> Target:
        # The installer may have written new values (instance name, ...)
        return Target.from_snapshot(self._store.snapshot())

    def _verify_health(
        self,
        result: RunResult,
        target: Target,
        snapshot: ConfigSnapshot,
        executed: set[str],
    ) -> None:
        """Health → fixes → re-verify, until Healthy or stuck."""
        health = self._health.inspect(target)

        while True:
            result.health = health
            result.visit(health.status.value)

            outcome = self._dispatcher.dispatch(
                target, DeploymentStatus.DEPLOYED, health, self._registry.available(), executed, snapshot,
            )
            result.dispatches.append(outcome)

            if outcome.state == DispatchState.RESOLVED:
                result.outcome = RunOutcome.RESOLVED
                return

            self._operator.report(outcome.message)
            if outcome.unknown_checks:
                self._operator.report(f"Needs manual attention: {', '.join(outcome.unknown_checks)}")

            if outcome.state != DispatchState.REMEDIATED:
                result.outcome = RunOutcome.UNREACHABLE if not health.reachable else RunOutcome.MANUAL
                return

            if not self._operator.confirm("Re-verify health now?"):
                result.outcome = RunOutcome.MANUAL
                result.error = "Fixes applied but not re-verified"
                return

            snapshot = self._store.snapshot()
            health = self._health.inspect(target)

    def _handoff(self, result: RunResult, target: Target) -> None:
        result.instructions = manual_instructions(target)
        if not self._connect:
            return

        if not self._operator.confirm(f"Connect to {target.describe()} now?"):
            for line in result.instructions:
                self._operator.report(line)
            return

        try:
            self._probe.ensure_reachable(target)
        except ConnectivityError as e:
            logger.warning("%s", e)
            result.error = str(e)
            for line in result.instructions:
                self._operator.report(line)
            return

        result.session_exit_code = self._session.launch(target)

    @staticmethod
    def _unreachable(report: DeploymentReport, target: Target) -> bool:
        """An address is configured but nothing answered on it."""
        return target.is_addressable and not report.reachable

    # ── Persistence ─────────────────────────────────────────────

    def _persist(self, result: RunResult) -> None:
        state = load_state(self._state_path)
        if result.target is not None:
            state.target = result.target.describe() if result.target.is_addressable else ""
            state.infrastructure_type = result.target.kind.value
        state.missing_config = list(result.missing)
        if result.deployment is not None:
            state.deployment_status = result.deployment.status.value
        if result.health is not None:
            state.health_status = result.health.status.value
            state.health_score = result.health.score
        state.last_run = RunRecord(
            run_id=result.run_id,
            started_at=result.started_at,
            ended_at=result.ended_at,
            outcome=result.outcome.value if result.outcome else "",
            exit_code=result.exit_code,
            actions_attempted=result.actions_attempted,
            actions_failed=result.actions_failed,
        )

        try:
            save_state(state, self._state_path)
        except OSError as e:
            logger.warning("Could not save state: %s", e)

        self._audit.write(AuditEntry(
            run_id=result.run_id,
            operation_type=result.operation,
            target=state.target,
            infrastructure_type=state.infrastructure_type,
            outcome=result.outcome.value if result.outcome else "",
            exit_code=result.exit_code,
            deployment_status=state.deployment_status if result.deployment else None,
            health_status=result.health.status.value if result.health else None,
            health_score=result.health.score if result.health else None,
            actions_attempted=result.actions_attempted,
            actions_failed=result.actions_failed,
            duration_ms=result.duration_ms,
            errors=[result.error] if result.error else [],
            context={"visited": list(result.visited), "missing": list(result.missing)},
        ))
