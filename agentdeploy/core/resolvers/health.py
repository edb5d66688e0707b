"""
Health resolver — weighted battery over a deployed target.

One pass over the battery yields both the classification and the
operator report. Connectivity gates everything: if the no-op fails,
the host is Unhealthy with score 0 and nothing else runs.

    score = round_half_up(100 * passed_weight / applicable_max_weight)

    ≥ 90  → Healthy
    60-89 → Degraded
    < 60  → Unhealthy

Every check is worth one point, connectivity included. The optional
service only counts when its unit file exists on the host, so a host
without it can still score exactly 100. The audit daemon check carries
no weight; it is reported and can trigger its fix but never moves the
score.
"""

from __future__ import annotations

import logging
import shlex
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from agentdeploy.core.models.probe import HealthCheckResult, HealthReport, HealthStatus, ProbeResult
from agentdeploy.core.models.target import RemoteCommand, Target
from agentdeploy.core.probes.remote_probe import RemoteProbe

logger = logging.getLogger(__name__)

HEALTHY_THRESHOLD = 90
DEGRADED_THRESHOLD = 60

# Minimum free share (percent) for memory and disk
RESOURCE_FLOOR_PERCENT = 20

CONNECTIVITY_WEIGHT = 1


def round_half_up(numerator: int, denominator: int) -> int:
    """round(100 * numerator / denominator) with .5 rounded up, in integers."""
    if denominator <= 0:
        return 0
    return (200 * numerator + denominator) // (2 * denominator)


def tier_for_score(score: int) -> HealthStatus:
    if score >= HEALTHY_THRESHOLD:
        return HealthStatus.HEALTHY
    if score >= DEGRADED_THRESHOLD:
        return HealthStatus.DEGRADED
    return HealthStatus.UNHEALTHY


# ── Output parsing ──────────────────────────────────────────────


def parse_free(output: str) -> dict[str, int] | None:
    """Parse ``free -m``; None when the Mem: line is missing or garbled."""
    for line in output.splitlines():
        fields = line.split()
        if not fields or fields[0] != "Mem:":
            continue
        try:
            numbers = [int(f) for f in fields[1:]]
        except ValueError:
            return None
        if len(numbers) < 3 or numbers[0] <= 0:
            return None
        total, used = numbers[0], numbers[1]
        # Older procps has no "available" column
        available = numbers[5] if len(numbers) >= 6 else numbers[2]
        return {
            "total_mb": total,
            "used_mb": used,
            "available_mb": available,
            "used_percent": round_half_up(used, total),
            "available_percent": round_half_up(available, total),
        }
    return None


def parse_df(output: str) -> dict[str, Any] | None:
    """Parse ``df -P <path>`` (1K blocks); None when unparseable."""
    lines = [line for line in output.splitlines() if line.strip()]
    if len(lines) < 2:
        return None
    fields = lines[-1].split()
    if len(fields) < 6:
        return None
    try:
        size, used, avail = int(fields[1]), int(fields[2]), int(fields[3])
    except ValueError:
        return None
    if size <= 0:
        return None
    return {
        "filesystem": fields[0],
        "mount": fields[5],
        "size_kb": size,
        "used_kb": used,
        "available_kb": avail,
        "used_percent": fields[4],
        "available_percent": round_half_up(avail, size),
    }


# ── Battery ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class WeightedCheck:
    """One entry of the health battery."""

    name: str
    label: str
    weight: int
    command: Callable[[Target], RemoteCommand]
    passes: Callable[[ProbeResult], bool]
    fix: str | None = None
    # Runs first; when it fails the check is not applicable
    applies: Callable[[Target], RemoteCommand] | None = None


def _is_active(result: ProbeResult) -> bool:
    return result.observed_value.strip() == "active"


def _succeeded(result: ProbeResult) -> bool:
    return result.succeeded


def _memory_ok(result: ProbeResult) -> bool:
    mem = parse_free(result.observed_value) if result.succeeded else None
    return mem is not None and mem["available_percent"] > RESOURCE_FLOOR_PERCENT


def _disk_ok(result: ProbeResult) -> bool:
    disk = parse_df(result.observed_value) if result.succeeded else None
    return disk is not None and disk["available_percent"] > RESOURCE_FLOOR_PERCENT


def _firewall_ok(result: ProbeResult) -> bool:
    return result.succeeded and result.observed_value.startswith("Status: active")


def _unit_state(unit_of: Callable[[Target], str]) -> Callable[[Target], RemoteCommand]:
    return lambda t: RemoteCommand.of("systemctl", "is-active", unit_of(t))


HEALTH_BATTERY: tuple[WeightedCheck, ...] = (
    WeightedCheck(
        "primary_service",
        "Agent service running",
        1,
        _unit_state(lambda t: t.primary_unit),
        _is_active,
        fix="service-restart",
    ),
    WeightedCheck(
        "optional_service",
        "MCP server running",
        1,
        _unit_state(lambda t: t.optional_unit),
        _is_active,
        fix="optional-service-restart",
        applies=lambda t: RemoteCommand.of("test", "-f", f"/etc/systemd/system/{t.optional_unit}"),
    ),
    WeightedCheck(
        "memory",
        "Memory available",
        1,
        lambda t: RemoteCommand.of("free", "-m"),
        _memory_ok,
    ),
    WeightedCheck(
        "disk",
        "Disk space available",
        1,
        lambda t: RemoteCommand.of("df", "-P", t.data_mount),
        _disk_ok,
    ),
    WeightedCheck(
        "cli",
        "Agent CLI resolvable",
        1,
        lambda t: RemoteCommand.login_shell(f"command -v {shlex.quote(t.cli_binary)}"),
        _succeeded,
    ),
    WeightedCheck(
        "firewall",
        "Firewall active",
        1,
        lambda t: RemoteCommand.of("sudo", "-n", "ufw", "status"),
        _firewall_ok,
        fix="firewall-enable",
    ),
    WeightedCheck(
        "audit_daemon",
        "Audit daemon running",
        0,
        _unit_state(lambda t: t.audit_unit),
        _is_active,
        fix="audit-restart",
    ),
)


class HealthResolver:
    """Classify a deployed target as Healthy, Degraded or Unhealthy."""

    def __init__(
        self,
        probe: RemoteProbe,
        battery: tuple[WeightedCheck, ...] = HEALTH_BATTERY,
    ):
        self._probe = probe
        self._battery = battery

    def resolve(self, target: Target) -> tuple[HealthStatus, int]:
        report = self.inspect(target, details=False)
        return report.status, report.score

    def inspect(self, target: Target, details: bool = True) -> HealthReport:
        """Run the battery once; optionally collect the verbose report."""
        connectivity = self._probe.run(target, RemoteCommand.of("true"), check_name="connectivity")
        gate = HealthCheckResult(
            name="connectivity",
            label="Host reachable",
            weight=CONNECTIVITY_WEIGHT,
            passed=connectivity.succeeded,
            observed=connectivity.error or "",
        )
        if not connectivity.succeeded:
            logger.info("Health: %s unreachable (%s)", target.login(), connectivity.error)
            return HealthReport(
                status=HealthStatus.UNHEALTHY,
                score=0,
                passed_weight=0,
                max_weight=CONNECTIVITY_WEIGHT,
                reachable=False,
                checks=[gate],
                details={"error": connectivity.error or "unreachable"},
            )

        checks = [gate]
        raw: dict[str, ProbeResult] = {}
        for check in self._battery:
            applicable = True
            if check.applies is not None:
                applicable = self._probe.run(target, check.applies(target), check_name=f"{check.name}?").succeeded

            if not applicable:
                checks.append(HealthCheckResult(
                    name=check.name,
                    label=check.label,
                    weight=check.weight,
                    applicable=False,
                    fix=check.fix,
                ))
                continue

            result = self._probe.run(target, check.command(target), check_name=check.name)
            raw[check.name] = result
            checks.append(HealthCheckResult(
                name=check.name,
                label=check.label,
                weight=check.weight,
                passed=check.passes(result),
                observed=result.observed_value or (result.error or ""),
                fix=check.fix,
            ))

        max_weight = sum(c.weight for c in checks if c.applicable)
        passed_weight = sum(c.weight for c in checks if c.applicable and c.passed)
        score = round_half_up(passed_weight, max_weight)
        status = tier_for_score(score)
        logger.info(
            "Health of %s: %s (%d%%, %d/%d)",
            target.login(), status.value, score, passed_weight, max_weight,
        )

        report = HealthReport(
            status=status,
            score=score,
            passed_weight=passed_weight,
            max_weight=max_weight,
            reachable=True,
            checks=checks,
        )
        if details:
            report.details = self._details(target, report, raw)
        return report

    def _details(self, target: Target, report: HealthReport, raw: dict[str, ProbeResult]) -> dict[str, Any]:
        """Operator-facing report built from the same pass plus two extras."""
        info: dict[str, Any] = {}

        for name in ("primary_service", "optional_service", "audit_daemon"):
            check = report.check(name)
            if check is None:
                continue
            info[name] = (check.observed or "unknown") if check.applicable else "not installed"

        if "memory" in raw:
            info["memory"] = parse_free(raw["memory"].observed_value)
        if "disk" in raw:
            info["disk"] = parse_df(raw["disk"].observed_value)
        if "firewall" in raw:
            info["firewall"] = "active" if _firewall_ok(raw["firewall"]) else "inactive"

        cli = report.check("cli")
        if cli is not None and cli.passed:
            version, ok = self._probe.run_captured(
                target, RemoteCommand.login_shell(f"{shlex.quote(target.cli_binary)} --version"),
            )
            info["cli_version"] = version if ok and version else "unknown"

        loadavg, ok = self._probe.run_captured(target, RemoteCommand.of("cat", "/proc/loadavg"))
        if ok and loadavg:
            info["load_average"] = " ".join(loadavg.split()[:3])

        return info
