"""
Remediation catalog — which action answers which condition.

Install actions answer deployment states; named fixes answer failing
health checks. A failing check with no entry here is "unknown" and
goes to the operator as manual work.
"""

from __future__ import annotations

from agentdeploy.core.models.action import RemediationAction
from agentdeploy.core.models.probe import DeploymentStatus

INSTALL = "install"
COMPLETE = "install-complete"

# health check name → fix name
CHECK_FIXES: dict[str, str] = {
    "primary_service": "service-restart",
    "optional_service": "optional-service-restart",
    "firewall": "firewall-enable",
    "audit_daemon": "audit-restart",
}

FIX_DESCRIPTIONS: dict[str, str] = {
    "service-restart": "Start the agent service",
    "optional-service-restart": "Start the MCP server",
    "firewall-enable": "Enable the firewall",
    "audit-restart": "Start the audit daemon",
}


def install_action(status: DeploymentStatus) -> RemediationAction:
    """Full install for NotDeployed, completion install for Partial.

    The installer skips what is already in place, so completing a partial
    install is the same invocation under its own name.
    """
    if status == DeploymentStatus.PARTIAL:
        return RemediationAction(
            name=COMPLETE,
            target_condition=status.value,
            collaborator=INSTALL,
            description="Complete the partial installation",
        )
    return RemediationAction(
        name=INSTALL,
        target_condition=status.value,
        collaborator=INSTALL,
        description="Run the full installation",
    )


def fix_for_check(check_name: str) -> str | None:
    return CHECK_FIXES.get(check_name)


def fix_action(fix_name: str, check_name: str) -> RemediationAction:
    return RemediationAction(
        name=fix_name,
        target_condition=f"{DeploymentStatus.DEPLOYED.value}:{check_name}",
        collaborator=fix_name,
        description=FIX_DESCRIPTIONS.get(fix_name, fix_name),
    )
