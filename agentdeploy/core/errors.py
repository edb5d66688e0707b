"""
Error taxonomy for the deployment core.

Probes and collaborators report failures as values (ProbeResult,
Receipt). These exceptions are raised only at the edges that need a
hard stop: store initialization, locking, the interactive handoff and
the CLI.
"""

from __future__ import annotations


class DeployError(Exception):
    """Base class for every error raised by agentdeploy."""


class ConfigError(DeployError):
    """A required variable is missing, empty or still a placeholder."""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = list(missing or [])


class StoreInitError(ConfigError):
    """No config store exists and no template is available to create one."""


class StoreLockedError(ConfigError):
    """Another run holds the advisory lock on the config store."""


class ConnectivityError(DeployError):
    """The command channel could not connect or authenticate."""


class ProbeError(DeployError):
    """A single remote check failed while the channel itself was fine."""

    def __init__(self, message: str, check_name: str = ""):
        super().__init__(message)
        self.check_name = check_name


class RemediationError(DeployError):
    """An external remediation action exited non-zero."""

    def __init__(self, message: str, action: str = "", return_code: int | None = None):
        super().__init__(message)
        self.action = action
        self.return_code = return_code
