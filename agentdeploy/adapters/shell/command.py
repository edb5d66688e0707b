"""
Installer collaborator — run the local deployment script.

The installer (and, for cloud targets, the provisioner) is an external
script with a fixed argument contract. It is run with an argv list,
never through a shell, and its exit code is captured in the Receipt.
"""

from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path

from agentdeploy.adapters.base import Collaborator, InvocationContext
from agentdeploy.core.models.action import Receipt
from agentdeploy.core.models.config import ConfigSnapshot
from agentdeploy.core.models.target import TargetKind

logger = logging.getLogger(__name__)

DEFAULT_INSTALLER = "scripts/deploy_claude_infrastructure.sh"
DEFAULT_PROVISIONER = "scripts/implementation/gcp_deploy.sh"
PROVISION_COMMAND = "deploy"
INSTALL_TIMEOUT = 3600

# Output kept in the receipt; installers are chatty
_OUTPUT_TAIL = 4000


def _tail(text: str, limit: int = _OUTPUT_TAIL) -> str:
    text = text.strip()
    return text if len(text) <= limit else "..." + text[-limit:]


class InstallerCollaborator(Collaborator):
    """Run the installer or provisioner script for the target kind.

    Script argv:
        ``--ip ADDR --user USER [--token T] [--ssh-key P] [--mode M]
        [--no-mcp] [action flags]``

    Provisioner argv: ``deploy``
    """

    def __init__(self, timeout: int = INSTALL_TIMEOUT):
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "install"

    def is_available(self) -> bool:
        return True

    def script_for(self, context: InvocationContext) -> Path:
        snapshot = context.snapshot
        if context.target.kind == TargetKind.GCLOUD:
            raw = snapshot.resolved("PROVISIONER_SCRIPT", DEFAULT_PROVISIONER)
        else:
            raw = snapshot.resolved("INSTALLER_SCRIPT", DEFAULT_INSTALLER)
        path = Path(raw).expanduser()
        if not path.is_absolute():
            path = Path(context.working_dir) / path
        return path

    def build_argv(self, context: InvocationContext) -> list[str]:
        snapshot: ConfigSnapshot = context.snapshot
        argv = [str(self.script_for(context))]

        # The provisioner takes a subcommand and reads the rest from the store
        if context.target.kind == TargetKind.GCLOUD:
            argv.append(PROVISION_COMMAND)
            return argv

        if context.target_address:
            argv.extend(["--ip", context.target_address])
        argv.extend(["--user", context.user_identity])

        token = snapshot.resolved("GITHUB_PAT")
        if token:
            argv.extend(["--token", token])
        ssh_key = snapshot.resolved("SSH_PUBLIC_KEY_PATH")
        if ssh_key:
            argv.extend(["--ssh-key", str(Path(ssh_key).expanduser())])
        mode = snapshot.resolved("DEPLOYMENT_MODE")
        if mode:
            argv.extend(["--mode", mode])
        if not snapshot.flag("ENABLE_MCP_SERVER", default=True):
            argv.append("--no-mcp")

        argv.extend(context.action_flags)
        return argv

    def validate(self, context: InvocationContext) -> tuple[bool, str]:
        # Cloud targets get their address from the provisioner
        if context.target.kind != TargetKind.GCLOUD and not context.target.is_addressable:
            return False, "Target address is not set"

        script = self.script_for(context)
        if not script.is_file():
            return False, f"Installer script not found: {script}"
        return True, ""

    def invoke(self, context: InvocationContext) -> Receipt:
        argv = self.build_argv(context)
        # Never log the token
        shown = ["***" if i > 0 and argv[i - 1] == "--token" else a for i, a in enumerate(argv)]
        logger.debug("Executing: %s (cwd=%s)", " ".join(shown), context.working_dir)
        start = time.monotonic()

        try:
            result = subprocess.run(
                argv,
                cwd=context.working_dir,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                collaborator=self.name,
                action=context.action.name,
                error=f"Installer timed out after {self._timeout}s",
                metadata={"script": argv[0], "timeout": self._timeout},
            )
        except OSError as e:
            return Receipt.failure(
                collaborator=self.name,
                action=context.action.name,
                error=f"Installer could not be started: {e}",
                metadata={"script": argv[0]},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = _tail(result.stdout)
        stderr = _tail(result.stderr)

        if result.returncode == 0:
            return Receipt.success(
                collaborator=self.name,
                action=context.action.name,
                output=output,
                duration_ms=elapsed_ms,
                return_code=0,
                metadata={"script": argv[0], "flags": context.action_flags, "stderr": stderr},
            )

        return Receipt.failure(
            collaborator=self.name,
            action=context.action.name,
            error=stderr or f"Installer exited with code {result.returncode}",
            duration_ms=elapsed_ms,
            return_code=result.returncode,
            metadata={"script": argv[0], "flags": context.action_flags, "stdout": output},
        )
