"""
End-to-end orchestrator runs against a scripted host.
"""

import json
from pathlib import Path

import pytest

from agentdeploy.adapters.base import ChannelResult
from agentdeploy.adapters.mock import MockChannel, MockCollaborator
from agentdeploy.adapters.registry import CollaboratorRegistry
from agentdeploy.adapters.remote.fixes import remote_fixes
from agentdeploy.adapters.remote.session import SessionLauncher
from agentdeploy.core.config.lock import store_lock
from agentdeploy.core.config.store import ConfigStore
from agentdeploy.core.errors import ConnectivityError, StoreLockedError
from agentdeploy.core.interaction import AutoOperator, ScriptedOperator
from agentdeploy.core.persistence.state_file import load_state
from agentdeploy.core.use_cases.orchestrate import Orchestrator, RunOutcome

CLI_PROBE = "bash -lc 'command -v claude'"
WORKSPACE_PROBE = "test -d /home/claude-user/workspaces"


def _registry(channel: MockChannel, install: MockCollaborator | None = None) -> CollaboratorRegistry:
    registry = CollaboratorRegistry()
    registry.register(install or MockCollaborator("install"))
    for fix in remote_fixes(channel):
        registry.register(fix)
    return registry


def _orchestrator(
    store: ConfigStore,
    channel: MockChannel,
    tmp_path: Path,
    operator=None,
    install: MockCollaborator | None = None,
    **kwargs,
) -> Orchestrator:
    kwargs.setdefault("connect", False)
    kwargs.setdefault("readiness_attempts", 2)
    return Orchestrator(
        store,
        operator or AutoOperator(),
        channel,
        registry=_registry(channel, install),
        state_dir=tmp_path,
        sleep=lambda s: None,
        **kwargs,
    )


# ── Configuration ────────────────────────────────────────────────────


class TestIncompleteConfig:
    def test_fresh_store_stops_before_any_probe(self, env_path: Path, tmp_path: Path):
        channel = MockChannel.healthy()
        store = ConfigStore(env_path)

        result = _orchestrator(store, channel, tmp_path).run()

        assert env_path.is_file()
        assert result.outcome == RunOutcome.CONFIG_INCOMPLETE
        assert result.exit_code == 1
        assert result.missing == [
            "INFRASTRUCTURE_TYPE", "SSH_PUBLIC_KEY_PATH", "GITHUB_PAT", "ANTHROPIC_API_KEY",
        ]
        assert result.visited == ["config_incomplete"]
        assert channel.call_count == 0

    def test_guided_input_completes_store(self, complete_store: ConfigStore, tmp_path: Path):
        complete_store.set("TARGET_SERVER_IP", "YOUR_SERVER_IP_HERE")
        operator = ScriptedOperator(values={"TARGET_SERVER_IP": "192.0.2.44"})

        result = _orchestrator(complete_store, MockChannel.healthy(), tmp_path, operator).run()

        assert operator.requested == ["TARGET_SERVER_IP"]
        assert complete_store.get("TARGET_SERVER_IP") == "192.0.2.44"
        assert result.visited[:2] == ["config_incomplete", "config_complete"]
        assert result.outcome == RunOutcome.RESOLVED
        assert result.target.address == "192.0.2.44"

    def test_guided_input_abort(self, complete_store: ConfigStore, tmp_path: Path):
        complete_store.set("GITHUB_PAT", "")
        channel = MockChannel.healthy()

        result = _orchestrator(complete_store, channel, tmp_path, ScriptedOperator()).run()

        assert result.outcome == RunOutcome.ABORTED
        assert result.exit_code == 1
        assert channel.call_count == 0


class TestPrerequisites:
    def test_missing_client_stops_before_remote_calls(self, complete_store: ConfigStore, tmp_path: Path):
        channel = MockChannel.healthy(available=False)
        install = MockCollaborator("install")
        orchestrator = _orchestrator(complete_store, channel, tmp_path, install=install)

        with pytest.raises(ConnectivityError, match="mock not found"):
            orchestrator.run()

        assert channel.call_count == 0
        assert install.call_count == 0
        entries = orchestrator.audit.read_all()
        assert entries[-1].outcome == "unreachable"
        assert entries[-1].exit_code == 1

    def test_verify_checks_prerequisites(self, complete_store: ConfigStore, tmp_path: Path):
        channel = MockChannel.healthy(available=False)
        with pytest.raises(ConnectivityError):
            _orchestrator(complete_store, channel, tmp_path).verify()
        assert channel.call_count == 0

    def test_incomplete_config_reported_first(self, env_path: Path, tmp_path: Path):
        channel = MockChannel(available=False)
        result = _orchestrator(ConfigStore(env_path), channel, tmp_path).run()
        assert result.outcome == RunOutcome.CONFIG_INCOMPLETE


# ── Deployment ───────────────────────────────────────────────────────


class TestDeployedHealthy:
    def test_resolves_without_remediation(self, complete_store: ConfigStore, tmp_path: Path):
        operator = AutoOperator()
        result = _orchestrator(complete_store, MockChannel.healthy(), tmp_path, operator).run()

        assert result.outcome == RunOutcome.RESOLVED
        assert result.exit_code == 0
        assert result.visited == ["config_complete", "deployed", "healthy"]
        assert result.health.score == 100
        assert result.actions_attempted == []
        assert result.instructions[0] == "Connect: ssh claude-user@192.0.2.10"
        assert operator.questions == []

    def test_handoff_launches_session(self, complete_store: ConfigStore, tmp_path: Path):
        launched = []

        def runner(argv):
            launched.append(list(argv))
            return 0

        result = _orchestrator(
            complete_store, MockChannel.healthy(), tmp_path,
            session=SessionLauncher(runner), connect=True,
        ).run()

        assert result.session_exit_code == 0
        assert launched[0][0] == "ssh"
        assert launched[0][-1].endswith("&& claude")


class TestPartialDeployment:
    def test_completion_install_then_healthy(self, complete_store: ConfigStore, tmp_path: Path):
        channel = MockChannel.healthy()
        channel.set_failure(CLI_PROBE)
        channel.set_failure(WORKSPACE_PROBE)

        def finish_install(context):
            channel.set_output(CLI_PROBE, "/usr/local/bin/claude\n")
            channel.set_output(WORKSPACE_PROBE, "")

        install = MockCollaborator("install", on_invoke=finish_install)
        result = _orchestrator(complete_store, channel, tmp_path, install=install).run()

        assert install.call_count == 1
        assert install.call_log[0].action.name == "install-complete"
        assert install.call_log[0].action_flags == []
        assert install.call_log[0].target_address == "192.0.2.10"
        assert install.call_log[0].user_identity == "claude-user"
        assert result.visited == ["config_complete", "partial", "deployed", "healthy"]
        assert result.outcome == RunOutcome.RESOLVED
        assert result.actions_attempted == ["install-complete"]

    def test_install_that_does_not_take(self, complete_store: ConfigStore, tmp_path: Path):
        channel = MockChannel.healthy()
        channel.set_failure(WORKSPACE_PROBE)
        install = MockCollaborator("install")

        result = _orchestrator(complete_store, channel, tmp_path, install=install).run()

        assert install.call_count == 1
        assert result.visited == ["config_complete", "partial", "partial"]
        assert result.outcome == RunOutcome.MANUAL
        assert result.exit_code == 0


class TestUnreachable:
    def test_declined_install_exits_nonzero(self, complete_store: ConfigStore, tmp_path: Path):
        channel = MockChannel(unreachable=True)
        install = MockCollaborator("install")

        result = _orchestrator(complete_store, channel, tmp_path, AutoOperator(answer=False), install).run()

        assert result.visited == ["config_complete", "not_deployed"]
        assert result.outcome == RunOutcome.UNREACHABLE
        assert result.exit_code == 1
        assert install.call_count == 0

    def test_install_runs_once(self, complete_store: ConfigStore, tmp_path: Path):
        channel = MockChannel(unreachable=True)
        install = MockCollaborator("install")

        result = _orchestrator(complete_store, channel, tmp_path, install=install).run()

        assert install.call_count == 1
        assert result.dispatches[0].readiness.attempts == 2
        assert not result.dispatches[0].readiness.ready
        assert result.dispatches[-1].skipped == ["install"]
        assert result.outcome == RunOutcome.UNREACHABLE


GCLOUD_STORE = """\
INFRASTRUCTURE_TYPE="gcloud"
GOOGLE_CLOUD_PROJECT="agent-project"
GOOGLE_CLOUD_REGION="us-central1"
GOOGLE_CLOUD_ZONE="us-central1-a"
GCP_INSTANCE_STRATEGY="shared"
GCP_MACHINE_TYPE="e2-medium"
SSH_PUBLIC_KEY_PATH="/home/op/.ssh/id_ed25519.pub"
GITHUB_PAT="ghp_testtoken123"
ANTHROPIC_API_KEY="sk-ant-test"
CLAUDE_USER_NAME="claude-user"
DEPLOYMENT_MODE="production"
ENABLE_MCP_SERVER="true"
"""


class TestCloudProvisioning:
    def test_polls_the_provisioned_instance(self, env_path: Path, tmp_path: Path):
        env_path.write_text(GCLOUD_STORE, encoding="utf-8")
        store = ConfigStore(env_path)
        channel = MockChannel.healthy()
        refusals = iter([255, 255])

        def boot(target, command):
            code = next(refusals, 0)
            return ChannelResult(returncode=code, stderr="Connection refused" if code else "")

        channel.set_response("true", boot)
        install = MockCollaborator(
            "install", on_invoke=lambda context: store.set("GCP_INSTANCE_NAME", "agent-vm-1"),
        )

        result = _orchestrator(store, channel, tmp_path, install=install, readiness_attempts=5).run()

        assert install.call_log[0].target_address == ""
        readiness = result.dispatches[0].readiness
        assert readiness.ready
        assert readiness.attempts == 3
        assert result.visited == ["config_complete", "not_deployed", "deployed", "healthy"]
        assert result.target.address == "agent-vm-1"
        assert result.outcome == RunOutcome.RESOLVED
        assert {t.address for t, _ in channel.call_log} == {"agent-vm-1"}


# ── Health remediation ───────────────────────────────────────────────


def _degraded_host() -> MockChannel:
    """Agent service stopped and firewall off until the fixes run."""
    host = {"service": False, "firewall": False}
    channel = MockChannel.healthy()

    def service_state(target, command):
        if host["service"]:
            return ChannelResult(returncode=0, stdout="active\n")
        return ChannelResult(returncode=3, stdout="inactive\n")

    def firewall_state(target, command):
        return ChannelResult(returncode=0, stdout="Status: active\n" if host["firewall"] else "Status: inactive\n")

    def start_service(target, command):
        host["service"] = True
        return ChannelResult(returncode=0)

    def enable_firewall(target, command):
        host["firewall"] = True
        return ChannelResult(returncode=0, stdout="Firewall is active and enabled on system startup\n")

    channel.set_response("systemctl is-active claude-code.service", service_state)
    channel.set_response("sudo -n ufw status", firewall_state)
    channel.set_response("sudo -n systemctl start claude-code.service", start_service)
    channel.set_response("sudo -n ufw --force enable", enable_firewall)
    return channel


class TestDegradedHost:
    def test_fixes_then_reverify(self, complete_store: ConfigStore, tmp_path: Path):
        operator = AutoOperator()
        result = _orchestrator(complete_store, _degraded_host(), tmp_path, operator).run()

        assert result.visited == ["config_complete", "deployed", "degraded", "healthy"]
        assert result.dispatches[0].offered == ["service-restart", "firewall-enable"]
        assert result.actions_attempted == ["service-restart", "firewall-enable"]
        assert result.actions_failed == []
        assert "Apply fixes (service-restart, firewall-enable)?" in operator.questions
        assert "Re-verify health now?" in operator.questions
        assert result.outcome == RunOutcome.RESOLVED
        assert result.health.score == 100

    def test_reverify_declined(self, complete_store: ConfigStore, tmp_path: Path):
        operator = ScriptedOperator(answers=[True, False])
        result = _orchestrator(complete_store, _degraded_host(), tmp_path, operator).run()

        assert result.visited == ["config_complete", "deployed", "degraded"]
        assert result.outcome == RunOutcome.MANUAL
        assert result.exit_code == 0

    def test_fix_that_does_not_take_is_not_repeated(self, complete_store: ConfigStore, tmp_path: Path):
        channel = MockChannel.healthy()
        channel.set_output("sudo -n ufw status", "Status: inactive\n")

        result = _orchestrator(complete_store, channel, tmp_path).run()

        assert channel.commands.count("sudo -n ufw --force enable") == 1
        assert result.visited == ["config_complete", "deployed", "degraded", "degraded"]
        assert result.dispatches[-1].skipped == ["firewall-enable"]
        assert result.outcome == RunOutcome.MANUAL


class TestVerify:
    def test_verify_healthy(self, complete_store: ConfigStore, tmp_path: Path):
        result = _orchestrator(complete_store, MockChannel.healthy(), tmp_path).verify()
        assert result.operation == "verify"
        assert result.outcome == RunOutcome.RESOLVED
        assert result.instructions == []

    def test_verify_not_deployed(self, complete_store: ConfigStore, tmp_path: Path):
        channel = MockChannel.healthy()
        channel.set_failure("systemctl list-unit-files")
        channel.set_failure(WORKSPACE_PROBE)

        result = _orchestrator(complete_store, channel, tmp_path).verify()

        assert result.deployment.status.value == "partial"
        assert result.outcome == RunOutcome.MANUAL
        assert result.actions_attempted == []


# ── Concurrency and persistence ──────────────────────────────────────


class TestLockAndPersistence:
    def test_held_lock_rejects_second_run(self, complete_store: ConfigStore, tmp_path: Path):
        channel = MockChannel.healthy()
        with store_lock(complete_store.path):
            with pytest.raises(StoreLockedError):
                _orchestrator(complete_store, channel, tmp_path).run()
        assert channel.call_count == 0

    def test_state_and_audit_written(self, complete_store: ConfigStore, tmp_path: Path):
        orchestrator = _orchestrator(complete_store, MockChannel.healthy(), tmp_path)
        result = orchestrator.run()

        state = load_state(orchestrator.state_path)
        assert state.target == "claude-user@192.0.2.10"
        assert state.deployment_status == "deployed"
        assert state.health_status == "healthy"
        assert state.health_score == 100
        assert state.last_run.run_id == result.run_id
        assert state.last_run.outcome == "resolved"

        entries = orchestrator.audit.read_all()
        assert len(entries) == 1
        assert entries[0].operation_type == "run"
        assert entries[0].context["visited"] == result.visited

    def test_incomplete_run_is_audited(self, env_path: Path, tmp_path: Path):
        orchestrator = _orchestrator(ConfigStore(env_path), MockChannel(), tmp_path)
        orchestrator.run()

        lines = orchestrator.audit.path.read_text(encoding="utf-8").splitlines()
        entry = json.loads(lines[-1])
        assert entry["outcome"] == "config_incomplete"
        assert entry["exit_code"] == 1
        assert "INFRASTRUCTURE_TYPE" in entry["context"]["missing"]
