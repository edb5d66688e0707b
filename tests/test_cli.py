"""
Tests for CLI commands — config, run, status, health, history, doctor.
"""

import json
import shutil
from pathlib import Path

from click.testing import CliRunner

from agentdeploy.core.config.store import ConfigStore
from agentdeploy.main import cli


def _invoke(store_path: Path, *args: str, input: str | None = None):
    runner = CliRunner()
    return runner.invoke(cli, ["--env-file", str(store_path), *args], input=input)


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "agentdeploy" in result.output
        assert "run" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestConfigCommands:
    def test_init_creates_store(self, env_path: Path):
        result = _invoke(env_path, "config", "init")
        assert result.exit_code == 0
        assert "Created" in result.output
        assert 'TARGET_SERVER_IP="YOUR_SERVER_IP_HERE"' in env_path.read_text()

    def test_init_leaves_existing_store(self, complete_store: ConfigStore):
        before = complete_store.path.read_text()
        result = _invoke(complete_store.path, "config", "init")
        assert result.exit_code == 0
        assert "already exists" in result.output
        assert complete_store.path.read_text() == before

    def test_check_fresh_store(self, env_path: Path):
        _invoke(env_path, "config", "init")
        result = _invoke(env_path, "config", "check")
        assert result.exit_code == 1
        assert "INFRASTRUCTURE_TYPE is still a placeholder" in result.output

    def test_check_complete_store_json(self, complete_store: ConfigStore):
        result = _invoke(complete_store.path, "config", "check", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["valid"] is True
        assert data["infrastructure_type"] == "home-server"
        # The key file in the fixture does not exist locally
        assert any("SSH_PUBLIC_KEY_PATH" in w for w in data["warnings"])

    def test_check_bad_choice(self, complete_store: ConfigStore):
        complete_store.set("DEPLOYMENT_MODE", "yolo")
        result = _invoke(complete_store.path, "config", "check")
        assert result.exit_code == 1
        assert "DEPLOYMENT_MODE must be one of" in result.output

    def test_get_and_set(self, complete_store: ConfigStore):
        result = _invoke(complete_store.path, "config", "get", "TARGET_SERVER_IP")
        assert result.exit_code == 0
        assert result.output.strip() == "192.0.2.10"

        result = _invoke(complete_store.path, "config", "set", "TARGET_SERVER_IP", "198.51.100.7")
        assert result.exit_code == 0
        assert complete_store.get("TARGET_SERVER_IP") == "198.51.100.7"

    def test_get_unset_key(self, complete_store: ConfigStore):
        result = _invoke(complete_store.path, "config", "get", "GCP_INSTANCE_NAME")
        assert result.exit_code == 1

    def test_set_invalid_key(self, complete_store: ConfigStore):
        result = _invoke(complete_store.path, "config", "set", "NOT-A-KEY", "x")
        assert result.exit_code == 1

    def test_list_masks_secrets(self, complete_store: ConfigStore):
        result = _invoke(complete_store.path, "config", "list", "--json")
        assert result.exit_code == 0
        values = {e["key"]: e["value"] for e in json.loads(result.stdout)}
        assert values["GITHUB_PAT"] != "ghp_testtoken123"
        assert values["TARGET_SERVER_IP"] == "192.0.2.10"

        result = _invoke(complete_store.path, "config", "list", "--show-secrets")
        assert "ghp_testtoken123" in result.output


class TestRunCommand:
    def test_mock_run_resolves(self, complete_store: ConfigStore):
        result = _invoke(complete_store.path, "run", "--mock", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["outcome"] == "resolved"
        assert data["visited"] == ["config_complete", "deployed", "healthy"]
        assert data["health"]["score"] == 100

    def test_mock_run_human_output(self, complete_store: ConfigStore):
        result = _invoke(complete_store.path, "run", "--mock")
        assert result.exit_code == 0
        assert "Resolved" in result.output
        assert "Connect: ssh claude-user@192.0.2.10" in result.output

    def test_incomplete_config_without_input(self, env_path: Path):
        result = _invoke(env_path, "run", "--mock", "--no-input")
        assert result.exit_code == 1
        assert "Missing" in result.output
        assert env_path.is_file()

    def test_guided_input_from_prompt(self, complete_store: ConfigStore):
        complete_store.set("TARGET_SERVER_IP", "YOUR_SERVER_IP_HERE")
        result = _invoke(complete_store.path, "run", "--mock", "--yes", input="192.0.2.77\n")
        assert result.exit_code == 0
        assert complete_store.get("TARGET_SERVER_IP") == "192.0.2.77"

    def test_verify_mock(self, complete_store: ConfigStore):
        result = _invoke(complete_store.path, "verify", "--mock", "--json")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["operation"] == "verify"


class TestStatusCommands:
    def test_status_mock_json(self, complete_store: ConfigStore):
        result = _invoke(complete_store.path, "status", "--mock", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["deployment"]["status"] == "deployed"
        assert data["health"]["score"] == 100
        assert data["missing_config"] == []

    def test_status_missing_store(self, env_path: Path):
        result = _invoke(env_path, "status", "--mock")
        assert result.exit_code == 1
        assert "config init" in result.output

    def test_status_last_without_runs(self, complete_store: ConfigStore):
        result = _invoke(complete_store.path, "status", "--last")
        assert result.exit_code == 1

    def test_status_last_after_run(self, complete_store: ConfigStore):
        _invoke(complete_store.path, "run", "--mock", "--json")
        result = _invoke(complete_store.path, "status", "--last")
        assert result.exit_code == 0
        assert "claude-user@192.0.2.10" in result.output
        assert "resolved" in result.output

    def test_health_mock(self, complete_store: ConfigStore):
        result = _invoke(complete_store.path, "health", "--mock")
        assert result.exit_code == 0
        assert "HEALTHY (100%)" in result.output
        assert "cli_version: 1.0.0 (mock)" in result.output

    def test_health_without_address(self, complete_store: ConfigStore):
        complete_store.set("TARGET_SERVER_IP", "")
        result = _invoke(complete_store.path, "health", "--mock")
        assert result.exit_code == 1

    def test_history(self, complete_store: ConfigStore):
        _invoke(complete_store.path, "run", "--mock", "--json")
        _invoke(complete_store.path, "verify", "--mock", "--json")

        result = _invoke(complete_store.path, "history", "--json")
        assert result.exit_code == 0
        entries = json.loads(result.stdout)
        assert [e["operation_type"] for e in entries] == ["run", "verify"]

    def test_history_empty(self, complete_store: ConfigStore):
        result = _invoke(complete_store.path, "history")
        assert result.exit_code == 0
        assert "No runs recorded" in result.output

    def test_connect_print(self, complete_store: ConfigStore):
        result = _invoke(complete_store.path, "connect", "--print")
        assert result.exit_code == 0
        assert "Connect: ssh claude-user@192.0.2.10" in result.output
        assert "cd /home/claude-user/workspaces/sample-project && claude" in result.output


class TestDoctorCommand:
    def test_all_tools_present(self, complete_store: ConfigStore, monkeypatch):
        monkeypatch.setattr(shutil, "which", lambda name: f"/usr/bin/{name}")
        result = _invoke(complete_store.path, "doctor", "--json")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["ok"] is True
        assert data["kind"] == "home-server"
        assert [t["name"] for t in data["tools"]] == ["ssh", "git", "gh"]

    def test_missing_client_exits_nonzero(self, complete_store: ConfigStore, monkeypatch):
        monkeypatch.setattr(shutil, "which", lambda name: None)
        result = _invoke(complete_store.path, "doctor")

        assert result.exit_code == 1
        assert "✗ ssh" in result.output
        assert "(required)" in result.output
        assert "(optional)" in result.output

    def test_gcloud_store_needs_gcloud(self, complete_store: ConfigStore, monkeypatch):
        complete_store.set("INFRASTRUCTURE_TYPE", "gcloud")
        monkeypatch.setattr(shutil, "which", lambda name: None if name == "gcloud" else f"/usr/bin/{name}")
        result = _invoke(complete_store.path, "doctor", "--json")

        assert result.exit_code == 1
        assert json.loads(result.stdout)["tools"][0]["name"] == "gcloud"

    def test_run_without_client_fails(self, complete_store: ConfigStore, monkeypatch):
        monkeypatch.setattr(shutil, "which", lambda name: None)
        result = _invoke(complete_store.path, "run", "--yes", "--no-input", "--no-connect")

        assert result.exit_code == 1
        assert "ssh not found" in result.output
