"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from agentdeploy.adapters.mock import MockChannel
from agentdeploy.core.config.store import ConfigStore
from agentdeploy.core.models.target import Target

COMPLETE_STORE = """\
# test store
INFRASTRUCTURE_TYPE="home-server"
TARGET_SERVER_IP="192.0.2.10"
SSH_PUBLIC_KEY_PATH="/home/op/.ssh/id_ed25519.pub"
GITHUB_PAT="ghp_testtoken123"
ANTHROPIC_API_KEY="sk-ant-test"
CLAUDE_USER_NAME="claude-user"
DEPLOYMENT_MODE="production"
ENABLE_MCP_SERVER="true"
"""


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def env_path(tmp_path: Path) -> Path:
    """Path of a store that does not exist yet."""
    return tmp_path / ".env"


@pytest.fixture
def complete_store(env_path: Path) -> ConfigStore:
    """A home-server store with every required key filled in."""
    env_path.write_text(COMPLETE_STORE, encoding="utf-8")
    return ConfigStore(env_path)


@pytest.fixture
def target() -> Target:
    return Target(address="192.0.2.10", user="claude-user")


@pytest.fixture
def healthy_channel() -> MockChannel:
    return MockChannel.healthy()
