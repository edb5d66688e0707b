"""Remote adapters — ssh/gcloud channels, fixes, session handoff."""

from agentdeploy.adapters.remote.fixes import RemoteFixCollaborator, remote_fixes
from agentdeploy.adapters.remote.session import SessionLauncher
from agentdeploy.adapters.remote.ssh import GcloudChannel, KindRoutedChannel, SshChannel

__all__ = [
    "GcloudChannel",
    "KindRoutedChannel",
    "RemoteFixCollaborator",
    "SessionLauncher",
    "SshChannel",
    "remote_fixes",
]
