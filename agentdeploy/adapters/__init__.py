"""Adapters — channels and collaborators for the outside world.

Public re-exports for convenient access.
"""

from agentdeploy.adapters.base import ChannelResult, Collaborator, InvocationContext, RemoteChannel
from agentdeploy.adapters.mock import MockChannel, MockCollaborator
from agentdeploy.adapters.registry import CollaboratorRegistry

__all__ = [
    "ChannelResult",
    "Collaborator",
    "CollaboratorRegistry",
    "InvocationContext",
    "MockChannel",
    "MockCollaborator",
    "RemoteChannel",
]
