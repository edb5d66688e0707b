"""agentdeploy — deploy, verify and repair a remote agent service host."""

__version__ = "0.1.0"
