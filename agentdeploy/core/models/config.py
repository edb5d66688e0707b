"""
Configuration models — entries, requirements and run snapshots.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from agentdeploy.core.errors import ConfigError


class ConfigEntry(BaseModel):
    """A single KEY="VALUE" line as seen through the store."""

    key: str
    value: str = ""
    is_placeholder: bool = False

    @property
    def is_set(self) -> bool:
        """Non-empty and not the documented "fill this in" value."""
        return bool(self.value) and not self.is_placeholder


class RequiredVariable(BaseModel):
    """A key that must be resolved before deployment can proceed."""

    key: str
    placeholder: str | None = None
    description: str = ""
    choices: list[str] = Field(default_factory=list)
    secret: bool = False


class ConfigSnapshot(BaseModel):
    """Immutable view of the store taken at a checkpoint.

    The orchestrator takes one at the start of a run and re-takes it
    only after guided input or remediation. Everything downstream
    reads from the snapshot, never from the file.
    """

    model_config = ConfigDict(frozen=True)

    values: dict[str, str] = Field(default_factory=dict)
    placeholders: dict[str, str] = Field(default_factory=dict)
    source: str = ""

    def get(self, key: str, default: str = "") -> str:
        """Value for ``key``; ``default`` when absent or empty."""
        value = self.values.get(key, "")
        return value if value else default

    def is_placeholder(self, key: str) -> bool:
        sentinel = self.placeholders.get(key)
        return sentinel is not None and self.values.get(key, "") == sentinel

    def resolved(self, key: str, default: str = "") -> str:
        """Like get(), but a placeholder value counts as unset."""
        if self.is_placeholder(key):
            return default
        return self.get(key, default)

    def require(self, key: str) -> str:
        """Resolved value or ConfigError."""
        value = self.resolved(key)
        if not value:
            raise ConfigError(f"Required variable '{key}' is not set", missing=[key])
        return value

    def flag(self, key: str, default: bool = False) -> bool:
        """Interpret a true/false style value."""
        raw = self.get(key)
        if not raw:
            return default
        return raw.strip().lower() in ("1", "true", "yes", "y", "on")
