"""
Config check use case — validate the store and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from agentdeploy.core.config.requirements import SELECTOR_KEY, known_kinds, required_for_snapshot
from agentdeploy.core.config.store import ConfigStore


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    store_path: Path | None = None
    infrastructure_type: str | None = None
    missing: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "store_path": str(self.store_path) if self.store_path else None,
            "infrastructure_type": self.infrastructure_type,
            "missing": self.missing,
            "errors": self.errors,
            "warnings": self.warnings,
        }


def check_config(store: ConfigStore) -> ConfigCheckResult:
    """Validate the config store against the required-variable catalog."""
    result = ConfigCheckResult(store_path=store.path)

    if not store.exists():
        result.errors.append(f"No config store at {store.path}")
        return result

    snapshot = store.snapshot()
    kind = snapshot.resolved(SELECTOR_KEY) or None
    result.infrastructure_type = kind
    if kind is not None and kind not in known_kinds():
        result.errors.append(
            f"{SELECTOR_KEY} must be one of: {', '.join(known_kinds())} (got '{kind}')"
        )

    requirements = required_for_snapshot(snapshot)
    _, result.missing = store.validate_required(requirements)
    for key in result.missing:
        state = "still a placeholder" if snapshot.is_placeholder(key) else "not set"
        result.errors.append(f"{key} is {state}")

    # Closed choices
    for req in requirements:
        value = snapshot.resolved(req.key)
        if req.key == SELECTOR_KEY or not value or not req.choices:
            continue
        if value not in req.choices:
            result.errors.append(f"{req.key} must be one of: {', '.join(req.choices)} (got '{value}')")

    # Local files the installer will read
    for key in ("SSH_PUBLIC_KEY_PATH", "SSH_KEY_PATH"):
        value = snapshot.resolved(key)
        if value and not Path(value).expanduser().is_file():
            result.warnings.append(f"{key} points to a missing file: {value}")

    result.valid = not result.errors
    return result
