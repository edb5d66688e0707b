"""
Central data registry for static catalogs and packaged resources.

Loads catalogs from ``agentdeploy/core/data/catalogs/`` once at first
access and caches them for the process lifetime.

Usage::

    from agentdeploy.core.data import get_registry

    registry = get_registry()
    catalog = registry.requirements     # dict parsed from requirements.yml
    template = registry.env_template    # Path to the packaged .env template
"""

from __future__ import annotations

import logging
from functools import cached_property
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent

ENV_TEMPLATE_NAME = "env.template"


def _load_yaml(relative_path: str) -> dict:
    """Load a YAML mapping relative to the data directory."""
    path = _DATA_DIR / relative_path
    if not path.exists():
        logger.warning("Data file not found: %s", path)
        return {}
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        logger.warning("Expected a YAML mapping in %s, got %s", path, type(data).__name__)
        return {}
    return data


class DataRegistry:
    """Registry for the packaged catalogs.

    Each property lazily loads its file on first access and caches
    the result for the lifetime of the instance.
    """

    @cached_property
    def requirements(self) -> dict:
        """Required-variable catalog (selector, base set, per-kind sets)."""
        data = _load_yaml("catalogs/requirements.yml")
        logger.debug("Loaded requirement catalog with %d kinds", len(data.get("kinds", {})))
        return data

    @property
    def env_template(self) -> Path:
        """Packaged template used to initialize a missing store."""
        return _DATA_DIR / ENV_TEMPLATE_NAME


_registry: DataRegistry | None = None


def get_registry() -> DataRegistry:
    """Process-wide registry instance."""
    global _registry
    if _registry is None:
        _registry = DataRegistry()
    return _registry
