"""
Required-variable catalog — which keys a target kind needs.

The catalog lives in ``core/data/catalogs/requirements.yml``. The
selector key (INFRASTRUCTURE_TYPE) decides which kind-specific set is
added on top of the base set; until it is chosen, only the selector
and the base set are required.
"""

from __future__ import annotations

import logging

from agentdeploy.core.data import get_registry
from agentdeploy.core.models.config import ConfigSnapshot, RequiredVariable

logger = logging.getLogger(__name__)

SELECTOR_KEY = "INFRASTRUCTURE_TYPE"


def _parse(entries: list[dict] | None) -> list[RequiredVariable]:
    return [RequiredVariable.model_validate(e) for e in entries or []]


def selector() -> RequiredVariable:
    """The infrastructure-choice variable."""
    raw = get_registry().requirements.get("selector") or {"key": SELECTOR_KEY}
    return RequiredVariable.model_validate(raw)


def known_kinds() -> list[str]:
    return list(get_registry().requirements.get("kinds", {}).keys())


def required_for(kind: str | None) -> list[RequiredVariable]:
    """Required variables for an infrastructure kind.

    Unknown or unset kinds get the selector plus the base set, so the
    operator is asked to pick a kind before anything kind-specific.
    """
    catalog = get_registry().requirements
    kinds = catalog.get("kinds", {})
    required = [selector(), *_parse(catalog.get("base"))]

    if kind in kinds:
        required.extend(_parse(kinds[kind]))
    else:
        logger.debug("No infrastructure kind selected (%r)", kind)

    return required


def required_for_snapshot(snapshot: ConfigSnapshot) -> list[RequiredVariable]:
    """Required set for whatever kind the snapshot currently selects."""
    return required_for(snapshot.resolved(SELECTOR_KEY) or None)


def placeholder_map() -> dict[str, str]:
    """Every sentinel the catalog documents, keyed by variable."""
    catalog = get_registry().requirements
    entries = [selector(), *_parse(catalog.get("base"))]
    for kind_entries in catalog.get("kinds", {}).values():
        entries.extend(_parse(kind_entries))
    return {e.key: e.placeholder for e in entries if e.placeholder}
