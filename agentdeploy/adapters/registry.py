"""
Collaborator registry — central dispatch for remediation actions.

The registry is the single point of collaborator management. It handles
registration, lookup, mock mode, and invocation. The dispatcher never
talks to collaborators directly — always through the registry.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from agentdeploy.adapters.base import Collaborator, InvocationContext
from agentdeploy.core.models.action import Receipt, RemediationAction
from agentdeploy.core.models.config import ConfigSnapshot
from agentdeploy.core.models.target import Target

logger = logging.getLogger(__name__)


class CollaboratorRegistry:
    """Central registry and dispatcher for collaborators.

    Features:
        - Register/unregister collaborators by name
        - Mock mode: answer every action with a mock that always succeeds
        - Invoke actions through the matching collaborator
        - Query which fixes are available on this machine
    """

    def __init__(self, mock_mode: bool = False):
        self._collaborators: dict[str, Collaborator] = {}
        self._mock_mode = mock_mode
        self._mock_collaborator: Collaborator | None = None

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def set_mock_mode(self, enabled: bool, mock_collaborator: Collaborator | None = None) -> None:
        """Enable or disable mock mode.

        Args:
            enabled: Whether to use mock mode.
            mock_collaborator: Optional custom mock. If None, actions
                succeed without running anything.
        """
        self._mock_mode = enabled
        self._mock_collaborator = mock_collaborator

    def register(self, collaborator: Collaborator, name: str | None = None) -> None:
        """Register a collaborator under ``name`` (default: its own name)."""
        key = name or collaborator.name
        if key in self._collaborators:
            logger.warning("Overwriting existing collaborator: %s", key)
        self._collaborators[key] = collaborator
        logger.debug("Registered collaborator: %s", key)

    def unregister(self, name: str) -> None:
        self._collaborators.pop(name, None)

    def get(self, name: str) -> Collaborator | None:
        return self._collaborators.get(name)

    def list_collaborators(self) -> list[str]:
        return list(self._collaborators.keys())

    def available(self) -> set[str]:
        """Names of collaborators that can run here (all of them in mock mode)."""
        if self._mock_mode:
            return set(self._collaborators)
        names = set()
        for name, collaborator in self._collaborators.items():
            try:
                if collaborator.is_available():
                    names.add(name)
            except Exception as e:
                logger.debug("Availability check for %s raised: %s", name, e)
        return names

    def collaborator_status(self) -> dict[str, dict[str, Any]]:
        """Availability status of all registered collaborators."""
        status = {}
        for name, collaborator in self._collaborators.items():
            try:
                available = collaborator.is_available()
            except Exception:
                available = False
            status[name] = {
                "name": name,
                "available": available,
                "type": collaborator.__class__.__name__,
            }
        return status

    def invoke(
        self,
        action: RemediationAction,
        target: Target,
        snapshot: ConfigSnapshot | None = None,
        working_dir: str = ".",
        dry_run: bool = False,
    ) -> Receipt:
        """Invoke an action through its collaborator.

        This is the main dispatch method. It:
        1. Resolves the collaborator (or mock)
        2. Builds the invocation context
        3. Validates the action
        4. Invokes (or dry-runs)
        5. Returns a Receipt (never raises)
        """
        start_time = time.monotonic()

        context = InvocationContext(
            action=action,
            target=target,
            snapshot=snapshot or ConfigSnapshot(),
            working_dir=working_dir,
            dry_run=dry_run,
        )

        collaborator: Collaborator | None = None
        if self._mock_mode and self._mock_collaborator:
            collaborator = self._mock_collaborator
        elif self._mock_mode:
            return Receipt.success(
                collaborator=action.collaborator,
                action=action.name,
                output=f"[mock] {action.collaborator}:{action.name} executed",
                return_code=0,
                metadata={"mock": True, "dry_run": dry_run},
            )
        else:
            collaborator = self._collaborators.get(action.collaborator)

        if collaborator is None:
            return Receipt.failure(
                collaborator=action.collaborator,
                action=action.name,
                error=f"No collaborator registered for '{action.collaborator}'",
            )

        try:
            is_valid, error_msg = collaborator.validate(context)
            if not is_valid:
                return Receipt.failure(
                    collaborator=action.collaborator,
                    action=action.name,
                    error=f"Validation failed: {error_msg}",
                )
        except Exception as e:
            return Receipt.failure(
                collaborator=action.collaborator,
                action=action.name,
                error=f"Validation error: {e}",
            )

        if dry_run:
            return Receipt.skip(
                collaborator=action.collaborator,
                action=action.name,
                reason=f"[dry-run] Would invoke {action.collaborator}:{action.name}",
                metadata={"dry_run": True},
            )

        logger.info("Invoking %s for %s", action.collaborator, target.describe())
        try:
            receipt = collaborator.invoke(context)
        except Exception as e:
            logger.error("Collaborator %s raised during invocation: %s", action.collaborator, e)
            receipt = Receipt.failure(
                collaborator=action.collaborator,
                action=action.name,
                error=f"Unexpected error: {e}",
            )

        receipt.duration_ms = int((time.monotonic() - start_time) * 1000)
        return receipt
