"""
Readiness poll — wait for a freshly installed host to answer.

The only retry loop in the tool. Bounded: a fixed number of attempts,
a fixed pause between them, each attempt with its own timeout.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from agentdeploy.core.models.target import RemoteCommand, Target
from agentdeploy.core.probes.remote_probe import RemoteProbe

logger = logging.getLogger(__name__)

READINESS_TIMEOUT = 30
READINESS_ATTEMPTS = 10
READINESS_INTERVAL = 6


@dataclass
class ReadinessResult:
    ready: bool
    attempts: int
    last_error: str | None = None

    def to_dict(self) -> dict:
        return {"ready": self.ready, "attempts": self.attempts, "last_error": self.last_error}


def wait_until_ready(
    probe: RemoteProbe,
    target: Target,
    attempts: int = READINESS_ATTEMPTS,
    interval: float = READINESS_INTERVAL,
    timeout: float = READINESS_TIMEOUT,
    sleep: Callable[[float], None] = time.sleep,
) -> ReadinessResult:
    """Poll a no-op until it succeeds or ``attempts`` run out."""
    if not target.is_addressable:
        return ReadinessResult(ready=False, attempts=0, last_error="Target address is not set")

    last_error: str | None = None
    for attempt in range(1, attempts + 1):
        result = probe.run(target, RemoteCommand.of("true"), timeout=timeout, check_name="readiness")
        if result.succeeded:
            logger.info("%s ready after %d attempt(s)", target.login(), attempt)
            return ReadinessResult(ready=True, attempts=attempt)

        last_error = result.error
        logger.debug("Readiness attempt %d/%d failed: %s", attempt, attempts, last_error)
        if attempt < attempts:
            sleep(interval)

    logger.warning("%s not ready after %d attempts", target.login(), attempts)
    return ReadinessResult(ready=False, attempts=attempts, last_error=last_error)
