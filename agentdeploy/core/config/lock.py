"""
Advisory lock for a config store path.

One orchestrator run per store at a time. The lock is an exclusive,
non-blocking ``flock`` on ``<store>.lock``; a second run fails fast
with StoreLockedError instead of racing on the store file.
"""

from __future__ import annotations

import fcntl
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from agentdeploy.core.errors import StoreLockedError

logger = logging.getLogger(__name__)


def lock_path_for(store_path: Path) -> Path:
    return store_path.with_name(store_path.name + ".lock")


@contextmanager
def store_lock(store_path: Path) -> Iterator[Path]:
    """Hold the advisory lock for ``store_path`` for the block's duration.

    Raises:
        StoreLockedError: Another process holds the lock.
    """
    path = lock_path_for(store_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    lock_file = path.open("a+", encoding="utf-8")
    try:
        try:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            raise StoreLockedError(
                f"Another agentdeploy run is using {store_path} (lock: {path})"
            ) from e

        lock_file.seek(0)
        lock_file.truncate()
        lock_file.write(f"{os.getpid()}\n")
        lock_file.flush()
        logger.debug("Acquired store lock %s", path)
        try:
            yield path
        finally:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
            logger.debug("Released store lock %s", path)
    finally:
        lock_file.close()
