"""
Logging configuration — one call from main.py at startup.

Console level: CLI flag, then AGENTDEPLOY_LOG_LEVEL, then WARNING.
AGENTDEPLOY_LOG_FILE adds a file handler that records everything at
DEBUG, whatever the console shows.
"""

from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV = "AGENTDEPLOY_LOG_LEVEL"
LOG_FILE_ENV = "AGENTDEPLOY_LOG_FILE"

_DETAILED = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"

# Console format per level; WARNING and above print the bare message
_CONSOLE_FORMATS = {
    logging.DEBUG: (_DETAILED, "%H:%M:%S"),
    logging.INFO: ("%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
}


def resolve_level(verbose: bool = False, quiet: bool = False, debug: bool = False) -> str:
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(LOG_LEVEL_ENV, "WARNING")


def setup_logging(level: str = "WARNING", log_file: str | None = None) -> None:
    """Replace the root handlers with a stderr handler and an optional file."""
    console_level = getattr(logging, level.upper(), None)
    if not isinstance(console_level, int):
        console_level = logging.WARNING

    fmt, datefmt = _CONSOLE_FORMATS.get(console_level, ("%(message)s", None))
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root.setLevel(console_level)

    log_file = log_file or os.environ.get(LOG_FILE_ENV)
    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_DETAILED, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(fh)
        root.setLevel(logging.DEBUG)
