"""
Config store — placeholder-aware KEY="VALUE" file.

The store is the only persisted operator configuration. It is a plain
line-oriented file (``.env`` by default):

    # comment lines are ignored for matching
    TARGET_SERVER_IP="YOUR_SERVER_IP_HERE"
    export DEPLOYMENT_MODE=production

A freshly initialized store is a copy of the template, whose values
are documented placeholders. ``validate_required`` treats a key that
still holds its placeholder exactly like a key that was never set.

Writes are atomic (temp file + rename). One writer per path at a time;
the orchestrator enforces that with ``config.lock``.
"""

from __future__ import annotations

import logging
import re
import shutil
import tempfile
from collections.abc import Iterable
from pathlib import Path

from agentdeploy.core.errors import StoreInitError
from agentdeploy.core.models.config import ConfigEntry, ConfigSnapshot, RequiredVariable

logger = logging.getLogger(__name__)

DEFAULT_STORE_FILE = ".env"
LOCAL_TEMPLATE_FILE = ".env.template"

_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_LINE_RE = re.compile(r"^\s*(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*=(.*)$")
_COMMENT_RE = re.compile(r"^\s*#")


def _unquote(raw: str) -> str:
    """Strip outer whitespace and one pair of surrounding quotes.

    Whitespace inside the quotes is part of the value.
    """
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        inner = value[1:-1]
        if value[0] == '"':
            inner = re.sub(r'\\(["\\])', r"\1", inner)
        return inner
    return value


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _match(line: str) -> tuple[str, str] | None:
    """(key, raw_value) for an uncommented assignment line."""
    if _COMMENT_RE.match(line):
        return None
    m = _LINE_RE.match(line)
    if m is None:
        return None
    return m.group(1), m.group(2)


class ConfigStore:
    """Persistent key/value configuration with placeholder semantics.

    Args:
        path: Store file (default: ``.env`` in the working directory).
        template: Explicit template to initialize from. When omitted, a
            ``.env.template`` beside the store wins over the packaged one.
        placeholders: Sentinel value per key. Defaults to every sentinel
            documented in the requirement catalog.
    """

    def __init__(
        self,
        path: Path | str = DEFAULT_STORE_FILE,
        template: Path | str | None = None,
        placeholders: dict[str, str] | None = None,
    ):
        self._path = Path(path)
        self._template = Path(template) if template is not None else None
        if placeholders is None:
            from agentdeploy.core.config.requirements import placeholder_map

            placeholders = placeholder_map()
        self._placeholders: dict[str, str] = dict(placeholders)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def placeholders(self) -> dict[str, str]:
        return dict(self._placeholders)

    def exists(self) -> bool:
        return self._path.is_file()

    def register_placeholder(self, key: str, sentinel: str) -> None:
        """Register the "fill this in" literal for ``key``."""
        self._placeholders[key] = sentinel

    # ── Initialization ──────────────────────────────────────────

    def _template_candidates(self) -> list[Path]:
        if self._template is not None:
            return [self._template]
        from agentdeploy.core.data import get_registry

        return [self._path.with_name(LOCAL_TEMPLATE_FILE), get_registry().env_template]

    def ensure(self) -> bool:
        """Make sure the store exists, copying the template if needed.

        Returns:
            True if the store was created from a template, False if it
            already existed.

        Raises:
            StoreInitError: No store and no template to create one from.
        """
        if self.exists():
            return False

        for candidate in self._template_candidates():
            if candidate.is_file():
                self._path.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(candidate, self._path)
                logger.info("Initialized %s from %s", self._path, candidate)
                return True

        raise StoreInitError(
            f"{self._path} does not exist and no template is available to create it"
        )

    # ── Reads ───────────────────────────────────────────────────

    def _read_lines(self) -> list[str]:
        if not self.exists():
            return []
        try:
            return self._path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.warning("Cannot read %s: %s", self._path, e)
            return []

    def _values(self) -> dict[str, str]:
        """First uncommented value per key, in file order."""
        values: dict[str, str] = {}
        for line in self._read_lines():
            parsed = _match(line)
            if parsed is None:
                continue
            key, raw = parsed
            if key not in values:
                values[key] = _unquote(raw)
        return values

    def get(self, key: str, default: str = "") -> str:
        """Value of ``key``; ``default`` when absent, empty or no store.

        Never raises.
        """
        value = self._values().get(key, "")
        return value if value else default

    def is_placeholder(self, key: str, value: str | None = None) -> bool:
        sentinel = self._placeholders.get(key)
        if sentinel is None:
            return False
        current = self.get(key) if value is None else value
        return current == sentinel

    def entries(self) -> list[ConfigEntry]:
        """Every uncommented entry with its placeholder flag."""
        return [
            ConfigEntry(key=k, value=v, is_placeholder=self.is_placeholder(k, v))
            for k, v in self._values().items()
        ]

    def snapshot(self) -> ConfigSnapshot:
        """Immutable copy of the current values."""
        return ConfigSnapshot(
            values=self._values(),
            placeholders=dict(self._placeholders),
            source=str(self._path),
        )

    # ── Writes ──────────────────────────────────────────────────

    def set(self, key: str, value: str) -> None:
        """Upsert ``key``.

        The first uncommented occurrence is replaced in place and any
        later uncommented duplicates are dropped. Keys that are absent
        or only present in commented form are appended.
        """
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid config key: {key!r}")
        if "\n" in value or "\r" in value:
            raise ValueError(f"Config value for {key} must be a single line")

        new_line = f"{key}={_quote(value)}"
        lines = self._read_lines()
        out: list[str] = []
        replaced = False

        for line in lines:
            parsed = _match(line)
            if parsed is not None and parsed[0] == key:
                if not replaced:
                    out.append(new_line)
                    replaced = True
                continue
            out.append(line)

        if not replaced:
            out.append(new_line)

        self._write(out)
        logger.debug("Set %s in %s (%s)", key, self._path, "replaced" if replaced else "appended")

    def update(self, values: dict[str, str]) -> None:
        for key, value in values.items():
            self.set(key, value)

    def _write(self, lines: Iterable[str]) -> None:
        content = "\n".join(lines) + "\n"
        self._path.parent.mkdir(parents=True, exist_ok=True)
        _fd, tmp_path = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=".env_",
            suffix=".tmp",
        )
        tmp = Path(tmp_path)
        try:
            with open(_fd, "w", encoding="utf-8") as f:
                f.write(content)
            if self.exists():
                shutil.copymode(self._path, tmp)
            tmp.replace(self._path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise

    # ── Validation ──────────────────────────────────────────────

    def validate_required(
        self,
        requirements: Iterable[RequiredVariable],
    ) -> tuple[bool, list[str]]:
        """Check that every requirement holds a real value.

        A requirement fails when its value is empty or equals its
        placeholder sentinel (the requirement's own, else the one
        registered on the store).

        Returns:
            (ok, missing_keys) — missing_keys lists empty and
            placeholder keys alike, in requirement order.
        """
        values = self._values()
        missing: list[str] = []

        for req in requirements:
            value = values.get(req.key, "")
            sentinel = req.placeholder or self._placeholders.get(req.key)
            if not value:
                logger.info("Required variable '%s' is not set in %s", req.key, self._path)
                missing.append(req.key)
            elif sentinel is not None and value == sentinel:
                logger.info(
                    "Required variable '%s' in %s still holds its placeholder",
                    req.key,
                    self._path,
                )
                missing.append(req.key)

        return not missing, missing
