"""Workspace registry: the current root plus a bounded list of recent roots.

The registry is the single owner of the workspace root. Other components get
the root from the registry instance they are handed; nothing reads it from a
module-level global.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field, ValidationError, field_serializer

from aibridge_serve.core.constants import DEFAULT_HISTORY_LIMIT
from aibridge_serve.core.errors import InvalidRoot
from aibridge_serve.utils.debug import debug


class WorkspaceState(BaseModel):
    """Persisted registry record.

    Attributes:
        current_root: Absolute path of the active workspace
        history: Recently used roots, most recent first
    """

    current_root: Path
    history: list[Path] = Field(default_factory=list)

    @field_serializer("current_root")
    def serialize_root(self, path: Path) -> str:
        """Serialize Path to string for JSON."""
        return str(path)

    @field_serializer("history")
    def serialize_history(self, paths: list[Path]) -> list[str]:
        """Serialize history paths to strings for JSON."""
        return [str(p) for p in paths]


def _dedupe_existing(paths: list[Path], limit: int) -> list[Path]:
    """Deduplicate preserving order, drop vanished paths, truncate."""
    seen: set[Path] = set()
    kept: list[Path] = []
    for path in paths:
        if path in seen:
            continue
        seen.add(path)
        if path.is_dir():
            kept.append(path)
    return kept[:limit]


class WorkspaceRegistry:
    """Holds the current workspace root and the recent-roots history.

    State is loaded once at construction and saved synchronously after every
    mutation. Persistence failures are logged; the in-memory state stays
    authoritative for the lifetime of the process.
    """

    def __init__(
        self,
        registry_path: Path,
        *,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        default_root: Path | None = None,
        logger: Any = None,
    ) -> None:
        """Initialize registry and load persisted state.

        Args:
            registry_path: JSON file holding the persisted WorkspaceState
            history_limit: Maximum number of roots kept in history
            default_root: Root used when nothing valid is persisted
                (defaults to the process working directory)
            logger: Optional structlog logger instance
        """
        self.registry_path = registry_path
        self.history_limit = history_limit
        self._logger = logger or structlog.get_logger()
        fallback = (default_root or Path.cwd()).resolve()
        self._state = WorkspaceState(current_root=fallback)
        self._load()

    def _load(self) -> None:
        if not self.registry_path.exists():
            debug(f"No registry at {self.registry_path}, using {self._state}")
            return

        try:
            raw = json.loads(self.registry_path.read_text(encoding="utf-8"))
            loaded = WorkspaceState.model_validate(raw)
        except (OSError, ValueError, ValidationError) as e:
            self._logger.warning(
                "registry.load_failed", path=str(self.registry_path), error=str(e)
            )
            return

        if loaded.current_root.is_dir():
            self._state.current_root = loaded.current_root.resolve()
        else:
            self._logger.warning(
                "registry.stale_root",
                root=str(loaded.current_root),
                fallback=str(self._state.current_root),
            )
        self._state.history = list(loaded.history)

    def save(self) -> None:
        """Persist state, pruning history to existing directories first.

        I/O errors are logged, never raised.
        """
        self._state.history = _dedupe_existing(
            self._state.history, self.history_limit
        )
        payload = json.dumps(
            self._state.model_dump(mode="json"), indent=2, ensure_ascii=False
        )
        tmp_path = self.registry_path.with_name(self.registry_path.name + ".tmp")
        try:
            self.registry_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload + "\n", encoding="utf-8")
            os.replace(tmp_path, self.registry_path)
        except OSError as e:
            self._logger.warning(
                "registry.save_failed", path=str(self.registry_path), error=str(e)
            )
            return
        debug(f"Saved registry to {self.registry_path}")

    def get_current_root(self) -> Path:
        return self._state.current_root

    def get_history(self) -> list[Path]:
        return list(self._state.history)

    def set_root(self, candidate: str | Path) -> Path:
        """Switch the workspace root.

        Args:
            candidate: Directory to make the new root

        Returns:
            The resolved absolute root

        Raises:
            InvalidRoot: If the candidate does not exist or is not a directory
        """
        raw = str(candidate).strip()
        if not raw:
            raise InvalidRoot(raw, "empty path")

        path = Path(raw).expanduser()
        if not path.exists():
            raise InvalidRoot(raw)
        if not path.is_dir():
            raise InvalidRoot(raw, "not a directory")

        resolved = path.resolve()
        self._state.current_root = resolved
        self._state.history = [resolved, *self._state.history]
        self.save()

        self._logger.info("registry.root_changed", root=str(resolved))
        return resolved
