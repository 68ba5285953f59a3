"""Runtime settings for AI Bridge Serve, resolved from the environment."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

from aibridge_serve.core.constants import (
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_RETENTION_LIMIT,
)

__all__ = ["BridgeSettings", "resolve_registry_path"]


def resolve_registry_path(registry_path: str | Path | None = None) -> Path:
    """Resolve the on-disk path for the workspace registry file.

    Args:
        registry_path: Optional explicit path; overrides the environment.

    Returns:
        Absolute path of the registry JSON file.
    """

    chosen: str | Path | None = registry_path
    env_path = os.getenv("AIBRIDGE_REGISTRY_PATH")
    if chosen is None and env_path:
        chosen = env_path
    if chosen is None:
        chosen = Path.home() / ".ai-bridge" / "bridge_history.json"

    return Path(chosen).expanduser().resolve()


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


class BridgeSettings(BaseModel):
    """Settings shared by the server, CLI and service facade.

    Attributes:
        registry_path: Location of the persisted workspace registry
        retention_limit: Transactions kept per workspace before pruning
        history_limit: Recently used roots remembered by the registry
        host: Bind address for the HTTP server
        port: Port for the HTTP server
    """

    registry_path: Path
    retention_limit: int = Field(default=DEFAULT_RETENTION_LIMIT, ge=1)
    history_limit: int = Field(default=DEFAULT_HISTORY_LIMIT, ge=1)
    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)

    model_config = {"frozen": True}

    @classmethod
    def from_env(cls, registry_path: str | Path | None = None) -> BridgeSettings:
        """Build settings from AIBRIDGE_* environment variables.

        Raises:
            ValueError: If a numeric variable is not an integer or is out of range
        """
        return cls(
            registry_path=resolve_registry_path(registry_path),
            retention_limit=_int_from_env(
                "AIBRIDGE_RETENTION", DEFAULT_RETENTION_LIMIT
            ),
            history_limit=_int_from_env(
                "AIBRIDGE_HISTORY_LIMIT", DEFAULT_HISTORY_LIMIT
            ),
            host=os.getenv("AIBRIDGE_HOST") or DEFAULT_HOST,
            port=_int_from_env("AIBRIDGE_PORT", DEFAULT_PORT),
        )
