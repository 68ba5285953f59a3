"""Transaction manifest model and atomic manifest I/O.

A manifest is a small JSON document holding transaction metadata and the
ordered list of per-file operations. It is rewritten in full on every append
(write to a temp file, fsync, ``os.replace``) so a crash never leaves a
half-written manifest behind.
"""

import json
import os
import platform
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

import anyio
from pydantic import BaseModel, Field, ValidationError

from aibridge_serve.core.constants import MANIFEST_SCHEMA_VERSION
from aibridge_serve.core.errors import CorruptManifest
from aibridge_serve.utils.debug import debug


class Operation(str, Enum):
    """What a sync did to a path, relative to its pre-batch state."""

    CREATED = "CREATED"
    MODIFIED = "MODIFIED"


class ManifestEntry(BaseModel):
    """One recorded file operation.

    Attributes:
        path: POSIX-style path relative to the workspace root
        operation: CREATED if the path did not exist before the batch
        recorded_at: When the entry was appended
    """

    path: str
    operation: Operation
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"frozen": True}


class Manifest(BaseModel):
    """Manifest document stored as ``manifest.json`` in a transaction."""

    schema_version: str = MANIFEST_SCHEMA_VERSION
    transaction_id: str
    root: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    system: dict[str, str] = Field(
        default_factory=lambda: {"os": platform.system()}
    )
    entries: list[ManifestEntry] = Field(default_factory=list)

    def find(self, path: str) -> ManifestEntry | None:
        """Return the entry recorded for ``path``, if any."""
        for entry in self.entries:
            if entry.path == path:
                return entry
        return None


def _write_atomic(path: Path, payload: str) -> None:
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        f.write(payload)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, path)


async def write_manifest(path: Path, manifest: Manifest) -> None:
    """Write a manifest atomically.

    Args:
        path: Destination ``manifest.json``
        manifest: Manifest to serialize

    Raises:
        OSError: If the manifest cannot be written
    """
    payload = json.dumps(
        manifest.model_dump(mode="json"), ensure_ascii=False, indent=2
    )
    await anyio.to_thread.run_sync(_write_atomic, path, payload + "\n")
    debug(f"Wrote manifest {path} ({len(manifest.entries)} entries)")


async def read_manifest(path: Path, transaction_id: str) -> Manifest:
    """Read and validate a manifest.

    Args:
        path: ``manifest.json`` to read
        transaction_id: Owning transaction, for error reporting

    Returns:
        Parsed Manifest

    Raises:
        CorruptManifest: If the file is missing, unreadable, or invalid
    """
    try:
        raw = await anyio.Path(path).read_text(encoding="utf-8")
        return Manifest.model_validate(json.loads(raw))
    except (OSError, ValueError, ValidationError) as e:
        raise CorruptManifest(transaction_id, str(e)) from e
