"""Reverting the most recent transaction.

Entries are replayed last-recorded-first: CREATED paths are deleted,
MODIFIED paths are restored from their pre-image. A bad entry is reported
and skipped; the rest of the transaction is still reverted.
"""

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import anyio

from aibridge_serve.core.errors import (
    BridgeError,
    CorruptBackup,
    InvalidPath,
    NoTransactions,
    SecurityViolation,
    WriteFailure,
)
from aibridge_serve.fs.manifest import ManifestEntry, Operation
from aibridge_serve.fs.paths import ensure_parent_dir, resolve_virtual_path
from aibridge_serve.fs.transactions import Transaction, TransactionStore
from aibridge_serve.utils.debug import debug

RevertAction = Literal["deleted", "restored", "absent", "failed"]


@dataclass
class RevertOutcome:
    """Result of reverting one manifest entry."""

    path: str
    operation: Operation
    action: RevertAction
    error: str | None = None
    error_code: str | None = None


@dataclass
class RollbackReport:
    """Summary of a rollback.

    ``restored_count`` counts entries that changed the disk (files deleted
    or restored). Failed entries are listed in ``warnings``.
    """

    transaction_id: str
    outcomes: list[RevertOutcome] = field(default_factory=list)

    @property
    def restored_count(self) -> int:
        return sum(1 for o in self.outcomes if o.action in ("deleted", "restored"))

    @property
    def warnings(self) -> list[RevertOutcome]:
        return [o for o in self.outcomes if o.action == "failed"]


def _restore_file(backup: Path, target: Path) -> None:
    ensure_parent_dir(target)
    shutil.copy2(backup, target)


def _failed(entry: ManifestEntry, error: BridgeError) -> RevertOutcome:
    return RevertOutcome(
        path=entry.path,
        operation=entry.operation,
        action="failed",
        error=str(error),
        error_code=error.code,
    )


async def revert_entry(
    entry: ManifestEntry, *, tx: Transaction, root: Path
) -> RevertOutcome:
    """Undo one recorded operation.

    Args:
        entry: Manifest entry to revert
        tx: Transaction owning the entry and its backups
        root: Workspace root

    Returns:
        RevertOutcome; failures are reported, never raised
    """
    # Manifests live on disk and are re-validated like any other input.
    try:
        resolved = resolve_virtual_path(entry.path, root)
    except (InvalidPath, SecurityViolation) as e:
        return _failed(entry, e)

    target = anyio.Path(resolved.absolute_path)

    if entry.operation is Operation.CREATED:
        if not await target.is_file():
            return RevertOutcome(entry.path, entry.operation, "absent")
        try:
            await target.unlink()
        except OSError as e:
            return _failed(entry, WriteFailure(entry.path, "delete", e))
        debug(f"Deleted {entry.path}")
        return RevertOutcome(entry.path, entry.operation, "deleted")

    backup = tx.backup_path(entry.path)
    if not await anyio.Path(backup).is_file():
        return _failed(entry, CorruptBackup(entry.path, tx.id))
    try:
        await anyio.to_thread.run_sync(
            _restore_file, backup, resolved.absolute_path
        )
    except OSError as e:
        return _failed(entry, WriteFailure(entry.path, "restore", e))
    debug(f"Restored {entry.path} from {backup}")
    return RevertOutcome(entry.path, entry.operation, "restored")


async def rollback_last(store: TransactionStore) -> RollbackReport:
    """Revert and discard the most recent transaction.

    Args:
        store: Transaction store bound to the workspace root

    Returns:
        RollbackReport for the reverted transaction

    Raises:
        NoTransactions: If the workspace has no transactions
        CorruptManifest: If the manifest cannot be read (nothing is reverted)
        WriteFailure: If the transaction cannot be discarded afterwards
    """
    tx = await store.most_recent()
    if tx is None:
        raise NoTransactions(str(store.root))

    manifest = await store.load_manifest(tx)
    report = RollbackReport(transaction_id=tx.id)

    for entry in reversed(manifest.entries):
        report.outcomes.append(await revert_entry(entry, tx=tx, root=store.root))

    await store.discard(tx)
    return report
