"""Filesystem layer: sandboxed paths, transactions, recorded writes, rollback.

This module provides the transactional sync engine: every batch of writes is
recorded (with pre-image backups) before it touches the workspace, and the
most recent batch can be reverted.
"""

from aibridge_serve.fs.fs_ops import FileWrite, SyncOutcome, SyncReport, sync_files
from aibridge_serve.fs.manifest import Manifest, ManifestEntry, Operation
from aibridge_serve.fs.paths import ResolvedPath, resolve_virtual_path
from aibridge_serve.fs.rollback import RevertOutcome, RollbackReport, rollback_last
from aibridge_serve.fs.transactions import (
    PruneWorker,
    Transaction,
    TransactionState,
    TransactionStore,
)

__all__ = [
    "FileWrite",
    "Manifest",
    "ManifestEntry",
    "Operation",
    "PruneWorker",
    "ResolvedPath",
    "RevertOutcome",
    "RollbackReport",
    "SyncOutcome",
    "SyncReport",
    "Transaction",
    "TransactionState",
    "TransactionStore",
    "resolve_virtual_path",
    "rollback_last",
    "sync_files",
]
