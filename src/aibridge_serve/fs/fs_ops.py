"""Recorded file writes for sync batches.

Every write is preceded by a manifest record (and a pre-image backup for
existing files) so the batch can be reverted later.
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Literal

import anyio

from aibridge_serve.core.errors import (
    BridgeError,
    CorruptManifest,
    InvalidPath,
    SecurityViolation,
    WriteFailure,
)
from aibridge_serve.fs.manifest import Operation
from aibridge_serve.fs.paths import resolve_virtual_path
from aibridge_serve.fs.transactions import Transaction, TransactionStore
from aibridge_serve.utils.debug import debug

FileStatus = Literal["CREATED", "MODIFIED", "ERROR"]


@dataclass(frozen=True)
class FileWrite:
    """One requested write: a virtual path and its full new content.

    Values arriving over HTTP are checked per file by write_with_rollback.
    """

    path: str
    content: str


@dataclass
class SyncOutcome:
    """Result of one file in a sync batch.

    ``path`` is the root-relative path on success and the path as supplied
    when the file could not be resolved.
    """

    path: str
    status: FileStatus
    error: str | None = None
    error_code: str | None = None


@dataclass
class SyncReport:
    """Summary of a sync batch."""

    transaction_id: str
    outcomes: list[SyncOutcome] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "CREATED")

    @property
    def modified_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "MODIFIED")

    @property
    def error_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "ERROR")


def _failed(path: str, error: BridgeError) -> SyncOutcome:
    return SyncOutcome(
        path=path, status="ERROR", error=str(error), error_code=error.code
    )


async def write_with_rollback(
    item: FileWrite,
    *,
    store: TransactionStore,
    tx: Transaction,
) -> SyncOutcome:
    """Record and then write one file.

    Args:
        item: Requested write
        store: Transaction store bound to the workspace root
        tx: OPEN transaction of the current batch

    Returns:
        SyncOutcome; failures are reported, never raised
    """
    if not isinstance(item.path, str):
        shown = "" if item.path is None else str(item.path)
        return _failed(shown, InvalidPath(shown, "path must be a string"))
    if not isinstance(item.content, str):
        return _failed(item.path, InvalidPath(item.path, "content must be a string"))

    try:
        resolved = resolve_virtual_path(item.path, store.root)
    except (InvalidPath, SecurityViolation) as e:
        return _failed(item.path, e)

    relative = resolved.relative_path
    target = anyio.Path(resolved.absolute_path)

    if await target.is_dir():
        return _failed(item.path, InvalidPath(item.path, "path is a directory"))

    operation = Operation.MODIFIED if await target.exists() else Operation.CREATED

    # Record strictly before the write so a backup holds the old content.
    try:
        entry = await store.record(tx, relative, operation)
    except (WriteFailure, CorruptManifest) as e:
        return _failed(relative, e)

    try:
        await target.parent.mkdir(parents=True, exist_ok=True)
        await target.write_bytes(item.content.encode("utf-8"))
    except OSError as e:
        return _failed(relative, WriteFailure(relative, "write", e))

    debug(f"Wrote {relative} ({entry.operation.value})")
    return SyncOutcome(path=relative, status=entry.operation.value)


async def sync_files(
    files: Sequence[FileWrite],
    *,
    store: TransactionStore,
    on_outcome: Callable[[SyncOutcome], Awaitable[None] | None] | None = None,
) -> SyncReport:
    """Apply a batch of writes inside one transaction.

    Files are processed in input order. A failing file is reported and the
    batch continues; files written earlier stay written and recorded.

    Args:
        files: Requested writes
        store: Transaction store bound to the workspace root
        on_outcome: Optional callback invoked after each file

    Returns:
        SyncReport with one outcome per input file

    Raises:
        WriteFailure: If the transaction itself cannot be created
    """
    tx = await store.begin()
    report = SyncReport(transaction_id=tx.id)

    try:
        for item in files:
            outcome = await write_with_rollback(item, store=store, tx=tx)
            report.outcomes.append(outcome)
            if on_outcome is not None:
                result = on_outcome(outcome)
                if result is not None:
                    await result
    finally:
        tx.seal()

    return report
