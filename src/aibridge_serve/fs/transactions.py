"""Transaction store: ordered, reversible records of sync batches.

Layout under a workspace root::

    .ai-bridge/transactions/<id>/manifest.json
    .ai-bridge/transactions/<id>/files/<relative path>   (pre-images)

Transaction ids are UTC timestamps in a fixed-width format, so sorting the
directory names sorts the transactions chronologically.
"""

from __future__ import annotations

import asyncio
import re
import shutil
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any

import anyio
import structlog

from aibridge_serve.core.constants import (
    BACKUPS_DIR_NAME,
    BRIDGE_DIR_NAME,
    DEFAULT_RETENTION_LIMIT,
    MANIFEST_FILE_NAME,
    TRANSACTION_ID_FORMAT,
    TRANSACTION_ID_PATTERN,
    TRANSACTIONS_DIR_NAME,
)
from aibridge_serve.core.errors import WriteFailure
from aibridge_serve.fs.manifest import (
    Manifest,
    ManifestEntry,
    Operation,
    read_manifest,
    write_manifest,
)
from aibridge_serve.fs.paths import normalize_path
from aibridge_serve.utils.debug import debug

_ID_RE = re.compile(TRANSACTION_ID_PATTERN)


class TransactionState(str, Enum):
    """Lifecycle of a transaction.

    OPEN accepts records; SEALED once its batch finished; ROLLED_BACK and
    PRUNED are terminal.
    """

    OPEN = "open"
    SEALED = "sealed"
    ROLLED_BACK = "rolled_back"
    PRUNED = "pruned"


@dataclass
class Transaction:
    """Handle on one transaction directory.

    Attributes:
        id: Sortable timestamp id
        directory: Absolute path of the transaction directory
        state: In-process lifecycle state
    """

    id: str
    directory: Path
    state: TransactionState = TransactionState.SEALED

    @property
    def manifest_path(self) -> Path:
        return self.directory / MANIFEST_FILE_NAME

    @property
    def backups_dir(self) -> Path:
        return self.directory / BACKUPS_DIR_NAME

    def backup_path(self, relative_path: str) -> Path:
        """Return where the pre-image of ``relative_path`` is stored."""
        return self.backups_dir / relative_path

    def seal(self) -> None:
        if self.state is TransactionState.OPEN:
            self.state = TransactionState.SEALED


def format_transaction_id(moment: datetime) -> str:
    return moment.astimezone(UTC).strftime(TRANSACTION_ID_FORMAT)


def parse_transaction_id(transaction_id: str) -> datetime:
    return datetime.strptime(transaction_id, TRANSACTION_ID_FORMAT).replace(
        tzinfo=UTC
    )


def is_transaction_id(name: str) -> bool:
    return _ID_RE.match(name) is not None


def _remove_tree(path: Path) -> None:
    # A concurrent prune may already have removed it.
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass


@dataclass
class PruneWorker:
    """Runs prune jobs detached from the caller that triggered them.

    Failures go to the worker's logger and never propagate to the caller.
    ``drain()`` waits for outstanding jobs (tests, shutdown).
    """

    logger: Any = None
    _tasks: set[asyncio.Task[Any]] = field(default_factory=set)

    def __post_init__(self) -> None:
        if self.logger is None:
            self.logger = structlog.get_logger()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, job: Callable[[], Awaitable[Any]], **context: Any) -> None:
        """Start ``job`` as a background task on the running loop."""
        task = asyncio.get_running_loop().create_task(job())
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._finished(t, context))

    def _finished(self, task: asyncio.Task[Any], context: dict[str, Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error("prune.failed", error=str(exc), **context)

    async def drain(self) -> None:
        """Wait until every scheduled job has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class TransactionStore:
    """Creates, records into, lists, prunes and discards transactions.

    A store is bound to a single workspace root. Manifest read-modify-write
    is serialized per transaction with an ``asyncio.Lock``.
    """

    def __init__(
        self,
        root: Path,
        *,
        retention_limit: int = DEFAULT_RETENTION_LIMIT,
        prune_worker: PruneWorker | None = None,
        logger: Any = None,
    ) -> None:
        """Initialize the store.

        Args:
            root: Workspace root the transactions belong to
            retention_limit: Number of transactions kept by prune()
            prune_worker: Worker running background prunes
            logger: Optional structlog logger instance

        Raises:
            ValueError: If retention_limit is below 1
        """
        if retention_limit < 1:
            raise ValueError("retention_limit must be at least 1")

        self.root = normalize_path(root)
        self.retention_limit = retention_limit
        self._logger = logger or structlog.get_logger()
        self._prune_worker = prune_worker or PruneWorker(logger=self._logger)
        self._locks: dict[str, asyncio.Lock] = {}
        self._last_id: str | None = None

    @property
    def transactions_dir(self) -> Path:
        return self.root / BRIDGE_DIR_NAME / TRANSACTIONS_DIR_NAME

    @property
    def prune_worker(self) -> PruneWorker:
        return self._prune_worker

    def _lock_for(self, tx: Transaction) -> asyncio.Lock:
        lock = self._locks.get(tx.id)
        if lock is None:
            lock = self._locks[tx.id] = asyncio.Lock()
        return lock

    def _transaction(self, transaction_id: str) -> Transaction:
        return Transaction(
            id=transaction_id, directory=self.transactions_dir / transaction_id
        )

    async def _list_ids(self) -> list[str]:
        tx_root = anyio.Path(self.transactions_dir)
        if not await tx_root.is_dir():
            return []

        ids = []
        async for child in tx_root.iterdir():
            if is_transaction_id(child.name) and await child.is_dir():
                ids.append(child.name)
        ids.sort()
        return ids

    async def _next_id(self) -> str:
        """Return an id strictly greater than any issued or on disk."""
        moment = datetime.now(UTC)
        existing = await self._list_ids()
        floors = [*existing[-1:]]
        if self._last_id is not None:
            floors.append(self._last_id)

        for floor in floors:
            floor_moment = parse_transaction_id(floor)
            if moment <= floor_moment:
                moment = floor_moment + timedelta(microseconds=1)
        return format_transaction_id(moment)

    async def begin(self) -> Transaction:
        """Create a new OPEN transaction with an empty manifest.

        Schedules a background prune; prune failures are only logged.

        Returns:
            The new transaction

        Raises:
            WriteFailure: If the transaction scaffold cannot be created
        """
        try:
            await anyio.Path(self.transactions_dir).mkdir(parents=True, exist_ok=True)
            transaction_id = await self._next_id()
        except OSError as e:
            raise WriteFailure(str(self.transactions_dir), "create", e) from e

        while True:
            tx = self._transaction(transaction_id)
            try:
                await anyio.Path(tx.directory).mkdir()
                break
            except FileExistsError:
                bumped = parse_transaction_id(transaction_id) + timedelta(
                    microseconds=1
                )
                transaction_id = format_transaction_id(bumped)
            except OSError as e:
                raise WriteFailure(str(tx.directory), "create", e) from e

        self._last_id = transaction_id
        try:
            await write_manifest(
                tx.manifest_path,
                Manifest(transaction_id=tx.id, root=str(self.root)),
            )
        except OSError as e:
            # A manifest-less directory would shadow the previous transaction.
            await self._remove_scaffold(tx)
            raise WriteFailure(str(tx.manifest_path), "create", e) from e
        tx.state = TransactionState.OPEN

        self._logger.info(
            "transaction.begin", transaction_id=tx.id, root=str(self.root)
        )
        self._prune_worker.schedule(self.prune, root=str(self.root))
        return tx

    async def _remove_scaffold(self, tx: Transaction) -> None:
        try:
            await anyio.to_thread.run_sync(_remove_tree, tx.directory)
        except OSError as e:
            self._logger.error(
                "transaction.cleanup_failed", transaction_id=tx.id, error=str(e)
            )

    async def record(
        self, tx: Transaction, relative_path: str, operation: Operation
    ) -> ManifestEntry:
        """Record an operation before the caller writes the file.

        For MODIFIED, the current file content is copied into the
        transaction's backup area first. A path already recorded in this
        transaction keeps its first entry; no second backup is taken.

        Args:
            tx: OPEN transaction to append to
            relative_path: Root-relative POSIX path of the file
            operation: Classification of the path before the write

        Returns:
            The entry now governing this path in the transaction

        Raises:
            RuntimeError: If the transaction is not OPEN
            CorruptManifest: If the manifest cannot be read back
            WriteFailure: If the backup or manifest write fails
        """
        if tx.state is not TransactionState.OPEN:
            raise RuntimeError(f"Transaction {tx.id} is {tx.state.value}, not open")

        async with self._lock_for(tx):
            manifest = await read_manifest(tx.manifest_path, tx.id)
            existing = manifest.find(relative_path)
            if existing is not None:
                debug(f"{relative_path} already recorded as {existing.operation}")
                return existing

            if operation is Operation.MODIFIED:
                await self._backup(tx, relative_path)

            entry = ManifestEntry(path=relative_path, operation=operation)
            manifest.entries.append(entry)
            try:
                await write_manifest(tx.manifest_path, manifest)
            except OSError as e:
                raise WriteFailure(relative_path, "record", e) from e
            return entry

    async def _backup(self, tx: Transaction, relative_path: str) -> None:
        source = self.root / relative_path
        target = tx.backup_path(relative_path)
        try:
            await anyio.Path(target.parent).mkdir(parents=True, exist_ok=True)
            await anyio.to_thread.run_sync(shutil.copy2, source, target)
        except OSError as e:
            raise WriteFailure(relative_path, "backup", e) from e
        debug(f"Backed up {source} -> {target}")

    async def load_manifest(self, tx: Transaction) -> Manifest:
        """Read a transaction's manifest.

        Raises:
            CorruptManifest: If the manifest is missing or invalid
        """
        return await read_manifest(tx.manifest_path, tx.id)

    async def list_transactions(self) -> list[Transaction]:
        """Return all transactions, oldest first."""
        return [self._transaction(i) for i in await self._list_ids()]

    async def most_recent(self) -> Transaction | None:
        """Return the transaction with the greatest id, or None."""
        ids = await self._list_ids()
        if not ids:
            return None
        return self._transaction(ids[-1])

    async def prune(self) -> list[str]:
        """Delete the oldest transactions beyond the retention limit.

        Returns:
            Ids of the removed transactions, oldest first
        """
        ids = await self._list_ids()
        excess = len(ids) - self.retention_limit
        if excess <= 0:
            return []

        doomed = ids[:excess]
        self._logger.info(
            "transaction.prune",
            root=str(self.root),
            removing=len(doomed),
            kept=self.retention_limit,
        )
        for transaction_id in doomed:
            directory = self.transactions_dir / transaction_id
            await anyio.to_thread.run_sync(_remove_tree, directory)
            self._locks.pop(transaction_id, None)
        return doomed

    async def discard(self, tx: Transaction) -> None:
        """Delete the transaction's manifest and backups.

        Raises:
            WriteFailure: If the directory cannot be removed
        """
        try:
            await anyio.to_thread.run_sync(_remove_tree, tx.directory)
        except OSError as e:
            raise WriteFailure(tx.id, "discard", e) from e
        self._locks.pop(tx.id, None)
        tx.state = TransactionState.ROLLED_BACK
        debug(f"Discarded transaction {tx.id}")
