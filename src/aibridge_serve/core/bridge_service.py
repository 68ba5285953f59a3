"""Service facade wiring the registry, transaction stores and chains together.

The HTTP routes and the CLI talk to a single BridgeService instance. It owns
the workspace registry and serializes root changes, syncs and rollbacks so at
most one of them runs at a time.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import structlog
from rich.console import Console

from aibridge_serve.chains.rollback_chain import RollbackChain
from aibridge_serve.chains.sync_chain import SyncChain
from aibridge_serve.core.constants import DEFAULT_RETENTION_LIMIT
from aibridge_serve.core.settings import BridgeSettings
from aibridge_serve.fs.fs_ops import FileWrite, SyncReport
from aibridge_serve.fs.paths import normalize_path
from aibridge_serve.fs.rollback import RollbackReport
from aibridge_serve.fs.transactions import PruneWorker, Transaction, TransactionStore
from aibridge_serve.workspace.registry import WorkspaceRegistry


class BridgeService:
    """Entry point for the four boundary operations: status, set root, sync,
    rollback."""

    def __init__(
        self,
        registry: WorkspaceRegistry,
        *,
        retention_limit: int = DEFAULT_RETENTION_LIMIT,
        sync_chain: SyncChain | None = None,
        rollback_chain: RollbackChain | None = None,
        prune_worker: PruneWorker | None = None,
        logger: Any = None,
    ) -> None:
        self.registry = registry
        self.retention_limit = retention_limit
        self._logger = logger or structlog.get_logger()
        self._sync_chain = sync_chain or SyncChain(logger=self._logger)
        self._rollback_chain = rollback_chain or RollbackChain(logger=self._logger)
        self.prune_worker = prune_worker or PruneWorker(logger=self._logger)
        self._stores: dict[Path, TransactionStore] = {}
        self._operation_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: BridgeSettings,
        *,
        default_root: Path | None = None,
        ui: Console | None = None,
        logger: Any = None,
    ) -> BridgeService:
        """Build a service with a registry loaded from ``settings``."""
        logger = logger or structlog.get_logger()
        registry = WorkspaceRegistry(
            settings.registry_path,
            history_limit=settings.history_limit,
            default_root=default_root,
            logger=logger,
        )
        return cls(
            registry,
            retention_limit=settings.retention_limit,
            sync_chain=SyncChain(logger=logger, ui=ui),
            rollback_chain=RollbackChain(logger=logger, ui=ui),
            logger=logger,
        )

    @property
    def current_root(self) -> Path:
        return self.registry.get_current_root()

    @property
    def history(self) -> list[Path]:
        return self.registry.get_history()

    def store_for(self, root: Path | None = None) -> TransactionStore:
        """Return the transaction store of ``root`` (default: current root)."""
        key = normalize_path(root or self.current_root)
        store = self._stores.get(key)
        if store is None:
            store = TransactionStore(
                key,
                retention_limit=self.retention_limit,
                prune_worker=self.prune_worker,
                logger=self._logger,
            )
            self._stores[key] = store
        return store

    async def set_root(self, path: str | Path) -> Path:
        """Switch the workspace root once no sync or rollback is running.

        Raises:
            InvalidRoot: If the path does not exist; the old root stays active
        """
        async with self._operation_lock:
            return self.registry.set_root(path)

    async def sync(self, files: Sequence[FileWrite]) -> SyncReport:
        """Apply a batch of writes to the current root as one transaction."""
        async with self._operation_lock:
            return await self._sync_chain.sync(files, self.store_for())

    async def rollback(self) -> RollbackReport:
        """Revert the most recent transaction of the current root.

        Raises:
            NoTransactions: If the current root has no transactions
            CorruptManifest: If the latest manifest is unreadable
        """
        async with self._operation_lock:
            return await self._rollback_chain.rollback(self.store_for())

    async def list_transactions(self, root: Path | None = None) -> list[Transaction]:
        """List transactions of ``root`` (default: current root), oldest first."""
        return await self.store_for(root).list_transactions()

    async def aclose(self) -> None:
        """Wait for background prunes to finish."""
        await self.prune_worker.drain()
