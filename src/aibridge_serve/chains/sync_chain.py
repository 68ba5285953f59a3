"""Sync chain: applies a batch of file writes with logging and console output.

Wraps sync_files() with structured per-file logging and a Rich line per file.
"""

import time
from collections.abc import Sequence
from typing import Any

import structlog
from rich.console import Console
from rich.markup import escape

from aibridge_serve.fs.fs_ops import FileWrite, SyncOutcome, SyncReport, sync_files
from aibridge_serve.fs.transactions import TransactionStore


class SyncChain:
    """Runs one sync batch against a workspace's transaction store."""

    def __init__(self, logger: Any = None, ui: Console | None = None) -> None:
        """Initialize sync chain.

        Args:
            logger: Optional structlog logger instance
            ui: Optional Rich console for output
        """
        self._logger = logger or structlog.get_logger()
        self._ui = ui or Console()

    async def sync(
        self, files: Sequence[FileWrite], store: TransactionStore
    ) -> SyncReport:
        """Write ``files`` into the store's workspace inside one transaction.

        Args:
            files: Requested writes, processed in order
            store: Transaction store bound to the target root

        Returns:
            SyncReport with exactly one outcome per requested file
        """
        start_time = time.time()
        self._ui.print(
            f"\n[blue]\\[Sync][/blue] {len(files)} file(s) → "
            f"{escape(str(store.root))}"
        )

        bound_logger = self._logger.bind(root=str(store.root))

        async def log_outcome(outcome: SyncOutcome) -> None:
            bound_logger.info(
                "sync.item",
                path=outcome.path,
                status=outcome.status,
                error=outcome.error,
            )
            self._show_outcome(outcome)

        report = await sync_files(files, store=store, on_outcome=log_outcome)

        bound_logger.info(
            "sync.summary",
            transaction_id=report.transaction_id,
            total_items=len(report.outcomes),
            created_count=report.created_count,
            modified_count=report.modified_count,
            error_count=report.error_count,
            elapsed_ms=int((time.time() - start_time) * 1000),
        )
        return report

    def _show_outcome(self, outcome: SyncOutcome) -> None:
        if outcome.status == "CREATED":
            self._ui.print(f"✨ [magenta]CREATED[/magenta]: {escape(outcome.path)}")
        elif outcome.status == "MODIFIED":
            self._ui.print(f"📝 [green]MODIFIED[/green]: {escape(outcome.path)}")
        else:
            reason = escape(outcome.error or "")
            self._ui.print(f"✖ [red]ERROR[/red]: {escape(outcome.path)} - {reason}")
