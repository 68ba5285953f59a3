"""Rollback chain: reverts the latest transaction with logging and console output."""

from typing import Any

import structlog
from rich.console import Console
from rich.markup import escape

from aibridge_serve.core.errors import BridgeError
from aibridge_serve.fs.rollback import RevertOutcome, RollbackReport, rollback_last
from aibridge_serve.fs.transactions import TransactionStore


class RollbackChain:
    """Reverts the most recent transaction of a workspace."""

    def __init__(self, logger: Any = None, ui: Console | None = None) -> None:
        """Initialize rollback chain.

        Args:
            logger: Optional structlog logger instance
            ui: Optional Rich console for output
        """
        self._logger = logger or structlog.get_logger()
        self._ui = ui or Console()

    async def rollback(self, store: TransactionStore) -> RollbackReport:
        """Revert and discard the store's most recent transaction.

        Args:
            store: Transaction store bound to the workspace root

        Returns:
            RollbackReport

        Raises:
            NoTransactions: If there is nothing to roll back
            CorruptManifest: If the latest manifest is unreadable
            WriteFailure: If the transaction cannot be discarded
        """
        bound_logger = self._logger.bind(root=str(store.root))
        self._ui.print("\n🔄 [yellow]\\[Rollback][/yellow] Reverting last batch...")

        try:
            report = await rollback_last(store)
        except BridgeError as e:
            bound_logger.warning("rollback.failed", error=e.code, message=str(e))
            self._ui.print(f"❌ [red]\\[Rollback Failed][/red] {escape(str(e))}")
            raise

        for outcome in report.outcomes:
            bound_logger.info(
                "rollback.entry",
                transaction_id=report.transaction_id,
                path=outcome.path,
                operation=outcome.operation.value,
                action=outcome.action,
                error=outcome.error,
            )
            self._show_outcome(outcome)

        bound_logger.info(
            "rollback.summary",
            transaction_id=report.transaction_id,
            restored_count=report.restored_count,
            warning_count=len(report.warnings),
        )
        self._ui.print(
            f"✅ [green]Rollback completed[/green] "
            f"({report.restored_count} change(s) reverted, "
            f"transaction {report.transaction_id})"
        )
        return report

    def _show_outcome(self, outcome: RevertOutcome) -> None:
        path = escape(outcome.path)
        if outcome.action == "deleted":
            self._ui.print(f"🗑️ [blue]Deleted[/blue] {path}")
        elif outcome.action == "restored":
            self._ui.print(f"↩️ [blue]Restored[/blue] {path}")
        elif outcome.action == "failed":
            reason = escape(outcome.error or "")
            self._ui.print(f"⚠️ [yellow]Skipped[/yellow] {path} ({reason})")
