"""Tests for the transaction store."""

import json
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from aibridge_serve.core.errors import WriteFailure
from aibridge_serve.fs.manifest import Operation
from aibridge_serve.fs.transactions import (
    PruneWorker,
    TransactionState,
    TransactionStore,
    format_transaction_id,
    is_transaction_id,
    parse_transaction_id,
)


class TestTransactionIds:
    """Test id formatting and ordering."""

    def test_format_is_filesystem_safe(self) -> None:
        moment = datetime(2025, 3, 4, 5, 6, 7, 890123, tzinfo=UTC)
        transaction_id = format_transaction_id(moment)

        assert transaction_id == "2025-03-04T05-06-07-890123Z"
        assert ":" not in transaction_id
        assert "." not in transaction_id
        assert is_transaction_id(transaction_id)

    def test_parse_roundtrip(self) -> None:
        moment = datetime(2025, 12, 31, 23, 59, 59, 1, tzinfo=UTC)
        assert parse_transaction_id(format_transaction_id(moment)) == moment

    def test_lexical_order_matches_time_order(self) -> None:
        moments = [
            datetime(2025, 1, 2, 3, 4, 5, 999999, tzinfo=UTC),
            datetime(2025, 1, 2, 3, 4, 6, 0, tzinfo=UTC),
            datetime(2025, 10, 1, 0, 0, 0, 5, tzinfo=UTC),
            datetime(2026, 1, 1, 0, 0, 0, 0, tzinfo=UTC),
        ]
        ids = [format_transaction_id(m) for m in moments]
        assert sorted(ids) == ids

    def test_rejects_foreign_names(self) -> None:
        assert not is_transaction_id("notes")
        assert not is_transaction_id("2025-01-01T00:00:00.000Z")


class TestBegin:
    """Test transaction creation."""

    @pytest.mark.asyncio
    async def test_creates_scaffold_with_empty_manifest(
        self, store: TransactionStore, workspace: Path
    ) -> None:
        tx = await store.begin()
        await store.prune_worker.drain()

        assert tx.state is TransactionState.OPEN
        assert tx.directory == workspace / ".ai-bridge" / "transactions" / tx.id
        assert tx.manifest_path.exists()

        manifest = json.loads(tx.manifest_path.read_text())
        assert manifest["entries"] == []
        assert manifest["transaction_id"] == tx.id
        assert manifest["schema_version"] == "1.0"

    @pytest.mark.asyncio
    async def test_ids_strictly_increase(self, store: TransactionStore) -> None:
        """Test that back-to-back transactions get distinct, ordered ids."""
        ids = [(await store.begin()).id for _ in range(20)]
        await store.prune_worker.drain()

        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids)

    @pytest.mark.asyncio
    async def test_ids_increase_when_clock_goes_backwards(
        self, store: TransactionStore
    ) -> None:
        first = await store.begin()
        past = datetime(2000, 1, 1, tzinfo=UTC)

        with patch("aibridge_serve.fs.transactions.datetime") as fake_datetime:
            fake_datetime.now.return_value = past
            fake_datetime.strptime = datetime.strptime
            second = await store.begin()
        await store.prune_worker.drain()

        assert second.id > first.id

    @pytest.mark.asyncio
    async def test_ids_continue_after_existing_transactions(
        self, workspace: Path
    ) -> None:
        """Test that a fresh store never issues an id below one on disk."""
        future_id = "2999-01-01T00-00-00-000000Z"
        (workspace / ".ai-bridge" / "transactions" / future_id).mkdir(parents=True)

        store = TransactionStore(workspace)
        tx = await store.begin()
        await store.prune_worker.drain()

        assert tx.id > future_id

    @pytest.mark.asyncio
    async def test_prune_failure_does_not_fail_begin(
        self, workspace: Path
    ) -> None:
        """Test that a failing background prune is logged, not raised."""
        logger = Mock()
        worker = PruneWorker(logger=logger)
        store = TransactionStore(workspace, prune_worker=worker, logger=Mock())

        with patch.object(store, "prune", side_effect=OSError("disk on fire")):
            tx = await store.begin()
            await worker.drain()

        assert tx.manifest_path.exists()
        logger.error.assert_called_once()
        assert logger.error.call_args.args[0] == "prune.failed"
        assert "disk on fire" in logger.error.call_args.kwargs["error"]

    @pytest.mark.asyncio
    async def test_scaffold_failure_raises_write_failure(
        self, store: TransactionStore
    ) -> None:
        with patch(
            "aibridge_serve.fs.transactions.write_manifest",
            side_effect=OSError("read-only"),
        ):
            with pytest.raises(WriteFailure):
                await store.begin()

    @pytest.mark.asyncio
    async def test_failed_manifest_write_leaves_no_directory(
        self, store: TransactionStore
    ) -> None:
        """Test that a half-created transaction never becomes the latest."""
        previous = await store.begin()
        await store.prune_worker.drain()

        with patch(
            "aibridge_serve.fs.transactions.write_manifest",
            side_effect=OSError(28, "No space left"),
        ):
            with pytest.raises(WriteFailure):
                await store.begin()

        assert [t.id for t in await store.list_transactions()] == [previous.id]
        latest = await store.most_recent()
        assert latest is not None
        assert latest.id == previous.id

    @pytest.mark.asyncio
    async def test_unwritable_root_raises_write_failure(
        self, store: TransactionStore
    ) -> None:
        with patch("anyio.Path.mkdir", side_effect=PermissionError(13, "denied")):
            with pytest.raises(WriteFailure) as exc_info:
                await store.begin()

        assert exc_info.value.operation == "create"
        assert isinstance(exc_info.value.cause, PermissionError)

    @pytest.mark.asyncio
    async def test_unlistable_transactions_dir_raises_write_failure(
        self, store: TransactionStore
    ) -> None:
        with patch.object(
            store, "_list_ids", side_effect=PermissionError(13, "denied")
        ):
            with pytest.raises(WriteFailure):
                await store.begin()

    def test_retention_must_be_positive(self, workspace: Path) -> None:
        with pytest.raises(ValueError):
            TransactionStore(workspace, retention_limit=0)


class TestRecord:
    """Test manifest appends and backups."""

    @pytest.mark.asyncio
    async def test_created_entry_has_no_backup(
        self, store: TransactionStore, workspace: Path
    ) -> None:
        tx = await store.begin()

        entry = await store.record(tx, "new/file.txt", Operation.CREATED)
        await store.prune_worker.drain()

        assert entry.operation is Operation.CREATED
        manifest = await store.load_manifest(tx)
        assert [(e.path, e.operation) for e in manifest.entries] == [
            ("new/file.txt", Operation.CREATED)
        ]
        assert not tx.backup_path("new/file.txt").exists()

    @pytest.mark.asyncio
    async def test_modified_entry_backs_up_current_content(
        self, store: TransactionStore, workspace: Path
    ) -> None:
        target = workspace / "src" / "app.py"
        target.parent.mkdir()
        target.write_bytes(b"original\r\nbytes\x00")

        tx = await store.begin()
        await store.record(tx, "src/app.py", Operation.MODIFIED)
        await store.prune_worker.drain()

        assert tx.backup_path("src/app.py").read_bytes() == b"original\r\nbytes\x00"

    @pytest.mark.asyncio
    async def test_entries_keep_append_order(self, store: TransactionStore) -> None:
        tx = await store.begin()
        for name in ("c.txt", "a.txt", "b.txt"):
            await store.record(tx, name, Operation.CREATED)
        await store.prune_worker.drain()

        manifest = await store.load_manifest(tx)
        assert [e.path for e in manifest.entries] == ["c.txt", "a.txt", "b.txt"]

    @pytest.mark.asyncio
    async def test_first_record_of_a_path_wins(
        self, store: TransactionStore, workspace: Path
    ) -> None:
        """Test that re-recording a path keeps the pre-batch entry and backup."""
        target = workspace / "f.txt"
        target.write_text("before")

        tx = await store.begin()
        first = await store.record(tx, "f.txt", Operation.MODIFIED)
        target.write_text("intermediate")
        second = await store.record(tx, "f.txt", Operation.MODIFIED)
        await store.prune_worker.drain()

        assert second == first
        manifest = await store.load_manifest(tx)
        assert len(manifest.entries) == 1
        assert tx.backup_path("f.txt").read_text() == "before"

    @pytest.mark.asyncio
    async def test_concurrent_records_do_not_lose_entries(
        self, store: TransactionStore
    ) -> None:
        """Test that the per-transaction lock serializes manifest updates."""
        import asyncio

        tx = await store.begin()
        names = [f"file_{i}.txt" for i in range(25)]
        await asyncio.gather(
            *(store.record(tx, name, Operation.CREATED) for name in names)
        )
        await store.prune_worker.drain()

        manifest = await store.load_manifest(tx)
        assert sorted(e.path for e in manifest.entries) == sorted(names)

    @pytest.mark.asyncio
    async def test_missing_source_raises_write_failure(
        self, store: TransactionStore
    ) -> None:
        tx = await store.begin()

        with pytest.raises(WriteFailure) as exc_info:
            await store.record(tx, "ghost.txt", Operation.MODIFIED)
        await store.prune_worker.drain()

        assert exc_info.value.operation == "backup"
        manifest = await store.load_manifest(tx)
        assert manifest.entries == []

    @pytest.mark.asyncio
    async def test_sealed_transaction_rejects_records(
        self, store: TransactionStore
    ) -> None:
        tx = await store.begin()
        tx.seal()
        await store.prune_worker.drain()

        assert tx.state is TransactionState.SEALED
        with pytest.raises(RuntimeError):
            await store.record(tx, "late.txt", Operation.CREATED)


class TestListingAndDiscard:
    """Test most_recent, list_transactions and discard."""

    @pytest.mark.asyncio
    async def test_most_recent_none_when_empty(self, store: TransactionStore) -> None:
        assert await store.most_recent() is None
        assert await store.list_transactions() == []

    @pytest.mark.asyncio
    async def test_most_recent_is_greatest_id(self, store: TransactionStore) -> None:
        created = [await store.begin() for _ in range(3)]
        await store.prune_worker.drain()

        latest = await store.most_recent()
        assert latest is not None
        assert latest.id == created[-1].id
        assert [t.id for t in await store.list_transactions()] == [
            t.id for t in created
        ]

    @pytest.mark.asyncio
    async def test_foreign_entries_are_ignored(
        self, store: TransactionStore
    ) -> None:
        tx = await store.begin()
        await store.prune_worker.drain()
        (store.transactions_dir / "README.txt").write_text("not a transaction")
        (store.transactions_dir / "scratch").mkdir()

        assert [t.id for t in await store.list_transactions()] == [tx.id]

    @pytest.mark.asyncio
    async def test_discard_removes_everything(
        self, store: TransactionStore, workspace: Path
    ) -> None:
        (workspace / "f.txt").write_text("x")
        tx = await store.begin()
        await store.record(tx, "f.txt", Operation.MODIFIED)
        await store.prune_worker.drain()

        await store.discard(tx)

        assert not tx.directory.exists()
        assert tx.state is TransactionState.ROLLED_BACK
        assert await store.most_recent() is None


class TestPrune:
    """Test retention pruning."""

    @pytest.mark.asyncio
    async def test_keeps_only_most_recent(self, workspace: Path) -> None:
        """Test that N > L transactions settle to exactly the newest L."""
        store = TransactionStore(workspace, retention_limit=5)
        created = [await store.begin() for _ in range(12)]
        await store.prune_worker.drain()
        await store.prune()

        remaining = [t.id for t in await store.list_transactions()]
        assert remaining == [t.id for t in created[-5:]]

    @pytest.mark.asyncio
    async def test_prune_returns_removed_ids(self, workspace: Path) -> None:
        store = TransactionStore(workspace, retention_limit=2)
        # Scaffold directly so no background prune runs first.
        ids = [
            "2025-01-01T00-00-00-000001Z",
            "2025-01-01T00-00-00-000002Z",
            "2025-01-01T00-00-00-000003Z",
        ]
        for transaction_id in ids:
            (store.transactions_dir / transaction_id).mkdir(parents=True)

        assert await store.prune() == ids[:1]
        assert await store.prune() == []

    @pytest.mark.asyncio
    async def test_prune_without_transactions_dir(
        self, store: TransactionStore
    ) -> None:
        assert await store.prune() == []

    @pytest.mark.asyncio
    async def test_newest_transaction_survives_retention_of_one(
        self, workspace: Path
    ) -> None:
        store = TransactionStore(workspace, retention_limit=1)
        for _ in range(4):
            latest = await store.begin()
        await store.prune_worker.drain()

        assert [t.id for t in await store.list_transactions()] == [latest.id]
