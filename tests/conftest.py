"""Pytest configuration and fixtures for AI Bridge Serve tests."""

from io import StringIO
from pathlib import Path

import pytest
from rich.console import Console

from aibridge_serve.fs.transactions import PruneWorker, TransactionStore


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """An empty workspace root."""
    root = tmp_path / "ws"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def prune_worker() -> PruneWorker:
    return PruneWorker()


@pytest.fixture
def store(workspace: Path, prune_worker: PruneWorker) -> TransactionStore:
    """Transaction store bound to the workspace fixture."""
    return TransactionStore(workspace, prune_worker=prune_worker)


@pytest.fixture
def quiet_console() -> Console:
    """Rich console writing to a buffer instead of the terminal."""
    return Console(file=StringIO(), width=200)
