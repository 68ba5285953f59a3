"""Top-level ``aibridge`` command."""

from __future__ import annotations

import importlib
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
    from typer import Typer as TyperType
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")
    TyperType = Any

from aibridge_serve.cli import remote, serve

app: TyperType = typer.Typer(
    help="Apply AI-generated file batches to a workspace, with one-step undo."
)

app.command("serve")(serve.serve)
app.command("transactions")(serve.list_transactions)
app.command("status")(remote.status)
app.command("set-root")(remote.set_root)
app.command("push")(remote.push)
app.command("rollback")(remote.rollback)


def run_cli(args: Sequence[str] | None = None) -> None:
    app(args=args)
