"""CLI commands that talk to a running bridge server over HTTP."""

from __future__ import annotations

import asyncio
import importlib
import json
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any, TypeVar

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
    from typer import Typer as TyperType
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")
    TyperType = Any

from aibridge_serve.client import DEFAULT_SERVER_URL, BridgeClient, BridgeClientError
from aibridge_serve.fs.fs_ops import FileWrite

T = TypeVar("T")

app: TyperType = typer.Typer(help="Drive a running bridge server.")

ServerOption = Annotated[
    str | None,
    typer.Option(
        "--server",
        help="Server URL (default: AIBRIDGE_SERVER or http://127.0.0.1:3000).",
    ),
]
ManifestArgument = Annotated[
    Path,
    typer.Argument(
        help="JSON file: a list of {path, content} objects or {\"files\": [...]}."
    ),
]
PathArgument = Annotated[str, typer.Argument(help="New workspace root.")]


def _server_url(server: str | None) -> str:
    return server or os.getenv("AIBRIDGE_SERVER") or DEFAULT_SERVER_URL


def _call(server: str | None, action: Callable[[BridgeClient], Awaitable[T]]) -> T:
    async def run() -> T:
        async with BridgeClient(_server_url(server)) as client:
            return await action(client)

    try:
        return asyncio.run(run())
    except BridgeClientError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc


def load_push_file(path: Path) -> list[FileWrite]:
    """Read the files to push from a JSON document.

    Raises:
        ValueError: If the document is not a list of {path, content} objects
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("files")
    if not isinstance(data, list):
        raise ValueError("expected a list of {path, content} objects")

    files = []
    for index, item in enumerate(data):
        if not isinstance(item, dict) or not isinstance(item.get("path"), str):
            raise ValueError(f"item {index} has no string 'path'")
        content = item.get("content", "")
        if not isinstance(content, str):
            raise ValueError(f"item {index} has non-string 'content'")
        files.append(FileWrite(path=item["path"], content=content))
    return files


def status(server: ServerOption = None) -> None:
    """Show the server's workspace root and recent roots."""

    result = _call(server, lambda client: client.get_status())
    typer.secho(f"Root: {result.current_root}", fg=typer.colors.CYAN)
    for entry in result.history:
        typer.echo(f"  {entry}")


def set_root(path: PathArgument, server: ServerOption = None) -> None:
    """Switch the server's workspace root."""

    result = _call(server, lambda client: client.set_root(path))
    typer.secho(f"Context switched to: {result.current_root}", fg=typer.colors.YELLOW)


def push(manifest: ManifestArgument, server: ServerOption = None) -> None:
    """Send files from a JSON document to the server in one sync batch."""

    try:
        files = load_push_file(manifest)
    except (OSError, ValueError) as exc:
        typer.secho(f"Cannot read {manifest}: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    result = _call(server, lambda client: client.sync(files))
    colors = {"CREATED": typer.colors.MAGENTA, "MODIFIED": typer.colors.GREEN}
    for item in result.results:
        if item.status == "ERROR":
            typer.secho(f"ERROR: {item.path} - {item.error}", fg=typer.colors.RED)
        else:
            typer.secho(f"{item.status}: {item.path}", fg=colors[item.status])

    if any(item.status == "ERROR" for item in result.results):
        raise typer.Exit(code=1)


def rollback(server: ServerOption = None) -> None:
    """Undo the most recent sync batch on the server."""

    result = _call(server, lambda client: client.rollback())
    typer.secho(
        f"Rolled back {result.transaction_id}: "
        f"{result.restored_count} change(s) reverted",
        fg=typer.colors.GREEN,
    )
    for warning in result.warnings:
        typer.secho(
            f"  skipped {warning.path}: {warning.error}", fg=typer.colors.YELLOW
        )


app.command("status")(status)
app.command("set-root")(set_root)
app.command("push")(push)
app.command("rollback")(rollback)
