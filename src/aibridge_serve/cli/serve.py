"""CLI commands that run against the local machine: the server and offline
transaction listing."""

from __future__ import annotations

import asyncio
import importlib
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import uvicorn
from rich.console import Console

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
    from typer import Typer as TyperType
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")
    TyperType = Any

from aibridge_serve.core.bridge_service import BridgeService
from aibridge_serve.core.errors import BridgeError, InvalidRoot
from aibridge_serve.core.settings import BridgeSettings
from aibridge_serve.routes.api import create_app
from aibridge_serve.utils.logging import configure_logging

app: TyperType = typer.Typer(help="Run the bridge server and inspect workspaces.")

HostOption = Annotated[
    str | None,
    typer.Option("--host", help="Bind address (default: AIBRIDGE_HOST)."),
]
PortOption = Annotated[
    int | None,
    typer.Option("--port", help="Port (default: AIBRIDGE_PORT or 3000)."),
]
RootOption = Annotated[
    Path | None,
    typer.Option("--root", help="Workspace root (default: last used root)."),
]
JsonFlag = Annotated[
    bool,
    typer.Option("--json", help="Emit JSON instead of plain lines."),
]
DebugFlag = Annotated[
    bool,
    typer.Option("--debug", help="Log debug-level events."),
]


def _load_service() -> tuple[BridgeSettings, BridgeService]:
    try:
        settings = BridgeSettings.from_env()
    except ValueError as exc:
        typer.secho(f"Invalid configuration: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    return settings, BridgeService.from_settings(settings)


def serve(
    host: HostOption = None,
    port: PortOption = None,
    root: RootOption = None,
    debug: DebugFlag = False,
) -> None:
    """Start the HTTP server."""

    configure_logging(debug)
    settings, service = _load_service()

    if root is not None:
        try:
            service.registry.set_root(root)
        except InvalidRoot as exc:
            typer.secho(str(exc), err=True, fg=typer.colors.RED)
            raise typer.Exit(code=1) from exc

    bind_host = host or settings.host
    bind_port = port or settings.port

    console = Console()
    console.rule("[bold yellow]AI BRIDGE[/bold yellow]", style="cyan")
    console.print(f"Root: {service.current_root}")
    console.print(f"Listening on http://{bind_host}:{bind_port}")
    console.rule(style="cyan")

    uvicorn.run(create_app(service), host=bind_host, port=bind_port)


def list_transactions(root: RootOption = None, json_output: JsonFlag = False) -> None:
    """List the transactions of a workspace, newest first."""

    _, service = _load_service()
    target = root or service.current_root
    if not target.is_dir():
        typer.secho(f"Not a directory: {target}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)

    async def collect() -> list[dict[str, Any]]:
        store = service.store_for(target)
        rows = []
        for tx in reversed(await store.list_transactions()):
            try:
                manifest = await store.load_manifest(tx)
            except BridgeError as exc:
                rows.append({"id": tx.id, "entries": None, "error": str(exc)})
                continue
            rows.append({"id": tx.id, "entries": len(manifest.entries)})
        return rows

    rows = asyncio.run(collect())

    if json_output:
        typer.echo(json.dumps(rows, indent=2))
        return

    if not rows:
        typer.echo(f"No transactions in {target}")
        return

    for row in rows:
        if row["entries"] is None:
            typer.secho(
                f"{row['id']}  unreadable ({row['error']})", fg=typer.colors.RED
            )
        else:
            typer.echo(f"{row['id']}  {row['entries']} file(s)")


app.command("serve")(serve)
app.command("transactions")(list_transactions)
