"""CLI entrypoints for AI Bridge Serve."""

from aibridge_serve.cli.main import app
from aibridge_serve.cli.remote import app as remote_app
from aibridge_serve.cli.serve import app as serve_app

__all__ = ["app", "remote_app", "serve_app"]
