"""Async HTTP client for a running bridge server.

Used by the CLI, and usable by any Python content source that wants to push
files into a workspace.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import httpx

from aibridge_serve.core.constants import DEFAULT_HOST, DEFAULT_PORT
from aibridge_serve.core.errors import BridgeError
from aibridge_serve.fs.fs_ops import FileWrite
from aibridge_serve.routes.schemas import (
    RollbackResponse,
    SetRootResponse,
    StatusResponse,
    SyncResponse,
)

DEFAULT_SERVER_URL = f"http://{DEFAULT_HOST}:{DEFAULT_PORT}"


class BridgeClientError(BridgeError):
    """Raised when the server rejects a request or cannot be reached.

    Attributes:
        status_code: HTTP status, or None if no response was received
        error: Error code reported by the server, if any
    """

    code = "client_error"

    def __init__(
        self, message: str, status_code: int | None = None, error: str | None = None
    ) -> None:
        self.status_code = status_code
        self.error = error
        super().__init__(message)


class BridgeClient:
    """Thin async wrapper over the bridge HTTP API."""

    def __init__(
        self,
        base_url: str = DEFAULT_SERVER_URL,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize client.

        Args:
            base_url: Server URL, e.g. ``http://127.0.0.1:3000``
            timeout: Request timeout in seconds
            transport: Optional transport override (tests)
        """
        self._client = httpx.AsyncClient(
            base_url=base_url, timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> BridgeClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise BridgeClientError(f"{method} {url} failed: {e}") from e

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            raise BridgeClientError(
                body.get("message") or response.text or response.reason_phrase,
                status_code=response.status_code,
                error=body.get("error"),
            )
        return response.json()

    async def get_status(self) -> StatusResponse:
        return StatusResponse.model_validate(await self._request("GET", "/status"))

    async def set_root(self, path: str) -> SetRootResponse:
        data = await self._request("POST", "/config/root", json={"path": path})
        return SetRootResponse.model_validate(data)

    async def sync(self, files: Iterable[FileWrite]) -> SyncResponse:
        payload = {"files": [{"path": f.path, "content": f.content} for f in files]}
        data = await self._request("POST", "/sync", json=payload)
        return SyncResponse.model_validate(data)

    async def rollback(self) -> RollbackResponse:
        return RollbackResponse.model_validate(await self._request("POST", "/rollback"))
