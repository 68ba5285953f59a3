"""FastAPI binding of the bridge service."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import cast

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from aibridge_serve.core.bridge_service import BridgeService
from aibridge_serve.core.errors import BridgeError
from aibridge_serve.routes.schemas import (
    ErrorResponse,
    RollbackResponse,
    SetRootRequest,
    SetRootResponse,
    StatusResponse,
    SyncRequest,
    SyncResponse,
)

#: HTTP status per BridgeError code; anything unlisted is a server error
ERROR_STATUS: dict[str, int] = {
    "invalid_root": 400,
    "invalid_path": 400,
    "security_violation": 400,
    "no_transactions": 400,
    "corrupt_manifest": 409,
}

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def create_router(service: BridgeService) -> APIRouter:
    """Build the API router bound to ``service``."""
    router = APIRouter(tags=["bridge"])

    @router.get("/status", response_model=StatusResponse)
    async def get_status() -> StatusResponse:
        root = str(service.current_root)
        return StatusResponse(
            current_root=root,
            cwd=root,
            history=[str(p) for p in service.history],
        )

    @router.post(
        "/config/root", response_model=SetRootResponse, responses=_ERROR_RESPONSES
    )
    async def set_root(body: SetRootRequest) -> SetRootResponse:
        root = str(await service.set_root(body.path))
        return SetRootResponse(current_root=root, cwd=root)

    @router.post("/sync", response_model=SyncResponse, responses=_ERROR_RESPONSES)
    async def sync(body: SyncRequest) -> SyncResponse:
        report = await service.sync([f.to_write() for f in body.files])
        return SyncResponse.from_report(report)

    @router.post(
        "/rollback", response_model=RollbackResponse, responses=_ERROR_RESPONSES
    )
    async def rollback() -> RollbackResponse:
        report = await service.rollback()
        return RollbackResponse.from_report(report)

    return router


async def _bridge_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = cast(BridgeError, exc)
    status_code = ERROR_STATUS.get(error.code, 500)
    return JSONResponse(status_code=status_code, content=error.to_dict())


def create_app(service: BridgeService) -> FastAPI:
    """Create the FastAPI application serving ``service``.

    CORS is open because the content source runs in a browser page on
    another origin.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.bridge = service
        try:
            yield
        finally:
            await service.aclose()

    app = FastAPI(title="AI Bridge Serve", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(BridgeError, _bridge_error_handler)
    app.include_router(create_router(service))
    return app
