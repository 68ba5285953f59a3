"""Pydantic schemas for the bridge HTTP API.

These schemas define the request and response bodies of the four boundary
operations:
- GET /status
- POST /config/root
- POST /sync
- POST /rollback

All schemas use Pydantic v2 for validation and serialization.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from aibridge_serve.fs.fs_ops import FileWrite, SyncOutcome, SyncReport
from aibridge_serve.fs.rollback import RevertOutcome, RollbackReport


class StatusResponse(BaseModel):
    """Current workspace root and recently used roots.

    Attributes:
        current_root: Active workspace root
        cwd: Same as current_root; kept for the browser client
        history: Recent roots, most recent first
    """

    current_root: str
    cwd: str
    history: list[str] = Field(default_factory=list)


class SetRootRequest(BaseModel):
    path: str


class SetRootResponse(BaseModel):
    success: bool = True
    current_root: str
    cwd: str


class FilePayload(BaseModel):
    """One file of a sync request.

    Fields are loosely typed so a malformed entry becomes a per-file ERROR
    result instead of rejecting the whole batch.

    Attributes:
        path: Virtual path (``res://``, ``user://``, ``file://`` or relative)
        content: Full new file content
    """

    path: Any = None
    content: Any = None

    @model_validator(mode="before")
    @classmethod
    def wrap_non_object(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return data
        return {"path": data}

    def to_write(self) -> FileWrite:
        return FileWrite(path=self.path, content=self.content)


class SyncRequest(BaseModel):
    files: list[FilePayload] = Field(default_factory=list)


class FileResult(BaseModel):
    """Outcome of one requested file.

    Attributes:
        path: Root-relative path (or the supplied path if it was rejected)
        status: CREATED, MODIFIED or ERROR
        error: Reason, present only for ERROR
        error_code: Machine-readable reason, present only for ERROR
    """

    path: str
    status: Literal["CREATED", "MODIFIED", "ERROR"]
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def from_outcome(cls, outcome: SyncOutcome) -> "FileResult":
        return cls(
            path=outcome.path,
            status=outcome.status,
            error=outcome.error,
            error_code=outcome.error_code,
        )


class SyncResponse(BaseModel):
    success: bool = True
    transaction_id: str
    results: list[FileResult]

    @classmethod
    def from_report(cls, report: SyncReport) -> "SyncResponse":
        return cls(
            transaction_id=report.transaction_id,
            results=[FileResult.from_outcome(o) for o in report.outcomes],
        )


class RollbackWarning(BaseModel):
    """A manifest entry that could not be reverted."""

    path: str
    operation: Literal["CREATED", "MODIFIED"]
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def from_outcome(cls, outcome: RevertOutcome) -> "RollbackWarning":
        return cls(
            path=outcome.path,
            operation=outcome.operation.value,
            error=outcome.error,
            error_code=outcome.error_code,
        )


class RollbackResponse(BaseModel):
    success: bool = True
    transaction_id: str
    restored_count: int
    warnings: list[RollbackWarning] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: RollbackReport) -> "RollbackResponse":
        return cls(
            transaction_id=report.transaction_id,
            restored_count=report.restored_count,
            warnings=[RollbackWarning.from_outcome(o) for o in report.warnings],
        )


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str
