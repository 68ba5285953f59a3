"""Custom exceptions for AI Bridge Serve.

This module defines typed exceptions used throughout the application for
error handling and API responses.
"""

from typing import Any


class BridgeError(Exception):
    """Base exception for all AI Bridge Serve errors.

    All custom exceptions should inherit from this base class to allow
    for broad exception handling when needed.
    """

    #: Machine-readable error code used in API responses
    code: str = "bridge_error"

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses.

        Returns:
            Dictionary representation suitable for JSON responses
        """
        return {"success": False, "error": self.code, "message": str(self)}


class InvalidRoot(BridgeError):
    """Raised when a requested workspace root does not exist.

    The previous root stays in effect.

    Attributes:
        path: The rejected candidate path
    """

    code = "invalid_root"

    def __init__(self, path: str, reason: str = "path not found") -> None:
        """Initialize InvalidRoot exception.

        Args:
            path: Candidate root that was rejected
            reason: Human-readable reason for rejection
        """
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid workspace root '{path}': {reason}")

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["path"] = self.path
        return result

    def __repr__(self) -> str:
        """Return repr string for debugging."""
        return f"InvalidRoot(path={self.path!r}, reason={self.reason!r})"


class InvalidPath(BridgeError):
    """Raised when a virtual path is empty or otherwise malformed."""

    code = "invalid_path"

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid path '{path}': {reason}")

    def __repr__(self) -> str:
        """Return repr string for debugging."""
        return f"InvalidPath(path={self.path!r}, reason={self.reason!r})"


class SecurityViolation(BridgeError):
    """Raised when a resolved path would escape the workspace sandbox.

    Attributes:
        path: The offending virtual path as supplied by the caller
        resolved: The absolute path it normalized to, if known
    """

    code = "security_violation"

    def __init__(self, path: str, resolved: str | None = None) -> None:
        """Initialize SecurityViolation exception.

        Args:
            path: Virtual path supplied by the caller
            resolved: Absolute path the virtual path resolved to
        """
        self.path = path
        self.resolved = resolved

        message = f"Security Violation: '{path}' resolves outside the workspace"
        if resolved is not None:
            message += f" ({resolved})"

        super().__init__(message)

    def __repr__(self) -> str:
        """Return repr string for debugging."""
        return f"SecurityViolation(path={self.path!r}, resolved={self.resolved!r})"


class WriteFailure(BridgeError):
    """Raised when an I/O error occurs during write, backup or restore.

    Attributes:
        path: Relative path of the affected file
        operation: Step that failed ('write', 'backup', 'restore', 'delete')
    """

    code = "write_failure"

    def __init__(self, path: str, operation: str, cause: OSError) -> None:
        self.path = path
        self.operation = operation
        self.cause = cause
        super().__init__(f"Failed to {operation} '{path}': {cause}")

    def __repr__(self) -> str:
        """Return repr string for debugging."""
        return (
            f"WriteFailure(path={self.path!r}, "
            f"operation={self.operation!r}, "
            f"cause={self.cause!r})"
        )


class NoTransactions(BridgeError):
    """Raised when a rollback is requested but no transaction exists."""

    code = "no_transactions"

    def __init__(self, root: str) -> None:
        self.root = root
        super().__init__(f"No transactions to roll back in '{root}'")


class CorruptBackup(BridgeError):
    """Raised when a backup expected by a MODIFIED entry is missing.

    Non-fatal during rollback: the entry is skipped and reported.
    """

    code = "corrupt_backup"

    def __init__(self, path: str, transaction_id: str) -> None:
        self.path = path
        self.transaction_id = transaction_id
        super().__init__(
            f"Backup for '{path}' missing from transaction {transaction_id}"
        )

    def __repr__(self) -> str:
        """Return repr string for debugging."""
        return (
            f"CorruptBackup(path={self.path!r}, "
            f"transaction_id={self.transaction_id!r})"
        )


class CorruptManifest(BridgeError):
    """Raised when a transaction manifest cannot be read or parsed."""

    code = "corrupt_manifest"

    def __init__(self, transaction_id: str, reason: str) -> None:
        self.transaction_id = transaction_id
        self.reason = reason
        super().__init__(
            f"Manifest of transaction {transaction_id} is unreadable: {reason}"
        )
