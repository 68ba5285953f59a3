"""Path utilities for sandboxed workspace writes.

This module maps externally supplied virtual paths onto the workspace root
and enforces that every resolved path stays inside it.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from aibridge_serve.core.constants import (
    BRIDGE_DIR_NAME,
    FILE_SCHEME,
    RESOURCE_SCHEME,
    USER_DATA_DIR_NAME,
    USER_DATA_SCHEME,
)
from aibridge_serve.core.errors import InvalidPath, SecurityViolation

_LEADING_SEPARATORS = re.compile(r"^[/\\]+")
_LEADING_DOT_SEGMENTS = re.compile(r"^(?:\.[/\\]+)+")


@dataclass(frozen=True)
class ResolvedPath:
    """A virtual path mapped into the workspace.

    Attributes:
        absolute_path: Location on disk, inside the root
        relative_path: POSIX-style path relative to the root
    """

    absolute_path: Path
    relative_path: str


def normalize_path(path: Path | str, root: Path | None = None) -> Path:
    """Return the absolute, symlink-resolved form of a path.

    Names are kept byte-for-byte; no Unicode normalization is applied.

    Args:
        path: Path to normalize
        root: Optional root directory for relative paths

    Returns:
        Normalized absolute path
    """
    if not isinstance(path, Path):
        path = Path(path)

    if not path.is_absolute() and root is not None:
        path = root / path
    return path.resolve()


def strip_virtual_prefix(virtual_path: str) -> str:
    """Turn a virtual path into a root-relative path string.

    Scheme handling, in order: ``res://`` maps to the root, ``user://`` maps
    to the user-data subfolder, ``file://`` is dropped. Backslashes become
    the platform separator, then leading separators and ``./`` segments are
    removed.

    Args:
        virtual_path: Path as supplied by the content source

    Returns:
        Cleaned path string, not yet validated against the root
    """
    clean = virtual_path.strip()

    if clean.startswith(RESOURCE_SCHEME):
        clean = clean[len(RESOURCE_SCHEME) :]
    elif clean.startswith(USER_DATA_SCHEME):
        clean = f"{USER_DATA_DIR_NAME}/{clean[len(USER_DATA_SCHEME) :]}"
    if clean.startswith(FILE_SCHEME):
        clean = clean[len(FILE_SCHEME) :]

    clean = clean.replace("\\", os.sep)
    clean = _LEADING_SEPARATORS.sub("", clean)
    clean = _LEADING_DOT_SEGMENTS.sub("", clean)
    return clean


def resolve_virtual_path(virtual_path: str, root: Path) -> ResolvedPath:
    """Resolve a virtual path against the workspace root.

    The sandbox check runs on the fully normalized result, after ``..``
    segments and symlinks have been resolved.

    Args:
        virtual_path: Untrusted path supplied by the content source
        root: Workspace root (absolute)

    Returns:
        ResolvedPath inside the root

    Raises:
        InvalidPath: If the path is empty, contains NUL, or names the root
        SecurityViolation: If the path resolves outside the root or into
            the reserved bookkeeping directory
    """
    if "\x00" in virtual_path:
        raise InvalidPath(virtual_path, "path contains a NUL byte")

    clean = strip_virtual_prefix(virtual_path)
    if not clean:
        raise InvalidPath(virtual_path, "path is empty")

    root = normalize_path(root)
    absolute = normalize_path(clean, root)

    if not absolute.is_relative_to(root):
        raise SecurityViolation(virtual_path, str(absolute))
    if absolute == root:
        raise InvalidPath(virtual_path, "path names the workspace root")

    relative = PurePosixPath(*absolute.relative_to(root).parts)
    if relative.parts[0] == BRIDGE_DIR_NAME:
        raise SecurityViolation(virtual_path, str(absolute))

    return ResolvedPath(absolute_path=absolute, relative_path=str(relative))


def ensure_parent_dir(path: Path) -> None:
    """Ensure parent directory exists for a path.

    Args:
        path: Path whose parent directory should exist

    Raises:
        OSError: If parent directory cannot be created
    """
    parent = path.parent
    if not parent.exists():
        parent.mkdir(parents=True, exist_ok=True)
