"""Debug utility for AI Bridge Serve.

Provides a single debug() function that can be toggled via the
AIBRIDGE_DEBUG environment variable. Used for low-level filesystem tracing
that is too noisy for the structured log.

Usage:
    from aibridge_serve.utils.debug import debug

    debug(f"Backed up {relative_path}")

Environment:
    AIBRIDGE_DEBUG: Set to '1', 'true', 'yes' (case-insensitive) to enable
                    debug output. Any other value or unset disables it.
"""

import os
import sys
from typing import Any

_DEBUG_ENABLED = os.environ.get("AIBRIDGE_DEBUG", "").lower() in (
    "1",
    "true",
    "yes",
)


def debug(msg: Any) -> None:
    """Print debug message if AIBRIDGE_DEBUG is enabled.

    Args:
        msg: Message to print. Will be converted to string.

    Note:
        The environment variable is read at module import time. Changing it
        afterwards has no effect unless the module is reloaded.
    """
    if _DEBUG_ENABLED:
        print(f"[DEBUG] {msg}", file=sys.stdout)


def is_debug_enabled() -> bool:
    """Return True when AIBRIDGE_DEBUG was set at import time."""
    return _DEBUG_ENABLED
