"""Core constants for AI Bridge Serve.

This module defines constants used throughout the application:
- Reserved bookkeeping directory names inside a workspace
- Virtual path schemes understood by the path resolver
- Retention and history limits
"""

# ============================================================================
# Workspace Layout
# ============================================================================

#: Reserved directory under every workspace root for bridge bookkeeping
BRIDGE_DIR_NAME: str = ".ai-bridge"

#: Subdirectory of BRIDGE_DIR_NAME holding one directory per transaction
TRANSACTIONS_DIR_NAME: str = "transactions"

#: Manifest file name inside a transaction directory
MANIFEST_FILE_NAME: str = "manifest.json"

#: Subdirectory of a transaction directory holding pre-image backups
BACKUPS_DIR_NAME: str = "files"

#: Manifest schema version written into every manifest
MANIFEST_SCHEMA_VERSION: str = "1.0"

# ============================================================================
# Virtual Path Schemes
# ============================================================================

#: Scheme that maps onto the workspace root itself
RESOURCE_SCHEME: str = "res://"

#: Scheme that maps onto USER_DATA_DIR_NAME under the workspace root
USER_DATA_SCHEME: str = "user://"

#: Plain file scheme, stripped before resolution
FILE_SCHEME: str = "file://"

#: Subfolder that USER_DATA_SCHEME paths land in
USER_DATA_DIR_NAME: str = "user_data"

# ============================================================================
# Limits
# ============================================================================

#: Number of transactions kept per workspace before pruning
DEFAULT_RETENTION_LIMIT: int = 50

#: Number of recently used workspace roots remembered
DEFAULT_HISTORY_LIMIT: int = 10

# ============================================================================
# Server Defaults
# ============================================================================

DEFAULT_HOST: str = "127.0.0.1"
DEFAULT_PORT: int = 3000

#: Transaction id format; fixed width so lexical order equals time order
TRANSACTION_ID_FORMAT: str = "%Y-%m-%dT%H-%M-%S-%fZ"

#: Pattern matching directory names produced by TRANSACTION_ID_FORMAT
TRANSACTION_ID_PATTERN: str = r"^\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{6}Z$"
