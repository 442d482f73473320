"""Key-value store configuration.

Retry, timeout and schema constants for the SQLite-backed store. Backend
selection and file location come from ``api.config.settings``.
"""

from typing import TypeVar

# ==============================================================================
# RETRY CONFIGURATION
# ==============================================================================
DEFAULT_MAX_RETRIES = 3  # Extra attempts for writes that hit a locked database
RETRY_BASE_DELAY = 0.1  # Seconds; doubled on every attempt
RETRY_MAX_DELAY = 5.0  # Upper bound for a single backoff sleep

# ==============================================================================
# SQLITE CONFIGURATION
# ==============================================================================
SQLITE_TIMEOUT = 10.0  # Seconds sqlite3 waits on a locked database before raising
TABLE_NAME = "kv_store"

# ==============================================================================
# STORE KEYS
# ==============================================================================
GROUPS_INDEX_KEY = "groupsIndex"
MIND_MAPS_KEY = "mindMaps"
API_KEY_KEY = "geminiApiKey"
MODEL_KEY = "geminiModel"

# Keys that never hold a fragment
RESERVED_KEYS = frozenset({GROUPS_INDEX_KEY, MIND_MAPS_KEY, API_KEY_KEY, MODEL_KEY})

T = TypeVar("T")
