"""Project-wide constants (intervals, cooldowns, deadlines, storage keys)."""

# Fetch/Reconcile Scheduler
MIN_REFRESH_INTERVAL_MS: int = 1000
POST_ACTION_REFRESH_DELAY_SECONDS: float = 1.0

# Upload Coordinator
UPLOAD_COOLDOWN_MS: int = 3000
CONTENT_COOLDOWN_MS: int = 60000
UPLOAD_SETTLE_DELAY_SECONDS: float = 2.0
CONTENT_DIGEST_PREFIX_LENGTH: int = 16

# Notification Queue
NOTIFICATION_CAPACITY: int = 10
NOTIFICATION_DEFAULT_TTL_MS: int = 5000
NOTIFICATION_ERROR_SUPPRESS_WINDOW_MS: int = 2000

# Connection checker
CONNECTION_CHECK_DEBOUNCE_MS: int = 5000

# Per-call deadlines (seconds)
LIST_TIMEOUT_SECONDS: float = 15.0
DELETE_TIMEOUT_SECONDS: float = 15.0
PIN_TIMEOUT_SECONDS: float = 10.0
HEALTH_CHECK_TIMEOUT_SECONDS: float = 5.0
STATUS_TIMEOUT_SECONDS: float = 10.0
UPLOAD_BASE_TIMEOUT_SECONDS: float = 30.0
UPLOAD_TIMEOUT_SECONDS_PER_MB: float = 0.1

# Storage keys
FILES_STORAGE_KEY: str = "files-data"
NOTIFICATIONS_STORAGE_KEY: str = "app-toasts"

# Relay endpoints
LIST_ENDPOINT: str = "/files/all"
SEARCH_ENDPOINT: str = "/files/search"
ITEM_ENDPOINT: str = "/files"
UPLOAD_ENDPOINT: str = "/upload"
PIN_ENDPOINT: str = "/api/ipfs/pin"
UNPIN_ENDPOINT: str = "/api/ipfs/unpin"
UPLOAD_EXISTING_ENDPOINT: str = "/api/ipfs/upload-existing"
PIN_STATUS_ENDPOINT: str = "/api/ipfs/pin-status"
REMOTE_STATUS_ENDPOINT: str = "/api/ipfs/status"
HEALTH_CHECK_ENDPOINT: str = "/api/ipfs/health-check"

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

DEFAULT_CONFIG_DIR: str = ".relaysync"
DEFAULT_CACHE_FILENAME: str = "cache.json"
