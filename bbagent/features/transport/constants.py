"""HTTP constants for the transport layer.

Centralizes all HTTP-related constants to avoid duplication across modules.
"""

# HTTP Status Code Ranges
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300
HTTP_STATUS_NOT_MODIFIED = 304
HTTP_STATUS_TOO_MANY_REQUESTS = 429
HTTP_STATUS_SERVER_ERROR_MIN = 500
HTTP_STATUS_SERVER_ERROR_MAX = 600

# Retry policy defaults
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_BACKOFF_MS = 200
DEFAULT_MAX_BACKOFF_MS = 2000

# Maximum retry delay cap for Retry-After (seconds)
MAX_RETRY_AFTER_SECONDS = 60

# Adaptive throttle: voluntary pause when quota is nearly exhausted
THROTTLE_REMAINING_THRESHOLD = 1
MAX_THROTTLE_SECONDS = 5.0

# Client defaults
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_USER_AGENT = "bbagent"

# Chunk size for streaming reads
DEFAULT_CHUNK_SIZE = 8192

# Environment variable that turns on request/response echo
DEBUG_ENV_VAR = "BB_HTTP_DEBUG"

# Content types
CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_TEXT = "text/plain"

# Rate limit header families
RATE_LIMIT_SOURCE_PRIMARY = "bitbucket"
RATE_LIMIT_SOURCE_FALLBACK = "atlassian"

# Exception classifier that marks a CAPTCHA-locked account
CAPTCHA_EXCEPTION_MARKER = "captcharequired"
CAPTCHA_HINT_PREFIX = "CAPTCHA verification required: "
