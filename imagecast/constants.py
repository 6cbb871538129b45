"""
Application-level constants for hardcoded relay behavior.

These values define protocol details and safety limits and are not meant to
be changed through environment variables. For configurable values (send
timeouts, body size limit, sweep interval, ...) see imagecast/settings.py.
"""

# ============================================================================
# WebSocket Protocol Constants
# ============================================================================

# Path of the viewer WebSocket endpoint, also used by the served page
VIEWER_WS_PATH = "/ws"

# Close code sent to viewers when the relay shuts down (RFC 6455 "going away")
WS_GOING_AWAY_CODE = 1001

# Close code sent to a viewer dropped after a failed or timed-out send
WS_SEND_FAILED_CODE = 1011

# Timeout (seconds) when closing WebSocket connections gracefully
# Ensures connections don't hang indefinitely during shutdown
WS_CLOSE_TIMEOUT_SECONDS = 5


# ============================================================================
# Publish Payload
# ============================================================================

# Content type prefix of publish bodies that carry raw image bytes
RAW_IMAGE_CONTENT_TYPE_PREFIX = "image/"

# Number of leading payload characters included in log messages
PAYLOAD_LOG_PREVIEW_CHARS = 32


# ============================================================================
# Background Task Behavior
# ============================================================================

# Backoff delay (seconds) when a task iteration fails
# Prevents error loops from overwhelming system resources
TASK_ERROR_BACKOFF_SECONDS = 1


# ============================================================================
# Logging
# ============================================================================

# JSON log records above this size get their message truncated
MAX_LOG_RECORD_SIZE_BYTES = 256 * 1024
