"""Protocol-wide constants shared by client and server."""

ENCODING = "utf-8"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9559
CHUNK_SIZE = 256 * 1024  # characters of payload text per chunk_data frame
MAX_FRAME_SIZE = 1024 * 1024  # 1 MiB, matches the websockets default max_size
DEFAULT_REQUEST_TIMEOUT = 60.0  # seconds, long enough for chunked transfers
UNAVAILABLE_DELAY = 0.1  # seconds before PeerUnavailable is delivered
SERVER_PING_INTERVAL = 20.0
HEARTBEAT_GRACE = 40.0
CLIENT_PING_INTERVAL = 25.0
RECONNECT_BACKOFF = 0.5
MAX_RECONNECT_BACKOFF = 10.0

__all__ = [
    "ENCODING",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "CHUNK_SIZE",
    "MAX_FRAME_SIZE",
    "DEFAULT_REQUEST_TIMEOUT",
    "UNAVAILABLE_DELAY",
    "SERVER_PING_INTERVAL",
    "HEARTBEAT_GRACE",
    "CLIENT_PING_INTERVAL",
    "RECONNECT_BACKOFF",
    "MAX_RECONNECT_BACKOFF",
]
