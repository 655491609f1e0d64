"""SSE client error taxonomy.

Only ``InvalidStreamURL`` escapes construction and ``connect()``; every other
connection problem is recorded on the client (``healthy`` / ``last_error``)
and handed back through ``pull()``.
"""


class SSEError(Exception):
    """Base error (do not raise directly)."""


class InvalidStreamURL(SSEError, ValueError):
    """Target URL can not be requested at all; retrying will not help."""


class TransportConnectError(SSEError):
    """Could not open the HTTP connection."""


class NonSuccessStatus(SSEError):
    def __init__(self, status: int):
        super().__init__(f"Unexpected status code in SSE request: {status}")
        self.status = status


class MidStreamReadError(SSEError):
    """Reading an established response body failed."""


class RetriesExhausted(SSEError):
    def __init__(self, attempts: int):
        super().__init__(f"gave up reconnecting after {attempts} attempt(s)")
        self.attempts = attempts


class StreamEnded(SSEError):
    """Server closed the stream."""


__all__ = [
    "SSEError",
    "InvalidStreamURL",
    "TransportConnectError",
    "NonSuccessStatus",
    "MidStreamReadError",
    "RetriesExhausted",
    "StreamEnded",
]
