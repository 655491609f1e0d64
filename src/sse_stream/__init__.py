from .asyncsse import Message, parse_sse_message
from .core import StreamClient
from .errors import (
    InvalidStreamURL,
    MidStreamReadError,
    NonSuccessStatus,
    RetriesExhausted,
    SSEError,
    StreamEnded,
    TransportConnectError,
)
from .models import (
    EndOfStream,
    PullResult,
    Received,
    RetryPolicy,
    StreamConfig,
    StreamFailure,
)

__all__ = [
    "Message",
    "parse_sse_message",
    "StreamClient",
    "StreamConfig",
    "RetryPolicy",
    "PullResult",
    "Received",
    "EndOfStream",
    "StreamFailure",
    "SSEError",
    "InvalidStreamURL",
    "TransportConnectError",
    "NonSuccessStatus",
    "MidStreamReadError",
    "RetriesExhausted",
    "StreamEnded",
]
