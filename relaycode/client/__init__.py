"""Client side: REST client, reconnecting event stream and local mirror."""

from .api import RelaycodeClient
from .mirror import TransactionMirror
from .stream import ConnectionState, ReconnectPolicy, StreamErrorKind, TransactionStreamConsumer

__all__ = [
    "ConnectionState",
    "ReconnectPolicy",
    "RelaycodeClient",
    "StreamErrorKind",
    "TransactionMirror",
    "TransactionStreamConsumer",
]
