from __future__ import annotations

from canmon.core.transport.base import (
    CanTransport,
    DialCancelledError,
    Dialer,
    ReceivedUnit,
    TransportClosedError,
    TransportError,
)
from canmon.core.transport.mock import MockDialer, MockTransport
from canmon.core.transport.socketcan import SocketCanTransport, dial_socketcan

__all__ = [
    "CanTransport",
    "DialCancelledError",
    "Dialer",
    "MockDialer",
    "MockTransport",
    "ReceivedUnit",
    "SocketCanTransport",
    "TransportClosedError",
    "TransportError",
    "dial_socketcan",
]
