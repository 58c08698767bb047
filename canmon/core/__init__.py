from __future__ import annotations

from canmon.core.errors import (
    AlreadyActiveError,
    CanmonError,
    DialError,
    InvalidFrameError,
    NotStartedError,
    PayloadTooLargeError,
    TransmitError,
)
from canmon.core.events import ErrorEvent, EventSink, FrameEvent
from canmon.core.frames import CanFrame
from canmon.core.session import Session, SessionManager, SessionState

__all__ = [
    "AlreadyActiveError",
    "CanFrame",
    "CanmonError",
    "DialError",
    "ErrorEvent",
    "EventSink",
    "FrameEvent",
    "InvalidFrameError",
    "NotStartedError",
    "PayloadTooLargeError",
    "Session",
    "SessionManager",
    "SessionState",
    "TransmitError",
]
