from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from typing import Protocol, Union

from canmon.core.errorframe import ErrorFrame
from canmon.core.frames import CanFrame


@dataclass(frozen=True)
class FrameEvent:
    timestamp: _dt.datetime
    interface: str
    can_id: int
    extended: bool
    remote: bool
    length: int
    payload: tuple[int, ...]

    def to_dict(self) -> dict[str, object]:
        # Keep key order stable for JSONL streaming.
        return {
            "event": "frame",
            "timestamp": self.timestamp.isoformat(timespec="microseconds"),
            "interface": self.interface,
            "id": int(self.can_id),
            "extended": bool(self.extended),
            "remote": bool(self.remote),
            "length": int(self.length),
            "payload": list(self.payload),
        }


@dataclass(frozen=True)
class ErrorEvent:
    message: str

    def to_dict(self) -> dict[str, object]:
        return {"event": "error", "message": self.message}


Event = Union[FrameEvent, ErrorEvent]


class EventSink(Protocol):
    """One-way channel to the presentation layer.

    Called synchronously from the receive worker (and from control calls for
    dial/transmit faults). Implementations must not assume they are called on
    any particular thread.
    """

    def emit(self, event: Event) -> None: ...


class NullSink:
    def emit(self, event: Event) -> None:
        return None


def frame_event(frame: CanFrame, interface: str, *, timestamp: _dt.datetime | None = None) -> FrameEvent:
    ts = timestamp if timestamp is not None else _dt.datetime.now(tz=_dt.timezone.utc).astimezone()
    return FrameEvent(
        timestamp=ts,
        interface=interface,
        can_id=int(frame.can_id) & 0xFFFFFFFF,
        extended=bool(frame.is_extended),
        remote=bool(frame.is_remote),
        length=frame.length,
        payload=tuple(frame.data),
    )


def error_frame_event(error_frame: ErrorFrame) -> ErrorEvent:
    return ErrorEvent(message=error_frame.describe())


def error_event(error: BaseException | str, *, prefix: str | None = None) -> ErrorEvent:
    message = str(error)
    if isinstance(error, BaseException) and not message:
        message = type(error).__name__
    if prefix:
        message = f"{prefix}: {message}"
    return ErrorEvent(message=message)
