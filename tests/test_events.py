from __future__ import annotations

import datetime as _dt

from canmon.core.errorframe import ErrorFrame
from canmon.core.events import ErrorEvent, NullSink, error_event, error_frame_event, frame_event
from canmon.core.frames import CanFrame


def test_frame_event_preserves_fields() -> None:
    ts = _dt.datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=_dt.timezone.utc)
    frame = CanFrame(can_id=0x18FF50E5, data=bytes([0x00, 0x80, 0xFF]), is_extended=True)

    evt = frame_event(frame, "can0", timestamp=ts)

    assert evt.to_dict() == {
        "event": "frame",
        "timestamp": "2024-05-01T12:00:00.123456+00:00",
        "interface": "can0",
        "id": 0x18FF50E5,
        "extended": True,
        "remote": False,
        "length": 3,
        "payload": [0, 128, 255],
    }


def test_frame_event_timestamp_is_aware_iso8601() -> None:
    evt = frame_event(CanFrame(can_id=0x1), "vcan0")
    parsed = _dt.datetime.fromisoformat(evt.to_dict()["timestamp"])  # type: ignore[arg-type]
    assert parsed.tzinfo is not None


def test_remote_frame_event() -> None:
    evt = frame_event(CanFrame(can_id=0x7DF, is_remote=True, dlc=8), "vcan0")
    assert evt.remote is True
    assert evt.length == 8
    assert evt.payload == ()


def test_error_events() -> None:
    assert error_event("boom").to_dict() == {"event": "error", "message": "boom"}
    assert error_event(OSError("down"), prefix="receive").message == "receive: down"
    assert error_event(TimeoutError()).message == "TimeoutError"


def test_error_frame_event_message() -> None:
    ef = ErrorFrame(error_class=0x008, data=bytes([0, 0, 0x04, 0x0A, 0, 0, 0, 0]))
    assert error_frame_event(ef) == ErrorEvent(
        message=(
            "CAN error frame: class=Protocol controller=Unspecified protocol=BitStuffing "
            "location=DataSection transceiver=Unspecified"
        )
    )


def test_null_sink_accepts_everything() -> None:
    NullSink().emit(error_event("ignored"))
