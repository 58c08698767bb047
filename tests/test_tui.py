from __future__ import annotations

import datetime as _dt
from collections import deque

from canmon.apps.tui import ErrorReported, FrameReceived, IdFilter, TuiSink, format_frame_row, parse_id_filter, push_error
from canmon.core.events import ErrorEvent, FrameEvent


def test_parse_id_filter() -> None:
    assert parse_id_filter("") == IdFilter("none")
    assert parse_id_filter(" 0x123 ") == IdFilter("id", 0x123)
    assert parse_id_filter("18FF50E5") == IdFilter("id", 0x18FF50E5)
    assert parse_id_filter("0x") == IdFilter("invalid")
    assert parse_id_filter("12g") == IdFilter("invalid")


def test_push_error_skips_repeat_of_newest() -> None:
    errors: deque[str] = deque(maxlen=3)
    for msg in ["a", "a", "b", "a", "c", "d"]:
        push_error(errors, msg)
    assert list(errors) == ["d", "c", "a"]


def test_format_frame_row() -> None:
    evt = FrameEvent(
        timestamp=_dt.datetime(2024, 1, 1, 8, 30, 0, 250000, tzinfo=_dt.timezone.utc),
        interface="vcan0",
        can_id=0x1F,
        extended=False,
        remote=False,
        length=2,
        payload=(0x0A, 0xFF),
    )
    _, can_id, kind, dlc, data = format_frame_row(evt)
    assert (can_id, kind, dlc, data) == ("0x01F", "STD", "2", "0A FF")


def test_sink_posts_messages() -> None:
    posted: list[object] = []

    class _App:
        def post_message(self, message: object) -> bool:
            posted.append(message)
            return True

    sink = TuiSink()
    sink.emit(ErrorEvent("dropped before bind"))
    sink.bind(_App())  # type: ignore[arg-type]
    sink.emit(ErrorEvent("boom"))

    assert len(posted) == 1
    assert isinstance(posted[0], ErrorReported)
    assert posted[0].event.message == "boom"
    evt = FrameEvent(
        timestamp=_dt.datetime.now(tz=_dt.timezone.utc),
        interface="vcan0",
        can_id=0x100,
        extended=False,
        remote=False,
        length=0,
        payload=(),
    )
    sink.emit(evt)
    assert isinstance(posted[1], FrameReceived) and posted[1].event is evt
