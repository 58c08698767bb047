from __future__ import annotations

import pytest

from canmon.core.errors import InvalidFrameError, PayloadTooLargeError
from canmon.core.frames import CanFrame, coerce_payload, format_can_id, parse_can_id, parse_payload_hex


def test_standard_frame_limits() -> None:
    CanFrame(can_id=0x7FF, data=bytes(8)).validate()
    with pytest.raises(InvalidFrameError, match="standard CAN id 0x800"):
        CanFrame(can_id=0x800).validate()


def test_extended_frame_limits() -> None:
    CanFrame(can_id=0x1FFFFFFF, is_extended=True).validate()
    with pytest.raises(InvalidFrameError):
        CanFrame(can_id=0x20000000, is_extended=True).validate()


def test_payload_too_large() -> None:
    with pytest.raises(PayloadTooLargeError) as info:
        CanFrame(can_id=0x1, data=bytes(9)).validate()
    assert info.value.length == 9


def test_remote_frame_carries_dlc_only() -> None:
    frame = CanFrame(can_id=0x123, is_remote=True, dlc=4)
    frame.validate()
    assert frame.length == 4
    with pytest.raises(InvalidFrameError, match="remote frame"):
        CanFrame(can_id=0x123, data=b"\x01", is_remote=True, dlc=1).validate()


def test_dlc_must_match_data() -> None:
    with pytest.raises(InvalidFrameError, match="DLC 3"):
        CanFrame(can_id=0x1, data=b"\x01", dlc=3).validate()


def test_coerce_payload() -> None:
    assert coerce_payload([0, 127, 255]) == b"\x00\x7f\xff"
    assert coerce_payload(bytearray(b"\x01")) == b"\x01"
    with pytest.raises(InvalidFrameError):
        coerce_payload([256])
    with pytest.raises(InvalidFrameError):
        coerce_payload([-1])
    with pytest.raises(InvalidFrameError):
        coerce_payload([True])


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("123", 0x123), ("0x18FF50E5", 0x18FF50E5), (" 7ff ", 0x7FF), (291, 291)],
)
def test_parse_can_id(raw: object, expected: int) -> None:
    assert parse_can_id(raw) == expected


@pytest.mark.parametrize("raw", ["", "0x", "xyz", None, True, 1.5])
def test_parse_can_id_rejects(raw: object) -> None:
    with pytest.raises(ValueError):
        parse_can_id(raw)


def test_parse_payload_hex() -> None:
    assert parse_payload_hex("010203") == b"\x01\x02\x03"
    assert parse_payload_hex("01 02:03") == b"\x01\x02\x03"
    assert parse_payload_hex("") == b""
    with pytest.raises(ValueError):
        parse_payload_hex("0g")


def test_format_can_id() -> None:
    assert format_can_id(0x12) == "012"
    assert format_can_id(0x12, extended=True) == "00000012"
