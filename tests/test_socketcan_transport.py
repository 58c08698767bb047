"""SocketCanTransport on top of python-can's virtual interface."""

from __future__ import annotations

import threading
import uuid
from typing import Iterator

import can
import pytest

from canmon.core.errorframe import ErrorFrame
from canmon.core.frames import CanFrame
from canmon.core.transport.base import DialCancelledError, TransportClosedError, TransportError
from canmon.core.transport.socketcan import SocketCanTransport, dial_socketcan


@pytest.fixture
def channel() -> str:
    return f"canmon-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def peer(channel: str) -> Iterator[can.BusABC]:
    bus = can.Bus(interface="virtual", channel=channel)
    yield bus
    bus.shutdown()


@pytest.fixture
def transport(channel: str) -> Iterator[SocketCanTransport]:
    bus = can.Bus(interface="virtual", channel=channel)
    tr = SocketCanTransport(bus, "vcan-test", poll_s=0.02)
    yield tr
    tr.close()


def test_recv_data_and_remote_frames(transport: SocketCanTransport, peer: can.BusABC) -> None:
    peer.send(can.Message(arbitration_id=0x123, data=[1, 2, 3], is_extended_id=False))
    peer.send(can.Message(arbitration_id=0x18FF50E5, is_extended_id=True, is_remote_frame=True, dlc=8))

    first = transport.recv()
    second = transport.recv()

    assert first == CanFrame(can_id=0x123, data=b"\x01\x02\x03", is_extended=False, is_remote=False, dlc=3)
    assert isinstance(second, CanFrame)
    assert second.is_remote and second.is_extended
    assert second.data == b"" and second.length == 8


def test_recv_error_frame(transport: SocketCanTransport, peer: can.BusABC) -> None:
    peer.send(can.Message(arbitration_id=0x040, is_error_frame=True, data=bytes(8), is_extended_id=False))
    unit = transport.recv()
    assert isinstance(unit, ErrorFrame)
    assert unit.class_name == "BusOff"


def test_send_reaches_peer(transport: SocketCanTransport, peer: can.BusABC) -> None:
    transport.send(CanFrame(can_id=0x321, data=b"\xAA\xBB"), 1.0)
    msg = peer.recv(1.0)
    assert msg is not None
    assert msg.arbitration_id == 0x321
    assert bytes(msg.data) == b"\xAA\xBB"


def test_close_unblocks_reader(transport: SocketCanTransport) -> None:
    raised: list[BaseException] = []

    def _read() -> None:
        try:
            transport.recv()
        except BaseException as exc:  # noqa: BLE001
            raised.append(exc)

    reader = threading.Thread(target=_read)
    reader.start()
    transport.close()
    transport.close()
    reader.join(2.0)

    assert not reader.is_alive()
    assert len(raised) == 1 and isinstance(raised[0], TransportClosedError)


def test_send_after_close(transport: SocketCanTransport) -> None:
    transport.close()
    with pytest.raises(TransportError):
        transport.send(CanFrame(can_id=0x1), 1.0)


def test_dial_respects_prior_cancellation() -> None:
    cancelled = threading.Event()
    cancelled.set()
    with pytest.raises(DialCancelledError):
        dial_socketcan("vcan0", cancelled)
