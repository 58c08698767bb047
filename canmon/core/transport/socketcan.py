from __future__ import annotations

import logging
import threading

import can

from canmon.core.errorframe import ErrorFrame
from canmon.core.frames import CanFrame
from canmon.core.transport.base import (
    CanTransport,
    DialCancelledError,
    ReceivedUnit,
    TransportClosedError,
    TransportError,
)
from canmon.logging import TRACE_LEVEL


log = logging.getLogger(__name__)

DEFAULT_POLL_S = 0.1


class SocketCanTransport(CanTransport):
    def __init__(self, bus: can.BusABC, interface: str, *, poll_s: float = DEFAULT_POLL_S) -> None:
        self.interface = interface
        self._bus = bus
        self._poll_s = float(poll_s)
        self._closed = threading.Event()
        # Held across each bounded recv() so close() never shuts the socket
        # down underneath a reader.
        self._rx_lock = threading.Lock()
        self._close_lock = threading.Lock()
        self._shutdown_done = False

    @classmethod
    def open(cls, interface: str, *, poll_s: float = DEFAULT_POLL_S) -> "SocketCanTransport":
        try:
            bus = can.Bus(channel=interface, interface="socketcan")
        except (can.CanError, OSError) as exc:
            raise TransportError(str(exc) or type(exc).__name__) from exc
        log.debug("SocketCAN bus opened", extra={"can_interface": interface})
        return cls(bus, interface, poll_s=poll_s)

    def recv(self) -> ReceivedUnit | None:
        while True:
            with self._rx_lock:
                if self._closed.is_set():
                    raise TransportClosedError("transport closed")
                try:
                    msg = self._bus.recv(self._poll_s)
                except (can.CanError, OSError, ValueError) as exc:
                    if self._closed.is_set():
                        raise TransportClosedError("transport closed") from exc
                    raise TransportError(str(exc) or type(exc).__name__) from exc
            if msg is None:
                continue
            if msg.is_error_frame:
                return ErrorFrame(error_class=int(msg.arbitration_id), data=bytes(msg.data))
            frame = CanFrame(
                can_id=int(msg.arbitration_id),
                data=b"" if msg.is_remote_frame else bytes(msg.data),
                is_extended=bool(msg.is_extended_id),
                is_remote=bool(msg.is_remote_frame),
                dlc=int(msg.dlc),
            )
            if log.isEnabledFor(TRACE_LEVEL):
                log.trace(  # type: ignore[attr-defined]
                    "SocketCAN RX",
                    extra={"can_interface": self.interface, "can_id": f"0x{frame.can_id:X}", "data_hex": frame.data.hex()},
                )
            return frame

    def send(self, frame: CanFrame, timeout_s: float) -> None:
        if self._closed.is_set():
            raise TransportClosedError("transport closed")
        if log.isEnabledFor(TRACE_LEVEL):
            log.trace(  # type: ignore[attr-defined]
                "SocketCAN TX",
                extra={"can_interface": self.interface, "can_id": f"0x{frame.can_id:X}", "data_hex": frame.data.hex()},
            )
        msg = can.Message(
            arbitration_id=int(frame.can_id),
            data=frame.data,
            is_extended_id=bool(frame.is_extended),
            is_remote_frame=bool(frame.is_remote),
            dlc=frame.length,
        )
        try:
            self._bus.send(msg, timeout=float(timeout_s))
        except (can.CanError, OSError, ValueError) as exc:
            raise TransportError(f"transmit: {exc}") from exc

    def close(self) -> None:
        self._closed.set()
        with self._close_lock:
            if self._shutdown_done:
                return None
            self._shutdown_done = True
        # Wait for an in-flight poll to return before releasing the socket.
        with self._rx_lock:
            self._bus.shutdown()
        log.debug("SocketCAN bus closed", extra={"can_interface": self.interface})


def dial_socketcan(interface: str, cancelled: threading.Event) -> SocketCanTransport:
    if cancelled.is_set():
        raise DialCancelledError("cancelled")
    transport = SocketCanTransport.open(interface)
    if cancelled.is_set():
        transport.close()
        raise DialCancelledError("cancelled")
    return transport
