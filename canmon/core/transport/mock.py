from __future__ import annotations

import queue
import threading
import time

from canmon.core.errorframe import ErrorFrame
from canmon.core.frames import CanFrame
from canmon.core.transport.base import (
    CanTransport,
    DialCancelledError,
    ReceivedUnit,
    TransportClosedError,
    TransportError,
)


_END = object()
_CLOSED = object()


class MockTransport(CanTransport):
    """In-memory transport used for local development and deterministic testing.

    Inbound traffic is scripted with ``push_frame``/``push_error_frame``/
    ``end_stream``/``fail``. Transmitted frames are collected in ``sent``.
    """

    def __init__(self, interface: str = "mock0") -> None:
        self.interface = interface
        self.sent: list[CanFrame] = []
        self.send_error: TransportError | None = None
        self.send_delay_s = 0.0
        self.close_count = 0
        self.closed = threading.Event()
        self._inbox: queue.Queue[object] = queue.Queue()

    def push_frame(self, frame: CanFrame) -> None:
        self._inbox.put(frame)

    def push_error_frame(self, error_frame: ErrorFrame) -> None:
        self._inbox.put(error_frame)

    def end_stream(self) -> None:
        self._inbox.put(_END)

    def fail(self, error: TransportError) -> None:
        self._inbox.put(error)

    def recv(self) -> ReceivedUnit | None:
        if self.closed.is_set():
            raise TransportClosedError("transport closed")
        item = self._inbox.get()
        if item is _CLOSED or self.closed.is_set():
            raise TransportClosedError("transport closed")
        if item is _END:
            return None
        if isinstance(item, TransportError):
            raise item
        if not isinstance(item, (CanFrame, ErrorFrame)):
            raise TransportError(f"unexpected inbound item: {type(item).__name__}")
        return item

    def send(self, frame: CanFrame, timeout_s: float) -> None:
        if self.closed.is_set():
            raise TransportClosedError("transport closed")
        if self.send_delay_s > 0:
            if self.send_delay_s >= timeout_s:
                time.sleep(timeout_s)
                raise TransportError("transmit: deadline exceeded")
            time.sleep(self.send_delay_s)
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(frame)

    def close(self) -> None:
        self.close_count += 1
        if self.closed.is_set():
            return None
        self.closed.set()
        self._inbox.put(_CLOSED)


class MockDialer:
    """Dialer handing out MockTransport instances.

    ``fail_with`` makes the next dials fail; ``hold()`` makes dials block until
    ``release()`` is called or the caller cancels.
    """

    def __init__(self) -> None:
        self.transports: list[MockTransport] = []
        self.dial_count = 0
        self.fail_with: str | None = None
        self.dialing = threading.Event()
        self._gate = threading.Event()
        self._gate.set()

    def hold(self) -> None:
        self._gate.clear()

    def release(self) -> None:
        self._gate.set()

    @property
    def last(self) -> MockTransport:
        return self.transports[-1]

    def __call__(self, interface: str, cancelled: threading.Event) -> MockTransport:
        self.dial_count += 1
        self.dialing.set()
        while not self._gate.wait(0.01):
            if cancelled.is_set():
                raise DialCancelledError("cancelled")
        if self.fail_with is not None:
            raise TransportError(self.fail_with)
        transport = MockTransport(interface)
        self.transports.append(transport)
        return transport
