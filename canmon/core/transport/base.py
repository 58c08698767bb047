from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Callable, Union

from canmon.core.errorframe import ErrorFrame
from canmon.core.frames import CanFrame


ReceivedUnit = Union[CanFrame, ErrorFrame]


class TransportError(Exception):
    pass


class TransportClosedError(TransportError):
    pass


class DialCancelledError(TransportError):
    pass


class CanTransport(ABC):
    """Duplex channel to one bus interface.

    The session core only relies on this contract:
    - ``recv()`` blocks until a frame or error frame arrives. It returns
      ``None`` at end of stream, raises ``TransportClosedError`` once
      ``close()`` has been called and ``TransportError`` on other faults.
    - ``send()`` transmits one frame or raises ``TransportError`` when the
      deadline passes or the bus rejects it.
    - ``close()`` is idempotent and unblocks a pending ``recv()``.
    """

    interface: str

    @abstractmethod
    def recv(self) -> ReceivedUnit | None:
        raise NotImplementedError

    @abstractmethod
    def send(self, frame: CanFrame, timeout_s: float) -> None:
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        raise NotImplementedError


# dial(interface, cancelled) -> transport. Implementations should give up
# with DialCancelledError once ``cancelled`` is set.
Dialer = Callable[[str, threading.Event], CanTransport]
