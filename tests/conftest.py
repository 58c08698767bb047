from __future__ import annotations

import threading
import time
from typing import Callable, Iterator

import pytest

from canmon.core.events import ErrorEvent, Event, FrameEvent
from canmon.core.session import SessionManager
from canmon.core.transport.mock import MockDialer


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[Event] = []
        self._cond = threading.Condition()

    def emit(self, event: Event) -> None:
        with self._cond:
            self.events.append(event)
            self._cond.notify_all()

    def wait_for(self, count: int, timeout: float = 2.0) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: len(self.events) >= count, timeout)

    @property
    def frames(self) -> list[FrameEvent]:
        return [e for e in self.events if isinstance(e, FrameEvent)]

    @property
    def errors(self) -> list[str]:
        return [e.message for e in self.events if isinstance(e, ErrorEvent)]


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def dialer() -> MockDialer:
    return MockDialer()


@pytest.fixture
def manager(dialer: MockDialer, sink: RecordingSink) -> Iterator[SessionManager]:
    mgr = SessionManager(dialer, sink)
    yield mgr
    dialer.release()
    mgr.stop()
