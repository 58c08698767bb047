from __future__ import annotations

import enum
import itertools
import logging
import threading
from typing import Iterable

from canmon.core.errors import (
    AlreadyActiveError,
    DialError,
    NotStartedError,
    PayloadTooLargeError,
    TransmitError,
)
from canmon.core.errorframe import ErrorFrame
from canmon.core.events import Event, EventSink, NullSink, error_event, error_frame_event, frame_event
from canmon.core.frames import MAX_DATA_LENGTH, CanFrame, coerce_payload
from canmon.core.transport.base import CanTransport, Dialer, TransportClosedError, TransportError
from canmon.logging import session_context


log = logging.getLogger(__name__)

DEFAULT_INTERFACE = "vcan0"
TRANSMIT_TIMEOUT_S = 1.0

_session_ids = itertools.count(1)


class SessionState(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class Session:
    """One live binding to a bus interface.

    ``transport`` is assigned once, before the receive worker starts, and is
    never reassigned. ``done`` fires exactly once when the session is torn
    down, whichever path got there.
    """

    def __init__(self, interface: str) -> None:
        self.id = f"s{next(_session_ids)}"
        self.interface = interface
        self.cancelled = threading.Event()
        self.done = threading.Event()
        self.transport: CanTransport | None = None
        self._state = SessionState.PENDING
        self._state_lock = threading.Lock()
        self._closed_transport = False

    def __repr__(self) -> str:
        return f"Session(id={self.id!r}, interface={self.interface!r}, state={self.state.value!r})"

    @property
    def state(self) -> SessionState:
        return self._state

    def _advance(self, state: SessionState) -> bool:
        order = list(SessionState)
        with self._state_lock:
            if order.index(state) <= order.index(self._state):
                return False
            self._state = state
        return True

    def attach(self, transport: CanTransport) -> None:
        with self._state_lock:
            if self.transport is not None:
                raise RuntimeError("session transport already attached")
            self.transport = transport

    def activate(self) -> None:
        self._advance(SessionState.ACTIVE)

    def cancel(self) -> None:
        self.cancelled.set()
        self._advance(SessionState.CLOSING)

    def close_transport(self) -> None:
        with self._state_lock:
            transport = self.transport
            if transport is None or self._closed_transport:
                return None
            self._closed_transport = True
        try:
            transport.close()
        except Exception:
            log.warning("Transport close failed", extra={"session_id": self.id}, exc_info=True)

    def finish(self) -> None:
        # Worker-observed ends (stream end, receive fault) pass through
        # closing like a stop does; a failed dial goes straight to closed.
        if self.transport is not None:
            self._advance(SessionState.CLOSING)
        self.close_transport()
        self._advance(SessionState.CLOSED)
        self.done.set()


class SessionManager:
    """Owns the single session slot of a process.

    ``start``/``stop``/``send`` may be called from any number of threads. The
    slot is only read, installed or cleared under ``_lock``; dialing and the
    receive loop run outside it.
    """

    def __init__(
        self,
        dialer: Dialer,
        sink: EventSink | None = None,
        *,
        default_interface: str = DEFAULT_INTERFACE,
        transmit_timeout_s: float = TRANSMIT_TIMEOUT_S,
    ) -> None:
        self._dialer = dialer
        self._sink: EventSink = sink if sink is not None else NullSink()
        self._default_interface = default_interface
        self._transmit_timeout_s = float(transmit_timeout_s)
        self._lock = threading.Lock()
        self._session: Session | None = None

    @property
    def session(self) -> Session | None:
        with self._lock:
            return self._session

    def status(self) -> dict[str, object]:
        sess = self.session
        if sess is None:
            return {"active": False, "interface": None, "state": None}
        return {
            "active": sess.state == SessionState.ACTIVE,
            "interface": sess.interface,
            "state": sess.state.value,
        }

    def start(self, interface: str | None = None) -> Session:
        iface = (interface or "").strip() or self._default_interface

        with self._lock:
            if self._session is not None:
                raise AlreadyActiveError()
            sess = Session(iface)
            self._session = sess

        log.info("Starting CAN session", extra={"can_interface": iface, "session_id": sess.id})
        try:
            transport = self._dialer(iface, sess.cancelled)
        except Exception as exc:
            reason = str(exc) or type(exc).__name__
            if not sess.cancelled.is_set():
                log.warning("Dial failed", extra={"can_interface": iface, "session_id": sess.id, "reason": reason})
                self._emit(error_event(reason, prefix=f"dial {iface}"))
            else:
                reason = "cancelled"
            sess.finish()
            self._release(sess)
            raise DialError(iface, reason) from exc

        if sess.cancelled.is_set():
            # Stop() landed while dialing; discard the connection.
            log.info("Dial completed after cancellation", extra={"can_interface": iface, "session_id": sess.id})
            sess.attach(transport)
            sess.finish()
            self._release(sess)
            raise DialError(iface, "cancelled")

        sess.attach(transport)
        sess.activate()

        worker = threading.Thread(
            target=self._receive_loop,
            args=(sess, transport),
            name=f"canmon-rx-{iface}",
            daemon=True,
        )
        worker.start()
        log.info("CAN session active", extra={"can_interface": iface, "session_id": sess.id})
        return sess

    def stop(self) -> None:
        with self._lock:
            sess = self._session
        if sess is None:
            return None

        log.info("Stopping CAN session", extra={"can_interface": sess.interface, "session_id": sess.id})
        sess.cancel()
        sess.close_transport()
        sess.done.wait()
        self._release(sess)
        log.info("CAN session stopped", extra={"can_interface": sess.interface, "session_id": sess.id})
        return None

    close = stop

    def send(self, can_id: int, data: bytes | Iterable[int], extended: bool = False) -> None:
        payload = coerce_payload(data)
        if len(payload) > MAX_DATA_LENGTH:
            raise PayloadTooLargeError(len(payload))

        with self._lock:
            sess = self._session
            transport = sess.transport if sess is not None else None
        if sess is None or transport is None or sess.cancelled.is_set():
            raise NotStartedError()

        frame = CanFrame(can_id=int(can_id), data=payload, is_extended=bool(extended))
        frame.validate()

        try:
            transport.send(frame, self._transmit_timeout_s)
        except TransportError as exc:
            message = str(exc) or type(exc).__name__
            log.warning(
                "Transmit failed",
                extra={"session_id": sess.id, "can_id": f"0x{frame.can_id:X}", "reason": message},
            )
            self._emit(error_event(message))
            raise TransmitError(message) from exc

    def _receive_loop(self, sess: Session, transport: CanTransport) -> None:
        with session_context(sess.id):
            try:
                self._pump(sess, transport)
            finally:
                sess.finish()
                self._release(sess)
                log.debug("Receive worker exited", extra={"can_interface": sess.interface})

    def _pump(self, sess: Session, transport: CanTransport) -> None:
        while not sess.cancelled.is_set():
            try:
                unit = transport.recv()
            except TransportClosedError:
                return None
            except TransportError as exc:
                if not sess.cancelled.is_set():
                    log.warning("Receive failed", extra={"can_interface": sess.interface, "reason": str(exc)})
                    self._emit(error_event(exc, prefix="receive"))
                return None

            if unit is None:
                log.info("Receive stream ended", extra={"can_interface": sess.interface})
                return None
            if sess.cancelled.is_set():
                return None

            if isinstance(unit, ErrorFrame):
                self._emit(error_frame_event(unit))
                continue

            self._emit(frame_event(unit, sess.interface))

    def _release(self, sess: Session) -> None:
        with self._lock:
            if self._session is sess:
                self._session = None

    def _emit(self, event: Event) -> None:
        try:
            self._sink.emit(event)
        except Exception:
            log.exception("Event sink failed", extra={"event": type(event).__name__})
