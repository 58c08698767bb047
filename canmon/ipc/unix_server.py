from __future__ import annotations

import logging
import os
import socket
import threading

from canmon.core.events import Event
from canmon.core.session import SessionManager
from canmon.ipc.protocol import decode_json_line, encode_json_line, error, handle_request


log = logging.getLogger(__name__)


class BroadcastSink:
    """Event sink that writes each event as one JSON line to every subscriber.

    Delivery is fire-and-forget: a subscriber whose socket errors out or stays
    unwritable past ``write_timeout_s`` is dropped.
    """

    def __init__(self, *, write_timeout_s: float = 0.5) -> None:
        self._write_timeout_s = float(write_timeout_s)
        self._lock = threading.Lock()
        self._subscribers: list[socket.socket] = []

    def add(self, conn: socket.socket) -> None:
        conn.settimeout(self._write_timeout_s)
        with self._lock:
            self._subscribers.append(conn)
        log.info("Subscriber added", extra={"subscribers": self.count})

    def remove(self, conn: socket.socket) -> None:
        with self._lock:
            if conn in self._subscribers:
                self._subscribers.remove(conn)

    @property
    def count(self) -> int:
        return len(self._subscribers)

    def emit(self, event: Event) -> None:
        line = encode_json_line(event.to_dict())
        with self._lock:
            dropped: list[socket.socket] = []
            for conn in self._subscribers:
                try:
                    conn.sendall(line)
                except OSError as exc:
                    log.info("Dropping subscriber", extra={"reason": str(exc) or type(exc).__name__})
                    dropped.append(conn)
            for conn in dropped:
                self._subscribers.remove(conn)
                _shutdown(conn)

    def close(self) -> None:
        with self._lock:
            subscribers, self._subscribers = self._subscribers, []
        for conn in subscribers:
            _shutdown(conn)


def _shutdown(conn: socket.socket) -> None:
    try:
        conn.shutdown(socket.SHUT_RDWR)
    except OSError:
        return None


class JsonlUnixServer:
    """JSONL control socket in front of a SessionManager.

    Each client gets its own thread so that a ``subscribe`` stream and
    control requests from other clients can run side by side.
    """

    def __init__(self, socket_path: str, manager: SessionManager, sink: BroadcastSink) -> None:
        self._socket_path = socket_path
        self._manager = manager
        self._sink = sink
        self._sock: socket.socket | None = None
        self._closing = threading.Event()

    @property
    def socket_path(self) -> str:
        return self._socket_path

    def bind(self) -> None:
        os.makedirs(os.path.dirname(self._socket_path) or ".", exist_ok=True)
        if os.path.exists(self._socket_path):
            os.unlink(self._socket_path)
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.bind(self._socket_path)
        sock.listen(8)
        self._sock = sock
        log.info("Listening", extra={"sock": self._socket_path})

    def serve_forever(self) -> None:
        if self._sock is None:
            self.bind()
        assert self._sock is not None
        while not self._closing.is_set():
            try:
                conn, _ = self._sock.accept()
            except OSError:
                if self._closing.is_set():
                    return None
                raise
            worker = threading.Thread(target=self._serve_client, args=(conn,), name="canmon-ipc-client", daemon=True)
            worker.start()

    def close(self) -> None:
        self._closing.set()
        if self._sock is not None:
            try:
                self._sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            try:
                self._sock.close()
            finally:
                self._sock = None
        self._sink.close()
        if os.path.exists(self._socket_path):
            try:
                os.unlink(self._socket_path)
            except OSError:
                return None

    def _serve_client(self, conn: socket.socket) -> None:
        with conn:
            try:
                self._handle_client(conn)
            except OSError as exc:
                log.debug("Client connection ended", extra={"reason": str(exc) or type(exc).__name__})

    def _handle_client(self, conn: socket.socket) -> None:
        fileobj = conn.makefile("rwb")
        with fileobj:
            while True:
                line = fileobj.readline()
                if not line:
                    return None
                try:
                    request = decode_json_line(line)
                except ValueError as exc:
                    fileobj.write(encode_json_line(error(str(exc))))
                    fileobj.flush()
                    continue

                if request.get("cmd") == "subscribe":
                    fileobj.write(encode_json_line({"ok": True, "subscribed": True}))
                    fileobj.flush()
                    self._stream_events(conn)
                    return None

                try:
                    response = handle_request(request, self._manager)
                except Exception as exc:
                    log.exception("Request failed", extra={"cmd": request.get("cmd")})
                    response = error(str(exc))
                fileobj.write(encode_json_line(response))
                fileobj.flush()

    def _stream_events(self, conn: socket.socket) -> None:
        # The sink writes to the socket from other threads; this thread only
        # watches for the client hanging up.
        self._sink.add(conn)
        try:
            while not self._closing.is_set():
                try:
                    data = conn.recv(1024)
                except socket.timeout:
                    continue
                if not data:
                    return None
        finally:
            self._sink.remove(conn)
            log.info("Subscriber left", extra={"subscribers": self._sink.count})
