from __future__ import annotations

import json
import socket
from typing import Any, Iterator


class UnixJsonlClient:
    def __init__(self, socket_path: str, *, timeout_s: float = 5.0) -> None:
        self._socket_path = socket_path
        self._timeout_s = float(timeout_s)

    def request(self, payload: dict[str, Any]) -> dict[str, Any]:
        data = (json.dumps(payload, separators=(",", ":"), sort_keys=True) + "\n").encode("utf-8")
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(self._timeout_s)
            sock.connect(self._socket_path)
            sock.sendall(data)
            fileobj = sock.makefile("rb")
            with fileobj:
                line = fileobj.readline()
        return _decode_response(line)

    def events(self) -> Iterator[dict[str, Any]]:
        """Subscribe and yield frame/error events until the daemon goes away."""
        data = (json.dumps({"cmd": "subscribe"}, separators=(",", ":")) + "\n").encode("utf-8")
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(self._timeout_s)
            sock.connect(self._socket_path)
            sock.sendall(data)
            fileobj = sock.makefile("rb")
            with fileobj:
                ack = _decode_response(fileobj.readline())
                if not ack.get("ok"):
                    raise RuntimeError(str(ack.get("error") or "subscribe failed"))
                # Events arrive whenever the bus is busy; wait indefinitely.
                sock.settimeout(None)
                for line in fileobj:
                    try:
                        obj = json.loads(line.decode("utf-8"))
                    except ValueError:
                        continue
                    if isinstance(obj, dict) and "event" in obj:
                        yield obj


def _decode_response(line: bytes) -> dict[str, Any]:
    if not line:
        raise RuntimeError("no response")
    raw = json.loads(line.decode("utf-8"))
    if not isinstance(raw, dict):
        raise RuntimeError("invalid response")
    return raw
