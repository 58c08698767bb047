from __future__ import annotations

import json
import logging
from typing import Any

from canmon.core.errors import CanmonError
from canmon.core.frames import parse_can_id, parse_payload_hex
from canmon.core.session import SessionManager


log = logging.getLogger(__name__)


def decode_json_line(line: bytes) -> dict[str, Any]:
    try:
        text = line.decode("utf-8").strip()
    except UnicodeDecodeError as exc:
        raise ValueError("invalid utf-8") from exc
    if not text:
        raise ValueError("empty request")
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid json") from exc
    if not isinstance(raw, dict):
        raise ValueError("invalid request")
    return raw


def encode_json_line(payload: dict[str, Any]) -> bytes:
    # IPC is JSONL; keep it compact but deterministic.
    return (json.dumps(payload, separators=(",", ":"), sort_keys=True) + "\n").encode("utf-8")


def error(message: str) -> dict[str, Any]:
    return {"ok": False, "error": message}


def _parse_data(raw: Any) -> bytes | list[int]:
    if raw is None:
        return b""
    if isinstance(raw, str):
        return parse_payload_hex(raw)
    if isinstance(raw, list):
        return raw
    raise ValueError("data must be a list of bytes or a hex string")


def handle_request(request: dict[str, Any], manager: SessionManager) -> dict[str, Any]:
    cmd = request.get("cmd")
    if not cmd:
        return error("missing cmd")

    log.info("IPC cmd", extra={"cmd": cmd})

    try:
        if cmd == "start_can":
            iface = request.get("interface")
            if iface is not None and not isinstance(iface, str):
                return error("interface must be a string")
            sess = manager.start(iface)
            return {"ok": True, "interface": sess.interface}

        if cmd == "stop_can":
            manager.stop()
            return {"ok": True}

        if cmd == "send_frame":
            try:
                can_id = parse_can_id(request.get("id"))
                data = _parse_data(request.get("data"))
            except ValueError as exc:
                return error(str(exc))
            extended = request.get("extended", False)
            if not isinstance(extended, bool):
                return error("extended must be a boolean")
            manager.send(can_id, data, extended)
            return {"ok": True}

        if cmd == "status":
            return {"ok": True, **manager.status()}
    except CanmonError as exc:
        return error(str(exc))

    return error("unknown cmd")
