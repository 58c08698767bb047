from __future__ import annotations

import json
from pathlib import Path

import pytest

from canmon.apps.cli import main
from canmon.apps.daemon import make_dialer
from canmon.core.frames import CanFrame
from canmon.core.session import SessionManager
from canmon.core.transport.mock import MockDialer

from conftest import RecordingSink


def _run(argv: list[str], capsys: pytest.CaptureFixture[str]) -> tuple[int, dict[str, object]]:
    with pytest.raises(SystemExit) as info:
        main(argv)
    return int(info.value.code or 0), json.loads(capsys.readouterr().out)


def test_config_init_and_show(tmp_path: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CANMON_INTERFACE", raising=False)
    monkeypatch.delenv("CANMON_SOCK", raising=False)
    cfg = tmp_path / "cfg"

    code, out = _run(["--config-dir", str(cfg), "config", "init"], capsys)
    assert code == 0
    assert (cfg / "canmon.json").exists()

    code, out = _run(["--config-dir", str(cfg), "config", "init"], capsys)
    assert code == 1 and "exists" in str(out["error"])

    code, out = _run(["--config-dir", str(cfg), "config", "show"], capsys)
    assert code == 0
    assert out["interface"] == "vcan0"


def test_request_without_daemon_fails_cleanly(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code, out = _run(["--config-dir", str(tmp_path), "status", "--connect", str(tmp_path / "missing.sock")], capsys)
    assert code == 1
    assert out["ok"] is False


def test_send_rejects_bad_hex(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code, out = _run(["--config-dir", str(tmp_path), "send", "--id", "xyz"], capsys)
    assert code == 1
    assert out == {"ok": False, "error": "invalid CAN id"}


def test_daemon_mock_mode_is_connect_only() -> None:
    dialer = make_dialer(True)
    assert isinstance(dialer, MockDialer)
    sink = RecordingSink()
    manager = SessionManager(dialer, sink)
    try:
        manager.start("vcan0")
        manager.send(0x123, [1, 2, 3], False)
        assert dialer.last.sent == [CanFrame(can_id=0x123, data=b"\x01\x02\x03")]
        assert not sink.wait_for(1, timeout=0.2)
    finally:
        manager.stop()
