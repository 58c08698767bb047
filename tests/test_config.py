from __future__ import annotations

import json
from pathlib import Path

import pytest

from canmon.config import load_settings, write_default_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in ("CANMON_CONFIG_DIR", "CANMON_INTERFACE", "CANMON_SOCK"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


def test_defaults(tmp_path: Path) -> None:
    settings = load_settings()
    assert settings.config_dir == tmp_path / "xdg" / "canmon"
    assert settings.interface == "vcan0"
    assert settings.socket_path == "/tmp/canmon.sock"


def test_precedence(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    cfg = tmp_path / "cfg"
    write_default_config(cfg / "canmon.json", data={"interface": "can1", "socket_path": "/run/canmon.sock"})

    settings = load_settings(config_dir=cfg)
    assert (settings.interface, settings.socket_path) == ("can1", "/run/canmon.sock")

    monkeypatch.setenv("CANMON_INTERFACE", "can2")
    assert load_settings(config_dir=cfg).interface == "can2"
    assert load_settings(config_dir=cfg, interface="can3").interface == "can3"
    assert load_settings(config_dir=cfg, interface="  ").interface == "can2"


def test_config_dir_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CANMON_CONFIG_DIR", str(tmp_path / "env-cfg"))
    assert load_settings().config_file == tmp_path / "env-cfg" / "canmon.json"


def test_broken_config_file_is_ignored(tmp_path: Path) -> None:
    cfg = tmp_path / "cfg"
    cfg.mkdir()
    (cfg / "canmon.json").write_text("{not json", encoding="utf-8")
    assert load_settings(config_dir=cfg).interface == "vcan0"

    (cfg / "canmon.json").write_text(json.dumps(["can0"]), encoding="utf-8")
    assert load_settings(config_dir=cfg).interface == "vcan0"
