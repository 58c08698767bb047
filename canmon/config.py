from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from canmon.core.session import DEFAULT_INTERFACE


log = logging.getLogger(__name__)

DEFAULT_SOCKET_PATH = "/tmp/canmon.sock"
CONFIG_FILENAME = "canmon.json"


@dataclass(frozen=True)
class Settings:
    config_dir: Path
    interface: str
    socket_path: str

    @property
    def config_file(self) -> Path:
        return self.config_dir / CONFIG_FILENAME


def _env(name: str) -> str:
    return (os.getenv(name, "") or "").strip()


def _xdg_config_home() -> Path:
    env = _env("XDG_CONFIG_HOME")
    if env:
        return Path(env).expanduser()
    return Path("~/.config").expanduser()


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        obj = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        log.warning("Ignoring unreadable config file", extra={"path": str(path), "reason": str(exc)})
        return {}
    if not isinstance(obj, dict):
        log.warning("Ignoring config file without a JSON object", extra={"path": str(path)})
        return {}
    return obj


def _pick(explicit: str | None, env_name: str, file_obj: dict[str, Any], key: str, default: str) -> str:
    if explicit is not None and explicit.strip():
        return explicit.strip()
    env = _env(env_name)
    if env:
        return env
    v = file_obj.get(key)
    if isinstance(v, str) and v.strip():
        return v.strip()
    return default


def load_settings(
    *,
    config_dir: str | Path | None = None,
    interface: str | None = None,
    socket_path: str | None = None,
) -> Settings:
    """Resolve settings.

    Precedence (highest to lowest):
    1) explicit parameters (typically CLI)
    2) env vars CANMON_CONFIG_DIR, CANMON_INTERFACE, CANMON_SOCK
    3) config file <config_dir>/canmon.json (keys: interface, socket_path)
    4) defaults (~/.config/canmon, vcan0, /tmp/canmon.sock)
    """

    if config_dir is not None:
        cfg = Path(config_dir).expanduser()
    else:
        env = _env("CANMON_CONFIG_DIR")
        cfg = Path(env).expanduser() if env else _xdg_config_home() / "canmon"

    file_obj = _read_config_file(cfg / CONFIG_FILENAME)

    return Settings(
        config_dir=cfg,
        interface=_pick(interface, "CANMON_INTERFACE", file_obj, "interface", DEFAULT_INTERFACE),
        socket_path=_pick(socket_path, "CANMON_SOCK", file_obj, "socket_path", DEFAULT_SOCKET_PATH),
    )


def write_default_config(path: Path, *, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, sort_keys=True, indent=2) + "\n", encoding="utf-8")
