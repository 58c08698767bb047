from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from canmon.config import load_settings, write_default_config
from canmon.core.frames import parse_can_id, parse_payload_hex
from canmon.ipc.unix_client import UnixJsonlClient
from canmon.logging import level_from_args, setup_logging


log = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        level=level_from_args(args),
        log_format=str(getattr(args, "log_format", "pretty") or "pretty"),
        log_file=getattr(args, "log_file", None),
        no_color=bool(getattr(args, "no_color", False)),
    )
    log.debug("CLI start", extra={"cmd": args.cmd})
    raise SystemExit(_dispatch(args))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="canmon", description="SocketCAN session monitor (CLI/TUI/daemon).")
    _add_logging_args(parser)
    parser.add_argument("--config-dir", default=None, help="Override config dir (default: ~/.config/canmon)")
    parser.add_argument(
        "--connect",
        dest="global_connect",
        default=None,
        help="Daemon socket path (can be placed before or after the subcommand).",
    )

    sub = parser.add_subparsers(dest="cmd", required=True)

    daemon_p = sub.add_parser("daemon", help="Run Unix socket JSONL daemon")
    _add_logging_args(daemon_p)
    daemon_p.add_argument("--can", default=None, help="Default SocketCAN interface (e.g. can0, vcan0)")
    daemon_p.add_argument("--sock", default=None, help="Unix socket path")
    daemon_p.add_argument("--mock", action="store_true", help="Use the in-memory transport (connect-only, no frames arrive)")
    daemon_p.add_argument("--start", action="store_true", help="Start a session at launch")

    tui_p = sub.add_parser("tui", help="Run Textual monitor (in-process session)")
    _add_logging_args(tui_p)
    tui_p.add_argument("--can", default=None, help="Initial SocketCAN interface")
    tui_p.add_argument("--mock", action="store_true", help="Use the in-memory transport (connect-only, no frames arrive)")

    start_p = sub.add_parser("start", help="Start a CAN session in the daemon")
    _add_logging_args(start_p)
    start_p.add_argument("--can", default=None, help="SocketCAN interface (default: daemon default)")
    _add_connect_arg(start_p)

    stop_p = sub.add_parser("stop", help="Stop the daemon's CAN session")
    _add_logging_args(stop_p)
    _add_connect_arg(stop_p)

    status_p = sub.add_parser("status", help="Show the daemon's session state")
    _add_logging_args(status_p)
    _add_connect_arg(status_p)

    send_p = sub.add_parser("send", help="Transmit one frame")
    _add_logging_args(send_p)
    send_p.add_argument("--id", required=True, help="CAN id as hex (e.g. 123, 1ABCDE00)")
    send_p.add_argument("--data", default="", help="Payload as hex bytes (e.g. 010203)")
    send_p.add_argument("--extended", action="store_true", help="Use a 29-bit identifier")
    _add_connect_arg(send_p)

    monitor_p = sub.add_parser("monitor", help="Stream frame/error events (JSONL)")
    _add_logging_args(monitor_p)
    monitor_p.add_argument("--id", dest="filter_id", default=None, help="Only show frames with this hex id")
    monitor_p.add_argument("--count", type=int, default=None, help="Exit after this many events")
    _add_connect_arg(monitor_p)

    config_p = sub.add_parser("config", help="Configuration")
    config_sub = config_p.add_subparsers(dest="config_cmd", required=True)
    config_show_p = config_sub.add_parser("show", help="Print resolved settings")
    _add_logging_args(config_show_p)
    config_init_p = config_sub.add_parser("init", help="Write a default config file")
    _add_logging_args(config_init_p)
    config_init_p.add_argument("--force", action="store_true", help="Overwrite an existing file")

    return parser


def _dispatch(args: argparse.Namespace) -> int:
    settings = load_settings(config_dir=args.config_dir)
    connect = getattr(args, "connect", None) or args.global_connect or settings.socket_path

    if args.cmd == "daemon":
        from canmon.apps.daemon import main as daemon_main

        daemon_argv: list[str] = []
        if args.config_dir:
            daemon_argv.extend(["--config-dir", args.config_dir])
        if args.can:
            daemon_argv.extend(["--can", args.can])
        if args.sock or args.global_connect:
            daemon_argv.extend(["--sock", args.sock or args.global_connect])
        if args.mock:
            daemon_argv.append("--mock")
        if args.start:
            daemon_argv.append("--start")
        daemon_argv.extend(_logging_argv_from_args(args))
        daemon_main(daemon_argv)
        return 0

    if args.cmd == "tui":
        from canmon.apps.tui import main as tui_main

        tui_argv = ["--can", args.can or settings.interface]
        if args.mock:
            tui_argv.append("--mock")
        tui_argv.extend(_logging_argv_from_args(args))
        tui_main(tui_argv)
        return 0

    if args.cmd == "config":
        return _config(args, settings)

    if args.cmd == "start":
        payload: dict[str, Any] = {"cmd": "start_can"}
        if args.can:
            payload["interface"] = args.can
        return _print_response(_ipc_request(connect, payload))

    if args.cmd == "stop":
        return _print_response(_ipc_request(connect, {"cmd": "stop_can"}))

    if args.cmd == "status":
        return _print_response(_ipc_request(connect, {"cmd": "status"}))

    if args.cmd == "send":
        try:
            can_id = parse_can_id(args.id)
            data = parse_payload_hex(args.data)
        except ValueError as exc:
            return _print_response({"ok": False, "error": str(exc)})
        request = {"cmd": "send_frame", "id": can_id, "data": list(data), "extended": bool(args.extended)}
        return _print_response(_ipc_request(connect, request))

    if args.cmd == "monitor":
        return _monitor(connect, filter_id=args.filter_id, count=args.count)

    return _print_response({"ok": False, "error": "unknown command"})


def _config(args: argparse.Namespace, settings: Any) -> int:
    if args.config_cmd == "show":
        return _print_response(
            {
                "ok": True,
                "config_file": str(settings.config_file),
                "interface": settings.interface,
                "socket_path": settings.socket_path,
            }
        )
    path = settings.config_file
    if path.exists() and not args.force:
        return _print_response({"ok": False, "error": f"{path} exists (use --force)"})
    write_default_config(path, data={"interface": settings.interface, "socket_path": settings.socket_path})
    return _print_response({"ok": True, "config_file": str(path)})


def _monitor(sock_path: str, *, filter_id: str | None, count: int | None) -> int:
    wanted: int | None = None
    if filter_id:
        try:
            wanted = parse_can_id(filter_id)
        except ValueError as exc:
            return _print_response({"ok": False, "error": str(exc)})

    seen = 0
    client = UnixJsonlClient(sock_path)
    try:
        for event in client.events():
            if wanted is not None and event.get("event") == "frame" and event.get("id") != wanted:
                continue
            sys.stdout.write(json.dumps(event, sort_keys=True, separators=(",", ":")) + "\n")
            sys.stdout.flush()
            seen += 1
            if count is not None and seen >= count:
                break
    except KeyboardInterrupt:
        return 0
    except (OSError, RuntimeError) as exc:
        return _print_response({"ok": False, "error": str(exc)})
    return 0


def _print_response(payload: dict[str, Any]) -> int:
    sys.stdout.write(json.dumps(payload, sort_keys=True, indent=2) + "\n")
    return 0 if payload.get("ok") else 1


def _ipc_request(sock_path: str, payload: dict[str, Any]) -> dict[str, Any]:
    client = UnixJsonlClient(sock_path)
    try:
        return client.request(payload)
    except (OSError, RuntimeError, ValueError) as exc:
        return {"ok": False, "error": str(exc)}


def _logging_argv_from_args(args: argparse.Namespace) -> list[str]:
    out: list[str] = []
    if getattr(args, "trace", False):
        out.append("--trace")
    elif getattr(args, "verbose", False):
        out.append("--verbose")
    elif getattr(args, "log_level", None):
        out.extend(["--log-level", str(args.log_level)])
    if getattr(args, "log_file", None):
        out.extend(["--log-file", str(args.log_file)])
    if getattr(args, "log_format", None):
        out.extend(["--log-format", str(args.log_format)])
    if getattr(args, "no_color", False):
        out.append("--no-color")
    return out


def _add_connect_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--connect", default=None, help="Daemon socket path (default: from config)")


def _add_logging_args(parser: argparse.ArgumentParser) -> None:
    # Use SUPPRESS defaults so that root-level flags (placed before the subcommand)
    # are not overwritten by subparser defaults.
    parser.add_argument(
        "--log-level",
        choices=["error", "warning", "info", "debug", "trace"],
        default=argparse.SUPPRESS,
        help="Logging level (default: info)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Alias for --log-level=debug",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Alias for --log-level=trace",
    )
    parser.add_argument("--log-file", default=argparse.SUPPRESS, help="Optional log file path")
    parser.add_argument(
        "--log-format",
        choices=["pretty", "json"],
        default=argparse.SUPPRESS,
        help="Log output format (default: pretty)",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Disable ANSI colors in pretty logs",
    )


if __name__ == "__main__":
    main()
