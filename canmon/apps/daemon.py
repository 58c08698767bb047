from __future__ import annotations

import argparse
import logging
import signal
import threading

from canmon.config import load_settings
from canmon.core.errors import CanmonError
from canmon.core.session import SessionManager
from canmon.core.transport.base import Dialer
from canmon.core.transport.mock import MockDialer
from canmon.core.transport.socketcan import dial_socketcan
from canmon.ipc.unix_server import BroadcastSink, JsonlUnixServer
from canmon.logging import level_from_args, setup_logging


log = logging.getLogger(__name__)


def build_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        choices=["error", "warning", "info", "debug", "trace"],
        default=None,
        help="Logging level (default: info)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Alias for --log-level=debug")
    parser.add_argument("--trace", action="store_true", help="Alias for --log-level=trace")
    parser.add_argument("--log-file", default=None, help="Optional log file path")
    parser.add_argument("--log-format", choices=["pretty", "json"], default="pretty")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI colors in pretty logs")

    parser.add_argument("--config-dir", default=None, help="Override config dir (default: ~/.config/canmon)")
    parser.add_argument("--can", default=None, help="Default SocketCAN interface when start_can names none")
    parser.add_argument("--sock", default=None, help="Unix socket path (default: /tmp/canmon.sock)")
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use the in-memory transport (connect-only: start/stop/send succeed, no frames arrive)",
    )
    parser.add_argument("--start", action="store_true", help="Start a session on the default interface at launch")


def make_dialer(mock: bool) -> Dialer:
    if mock:
        return MockDialer()
    return dial_socketcan


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="canmon daemon (JSONL over Unix socket)")
    build_parser(parser)
    args = parser.parse_args(argv)

    setup_logging(
        level=level_from_args(args),
        log_format=str(args.log_format or "pretty"),
        log_file=args.log_file,
        no_color=bool(args.no_color),
    )

    settings = load_settings(config_dir=args.config_dir, interface=args.can, socket_path=args.sock)
    log.info(
        "Daemon starting",
        extra={"can_interface": settings.interface, "sock": settings.socket_path, "mock": bool(args.mock)},
    )

    sink = BroadcastSink()
    manager = SessionManager(make_dialer(bool(args.mock)), sink, default_interface=settings.interface)
    server = JsonlUnixServer(settings.socket_path, manager, sink)

    def _on_sigterm(signum: int, frame: object) -> None:
        raise KeyboardInterrupt

    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGTERM, _on_sigterm)

    try:
        server.bind()
        if args.start:
            try:
                manager.start()
            except CanmonError as exc:
                log.error("Initial start failed", extra={"reason": str(exc)})
        server.serve_forever()
    except KeyboardInterrupt:
        return None
    finally:
        log.info("Daemon stopping")
        manager.close()
        server.close()


if __name__ == "__main__":
    main()
