from __future__ import annotations

import argparse
import logging
import sys
from collections import deque
from dataclasses import dataclass

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.widgets import Button, DataTable, Footer, Header, Input, Static

from canmon.apps.daemon import make_dialer
from canmon.core.errors import CanmonError
from canmon.core.events import ErrorEvent, Event, FrameEvent
from canmon.core.frames import format_can_id
from canmon.core.session import DEFAULT_INTERFACE, SessionManager
from canmon.logging import level_from_args, setup_logging


log = logging.getLogger(__name__)

MAX_FRAMES = 100
MAX_ERRORS = 10
TEST_FRAME_ID = 0x123
TEST_FRAME_DATA = bytes([0x01, 0x02, 0x03])


@dataclass(frozen=True)
class IdFilter:
    kind: str  # "none" | "invalid" | "id"
    can_id: int | None = None


def parse_id_filter(text: str) -> IdFilter:
    raw = text.strip()
    if not raw:
        return IdFilter("none")
    digits = raw[2:] if raw.lower().startswith("0x") else raw
    if not digits or any(c not in "0123456789abcdefABCDEF" for c in digits):
        return IdFilter("invalid")
    return IdFilter("id", int(digits, 16))


def push_error(errors: deque[str], message: str) -> None:
    """Newest first; a repeat of the newest message is not stacked."""
    if errors and errors[0] == message:
        return None
    errors.appendleft(message)


def format_frame_row(event: FrameEvent) -> tuple[str, str, str, str, str]:
    ts = event.timestamp.astimezone().strftime("%H:%M:%S.%f")[:-3]
    kind = "EXT" if event.extended else "STD"
    if event.remote:
        kind += " RTR"
    data = " ".join(f"{b:02X}" for b in event.payload)
    return ts, "0x" + format_can_id(event.can_id, extended=event.extended), kind, str(event.length), data


class FrameReceived(Message):
    def __init__(self, event: FrameEvent) -> None:
        self.event = event
        super().__init__()


class ErrorReported(Message):
    def __init__(self, event: ErrorEvent) -> None:
        self.event = event
        super().__init__()


class TuiSink:
    """Forwards session events onto the Textual message queue (thread-safe)."""

    def __init__(self) -> None:
        self._app: App[None] | None = None

    def bind(self, app: App[None]) -> None:
        self._app = app

    def emit(self, event: Event) -> None:
        app = self._app
        if app is None:
            return None
        if isinstance(event, FrameEvent):
            app.post_message(FrameReceived(event))
        else:
            app.post_message(ErrorReported(event))


class CanMonitorApp(App[None]):
    TITLE = "SocketCAN Monitor"
    CSS = """
    #controls {
        height: auto;
        padding: 0 1;
    }

    #controls Input {
        width: 24;
    }

    #status {
        height: 1;
        padding: 0 1;
        color: $text-muted;
    }

    #errors {
        height: auto;
        max-height: 12;
        padding: 0 1;
        color: $error;
    }
    """

    BINDINGS = [("q", "quit", "Quit")]

    def __init__(self, manager: SessionManager, sink: TuiSink, *, interface: str = DEFAULT_INTERFACE) -> None:
        super().__init__()
        self._manager = manager
        self._sink = sink
        self._initial_interface = interface
        self._frames: deque[FrameEvent] = deque(maxlen=MAX_FRAMES)
        self._errors: deque[str] = deque(maxlen=MAX_ERRORS)
        self._filter = IdFilter("none")
        self._dirty = False
        self._busy = False

    def compose(self) -> ComposeResult:
        yield Header(show_clock=False)
        with Vertical():
            with Horizontal(id="controls"):
                yield Input(value=self._initial_interface, placeholder="vcan0", id="iface")
                yield Button("Start", id="start")
                yield Button("Stop", id="stop", disabled=True)
                yield Button("Send test frame", id="send", disabled=True)
                yield Input(placeholder="Filter ID: 123 / 0x123 / 18FF50E5", id="filter")
            yield Static("", id="status", markup=False)
            yield Static("", id="errors", markup=False)
            table = DataTable(id="frames")
            table.add_columns("Timestamp", "ID", "Type", "DLC", "Data")
            yield table
        yield Footer()

    def on_mount(self) -> None:
        self._sink.bind(self)
        self.set_interval(0.2, self._refresh_frames)
        self._update_status()

    def on_unmount(self) -> None:
        self._manager.stop()

    def on_frame_received(self, message: FrameReceived) -> None:
        self._frames.appendleft(message.event)
        self._dirty = True

    def on_error_reported(self, message: ErrorReported) -> None:
        self._report(message.event.message)

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "filter":
            self._filter = parse_id_filter(event.value)
            self._dirty = True
            self._update_status()
        elif event.input.id == "iface":
            self._update_controls()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "start":
            self._errors.clear()
            self._render_errors()
            iface = self.query_one("#iface", Input).value
            self._set_busy(True)
            self.run_worker(lambda: self._start(iface), thread=True, group="session")
        elif event.button.id == "stop":
            self._set_busy(True)
            self.run_worker(self._stop, thread=True, group="session")
        elif event.button.id == "send":
            self.run_worker(self._send_test_frame, thread=True, group="send")

    def _start(self, iface: str) -> None:
        try:
            self._manager.start(iface)
        except CanmonError as exc:
            self.call_from_thread(self._report, str(exc))
        finally:
            self.call_from_thread(self._set_busy, False)

    def _stop(self) -> None:
        try:
            self._manager.stop()
        finally:
            self.call_from_thread(self._set_busy, False)

    def _send_test_frame(self) -> None:
        try:
            self._manager.send(TEST_FRAME_ID, TEST_FRAME_DATA, False)
        except CanmonError as exc:
            self.call_from_thread(self._report, str(exc))

    def _report(self, message: str) -> None:
        push_error(self._errors, message)
        self._render_errors()

    def _render_errors(self) -> None:
        self.query_one("#errors", Static).update("\n".join(self._errors))

    def _set_busy(self, busy: bool) -> None:
        self._busy = busy
        self._update_controls()
        self._update_status()

    def _update_controls(self) -> None:
        connected = bool(self._manager.status()["active"])
        iface = self.query_one("#iface", Input)
        iface.disabled = connected or self._busy
        self.query_one("#start", Button).disabled = connected or self._busy or not iface.value.strip()
        self.query_one("#stop", Button).disabled = not connected or self._busy
        self.query_one("#send", Button).disabled = not connected or self._busy

    def _update_status(self) -> None:
        status = self._manager.status()
        if status["interface"]:
            text = f"{status['interface']}: {status['state']}"
        else:
            text = "disconnected"
        if self._filter.kind == "invalid":
            text += "  |  invalid hex ID"
        elif self._filter.kind == "id" and self._filter.can_id is not None:
            text += f"  |  filtering on 0x{self._filter.can_id:X}"
        shown = len(self._visible_frames())
        text += f"  |  showing {shown} / {len(self._frames)} frames (keeps last {MAX_FRAMES})"
        self.query_one("#status", Static).update(text)

    def _visible_frames(self) -> list[FrameEvent]:
        if self._filter.kind == "none":
            return list(self._frames)
        if self._filter.kind == "invalid":
            return []
        return [f for f in self._frames if f.can_id == self._filter.can_id]

    def _refresh_frames(self) -> None:
        # The session can end on its own (stream end, fault).
        self._update_controls()
        if not self._dirty:
            return None
        self._dirty = False
        table = self.query_one("#frames", DataTable)
        table.clear()
        for event in self._visible_frames():
            table.add_row(*format_frame_row(event))
        self._update_status()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="canmon Textual monitor")
    parser.add_argument(
        "--log-level",
        choices=["error", "warning", "info", "debug", "trace"],
        default=None,
        help="Logging level (default: info)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Alias for --log-level=debug")
    parser.add_argument("--trace", action="store_true", help="Alias for --log-level=trace")
    parser.add_argument("--log-file", default=None, help="Log file path (the terminal belongs to the TUI)")
    parser.add_argument("--log-format", choices=["pretty", "json"], default="pretty")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI colors in pretty logs")
    parser.add_argument("--can", default=DEFAULT_INTERFACE, help="Initial SocketCAN interface (e.g. vcan0)")
    parser.add_argument("--mock", action="store_true", help="Use the in-memory transport (connect-only, no frames arrive)")
    args = parser.parse_args(argv)

    setup_logging(
        level=level_from_args(args),
        log_format=str(args.log_format or "pretty"),
        log_file=args.log_file,
        no_color=bool(args.no_color),
    )
    # Stderr would scribble over the screen; keep only the file handler.
    root = logging.getLogger()
    for handler in list(root.handlers):
        if not isinstance(handler, logging.FileHandler):
            root.removeHandler(handler)

    sink = TuiSink()
    manager = SessionManager(make_dialer(bool(args.mock)), sink, default_interface=args.can)
    try:
        CanMonitorApp(manager, sink, interface=args.can).run()
    except Exception as exc:
        print(f"error: {exc}", file=sys.stderr, flush=True)
        raise SystemExit(1) from exc
    finally:
        manager.close()


if __name__ == "__main__":
    main()
