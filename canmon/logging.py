from __future__ import annotations

import contextlib
import contextvars
import datetime as _dt
import json
import logging
import os
import sys
import traceback
from typing import Any, Iterator

# Custom TRACE level (more verbose than DEBUG). Per-frame logging uses it.
TRACE_LEVEL = 5
logging.addLevelName(TRACE_LEVEL, "TRACE")


def _logger_trace(self: logging.Logger, msg: str, *args: Any, **kwargs: Any) -> None:
    if self.isEnabledFor(TRACE_LEVEL):
        self._log(TRACE_LEVEL, msg, args, **kwargs)


if not hasattr(logging.Logger, "trace"):
    logging.Logger.trace = _logger_trace  # type: ignore[attr-defined]


_session_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("canmon_session_id", default=None)


@contextlib.contextmanager
def session_context(session_id: str) -> Iterator[None]:
    """Tag log records emitted in this context (thread) with ``session_id``."""
    token = _session_id_var.set(str(session_id))
    try:
        yield
    finally:
        _session_id_var.reset(token)


def get_session_id() -> str | None:
    return _session_id_var.get()


class _ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 (filter)
        if not hasattr(record, "session_id"):
            record.session_id = get_session_id()  # type: ignore[attr-defined]
        return True


# Attributes every LogRecord carries; anything else came in through `extra=`.
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def _record_extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        k: v
        for k, v in record.__dict__.items()
        if k not in _STANDARD_ATTRS and not k.startswith("_")
    }


def _timestamp(record: logging.LogRecord) -> str:
    return _dt.datetime.fromtimestamp(record.created, tz=_dt.timezone.utc).astimezone().isoformat(timespec="milliseconds")


class PrettyFormatter(logging.Formatter):
    def __init__(self, *, use_color: bool) -> None:
        super().__init__()
        self._use_color = bool(use_color)

    def format(self, record: logging.LogRecord) -> str:
        parts = [_timestamp(record), record.levelname, f"[{record.threadName}]", record.name, record.getMessage()]

        extras = _record_extras(record)
        session_id = extras.pop("session_id", None)
        if session_id:
            parts.append(f"session_id={session_id}")
        parts.extend(f"{k}={extras[k]}" for k in sorted(extras))

        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info)).rstrip()
        if self._use_color:
            line = _colorize(record.levelno, line)
        return line


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": _timestamp(record),
            "level": record.levelname.lower(),
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }
        payload.update(_record_extras(record))
        if record.exc_info:
            payload["exc"] = "".join(traceback.format_exception(*record.exc_info)).rstrip()
        return json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str)


_LEVEL_COLORS = [
    (logging.ERROR, "31"),
    (logging.WARNING, "33"),
    (logging.INFO, "32"),
    (logging.DEBUG, "36"),
]


def _colorize(levelno: int, text: str) -> str:
    color = "90"
    for threshold, code in _LEVEL_COLORS:
        if levelno >= threshold:
            color = code
            break
    return f"\x1b[{color}m{text}\x1b[0m"


_LEVEL_NAMES = {
    "": logging.INFO,
    "info": logging.INFO,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "debug": logging.DEBUG,
    "trace": TRACE_LEVEL,
}


def parse_log_level(value: str | None) -> int:
    raw = (value or "").strip().lower()
    try:
        return _LEVEL_NAMES[raw]
    except KeyError:
        raise ValueError("invalid log level") from None


def level_from_args(args: Any) -> int:
    """Resolve --trace / --verbose / --log-level into a logging level."""
    if getattr(args, "trace", False):
        return TRACE_LEVEL
    if getattr(args, "verbose", False):
        return logging.DEBUG
    return parse_log_level(getattr(args, "log_level", None))


def setup_logging(
    *,
    level: int = logging.INFO,
    log_format: str = "pretty",
    log_file: str | None = None,
    no_color: bool = False,
    stream: Any = None,
) -> None:
    """Configure root logging.

    Logs go to stderr (or ``stream``), optionally also to a file. Stdout is
    reserved for command results and event lines.
    """

    fmt = (log_format or "pretty").strip().lower()
    if fmt not in {"pretty", "json"}:
        raise ValueError("invalid log format")

    out = stream if stream is not None else sys.stderr
    use_color = (not no_color) and bool(getattr(out, "isatty", lambda: False)())

    if fmt == "json":
        formatter: logging.Formatter = JsonFormatter()
        file_formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = PrettyFormatter(use_color=use_color)
        file_formatter = PrettyFormatter(use_color=False)

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(stream=out)
    stream_handler.setFormatter(formatter)
    stream_handler.addFilter(_ContextFilter())
    handlers.append(stream_handler)

    if log_file:
        path = os.path.expanduser(str(log_file))
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setFormatter(file_formatter)
        fh.addFilter(_ContextFilter())
        handlers.append(fh)

    logging.basicConfig(level=int(level), handlers=handlers, force=True)

    # python-can logs bus setup at INFO; only show it when debugging.
    logging.getLogger("can").setLevel(logging.DEBUG if int(level) <= logging.DEBUG else logging.WARNING)
