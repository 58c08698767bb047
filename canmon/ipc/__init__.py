from __future__ import annotations

from canmon.ipc.unix_client import UnixJsonlClient
from canmon.ipc.unix_server import BroadcastSink, JsonlUnixServer

__all__ = ["BroadcastSink", "JsonlUnixServer", "UnixJsonlClient"]
