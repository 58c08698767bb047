from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from canmon.core.errors import InvalidFrameError, PayloadTooLargeError


MAX_DATA_LENGTH = 8
MAX_STANDARD_ID = 0x7FF
MAX_EXTENDED_ID = 0x1FFFFFFF


@dataclass(frozen=True)
class CanFrame:
    """A single classic CAN frame.

    Remote frames carry the requested DLC in ``dlc`` and no payload. For data
    frames ``dlc`` always equals ``len(data)``.
    """

    can_id: int
    data: bytes = b""
    is_extended: bool = False
    is_remote: bool = False
    dlc: int | None = None

    @property
    def length(self) -> int:
        if self.dlc is not None:
            return int(self.dlc)
        return len(self.data)

    def validate(self) -> None:
        if len(self.data) > MAX_DATA_LENGTH:
            raise PayloadTooLargeError(len(self.data))
        can_id = int(self.can_id)
        if can_id < 0:
            raise InvalidFrameError(f"invalid CAN id {can_id}")
        if self.is_extended:
            if can_id > MAX_EXTENDED_ID:
                raise InvalidFrameError(f"invalid extended CAN id 0x{can_id:X} (max 0x{MAX_EXTENDED_ID:X})")
        elif can_id > MAX_STANDARD_ID:
            raise InvalidFrameError(f"invalid standard CAN id 0x{can_id:X} (max 0x{MAX_STANDARD_ID:X})")
        if not 0 <= self.length <= MAX_DATA_LENGTH:
            raise InvalidFrameError(f"invalid DLC {self.length}")
        if self.is_remote:
            if self.data:
                raise InvalidFrameError("remote frame must not carry data")
        elif self.dlc is not None and self.dlc != len(self.data):
            raise InvalidFrameError(f"DLC {self.dlc} does not match data length {len(self.data)}")


def coerce_payload(data: bytes | bytearray | Iterable[int]) -> bytes:
    """Turn caller supplied payload values into bytes, rejecting non-octets."""
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    out = bytearray()
    for value in data:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidFrameError(f"payload byte must be an integer (got {value!r})")
        if not 0 <= value <= 0xFF:
            raise InvalidFrameError(f"payload byte out of range: {value}")
        out.append(value)
    return bytes(out)


def format_can_id(can_id: int, *, extended: bool = False) -> str:
    width = 8 if extended else 3
    return f"{int(can_id):0{width}X}"


def parse_can_id(value: object) -> int:
    """Parse a CAN id given as int or hex string (``"123"``, ``"0x1ABCDE"``)."""
    if isinstance(value, bool):
        raise ValueError("invalid CAN id")
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        raise ValueError("invalid CAN id")
    raw = value.strip().lower()
    if raw.startswith("0x"):
        raw = raw[2:]
    if not raw:
        raise ValueError("invalid CAN id")
    try:
        return int(raw, 16)
    except ValueError as exc:
        raise ValueError("invalid CAN id") from exc


def parse_payload_hex(value: str) -> bytes:
    raw = "".join(value.split()).replace(":", "").replace(".", "")
    if raw.lower().startswith("0x"):
        raw = raw[2:]
    try:
        return bytes.fromhex(raw)
    except ValueError as exc:
        raise ValueError("data must be hex bytes (e.g. 010203)") from exc
