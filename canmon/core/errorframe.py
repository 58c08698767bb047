from __future__ import annotations

from dataclasses import dataclass

# Error class bits carried in the id of a SocketCAN error frame
# (linux/can/error.h). Details live in the data bytes.
_ERROR_CLASSES: list[tuple[int, str]] = [
    (0x001, "TxTimeout"),
    (0x002, "LostArbitration"),
    (0x004, "Controller"),
    (0x008, "Protocol"),
    (0x010, "Transceiver"),
    (0x020, "NoAck"),
    (0x040, "BusOff"),
    (0x080, "BusError"),
    (0x100, "Restarted"),
    (0x200, "ErrorCounter"),
]

_CONTROLLER_ERRORS: list[tuple[int, str]] = [
    (0x01, "RxOverflow"),
    (0x02, "TxOverflow"),
    (0x04, "RxWarning"),
    (0x08, "TxWarning"),
    (0x10, "RxPassive"),
    (0x20, "TxPassive"),
    (0x40, "Active"),
]

_PROTOCOL_ERRORS: list[tuple[int, str]] = [
    (0x01, "SingleBit"),
    (0x02, "FrameFormat"),
    (0x04, "BitStuffing"),
    (0x08, "Bit0"),
    (0x10, "Bit1"),
    (0x20, "Overload"),
    (0x40, "ActiveErrorAnnouncement"),
    (0x80, "Transmission"),
]

_PROTOCOL_LOCATIONS: dict[int, str] = {
    0x00: "Unspecified",
    0x02: "ID28To21",
    0x03: "StartOfFrame",
    0x04: "SubstituteRTR",
    0x05: "IdentifierExtension",
    0x06: "ID20To18",
    0x07: "ID17To13",
    0x08: "CRCSequence",
    0x09: "ReservedBit0",
    0x0A: "DataSection",
    0x0B: "DataLengthCode",
    0x0C: "RTR",
    0x0D: "ReservedBit1",
    0x0E: "ID04To00",
    0x0F: "ID12To05",
    0x12: "Intermission",
    0x18: "CRCDelimiter",
    0x19: "ACKSlot",
    0x1A: "EndOfFrame",
    0x1B: "ACKDelimiter",
}

_TRANSCEIVER_ERRORS: dict[int, str] = {
    0x00: "Unspecified",
    0x04: "CANHNoWire",
    0x05: "CANHShortToBat",
    0x06: "CANHShortToVcc",
    0x07: "CANHShortToGnd",
    0x40: "CANLNoWire",
    0x50: "CANLShortToBat",
    0x60: "CANLShortToVcc",
    0x70: "CANLShortToGnd",
    0x80: "CANLShortToCANH",
}


@dataclass(frozen=True)
class ErrorFrame:
    """Bus fault reported by the controller, as delivered by SocketCAN."""

    error_class: int
    data: bytes = b""

    def _byte(self, index: int) -> int:
        return self.data[index] if len(self.data) > index else 0

    @property
    def class_name(self) -> str:
        return _flag_names(self.error_class, _ERROR_CLASSES)

    @property
    def controller(self) -> str:
        return _flag_names(self._byte(1), _CONTROLLER_ERRORS)

    @property
    def protocol(self) -> str:
        return _flag_names(self._byte(2), _PROTOCOL_ERRORS)

    @property
    def location(self) -> str:
        value = self._byte(3)
        return _PROTOCOL_LOCATIONS.get(value, f"0x{value:02X}")

    @property
    def transceiver(self) -> str:
        value = self._byte(4)
        return _TRANSCEIVER_ERRORS.get(value, f"0x{value:02X}")

    @property
    def tx_error_count(self) -> int:
        return self._byte(6)

    @property
    def rx_error_count(self) -> int:
        return self._byte(7)

    def describe(self) -> str:
        return (
            f"CAN error frame: class={self.class_name} controller={self.controller} "
            f"protocol={self.protocol} location={self.location} transceiver={self.transceiver}"
        )


def _flag_names(value: int, table: list[tuple[int, str]]) -> str:
    if not value:
        return "Unspecified"
    names = [name for bit, name in table if value & bit]
    known = 0
    for bit, _ in table:
        known |= bit
    rest = value & ~known
    if rest:
        names.append(f"0x{rest:X}")
    return "|".join(names)
