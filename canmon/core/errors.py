from __future__ import annotations


class CanmonError(Exception):
    """Base class for errors returned to callers of the session manager."""


class AlreadyActiveError(CanmonError):
    def __init__(self) -> None:
        super().__init__("CAN already started")


class NotStartedError(CanmonError):
    def __init__(self) -> None:
        super().__init__("CAN not started")


class DialError(CanmonError):
    def __init__(self, interface: str, reason: str) -> None:
        super().__init__(f"dial {interface}: {reason}")
        self.interface = interface
        self.reason = reason


class InvalidFrameError(CanmonError):
    pass


class PayloadTooLargeError(InvalidFrameError):
    def __init__(self, length: int) -> None:
        super().__init__(f"data length must be <= 8 (got {int(length)})")
        self.length = int(length)


class TransmitError(CanmonError):
    pass
