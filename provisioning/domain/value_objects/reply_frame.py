"""
Reply frame value object.

Formats the line sent back to a device after a registration attempt.
"""
from dataclasses import dataclass
from enum import Enum

from .registration_frame import LINE_TERMINATOR


class ReplyFieldOrder(str, Enum):
    """Field order of the success reply expected by device firmware."""
    ID_SERIAL_TIMESTAMP = "id_serial_timestamp"
    ID_TIMESTAMP_SERIAL = "id_timestamp_serial"


class ErrorCode(str, Enum):
    """Error codes reported to devices."""
    INVALID_FORMAT = "INVALID_FORMAT"
    DB_WRITE_FAILED = "DB_WRITE_FAILED"


@dataclass(frozen=True)
class ReplyFrame:
    """
    Outbound protocol line, kept without its terminator.

    Build with success() or error(); encode() adds the CR LF.
    """
    text: str

    @classmethod
    def success(
        cls,
        allocated_id: str,
        serial_number: str,
        timestamp_millis: int,
        order: ReplyFieldOrder = ReplyFieldOrder.ID_SERIAL_TIMESTAMP,
    ) -> 'ReplyFrame':
        """Build the allocation reply."""
        if order == ReplyFieldOrder.ID_TIMESTAMP_SERIAL:
            return cls(f"DR:{allocated_id}:{timestamp_millis}:{serial_number}")
        return cls(f"DR:{allocated_id}:{serial_number}:{timestamp_millis}")

    @classmethod
    def error(cls, code: ErrorCode) -> 'ReplyFrame':
        """Build an error reply."""
        return cls(f"ERROR:{code.value}")

    @property
    def is_error(self) -> bool:
        return self.text.startswith("ERROR:")

    def encode(self) -> bytes:
        """Wire representation, terminator included."""
        return (self.text + LINE_TERMINATOR).encode('utf-8')

    def __str__(self) -> str:
        return self.text
