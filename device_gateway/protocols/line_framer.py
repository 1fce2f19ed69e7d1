"""
Line framing for device byte streams.

Devices send CR LF terminated text lines over a raw TCP stream. Reads
do not respect line boundaries, so each connection keeps a LineFramer
that buffers partial input and hands out complete lines.
"""
import logging
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

CRLF = b"\r\n"

# Literal backslash sequence some firmware sends instead of a real CR LF
ESCAPED_CRLF = b"\\r\\n"


class LineFramer:
    """
    Incremental splitter of a byte stream into terminated lines.

    Lines are returned with their terminator attached so the protocol
    codec can still tell a terminated frame from a truncated one. A real
    CR LF right after an escaped terminator belongs to the same line and
    is dropped.
    """

    def __init__(
        self,
        terminators: Sequence[bytes] = (CRLF,),
        max_line_bytes: int = 1024,
    ):
        """
        Initialize the framer.

        Args:
            terminators: Byte sequences that end a line.
            max_line_bytes: Longest partial line kept before it is
                            released unterminated.
        """
        if not terminators:
            raise ValueError("At least one terminator is required")

        self._terminators = tuple(terminators)
        self._max_line_bytes = max_line_bytes
        self._buffer = bytearray()
        self._overflows = 0
        self._after_escaped = False

    @classmethod
    def for_devices(
        cls,
        max_line_bytes: int = 1024,
        accept_escaped_terminator: bool = True,
    ) -> "LineFramer":
        """Create a framer for the device registration protocol."""
        terminators = (CRLF, ESCAPED_CRLF) if accept_escaped_terminator else (CRLF,)
        return cls(terminators=terminators, max_line_bytes=max_line_bytes)

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet part of a complete line."""
        return len(self._buffer)

    @property
    def overflows(self) -> int:
        """Number of partial lines released because they grew too long."""
        return self._overflows

    def feed(self, data: bytes) -> List[bytes]:
        """
        Add received bytes and return all lines completed by them.

        Args:
            data: Bytes read from the connection.

        Returns:
            Complete lines in arrival order, terminators included. A
            partial line exceeding max_line_bytes is returned as-is
            (without terminator) and the buffer is cleared.
        """
        self._buffer.extend(data)
        lines: List[bytes] = []

        while True:
            if self._after_escaped and not self._skip_trailing_crlf():
                break

            found = self._find_terminator()
            if found is None:
                break
            index, terminator = found
            end = index + len(terminator)
            lines.append(bytes(self._buffer[:end]))
            del self._buffer[:end]
            self._after_escaped = terminator == ESCAPED_CRLF

        if len(self._buffer) > self._max_line_bytes:
            logger.warning(
                f"Discarding unterminated input of {len(self._buffer)} bytes "
                f"(limit {self._max_line_bytes})"
            )
            self._overflows += 1
            lines.append(bytes(self._buffer))
            self._buffer.clear()

        return lines

    def flush(self) -> Optional[bytes]:
        """Return and clear the pending partial line, if any."""
        if self._after_escaped and CRLF.startswith(bytes(self._buffer)):
            self._buffer.clear()
        self._after_escaped = False
        if not self._buffer:
            return None
        data = bytes(self._buffer)
        self._buffer.clear()
        return data

    def reset(self) -> None:
        """Discard any buffered partial input."""
        self._buffer.clear()
        self._after_escaped = False

    def _skip_trailing_crlf(self) -> bool:
        """
        Drop a CR LF that follows an escaped terminator.

        Returns False while too few bytes are buffered to decide.
        """
        head = bytes(self._buffer[:len(CRLF)])
        if head == CRLF:
            del self._buffer[:len(CRLF)]
        elif CRLF.startswith(head):
            return False
        self._after_escaped = False
        return True

    def _find_terminator(self) -> Optional[Tuple[int, bytes]]:
        """Locate the earliest terminator in the buffer."""
        best: Optional[Tuple[int, bytes]] = None
        for terminator in self._terminators:
            index = self._buffer.find(terminator)
            if index >= 0 and (best is None or index < best[0]):
                best = (index, terminator)
        return best
