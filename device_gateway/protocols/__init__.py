"""
Stream framing for the device line protocol.
"""
from .line_framer import CRLF, ESCAPED_CRLF, LineFramer

__all__ = [
    "CRLF",
    "ESCAPED_CRLF",
    "LineFramer",
]
