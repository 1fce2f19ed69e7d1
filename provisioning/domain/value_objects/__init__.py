"""
Value objects for the device line protocol.
"""
from .registration_frame import (
    DedupStrategy,
    RegistrationFrame,
    LINE_TERMINATOR,
    ESCAPED_TERMINATOR,
)
from .reply_frame import ErrorCode, ReplyFieldOrder, ReplyFrame

__all__ = [
    'DedupStrategy',
    'RegistrationFrame',
    'LINE_TERMINATOR',
    'ESCAPED_TERMINATOR',
    'ErrorCode',
    'ReplyFieldOrder',
    'ReplyFrame',
]
