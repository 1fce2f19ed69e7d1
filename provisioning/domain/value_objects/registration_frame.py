"""
Registration frame value object.

Parses the single line a device sends to request its identity:

    dr:<macId>:<deviceType>:<switchCount>:<softwareVersion>:<hardwareVersion>:<defaultDeviceId>\\r\\n
"""
import re
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, Union

from ..exceptions import FormatError

LINE_TERMINATOR = "\r\n"

# Some firmware sends the escape text instead of a real CR LF
ESCAPED_TERMINATOR = "\\r\\n"


class DedupStrategy(str, Enum):
    """Which frame fields identify a physical device."""
    DEFAULT_DEVICE_ID = "default_device_id"
    ALL_FIELDS = "all_fields"


@dataclass(frozen=True)
class RegistrationFrame:
    """
    Parsed device registration request.

    Immutable and validated on construction through parse().
    """
    mac_id: str
    device_type: str
    switch_count: str
    software_version: str
    hardware_version: str
    default_device_id: str

    FRAME_REGEX = re.compile(
        r'dr:([^:\r\n]+):([^:\r\n]+):([^:\r\n]+):([^:\r\n]+):([^:\r\n]+):([^:\r\n]+)\r\n',
        re.IGNORECASE,
    )

    @classmethod
    def parse(
        cls,
        line: Union[bytes, str],
        accept_escaped_terminator: bool = True,
    ) -> 'RegistrationFrame':
        """
        Parse a raw registration line.

        Args:
            line: Line as received, terminator included.
            accept_escaped_terminator: Also accept a trailing literal
                                       backslash-r backslash-n.

        Returns:
            The parsed frame.

        Raises:
            FormatError: If the line does not match the grammar.
        """
        text = line.decode('utf-8', errors='replace') if isinstance(line, bytes) else line

        if accept_escaped_terminator and text.endswith(ESCAPED_TERMINATOR):
            text = text[:-len(ESCAPED_TERMINATOR)] + LINE_TERMINATOR

        match = cls.FRAME_REGEX.fullmatch(text)
        if not match:
            raise FormatError("Invalid registration frame", frame=text)

        return cls(*match.groups())

    def dedup_key(self, strategy: DedupStrategy = DedupStrategy.DEFAULT_DEVICE_ID) -> str:
        """Key used to decide whether this device is already known."""
        if strategy == DedupStrategy.ALL_FIELDS:
            return ':'.join((
                self.mac_id,
                self.device_type,
                self.switch_count,
                self.software_version,
                self.hardware_version,
                self.default_device_id,
            ))
        return self.default_device_id

    def to_dict(self) -> Dict[str, str]:
        """Serialize to dictionary."""
        return asdict(self)

    def __str__(self) -> str:
        return (
            f"dr:{self.mac_id}:{self.device_type}:{self.switch_count}:"
            f"{self.software_version}:{self.hardware_version}:{self.default_device_id}"
        )
