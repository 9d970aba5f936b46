"""Frame builder and validator for the Mercury 236 RS-485 protocol.

Frame layout::

    +---------+-------------------------+----------+
    | Address |         Payload         |   CRC    |
    | 1 byte  | command-specific length | 2 bytes  |
    +---------+-------------------------+----------+

- Address: meter bus address (0 addresses any single meter on the bus)
- Payload: command byte and parameters (requests) or reply data (responses)
- CRC: Modbus RTU CRC-16 over address + payload, little-endian

Replies have no length field. Each request has exactly one expected reply
layout, and a reply whose length differs from it is rejected before the CRC
is even looked at.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum

from ..errors import MeterStatusError, WrongCrc, WrongResultSize
from ..utils.crc import crc16, crc16_bytes

CRC_SIZE = 2
STATUS_MASK = 0x0F


class StatusCode(IntEnum):
    """Status codes carried in the low nibble of a status reply."""

    OK = 0
    ILLEGAL_COMMAND = 1
    INTERNAL_COUNTER_ERROR = 2
    PERMISSION_DENIED = 3
    CLOCK_ALREADY_CORRECTED = 4
    CHANNEL_NOT_OPEN = 5

    @property
    def description(self) -> str:
        return self.name.replace("_", " ").lower()


class ResponseLayout(Enum):
    """Expected reply shapes with their fixed total sizes (address + data + CRC)."""

    STATUS = 4                   # addr, status, crc
    TRIPLE = 6                   # addr, value(3), crc
    PHASE_TRIPLES = 12           # addr, p1(3), p2(3), p3(3), crc
    PHASE_TRIPLES_WITH_SUM = 15  # addr, sum(3), p1(3), p2(3), p3(3), crc
    PHASE_QUADS_WITH_SUM = 19    # addr, sum(4), p1(4), p2(4), p3(4), crc

    @property
    def size(self) -> int:
        return self.value


@dataclass(frozen=True)
class Frame:
    """A validated protocol frame with the CRC stripped."""

    address: int
    payload: bytes

    def __repr__(self) -> str:
        return (
            f"Frame(address=0x{self.address:02X}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


def build_frame(address: int, payload: bytes = b"") -> bytes:
    """Build a ready-to-transmit frame.

    Args:
        address: Meter bus address (0-255).
        payload: Command byte followed by its parameters.

    Returns:
        ``address + payload + crc`` as ``bytes``.
    """
    if not 0 <= address <= 0xFF:
        raise ValueError(f"Address must be 0-255, got {address}")
    body = bytes([address]) + payload
    return body + crc16_bytes(body)


def validate_frame(data: bytes, layout: ResponseLayout) -> Frame:
    """Check a reply against its expected layout and CRC.

    Args:
        data: Raw bytes read from the channel.
        layout: The reply shape expected for the request that was sent.

    Returns:
        The validated ``Frame`` (address and payload, CRC removed).

    Raises:
        WrongResultSize: If ``len(data)`` differs from ``layout.size``.
        WrongCrc: If the trailer does not match the computed CRC.
    """
    if len(data) != layout.size:
        raise WrongResultSize(layout.size, len(data))

    body = data[:-CRC_SIZE]
    expected_crc = crc16(body)
    received_crc = int.from_bytes(data[-CRC_SIZE:], "little")
    if expected_crc != received_crc:
        raise WrongCrc(expected_crc, received_crc)

    return Frame(address=body[0], payload=bytes(body[1:]))


def decode_status(frame: Frame) -> StatusCode:
    """Extract the status code from a validated status frame.

    Only the low four bits carry the code; the high nibble is ignored.
    Values outside the known set are reported as a protocol failure too.
    """
    raw = frame.payload[0] & STATUS_MASK
    try:
        return StatusCode(raw)
    except ValueError:
        raise MeterStatusError(raw) from None


def check_status(data: bytes) -> StatusCode:
    """Validate a status reply and raise if the meter reported a failure.

    Raises:
        WrongResultSize, WrongCrc: If the frame itself is malformed.
        MeterStatusError: If the status code is not ``StatusCode.OK``.
    """
    status = decode_status(validate_frame(data, ResponseLayout.STATUS))
    if status != StatusCode.OK:
        raise MeterStatusError(status)
    return status
