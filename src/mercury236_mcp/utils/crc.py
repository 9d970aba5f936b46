"""CRC-16 (Modbus RTU) used to protect every frame in both directions.

The register is transmitted low byte first, so a frame trailer compares
equal to :func:`crc16` when read as a little-endian 16-bit integer.
"""

from __future__ import annotations

CRC_INIT = 0xFFFF
CRC_POLY = 0xA001  # 0x8005 bit-reversed


def crc16(data: bytes) -> int:
    """Compute the Modbus RTU CRC-16 of ``data``.

    Args:
        data: Bytes to checksum (everything in a frame except the CRC itself).

    Returns:
        The 16-bit CRC register value.
    """
    crc = CRC_INIT
    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 0x0001:
                crc = (crc >> 1) ^ CRC_POLY
            else:
                crc >>= 1
    return crc


def crc16_bytes(data: bytes) -> bytes:
    """Return the CRC of ``data`` encoded as the two-byte wire trailer."""
    return crc16(data).to_bytes(2, "little")
