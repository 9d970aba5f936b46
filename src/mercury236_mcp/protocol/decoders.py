"""Fixed-point field decoders.

The meter packs readings as unsigned integers with a firmware-specific byte
order that is neither big- nor little-endian:

- 3-byte fields: ``b0`` is the high byte, then ``b2``, then ``b1``.
- 4-byte fields: byte pairs are swapped, ``b1 b0 b3 b2``.
"""

from __future__ import annotations

SCALE_VOLTAGE = 100
SCALE_FREQUENCY = 100
SCALE_ANGLE = 100
SCALE_CURRENT = 1000
SCALE_POWER = 1000
SCALE_COS_PHI = 1000
SCALE_ENERGY = 1000


def _check(raw: bytes, size: int, scale: float) -> None:
    if len(raw) != size:
        raise ValueError(f"Expected {size} bytes, got {len(raw)}")
    if scale == 0:
        raise ValueError("Scale must be nonzero")


def decode3(raw: bytes, scale: float) -> float:
    """Decode a 3-byte field as ``(b0 << 16 | b2 << 8 | b1) / scale``."""
    _check(raw, 3, scale)
    value = (raw[0] << 16) | (raw[2] << 8) | raw[1]
    return value / scale


def decode4(raw: bytes, scale: float) -> float:
    """Decode a 4-byte field as ``(b1 << 24 | b0 << 16 | b3 << 8 | b2) / scale``."""
    _check(raw, 4, scale)
    value = (raw[1] << 24) | (raw[0] << 16) | (raw[3] << 8) | raw[2]
    return value / scale
