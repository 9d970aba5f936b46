"""Response parsing for meter replies.

Each parser validates the raw reply against its layout (length, then CRC)
before touching any field, then decodes the fixed-point values. On the wire
the all-phase sum, when present, precedes the three phase values.
"""

from __future__ import annotations

from ..models.readings import PhaseVector
from .decoders import decode3, decode4
from .framing import ResponseLayout, StatusCode, check_status, validate_frame

TRIPLE = 3
QUAD = 4


def _split(payload: bytes, width: int) -> list[bytes]:
    return [payload[i : i + width] for i in range(0, len(payload), width)]


def parse_status(data: bytes) -> StatusCode:
    """Parse a one-byte status reply; raises unless the status is OK."""
    return check_status(data)


def parse_triple(data: bytes, scale: float) -> float:
    """Parse a single 3-byte value (e.g. grid frequency)."""
    frame = validate_frame(data, ResponseLayout.TRIPLE)
    return decode3(frame.payload, scale)


def parse_phase_triples(data: bytes, scale: float) -> PhaseVector:
    """Parse three 3-byte per-phase values."""
    frame = validate_frame(data, ResponseLayout.PHASE_TRIPLES)
    p1, p2, p3 = (decode3(chunk, scale) for chunk in _split(frame.payload, TRIPLE))
    return PhaseVector(p1=p1, p2=p2, p3=p3)


def parse_phase_triples_with_sum(data: bytes, scale: float) -> PhaseVector:
    """Parse a 3-byte sum followed by three 3-byte per-phase values."""
    frame = validate_frame(data, ResponseLayout.PHASE_TRIPLES_WITH_SUM)
    total, p1, p2, p3 = (
        decode3(chunk, scale) for chunk in _split(frame.payload, TRIPLE)
    )
    return PhaseVector(p1=p1, p2=p2, p3=p3, total=total)


def parse_phase_quads_with_sum(data: bytes, scale: float) -> PhaseVector:
    """Parse a 4-byte sum followed by three 4-byte per-phase values (energy)."""
    frame = validate_frame(data, ResponseLayout.PHASE_QUADS_WITH_SUM)
    total, p1, p2, p3 = (
        decode4(chunk, scale) for chunk in _split(frame.payload, QUAD)
    )
    return PhaseVector(p1=p1, p2=p2, p3=p3, total=total)


_PARSERS = {
    ResponseLayout.TRIPLE: parse_triple,
    ResponseLayout.PHASE_TRIPLES: parse_phase_triples,
    ResponseLayout.PHASE_TRIPLES_WITH_SUM: parse_phase_triples_with_sum,
    ResponseLayout.PHASE_QUADS_WITH_SUM: parse_phase_quads_with_sum,
}


def parse_response(data: bytes, layout: ResponseLayout, scale: float = 1):
    """Dispatch a reply to the parser for ``layout``.

    Returns a ``StatusCode`` for status replies, a float for single values
    and a ``PhaseVector`` for everything else.
    """
    if layout is ResponseLayout.STATUS:
        return parse_status(data)
    return _PARSERS[layout](data, scale)
