"""Protocol layer: framing, CRC validation, command builders, and response parsing."""

from .framing import ResponseLayout, StatusCode, build_frame, validate_frame
from .commands import Command, EnergyPeriod, Quantity, build_command
