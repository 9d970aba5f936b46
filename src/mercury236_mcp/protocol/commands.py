"""Command identifiers and request frame builders.

Every request is ``address + command + parameters + crc`` with a fixed size
per command. Builders return immutable ``bytes`` ready for the wire.
"""

from __future__ import annotations

from enum import IntEnum

from .framing import build_frame

DEFAULT_ADDRESS = 0
DEFAULT_ACCESS_LEVEL = 0x01
DEFAULT_PASSWORD = b"\x01" * 6
PASSWORD_SIZE = 6

# Parameter number of the "current values" block for command 0x08
CURRENT_VALUES_PARAM = 0x16


class Command(IntEnum):
    """Request command codes."""

    TEST_CHANNEL = 0x00
    OPEN_CHANNEL = 0x01
    CLOSE_CHANNEL = 0x02
    READ_ENERGY = 0x05
    READ_PARAMETER = 0x08


class Quantity(IntEnum):
    """Sub-indices of the current-values block (command 0x08, param 0x16)."""

    ACTIVE_POWER = 0x00
    REACTIVE_POWER = 0x08
    VOLTAGE = 0x11
    CURRENT = 0x21
    COS_PHI = 0x30
    FREQUENCY = 0x40
    PHASE_ANGLE = 0x51


class EnergyPeriod(IntEnum):
    """Accumulation periods for the energy counters (command 0x05)."""

    RESET = 0
    YEAR_TO_DATE = 1
    LAST_YEAR = 2
    MONTH = 3
    TODAY = 4
    YESTERDAY = 5


# Expected frame sizes, address and CRC included
TEST_CHANNEL_SIZE = 4
OPEN_CHANNEL_SIZE = 11
CLOSE_CHANNEL_SIZE = 4
READ_PARAMETER_SIZE = 6


def _check_byte(name: str, value: int) -> None:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} must be 0-255, got {value}")


def build_command(address: int, command: Command, params: bytes = b"") -> bytes:
    """Build a request frame for ``command`` with raw parameter bytes."""
    return build_frame(address, bytes([command]) + params)


def build_test_channel(address: int = DEFAULT_ADDRESS) -> bytes:
    """Build a TestChannel request (0x00) that checks the meter answers."""
    return build_command(address, Command.TEST_CHANNEL)


def build_initialize(
    address: int = DEFAULT_ADDRESS,
    access_level: int = DEFAULT_ACCESS_LEVEL,
    password: bytes = DEFAULT_PASSWORD,
) -> bytes:
    """Build an OpenChannel request (0x01) that authenticates the session.

    Args:
        address: Meter bus address.
        access_level: 1 for user, 2 for administrator.
        password: Exactly six raw password bytes.
    """
    _check_byte("Access level", access_level)
    if len(password) != PASSWORD_SIZE:
        raise ValueError(
            f"Password must be {PASSWORD_SIZE} bytes, got {len(password)}"
        )
    return build_command(
        address, Command.OPEN_CHANNEL, bytes([access_level]) + bytes(password)
    )


def build_close(address: int = DEFAULT_ADDRESS) -> bytes:
    """Build a CloseChannel request (0x02)."""
    return build_command(address, Command.CLOSE_CHANNEL)


def build_read_parameter(
    address: int, command: Command, param_id: int, sub_index: int
) -> bytes:
    """Build a four-field read request: address, command, param, sub-index."""
    _check_byte("Parameter id", param_id)
    _check_byte("Sub-index", sub_index)
    return build_command(address, command, bytes([param_id, sub_index]))


def build_read_current_values(
    quantity: Quantity, address: int = DEFAULT_ADDRESS
) -> bytes:
    """Build a request for one instantaneous quantity from the 0x16 block."""
    return build_read_parameter(
        address, Command.READ_PARAMETER, CURRENT_VALUES_PARAM, quantity
    )


def build_read_energy(
    period: EnergyPeriod,
    month: int = 0,
    tariff: int = 0,
    address: int = DEFAULT_ADDRESS,
) -> bytes:
    """Build an energy counter request.

    Args:
        period: Accumulation period.
        month: Month number 1-12, for ``EnergyPeriod.MONTH`` only;
            must be 0 for every other period.
        tariff: 0 for the sum of all tariffs, otherwise the tariff number.
        address: Meter bus address.
    """
    if not 0 <= month <= 12:
        raise ValueError(f"Month must be 0-12, got {month}")
    if month and period != EnergyPeriod.MONTH:
        raise ValueError(f"Month applies only to the month period, got {month}")
    param_id = (int(period) << 4) | (month & 0x0F)
    return build_read_parameter(address, Command.READ_ENERGY, param_id, tariff)
