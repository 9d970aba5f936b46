"""Exception hierarchy for meter communication.

All errors raised by the protocol engine derive from :class:`MeterError`.
Nothing in the engine terminates the process; the outermost caller decides
what a failure means.
"""

from __future__ import annotations


class MeterError(Exception):
    """Base class for all meter communication failures."""


class ProtocolError(MeterError):
    """A reply arrived but could not be accepted."""


class WrongResultSize(ProtocolError):
    """Reply length does not match the expected response layout."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Wrong result size: expected {expected} bytes, got {actual}"
        )


class WrongCrc(ProtocolError):
    """Reply CRC trailer does not match the computed CRC."""

    def __init__(self, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(
            f"Wrong CRC: computed 0x{expected:04X}, received 0x{received:04X}"
        )


class MeterStatusError(ProtocolError):
    """The meter answered with a nonzero status code."""

    def __init__(self, status: int) -> None:
        self.status = status
        description = getattr(status, "description", "unknown status")
        super().__init__(f"Meter returned status {int(status)} ({description})")


class MeterTimeoutError(MeterError):
    """No reply arrived within the channel timeout."""


class ChannelTimeout(MeterTimeoutError):
    """Silence on the channel test: the meter is absent or unpowered."""


class MidSessionTimeout(MeterTimeoutError):
    """Silence after the channel was verified: the link was lost."""


class SessionStateError(MeterError):
    """An operation was attempted in the wrong session state."""
