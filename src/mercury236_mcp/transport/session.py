"""Request/response session with the meter.

A session sequences strictly half-duplex exchanges over one channel::

    CLOSED -> CHANNEL_VERIFIED -> INITIALIZED -> READING -> CLOSED

The channel is any object with ``write(bytes)`` and ``read(timeout) ->
bytes`` where an empty read means the timeout expired. The session owns it
for its whole lifetime but never opens or releases it.
"""

from __future__ import annotations

import logging
import time
from enum import Enum

from ..errors import ChannelTimeout, MeterError, MidSessionTimeout, SessionStateError
from ..protocol.commands import (
    DEFAULT_ACCESS_LEVEL,
    DEFAULT_ADDRESS,
    DEFAULT_PASSWORD,
    build_close,
    build_initialize,
    build_test_channel,
)
from ..protocol.framing import ResponseLayout, StatusCode
from ..protocol.parser import parse_response, parse_status

logger = logging.getLogger(__name__)

CHANNEL_TIMEOUT_S = 2.0
SETTLE_DELAY_S = 0.05


class SessionState(Enum):
    CLOSED = "closed"
    CHANNEL_VERIFIED = "channel_verified"
    INITIALIZED = "initialized"
    READING = "reading"


_OPEN_STATES = (SessionState.INITIALIZED, SessionState.READING)


class MeterSession:
    """Drives the test / open / read / close exchanges with one meter.

    Args:
        channel: Byte channel to the meter.
        address: Meter bus address.
        channel_timeout: Seconds to wait for any reply.
        settle_delay: Seconds to pause after each write before reading.
        access_level: Access level sent when opening the channel.
        password: Six-byte password sent when opening the channel.
        debug: Log every frame sent and received at DEBUG level.
    """

    def __init__(
        self,
        channel,
        address: int = DEFAULT_ADDRESS,
        channel_timeout: float = CHANNEL_TIMEOUT_S,
        settle_delay: float = SETTLE_DELAY_S,
        access_level: int = DEFAULT_ACCESS_LEVEL,
        password: bytes = DEFAULT_PASSWORD,
        debug: bool = False,
    ) -> None:
        self._channel = channel
        self._address = address
        self._channel_timeout = channel_timeout
        self._settle_delay = settle_delay
        self._access_level = access_level
        self._password = password
        self._debug = debug
        self._state = SessionState.CLOSED

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def address(self) -> int:
        return self._address

    def _dump(self, data: bytes, incoming: bool) -> None:
        if self._debug:
            logger.debug(
                "%s bytes: %d\t%s",
                "Received" if incoming else "Sent",
                len(data),
                data.hex(" ").upper(),
            )

    def _exchange(self, request: bytes) -> bytes:
        """Send one request and wait for its reply; ``b""`` on timeout."""
        self._dump(request, incoming=False)
        self._channel.write(request)
        if self._settle_delay:
            time.sleep(self._settle_delay)
        reply = self._channel.read(self._channel_timeout)
        if reply:
            self._dump(reply, incoming=True)
        return reply

    def _exchange_or_fail(self, request: bytes, what: str) -> bytes:
        reply = self._exchange(request)
        if not reply:
            raise MidSessionTimeout(
                f"No reply to {what} within {self._channel_timeout}s"
            )
        return reply

    def _require(self, *states: SessionState) -> None:
        if self._state not in states:
            allowed = ", ".join(s.value for s in states)
            raise SessionStateError(
                f"Session is {self._state.value}, expected one of: {allowed}"
            )

    def verify_channel(self) -> StatusCode:
        """Probe the meter with a TestChannel request.

        Raises:
            ChannelTimeout: If the meter does not answer at all.
            ProtocolError: If the reply is malformed or reports a failure.
        """
        try:
            reply = self._exchange(build_test_channel(self._address))
            if not reply:
                raise ChannelTimeout(
                    f"Meter at address {self._address} did not answer "
                    f"within {self._channel_timeout}s"
                )
            status = parse_status(reply)
        except MeterError:
            if self._state is SessionState.CHANNEL_VERIFIED:
                self._state = SessionState.CLOSED
            raise

        if self._state is SessionState.CLOSED:
            self._state = SessionState.CHANNEL_VERIFIED
        logger.debug("Channel to meter %d verified", self._address)
        return status

    def initialize(self) -> StatusCode:
        """Open the meter channel with the configured access level and password.

        Raises:
            SessionStateError: If the channel has not been verified.
            MidSessionTimeout: If the meter stops answering.
            ProtocolError: If the meter rejects the request.
        """
        self._require(SessionState.CHANNEL_VERIFIED)
        request = build_initialize(self._address, self._access_level, self._password)
        status = parse_status(self._exchange_or_fail(request, "channel open"))
        self._state = SessionState.INITIALIZED
        logger.debug("Meter %d channel opened", self._address)
        return status

    def read_parameter(
        self, request: bytes, layout: ResponseLayout, scale: float = 1
    ):
        """Send a read request and decode its reply.

        Args:
            request: A complete request frame.
            layout: Reply layout expected for ``request``.
            scale: Divisor applied to every decoded field.

        Raises:
            SessionStateError: If the session is not initialized.
            MidSessionTimeout: If the meter stops answering.
            ProtocolError: If the reply is malformed or reports a failure.
        """
        self._require(*_OPEN_STATES)
        self._state = SessionState.READING
        reply = self._exchange_or_fail(request, f"read {request.hex(' ')}")
        return parse_response(reply, layout, scale)

    def close(self) -> None:
        """Close the meter channel.

        The session is CLOSED afterwards whether or not the meter confirms;
        a bad or missing confirmation still raises. Closing a session that
        was never opened sends nothing.
        """
        if self._state not in _OPEN_STATES:
            self._state = SessionState.CLOSED
            return

        try:
            parse_status(self._exchange_or_fail(build_close(self._address), "close"))
        finally:
            self._state = SessionState.CLOSED
        logger.debug("Meter %d channel closed", self._address)

    def __enter__(self) -> MeterSession:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
            return
        # An aborted exchange sends nothing more on the bus.
        if self._state in _OPEN_STATES:
            logger.warning(
                "Meter %d session aborted, channel left open: %s", self._address, exc
            )
        self._state = SessionState.CLOSED
