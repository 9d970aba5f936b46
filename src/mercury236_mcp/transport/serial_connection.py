"""RS-485 serial connection to the Mercury 236 meter.

The meter is reached through a USB/RS-485 dongle at 9600 baud, 8N1, with
no flow control. Replies carry no length field, so a read collects bytes
until the line falls idle for one inter-frame gap.
"""

from __future__ import annotations

import logging

import serial

logger = logging.getLogger(__name__)

DEFAULT_PORT = "/dev/ttyUSB0"
DEFAULT_BAUDRATE = 9600
READ_TIMEOUT_S = 2.0
FRAME_GAP_S = 0.05
MAX_FRAME_SIZE = 255


class SerialConnection:
    """Manages the serial link to the meter.

    Usage::

        conn = SerialConnection("/dev/ttyUSB0")
        conn.open()
        conn.write(frame_bytes)
        reply = conn.read(timeout=2.0)
        conn.close()
    """

    def __init__(
        self,
        port: str = DEFAULT_PORT,
        baudrate: int = DEFAULT_BAUDRATE,
        frame_gap: float = FRAME_GAP_S,
    ) -> None:
        self._port = port
        self._baudrate = baudrate
        self._frame_gap = frame_gap
        self._serial: serial.Serial | None = None

    @property
    def port(self) -> str:
        return self._port

    @property
    def connected(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def open(self) -> None:
        """Open the serial port in raw 8N1 mode.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        try:
            self._serial = serial.Serial(
                port=self._port,
                baudrate=self._baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=READ_TIMEOUT_S,
                xonxoff=False,
                rtscts=False,
            )
        except serial.SerialException as e:
            raise ConnectionError(
                f"Could not open {self._port} at {self._baudrate} baud. "
                f"Ensure the RS-485 adapter is plugged in and you have permissions. "
                f"Last error: {e}"
            ) from e

        self._serial.reset_input_buffer()
        logger.info("Opened %s at %d baud", self._port, self._baudrate)

    def close(self) -> None:
        """Close the serial port. Safe to call more than once."""
        if self._serial is None:
            return

        try:
            self._serial.close()
        except serial.SerialException as e:
            logger.warning("Error closing %s: %s", self._port, e)
        finally:
            self._serial = None
            logger.info("Closed %s", self._port)

    def write(self, data: bytes) -> int:
        """Write a frame and wait until it has left the output buffer.

        Raises:
            ConnectionError: If not connected.
        """
        if not self.connected:
            raise ConnectionError("Serial port is not open")

        written = self._serial.write(data)
        self._serial.flush()
        return written

    def read(self, timeout: float = READ_TIMEOUT_S) -> bytes:
        """Read one reply frame.

        Waits up to ``timeout`` seconds for the first byte, then keeps
        reading until no byte arrives for one frame gap.

        Returns:
            The received bytes, or ``b""`` if the timeout expired.

        Raises:
            ConnectionError: If not connected.
        """
        if not self.connected:
            raise ConnectionError("Serial port is not open")

        self._serial.timeout = timeout
        first = self._serial.read(1)
        if not first:
            return b""

        data = bytearray(first)
        self._serial.timeout = self._frame_gap
        while len(data) < MAX_FRAME_SIZE:
            chunk = self._serial.read(MAX_FRAME_SIZE - len(data))
            if not chunk:
                break
            data += chunk
        return bytes(data)

    def __enter__(self) -> SerialConnection:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
