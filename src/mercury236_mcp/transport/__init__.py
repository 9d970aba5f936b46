"""Transport layer: serial channel and meter session."""

from .serial_connection import SerialConnection
from .session import MeterSession, SessionState
