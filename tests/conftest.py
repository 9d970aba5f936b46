"""Shared fixtures: a scripted byte channel and reply frame helpers."""

from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

import pytest

from mercury236_mcp.protocol.framing import build_frame
from mercury236_mcp.transport.session import MeterSession


class FakeChannel:
    """Channel double that replays scripted replies and records writes.

    An exhausted script reads as ``b""``, i.e. a timeout.
    """

    def __init__(self, replies=()) -> None:
        self.replies = list(replies)
        self.written: list[bytes] = []
        self.timeouts: list[float] = []
        self.closed = False

    def write(self, data: bytes) -> int:
        self.written.append(bytes(data))
        return len(data)

    def read(self, timeout: float) -> bytes:
        self.timeouts.append(timeout)
        if not self.replies:
            return b""
        return self.replies.pop(0)

    def __enter__(self) -> FakeChannel:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.closed = True


def reply(payload: bytes, address: int = 0) -> bytes:
    """A meter reply frame with a valid CRC."""
    return build_frame(address, payload)


STATUS_OK = reply(b"\x00")

VOLTAGE_PAYLOAD = bytes([0x01, 0x02, 0x03, 0x00, 0xD8, 0x59, 0x00, 0x00, 0x00])
CURRENT_PAYLOAD = bytes([0x00, 0xE8, 0x03] * 3)
COS_PHI_PAYLOAD = bytes([0x00, 0xE8, 0x03]) + bytes([0x00, 0xF4, 0x01] * 3)
FREQUENCY_PAYLOAD = bytes([0x00, 0x88, 0x13])
ANGLE_PAYLOAD = bytes([0x00, 0x30, 0x2F, 0x00, 0x00, 0x00, 0x00, 0x60, 0x5E])
ACTIVE_POWER_PAYLOAD = bytes([0x00, 0x70, 0x17]) + bytes([0x00, 0xD0, 0x07] * 3)
REACTIVE_POWER_PAYLOAD = bytes([0x00, 0x00, 0x00] * 4)
ENERGY_PAYLOAD = bytes([0x00, 0x00, 0x10, 0x27]) + bytes([0x00, 0x00, 0xE8, 0x03] * 3)


def full_cycle_replies() -> list[bytes]:
    """Replies for a complete successful polling cycle, in request order."""
    return [
        STATUS_OK,                       # test channel
        STATUS_OK,                       # open channel
        reply(VOLTAGE_PAYLOAD),
        reply(CURRENT_PAYLOAD),
        reply(COS_PHI_PAYLOAD),
        reply(FREQUENCY_PAYLOAD),
        reply(ANGLE_PAYLOAD),
        reply(ACTIVE_POWER_PAYLOAD),
        reply(REACTIVE_POWER_PAYLOAD),
        reply(ENERGY_PAYLOAD),           # since reset
        reply(ENERGY_PAYLOAD),           # yesterday
        reply(ENERGY_PAYLOAD),           # today
        STATUS_OK,                       # close
    ]


@pytest.fixture
def make_session():
    """Factory returning ``(session, channel)`` for scripted replies."""

    def _make(*replies: bytes, **kwargs):
        channel = FakeChannel(replies)
        kwargs.setdefault("settle_delay", 0)
        return MeterSession(channel, **kwargs), channel

    return _make


def get_server_module():
    """Import server module with FastMCP mocked to avoid init issues."""
    mock_fastmcp_cls = MagicMock()
    mock_fastmcp_instance = MagicMock()
    # Make the @mcp.tool() decorator a no-op that returns the function unchanged
    mock_fastmcp_instance.tool.return_value = lambda fn: fn
    mock_fastmcp_instance.resource.return_value = lambda fn: fn
    mock_fastmcp_instance.prompt.return_value = lambda fn: fn
    mock_fastmcp_cls.return_value = mock_fastmcp_instance

    with patch("mcp.server.fastmcp.FastMCP", mock_fastmcp_cls):
        # Remove cached server module so it re-imports with our mock
        sys.modules.pop("mercury236_mcp.server", None)
        import mercury236_mcp.server as server_mod

    return server_mod
