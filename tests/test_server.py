"""Tests for the MCP tool layer, with the meter and FastMCP mocked."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from conftest import ENERGY_PAYLOAD, STATUS_OK, FakeChannel, get_server_module, reply

from mercury236_mcp.config import MeterSettings
from mercury236_mcp.errors import ChannelTimeout, MidSessionTimeout
from mercury236_mcp.models.readings import MeterReadings, PhaseVector
from mercury236_mcp.protocol.commands import build_close


def _settings() -> MeterSettings:
    return MeterSettings(port="/dev/ttyTEST", settle_delay=0)


def test_read_meter_returns_readings_and_report():
    server = get_server_module()
    readings = MeterReadings(voltage=PhaseVector(230.0, 230.0, 230.0), frequency=50.0)

    with patch.object(server, "_get_settings", return_value=_settings()), \
            patch.object(server, "collect_readings", return_value=readings):
        result = server.read_meter()

    assert result["meter_present"] is True
    assert result["voltage"]["p1"] == 230.0
    assert result["report"].startswith("U (V):")


def test_read_meter_updates_latest_resource():
    server = get_server_module()
    assert json.loads(server.resource_latest_readings()) == {"readings": None}

    readings = MeterReadings(frequency=49.9)
    with patch.object(server, "_get_settings", return_value=_settings()), \
            patch.object(server, "collect_readings", return_value=readings):
        server.read_meter()

    latest = json.loads(server.resource_latest_readings())
    assert latest["readings"]["frequency"] == 49.9


def test_read_meter_error_is_reported_not_raised():
    server = get_server_module()
    failure = MidSessionTimeout("No reply to close within 2.0s")

    with patch.object(server, "_get_settings", return_value=_settings()), \
            patch.object(server, "collect_readings", side_effect=failure):
        result = server.read_meter()

    assert result["kind"] == "MidSessionTimeout"
    assert "No reply" in result["error"]


def test_read_meter_port_error():
    server = get_server_module()
    with patch.object(server, "_get_settings", return_value=_settings()), \
            patch.object(server, "collect_readings", side_effect=ConnectionError("busy")):
        result = server.read_meter()
    assert result == {"error": "busy", "kind": "ConnectionError"}


def test_read_energy_counters():
    server = get_server_module()
    payload = bytes([0x00, 0x00, 0x10, 0x27]) + bytes([0x00, 0x00, 0xE8, 0x03] * 3)
    channel = FakeChannel([STATUS_OK, STATUS_OK, reply(payload), STATUS_OK])

    with patch.object(server, "_get_settings", return_value=_settings()), \
            patch.object(server, "SerialConnection", return_value=channel):
        result = server.read_energy_counters("month", month=2, tariff=1)

    assert result["period"] == "month"
    assert result["energy_kwh"]["total"] == 10.0
    assert channel.written[2][2:4] == bytes([0x32, 0x01])
    assert len(channel.written) == 4  # test, open, read, close
    assert channel.closed is True


def test_read_energy_counters_unknown_period():
    server = get_server_module()
    result = server.read_energy_counters("fortnight")
    assert result["kind"] == "ValueError"
    assert "yesterday" in result["error"]


def test_read_energy_counters_month_required():
    server = get_server_module()
    result = server.read_energy_counters("month", month=0)
    assert "error" in result


def test_check_channel_present():
    server = get_server_module()
    channel = FakeChannel([STATUS_OK])
    with patch.object(server, "_get_settings", return_value=_settings()), \
            patch.object(server, "SerialConnection", return_value=channel):
        result = server.check_channel()
    assert result == {"present": True, "status": "ok", "address": 0}


def test_check_channel_absent():
    server = get_server_module()
    channel = FakeChannel([])
    with patch.object(server, "_get_settings", return_value=_settings()), \
            patch.object(server, "SerialConnection", return_value=channel):
        result = server.check_channel()
    assert result["present"] is False
    assert result["kind"] == ChannelTimeout.__name__


def test_get_settings_hides_password():
    server = get_server_module()
    with patch.object(server, "_get_settings", return_value=_settings()):
        result = server.get_settings()
    assert result["port"] == "/dev/ttyTEST"
    assert "password" not in result


def test_analyze_prompt_mentions_tool():
    server = get_server_module()
    assert "read_meter" in server.analyze_consumption()


def test_read_energy_counters_corrupt_reply_sends_no_close():
    """A failed read ends the exchange; Close is not sent afterwards."""
    server = get_server_module()
    corrupted = bytearray(reply(ENERGY_PAYLOAD))
    corrupted[-1] ^= 0xFF
    channel = FakeChannel([STATUS_OK, STATUS_OK, bytes(corrupted), STATUS_OK])

    with patch.object(server, "_get_settings", return_value=_settings()), \
            patch.object(server, "SerialConnection", return_value=channel):
        result = server.read_energy_counters("today")

    assert result["kind"] == "WrongCrc"
    assert len(channel.written) == 3
    assert build_close() not in channel.written
    assert channel.closed is True


def test_read_energy_counters_month_rejected_for_other_periods():
    server = get_server_module()
    channel = FakeChannel([STATUS_OK, STATUS_OK])
    with patch.object(server, "_get_settings", return_value=_settings()), \
            patch.object(server, "SerialConnection", return_value=channel):
        result = server.read_energy_counters("reset", month=5)
    assert result["kind"] == "ValueError"
    assert channel.written == []


# ─── One-shot command line ───────────────────────────────────────────

def test_main_once_prints_report(capsys):
    server = get_server_module()
    readings = MeterReadings(voltage=PhaseVector(230.0, 231.0, 229.0), frequency=50.0)
    with patch.object(server, "_get_settings", return_value=_settings()), \
            patch.object(server, "collect_readings", return_value=readings):
        code = server.main(["--once"])

    out = capsys.readouterr().out
    assert code == 0
    assert out.startswith("U (V):     230.00   231.00   229.00")
    server.mcp.run.assert_not_called()


def test_main_once_absent_meter_prints_zero_report(capsys):
    """An absent meter is not a failure: the zero report is printed."""
    server = get_server_module()
    with patch.object(server, "_get_settings", return_value=_settings()), \
            patch.object(server, "collect_readings", return_value=MeterReadings.absent()):
        code = server.main(["--once"])

    out = capsys.readouterr().out
    assert code == 0
    assert "U (V):       0.00     0.00     0.00" in out


@pytest.mark.parametrize("failure", [
    MidSessionTimeout("No reply to read within 2.0s"),
    ConnectionError("Cannot open /dev/ttyTEST"),
])
def test_main_once_failure_exit_status(capsys, failure):
    server = get_server_module()
    with patch.object(server, "_get_settings", return_value=_settings()), \
            patch.object(server, "collect_readings", side_effect=failure):
        code = server.main(["--once"])

    captured = capsys.readouterr()
    assert code == 1
    assert captured.out == ""
    assert str(failure) in captured.err


def test_main_options_override_settings():
    server = get_server_module()
    with patch.object(server, "_get_settings", return_value=_settings()), \
            patch.object(server, "run_once", return_value=0) as run_once:
        assert server.main(["--once", "--debug", "--port", "/dev/ttyUSB7"]) == 0

    settings = run_once.call_args.args[0]
    assert settings.debug is True
    assert settings.port == "/dev/ttyUSB7"


def test_main_without_once_runs_server():
    server = get_server_module()
    with patch.object(server, "_get_settings", return_value=_settings()):
        assert server.main([]) == 0
    server.mcp.run.assert_called_once_with(transport="stdio")
