"""MCP server entry point for the Mercury 236 power meter.

Exposes meter polling as tools, the last reading as a resource, and an
analysis prompt via the Model Context Protocol over stdio.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import MeterSettings
from .errors import MeterError
from .models.readings import MeterReadings, format_report
from .protocol.commands import EnergyPeriod
from .reader import MeterReader, collect_readings, open_session
from .transport.serial_connection import SerialConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "mercury236",
    instructions="Polls a Mercury 236 three-phase power meter over RS-485.",
)

# Global state
_settings: MeterSettings | None = None
_latest: MeterReadings | None = None
_bus_lock = threading.Lock()


def _get_settings() -> MeterSettings:
    """Load settings from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = MeterSettings()
    return _settings


def _error(e: Exception) -> dict[str, Any]:
    return {"error": str(e), "kind": type(e).__name__}


# ─── METER TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
def read_meter() -> dict[str, Any]:
    """Poll the meter for a complete set of readings.

    Reads voltage, current, cos(f), frequency, phase angles, active and
    reactive power, and energy counters (since reset, yesterday, today).
    If the meter does not answer at all, all values are zero and
    ``meter_present`` is false.
    """
    global _latest
    settings = _get_settings()
    try:
        with _bus_lock:
            readings = collect_readings(settings)
    except (MeterError, ConnectionError) as e:
        logger.error("Meter polling failed: %s", e)
        return _error(e)

    _latest = readings
    result = readings.to_dict()
    result["report"] = format_report(readings)
    return result


@mcp.tool()
def read_energy_counters(
    period: str = "reset", month: int = 0, tariff: int = 0
) -> dict[str, Any]:
    """Read energy counters (kWh) for one accumulation period.

    Args:
        period: One of reset, year_to_date, last_year, month, today, yesterday.
        month: Month number 1-12 when period is "month".
        tariff: 0 for all tariffs, otherwise the tariff number.
    """
    try:
        energy_period = EnergyPeriod[period.upper()]
    except KeyError:
        valid = [p.name.lower() for p in EnergyPeriod]
        return {"error": f"Unknown period '{period}'. Valid: {valid}", "kind": "ValueError"}
    if energy_period is EnergyPeriod.MONTH and not 1 <= month <= 12:
        return {"error": "Month must be 1-12", "kind": "ValueError"}
    if energy_period is not EnergyPeriod.MONTH and month != 0:
        return {"error": "Month applies only to the month period", "kind": "ValueError"}

    settings = _get_settings()
    try:
        with _bus_lock, SerialConnection(settings.port, settings.baudrate) as channel:
            with open_session(settings, channel) as session:
                session.verify_channel()
                session.initialize()
                counters = MeterReader(session).read_energy(energy_period, month, tariff)
    except (MeterError, ConnectionError, ValueError) as e:
        logger.error("Energy counter read failed: %s", e)
        return _error(e)

    return {
        "period": energy_period.name.lower(),
        "month": month,
        "tariff": tariff,
        "energy_kwh": counters.to_dict(),
    }


@mcp.tool()
def check_channel() -> dict[str, Any]:
    """Check whether the meter answers on the configured port and address."""
    settings = _get_settings()
    try:
        with _bus_lock, SerialConnection(settings.port, settings.baudrate) as channel:
            status = open_session(settings, channel).verify_channel()
    except (MeterError, ConnectionError) as e:
        result = _error(e)
        result["present"] = False
        return result

    return {"present": True, "status": status.name.lower(), "address": settings.address}


@mcp.tool()
def get_settings() -> dict[str, Any]:
    """Show the serial and meter settings in effect (password hidden)."""
    return _get_settings().model_dump(exclude={"password"})


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("mercury236://readings/latest")
def resource_latest_readings() -> str:
    """The most recent successful polling cycle."""
    if _latest is None:
        return json.dumps({"readings": None})
    return json.dumps({"readings": _latest.to_dict()})


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def analyze_consumption() -> str:
    """Guide the AI through an analysis of the current grid and load state."""
    return """Poll the meter using the read_meter tool and analyze the result.
Consider:
- Voltage balance across phases (nominal 230 V, +/-10%)
- Current distribution and phase load imbalance
- Power factor per phase and overall
- Grid frequency deviation from 50 Hz
- Active versus reactive power share
- Today's consumption compared with yesterday's

If meter_present is false, report that the meter did not answer and stop."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def run_once(settings: MeterSettings) -> int:
    """Poll the meter once and print the report table.

    Returns 0 when a report was printed (an absent meter prints zeros),
    1 when polling failed.
    """
    try:
        readings = collect_readings(settings)
    except (MeterError, ConnectionError) as e:
        print(f"Meter polling failed: {e}", file=sys.stderr)
        return 1
    print(format_report(readings))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the MCP server with stdio transport, or poll once with --once."""
    global _settings
    parser = argparse.ArgumentParser(
        prog="mercury236-mcp",
        description="Mercury 236 power meter over RS-485.",
    )
    parser.add_argument(
        "--once", action="store_true",
        help="poll the meter, print the report and exit",
    )
    parser.add_argument("--port", help="serial device, e.g. /dev/ttyUSB0")
    parser.add_argument(
        "--debug", action="store_true", help="log every frame sent and received"
    )
    args = parser.parse_args(argv)

    settings = _get_settings()
    overrides: dict[str, Any] = {}
    if args.port:
        overrides["port"] = args.port
    if args.debug:
        overrides["debug"] = True
    if overrides:
        settings = settings.model_copy(update=overrides)
        _settings = settings

    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
    if args.once:
        return run_once(settings)
    mcp.run(transport="stdio")
    return 0


if __name__ == "__main__":
    sys.exit(main())
