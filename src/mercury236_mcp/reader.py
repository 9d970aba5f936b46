"""Collects a complete set of readings from the meter.

A cycle is: test channel, open channel, read every quantity in a fixed
order, close channel. The first failure aborts the cycle and propagates;
only silence on the channel test is absorbed, yielding all-zero readings.
"""

from __future__ import annotations

import logging

from .config import MeterSettings
from .errors import ChannelTimeout
from .models.readings import MeterReadings, PhaseVector
from .protocol.commands import (
    EnergyPeriod,
    Quantity,
    build_read_current_values,
    build_read_energy,
)
from .protocol.decoders import (
    SCALE_ANGLE,
    SCALE_COS_PHI,
    SCALE_CURRENT,
    SCALE_ENERGY,
    SCALE_FREQUENCY,
    SCALE_POWER,
    SCALE_VOLTAGE,
)
from .protocol.framing import ResponseLayout
from .transport.serial_connection import SerialConnection
from .transport.session import MeterSession

logger = logging.getLogger(__name__)

# (reading field, quantity, reply layout, scale), in polling order
INSTANT_READS = [
    ("voltage", Quantity.VOLTAGE, ResponseLayout.PHASE_TRIPLES, SCALE_VOLTAGE),
    ("current", Quantity.CURRENT, ResponseLayout.PHASE_TRIPLES, SCALE_CURRENT),
    ("cos_phi", Quantity.COS_PHI, ResponseLayout.PHASE_TRIPLES_WITH_SUM, SCALE_COS_PHI),
    ("frequency", Quantity.FREQUENCY, ResponseLayout.TRIPLE, SCALE_FREQUENCY),
    ("phase_angle", Quantity.PHASE_ANGLE, ResponseLayout.PHASE_TRIPLES, SCALE_ANGLE),
    ("active_power", Quantity.ACTIVE_POWER, ResponseLayout.PHASE_TRIPLES_WITH_SUM, SCALE_POWER),
    ("reactive_power", Quantity.REACTIVE_POWER, ResponseLayout.PHASE_TRIPLES_WITH_SUM, SCALE_POWER),
]

ENERGY_READS = [
    ("energy_since_reset", EnergyPeriod.RESET),
    ("energy_yesterday", EnergyPeriod.YESTERDAY),
    ("energy_today", EnergyPeriod.TODAY),
]


class MeterReader:
    """Runs polling cycles over a :class:`MeterSession`."""

    def __init__(self, session: MeterSession) -> None:
        self._session = session

    @property
    def session(self) -> MeterSession:
        return self._session

    def read_quantity(self, quantity: Quantity, layout: ResponseLayout, scale: float):
        """Read one instantaneous quantity from an open session."""
        request = build_read_current_values(quantity, self._session.address)
        return self._session.read_parameter(request, layout, scale)

    def read_energy(
        self, period: EnergyPeriod, month: int = 0, tariff: int = 0
    ) -> PhaseVector:
        """Read energy counters (kWh) for one period from an open session.

        Args:
            period: Accumulation period.
            month: Month number, used only with ``EnergyPeriod.MONTH``.
            tariff: 0 for all tariffs, otherwise the tariff number.
        """
        request = build_read_energy(period, month, tariff, self._session.address)
        return self._session.read_parameter(
            request, ResponseLayout.PHASE_QUADS_WITH_SUM, SCALE_ENERGY
        )

    def collect(self) -> MeterReadings:
        """Run one full polling cycle.

        Returns:
            The readings, or ``MeterReadings.absent()`` when the meter does
            not answer the channel test.

        Raises:
            MeterError: Any other failure, at the first step that fails.
        """
        try:
            self._session.verify_channel()
        except ChannelTimeout as e:
            logger.warning("Meter not responding, reporting zero readings: %s", e)
            return MeterReadings.absent()

        self._session.initialize()

        values = {}
        for name, quantity, layout, scale in INSTANT_READS:
            logger.debug("Reading %s", name)
            values[name] = self.read_quantity(quantity, layout, scale)
        for name, period in ENERGY_READS:
            logger.debug("Reading %s", name)
            values[name] = self.read_energy(period)

        self._session.close()
        return MeterReadings(**values)


def open_session(settings: MeterSettings, channel) -> MeterSession:
    """Create a session on ``channel`` configured from ``settings``."""
    return MeterSession(
        channel,
        address=settings.address,
        channel_timeout=settings.channel_timeout,
        settle_delay=settings.settle_delay,
        access_level=settings.access_level,
        password=settings.password_bytes,
        debug=settings.debug,
    )


def collect_readings(settings: MeterSettings) -> MeterReadings:
    """Open the serial port, run one polling cycle, and release the port.

    Raises:
        ConnectionError: If the serial port cannot be opened.
        MeterError: If the polling cycle fails.
    """
    logger.info("Collecting readings from meter %d on %s", settings.address, settings.port)
    with SerialConnection(settings.port, settings.baudrate) as channel:
        readings = MeterReader(open_session(settings, channel)).collect()
    logger.info("Collection finished (meter present: %s)", readings.meter_present)
    return readings
