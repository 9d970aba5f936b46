"""Measurement result models."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PhaseVector:
    """Per-phase readings, with the all-phase sum when the meter reports one."""

    p1: float = 0.0
    p2: float = 0.0
    p3: float = 0.0
    total: float | None = None

    @classmethod
    def zero(cls, with_total: bool = False) -> PhaseVector:
        return cls(total=0.0 if with_total else None)

    def to_dict(self) -> dict:
        result = {"p1": self.p1, "p2": self.p2, "p3": self.p3}
        if self.total is not None:
            result["total"] = self.total
        return result


def _summed() -> PhaseVector:
    return PhaseVector.zero(with_total=True)


@dataclass(frozen=True)
class MeterReadings:
    """One complete polling cycle.

    ``meter_present`` is False when the meter did not answer the channel
    test; every value is then zero.
    """

    voltage: PhaseVector = field(default_factory=PhaseVector)
    current: PhaseVector = field(default_factory=PhaseVector)
    cos_phi: PhaseVector = field(default_factory=_summed)
    frequency: float = 0.0
    phase_angle: PhaseVector = field(default_factory=PhaseVector)
    active_power: PhaseVector = field(default_factory=_summed)
    reactive_power: PhaseVector = field(default_factory=_summed)
    energy_since_reset: PhaseVector = field(default_factory=_summed)
    energy_yesterday: PhaseVector = field(default_factory=_summed)
    energy_today: PhaseVector = field(default_factory=_summed)
    meter_present: bool = True

    @classmethod
    def absent(cls) -> MeterReadings:
        """All-zero readings reported when the meter does not answer."""
        return cls(meter_present=False)

    def to_dict(self) -> dict:
        """Convert readings to a JSON-serializable dictionary."""
        return {
            "meter_present": self.meter_present,
            "voltage": self.voltage.to_dict(),
            "current": self.current.to_dict(),
            "cos_phi": self.cos_phi.to_dict(),
            "frequency": self.frequency,
            "phase_angle": self.phase_angle.to_dict(),
            "active_power": self.active_power.to_dict(),
            "reactive_power": self.reactive_power.to_dict(),
            "energy": {
                "since_reset": self.energy_since_reset.to_dict(),
                "yesterday": self.energy_yesterday.to_dict(),
                "today": self.energy_today.to_dict(),
            },
        }


def _row(label: str, vector: PhaseVector) -> str:
    line = f"{label:<9}{vector.p1:8.2f} {vector.p2:8.2f} {vector.p3:8.2f}"
    if vector.total is not None:
        line += f" ({vector.total:8.2f})"
    return line


def format_report(readings: MeterReadings) -> str:
    """Render readings as the fixed-width text table."""
    lines = [
        _row("U (V):", readings.voltage),
        _row("I (A):", readings.current),
        _row("Cos(f):", readings.cos_phi),
        f"{'F (Hz):':<9}{readings.frequency:8.2f}",
        _row("A (deg):", readings.phase_angle),
        _row("P (W):", readings.active_power),
        _row("S (VA):", readings.reactive_power),
        _row("PR (KW):", readings.energy_since_reset),
        _row("PY (KW):", readings.energy_yesterday),
        _row("PT (KW):", readings.energy_today),
    ]
    return "\n".join(lines)
