"""Data models for meter readings."""

from .readings import MeterReadings, PhaseVector, format_report
