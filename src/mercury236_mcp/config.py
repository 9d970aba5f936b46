"""Configuration loaded from environment variables or a ``.env`` file."""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .protocol.commands import PASSWORD_SIZE


class MeterSettings(BaseSettings):
    """Serial link and meter access settings.

    Every field can be overridden with a ``MERCURY236_`` prefixed variable,
    e.g. ``MERCURY236_PORT=/dev/ttyUSB1``.
    """

    # Serial link
    port: str = "/dev/ttyUSB0"
    baudrate: int = 9600

    # Meter access
    address: int = Field(default=0, ge=0, le=255)
    access_level: int = Field(default=1, ge=0, le=255)
    password: str = "010101010101"  # hex, six bytes

    # Timing (seconds)
    channel_timeout: float = Field(default=2.0, gt=0)
    settle_delay: float = Field(default=0.05, ge=0)

    # Frame-level logging
    debug: bool = False

    model_config = SettingsConfigDict(
        env_prefix="MERCURY236_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @field_validator("password")
    @classmethod
    def _password_is_six_hex_bytes(cls, value: str) -> str:
        try:
            raw = bytes.fromhex(value)
        except ValueError as e:
            raise ValueError(f"Password must be hex encoded: {e}") from e
        if len(raw) != PASSWORD_SIZE:
            raise ValueError(
                f"Password must be {PASSWORD_SIZE} bytes, got {len(raw)}"
            )
        return value

    @property
    def password_bytes(self) -> bytes:
        return bytes.fromhex(self.password)
