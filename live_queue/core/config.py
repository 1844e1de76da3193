import logging
from pathlib import Path

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3000
DEFAULT_BROADCAST_CAPACITY = 100
DEFAULT_KEEPALIVE_INTERVAL = 15.0


class Settings(BaseSettings):
    """
    Runtime configuration, read from the environment and an optional `.env` file.

    Numeric settings that cannot be parsed or are out of range fall back to
    their defaults, so a bad PORT never prevents the server from starting.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    port: int = DEFAULT_PORT
    host: str = "0.0.0.0"
    state_file: Path = Path("state.json")
    static_dir: Path = Path("static")
    broadcast_capacity: int = DEFAULT_BROADCAST_CAPACITY
    keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL
    log_level: str = "INFO"

    @field_validator("port", mode="before")
    @classmethod
    def port_or_default(cls, v, info: ValidationInfo) -> int:
        port = _number_or_default(int, v, DEFAULT_PORT, info.field_name)
        if not 0 <= port <= 65535:
            logger.warning(f"PORT {port} is out of range, using {DEFAULT_PORT}")
            return DEFAULT_PORT
        return port

    @field_validator("broadcast_capacity", mode="before")
    @classmethod
    def capacity_at_least_one(cls, v, info: ValidationInfo) -> int:
        return max(1, _number_or_default(int, v, DEFAULT_BROADCAST_CAPACITY, info.field_name))

    @field_validator("keepalive_interval", mode="before")
    @classmethod
    def positive_keepalive(cls, v, info: ValidationInfo) -> float:
        interval = _number_or_default(float, v, DEFAULT_KEEPALIVE_INTERVAL, info.field_name)
        return interval if interval > 0 else DEFAULT_KEEPALIVE_INTERVAL

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v) -> str:
        return str(v).upper()


def _number_or_default(kind, value, default, name: str):
    try:
        return kind(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unparseable {name.upper()}={value!r}, using {default}")
        return default
