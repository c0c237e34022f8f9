from __future__ import annotations

import os
from dataclasses import dataclass, replace

from .errors import ConfigError

DECODE_DISCONNECT = "disconnect"
DECODE_DROP = "drop"
DECODE_ERROR_POLICIES = (DECODE_DISCONNECT, DECODE_DROP)


@dataclass(frozen=True)
class PeerConfig:
    listen_host: str = "127.0.0.1"
    listen_port: int = 0
    delimiter: str = "."
    read_buffer_size: int = 1024
    command_capacity: int = 32
    notification_capacity: int = 8
    dial_timeout_s: float = 10.0
    decode_error_policy: str = DECODE_DISCONNECT
    max_log_lines: int = 500

    def __post_init__(self) -> None:
        if not 0 <= self.listen_port <= 65535:
            raise ConfigError("listen_port must be between 0 and 65535")
        if len(self.delimiter) != 1:
            raise ConfigError("delimiter must be exactly one character")
        for name in ("read_buffer_size", "command_capacity", "notification_capacity", "max_log_lines"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be positive")
        if self.dial_timeout_s <= 0:
            raise ConfigError("dial_timeout_s must be positive")
        if self.decode_error_policy not in DECODE_ERROR_POLICIES:
            raise ConfigError(f"decode_error_policy must be one of {', '.join(DECODE_ERROR_POLICIES)}")

    def with_overrides(self, **overrides: object) -> "PeerConfig":
        """Return a copy with every non-``None`` override applied."""

        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)


def _parse_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer") from exc


def _parse_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number") from exc


def _parse_str(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw


def load_config_from_env() -> PeerConfig:
    defaults = PeerConfig()
    return PeerConfig(
        listen_host=_parse_str("TURNTALK_LISTEN_HOST", defaults.listen_host),
        listen_port=_parse_int("TURNTALK_LISTEN_PORT", defaults.listen_port),
        delimiter=_parse_str("TURNTALK_DELIMITER", defaults.delimiter),
        read_buffer_size=_parse_int("TURNTALK_READ_BUFFER_SIZE", defaults.read_buffer_size),
        command_capacity=_parse_int("TURNTALK_COMMAND_CAPACITY", defaults.command_capacity),
        notification_capacity=_parse_int("TURNTALK_NOTIFICATION_CAPACITY", defaults.notification_capacity),
        dial_timeout_s=_parse_float("TURNTALK_DIAL_TIMEOUT_S", defaults.dial_timeout_s),
        decode_error_policy=_parse_str("TURNTALK_DECODE_ERROR_POLICY", defaults.decode_error_policy).lower(),
        max_log_lines=_parse_int("TURNTALK_MAX_LOG_LINES", defaults.max_log_lines),
    )
