from __future__ import annotations


class TurntalkError(Exception):
    """Base class for errors raised by the peer."""


class BindError(TurntalkError):
    """The listener could not be bound; the peer cannot serve its purpose."""

    def __init__(self, host: str, port: int, cause: OSError) -> None:
        self.host = host
        self.port = port
        self.cause = cause
        super().__init__(f"cannot listen on {host}:{port}: {cause}")


class ChannelClosed(TurntalkError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"channel {name!r} is closed")


class AddressError(TurntalkError, ValueError):
    pass


class ConfigError(TurntalkError, ValueError):
    pass
