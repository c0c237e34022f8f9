"""Turn-based peer-to-peer chat over a single TCP connection."""

from .channel import Channel
from .config import PeerConfig, load_config_from_env
from .connection import ConnectionActor, ConnectionHandle, PresentationHandle, create_connection_actor
from .errors import AddressError, BindError, ChannelClosed, ConfigError, TurntalkError
from .messages import (
    Connected,
    Dial,
    Disconnected,
    Log,
    SentenceReceived,
    SentenceSent,
    Submit,
    format_address,
    parse_address,
)
from .session import Role, TurnSession

__all__ = [
    "AddressError",
    "BindError",
    "Channel",
    "ChannelClosed",
    "ConfigError",
    "Connected",
    "ConnectionActor",
    "ConnectionHandle",
    "Dial",
    "Disconnected",
    "Log",
    "PeerConfig",
    "PresentationHandle",
    "Role",
    "SentenceReceived",
    "SentenceSent",
    "Submit",
    "TurnSession",
    "TurntalkError",
    "create_connection_actor",
    "format_address",
    "load_config_from_env",
    "parse_address",
]
