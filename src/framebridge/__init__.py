"""Cross-context RPC over a text-only message transport."""

from .config import BridgeConfig, load_bridge_config
from .errors import (
    BridgeError,
    ChannelClosedError,
    MethodNotFoundError,
    ObjectNotFoundError,
    RemoteInvocationError,
    RequestTimeoutError,
    ResponseDecodeError,
)
from .rpc import Channel, ChannelManager, Deferred, Immediate, ObjectRegistry
from .serialization import SerializationSettings, deserialize, serialize

__all__ = [
    "BridgeConfig",
    "BridgeError",
    "Channel",
    "ChannelClosedError",
    "ChannelManager",
    "Deferred",
    "Immediate",
    "MethodNotFoundError",
    "ObjectNotFoundError",
    "ObjectRegistry",
    "RemoteInvocationError",
    "RequestTimeoutError",
    "ResponseDecodeError",
    "SerializationSettings",
    "deserialize",
    "load_bridge_config",
    "serialize",
]
