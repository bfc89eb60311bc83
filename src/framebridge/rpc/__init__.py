"""Channels, channel manager and object registry."""

from .channel import PROXY_FUNCTIONS_INSTANCE_ID, Channel, ProxyFunction
from .manager import ChannelManager
from .messages import RpcMessage, parse_message
from .outcomes import Deferred, Immediate, Outcome, as_outcome
from .registry import FactoryEntry, InstanceEntry, ObjectRegistry

__all__ = [
    "PROXY_FUNCTIONS_INSTANCE_ID",
    "Channel",
    "ChannelManager",
    "Deferred",
    "FactoryEntry",
    "Immediate",
    "InstanceEntry",
    "ObjectRegistry",
    "Outcome",
    "ProxyFunction",
    "RpcMessage",
    "as_outcome",
    "parse_message",
]
