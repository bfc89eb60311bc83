"""Transports carrying text payloads between execution contexts."""

from .local import LocalContext, LocalPort
from .protocols import MessageEvent, MessageSink, MessageSource
from .zmq import ZmqPort

__all__ = [
    "LocalContext",
    "LocalPort",
    "MessageEvent",
    "MessageSink",
    "MessageSource",
    "ZmqPort",
]
