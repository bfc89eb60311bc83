"""Wire serialization for values crossing a channel."""

from .serializer import (
    ABSENT,
    MAX_DEPTH,
    ProxyFunctionHost,
    deserialize,
    register_host_type,
    serialize,
)
from .settings import SerializationSettings

__all__ = [
    "ABSENT",
    "MAX_DEPTH",
    "ProxyFunctionHost",
    "SerializationSettings",
    "deserialize",
    "register_host_type",
    "serialize",
]
