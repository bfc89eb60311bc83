"""Object-graph serializer for the cross-context wire format.

Values are turned into a JSON-safe mirror tree before they are posted and
rebuilt on the receiving side. Three kinds of values get synthetic markers:

* callables become ``{"__proxyFunctionId": n, "_channelId": c}`` and are
  registered on the owning channel so the far side can call back into them,
* dates become ``{"__proxyDate": <epoch milliseconds>}``,
* an ancestor met again further down the current path is tagged with
  ``__circularReferenceId`` and the repeat is replaced by
  ``{"__circularReference": id}``.

Cycle detection only looks at the ancestors of the node being written, so a
sub-object shared by two sibling branches is written twice.
"""

from __future__ import annotations

import asyncio
import dataclasses
import enum
import io
import math
import operator
import socket
import threading
import traceback
import types
from datetime import date, datetime, timedelta, timezone
from functools import partial
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

from pydantic import BaseModel

from .settings import SerializationSettings

MAX_DEPTH = 100

CIRCULAR_REFERENCE_ID_KEY = "__circularReferenceId"
CIRCULAR_REFERENCE_KEY = "__circularReference"
PROXY_FUNCTION_ID_KEY = "__proxyFunctionId"
PROXY_CHANNEL_ID_KEY = "_channelId"
PROXY_DATE_KEY = "__proxyDate"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MILLISECOND = timedelta(milliseconds=1)


class _Absent:
    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Any = _Absent()

_host_only_types: List[type] = [
    types.ModuleType,
    types.FrameType,
    types.TracebackType,
    types.CoroutineType,
    types.GeneratorType,
    types.AsyncGeneratorType,
    io.IOBase,
    socket.socket,
    threading.Thread,
    asyncio.Future,
    asyncio.AbstractEventLoop,
]


def register_host_type(cls: type) -> None:
    """Mark ``cls`` as bound to this context; its instances serialize to absent."""
    if cls not in _host_only_types:
        _host_only_types.append(cls)


class ProxyFunctionHost(Protocol):
    @property
    def channel_id(self) -> int: ...

    def register_proxy_function(self, func: Callable[..., Any]) -> int: ...

    def create_proxy_function(
        self, proxy_function_id: int, channel_id: Optional[int]
    ) -> Callable[..., Any]: ...


def serialize(
    value: Any,
    host: Optional[ProxyFunctionHost] = None,
    settings: Optional[SerializationSettings] = None,
    depth: int = 1,
) -> Any:
    """Convert ``value`` into a JSON-safe tree.

    Never raises. Unreadable members, host-bound objects and anything nested
    deeper than :data:`MAX_DEPTH` are dropped; the returned value is
    :data:`ABSENT` when ``value`` itself is dropped. Callables are only
    representable when a ``host`` is given.
    """
    return _SerializationPass(host, settings).serialize(value, depth)


def deserialize(tree: Any, host: Optional[ProxyFunctionHost] = None) -> Any:
    """Build a fresh value tree from a wire tree produced by :func:`serialize`."""
    return _deserialize_node(tree, host, {})


class _SerializationPass:
    def __init__(
        self,
        host: Optional[ProxyFunctionHost],
        settings: Optional[SerializationSettings],
    ) -> None:
        self._host = host
        self._include_underscore = bool(
            settings is not None and settings.include_underscore_properties
        )
        self._originals: List[Any] = []
        self._copies: List[Any] = []
        self._next_circular_id = 1

    def serialize(self, value: Any, depth: int) -> Any:
        if value is None or isinstance(value, (bool, int, str)):
            return value
        if isinstance(value, float):
            return value if math.isfinite(value) else None
        if isinstance(value, enum.Enum):
            return self.serialize(value.value, depth)
        if isinstance(value, (datetime, date)):
            try:
                return {PROXY_DATE_KEY: _epoch_millis(value)}
            except (OverflowError, ValueError):
                return ABSENT
        if isinstance(value, tuple(_host_only_types)):
            return ABSENT
        if callable(value):
            return self._proxy_function(value)
        if depth > MAX_DEPTH:
            return ABSENT
        if isinstance(value, (list, tuple, set, frozenset, bytes, bytearray)):
            return self._serialize_sequence(value, depth)
        return self._serialize_object(value, depth)

    def _proxy_function(self, func: Callable[..., Any]) -> Any:
        if self._host is None:
            return ABSENT
        return {
            PROXY_FUNCTION_ID_KEY: self._host.register_proxy_function(func),
            PROXY_CHANNEL_ID_KEY: self._host.channel_id,
        }

    def _serialize_sequence(self, value: Any, depth: int) -> List[Any]:
        copy: List[Any] = []
        self._push(value, copy)
        try:
            for item in value:
                serialized = self._serialize_member(item, depth)
                copy.append(None if serialized is ABSENT else serialized)
        finally:
            self._pop()
        return copy

    def _serialize_object(self, value: Any, depth: int) -> Dict[str, Any]:
        copy: Dict[str, Any] = {}
        self._push(value, copy)
        try:
            try:
                members = _members(value)
            except Exception:
                members = []
            for name, read in members:
                if name.startswith("_") and not self._include_underscore:
                    continue
                try:
                    item = read()
                except Exception:
                    continue
                if name == PROXY_FUNCTION_ID_KEY and _is_primitive(item):
                    continue
                serialized = self._serialize_member(item, depth)
                if serialized is not ABSENT:
                    copy[name] = serialized
        finally:
            self._pop()
        return copy

    def _serialize_member(self, item: Any, depth: int) -> Any:
        if not _is_primitive(item):
            for index, ancestor in enumerate(self._originals):
                if ancestor is item:
                    return self._back_reference(index)
        return self.serialize(item, depth + 1)

    def _back_reference(self, index: int) -> Any:
        ancestor_copy = self._copies[index]
        if not isinstance(ancestor_copy, dict):
            # lists have nowhere to carry the tag on the wire
            return ABSENT
        reference_id = ancestor_copy.get(CIRCULAR_REFERENCE_ID_KEY)
        if reference_id is None:
            reference_id = self._next_circular_id
            self._next_circular_id += 1
            ancestor_copy[CIRCULAR_REFERENCE_ID_KEY] = reference_id
        return {CIRCULAR_REFERENCE_KEY: reference_id}

    def _push(self, original: Any, copy: Any) -> None:
        self._originals.append(original)
        self._copies.append(copy)

    def _pop(self) -> None:
        self._originals.pop()
        self._copies.pop()


def _is_primitive(value: Any) -> bool:
    return value is None or isinstance(value, (bool, int, float, str))


def _members(value: Any) -> List[Tuple[str, Callable[[], Any]]]:
    if isinstance(value, Mapping):
        return [
            (str(key), partial(operator.getitem, value, key))
            for key in list(value.keys())
        ]
    if isinstance(value, BaseException):
        members: List[Tuple[str, Callable[[], Any]]] = [
            ("name", partial(_exception_name, value)),
            ("message", partial(str, value)),
            ("stack", partial(_exception_stack, value)),
        ]
        for name in getattr(value, "__dict__", {}):
            members.append((name, partial(getattr, value, name)))
        return members
    return [(name, partial(getattr, value, name)) for name in _field_names(value)]


def _field_names(value: Any) -> List[str]:
    cls = type(value)
    declared = getattr(cls, "__rpc_fields__", None)
    if declared is not None:
        return list(declared)
    if isinstance(value, BaseModel):
        return list(cls.model_fields)
    if dataclasses.is_dataclass(value):
        return [field.name for field in dataclasses.fields(value)]
    names: Dict[str, None] = {}
    for name in getattr(value, "__dict__", {}):
        names[name] = None
    for klass in cls.__mro__:
        if klass.__module__ == "builtins":
            continue
        for name in vars(klass):
            names.setdefault(name, None)
    return [name for name in names if not _is_dunder(name)]


def _is_dunder(name: str) -> bool:
    return name.startswith("__") and name.endswith("__")


def _exception_name(error: BaseException) -> str:
    return type(error).__name__


def _exception_stack(error: BaseException) -> str:
    return "".join(
        traceback.format_exception(type(error), error, error.__traceback__)
    )


def _epoch_millis(value: date) -> int:
    if isinstance(value, datetime):
        moment = value.astimezone(timezone.utc)
    else:
        moment = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return (moment - _EPOCH) // _ONE_MILLISECOND


def _deserialize_node(
    node: Any, host: Optional[ProxyFunctionHost], references: Dict[int, Any]
) -> Any:
    if isinstance(node, list):
        return [_deserialize_node(item, host, references) for item in node]
    if not isinstance(node, dict):
        return node
    proxy_function_id = node.get(PROXY_FUNCTION_ID_KEY)
    if proxy_function_id and host is not None:
        return host.create_proxy_function(
            proxy_function_id, node.get(PROXY_CHANNEL_ID_KEY)
        )
    proxy_date = node.get(PROXY_DATE_KEY)
    if isinstance(proxy_date, (int, float)) and not isinstance(proxy_date, bool):
        try:
            return _EPOCH + timedelta(milliseconds=proxy_date)
        except (OverflowError, ValueError):
            return None
    if CIRCULAR_REFERENCE_KEY in node:
        return references.get(node[CIRCULAR_REFERENCE_KEY])
    result: Dict[str, Any] = {}
    reference_id = node.get(CIRCULAR_REFERENCE_ID_KEY)
    if isinstance(reference_id, int) and not isinstance(reference_id, bool):
        references[reference_id] = result
    for key, item in node.items():
        if key == CIRCULAR_REFERENCE_ID_KEY and reference_id is not None:
            continue
        result[key] = _deserialize_node(item, host, references)
    return result
