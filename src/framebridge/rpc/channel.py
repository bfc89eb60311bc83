from __future__ import annotations

import asyncio
import itertools
import secrets
from typing import Any, Callable, Coroutine, Dict, List, Mapping, Optional, Set

from ..errors import (
    ChannelClosedError,
    MethodNotFoundError,
    RemoteInvocationError,
    RequestTimeoutError,
    ResponseDecodeError,
)
from ..serialization import ABSENT, SerializationSettings, deserialize, serialize
from ..transport.protocols import MessageSink
from ..utils.logging import get_logger
from .messages import RpcMessage
from .outcomes import Deferred, as_outcome
from .registry import ObjectRegistry

logger = get_logger(__name__)

PROXY_FUNCTIONS_INSTANCE_ID = "__proxyFunctions"

_channel_ids = itertools.count(1)
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
_FINGERPRINT_MIN = int("10000000000", 36)
_FINGERPRINT_MAX = 2**53 - 1


def new_handshake_token() -> str:
    """Random 22-character base-36 fingerprint."""
    return _random_base36() + _random_base36()


def _random_base36() -> str:
    value = _FINGERPRINT_MIN + secrets.randbelow(_FINGERPRINT_MAX - _FINGERPRINT_MIN)
    digits: List[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


class ProxyFunction:
    """Stand-in for a function living in the remote context.

    Awaiting a call performs a new remote invocation of the original function.
    """

    def __init__(self, channel: "Channel", proxy_function_id: int, channel_id: Optional[int]) -> None:
        self.proxy_function_id = proxy_function_id
        self.channel_id = channel_id
        self._channel = channel

    async def __call__(self, *args: Any) -> Any:
        return await self._channel.invoke_remote_method(
            f"proxy{self.proxy_function_id}",
            PROXY_FUNCTIONS_INSTANCE_ID,
            list(args),
            {},
            SerializationSettings(include_underscore_properties=True),
        )

    def __repr__(self) -> str:
        return f"<ProxyFunction proxy{self.proxy_function_id} channel={self.channel_id}>"


class Channel:
    """One conversation with the context behind ``sink``.

    When ``target_origin`` is unknown the channel generates a handshake token
    and sends it with every request. The first inbound message from ``sink``
    that echoes the token fixes the sender's origin as the target origin;
    from then on ownership is decided by origin alone.
    """

    def __init__(
        self,
        sink: MessageSink,
        target_origin: Optional[str] = None,
        global_registry: Optional[ObjectRegistry] = None,
        request_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._sink = sink
        self._target_origin = target_origin or None
        self._handshake_token = None if self._target_origin else new_handshake_token()
        self._registry = ObjectRegistry()
        self._global_registry = global_registry
        self._request_timeout_seconds = request_timeout_seconds
        self._channel_id = next(_channel_ids)
        self._message_ids = itertools.count(1)
        self._proxy_ids = itertools.count(1)
        self._proxy_functions: Dict[str, Callable[..., Any]] = {}
        self._pending: Dict[int, asyncio.Future] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def channel_id(self) -> int:
        return self._channel_id

    @property
    def target_origin(self) -> Optional[str]:
        return self._target_origin

    @property
    def handshake_token(self) -> Optional[str]:
        return self._handshake_token

    @property
    def closed(self) -> bool:
        return self._closed

    def get_object_registry(self) -> ObjectRegistry:
        """Registry consulted before the global one for requests on this channel."""
        return self._registry

    async def invoke_remote_method(
        self,
        method_name: Optional[str],
        instance_id: str,
        params: Optional[List[Any]] = None,
        instance_context: Any = None,
        serialization_settings: Optional[SerializationSettings] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Invoke ``method_name`` on the object registered remotely as ``instance_id``.

        An empty ``method_name`` asks for the registered object itself. Waits
        for the correlated response; raises :class:`RemoteInvocationError` when
        the remote side answers with an error.
        """
        if self._closed:
            raise ChannelClosedError(f"channel {self._channel_id} is closed")
        message = RpcMessage(
            id=next(self._message_ids),
            method_name=method_name,
            instance_id=instance_id,
            instance_context=self._serialize(instance_context, serialization_settings),
            params=self._serialize(params, serialization_settings),
            serialization_settings=serialization_settings,
        )
        if self._target_origin is None:
            message.handshake_token = self._handshake_token
        future = asyncio.get_running_loop().create_future()
        self._pending[message.id] = future
        try:
            await self._post(message)
            wait_seconds = timeout if timeout is not None else self._request_timeout_seconds
            if wait_seconds is None:
                return await future
            try:
                return await asyncio.wait_for(future, wait_seconds)
            except asyncio.TimeoutError as exc:
                raise RequestTimeoutError(
                    f"no response to request {message.id} within {wait_seconds} seconds"
                ) from exc
        finally:
            self._pending.pop(message.id, None)

    async def get_remote_object_proxy(self, instance_id: str, context_data: Any = None) -> Any:
        return await self.invoke_remote_method("", instance_id, None, context_data)

    def get_registered_object(self, instance_id: str, instance_context: Any = None) -> Any:
        if instance_id == PROXY_FUNCTIONS_INSTANCE_ID:
            return self._proxy_functions
        instance = self._registry.resolve(instance_id, instance_context)
        if instance is None and self._global_registry is not None:
            instance = self._global_registry.resolve(instance_id, instance_context)
        return instance

    def on_message(self, message: RpcMessage) -> bool:
        """Handle a message this channel owns; ``False`` when nothing here applies."""
        if message.is_request:
            try:
                instance = self.get_registered_object(
                    message.instance_id, self._deserialize(message.instance_context)
                )
            except Exception as exc:
                logger.debug("resolving %s failed", message.instance_id, exc_info=True)
                self._spawn(self.send_error(message, exc))
                return True
            if instance is None:
                return False
            self._spawn(self._dispatch(instance, message))
            return True

        if message.id is None:
            return False
        future = self._pending.get(message.id)
        if future is None:
            return False
        failed = _is_truthy(message.error)
        error: Optional[BaseException] = None
        payload = None
        try:
            payload = self._deserialize(message.error if failed else message.result)
        except Exception as exc:
            logger.error("response %s could not be decoded", message.id, exc_info=True)
            error = ResponseDecodeError(message.id)
            error.__cause__ = exc
        else:
            if failed:
                error = RemoteInvocationError(payload)
        self._pending.pop(message.id, None)
        if not future.done():
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(payload)
        return True

    async def invoke_method(self, instance: Any, message: RpcMessage) -> None:
        method_name = message.method_name
        if not method_name:
            await self._send_success(message, instance)
            return
        method = _find_method(instance, method_name)
        if method is None:
            await self.send_error(message, MethodNotFoundError(method_name))
            return
        try:
            args = self._deserialize(message.params) if message.params is not None else []
            if not isinstance(args, list):
                args = [args]
            outcome = as_outcome(method(*args))
            if isinstance(outcome, Deferred):
                result = await outcome.wait()
            else:
                result = outcome.value
        except Exception as exc:
            logger.debug("%s.%s failed", message.instance_id, method_name, exc_info=True)
            await self.send_error(message, exc)
            return
        await self._send_success(message, result)

    def owns(self, source: Any, origin: Optional[str], message: RpcMessage) -> bool:
        """Whether an inbound message from ``source``/``origin`` belongs here.

        ``"null"`` is the origin reported for sandboxed frames and is accepted
        once the target origin is known.
        """
        if source is not self._sink:
            return False
        if self._target_origin is not None:
            if (
                self._handshake_token is not None
                and message.handshake_token is not None
                and message.handshake_token != self._handshake_token
            ):
                return False
            if not origin:
                return False
            inbound = origin.lower()
            return inbound == "null" or self._target_origin.lower().startswith(inbound)
        if message.handshake_token and message.handshake_token == self._handshake_token:
            self._target_origin = origin or None
            return True
        return False

    async def send_error(self, message: RpcMessage, error: Any) -> None:
        payload = self._serialize([error], message.serialization_settings)[0]
        if payload is None:
            payload = {"name": "Error", "message": str(error)}
        await self._post_response(
            RpcMessage(id=message.id, error=payload, handshake_token=message.handshake_token)
        )

    def register_proxy_function(self, func: Callable[..., Any]) -> int:
        proxy_function_id = next(self._proxy_ids)
        self._proxy_functions[f"proxy{proxy_function_id}"] = func
        return proxy_function_id

    def create_proxy_function(self, proxy_function_id: int, channel_id: Optional[int]) -> ProxyFunction:
        return ProxyFunction(self, proxy_function_id, channel_id)

    def close(self, reason: str = "channel closed") -> None:
        """Reject every in-flight request and refuse new ones."""
        if self._closed:
            return
        self._closed = True
        pending = list(self._pending.values())
        self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(ChannelClosedError(reason))

    async def _dispatch(self, instance: Any, message: RpcMessage) -> None:
        outcome = as_outcome(instance)
        if isinstance(outcome, Deferred):
            try:
                instance = await outcome.wait()
            except Exception as exc:
                await self.send_error(message, exc)
                return
        else:
            instance = outcome.value
        await self.invoke_method(instance, message)

    async def _send_success(self, message: RpcMessage, result: Any) -> None:
        try:
            payload = self._serialize([result], message.serialization_settings)[0]
        except Exception as exc:
            logger.error("result of request %s could not be serialized", message.id, exc_info=True)
            await self.send_error(message, exc)
            return
        await self._post_response(
            RpcMessage(id=message.id, result=payload, handshake_token=message.handshake_token)
        )

    async def _post_response(self, message: RpcMessage) -> None:
        try:
            await self._post(message)
        except Exception:
            logger.error("response send failed: %s", message.id, exc_info=True)

    async def _post(self, message: RpcMessage) -> None:
        await self._sink.post_message(message.to_wire(), "*")

    def _serialize(self, value: Any, settings: Optional[SerializationSettings]) -> Any:
        result = serialize(value, self, settings)
        return None if result is ABSENT else result

    def _deserialize(self, tree: Any) -> Any:
        return deserialize(tree, self)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def __repr__(self) -> str:
        return f"<Channel {self._channel_id} origin={self._target_origin!r}>"


def _find_method(instance: Any, method_name: str) -> Optional[Callable[..., Any]]:
    if method_name.startswith("__"):
        return None
    try:
        if isinstance(instance, Mapping):
            method = instance.get(method_name)
        else:
            method = getattr(instance, method_name, None)
    except Exception:
        return None
    return method if callable(method) else None


def _is_truthy(value: Any) -> bool:
    # Falsy error payloads from a JavaScript peer (0, "", false) mean success.
    if value is None or isinstance(value, (bool, int, float, str)):
        return bool(value)
    return True
