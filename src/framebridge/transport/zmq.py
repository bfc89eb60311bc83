from __future__ import annotations

from typing import Any, Optional

from ..serialization import register_host_type
from .protocols import MessageEvent, MessageSink, MessageSource


class ZmqPort(MessageSink, MessageSource):
    """One counterpart over a PAIR socket; the port is the source of its events."""

    def __init__(self, endpoint: str, origin: str, *, bind: bool) -> None:
        self.origin = origin
        self._socket = _create_socket(endpoint, bind=bind, socket_type="PAIR")

    async def post_message(self, data: str, target_origin: str) -> None:
        await self._socket.send_json(
            {"data": data, "origin": self.origin, "targetOrigin": target_origin}
        )

    async def recv_event(self) -> MessageEvent:
        envelope = await self._socket.recv_json()
        return _event_from_envelope(self, envelope)

    async def try_recv_event(self) -> Optional[MessageEvent]:
        try:
            import zmq  # type: ignore
        except ImportError as exc:
            raise RuntimeError("pyzmq is required for the zmq transport") from exc
        try:
            envelope = await self._socket.recv_json(flags=zmq.NOBLOCK)
        except zmq.Again:
            return None
        return _event_from_envelope(self, envelope)

    def close(self) -> None:
        self._socket.close(linger=0)


def _event_from_envelope(port: ZmqPort, envelope: Any) -> MessageEvent:
    if not isinstance(envelope, dict):
        return MessageEvent(data=None, source=port, origin=None)
    return MessageEvent(
        data=envelope.get("data"),
        source=port,
        origin=envelope.get("origin"),
    )


def _create_socket(endpoint: str, *, bind: bool, socket_type: str):
    try:
        import zmq  # type: ignore
        import zmq.asyncio  # type: ignore
    except ImportError as exc:
        raise RuntimeError("pyzmq is required for the zmq transport") from exc
    context = zmq.asyncio.Context.instance()
    socket = context.socket(getattr(zmq, socket_type))
    if bind:
        socket.bind(endpoint)
    else:
        socket.connect(endpoint)
    return socket


register_host_type(ZmqPort)
