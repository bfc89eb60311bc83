"""In-process transport: each context owns an inbox, ports post into it."""

from __future__ import annotations

import asyncio
from typing import Dict, Optional

from ..serialization import register_host_type
from .protocols import MessageEvent, MessageSink, MessageSource


class LocalContext(MessageSource):
    def __init__(self, origin: str) -> None:
        self.origin = origin
        self._inbox: asyncio.Queue[MessageEvent] = asyncio.Queue()
        self._ports: Dict[int, LocalPort] = {}

    def port_to(self, target: "LocalContext") -> "LocalPort":
        port = self._ports.get(id(target))
        if port is None:
            port = LocalPort(self, target)
            self._ports[id(target)] = port
        return port

    def deliver(self, event: MessageEvent) -> None:
        self._inbox.put_nowait(event)

    async def recv_event(self) -> MessageEvent:
        return await self._inbox.get()

    async def try_recv_event(self) -> Optional[MessageEvent]:
        try:
            return self._inbox.get_nowait()
        except asyncio.QueueEmpty:
            return None


class LocalPort(MessageSink):
    """Handle on ``target`` as seen from ``owner``."""

    def __init__(self, owner: LocalContext, target: LocalContext) -> None:
        self.owner = owner
        self.target = target

    async def post_message(self, data: str, target_origin: str) -> None:
        if target_origin != "*" and not _origin_matches(self.target.origin, target_origin):
            return
        self.target.deliver(
            MessageEvent(
                data=data,
                source=self.target.port_to(self.owner),
                origin=self.owner.origin,
            )
        )


def _origin_matches(actual: str, expected: str) -> bool:
    return actual.lower() == expected.lower()


register_host_type(LocalContext)
register_host_type(LocalPort)
