from __future__ import annotations

import asyncio
import contextlib
from typing import List, Optional

from ..config import BridgeConfig
from ..errors import ObjectNotFoundError
from ..transport.protocols import MessageEvent, MessageSink, MessageSource
from ..utils.logging import get_logger
from .channel import Channel
from .messages import parse_message
from .registry import ObjectRegistry

logger = get_logger(__name__)


class ChannelManager:
    """Routes every inbound message of one execution context to its channels.

    ``global_registry`` is the fallback registry shared by all channels of
    this manager and lives as long as the manager does.
    """

    def __init__(
        self,
        source: Optional[MessageSource] = None,
        global_registry: Optional[ObjectRegistry] = None,
        config: Optional[BridgeConfig] = None,
    ) -> None:
        self.config = config or BridgeConfig()
        self.global_registry = global_registry if global_registry is not None else ObjectRegistry()
        self._source = source
        self._channels: List[Channel] = []
        self._task: Optional[asyncio.Task] = None

    @property
    def channels(self) -> List[Channel]:
        return list(self._channels)

    def add_channel(self, sink: MessageSink, target_origin: Optional[str] = None) -> Channel:
        channel = Channel(
            sink,
            target_origin,
            global_registry=self.global_registry,
            request_timeout_seconds=self.config.request_timeout_seconds,
        )
        self._channels.append(channel)
        return channel

    def remove_channel(self, channel: Channel) -> None:
        self._channels = [item for item in self._channels if item is not channel]
        channel.close("channel removed")

    def start(self) -> None:
        if self._source is None:
            raise RuntimeError("channel manager has no message source")
        if self._task and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self.run_forever())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def run_forever(self) -> None:
        if self._source is None:
            raise RuntimeError("channel manager has no message source")
        while True:
            try:
                event = await self._source.recv_event()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.error("message receive failed", exc_info=True)
                await asyncio.sleep(self.config.retry_interval_seconds)
                continue
            try:
                await self.handle_event(event)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.error("message handling failed", exc_info=True)

    async def handle_event(self, event: MessageEvent) -> bool:
        message = parse_message(event.data)
        if message is None:
            logger.debug("ignored non-protocol message from %s", event.origin)
            return False
        handled = False
        owner: Optional[Channel] = None
        for channel in list(self._channels):
            if channel.owns(event.source, event.origin, message):
                owner = channel
                try:
                    handled = channel.on_message(message) or handled
                except Exception:
                    logger.error("%r failed on message %s", channel, message.id, exc_info=True)
                    handled = True
        if owner is not None and not handled:
            logger.error("No handler found on any channel for message: %s", message.to_wire())
            if message.is_request:
                await owner.send_error(message, ObjectNotFoundError(message.instance_id))
        return handled
