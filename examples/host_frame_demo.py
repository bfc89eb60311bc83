from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from framebridge import ChannelManager, load_bridge_config
from framebridge.transport import LocalContext
from framebridge.utils.logging import get_logger, set_log_level

logger = get_logger("framebridge.examples.host_frame_demo")


class WorkItemService:
    def __init__(self, context) -> None:
        self.project = (context or {}).get("project", "default")
        self.items = []

    def add(self, title, due):
        item = {"id": len(self.items) + 1, "title": title, "due": due, "project": self.project}
        self.items.append(item)
        return item

    async def each(self, callback):
        for item in self.items:
            await callback(item)
        return len(self.items)


async def main() -> None:
    config = load_bridge_config()
    set_log_level(config.log_level)

    host = LocalContext("https://host.example")
    frame = LocalContext("https://frame.example")
    host_manager = ChannelManager(host, config=config)
    frame_manager = ChannelManager(frame, config=config)

    # the host does not know the frame's origin and learns it from the first reply
    host_channel = host_manager.add_channel(host.port_to(frame))
    frame_channel = frame_manager.add_channel(frame.port_to(host), host.origin)
    frame_channel.get_object_registry().register("work-items", WorkItemService)

    host_manager.start()
    frame_manager.start()
    try:
        service = await host_channel.get_remote_object_proxy("work-items", {"project": "bridge"})
        logger.info("frame origin learned: %s", host_channel.target_origin)
        logger.info("service project: %s", service["project"])

        due = datetime(2026, 11, 2, 9, 0, tzinfo=timezone.utc)
        added = await service["add"]("write docs", due)
        logger.info("added %s due %s", added["title"], added["due"].isoformat())

        seen = []

        def collect(item):
            seen.append(item["title"])

        count = await service["each"](collect)
        logger.info("frame visited %d item(s): %s", count, ", ".join(seen))
    finally:
        await host_manager.stop()
        await frame_manager.stop()


if __name__ == "__main__":
    asyncio.run(main())
