from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class MessageEvent:
    data: Any
    source: Any
    origin: Optional[str]


@runtime_checkable
class MessageSink(Protocol):
    async def post_message(self, data: str, target_origin: str) -> None: ...


@runtime_checkable
class MessageSource(Protocol):
    async def recv_event(self) -> MessageEvent: ...

    async def try_recv_event(self) -> Optional[MessageEvent]: ...
