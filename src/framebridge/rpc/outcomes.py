from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Union


@dataclass(frozen=True)
class Immediate:
    value: Any


@dataclass(frozen=True)
class Deferred:
    awaitable: Awaitable[Any]

    async def wait(self) -> Any:
        return await self.awaitable


Outcome = Union[Immediate, Deferred]


def as_outcome(value: Any) -> Outcome:
    """Classify a method or factory result; explicit outcomes pass through."""
    if isinstance(value, (Immediate, Deferred)):
        return value
    if inspect.isawaitable(value):
        return Deferred(value)
    return Immediate(value)
