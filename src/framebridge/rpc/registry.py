from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol, Union, runtime_checkable


@runtime_checkable
class RegistryEntry(Protocol):
    def resolve(self, context: Any) -> Any: ...


@dataclass(frozen=True)
class InstanceEntry(RegistryEntry):
    instance: Any

    def resolve(self, context: Any) -> Any:
        return self.instance


@dataclass(frozen=True)
class FactoryEntry(RegistryEntry):
    factory: Callable[[Any], Any]

    def resolve(self, context: Any) -> Any:
        return self.factory(context)


class ObjectRegistry:
    """Catalog of objects exposed to callers in a remote context.

    A registry lives as long as its owner: the channel for a per-channel
    registry, the channel manager (usually the whole process) for the global
    fallback registry.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, RegistryEntry] = {}

    def register(self, instance_id: str, instance: Union[Any, Callable[[Any], Any]]) -> None:
        """Bind ``instance_id``; callables are treated as factories taking context data."""
        if isinstance(instance, (InstanceEntry, FactoryEntry)):
            self._entries[instance_id] = instance
        elif callable(instance):
            self._entries[instance_id] = FactoryEntry(instance)
        else:
            self._entries[instance_id] = InstanceEntry(instance)

    def register_instance(self, instance_id: str, instance: Any) -> None:
        self._entries[instance_id] = InstanceEntry(instance)

    def unregister(self, instance_id: str) -> None:
        self._entries.pop(instance_id, None)

    def resolve(self, instance_id: str, context_data: Any = None) -> Optional[Any]:
        entry = self._entries.get(instance_id)
        if entry is None:
            return None
        return entry.resolve(context_data)

    def __contains__(self, instance_id: object) -> bool:
        return instance_id in self._entries
