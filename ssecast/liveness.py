# ssecast/liveness.py
"""Keyed storage of closable entities that drop out when they terminate."""

from __future__ import annotations

from collections.abc import Callable, Iterator, MutableMapping
from typing import Any, Generic, Protocol, TypeVar

from .signals import Signal


class Closable(Protocol):
    """Anything that announces its termination through a ``closed`` signal."""

    closed: Signal


K = TypeVar("K")
V = TypeVar("V", bound=Closable)


class LivenessMap(MutableMapping[K, V], Generic[K, V]):
    """
    Mapping whose entries remove themselves when their entity emits ``closed``.

    Every stored entity carries exactly one one-shot receiver bound to its key.
    The receiver is detached whenever the key is overwritten, deleted or
    cleared, so a terminated entity can never evict an entry that has since
    been replaced.
    """

    def __init__(self) -> None:
        self._entries: dict[K, V] = {}
        self._listeners: dict[K, Callable[..., Any]] = {}

    def set(self, key: K, entity: V) -> LivenessMap[K, V]:
        """Store ``entity`` under ``key``, rebinding the termination listener."""
        self._detach(key)

        def expire(*_args: Any) -> None:
            self.delete(key)

        entity.closed.connect(expire, once=True)
        self._listeners[key] = expire
        self._entries[key] = entity
        return self

    def delete(self, key: K, entity: V | None = None) -> bool:
        """Remove ``key``; returns whether a mapping existed."""
        self._detach(key, entity)
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        # Detach everything first so no listener fires against a cleared map
        for key, entity in list(self._entries.items()):
            self._detach(key, entity)
        self._entries.clear()

    def _detach(self, key: K, entity: V | None = None) -> None:
        listener = self._listeners.pop(key, None)
        target = entity if entity is not None else self._entries.get(key)
        if listener is not None and target is not None:
            target.closed.disconnect(listener)

    def __setitem__(self, key: K, entity: V) -> None:
        self.set(key, entity)

    def __delitem__(self, key: K) -> None:
        if not self.delete(key):
            raise KeyError(key)

    def __getitem__(self, key: K) -> V:
        return self._entries[key]

    def __iter__(self) -> Iterator[K]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._entries!r})"
