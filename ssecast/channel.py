# ssecast/channel.py
"""Broadcast channel with bounded history and Last-Event-ID replay."""

from __future__ import annotations

import asyncio
import logging
import re
from collections import deque
from typing import TYPE_CHECKING

from .signals import Signal

if TYPE_CHECKING:
    from .connection import Connection
    from .events import Event

logger = logging.getLogger("ssecast")

DEFAULT_HISTORY_SIZE = 500

# `id:` field line inside a pre-formatted frame
ID_FIELD = re.compile(r"^id:\s*(\S+)$", re.MULTILINE)


class Channel:
    """
    Fans every event out to all member connections.

    Events carrying an id are retained (up to ``history_size``, oldest evicted
    first) so a client reconnecting with ``Last-Event-ID`` receives whatever it
    missed before it starts receiving live events. Retaining an id that is
    already in the window moves it to the newest slot.

    When the last member leaves and ``empty_timeout`` (ms) is set, ``closed``
    is emitted after that delay unless a new member joins first. Owners use it
    to drop idle channels.
    """

    def __init__(
        self,
        name: str = "default",
        *,
        history_size: int = DEFAULT_HISTORY_SIZE,
        empty_timeout: float = 0,
    ) -> None:
        self.name = name
        self.history_size = history_size
        self.empty_timeout = empty_timeout
        self.closed = Signal()
        self._connections: set[Connection] = set()
        self._history_ids: deque[str] = deque()
        self._history: dict[str, str] = {}
        self._empty_handle: asyncio.TimerHandle | None = None

    @property
    def history_enabled(self) -> bool:
        return self.history_size > 0

    @property
    def history(self) -> list[tuple[str, str]]:
        """Retained ``(id, payload)`` pairs, oldest first."""
        return [(event_id, self._history[event_id]) for event_id in self._history_ids]

    @property
    def connections(self) -> tuple[Connection, ...]:
        return tuple(self._connections)

    def count(self) -> int:
        return len(self._connections)

    def add(self, connection: Connection) -> Channel:
        """Replay missed history to ``connection``, then make it a live member."""
        if connection.terminated:
            logger.debug(f"Channel '{self.name}': ignoring terminated client {connection.client_id}")
            return self
        self._cancel_empty_timer()
        if connection.last_event_id:
            self._replay(connection, connection.last_event_id)
        self._connections.add(connection)
        connection.closed.connect(self._on_connection_closed, once=True)
        return self

    def remove(self, connection: Connection) -> bool:
        connection.closed.disconnect(self._on_connection_closed)
        if connection not in self._connections:
            return False
        self._connections.discard(connection)
        self.watch_idle()
        return True

    def watch_idle(self) -> None:
        """Arm the idle signal if the channel has no members and an empty timeout is set."""
        if self._connections or self.empty_timeout <= 0:
            return
        self._cancel_empty_timer()
        loop = asyncio.get_running_loop()
        self._empty_handle = loop.call_later(self.empty_timeout / 1000, self._on_empty_timeout)
        logger.debug(f"Channel '{self.name}' empty, idle signal in {self.empty_timeout:.0f}ms")

    def send(self, event: Event) -> Channel:
        """Serialize ``event``, retain it if it has an id, and write it to every member."""
        payload = event.encode()
        if event.id and self.history_enabled:
            self._retain(event.id, payload)
        self._broadcast(payload)
        return self

    def write(self, data: str) -> Channel:
        """Broadcast a pre-formatted frame; its ``id:`` line, if any, is retained."""
        if self.history_enabled:
            match = ID_FIELD.search(data)
            if match:
                self._retain(match.group(1), data)
        self._broadcast(data)
        return self

    def _broadcast(self, payload: str) -> None:
        for connection in list(self._connections):
            connection.write(payload)

    def _retain(self, event_id: str, payload: str) -> None:
        if event_id in self._history:
            self._history_ids.remove(event_id)
        self._history_ids.append(event_id)
        self._history[event_id] = payload
        if len(self._history_ids) > self.history_size:
            evicted = self._history_ids.popleft()
            del self._history[evicted]
            logger.debug(f"Channel '{self.name}': evicted id {evicted!r} from history")

    def _replay(self, connection: Connection, last_event_id: str) -> None:
        ids = list(self._history_ids)
        # Newest occurrence wins
        for index in range(len(ids) - 1, -1, -1):
            if ids[index] == last_event_id:
                break
        else:
            logger.debug(
                f"Channel '{self.name}': id {last_event_id!r} not in history, "
                f"no replay for {connection.client_id}"
            )
            return
        missed = ids[index + 1 :]
        for event_id in missed:
            connection.write(self._history[event_id])
        logger.debug(f"Channel '{self.name}': replayed {len(missed)} events to {connection.client_id}")

    def _on_connection_closed(self, connection: Connection) -> None:
        self.remove(connection)

    def _on_empty_timeout(self) -> None:
        self._empty_handle = None
        logger.debug(f"Channel '{self.name}' idle")
        self.closed.emit(self)

    def _cancel_empty_timer(self) -> None:
        if self._empty_handle is not None:
            self._empty_handle.cancel()
            self._empty_handle = None

    def __repr__(self) -> str:
        return f"Channel({self.name!r}, clients={len(self._connections)}, retained={len(self._history_ids)})"
