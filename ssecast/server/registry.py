# ssecast/server/registry.py
"""Named channels, dropped automatically once they go idle."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ssecast.channel import Channel
from ssecast.liveness import LivenessMap

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .config import Settings

logger = logging.getLogger("ssecast.server")


class ChannelRegistry:
    """
    Channels keyed by name.

    Channels are created on first use with the configured history size and
    empty timeout. A channel that stays empty (including one created by a
    publish nobody subscribes to) for ``EMPTY_TIMEOUT_MS`` emits
    ``closed`` and the underlying :class:`LivenessMap` forgets it, taking its
    history with it.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._channels: LivenessMap[str, Channel] = LivenessMap()

    def get(self, name: str) -> Channel | None:
        return self._channels.get(name)

    def get_or_create(self, name: str) -> Channel:
        channel = self._channels.get(name)
        if channel is None:
            channel = Channel(
                name,
                history_size=self._settings.HISTORY_SIZE,
                empty_timeout=self._settings.EMPTY_TIMEOUT_MS,
            )
            self._channels[name] = channel
            channel.closed.connect(self._on_idle, once=True)
            channel.watch_idle()
            logger.info(f"Created channel '{name}' (total={len(self._channels)})")
        return channel

    def channels(self) -> list[Channel]:
        return list(self._channels.values())

    @property
    def client_count(self) -> int:
        return sum(channel.count() for channel in self._channels.values())

    def close_all(self) -> None:
        """Close every member connection of every channel."""
        for channel in self.channels():
            for connection in channel.connections:
                connection.close()

    async def shutdown(self) -> None:
        """Gracefully disconnect all clients and forget all channels."""
        self.close_all()
        self._channels.clear()
        logger.info("Channel registry shutdown complete")

    def _on_idle(self, channel: Channel) -> None:
        logger.info(f"Channel '{channel.name}' idle, dropped (total={len(self._channels)})")

    def __iter__(self) -> Iterator[str]:
        return iter(self._channels)

    def __len__(self) -> int:
        return len(self._channels)
