# ssecast/signals.py
"""Explicit observer registration for liveness and timeout notifications."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger("ssecast")

Receiver = Callable[..., Any]


class Signal:
    """
    A list of receivers called in registration order on emit.

    Receivers connected with ``once=True`` are detached before they run, so
    they fire at most once. Detaching before emit cancels the notification.
    """

    def __init__(self) -> None:
        self._receivers: dict[Receiver, bool] = {}

    def connect(self, receiver: Receiver, *, once: bool = False) -> None:
        """Register a receiver, replacing any earlier registration of it."""
        self._receivers.pop(receiver, None)
        self._receivers[receiver] = once

    def disconnect(self, receiver: Receiver) -> bool:
        return self._receivers.pop(receiver, None) is not None

    def emit(self, *args: Any) -> None:
        for receiver, once in list(self._receivers.items()):
            if once:
                # Skip receivers detached by an earlier receiver in this emit
                if self._receivers.pop(receiver, None) is None:
                    continue
            elif receiver not in self._receivers:
                continue
            try:
                receiver(*args)
            except Exception:
                logger.exception(f"Signal receiver {receiver!r} failed")

    def __len__(self) -> int:
        return len(self._receivers)
