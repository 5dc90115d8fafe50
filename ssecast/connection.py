# ssecast/connection.py
"""One client's event stream: handshake, heartbeat, idle timeout and termination."""

from __future__ import annotations

import asyncio
import logging
import math
import time
import uuid
from typing import TYPE_CHECKING, Any

from starlette.responses import StreamingResponse

from .errors import InvalidArgument
from .events import HEARTBEAT
from .signals import Signal

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.datastructures import Headers
    from starlette.requests import Request

    from .events import Event

logger = logging.getLogger("ssecast")

DEFAULT_PING_INTERVAL_MS = 50_000

SSE_MEDIA_TYPE = "text/event-stream; charset=utf-8"
SSE_HEADERS = {
    "Cache-Control": "no-store, no-transform",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
    "Connection": "keep-alive",
}


def _check_duration(name: str, value: Any, minimum: int) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidArgument(f"{name} must be a finite number, got {value!r}")
    if value < minimum:
        raise InvalidArgument(f"{name} must be {minimum} or greater, got {value!r}")
    return float(value)


def last_event_id_from_headers(headers: Headers) -> str | None:
    """Return the reconnection id when the header is present exactly once."""
    values = headers.getlist("last-event-id")
    if len(values) == 1 and values[0]:
        return values[0]
    return None


class Connection:
    """
    A single SSE client.

    Frames written to the connection are queued and handed to the transport
    by :meth:`stream`, which backs the Starlette response returned from
    :meth:`response`. When that iterator ends for any reason (drained after
    :meth:`close`, client disconnect, send failure) the connection terminates:
    timers are disarmed and ``closed`` is emitted exactly once.

    Signals:
    - closed(connection): terminal, fired once
    - timed_out(connection): idle timer fired while a receiver is connected
    """

    def __init__(
        self,
        *,
        last_event_id: str | None = None,
        ping: bool = False,
        ping_interval: float = DEFAULT_PING_INTERVAL_MS,
        timeout: float = 0,
        max_buffered: int = 0,
        request: Request | None = None,
    ) -> None:
        self.client_id = uuid.uuid4().hex[:8]
        self.created_at = time.time()
        self.request = request
        self.last_event_id = last_event_id
        self.closed = Signal()
        self.timed_out = Signal()

        self._max_buffered = max_buffered
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._finished = asyncio.Event()
        self._ping_interval = 0.0
        self._timeout = 0.0
        self._ping_handle: asyncio.TimerHandle | None = None
        self._timeout_handle: asyncio.TimerHandle | None = None
        self._closing = False
        self._terminated = False

        if ping:
            self.set_ping(ping_interval)
        if timeout:
            self.set_timeout(timeout)

    @classmethod
    def from_request(cls, request: Request, **options: Any) -> Connection:
        """Accept a client request, picking up its ``Last-Event-ID`` header."""
        return cls(
            request=request,
            last_event_id=last_event_id_from_headers(request.headers),
            **options,
        )

    def response(self) -> StreamingResponse:
        """Starlette response streaming this connection's frames."""
        return StreamingResponse(
            self.stream(),
            status_code=200,
            media_type=SSE_MEDIA_TYPE,
            headers=SSE_HEADERS,
        )

    @property
    def ping_interval(self) -> float:
        return self._ping_interval

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def closing(self) -> bool:
        return self._closing

    @property
    def terminated(self) -> bool:
        return self._terminated

    @property
    def buffered(self) -> int:
        """Frames queued but not yet handed to the transport."""
        return self._queue.qsize()

    async def stream(self) -> AsyncIterator[str]:
        """Yield queued frames until closed; terminates the connection on exit."""
        try:
            while True:
                chunk = await self._queue.get()
                if chunk is None:
                    break
                yield chunk
        except asyncio.CancelledError:
            logger.debug(f"SSE client {self.client_id} cancelled")
            raise
        finally:
            self._terminate()

    def write(self, data: str) -> None:
        """Queue raw event-stream text for the client."""
        if self._closing:
            return
        if self._max_buffered and self._queue.qsize() >= self._max_buffered:
            logger.warning(
                f"SSE client {self.client_id} too slow ({self._queue.qsize()} frames buffered), disconnecting"
            )
            self.close()
            return
        self._queue.put_nowait(data)

    def send(self, event: Event) -> Connection:
        self.write(event.encode())
        return self

    def set_ping(self, interval: float) -> Connection:
        """Write an empty comment every ``interval`` ms; replaces any earlier heartbeat."""
        interval = _check_duration("ping interval", interval, 1)
        self._cancel_ping()
        self._ping_interval = interval
        if not self._closing:
            self._schedule_ping()
        return self

    def set_timeout(self, duration: float) -> Connection:
        """
        Close the connection ``duration`` ms from now; ``0`` disarms.

        If anything is connected to ``timed_out``, the signal is emitted
        instead and the receiver decides whether to end the connection.
        """
        duration = _check_duration("timeout", duration, 0)
        self._cancel_timeout()
        self._timeout = duration
        if duration > 0 and not self._closing:
            loop = asyncio.get_running_loop()
            self._timeout_handle = loop.call_later(duration / 1000, self._on_timeout)
        return self

    def close(self) -> None:
        """Stop accepting writes and let the transport finish after queued frames."""
        self._disarm()
        if self._closing:
            return
        self._closing = True
        self._queue.put_nowait(None)

    async def end(self) -> Connection:
        """Close and wait until the transport has finished."""
        self.close()
        await self._finished.wait()
        return self

    def _schedule_ping(self) -> None:
        loop = asyncio.get_running_loop()
        self._ping_handle = loop.call_later(self._ping_interval / 1000, self._on_ping)

    def _on_ping(self) -> None:
        self._ping_handle = None
        self.write(HEARTBEAT)
        if not self._closing:
            self._schedule_ping()

    def _on_timeout(self) -> None:
        self._timeout_handle = None
        if self.timed_out:
            self.timed_out.emit(self)
        else:
            logger.info(f"SSE client {self.client_id} timed out")
            self.close()

    def _cancel_ping(self) -> None:
        if self._ping_handle is not None:
            self._ping_handle.cancel()
            self._ping_handle = None

    def _cancel_timeout(self) -> None:
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

    def _disarm(self) -> None:
        self._cancel_ping()
        self._cancel_timeout()

    def _terminate(self) -> None:
        if self._terminated:
            return
        self._terminated = True
        self._closing = True
        self._disarm()
        self._finished.set()
        logger.debug(f"SSE client {self.client_id} terminated")
        self.closed.emit(self)

    def __repr__(self) -> str:
        state = "closed" if self._terminated else "closing" if self._closing else "open"
        return f"Connection({self.client_id}, {state})"
