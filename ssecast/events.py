# ssecast/events.py
"""SSE event value type and its wire serialization."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from sse_starlette.sse import ServerSentEvent

from .errors import InvalidArgument

# Frames are separated with bare LF so raw `id:` lines can be matched per line.
LINE_SEP = "\n"


def _check_single_line(name: str, value: str | None) -> None:
    if value is not None and ("\n" in value or "\r" in value):
        raise InvalidArgument(f"{name} must not contain line breaks, got {value!r}")


@dataclass(frozen=True)
class Event:
    """
    One SSE frame.

    ``data`` may be any JSON-serializable value; strings are sent as-is and
    split over several ``data:`` lines when they contain line breaks.
    ``id`` is echoed back by browsers as ``Last-Event-ID`` on reconnect.
    """

    data: Any = None
    event: str | None = None
    id: str | None = None
    retry: int | None = None
    comment: str | None = None

    def __post_init__(self) -> None:
        if self.id is not None and not isinstance(self.id, str):
            object.__setattr__(self, "id", str(self.id))
        _check_single_line("id", self.id)
        _check_single_line("event", self.event)
        if self.retry is not None and (
            isinstance(self.retry, bool) or not isinstance(self.retry, int) or self.retry < 0
        ):
            raise InvalidArgument(f"retry must be a non-negative int, got {self.retry!r}")

    def encode(self) -> str:
        """Serialize to event-stream text, terminated by a blank line."""
        data = self.data
        if data is not None and not isinstance(data, str):
            data = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
        frame = ServerSentEvent(
            data=data,
            event=self.event,
            id=self.id,
            retry=self.retry,
            comment=self.comment,
            sep=LINE_SEP,
        )
        return frame.encode().decode("utf-8")


# Empty comment frame written by connection heartbeats
HEARTBEAT = Event(comment="").encode()
