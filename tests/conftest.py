import pytest

from ssecast.signals import Signal


class RecordingConnection:
    """Stands in for a Connection: records frames written by a channel."""

    def __init__(self, client_id: str, last_event_id: str | None = None) -> None:
        self.client_id = client_id
        self.last_event_id = last_event_id
        self.closed = Signal()
        self.terminated = False
        self.frames: list[str] = []

    def write(self, data: str) -> None:
        self.frames.append(data)

    def terminate(self) -> None:
        self.terminated = True
        self.closed.emit(self)


@pytest.fixture
def make_connection():
    counter = iter(range(1_000_000))

    def _make(last_event_id: str | None = None) -> RecordingConnection:
        return RecordingConnection(f"client-{next(counter)}", last_event_id=last_event_id)

    return _make
