"""Tests for channel fan-out, bounded history and Last-Event-ID replay."""

import asyncio
import logging

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from ssecast.channel import DEFAULT_HISTORY_SIZE, Channel
from ssecast.connection import Connection
from ssecast.events import Event


def frame(event_id: str, data: str) -> str:
    return Event(data=data, id=event_id).encode()


@pytest.fixture
def abc_channel() -> Channel:
    """historySize=2 after sending ids 1, 2, 3 with payloads a, b, c."""
    channel = Channel(history_size=2)
    for event_id, data in [("1", "a"), ("2", "b"), ("3", "c")]:
        channel.send(Event(data=data, id=event_id))
    return channel


# --- History ---


def test_default_history_size():
    assert Channel().history_size == DEFAULT_HISTORY_SIZE == 500


def test_history_keeps_most_recent_in_order(abc_channel):
    assert abc_channel.history == [("2", frame("2", "b")), ("3", frame("3", "c"))]


def test_eviction_is_logged(caplog):
    channel = Channel("news", history_size=1)
    with caplog.at_level(logging.DEBUG, logger="ssecast"):
        channel.send(Event(data="a", id="1"))
        channel.send(Event(data="b", id="2"))

    assert "evicted id '1' from history" in caplog.text


@settings(max_examples=50)
@given(history_size=st.integers(min_value=1, max_value=20), sent=st.integers(min_value=0, max_value=60))
def test_history_bounded_to_most_recent(history_size, sent):
    """Retained ids are exactly the newest history_size ids, oldest first."""
    channel = Channel(history_size=history_size)
    for i in range(sent):
        channel.send(Event(data=f"payload-{i}", id=str(i)))

    expected = [str(i) for i in range(max(0, sent - history_size), sent)]
    assert [event_id for event_id, _ in channel.history] == expected


@pytest.mark.parametrize("history_size", [0, -1])
def test_non_positive_history_size_disables_history(history_size):
    channel = Channel(history_size=history_size)
    channel.send(Event(data="a", id="1"))
    channel.write("id: 2\ndata: b\n\n")

    assert not channel.history_enabled
    assert channel.history == []


def test_events_without_id_are_not_retained():
    channel = Channel()
    channel.send(Event(data="a"))
    channel.send(Event(data="b", id=""))
    assert channel.history == []


def test_duplicate_id_keeps_one_slot_with_newest_payload():
    """Re-sending a retained id moves it to the newest position."""
    channel = Channel(history_size=3)
    channel.send(Event(data="a", id="1"))
    channel.send(Event(data="b", id="2"))
    channel.send(Event(data="a2", id="1"))

    assert channel.history == [("2", frame("2", "b")), ("1", frame("1", "a2"))]


def test_duplicate_id_does_not_consume_extra_slots():
    channel = Channel(history_size=2)
    channel.send(Event(data="a", id="1"))
    channel.send(Event(data="b", id="2"))
    channel.send(Event(data="b2", id="2"))

    assert [event_id for event_id, _ in channel.history] == ["1", "2"]


# --- Raw writes ---


def test_raw_write_retains_frames_with_id_line(make_connection):
    channel = Channel()
    member = make_connection()
    channel.add(member)
    raw = "event: tick\nid: 77\ndata: {}\n\n"

    channel.write(raw)

    assert channel.history == [("77", raw)]
    assert member.frames == [raw]


@pytest.mark.parametrize("raw", ["data: no id here\n\n", "id:\n\n", "xid: 5\n\n", ": comment\n\n"])
def test_raw_write_without_id_is_forwarded_only(make_connection, raw):
    channel = Channel()
    member = make_connection()
    channel.add(member)

    channel.write(raw)

    assert channel.history == []
    assert member.frames == [raw]


# --- Fan-out ---


def test_send_reaches_every_member_in_order(make_connection):
    channel = Channel()
    members = [make_connection() for _ in range(3)]
    for member in members:
        channel.add(member)

    channel.send(Event(data="one"))
    channel.send(Event(data="two"))

    expected = [Event(data="one").encode(), Event(data="two").encode()]
    assert all(member.frames == expected for member in members)
    assert channel.count() == 3


def test_removed_member_receives_nothing(make_connection):
    channel = Channel()
    member = make_connection()
    channel.add(member)

    assert channel.remove(member) is True
    assert channel.remove(member) is False
    channel.send(Event(data="x"))

    assert member.frames == []
    assert channel.count() == 0
    assert len(member.closed) == 0


@pytest.mark.asyncio
async def test_terminated_connection_keeps_pending_idle_signal(make_connection):
    channel = Channel(empty_timeout=20)
    fired = []
    channel.closed.connect(fired.append)
    member = make_connection()
    channel.add(member)
    channel.remove(member)

    late = make_connection()
    late.terminated = True
    channel.add(late)
    await asyncio.sleep(0.08)

    assert fired == [channel]


def test_terminated_member_is_removed(make_connection):
    channel = Channel()
    member = make_connection()
    channel.add(member)

    member.terminate()

    assert channel.count() == 0
    assert channel.connections == ()


def test_already_terminated_connection_is_not_added(make_connection):
    channel = Channel()
    member = make_connection()
    member.terminated = True

    channel.add(member)

    assert channel.count() == 0
    assert len(member.closed) == 0


# --- Replay ---


def test_replay_after_last_seen_id(abc_channel, make_connection):
    member = make_connection(last_event_id="2")
    abc_channel.add(member)
    assert member.frames == [frame("3", "c")]


def test_unknown_last_event_id_replays_nothing(abc_channel, make_connection):
    member = make_connection(last_event_id="9")
    abc_channel.add(member)
    assert member.frames == []
    assert abc_channel.count() == 1


def test_evicted_last_event_id_replays_nothing(abc_channel, make_connection):
    member = make_connection(last_event_id="1")
    abc_channel.add(member)
    assert member.frames == []


def test_no_last_event_id_replays_nothing(abc_channel, make_connection):
    member = make_connection()
    abc_channel.add(member)
    assert member.frames == []


@pytest.mark.parametrize("position", range(5))
def test_replay_covers_positions_after_last_seen(make_connection, position):
    channel = Channel(history_size=5)
    for i in range(5):
        channel.send(Event(data=f"p{i}", id=f"e{i}"))

    member = make_connection(last_event_id=f"e{position}")
    channel.add(member)

    assert member.frames == [frame(f"e{i}", f"p{i}") for i in range(position + 1, 5)]


def test_replay_precedes_live_events(abc_channel, make_connection):
    member = make_connection(last_event_id="2")
    abc_channel.add(member)
    abc_channel.send(Event(data="d", id="4"))

    assert member.frames == [frame("3", "c"), frame("4", "d")]


def test_replay_uses_newest_occurrence_of_reused_id(make_connection):
    channel = Channel(history_size=5)
    for event_id, data in [("x", "a"), ("y", "b"), ("x", "c"), ("z", "d")]:
        channel.send(Event(data=data, id=event_id))

    member = make_connection(last_event_id="x")
    channel.add(member)

    assert member.frames == [frame("z", "d")]


def test_full_replay_fits_buffer_one_larger_than_history():
    """A client that missed the whole window is replayed to, not disconnected."""
    channel = Channel(history_size=4)
    for i in range(5):
        channel.send(Event(data=str(i), id=str(i)))

    connection = Connection(last_event_id="0", max_buffered=5)
    channel.add(connection)

    assert connection.buffered == 4
    assert not connection.closing
    assert channel.count() == 1


# --- Idle signal ---


@pytest.mark.asyncio
async def test_idle_signal_after_last_member_leaves(make_connection):
    channel = Channel(empty_timeout=60)
    fired = []
    channel.closed.connect(fired.append)
    member = make_connection()
    channel.add(member)

    channel.remove(member)
    await asyncio.sleep(0.03)
    assert fired == []
    await asyncio.sleep(0.08)

    assert fired == [channel]


@pytest.mark.asyncio
async def test_add_cancels_pending_idle_signal(make_connection):
    channel = Channel(empty_timeout=30)
    fired = []
    channel.closed.connect(fired.append)
    first = make_connection()
    channel.add(first)
    channel.remove(first)

    channel.add(make_connection())
    await asyncio.sleep(0.08)

    assert fired == []


@pytest.mark.asyncio
async def test_no_idle_signal_when_disabled(make_connection):
    channel = Channel()
    fired = []
    channel.closed.connect(fired.append)
    member = make_connection()
    channel.add(member)
    channel.remove(member)

    await asyncio.sleep(0.02)

    assert fired == []


@pytest.mark.asyncio
async def test_removing_non_member_does_not_arm_idle_signal(make_connection):
    channel = Channel(empty_timeout=10)
    fired = []
    channel.closed.connect(fired.append)

    assert channel.remove(make_connection()) is False
    await asyncio.sleep(0.05)

    assert fired == []


# --- With real connections ---


@pytest.mark.asyncio
async def test_disconnected_client_leaves_channel():
    channel = Channel(history_size=10)
    channel.send(Event(data="a", id="1"))
    channel.send(Event(data="b", id="2"))
    connection = Connection(last_event_id="1")
    channel.add(connection)

    stream = connection.stream()
    assert await stream.__anext__() == frame("2", "b")
    channel.send(Event(data="c", id="3"))
    assert await stream.__anext__() == frame("3", "c")

    await stream.aclose()

    assert channel.count() == 0


@pytest.mark.asyncio
async def test_watch_idle_on_never_joined_channel():
    channel = Channel(empty_timeout=20)
    fired = []
    channel.closed.connect(fired.append)

    channel.watch_idle()
    await asyncio.sleep(0.08)

    assert fired == [channel]


@pytest.mark.asyncio
async def test_watch_idle_ignored_while_members_present(make_connection):
    channel = Channel(empty_timeout=10)
    fired = []
    channel.closed.connect(fired.append)
    channel.add(make_connection())

    channel.watch_idle()
    await asyncio.sleep(0.05)

    assert fired == []
