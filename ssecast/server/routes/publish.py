"""Publish and channel inspection endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Request

from ssecast.errors import InvalidArgument
from ssecast.events import Event

from ..models import ChannelInfo, EventPayload, PublishResponse

if TYPE_CHECKING:
    from ssecast.channel import Channel

logger = logging.getLogger("ssecast.server")

router = APIRouter(prefix="/channels", tags=["publish"])


def _info(channel: Channel) -> ChannelInfo:
    return ChannelInfo(
        name=channel.name,
        clients=channel.count(),
        retained=len(channel.history),
        history_size=channel.history_size,
    )


def _published(channel: Channel) -> PublishResponse:
    return PublishResponse(
        status="ok",
        channel=channel.name,
        clients_notified=channel.count(),
        retained=len(channel.history),
    )


@router.get("", response_model=list[ChannelInfo])
async def list_channels(request: Request):
    """List live channels."""
    return [_info(channel) for channel in request.app.state.registry.channels()]


@router.get("/{name}", response_model=ChannelInfo)
async def get_channel(name: str, request: Request):
    """Get one channel's member and history counts."""
    channel = request.app.state.registry.get(name)
    if channel is None:
        raise HTTPException(404, f"Channel '{name}' not found")
    return _info(channel)


@router.post("/{name}/events", response_model=PublishResponse)
async def publish_event(name: str, payload: EventPayload, request: Request):
    """
    Broadcast an event to every client of the channel.

    Events with an ``id`` are retained for Last-Event-ID replay.
    """
    try:
        event = Event(**payload.model_dump())
    except InvalidArgument as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    channel = request.app.state.registry.get_or_create(name)
    channel.send(event)
    logger.info(f"Published {event.event or 'message'} id={event.id} to '{name}' ({channel.count()} clients)")
    return _published(channel)


@router.post("/{name}/raw", response_model=PublishResponse)
async def publish_raw(name: str, request: Request):
    """Broadcast a pre-formatted event-stream frame as-is."""
    try:
        body = (await request.body()).decode("utf-8")
    except UnicodeDecodeError as e:
        raise HTTPException(status_code=400, detail="Frame must be UTF-8 text") from e
    if not body:
        raise HTTPException(status_code=400, detail="Empty frame")

    channel = request.app.state.registry.get_or_create(name)
    channel.write(body)
    logger.info(f"Published raw frame ({len(body)} chars) to '{name}' ({channel.count()} clients)")
    return _published(channel)
