# ssecast/server/models.py
"""Pydantic models for API requests/responses."""

from typing import Any

from pydantic import BaseModel, Field


class EventPayload(BaseModel):
    """An event published to a channel."""

    data: Any = None
    event: str | None = None
    id: str | None = None
    retry: int | None = Field(default=None, ge=0)
    comment: str | None = None


class PublishResponse(BaseModel):
    """Response to a publish."""

    status: str
    channel: str
    clients_notified: int
    retained: int


class ChannelInfo(BaseModel):
    """Snapshot of one channel."""

    name: str
    clients: int
    retained: int
    history_size: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    channels: int
    clients: int
    uptime_s: float
