"""SSE subscribe endpoint."""

import logging

from fastapi import APIRouter, Request

from ssecast.connection import Connection

router = APIRouter(prefix="/channels", tags=["stream"])

logger = logging.getLogger("ssecast.server")


@router.get("/{name}/events")
async def subscribe(name: str, request: Request):
    """
    Server-Sent Events stream for a channel.

    Headers:
    - Last-Event-ID: replay retained events newer than this id (set by browsers on reconnect)
    """
    settings = request.app.state.settings
    registry = request.app.state.registry

    connection = Connection.from_request(
        request,
        ping=settings.PING,
        ping_interval=settings.PING_INTERVAL_MS,
        timeout=settings.CONNECTION_TIMEOUT_MS,
        max_buffered=settings.MAX_BUFFERED_FRAMES,
    )
    channel = registry.get_or_create(name)
    channel.add(connection)
    logger.info(
        f"SSE client {connection.client_id} joined '{name}' "
        f"(last_event_id={connection.last_event_id}, total={channel.count()})"
    )
    connection.closed.connect(
        lambda conn: logger.info(f"SSE client {conn.client_id} left '{name}' (total={channel.count()})"),
        once=True,
    )

    return connection.response()
