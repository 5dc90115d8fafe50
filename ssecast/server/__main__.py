# ssecast/server/__main__.py
"""Entry point: python -m ssecast.server"""

from __future__ import annotations

import argparse
import asyncio
import signal
from typing import TYPE_CHECKING

import uvicorn

from .config import settings

if TYPE_CHECKING:
    from fastapi import FastAPI


async def run_server(app: FastAPI, host: str, port: int) -> None:
    """Run the server with proper shutdown handling."""
    config = uvicorn.Config(app, host=host, port=port, log_level=settings.LOG_LEVEL.lower())
    server = uvicorn.Server(config)

    # Override uvicorn's default signal handling
    loop = asyncio.get_running_loop()

    def handle_exit():
        # Close SSE streams first so uvicorn is not left waiting on them
        app.state.registry.close_all()
        server.should_exit = True

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_exit)

    await server.serve()


def main() -> None:
    parser = argparse.ArgumentParser(description="ssecast SSE broadcast server")
    parser.add_argument("--host", type=str, default=settings.HOST)
    parser.add_argument("--port", type=int, default=settings.PORT)
    args = parser.parse_args()

    from . import create_app

    app = create_app()
    asyncio.run(run_server(app, args.host, args.port))


if __name__ == "__main__":
    main()
