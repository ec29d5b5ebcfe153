"""Explorer service: HTTP API and live WebSocket streamer in one process.

Usage:
    python -m src.server
"""

import asyncio
import signal
import sys

import uvicorn

from src.api.app import create_app
from src.explorer.streamer import LiveStreamer, StreamSettings
from src.helpers.config import get_int_env, get_optional_env
from src.helpers.constants import DEFAULT_HOST, DEFAULT_HTTP_PORT, DEFAULT_WS_PORT
from src.helpers.logging import get_logger


logger = get_logger(__name__)


class ExplorerService:
    """Runs the HTTP API and the WebSocket streamer until a shutdown signal."""

    def __init__(
        self,
        host: str | None = None,
        http_port: int | None = None,
        ws_port: int | None = None,
        settings: StreamSettings | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            host: Interface to bind (default: EXPLORER_HOST env or 0.0.0.0)
            http_port: HTTP API port (default: EXPLORER_HTTP_PORT env or 3000)
            ws_port: WebSocket port (default: EXPLORER_WS_PORT env or 3001)
            settings: Streamer timing settings

        Raises:
            ValueError: If a port environment variable is not an integer
        """
        self.host = host or get_optional_env("EXPLORER_HOST") or DEFAULT_HOST
        self.http_port = http_port or get_int_env(
            "EXPLORER_HTTP_PORT", DEFAULT_HTTP_PORT
        )
        self.ws_port = ws_port or get_int_env("EXPLORER_WS_PORT", DEFAULT_WS_PORT)
        self.streamer = LiveStreamer(settings)
        self.http_server = uvicorn.Server(
            uvicorn.Config(
                create_app(),
                host=self.host,
                port=self.http_port,
                log_config=None,
            )
        )
        self.shutdown_event = asyncio.Event()

    def shutdown(self) -> None:
        """Gracefully stop both servers."""
        logger.info("Shutdown signal received, stopping...")
        self.shutdown_event.set()
        self.http_server.should_exit = True

    async def _run_http(self) -> None:
        try:
            await self.http_server.serve()
        finally:
            # uvicorn may exit on its own signal handling
            self.shutdown_event.set()

    async def _run_streamer(self) -> None:
        async with self.streamer.serve(self.host, self.ws_port):
            logger.info(
                "WebSocket streamer listening on ws://%s:%s", self.host, self.ws_port
            )
            await self.shutdown_event.wait()
        await self.streamer.shutdown()

    async def run(self) -> None:
        """Run both servers on the current event loop."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.shutdown)

        logger.info("HTTP API listening on http://%s:%s", self.host, self.http_port)
        tasks = [
            asyncio.create_task(self._run_http()),
            asyncio.create_task(self._run_streamer()),
        ]
        try:
            await asyncio.gather(*tasks)
        finally:
            self.shutdown_event.set()
            self.http_server.should_exit = True
            await asyncio.gather(*tasks, return_exceptions=True)

        logger.info("Explorer service stopped")


async def main() -> None:
    """Main entry point."""
    try:
        service = ExplorerService()
        await service.run()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, exiting...")
    except Exception:
        logger.exception("Fatal error")
        sys.exit(1)


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
