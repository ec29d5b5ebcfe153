"""Live block/stat streamer.

Each client connection gets a StreamSession. The client subscribes to
channels by sending init messages::

    {"type": "INIT" | "STATS_INIT" | "DAILY_TRX_INIT", "rpcUrl": "https://..."}

Every channel runs as its own task that ticks, pushes, then sleeps, so at
most one fetch per channel is in flight and ticks never overlap. Closing the
connection cancels every channel of the session.

Usage:
    python -m src.server
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable
from contextlib import suppress
from enum import StrEnum

from typing import Any, ClassVar, Protocol

from pydantic import BaseModel, ValidationError
from websockets.asyncio.server import ServerConnection
from websockets.asyncio.server import serve as websocket_serve
from websockets.exceptions import ConnectionClosed

from src.explorer.daily import build_daily_series
from src.explorer.models import (
    BlockSummary,
    ConnectedFrame,
    DailyTrxUpdateFrame,
    ErrorFrame,
    InitMessage,
    MessageType,
    StatsUpdateFrame,
)
from src.explorer.sdk import BlockchainSDK
from src.explorer.stats import compute_stats
from src.helpers.constants import (
    DAILY_TRX_INTERVAL,
    NEW_BLOCKS_MAX_INTERVAL,
    NEW_BLOCKS_MIN_INTERVAL,
    STATS_INTERVAL,
)
from src.helpers.http import log_and_suppress_errors
from src.helpers.logging import get_logger
from src.helpers.serialization import to_json


logger = get_logger(__name__)


class Subscriber(Protocol):
    """Anything frames can be pushed to (a websocket connection in production)."""

    async def send(self, message: str) -> None: ...


class ChannelType(StrEnum):
    NEW_BLOCKS = "NEW_BLOCKS"
    STATS = "STATS"
    DAILY_TRX = "DAILY_TRX"


class ChannelState(StrEnum):
    IDLE = "IDLE"
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


INIT_CHANNELS: dict[str, ChannelType] = {
    MessageType.INIT: ChannelType.NEW_BLOCKS,
    MessageType.STATS_INIT: ChannelType.STATS,
    MessageType.DAILY_TRX_INIT: ChannelType.DAILY_TRX,
}


class StreamSettings(BaseModel):
    """Timing knobs of the streamer (seconds)."""

    new_blocks_min_interval: float = NEW_BLOCKS_MIN_INTERVAL
    new_blocks_max_interval: float = NEW_BLOCKS_MAX_INTERVAL
    stats_interval: float = STATS_INTERVAL
    daily_trx_interval: float = DAILY_TRX_INTERVAL
    stats_sample_size: int = 0


class Channel(ABC):
    """One periodic fetch-and-push subscription of a connection."""

    channel_type: ClassVar[ChannelType]
    tick_immediately: ClassVar[bool] = False

    def __init__(self, subscriber: Subscriber, sdk: BlockchainSDK) -> None:
        self.subscriber = subscriber
        self.sdk = sdk
        self.state = ChannelState.IDLE
        self.task: asyncio.Task[None] | None = None

    async def on_start(self) -> None:
        """Capture whatever state the channel needs before its first tick."""

    @abstractmethod
    async def tick(self) -> None:
        """Fetch once and push if there is something new."""

    @abstractmethod
    def next_delay(self) -> float:
        """Seconds to wait before the next tick."""

    async def start(self) -> None:
        await self.on_start()
        self.state = ChannelState.ACTIVE
        self.task = asyncio.create_task(
            self._run(), name=f"stream-{self.channel_type.lower()}"
        )
        logger.info("%s channel started on %s", self.channel_type, self.sdk.rpc_url)

    async def _run(self) -> None:
        if not self.tick_immediately:
            await asyncio.sleep(self.next_delay())
        while self.state is ChannelState.ACTIVE:
            async with log_and_suppress_errors(f"{self.channel_type} tick"):
                await self.tick()
            await asyncio.sleep(self.next_delay())

    async def push(self, frame: Any) -> bool:
        """Send a frame unless the channel has been closed meanwhile."""
        if self.state is not ChannelState.ACTIVE:
            return False
        await self.subscriber.send(to_json(frame))
        return True

    async def stop(self) -> None:
        """Cancel the channel's task and wait for it to finish."""
        self.state = ChannelState.CLOSED
        if self.task is not None and not self.task.done():
            self.task.cancel()
            with suppress(asyncio.CancelledError):
                await self.task
        logger.info("%s channel closed", self.channel_type)


class NewBlocksChannel(Channel):
    """Pushes every new chain head, merged with its transaction count.

    Polling backs off while the head is unchanged: the delay doubles after
    every tick without a new block, up to ``max_interval``, and drops back
    to ``min_interval`` after a push.
    """

    channel_type = ChannelType.NEW_BLOCKS

    def __init__(
        self,
        subscriber: Subscriber,
        sdk: BlockchainSDK,
        *,
        min_interval: float = NEW_BLOCKS_MIN_INTERVAL,
        max_interval: float = NEW_BLOCKS_MAX_INTERVAL,
    ) -> None:
        super().__init__(subscriber, sdk)
        self.min_interval = min_interval
        self.max_interval = max(max_interval, min_interval)
        self.delay = min_interval
        self.last_block_number: int | None = None
        self.blocks_pushed = 0

    async def on_start(self) -> None:
        self.last_block_number = await self.sdk.get_block_number()
        logger.info("New blocks baseline: #%s", self.last_block_number)

    def next_delay(self) -> float:
        return self.delay

    def _back_off(self) -> None:
        self.delay = min(self.delay * 2, self.max_interval)

    async def tick(self) -> None:
        block = await self.sdk.get_block("latest")
        if block is None:
            self._back_off()
            return

        if self.last_block_number is None:
            # Baseline could not be captured at start
            self.last_block_number = block.number
            self._back_off()
            return

        if block.number <= self.last_block_number:
            self._back_off()
            return

        self.last_block_number = block.number
        self.delay = self.min_interval

        transactions_count = await self.sdk.get_block_transaction_count(block.number)
        if transactions_count is None:
            transactions_count = len(block.transactions)

        summary = BlockSummary(**dict(block), transactions_count=transactions_count)
        if await self.push(summary):
            self.blocks_pushed += 1
            logger.debug("Pushed block #%s", block.number)


class StatsChannel(Channel):
    """Pushes a fresh NetworkStats snapshot at a fixed pace."""

    channel_type = ChannelType.STATS

    def __init__(
        self,
        subscriber: Subscriber,
        sdk: BlockchainSDK,
        *,
        interval: float = STATS_INTERVAL,
        sample_size: int = 0,
    ) -> None:
        super().__init__(subscriber, sdk)
        self.interval = interval
        self.sample_size = sample_size

    def next_delay(self) -> float:
        return self.interval

    async def tick(self) -> None:
        stats = await compute_stats(self.sdk, sample_size=self.sample_size)
        if stats is None:
            return
        await self.push(StatsUpdateFrame(stats=stats))


class DailyTrxChannel(Channel):
    """Pushes the daily transaction series at once, then on a long interval."""

    channel_type = ChannelType.DAILY_TRX
    tick_immediately = True

    def __init__(
        self,
        subscriber: Subscriber,
        sdk: BlockchainSDK,
        *,
        interval: float = DAILY_TRX_INTERVAL,
    ) -> None:
        super().__init__(subscriber, sdk)
        self.interval = interval

    def next_delay(self) -> float:
        return self.interval

    async def tick(self) -> None:
        await self.push(DailyTrxUpdateFrame(data=build_daily_series()))


def describe_invalid_message(error: ValidationError) -> str:
    """Reason sent back to a client whose message failed to parse."""
    first = error.errors()[0]
    if first["type"] == "model_type":
        return "Message must be a JSON object"
    if not first["loc"]:
        return "Message is not valid JSON"
    field = ".".join(str(part) for part in first["loc"])
    if first["type"] == "missing":
        return f"{field} is required"
    return f"{field} must be a string"


class StreamSession:
    """All subscriptions of one client connection."""

    def __init__(
        self,
        subscriber: Subscriber,
        settings: StreamSettings | None = None,
        *,
        sdk_factory: Callable[[str], BlockchainSDK] = BlockchainSDK,
    ) -> None:
        self.subscriber = subscriber
        self.settings = settings or StreamSettings()
        self.sdk_factory = sdk_factory
        self.channels: dict[ChannelType, Channel] = {}
        self._sdks: dict[str, BlockchainSDK] = {}
        self.closed = False

    async def greet(self) -> None:
        await self.subscriber.send(to_json(ConnectedFrame()))

    async def reject(self, reason: str) -> None:
        logger.warning("Rejected message: %s", reason)
        await self.subscriber.send(to_json(ErrorFrame(error=reason)))

    def _get_sdk(self, rpc_url: str) -> BlockchainSDK:
        sdk = self._sdks.get(rpc_url)
        if sdk is None:
            sdk = self.sdk_factory(rpc_url)
            self._sdks[rpc_url] = sdk
        return sdk

    def _build_channel(
        self, channel_type: ChannelType, sdk: BlockchainSDK
    ) -> Channel:
        settings = self.settings
        if channel_type is ChannelType.NEW_BLOCKS:
            return NewBlocksChannel(
                self.subscriber,
                sdk,
                min_interval=settings.new_blocks_min_interval,
                max_interval=settings.new_blocks_max_interval,
            )
        if channel_type is ChannelType.STATS:
            return StatsChannel(
                self.subscriber,
                sdk,
                interval=settings.stats_interval,
                sample_size=settings.stats_sample_size,
            )
        return DailyTrxChannel(
            self.subscriber, sdk, interval=settings.daily_trx_interval
        )

    async def handle_message(self, raw: str | bytes) -> None:
        """Dispatch one inbound message; unknown types are ignored."""
        if self.closed:
            return

        try:
            message = InitMessage.model_validate_json(raw)
        except ValidationError as e:
            await self.reject(describe_invalid_message(e))
            return

        channel_type = INIT_CHANNELS.get(message.type)
        if channel_type is None:
            logger.debug("Ignoring message of type %r", message.type)
            return

        if not message.rpc_url:
            await self.reject(f"rpcUrl is required for {message.type}")
            return

        try:
            sdk = self._get_sdk(message.rpc_url)
        except ValueError as e:
            await self.reject(str(e))
            return

        await self.start_channel(channel_type, sdk)

    async def start_channel(
        self, channel_type: ChannelType, sdk: BlockchainSDK
    ) -> Channel:
        """Start a channel, replacing the session's previous one of that type.

        RPC clients no longer used by any channel are closed afterwards.
        """
        previous = self.channels.pop(channel_type, None)
        if previous is not None:
            await previous.stop()

        channel = self._build_channel(channel_type, sdk)
        self.channels[channel_type] = channel
        await self._release_unused_sdks()
        await channel.start()
        return channel

    async def _release_unused_sdks(self) -> None:
        in_use = {id(channel.sdk) for channel in self.channels.values()}
        for rpc_url, sdk in list(self._sdks.items()):
            if id(sdk) not in in_use:
                del self._sdks[rpc_url]
                await sdk.aclose()
                logger.debug("Released RPC client for %s", rpc_url)

    async def close(self) -> None:
        """Stop every channel and release the session's RPC clients."""
        if self.closed:
            return
        self.closed = True
        await asyncio.gather(*(channel.stop() for channel in self.channels.values()))
        for sdk in self._sdks.values():
            await sdk.aclose()
        self._sdks.clear()


class LiveStreamer:
    """WebSocket front of the stream sessions."""

    def __init__(self, settings: StreamSettings | None = None) -> None:
        self.settings = settings or StreamSettings()
        self.sessions: set[StreamSession] = set()

    async def handle_connection(self, connection: ServerConnection) -> None:
        """Serve one client until it disconnects."""
        session = StreamSession(connection, self.settings)
        self.sessions.add(session)
        logger.info("Client connected: %s", connection.remote_address)

        try:
            await session.greet()
            async for message in connection:
                await session.handle_message(message)
        except ConnectionClosed as e:
            logger.info("Client connection closed: %s", e)
        finally:
            await session.close()
            self.sessions.discard(session)
            logger.info("Client disconnected: %s", connection.remote_address)

    def serve(self, host: str, port: int) -> websocket_serve:
        """Create the WebSocket server (use as an async context manager)."""
        return websocket_serve(self.handle_connection, host, port)

    async def shutdown(self) -> None:
        """Close every open session."""
        await asyncio.gather(*(session.close() for session in list(self.sessions)))


__all__ = [
    "INIT_CHANNELS",
    "Channel",
    "ChannelState",
    "ChannelType",
    "DailyTrxChannel",
    "LiveStreamer",
    "NewBlocksChannel",
    "StatsChannel",
    "StreamSession",
    "StreamSettings",
    "Subscriber",
    "describe_invalid_message",
]
