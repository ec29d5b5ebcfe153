"""Tests for the live streamer channels and sessions."""

import asyncio
import json

from unittest.mock import AsyncMock

import pytest
from websockets.asyncio.client import connect

from src.explorer.models import FeeData
from src.explorer.streamer import (
    ChannelState,
    ChannelType,
    DailyTrxChannel,
    LiveStreamer,
    NewBlocksChannel,
    StatsChannel,
    StreamSession,
    StreamSettings,
)
from tests.factories import TEST_RPC_URL, FakeSubscriber, make_block


# Long enough that background ticks never fire during a test
IDLE = 3600.0


def frames(subscriber: FakeSubscriber) -> list[dict]:
    return [json.loads(message) for message in subscriber.sent]


@pytest.fixture
def settings() -> StreamSettings:
    return StreamSettings(
        new_blocks_min_interval=IDLE,
        new_blocks_max_interval=IDLE,
        stats_interval=IDLE,
        daily_trx_interval=IDLE,
    )


@pytest.fixture
def session(
    subscriber: FakeSubscriber, mock_sdk: AsyncMock, settings: StreamSettings
) -> StreamSession:
    return StreamSession(subscriber, settings, sdk_factory=lambda url: mock_sdk)


class TestNewBlocksChannel:
    """Tests for new-block detection and polling backoff."""

    @pytest.mark.asyncio
    async def test_pushes_only_new_heads(
        self, subscriber: FakeSubscriber, mock_sdk: AsyncMock
    ) -> None:
        mock_sdk.get_block_number.return_value = 50
        mock_sdk.get_block.side_effect = [
            make_block(50),
            make_block(50),
            make_block(51),
            make_block(51),
        ]
        mock_sdk.get_block_transaction_count.return_value = 4
        channel = NewBlocksChannel(
            subscriber, mock_sdk, min_interval=IDLE, max_interval=IDLE
        )
        await channel.start()

        for _ in range(4):
            await channel.tick()
        await channel.stop()

        pushed = frames(subscriber)
        assert len(pushed) == 1
        assert pushed[0]["number"] == 51
        assert pushed[0]["transactionsCount"] == 4
        assert channel.blocks_pushed == 1

    @pytest.mark.asyncio
    async def test_pushes_in_increasing_order(
        self, subscriber: FakeSubscriber, mock_sdk: AsyncMock
    ) -> None:
        mock_sdk.get_block_number.return_value = 10
        mock_sdk.get_block.side_effect = [
            make_block(11),
            make_block(9),
            make_block(13),
            None,
            make_block(14),
        ]
        mock_sdk.get_block_transaction_count.return_value = 0
        channel = NewBlocksChannel(
            subscriber, mock_sdk, min_interval=IDLE, max_interval=IDLE
        )
        await channel.start()

        for _ in range(5):
            await channel.tick()
        await channel.stop()

        assert [frame["number"] for frame in frames(subscriber)] == [11, 13, 14]

    @pytest.mark.asyncio
    async def test_unknown_baseline_adopts_first_head(
        self, subscriber: FakeSubscriber, mock_sdk: AsyncMock
    ) -> None:
        mock_sdk.get_block_number.return_value = None
        mock_sdk.get_block.side_effect = [make_block(7), make_block(8)]
        mock_sdk.get_block_transaction_count.return_value = 1
        channel = NewBlocksChannel(
            subscriber, mock_sdk, min_interval=IDLE, max_interval=IDLE
        )
        await channel.start()

        await channel.tick()
        assert subscriber.sent == []
        await channel.tick()
        await channel.stop()

        assert [frame["number"] for frame in frames(subscriber)] == [8]

    @pytest.mark.asyncio
    async def test_count_falls_back_to_block_transactions(
        self, subscriber: FakeSubscriber, mock_sdk: AsyncMock
    ) -> None:
        mock_sdk.get_block_number.return_value = 1
        mock_sdk.get_block.return_value = make_block(2, transactions=["0x" + "aa" * 32])
        mock_sdk.get_block_transaction_count.return_value = None
        channel = NewBlocksChannel(
            subscriber, mock_sdk, min_interval=IDLE, max_interval=IDLE
        )
        await channel.start()

        await channel.tick()
        await channel.stop()

        assert frames(subscriber)[0]["transactionsCount"] == 1

    @pytest.mark.asyncio
    async def test_backoff_is_bounded_and_resets(
        self, subscriber: FakeSubscriber, mock_sdk: AsyncMock
    ) -> None:
        mock_sdk.get_block_number.return_value = 5
        mock_sdk.get_block.side_effect = [make_block(5)] * 6 + [make_block(6)]
        mock_sdk.get_block_transaction_count.return_value = 0
        channel = NewBlocksChannel(
            subscriber, mock_sdk, min_interval=0.1, max_interval=2.0
        )
        # Drive ticks by hand; no background task
        channel.state = ChannelState.ACTIVE
        await channel.on_start()

        delays = []
        for _ in range(7):
            await channel.tick()
            delays.append(channel.next_delay())

        assert delays == pytest.approx([0.2, 0.4, 0.8, 1.6, 2.0, 2.0, 0.1])
        assert all(0.1 <= delay <= 2.0 for delay in delays)

    @pytest.mark.asyncio
    async def test_background_polling(
        self, subscriber: FakeSubscriber, mock_sdk: AsyncMock
    ) -> None:
        heads = iter(range(1, 1000))
        mock_sdk.get_block_number.return_value = 0
        mock_sdk.get_block.side_effect = lambda *args, **kwargs: make_block(
            next(heads)
        )
        mock_sdk.get_block_transaction_count.return_value = 0
        channel = NewBlocksChannel(
            subscriber, mock_sdk, min_interval=0.001, max_interval=0.01
        )
        await channel.start()

        await asyncio.sleep(0.05)
        await channel.stop()

        numbers = [frame["number"] for frame in frames(subscriber)]
        assert numbers
        assert numbers == sorted(set(numbers))

    @pytest.mark.asyncio
    async def test_tick_errors_do_not_stop_channel(
        self, subscriber: FakeSubscriber, mock_sdk: AsyncMock
    ) -> None:
        calls = 0

        async def get_block(*args, **kwargs):
            nonlocal calls
            calls += 1
            if calls == 1:
                msg = "boom"
                raise RuntimeError(msg)
            return make_block(1)

        mock_sdk.get_block_number.return_value = 0
        mock_sdk.get_block.side_effect = get_block
        mock_sdk.get_block_transaction_count.return_value = 0
        channel = NewBlocksChannel(
            subscriber, mock_sdk, min_interval=0.001, max_interval=0.001
        )
        await channel.start()

        await asyncio.sleep(0.05)
        await channel.stop()

        assert [frame["number"] for frame in frames(subscriber)] == [1]


class TestStatsChannel:
    """Tests for periodic stats pushes."""

    @pytest.mark.asyncio
    async def test_pushes_stats_updates(
        self, subscriber: FakeSubscriber, mock_sdk: AsyncMock
    ) -> None:
        mock_sdk.get_fee_data.return_value = FeeData(gas_price=20 * 10**9)
        channel = StatsChannel(subscriber, mock_sdk, interval=0.005)
        await channel.start()

        await asyncio.sleep(0.05)
        await channel.stop()

        pushed = frames(subscriber)
        assert pushed
        assert all(frame["type"] == "STATS_UPDATE" for frame in pushed)
        assert pushed[0]["stats"]["staticGasPrice"] == "20.0"

    @pytest.mark.asyncio
    async def test_waits_one_interval_before_first_push(
        self, subscriber: FakeSubscriber, mock_sdk: AsyncMock
    ) -> None:
        mock_sdk.get_fee_data.return_value = FeeData(gas_price=10**9)
        channel = StatsChannel(subscriber, mock_sdk, interval=IDLE)
        await channel.start()

        await asyncio.sleep(0.01)
        await channel.stop()

        assert subscriber.sent == []

    @pytest.mark.asyncio
    async def test_skips_tick_without_fee_data(
        self, subscriber: FakeSubscriber, mock_sdk: AsyncMock
    ) -> None:
        mock_sdk.get_fee_data.return_value = None
        channel = StatsChannel(subscriber, mock_sdk, interval=IDLE)
        channel.state = ChannelState.ACTIVE

        await channel.tick()

        assert subscriber.sent == []


class TestDailyTrxChannel:
    """Tests for the daily series channel."""

    @pytest.mark.asyncio
    async def test_pushes_immediately(
        self, subscriber: FakeSubscriber, mock_sdk: AsyncMock
    ) -> None:
        channel = DailyTrxChannel(subscriber, mock_sdk, interval=IDLE)
        await channel.start()

        await asyncio.sleep(0.01)
        await channel.stop()

        pushed = frames(subscriber)
        assert len(pushed) == 1
        assert pushed[0]["type"] == "DAILY_TRX_UPDATE"
        assert len(pushed[0]["data"]) == 365
        assert set(pushed[0]["data"][0]) == {"date", "transactionsCount"}


class TestStreamSession:
    """Tests for inbound message handling."""

    @pytest.mark.asyncio
    async def test_greeting(
        self, session: StreamSession, subscriber: FakeSubscriber
    ) -> None:
        await session.greet()

        assert frames(subscriber) == [{"message": "Connected to WebSocket"}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("message", "channel_type"),
        [
            ("INIT", ChannelType.NEW_BLOCKS),
            ("STATS_INIT", ChannelType.STATS),
            ("DAILY_TRX_INIT", ChannelType.DAILY_TRX),
        ],
    )
    async def test_init_starts_channel(
        self,
        session: StreamSession,
        mock_sdk: AsyncMock,
        message: str,
        channel_type: ChannelType,
    ) -> None:
        mock_sdk.get_block_number.return_value = 1

        await session.handle_message(
            json.dumps({"type": message, "rpcUrl": TEST_RPC_URL})
        )

        channel = session.channels[channel_type]
        assert channel.state is ChannelState.ACTIVE
        await session.close()
        assert channel.state is ChannelState.CLOSED

    @pytest.mark.asyncio
    async def test_unknown_type_is_ignored(
        self, session: StreamSession, subscriber: FakeSubscriber
    ) -> None:
        await session.handle_message(json.dumps({"type": "PING", "rpcUrl": "x"}))

        assert session.channels == {}
        assert subscriber.sent == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("raw", "error"),
        [
            ("not json", "Message is not valid JSON"),
            (b"\xc3\x28", "Message is not valid JSON"),
            ("[1, 2]", "Message must be a JSON object"),
            ('"INIT"', "Message must be a JSON object"),
            ('{"type": 3}', "type must be a string"),
            ('{"rpcUrl": "https://a.test"}', "type is required"),
            ('{"type": "INIT", "rpcUrl": 5}', "rpcUrl must be a string"),
            ('{"type": "INIT"}', "rpcUrl is required for INIT"),
            (
                '{"type": "STATS_INIT", "rpcUrl": ""}',
                "rpcUrl is required for STATS_INIT",
            ),
        ],
    )
    async def test_malformed_messages_get_error_frame(
        self,
        session: StreamSession,
        subscriber: FakeSubscriber,
        raw: str | bytes,
        error: str,
    ) -> None:
        await session.handle_message(raw)

        assert frames(subscriber) == [{"type": "ERROR", "error": error}]
        assert session.channels == {}

    @pytest.mark.asyncio
    async def test_invalid_rpc_url_gets_error_frame(
        self, subscriber: FakeSubscriber, settings: StreamSettings
    ) -> None:
        session = StreamSession(subscriber, settings)

        await session.handle_message(
            json.dumps({"type": "INIT", "rpcUrl": "ftp://node.example"})
        )

        assert frames(subscriber) == [
            {"type": "ERROR", "error": "Invalid RPC URL: ftp://node.example"}
        ]
        assert session.channels == {}

    @pytest.mark.asyncio
    async def test_repeated_init_replaces_channel(
        self, session: StreamSession, mock_sdk: AsyncMock
    ) -> None:
        mock_sdk.get_block_number.return_value = 1
        init = json.dumps({"type": "INIT", "rpcUrl": TEST_RPC_URL})

        await session.handle_message(init)
        first = session.channels[ChannelType.NEW_BLOCKS]
        await session.handle_message(init)
        second = session.channels[ChannelType.NEW_BLOCKS]
        await session.close()

        assert first is not second
        assert first.state is ChannelState.CLOSED
        assert len(session.channels) == 1

    @pytest.mark.asyncio
    async def test_switching_endpoint_releases_previous_client(
        self, subscriber: FakeSubscriber
    ) -> None:
        created: dict[str, AsyncMock] = {}

        def factory(url: str) -> AsyncMock:
            sdk = AsyncMock()
            sdk.rpc_url = url
            created[url] = sdk
            return sdk

        session = StreamSession(
            subscriber, StreamSettings(daily_trx_interval=IDLE), sdk_factory=factory
        )
        for url in ("https://node1.test", "https://node2.test"):
            await session.handle_message(
                json.dumps({"type": "DAILY_TRX_INIT", "rpcUrl": url})
            )

        created["https://node1.test"].aclose.assert_awaited_once()
        created["https://node2.test"].aclose.assert_not_awaited()
        assert list(session._sdks) == ["https://node2.test"]
        await session.close()

    @pytest.mark.asyncio
    async def test_client_kept_while_another_channel_uses_it(
        self, subscriber: FakeSubscriber
    ) -> None:
        created: dict[str, AsyncMock] = {}

        def factory(url: str) -> AsyncMock:
            sdk = AsyncMock()
            sdk.rpc_url = url
            sdk.get_fee_data.return_value = None
            created[url] = sdk
            return sdk

        session = StreamSession(
            subscriber,
            StreamSettings(stats_interval=IDLE, daily_trx_interval=IDLE),
            sdk_factory=factory,
        )
        for message_type, url in (
            ("STATS_INIT", "https://node1.test"),
            ("DAILY_TRX_INIT", "https://node1.test"),
            ("DAILY_TRX_INIT", "https://node2.test"),
        ):
            await session.handle_message(
                json.dumps({"type": message_type, "rpcUrl": url})
            )

        created["https://node1.test"].aclose.assert_not_awaited()
        assert set(session._sdks) == {"https://node1.test", "https://node2.test"}
        await session.close()
        created["https://node1.test"].aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_sdk_is_shared_per_url(self, subscriber: FakeSubscriber) -> None:
        created: list[str] = []

        def factory(url: str) -> AsyncMock:
            created.append(url)
            sdk = AsyncMock()
            sdk.rpc_url = url
            sdk.get_block_number.return_value = 1
            sdk.get_fee_data.return_value = None
            return sdk

        session = StreamSession(
            subscriber, StreamSettings(stats_interval=IDLE), sdk_factory=factory
        )
        await session.handle_message(
            json.dumps({"type": "STATS_INIT", "rpcUrl": TEST_RPC_URL})
        )
        await session.handle_message(
            json.dumps({"type": "DAILY_TRX_INIT", "rpcUrl": TEST_RPC_URL})
        )
        await session.close()

        assert created == [TEST_RPC_URL]

    @pytest.mark.asyncio
    async def test_close_stops_pushes_and_releases_sdk(
        self, subscriber: FakeSubscriber, mock_sdk: AsyncMock
    ) -> None:
        mock_sdk.get_fee_data.return_value = FeeData(gas_price=10**9)
        session = StreamSession(
            subscriber,
            StreamSettings(stats_interval=0.005),
            sdk_factory=lambda url: mock_sdk,
        )
        await session.handle_message(
            json.dumps({"type": "STATS_INIT", "rpcUrl": TEST_RPC_URL})
        )
        await asyncio.sleep(0.03)

        await session.close()
        sent_at_close = len(subscriber.sent)
        await asyncio.sleep(0.03)

        assert len(subscriber.sent) == sent_at_close
        mock_sdk.aclose.assert_awaited_once()
        assert all(
            channel.state is ChannelState.CLOSED
            for channel in session.channels.values()
        )

    @pytest.mark.asyncio
    async def test_messages_after_close_are_ignored(
        self, session: StreamSession, subscriber: FakeSubscriber
    ) -> None:
        await session.close()

        await session.handle_message("not json")

        assert subscriber.sent == []


class FakeConnection(FakeSubscriber):
    """Subscriber that also yields queued inbound messages."""

    remote_address = ("127.0.0.1", 50000)

    def __init__(self, messages: list[str]) -> None:
        super().__init__()
        self.messages = messages

    async def __aiter__(self):
        for message in self.messages:
            yield message


class TestLiveStreamer:
    """Tests for the websocket front."""

    @pytest.mark.asyncio
    async def test_connection_lifecycle(self) -> None:
        streamer = LiveStreamer(StreamSettings(daily_trx_interval=IDLE))
        connection = FakeConnection(
            [
                json.dumps({"type": "PING"}),
                json.dumps({"type": "DAILY_TRX_INIT", "rpcUrl": TEST_RPC_URL}),
            ]
        )

        await streamer.handle_connection(connection)

        sent = frames(connection)
        assert sent[0] == {"message": "Connected to WebSocket"}
        assert streamer.sessions == set()

    @pytest.mark.asyncio
    async def test_serves_websocket_clients(self) -> None:
        streamer = LiveStreamer(StreamSettings(daily_trx_interval=IDLE))

        async with streamer.serve("127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            async with connect(f"ws://127.0.0.1:{port}") as websocket:
                greeting = json.loads(await websocket.recv())
                await websocket.send(
                    json.dumps({"type": "DAILY_TRX_INIT", "rpcUrl": TEST_RPC_URL})
                )
                update = json.loads(await asyncio.wait_for(websocket.recv(), 5))

        assert greeting == {"message": "Connected to WebSocket"}
        assert update["type"] == "DAILY_TRX_UPDATE"
        assert len(update["data"]) == 365
