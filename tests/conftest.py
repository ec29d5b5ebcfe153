"""Pytest configuration and shared fixtures."""

from unittest.mock import AsyncMock

import pytest

from src.explorer.sdk import BlockchainSDK
from tests.factories import TEST_RPC_URL, FakeSubscriber


@pytest.fixture
def mock_sdk() -> AsyncMock:
    """SDK double whose primitives are AsyncMocks."""
    sdk = AsyncMock(spec=BlockchainSDK)
    sdk.rpc_url = TEST_RPC_URL
    return sdk


@pytest.fixture
def subscriber() -> FakeSubscriber:
    """Fake websocket connection collecting pushed frames."""
    return FakeSubscriber()
