"""Shared FastAPI dependencies."""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import TypeAlias

from fastapi import HTTPException

from src.explorer.sdk import BlockchainSDK
from src.helpers.parsers import parse_block_identifier


SDKFactory: TypeAlias = Callable[[str], BlockchainSDK]


def get_sdk_factory() -> SDKFactory:
    """Builds the SDK owned by one request."""
    return BlockchainSDK


@asynccontextmanager
async def open_sdk(factory: SDKFactory, rpc_url: str) -> AsyncIterator[BlockchainSDK]:
    """SDK owned by a single request, closed once the response is built."""
    try:
        sdk = factory(rpc_url)
    except ValueError as e:
        raise HTTPException(400, detail=str(e)) from e
    try:
        yield sdk
    finally:
        await sdk.aclose()


def block_identifier(block: str) -> int | str:
    """Path parameter: block number, tag or hash."""
    try:
        return parse_block_identifier(block)
    except ValueError as e:
        raise HTTPException(400, detail=str(e)) from e


__all__ = ["SDKFactory", "block_identifier", "get_sdk_factory", "open_sdk"]
