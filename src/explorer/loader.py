"""Batched loading of historical block ranges."""

import asyncio

from typing import Literal

from src.explorer.models import Block
from src.explorer.sdk import BlockchainSDK
from src.helpers.constants import RANGE_STRIDE
from src.helpers.logging import get_logger


logger = get_logger(__name__)


async def load_range(
    sdk: BlockchainSDK,
    start_block: int,
    count: int,
    *,
    stride: int = RANGE_STRIDE,
) -> list[Block]:
    """Load ``count`` blocks walking down from ``start_block``.

    Blocks are fetched in strides of ``stride`` concurrent requests; a stride
    only starts once the previous one has settled, which bounds the number of
    in-flight RPC calls. Blocks that cannot be fetched are left out, so the
    result may be shorter than ``count``.

    Args:
        sdk: Explorer SDK bound to the endpoint to read from
        start_block: Highest block number of the range
        count: Number of blocks requested
        stride: Concurrent fetches per stride (default: 5)

    Returns:
        Blocks numbered within [start_block - count + 1, start_block], in
        strictly descending order

    Example:
        ```python
        async with BlockchainSDK(rpc_url) as sdk:
            blocks = await load_range(sdk, 100, 7)
            # [#100, #99, ..., #94]
        ```
    """
    if count <= 0 or start_block < 0:
        return []
    if stride <= 0:
        msg = f"stride must be positive, got {stride}"
        raise ValueError(msg)

    # Nothing exists below genesis
    end_block = max(start_block - count + 1, 0)
    blocks: list[Block] = []

    for stride_start in range(start_block, end_block - 1, -stride):
        numbers = list(
            range(stride_start, max(stride_start - stride, end_block - 1), -1)
        )
        results = await asyncio.gather(
            *[sdk.get_block(number) for number in numbers],
            return_exceptions=True,
        )

        # gather keeps issue order, which is descending block order
        for number, result in zip(numbers, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning("Failed to load block #%s: %s", number, result)
                continue
            if result is None:
                logger.debug("Block #%s unavailable, skipping", number)
                continue
            if result.number != number:
                logger.warning(
                    "Requested block #%s but got #%s, skipping", number, result.number
                )
                continue
            blocks.append(result)

    logger.debug(
        "Loaded %s/%s blocks from #%s down to #%s",
        len(blocks),
        count,
        start_block,
        end_block,
    )
    return blocks


async def load_range_from(
    sdk: BlockchainSDK,
    start_block: int | Literal["latest"],
    count: int,
) -> list[Block]:
    """Like load_range, but ``start_block`` may be "latest" (the chain head).

    Returns an empty list when the head cannot be determined.
    """
    if start_block == "latest":
        head = await sdk.get_block_number()
        if head is None:
            logger.warning("Chain head unavailable, returning empty range")
            return []
        start_block = head
    return await load_range(sdk, start_block, count)


__all__ = ["load_range", "load_range_from"]
