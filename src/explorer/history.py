"""Walks back from the chain head, one block at a time."""

from src.explorer.models import BlockSummary, Transaction
from src.explorer.sdk import BlockchainSDK
from src.helpers.logging import get_logger


logger = get_logger(__name__)


async def load_previous_blocks(
    sdk: BlockchainSDK, count: int
) -> list[BlockSummary] | None:
    """Latest ``count`` blocks, each merged with its transaction count.

    Stops early at the first block that cannot be fetched.

    Returns:
        Blocks newest first, or None if the head block is unavailable
    """
    latest = await sdk.get_block("latest")
    if latest is None:
        return None

    blocks: list[BlockSummary] = []
    number = latest.number
    while len(blocks) < count and number >= 0:
        block = latest if number == latest.number else await sdk.get_block(number)
        if block is None:
            logger.info("Block #%s unavailable, stopping history walk", number)
            break

        transactions_count = await sdk.get_block_transaction_count(number)
        if transactions_count is None:
            transactions_count = len(block.transactions)

        blocks.append(
            BlockSummary(**dict(block), transactions_count=transactions_count)
        )
        number -= 1

    return blocks


async def collect_recent_transactions(
    sdk: BlockchainSDK, required: int
) -> list[Transaction] | None:
    """Collect the ``required`` most recent transactions, newest block first.

    Returns:
        Up to ``required`` transactions, or None if the head is unavailable
    """
    head = await sdk.get_block_number()
    if head is None:
        return None

    transactions: list[Transaction] = []
    number = head
    while len(transactions) < required and number >= 0:
        block = await sdk.get_block(number, include_transactions=True)
        if block is None:
            logger.info("Block #%s unavailable, stopping history walk", number)
            break

        for tx in block.transactions:
            if isinstance(tx, Transaction):
                transactions.append(tx)
                if len(transactions) >= required:
                    break
        number -= 1

    return transactions


__all__ = ["collect_recent_transactions", "load_previous_blocks"]
