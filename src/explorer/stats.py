"""Network statistics aggregation.

Gas price tiers always come from live fee data. The throughput figures
(blocks, transactions, gas per day) are placeholders unless a block sample is
requested, in which case they are measured from the most recent blocks.
Every field still holding a placeholder is named in ``estimatedFields``.
"""

from typing import Any

from src.explorer.loader import load_range
from src.explorer.models import GasPrices, NetworkStats
from src.explorer.sdk import BlockchainSDK
from src.helpers.constants import SECONDS_PER_DAY
from src.helpers.logging import get_logger
from src.helpers.parsers import format_gwei


logger = get_logger(__name__)

FAST_MULTIPLIER = 1.2
SLOW_MULTIPLIER = 0.8

# Placeholder figures used until measured
PLACEHOLDER_FIGURES: dict[str, Any] = {
    "total_blocks": 100,
    "total_addresses": 1_000_000,
    "total_transactions": 100,
    "average_block_time": 100.0,
    "total_gas_used": "1000",
    "transactions_today": 700,
    "gas_used_today": "1000",
}


def gas_price_tiers(average: float) -> GasPrices:
    """Average gas price with the fast (+20%) and slow (-20%) bands."""
    return GasPrices(
        average=average,
        fast=average * FAST_MULTIPLIER,
        slow=average * SLOW_MULTIPLIER,
    )


def utilization_percentage(gas_used_today: int, total_transactions: int) -> float:
    """Gas used relative to total transactions, as a percentage (2 decimals)."""
    if total_transactions == 0:
        return 0.0
    return round(gas_used_today / total_transactions * 100, 2)


async def measure_block_sample(
    sdk: BlockchainSDK, sample_size: int
) -> dict[str, Any] | None:
    """Derive throughput figures from the last ``sample_size`` blocks.

    Returns:
        Measured figures keyed like PLACEHOLDER_FIGURES, or None when fewer
        than two blocks could be loaded or they span no time
    """
    head = await sdk.get_block_number()
    if head is None:
        return None

    blocks = await load_range(sdk, head, sample_size)
    if len(blocks) < 2:
        return None

    span = blocks[0].timestamp - blocks[-1].timestamp
    intervals = blocks[0].number - blocks[-1].number
    if span <= 0 or intervals <= 0:
        return None

    average_block_time = span / intervals
    blocks_per_day = int(SECONDS_PER_DAY / average_block_time)
    sample_transactions = sum(len(block.transactions) for block in blocks)
    sample_gas = sum(block.gas_used for block in blocks)
    gas_per_day = round(sample_gas / len(blocks) * blocks_per_day)

    return {
        "total_blocks": blocks_per_day,
        "total_transactions": sample_transactions,
        "average_block_time": round(average_block_time, 2),
        "total_gas_used": str(gas_per_day),
        "transactions_today": round(
            sample_transactions / len(blocks) * blocks_per_day
        ),
        "gas_used_today": str(gas_per_day),
    }


async def compute_stats(
    sdk: BlockchainSDK, *, sample_size: int = 0
) -> NetworkStats | None:
    """Build a fresh NetworkStats snapshot.

    Args:
        sdk: Explorer SDK bound to the endpoint to read from
        sample_size: Number of recent blocks to measure throughput from;
            0 keeps the placeholder figures

    Returns:
        NetworkStats, or None if fee data is unavailable
    """
    fee_data = await sdk.get_fee_data()
    if fee_data is None or fee_data.gas_price is None:
        logger.error("Error fetching network stats: fee data unavailable")
        return None

    static_gas_price = format_gwei(fee_data.gas_price)

    figures = dict(PLACEHOLDER_FIGURES)
    estimated = set(PLACEHOLDER_FIGURES)
    if sample_size > 0:
        measured = await measure_block_sample(sdk, sample_size)
        if measured is None:
            logger.warning(
                "Could not measure %s recent blocks, using placeholders",
                sample_size,
            )
        else:
            figures.update(measured)
            estimated -= measured.keys()

    utilization = utilization_percentage(
        int(figures["gas_used_today"]), figures["total_transactions"]
    )

    return NetworkStats(
        **figures,
        gas_prices=gas_price_tiers(float(static_gas_price)),
        static_gas_price=static_gas_price,
        network_utilization_percentage=utilization,
        estimated_fields=sorted(
            NetworkStats.model_fields[name].alias or name for name in estimated
        ),
    )


__all__ = [
    "PLACEHOLDER_FIGURES",
    "compute_stats",
    "gas_price_tiers",
    "measure_block_sample",
    "utilization_percentage",
]
