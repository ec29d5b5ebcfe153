"""Pydantic models for explorer data and stream frames.

Field names are snake_case in Python; the JSON wire names are the camelCase
aliases, so always dump with ``by_alias=True`` (``serialize`` does).
"""

from enum import StrEnum

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class Transaction(BaseModel):
    """Ethereum transaction as returned by eth_getTransactionByHash."""

    hash: str
    block_hash: str | None = Field(default=None, alias="blockHash")
    block_number: int | None = Field(default=None, alias="blockNumber")
    transaction_index: int | None = Field(default=None, alias="index")
    type: int | None = None
    from_address: str = Field(..., alias="from")
    to: str | None = None
    value: int = 0
    nonce: int = 0
    gas: int = Field(default=0, alias="gasLimit")
    gas_price: int | None = Field(default=None, alias="gasPrice")
    max_fee_per_gas: int | None = Field(default=None, alias="maxFeePerGas")
    max_priority_fee_per_gas: int | None = Field(
        default=None, alias="maxPriorityFeePerGas"
    )
    data: str = "0x"
    chain_id: int | None = Field(default=None, alias="chainId")

    model_config = ConfigDict(populate_by_name=True)


class Block(BaseModel):
    """Ethereum block.

    ``transactions`` holds hashes, or full Transaction objects when the block
    was fetched in with-transactions mode.
    """

    number: int
    hash: str | None = None
    parent_hash: str = Field(..., alias="parentHash")
    timestamp: int
    nonce: str | None = None
    difficulty: int = 0
    gas_limit: int = Field(..., alias="gasLimit")
    gas_used: int = Field(..., alias="gasUsed")
    miner: str
    extra_data: str = Field(default="0x", alias="extraData")
    base_fee_per_gas: int | None = Field(default=None, alias="baseFeePerGas")
    state_root: str | None = Field(default=None, alias="stateRoot")
    receipts_root: str | None = Field(default=None, alias="receiptsRoot")
    size: int | None = None
    transactions: list[str | Transaction] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @property
    def transaction_hashes(self) -> list[str]:
        """Hashes of the block's transactions, whatever mode it was fetched in."""
        return [tx if isinstance(tx, str) else tx.hash for tx in self.transactions]


class BlockSummary(Block):
    """Block merged with its transaction count (new-block pushes, history)."""

    transactions_count: int | None = Field(default=None, alias="transactionsCount")


class AddressType(StrEnum):
    """Kind of account found at an address."""

    CONTRACT = "Contract"
    WALLET = "Wallet"


class AddressDetails(BaseModel):
    """Account kind and raw balance (wei) of an address."""

    address_type: AddressType = Field(..., alias="addressType")
    balance: int

    model_config = ConfigDict(populate_by_name=True)


class AddressActivity(BaseModel):
    """Account kind and the transactions touching it in recent blocks."""

    address_type: AddressType = Field(..., alias="addressType")
    transactions: list[Transaction] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class FeeData(BaseModel):
    """Current network fee snapshot (all values in wei)."""

    gas_price: int | None = Field(default=None, alias="gasPrice")
    max_fee_per_gas: int | None = Field(default=None, alias="maxFeePerGas")
    max_priority_fee_per_gas: int | None = Field(
        default=None, alias="maxPriorityFeePerGas"
    )

    model_config = ConfigDict(populate_by_name=True)


class GasPrices(BaseModel):
    """Gas price tiers in gwei."""

    average: float
    fast: float
    slow: float


class NetworkStats(BaseModel):
    """Snapshot of network health, derived fresh on every request or tick.

    Fields listed in ``estimated_fields`` hold placeholder figures rather
    than values measured on chain.
    """

    total_blocks: int = Field(..., alias="totalBlocks")
    total_addresses: int = Field(..., alias="totalAddresses")
    total_transactions: int = Field(..., alias="totalTransactions")
    average_block_time: float = Field(..., alias="averageBlockTime")
    total_gas_used: str = Field(..., alias="totalGasUsed")
    transactions_today: int = Field(..., alias="transactionsToday")
    gas_used_today: str = Field(..., alias="gasUsedToday")
    gas_prices: GasPrices = Field(..., alias="gasPrices")
    static_gas_price: str = Field(..., alias="staticGasPrice")
    network_utilization_percentage: float = Field(
        ..., alias="networkUtilizationPercentage"
    )
    estimated_fields: list[str] = Field(
        default_factory=list, alias="estimatedFields"
    )

    model_config = ConfigDict(populate_by_name=True)


class DailyTransactionCount(BaseModel):
    """Transaction count of one calendar day (UTC)."""

    date: str
    transactions_count: int = Field(..., alias="transactionsCount")

    model_config = ConfigDict(populate_by_name=True)


class MessageType(StrEnum):
    """Inbound socket message types."""

    INIT = "INIT"
    STATS_INIT = "STATS_INIT"
    DAILY_TRX_INIT = "DAILY_TRX_INIT"


class InitMessage(BaseModel):
    """Inbound subscription request."""

    type: str
    rpc_url: str | None = Field(default=None, alias="rpcUrl")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ConnectedFrame(BaseModel):
    """Greeting sent once a client connects."""

    message: str = "Connected to WebSocket"


class StatsUpdateFrame(BaseModel):
    """Push of a fresh NetworkStats snapshot."""

    type: Literal["STATS_UPDATE"] = "STATS_UPDATE"
    stats: NetworkStats


class DailyTrxUpdateFrame(BaseModel):
    """Push of the daily transaction series."""

    type: Literal["DAILY_TRX_UPDATE"] = "DAILY_TRX_UPDATE"
    data: list[DailyTransactionCount]


class ErrorFrame(BaseModel):
    """Rejection of an inbound message."""

    type: Literal["ERROR"] = "ERROR"
    error: str


__all__ = [
    "AddressActivity",
    "AddressDetails",
    "AddressType",
    "Block",
    "BlockSummary",
    "ConnectedFrame",
    "DailyTransactionCount",
    "DailyTrxUpdateFrame",
    "ErrorFrame",
    "FeeData",
    "GasPrices",
    "InitMessage",
    "MessageType",
    "NetworkStats",
    "StatsUpdateFrame",
    "Transaction",
]
