"""Request bodies of the explorer API."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.helpers.constants import ADDRESS_SCAN_BLOCKS


class CamelModel(BaseModel):
    """Base model that reads and writes snake_case fields as camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class RpcRequest(CamelModel):
    """Every explorer call names the JSON-RPC endpoint it reads from."""

    rpc_url: str = Field(..., min_length=1)


class BlockRangeRequest(RpcRequest):
    start_block: int | Literal["latest"] = "latest"
    blocks_per_page: int = Field(default=10, le=1000)


class AddressTransactionsRequest(RpcRequest):
    """How many blocks back from the head to scan for the address."""

    block_count: int = Field(default=ADDRESS_SCAN_BLOCKS, ge=1, le=100)


class NetworkStatsRequest(RpcRequest):
    sample_size: int = Field(default=0, ge=0, le=1000)


class AddressResponse(CamelModel):
    address_type: str
    balance: str


class TransactionCountResponse(CamelModel):
    block_number: int | str
    transaction_count: int


__all__ = [
    "AddressResponse",
    "AddressTransactionsRequest",
    "BlockRangeRequest",
    "CamelModel",
    "NetworkStatsRequest",
    "RpcRequest",
    "TransactionCountResponse",
]
