"""Explorer endpoints. Routes stay thin, the logic lives in src.explorer."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Path

from src.api.dependencies import (
    SDKFactory,
    block_identifier,
    get_sdk_factory,
    open_sdk,
)
from src.api.schemas import (
    AddressResponse,
    AddressTransactionsRequest,
    BlockRangeRequest,
    NetworkStatsRequest,
    RpcRequest,
    TransactionCountResponse,
)
from src.explorer.history import collect_recent_transactions, load_previous_blocks
from src.explorer.loader import load_range_from
from src.explorer.stats import compute_stats
from src.helpers.parsers import format_ether
from src.helpers.serialization import serialize

router = APIRouter(prefix="/blockchain", tags=["explorer"])


@router.post("/block/{block}")
async def get_block(
    body: RpcRequest,
    block_id: int | str = Depends(block_identifier),
    factory: SDKFactory = Depends(get_sdk_factory),
) -> Any:
    async with open_sdk(factory, body.rpc_url) as sdk:
        result = await sdk.get_block(block_id)
    if result is None:
        raise HTTPException(404, detail="Block not found")
    return serialize(result)


@router.post("/block/{block}/transactions")
async def get_block_transactions(
    body: RpcRequest,
    block_id: int | str = Depends(block_identifier),
    factory: SDKFactory = Depends(get_sdk_factory),
) -> Any:
    async with open_sdk(factory, body.rpc_url) as sdk:
        transactions = await sdk.get_block_with_transactions(block_id)
    if transactions is None:
        raise HTTPException(404, detail="Block transactions not found")
    return serialize(transactions)


@router.post("/block/{block}/transaction-count")
async def get_transaction_count(
    body: RpcRequest,
    block_id: int | str = Depends(block_identifier),
    factory: SDKFactory = Depends(get_sdk_factory),
) -> TransactionCountResponse:
    async with open_sdk(factory, body.rpc_url) as sdk:
        count = await sdk.get_block_transaction_count(block_id)
    if count is None:
        raise HTTPException(404, detail="Block not found")
    return TransactionCountResponse(block_number=block_id, transaction_count=count)


@router.post("/blocks/previous/{count}")
async def get_previous_blocks(
    body: RpcRequest,
    count: int = Path(..., ge=1, le=100),
    factory: SDKFactory = Depends(get_sdk_factory),
) -> Any:
    async with open_sdk(factory, body.rpc_url) as sdk:
        blocks = await load_previous_blocks(sdk, count)
    if blocks is None:
        raise HTTPException(404, detail="Latest block not found")
    return serialize(blocks)


@router.post("/blocks/range")
async def get_blocks_in_range(
    body: BlockRangeRequest,
    factory: SDKFactory = Depends(get_sdk_factory),
) -> Any:
    async with open_sdk(factory, body.rpc_url) as sdk:
        blocks = await load_range_from(sdk, body.start_block, body.blocks_per_page)
    return serialize(blocks)


@router.post("/transactions/previous/{count}")
async def get_previous_transactions(
    body: RpcRequest,
    count: int = Path(..., ge=1, le=1000),
    factory: SDKFactory = Depends(get_sdk_factory),
) -> Any:
    async with open_sdk(factory, body.rpc_url) as sdk:
        transactions = await collect_recent_transactions(sdk, count)
    if transactions is None:
        raise HTTPException(404, detail="Latest block not found")
    return serialize(transactions)


@router.post("/transaction/{tx_hash}")
async def get_transaction(
    body: RpcRequest,
    tx_hash: str,
    factory: SDKFactory = Depends(get_sdk_factory),
) -> Any:
    async with open_sdk(factory, body.rpc_url) as sdk:
        transaction = await sdk.get_transaction(tx_hash)
    if transaction is None:
        raise HTTPException(404, detail="Transaction not found")
    return serialize(transaction)


@router.post("/address/{address}")
async def get_address_details(
    body: RpcRequest,
    address: str,
    factory: SDKFactory = Depends(get_sdk_factory),
) -> AddressResponse:
    async with open_sdk(factory, body.rpc_url) as sdk:
        details = await sdk.get_address_details(address)
    if details is None:
        raise HTTPException(404, detail="Address not found")
    return AddressResponse(
        address_type=details.address_type.value,
        balance=format_ether(details.balance),
    )


@router.post("/address/{address}/transactions")
async def get_address_transactions(
    body: AddressTransactionsRequest,
    address: str,
    factory: SDKFactory = Depends(get_sdk_factory),
) -> Any:
    async with open_sdk(factory, body.rpc_url) as sdk:
        activity = await sdk.get_address_type_and_transactions(
            address, body.block_count
        )
    if activity is None:
        raise HTTPException(404, detail="Address not found")
    return serialize(activity)


@router.post("/network-stats")
async def get_network_stats(
    body: NetworkStatsRequest,
    factory: SDKFactory = Depends(get_sdk_factory),
) -> Any:
    async with open_sdk(factory, body.rpc_url) as sdk:
        stats = await compute_stats(sdk, sample_size=body.sample_size)
    if stats is None:
        raise HTTPException(404, detail="Failed to retrieve network statistics")
    return serialize(stats)
