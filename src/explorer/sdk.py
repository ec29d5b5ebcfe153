"""Blockchain explorer SDK.

Thin adapter over one JSON-RPC endpoint. Every public method absorbs
provider errors and returns None (or an empty list) instead of raising, so
callers treat a missing value as "unavailable this round". Only construction
with an unusable endpoint raises.

Example:
    ```python
    async with BlockchainSDK("https://eth.llamarpc.com") as sdk:
        head = await sdk.get_block("latest")
        stats_fee = await sdk.get_fee_data()
    ```
"""

import asyncio

from typing import Any, Self, TypeAlias

import httpx

from src.explorer.models import (
    AddressActivity,
    AddressDetails,
    AddressType,
    Block,
    FeeData,
    Transaction,
)
from src.helpers.config import get_rpc_timeout
from src.helpers.constants import (
    ADDRESS_SCAN_BLOCKS,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
)
from src.helpers.http import create_http_client, handle_http_errors, retry_with_backoff
from src.helpers.logging import get_logger
from src.helpers.parsers import (
    is_block_hash,
    parse_hex_int,
    parse_optional_hex_int,
    to_block_param,
)
from src.helpers.rpc import RPCClient, RPCError


logger = get_logger(__name__)

BlockId: TypeAlias = int | str


def parse_transaction(raw: dict[str, Any]) -> Transaction:
    """Parse a raw JSON-RPC transaction object into a Transaction model."""
    return Transaction(
        hash=raw["hash"],
        block_hash=raw.get("blockHash"),
        block_number=parse_optional_hex_int(raw.get("blockNumber")),
        transaction_index=parse_optional_hex_int(raw.get("transactionIndex")),
        type=parse_optional_hex_int(raw.get("type")),
        from_address=raw["from"],
        to=raw.get("to"),
        value=parse_hex_int(raw.get("value")),
        nonce=parse_hex_int(raw.get("nonce")),
        gas=parse_hex_int(raw.get("gas")),
        gas_price=parse_optional_hex_int(raw.get("gasPrice")),
        max_fee_per_gas=parse_optional_hex_int(raw.get("maxFeePerGas")),
        max_priority_fee_per_gas=parse_optional_hex_int(
            raw.get("maxPriorityFeePerGas")
        ),
        data=raw.get("input") or raw.get("data") or "0x",
        chain_id=parse_optional_hex_int(raw.get("chainId")),
    )


def parse_block(raw: dict[str, Any]) -> Block:
    """Parse a raw JSON-RPC block object into a Block model."""
    transactions: list[str | Transaction] = [
        tx if isinstance(tx, str) else parse_transaction(tx)
        for tx in raw.get("transactions", [])
    ]
    return Block(
        number=parse_hex_int(raw["number"]),
        hash=raw.get("hash"),
        parent_hash=raw["parentHash"],
        timestamp=parse_hex_int(raw["timestamp"]),
        nonce=raw.get("nonce"),
        difficulty=parse_hex_int(raw.get("difficulty")),
        gas_limit=parse_hex_int(raw["gasLimit"]),
        gas_used=parse_hex_int(raw["gasUsed"]),
        miner=raw["miner"],
        extra_data=raw.get("extraData", "0x"),
        base_fee_per_gas=parse_optional_hex_int(raw.get("baseFeePerGas")),
        state_root=raw.get("stateRoot"),
        receipts_root=raw.get("receiptsRoot"),
        size=parse_optional_hex_int(raw.get("size")),
        transactions=transactions,
    )


class BlockchainSDK:
    """Explorer primitives bound to a single JSON-RPC endpoint."""

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the SDK.

        Args:
            rpc_url: JSON-RPC endpoint URL
            timeout: Request timeout in seconds (default: RPC_TIMEOUT env)
            client: Optional HTTP client; when omitted the SDK creates and
                owns one, closed by aclose()

        Raises:
            ValueError: If rpc_url is empty or not an HTTP(S) URL
        """
        timeout = timeout if timeout is not None else get_rpc_timeout()
        self.rpc = RPCClient(rpc_url, timeout=timeout)
        self._owns_client = client is None
        self.client = client or create_http_client(timeout=timeout)

    @property
    def rpc_url(self) -> str:
        return self.rpc.rpc_url

    async def aclose(self) -> None:
        """Close the underlying HTTP client if the SDK created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _call(self, method: str, params: list[Any]) -> Any:
        return await self.rpc.call(self.client, method, params)

    async def _fetch_block(self, block: BlockId, *, full: bool) -> Block | None:
        if is_block_hash(block):
            raw = await self._call("eth_getBlockByHash", [block, full])
        else:
            raw = await self._call(
                "eth_getBlockByNumber", [to_block_param(block), full]
            )
        if not raw:
            return None
        return parse_block(raw)

    @handle_http_errors()
    async def get_block(
        self, block: BlockId, include_transactions: bool = False
    ) -> Block | None:
        """Fetch a block by number, tag ("latest", ...) or hash.

        Args:
            block: Block number, tag or 32-byte block hash
            include_transactions: Embed full transactions instead of hashes

        Returns:
            Block, or None if it does not exist or the fetch failed
        """
        return await self._fetch_block(block, full=include_transactions)

    @handle_http_errors()
    async def get_block_with_transactions(
        self, block: BlockId
    ) -> list[Transaction] | None:
        """Fetch the full transactions of a block."""
        result = await self._fetch_block(block, full=True)
        if result is None:
            return None
        return [tx for tx in result.transactions if isinstance(tx, Transaction)]

    @handle_http_errors()
    async def get_block_gas_used(self, block: BlockId) -> int | None:
        result = await self._fetch_block(block, full=False)
        return result.gas_used if result else None

    @handle_http_errors()
    async def get_block_miner(self, block: BlockId) -> str | None:
        result = await self._fetch_block(block, full=False)
        return result.miner if result else None

    @handle_http_errors()
    async def get_transaction(self, tx_hash: str) -> Transaction | None:
        """Fetch a transaction by hash (None when unknown)."""
        raw = await self._call("eth_getTransactionByHash", [tx_hash])
        if not raw:
            return None
        return parse_transaction(raw)

    @handle_http_errors()
    async def get_block_transaction_count(self, block: BlockId) -> int | None:
        """Number of transactions in a block (None when the block is unknown)."""
        if is_block_hash(block):
            result = await self._call(
                "eth_getBlockTransactionCountByHash", [block]
            )
        else:
            result = await self._call(
                "eth_getBlockTransactionCountByNumber", [to_block_param(block)]
            )
        return parse_optional_hex_int(result)

    @handle_http_errors()
    async def get_address_details(self, address: str) -> AddressDetails | None:
        """Classify an address as contract or wallet and fetch its balance.

        An address holds a contract when bytecode is deployed at it.
        """
        code, balance = await asyncio.gather(
            self._call("eth_getCode", [address, "latest"]),
            self._call("eth_getBalance", [address, "latest"]),
        )
        is_contract = bool(code) and code != "0x"
        return AddressDetails(
            address_type=AddressType.CONTRACT if is_contract else AddressType.WALLET,
            balance=parse_hex_int(balance),
        )

    async def _optional_call(self, method: str, params: list[Any]) -> Any:
        # Fee fields some chains don't support (pre-London, non-EIP-1559)
        try:
            return await self._call(method, params)
        except (RPCError, httpx.HTTPError) as e:
            logger.debug("%s unavailable: %s", method, e)
            return None

    @handle_http_errors()
    async def get_fee_data(self) -> FeeData | None:
        """Current fee snapshot.

        maxFeePerGas follows the usual wallet estimate of twice the latest
        base fee plus the priority fee, when the chain reports both.
        """
        gas_price, priority_fee, latest = await asyncio.gather(
            self._call("eth_gasPrice", []),
            self._optional_call("eth_maxPriorityFeePerGas", []),
            self._optional_call("eth_getBlockByNumber", ["latest", False]),
        )

        max_priority_fee = parse_optional_hex_int(priority_fee)
        base_fee = (
            parse_optional_hex_int(latest.get("baseFeePerGas")) if latest else None
        )
        max_fee = None
        if base_fee is not None and max_priority_fee is not None:
            max_fee = base_fee * 2 + max_priority_fee

        return FeeData(
            gas_price=parse_optional_hex_int(gas_price),
            max_fee_per_gas=max_fee,
            max_priority_fee_per_gas=max_priority_fee,
        )

    @handle_http_errors()
    async def get_block_number(self) -> int | None:
        """Current chain head."""
        result = await self._call("eth_blockNumber", [])
        return parse_optional_hex_int(result)

    async def get_transactions_by_address(
        self, address: str, block_count: int = ADDRESS_SCAN_BLOCKS
    ) -> list[Transaction]:
        """Transactions sent from or to an address in the last blocks.

        Args:
            address: Account address (compared case-insensitively)
            block_count: How many blocks back from the head to scan

        Returns:
            Matching transactions, newest block first
        """
        head = await self.get_block_number()
        if head is None:
            return []

        target = address.lower()
        matches: list[Transaction] = []
        for number in range(head, max(head - block_count, -1), -1):
            block = await self.get_block(number, include_transactions=True)
            if block is None:
                continue
            for tx in block.transactions:
                if not isinstance(tx, Transaction):
                    continue
                if tx.from_address.lower() == target or (
                    tx.to is not None and tx.to.lower() == target
                ):
                    matches.append(tx)
        return matches

    async def get_address_type_and_transactions(
        self, address: str, block_count: int = ADDRESS_SCAN_BLOCKS
    ) -> AddressActivity | None:
        """Address kind plus its recent transactions."""
        details = await self.get_address_details(address)
        if details is None:
            return None
        transactions = await self.get_transactions_by_address(address, block_count)
        return AddressActivity(
            address_type=details.address_type, transactions=transactions
        )


class RetryingBlockchainSDK(BlockchainSDK):
    """BlockchainSDK whose RPC calls are retried with exponential backoff.

    Only transient failures (transport errors, 429 and 5xx) are retried.
    Opt-in: retries change the timing of every primitive, so the plain SDK
    stays the default everywhere.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        max_retries: int = MAX_RETRIES,
        base_delay: float = RETRY_BASE_DELAY,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(rpc_url, timeout=timeout, client=client)
        self.max_retries = max_retries
        self.base_delay = base_delay

    async def _call(self, method: str, params: list[Any]) -> Any:
        parent_call = super()._call

        @retry_with_backoff(
            max_retries=self.max_retries, base_delay=self.base_delay
        )
        async def attempt() -> Any:
            return await parent_call(method, params)

        return await attempt()


__all__ = [
    "BlockId",
    "BlockchainSDK",
    "RetryingBlockchainSDK",
    "parse_block",
    "parse_transaction",
]
