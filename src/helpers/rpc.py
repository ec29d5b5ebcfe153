"""Ethereum JSON-RPC client utilities."""

from typing import Any

import httpx

from src.helpers.rpc_models import JsonRpcError, JsonRpcRequest, JsonRpcResponse


class RPCError(ValueError):
    """Error object returned by a JSON-RPC endpoint."""

    def __init__(self, error: JsonRpcError) -> None:
        self.code = error.code
        self.message = error.message
        super().__init__(f"RPC error {error.code}: {error.message}")


class RPCClient:
    """Minimal Ethereum JSON-RPC client over HTTP(S)."""

    def __init__(self, rpc_url: str, timeout: float = 30.0) -> None:
        """Initialize RPC client.

        Args:
            rpc_url: Ethereum JSON-RPC endpoint URL (http or https)
            timeout: Default timeout for requests in seconds

        Raises:
            ValueError: If rpc_url is empty or is not an HTTP(S) URL
        """
        if not rpc_url:
            msg = "RPC URL cannot be empty"
            raise ValueError(msg)

        try:
            url = httpx.URL(rpc_url)
        except httpx.InvalidURL as e:
            msg = f"Invalid RPC URL: {rpc_url}"
            raise ValueError(msg) from e
        if url.scheme not in {"http", "https"} or not url.host:
            msg = f"Invalid RPC URL: {rpc_url}"
            raise ValueError(msg)

        self.rpc_url = rpc_url
        self.timeout = timeout

    async def call(
        self,
        client: httpx.AsyncClient,
        method: str,
        params: list[Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Make a single JSON-RPC call.

        Args:
            client: HTTP client instance
            method: RPC method name (e.g., "eth_blockNumber")
            params: Method parameters list
            timeout: Optional timeout override

        Returns:
            RPC result value (None when the node answers with a null result)

        Raises:
            httpx.HTTPError: If the HTTP request fails
            RPCError: If the RPC response contains an error
        """
        payload = JsonRpcRequest(method=method, params=params or [], id=1)

        response = await client.post(
            self.rpc_url,
            json=payload.model_dump(),
            timeout=timeout or self.timeout,
        )
        response.raise_for_status()
        result = JsonRpcResponse.model_validate(response.json())

        if result.error is not None:
            raise RPCError(result.error)

        return result.result


__all__ = [
    "RPCClient",
    "RPCError",
]
