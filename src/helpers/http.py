"""HTTP client factory and the error policy decorators used by the SDK."""

from asyncio import sleep
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from functools import wraps

from typing import Any, ParamSpec, TypeVar

import httpx

from src.helpers.constants import (
    DEFAULT_TIMEOUT,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
)
from src.helpers.logging import get_logger


logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# Rate limiting and server-side failures; anything else in 4xx is final
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def is_transient(error: BaseException) -> bool:
    """Whether an RPC failure is worth another attempt.

    Transport failures (timeouts, refused or dropped connections) and
    retryable HTTP statuses are transient. JSON-RPC error objects are not:
    the node answered, and will answer the same way again.
    """
    if isinstance(error, httpx.TransportError):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in RETRYABLE_STATUS_CODES
    return False


def backoff_delay(
    attempt: int,
    base_delay: float = RETRY_BASE_DELAY,
    max_delay: float = RETRY_MAX_DELAY,
) -> float:
    """Delay before retry number ``attempt + 1`` (doubling, capped)."""
    return min(base_delay * (2**attempt), max_delay)


def retry_with_backoff(
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
    max_delay: float = RETRY_MAX_DELAY,
    *,
    retry_if: Callable[[BaseException], bool] = is_transient,
    log_errors: bool = True,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator to retry async functions with exponential backoff.

    Args:
        max_retries: Maximum number of attempts (default: 5)
        base_delay: Delay after the first failed attempt in seconds (default: 1.0)
        max_delay: Maximum delay between attempts (default: 60.0)
        retry_if: Predicate deciding whether a failure is retried; other
            failures propagate at once (default: is_transient)
        log_errors: Whether to log retry attempts (default: True)

    Returns:
        Decorated function that re-raises the last failure once attempts run out

    Example:
        ```python
        from src.helpers.http import retry_with_backoff

        @retry_with_backoff(max_retries=3, base_delay=0.5)
        async def head() -> int:
            return await rpc.call(client, "eth_blockNumber")

        # Retries timeouts and 5xx after 0.5s, then 1s; RPC errors raise at once
        ```
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    final = attempt == max_retries - 1
                    if final or not retry_if(e):
                        if log_errors and final:
                            logger.error(
                                "%s failed after %d attempts: %s",
                                func.__name__,
                                max_retries,
                                e,
                            )
                        raise

                    delay = backoff_delay(attempt, base_delay, max_delay)
                    if log_errors:
                        logger.warning(
                            "%s attempt %d/%d failed (%s), retrying in %.2fs",
                            func.__name__,
                            attempt + 1,
                            max_retries,
                            e,
                            delay,
                        )
                    await sleep(delay)

            msg = f"{func.__name__}: max_retries must be at least 1"
            raise ValueError(msg)

        return wrapper

    return decorator


def create_http_client(
    timeout: float = DEFAULT_TIMEOUT, **kwargs: Any
) -> httpx.AsyncClient:
    """Create the AsyncClient an SDK instance talks to its node through."""
    return httpx.AsyncClient(timeout=timeout, **kwargs)


def describe_error(error: Exception) -> str:
    """Short, log-friendly description of an RPC-side failure."""
    if isinstance(error, httpx.HTTPStatusError):
        body = error.response.text[:100] if error.response.text else ""
        return f"HTTP {error.response.status_code} {body}".rstrip()
    if isinstance(error, httpx.TimeoutException):
        return f"timed out ({type(error).__name__})"
    return f"{type(error).__name__}: {error}"


def handle_http_errors(
    default_return: T | None = None,
    *,
    log_errors: bool = True,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T | None]]]:
    """Decorator turning any provider failure into ``default_return``.

    HTTP and transport errors, JSON-RPC error objects (``RPCError``) and
    malformed payloads are logged as warnings; anything else is logged with
    its traceback. Cancellation is never swallowed.

    Args:
        default_return: Value to return on error (default: None)
        log_errors: Whether to log errors (default: True)

    Example:
        ```python
        @handle_http_errors()
        async def get_block(self, block: BlockId) -> Block | None:
            return await self._fetch_block(block, full=False)

        # A dead endpoint yields None instead of an exception
        ```
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T | None]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T | None:
            try:
                return await func(*args, **kwargs)
            except (httpx.HTTPError, ValueError, KeyError) as e:
                if log_errors:
                    logger.warning("%s failed: %s", func.__name__, describe_error(e))
                return default_return
            except Exception:
                if log_errors:
                    logger.exception("%s unexpected error", func.__name__)
                return default_return

        return wrapper

    return decorator


@asynccontextmanager
async def log_and_suppress_errors(
    operation_name: str,
    *,
    log_level: str = "warning",
    suppress: bool = True,
) -> AsyncIterator[None]:
    """Log a failing block and optionally keep going.

    Used around each streamer tick so one bad round never ends a channel.

    Args:
        operation_name: Description of the operation for logging
        log_level: Logging level ("debug", "info", "warning", "error")
        suppress: If False, re-raise after logging
    """
    try:
        yield
    except Exception as e:
        getattr(logger, log_level, logger.warning)(
            "%s failed: %s", operation_name, describe_error(e)
        )
        if not suppress:
            raise


__all__ = [
    "RETRYABLE_STATUS_CODES",
    "backoff_delay",
    "create_http_client",
    "describe_error",
    "handle_http_errors",
    "is_transient",
    "log_and_suppress_errors",
    "retry_with_backoff",
]
