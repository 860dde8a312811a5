"""
HTTP Client Module

Builds the shared httpx.AsyncClient used for outbound provider calls, and a
request helper that retries transient failures with exponential backoff.

The client is created once in the application lifespan and handed to the
services that need it; nothing here holds it in module state.
"""

import asyncio
import logging
from typing import Any, Collection, Optional

import httpx


logger = logging.getLogger(__name__)


# ============== Configuration ==============

# Connection pool limits
MAX_CONNECTIONS = 100
MAX_KEEPALIVE_CONNECTIONS = 20
KEEPALIVE_EXPIRY = 30  # seconds

# Timeout configuration
DEFAULT_TIMEOUT = 30.0  # seconds

# Retry configuration
MAX_ATTEMPTS = 3
RETRY_BACKOFF_BASE = 0.5  # seconds
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


# ============== Client Construction ==============

def create_http_client(timeout: float = DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    """
    Create a pooled async HTTP client.

    Intended to be called once per process and closed on shutdown.

    Returns:
        httpx.AsyncClient: New client instance.
    """
    limits = httpx.Limits(
        max_connections=MAX_CONNECTIONS,
        max_keepalive_connections=MAX_KEEPALIVE_CONNECTIONS,
        keepalive_expiry=KEEPALIVE_EXPIRY,
    )
    return httpx.AsyncClient(
        limits=limits,
        timeout=httpx.Timeout(timeout),
        http2=True,
    )


def backoff_delay(attempt: int, base: float = RETRY_BACKOFF_BASE) -> float:
    """Delay before the retry that follows the given 1-based attempt."""
    return base * (2 ** (attempt - 1))


# ============== Request Helper with Retry ==============

async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    max_attempts: int = MAX_ATTEMPTS,
    backoff_base: Optional[float] = None,
    retry_statuses: Collection[int] = RETRYABLE_STATUS_CODES,
    **kwargs: Any,
) -> httpx.Response:
    """
    Make an HTTP request, retrying transient failures.

    A response whose status is in retry_statuses, or a transport error, is
    retried until max_attempts is reached. Any other response is returned
    to the caller as-is, including non-2xx ones.

    Args:
        client: Client to send the request with.
        method: HTTP method (GET, POST, etc.)
        url: Request URL
        max_attempts: Total attempts including the first one
        backoff_base: Initial delay in seconds, doubled per attempt
        retry_statuses: Status codes treated as transient
        **kwargs: Additional arguments passed to httpx request

    Returns:
        httpx.Response: The last response received

    Raises:
        httpx.TransportError: If the final attempt fails at transport level
    """
    base = RETRY_BACKOFF_BASE if backoff_base is None else backoff_base

    for attempt in range(1, max_attempts + 1):
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            if attempt >= max_attempts:
                raise
            wait_time = backoff_delay(attempt, base)
            logger.warning(
                "Transport error calling %s (attempt %d/%d), retrying in %.2fs: %s",
                url, attempt, max_attempts, wait_time, e,
            )
            await asyncio.sleep(wait_time)
            continue

        if response.status_code in retry_statuses and attempt < max_attempts:
            wait_time = backoff_delay(attempt, base)
            logger.warning(
                "Transient status %d from %s (attempt %d/%d), retrying in %.2fs",
                response.status_code, url, attempt, max_attempts, wait_time,
            )
            await asyncio.sleep(wait_time)
            continue

        return response

    raise httpx.HTTPError(f"Request to {url} made no attempts")
