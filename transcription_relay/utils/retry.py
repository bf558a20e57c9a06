"""Outbound HTTP calls with bounded retry and linear backoff.

Every call to a transcription provider goes through request_with_retry().
Transport exceptions and 5xx responses are transient; everything else is
returned to the caller on first occurrence.
"""

import asyncio
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay before the retry that follows the zero-based ``attempt``."""
    return base_delay * (attempt + 1)


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request, retrying transient failures.

    Delay follows the formula: base_delay * (attempt + 1)

    Args:
        client: Shared httpx client used for every attempt.
        method: HTTP method (e.g., "POST").
        url: Target URL.
        max_attempts: Total number of attempts, including the first (default 3).
        base_delay: Seconds to wait before the first retry (default 1.0).
        **kwargs: Passed through to ``client.request`` (json, headers, ...).

    Returns:
        The first 2xx response, the first non-retryable response, or the
        5xx response of the final attempt.

    Raises:
        httpx.TransportError: If the final attempt fails at the transport level.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(max_attempts):
        is_last = attempt == max_attempts - 1
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            if is_last:
                raise
            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                "Retry %d/%d for %s %s after %.1fs: %s",
                attempt + 1,
                max_attempts - 1,
                method,
                url,
                delay,
                exc,
            )
            await asyncio.sleep(delay)
            continue

        if response.is_success:
            return response

        if response.status_code >= 500 and not is_last:
            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                "Retry %d/%d for %s %s after %.1fs: HTTP %d",
                attempt + 1,
                max_attempts - 1,
                method,
                url,
                delay,
                response.status_code,
                extra={"status_code": response.status_code},
            )
            await asyncio.sleep(delay)
            continue

        return response

    # Unreachable: the final attempt always returns or raises.
    raise RuntimeError("request_with_retry exhausted without a result")
