"""Bounded retry with exponential backoff for remote model calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from helpdesk_rag.config import get_provider_timeout, get_retry_attempts, get_retry_base_delay
from helpdesk_rag.errors import ConfigurationError, TransientProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Status codes worth retrying: rate limited, timeouts and gateway failures
_TRANSIENT_STATUS = {408, 429, 500, 502, 503, 504}


def raise_for_provider_status(resp: httpx.Response, provider: str) -> None:
    """Map an HTTP error status onto the transient/permanent error kinds."""
    if resp.is_success:
        return
    if resp.status_code in _TRANSIENT_STATUS:
        raise TransientProviderError(f"{provider} returned HTTP {resp.status_code}")
    raise ConfigurationError(f"{provider} rejected the request with HTTP {resp.status_code}")


async def _attempt(call: Callable[[], Awaitable[T]], description: str, timeout: float) -> T:
    try:
        return await asyncio.wait_for(call(), timeout=timeout)
    except TimeoutError as exc:
        raise TransientProviderError(f"{description} timed out after {timeout}s") from exc


async def retry_async(
    call: Callable[[], Awaitable[T]],
    *,
    description: str,
    attempts: int | None = None,
    base_delay: float | None = None,
    timeout: float | None = None,
) -> T:
    """Run ``call`` with a timeout, retrying transient failures with backoff.

    Only ``TransientProviderError`` and timeouts are retried; the final attempt
    raises whatever it hits. ``ConfigurationError`` propagates at once.
    """
    attempts = attempts if attempts is not None else get_retry_attempts()
    base_delay = base_delay if base_delay is not None else get_retry_base_delay()
    timeout = timeout if timeout is not None else get_provider_timeout()
    attempts = max(attempts, 1)

    for attempt in range(attempts - 1):
        try:
            return await _attempt(call, description, timeout)
        except TransientProviderError as exc:
            wait = base_delay * (2**attempt)
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                description,
                attempt + 1,
                attempts,
                wait,
                exc,
            )
            await asyncio.sleep(wait)

    return await _attempt(call, description, timeout)
