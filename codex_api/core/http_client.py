"""
Retrying HTTP Fetcher

Wraps a GET with a per-attempt timeout and bounded linear-backoff retry.
Used by the asset migration step to pull character images from the IPFS
gateway.

Contract:
- Each attempt is bounded by `timeout` seconds.
- Timeouts, connection errors and non-2xx responses are retried.
- The delay before attempt N+1 is `base_delay * N` (1s, 2s, 3s, ...).
- When attempts are exhausted the last response is returned, even if it is
  not 2xx. If no attempt produced a response, None is returned.

Callers treat None as "unavailable, skip this item", never as fatal.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3              # Total attempts (at least one is always made)
    base_delay: float = 1.0           # Seconds, multiplied by the attempt number
    timeout: float = 10.0             # Per-attempt timeout in seconds


class RetryingFetcher:
    """
    Async GET with timeout and linear backoff.

    Usage:
        async with RetryingFetcher() as fetcher:
            response = await fetcher.fetch(url, timeout=10.0, max_retries=3)
            if response is None or not response.is_success:
                ...
    """

    def __init__(
        self,
        retry_config: Optional[RetryConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        default_headers: Optional[Dict[str, str]] = None,
    ):
        self.retry_config = retry_config or RetryConfig()
        self.default_headers = default_headers or {}
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self):
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def init(self):
        """Initialize client without context manager. Must call close() when done."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self.default_headers,
                follow_redirects=True,
            )
            self._owns_client = True
        return self

    async def close(self):
        """Close the client if this fetcher created it."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _calculate_backoff(self, attempt: int) -> float:
        """Linear backoff: attempt 1 -> 1x base, attempt 2 -> 2x base."""
        return self.retry_config.base_delay * attempt

    async def fetch(
        self,
        url: str,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ) -> Optional[httpx.Response]:
        """
        GET `url` with retry.

        Args:
            url: Target URL
            timeout: Per-attempt timeout in seconds (default from RetryConfig)
            max_retries: Total attempts (default from RetryConfig)

        Returns:
            The first 2xx response, else the last response received, else None.
        """
        if not self._client:
            await self.init()

        timeout = self.retry_config.timeout if timeout is None else timeout
        attempts = max(1, self.retry_config.max_retries if max_retries is None else max_retries)

        last_response: Optional[httpx.Response] = None
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                logger.debug(f"[HTTP] GET {url} (attempt {attempt}/{attempts})")
                response = await self._client.get(url, timeout=timeout)
                last_response = response

                if response.is_success:
                    return response

                logger.warning(
                    f"[HTTP] {url}: Status {response.status_code} (attempt {attempt}/{attempts})"
                )

            except httpx.TimeoutException as e:
                last_error = e
                logger.warning(f"[HTTP] {url}: Timeout after {timeout}s (attempt {attempt}/{attempts})")

            except httpx.HTTPError as e:
                last_error = e
                logger.warning(f"[HTTP] {url}: {type(e).__name__}: {e} (attempt {attempt}/{attempts})")

            if attempt < attempts:
                delay = self._calculate_backoff(attempt)
                logger.debug(f"[HTTP] {url}: retrying in {delay:.1f}s")
                await asyncio.sleep(delay)

        if last_response is None:
            logger.error(f"[HTTP] {url}: All {attempts} attempts failed: {last_error}")
        else:
            logger.error(
                f"[HTTP] {url}: All {attempts} attempts failed, last status {last_response.status_code}"
            )
        return last_response
