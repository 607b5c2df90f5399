"""
Feature service transport: one HTTP GET with timeout and retry.

Retry policy (applied uniformly to every dataset):
    - HTTP 504 or a network-level error (aiohttp.ClientError, timeout)
      → retry up to FEATURE_MAX_RETRIES times, waiting base * 2**attempt
    - any other non-200 status → TransportError immediately
    - body that is not a JSON object → MalformedResponseError

Usage:
    async with FeatureServiceTransport() as fetch:
        payload = await fetch(request.url, request.params)

Anything with the same ``await fetch(url, params) -> dict`` signature can be
handed to the paginator instead.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp

from engine.errors import MalformedResponseError, TransportError
from shared.config import settings
from shared.constants import RETRYABLE_STATUS

logger = logging.getLogger("Transport")

Fetch = Callable[[str, Optional[Dict[str, Any]]], Awaitable[Dict[str, Any]]]


class FeatureServiceTransport:
    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        timeout_s: Optional[float] = None,
        max_retries: Optional[int] = None,
        base_delay_s: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._session = session
        self._owns_session = session is None
        self.timeout_s = settings.FEATURE_REQUEST_TIMEOUT_S if timeout_s is None else timeout_s
        self.max_retries = settings.FEATURE_MAX_RETRIES if max_retries is None else max_retries
        self.base_delay_s = settings.FEATURE_RETRY_BASE_DELAY_S if base_delay_s is None else base_delay_s
        self._sleep = sleep

    async def __aenter__(self) -> "FeatureServiceTransport":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(headers={"Accept": "application/json"})
        return self._session

    async def _get_once(self, url: str, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        timeout = aiohttp.ClientTimeout(total=self.timeout_s)
        async with self._get_session().get(url, params=params, timeout=timeout) as response:
            if response.status != 200:
                raise TransportError(f"HTTP {response.status}", status=response.status, url=url)
            try:
                data = await response.json(content_type=None)
            except ValueError as e:
                raise MalformedResponseError(f"Invalid JSON from {url}: {e}") from e
            if not isinstance(data, dict):
                raise MalformedResponseError(f"Expected a JSON object from {url}")
            return data

    async def __call__(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            try:
                return await self._get_once(url, params)
            except TransportError as e:
                if e.status != RETRYABLE_STATUS:
                    logger.error(f"Request failed: HTTP {e.status}", extra={"url": url, "status": e.status})
                    raise
                error = e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                error = TransportError(f"Network error: {e!r}", url=url)

            if attempt == attempts - 1:
                break
            delay = self.base_delay_s * (2 ** attempt)
            logger.warning(
                f"Retrying in {delay:.2f}s ({attempt + 1}/{self.max_retries}): {error}",
                extra={"url": url, "attempt": attempt + 1, "delay_s": delay, "status": error.status},
            )
            await self._sleep(delay)

        logger.error(
            f"Giving up after {self.max_retries} retries: {error}",
            extra={"url": url, "status": error.status},
        )
        raise TransportError(
            f"{error} (after {self.max_retries} retries)", status=error.status, url=url
        ) from error
