"""Retrying async HTTP plumbing shared by the Shopify and Sanity clients."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Optional

import httpx

from .errors import SyncError

LOGGER = logging.getLogger("shopify_sanity_sync.http")

RETRYABLE_STATUS_CODES = frozenset({408, 429})


class RetryingHttpClient:
    """Base class owning an ``httpx.AsyncClient`` with retry and backoff.

    Subclasses set ``error_class`` to the domain exception raised once a
    request fails for good, and ``service_name`` for log messages.
    """

    error_class: type[SyncError] = SyncError
    service_name = "upstream"

    def __init__(
        self,
        *,
        timeout: float,
        max_retries: int,
        backoff_factor: float,
        backoff_max: float,
        headers: Optional[Mapping[str, str]] = None,
        limits: Optional[httpx.Limits] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff_factor = backoff_factor
        self._backoff_max = backoff_max
        self._headers = dict(headers or {})
        self._limits = limits
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def open(self) -> None:
        if self._client is not None:
            return
        kwargs: dict[str, Any] = {"timeout": self._timeout, "headers": self._headers}
        if self._limits is not None:
            kwargs["limits"] = self._limits
        if self._transport is not None:
            kwargs["transport"] = self._transport
        self._client = httpx.AsyncClient(**kwargs)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        if self._client is None:
            raise RuntimeError("HTTP client is not ready")

        max_attempts = max(1, self._max_retries + 1)
        for attempt in range(1, max_attempts + 1):
            final = attempt == max_attempts
            LOGGER.debug("%s %s (attempt %s/%s)", method, url, attempt, max_attempts)
            try:
                response = await self._client.request(
                    method, url, params=params, json=json
                )
            except httpx.RequestError as exc:
                if final:
                    raise self.error_class(f"Network error for {url}: {exc}") from exc
                reason = f"Network error ({exc})"
            else:
                if response.is_success:
                    return self._decode(response, url)
                if final or not is_retryable(response.status_code):
                    raise self._status_error(response, url)
                reason = f"HTTP {response.status_code}"
            await self._retry_wait(url, reason, attempt, max_attempts)

        raise self.error_class(f"Failed to call {url} after {max_attempts} attempts")

    async def _retry_wait(
        self, url: str, reason: str, attempt: int, max_attempts: int
    ) -> None:
        delay = self._backoff_delay(attempt)
        LOGGER.warning(
            "%s for %s (attempt %s/%s). Retrying in %.1fs",
            reason,
            url,
            attempt,
            max_attempts,
            delay,
        )
        await asyncio.sleep(delay)

    def _backoff_delay(self, attempt: int) -> float:
        """Backoff after ``attempt``, doubling each time up to ``backoff_max``."""
        delay = (max(self._backoff_factor, 0.0) or 1.0) * 2 ** (attempt - 1)
        if self._backoff_max > 0:
            delay = min(delay, self._backoff_max)
        return delay

    def _status_error(self, response: httpx.Response, url: str) -> SyncError:
        preview = response.text[:500]
        LOGGER.error(
            "%s returned HTTP %s for %s; response preview: %s",
            self.service_name,
            response.status_code,
            url,
            preview,
        )
        message = f"HTTP {response.status_code} for {url}"
        if preview:
            message += f"; response preview: {preview}"
        return self.error_class(message)

    def _decode(self, response: httpx.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise self.error_class(f"{url} returned a non-JSON body") from exc


def is_retryable(status_code: int) -> bool:
    return status_code >= 500 or status_code in RETRYABLE_STATUS_CODES
