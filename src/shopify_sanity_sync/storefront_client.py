"""Async client for the Shopify Storefront GraphQL API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Optional

import httpx

from .errors import UpstreamFetchFailure
from .http_client import RetryingHttpClient
from .models import StorefrontConfig

LOGGER = logging.getLogger("shopify_sanity_sync.storefront")

PRODUCT_METAFIELD_QUERY = """
query productMetafield($id: ID!, $key: String!, $namespace: String!) {
  product(id: $id) {
    metafield(key: $key, namespace: $namespace) {
      key
      value
    }
  }
}
"""

PRODUCT_SEO_QUERY = """
query productSeo($id: ID!) {
  product(id: $id) {
    seo {
      description
      title
    }
  }
}
"""


class StorefrontClient(RetryingHttpClient):
    """Runs small parameterised GraphQL queries against one storefront."""

    error_class = UpstreamFetchFailure
    service_name = "Shopify storefront"

    def __init__(
        self,
        config: StorefrontConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(
            timeout=config.timeout,
            max_retries=config.max_retries,
            backoff_factor=config.backoff_factor,
            backoff_max=config.backoff_max,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
                "X-Shopify-Storefront-Access-Token": config.access_token,
                "User-Agent": "shopify-sanity-sync/1.0",
            },
            limits=httpx.Limits(
                max_connections=config.max_concurrency,
                max_keepalive_connections=config.max_concurrency,
            ),
            transport=transport,
        )
        self._config = config
        self._semaphore = asyncio.Semaphore(max(1, config.max_concurrency))

    async def query(
        self, query: str, variables: Optional[Mapping[str, Any]] = None
    ) -> Mapping[str, Any]:
        async with self._semaphore:
            payload = await self._request_json(
                "POST",
                self._config.graphql_url,
                json={"query": query, "variables": dict(variables or {})},
            )
        if not isinstance(payload, Mapping):
            raise UpstreamFetchFailure("Storefront returned unexpected payload")
        errors = payload.get("errors")
        if errors:
            LOGGER.error("Storefront query failed: %s", errors)
            raise UpstreamFetchFailure(f"Storefront query failed: {errors}")
        data = payload.get("data")
        if not isinstance(data, Mapping):
            raise UpstreamFetchFailure("Storefront response has no data object")
        return data

    async def fetch_metafield(
        self, product_gid: str, key: str, namespace: str
    ) -> Optional[Mapping[str, Any]]:
        """Return ``{"key", "value"}`` for one product metafield, or None."""
        data = await self.query(
            PRODUCT_METAFIELD_QUERY,
            {"id": product_gid, "key": key, "namespace": namespace},
        )
        product = data.get("product")
        if not isinstance(product, Mapping):
            return None
        metafield = product.get("metafield")
        return metafield if isinstance(metafield, Mapping) else None

    async def fetch_seo(self, product_gid: str) -> Optional[Mapping[str, Any]]:
        data = await self.query(PRODUCT_SEO_QUERY, {"id": product_gid})
        product = data.get("product")
        if not isinstance(product, Mapping):
            return None
        seo = product.get("seo")
        return seo if isinstance(seo, Mapping) else None
