import asyncio
import json

import httpx
import pytest

from shopify_sanity_sync.errors import UpstreamFetchFailure
from shopify_sanity_sync.models import StorefrontConfig
from shopify_sanity_sync.storefront_client import (PRODUCT_METAFIELD_QUERY,
                                                   PRODUCT_SEO_QUERY,
                                                   StorefrontClient)

CONFIG = StorefrontConfig(
    store_domain="test-store.myshopify.com",
    access_token="storefront-token",
    max_retries=2,
    backoff_factor=0.01,
    backoff_max=0.02,
)
PRODUCT_GID = "gid://shopify/Product/1"


def call(handler, operation, config=CONFIG):
    async def runner():
        transport = httpx.MockTransport(handler)
        async with StorefrontClient(config, transport=transport) as client:
            return await operation(client)

    return asyncio.run(runner())


def test_graphql_url_from_domain():
    config = StorefrontConfig(
        store_domain="https://shop.example.com/", access_token="t"
    )
    assert config.graphql_url == "https://shop.example.com/api/2024-07/graphql.json"


def test_fetch_metafield_sends_token_and_variables():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"data": {"product": {"metafield": {"key": "care", "value": "Wipe"}}}},
        )

    metafield = call(
        handler,
        lambda client: client.fetch_metafield(PRODUCT_GID, "care", "custom"),
    )

    assert metafield == {"key": "care", "value": "Wipe"}
    request = seen[0]
    assert str(request.url) == CONFIG.graphql_url
    assert request.headers["X-Shopify-Storefront-Access-Token"] == "storefront-token"
    body = json.loads(request.content)
    assert body["query"] == PRODUCT_METAFIELD_QUERY
    assert body["variables"] == {
        "id": "gid://shopify/Product/1",
        "key": "care",
        "namespace": "custom",
    }


def test_unset_metafield_is_none():
    def handler(request):
        return httpx.Response(200, json={"data": {"product": {"metafield": None}}})

    metafield = call(
        handler, lambda client: client.fetch_metafield(PRODUCT_GID, "a", "b")
    )
    assert metafield is None


def test_fetch_seo():
    def handler(request):
        assert json.loads(request.content)["query"] == PRODUCT_SEO_QUERY
        return httpx.Response(
            200,
            json={"data": {"product": {"seo": {"title": "T", "description": None}}}},
        )

    seo = call(handler, lambda client: client.fetch_seo("gid://shopify/Product/1"))
    assert seo == {"title": "T", "description": None}


def test_unknown_product_has_no_seo():
    def handler(request):
        return httpx.Response(200, json={"data": {"product": None}})

    assert call(handler, lambda client: client.fetch_seo(PRODUCT_GID)) is None


def test_graphql_errors_raise():
    def handler(request):
        return httpx.Response(200, json={"errors": [{"message": "Throttled"}]})

    with pytest.raises(UpstreamFetchFailure, match="Throttled"):
        call(handler, lambda client: client.fetch_seo("gid://shopify/Product/1"))


def test_server_errors_are_retried():
    responses = iter(
        [
            httpx.Response(503, text="busy"),
            httpx.Response(200, json={"data": {"product": {"seo": {"title": "T"}}}}),
        ]
    )

    seo = call(lambda request: next(responses), lambda c: c.fetch_seo(PRODUCT_GID))
    assert seo == {"title": "T"}


def test_retries_are_bounded():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(UpstreamFetchFailure, match="HTTP 502"):
        call(handler, lambda client: client.fetch_seo("gid://shopify/Product/1"))
    assert len(attempts) == CONFIG.max_retries + 1


def test_client_errors_are_not_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(401, text="unauthorized")

    with pytest.raises(UpstreamFetchFailure, match="HTTP 401"):
        call(handler, lambda client: client.fetch_seo("gid://shopify/Product/1"))
    assert len(attempts) == 1


def test_non_json_body_raises():
    def handler(request):
        return httpx.Response(200, text="<html>")

    with pytest.raises(UpstreamFetchFailure):
        call(handler, lambda client: client.fetch_seo("gid://shopify/Product/1"))
