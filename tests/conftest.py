"""
Shared fixtures for the sync service tests.

``InMemoryContentStore`` answers the GROQ queries the service issues and
applies committed mutations atomically, the way the Sanity mutate endpoint
does. ``FakeStorefront`` stands in for the Shopify storefront client.
"""
import copy
from typing import Any, Optional

import pytest

from shopify_sanity_sync.content_store import Transaction
from shopify_sanity_sync.drafts import EXISTING_IDS_QUERY
from shopify_sanity_sync.errors import TransactionFailure, UpstreamFetchFailure
from shopify_sanity_sync.models import (ContentStoreConfig, MetafieldSpec,
                                        ServiceConfig, StorefrontConfig,
                                        SyncConfig)
from shopify_sanity_sync.reconcile import STORED_VARIANTS_QUERY


class InMemoryContentStore:
    def __init__(self, documents: Optional[dict] = None):
        self.documents: dict[str, dict] = copy.deepcopy(documents or {})
        self.queries: list[tuple[str, dict]] = []
        self.commits: list[list[dict]] = []
        self.fail_commit: Optional[str] = None

    def transaction(self) -> Transaction:
        return Transaction(self)

    async def get_document(self, document_id: str):
        document = self.documents.get(document_id)
        return copy.deepcopy(document) if document is not None else None

    async def query(self, groq: str, params=None) -> Any:
        params = dict(params or {})
        self.queries.append((groq, params))
        if groq == EXISTING_IDS_QUERY:
            return [doc_id for doc_id in params["ids"] if doc_id in self.documents]
        if groq == STORED_VARIANTS_QUERY:
            wanted = set(params["productIds"])
            return [
                {"_id": doc_id, "productId": doc["store"].get("productId")}
                for doc_id, doc in self.documents.items()
                if doc.get("_type") == "productVariant"
                and doc.get("store", {}).get("productId") in wanted
            ]
        raise AssertionError(f"Unexpected query: {groq}")

    async def mutate(self, mutations):
        if self.fail_commit:
            raise TransactionFailure(self.fail_commit)
        staged = copy.deepcopy(self.documents)
        for mutation in mutations:
            (operation, body), = mutation.items()
            if operation == "createIfNotExists":
                staged.setdefault(body["_id"], copy.deepcopy(body))
            elif operation == "patch":
                if body["id"] not in staged:
                    raise TransactionFailure(f"Document {body['id']} not found")
                for path, value in body["set"].items():
                    _set_path(staged[body["id"]], path, copy.deepcopy(value))
            elif operation == "delete":
                staged.pop(body["id"], None)
            else:
                raise AssertionError(f"Unknown mutation {operation}")
        self.documents = staged
        self.commits.append(copy.deepcopy(list(mutations)))
        return {"transactionId": f"tx-{len(self.commits)}", "results": []}

    def queries_for(self, groq: str) -> list[dict]:
        return [params for query, params in self.queries if query == groq]


def _set_path(document: dict, path: str, value: Any) -> None:
    *parents, leaf = path.split(".")
    target = document
    for key in parents:
        target = target.setdefault(key, {})
    target[leaf] = value


class FakeStorefront:
    def __init__(self, metafields=None, seo=None, failing=()):
        self.metafields = metafields or {}
        self.seo = seo or {}
        self.failing = set(failing)
        self.calls: list[tuple] = []

    async def fetch_metafield(self, product_gid, key, namespace):
        self.calls.append(("metafield", product_gid, key, namespace))
        if product_gid in self.failing:
            raise UpstreamFetchFailure(f"HTTP 502 for {product_gid}")
        value = self.metafields.get((product_gid, key, namespace))
        if value is None:
            return None
        return {"key": key, "value": value}

    async def fetch_seo(self, product_gid):
        self.calls.append(("seo", product_gid))
        if product_gid in self.failing:
            raise UpstreamFetchFailure(f"HTTP 502 for {product_gid}")
        return self.seo.get(product_gid)


def make_variant(variant_id: int, **overrides) -> dict:
    variant = {
        "id": f"gid://shopify/ProductVariant/{variant_id}",
        "title": f"Variant {variant_id}",
        "sku": f"SKU-{variant_id}",
        "price": "19.90",
        "compareAtPrice": None,
        "inventoryManagement": "SHOPIFY",
        "inventoryPolicy": "deny",
        "inventoryQuantity": 3,
    }
    variant.update(overrides)
    return variant


def make_product(product_id: int, variant_ids=(11,), **overrides) -> dict:
    product = {
        "id": f"gid://shopify/Product/{product_id}",
        "title": f"Product {product_id}",
        "handle": f"product-{product_id}",
        "status": "ACTIVE",
        "productType": "Board",
        "vendor": "Acme",
        "tags": ["summer", "sale"],
        "priceRange": {"minVariantPrice": 19.9, "maxVariantPrice": 19.9},
        "featuredImage": {"src": "https://cdn.example.com/a.png"},
        "images": [
            {"src": "https://cdn.example.com/a.png"},
            {"src": "https://cdn.example.com/b.png"},
        ],
        "options": [{"name": "Size", "values": ["S", "M"]}],
        "descriptionHtml": "<p>Nice</p>",
        "variants": [make_variant(variant_id) for variant_id in variant_ids],
    }
    product.update(overrides)
    return product


def make_collection(collection_id: int, **overrides) -> dict:
    collection = {
        "id": f"gid://shopify/Collection/{collection_id}",
        "title": f"Collection {collection_id}",
        "handle": f"collection-{collection_id}",
    }
    collection.update(overrides)
    return collection


@pytest.fixture
def metafield_specs():
    return (
        MetafieldSpec(key="care", namespace="custom"),
        MetafieldSpec(key="material", namespace="custom"),
    )


@pytest.fixture
def content_store():
    return InMemoryContentStore()


@pytest.fixture
def storefront():
    return FakeStorefront()


@pytest.fixture
def sync_config(metafield_specs):
    return SyncConfig(
        storefront=StorefrontConfig(
            store_domain="test-store.myshopify.com", access_token="storefront-token"
        ),
        content_store=ContentStoreConfig(
            project_id="abc123", dataset="test", token="sanity-token"
        ),
        service=ServiceConfig(build_concurrency=2),
        metafields=metafield_specs,
    )
