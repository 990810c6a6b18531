"""Tombstone variant documents that no longer belong to their product."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence

from .documents import ProductDocuments
from .drafts import DocumentQueries
from .ids import DocumentKind, published_id
from .upsert import MutationQueue, retire_document

LOGGER = logging.getLogger("shopify_sanity_sync.reconcile")

STORED_VARIANTS_QUERY = (
    '*[_type == "productVariant" && store.productId in $productIds]'
    '{_id, "productId": store.productId}'
)


async def fetch_stored_variants(
    store: DocumentQueries, product_ids: Iterable[str]
) -> dict[str, list[str]]:
    """Group the ids of every stored variant (published and draft) by product."""
    wanted = list(dict.fromkeys(product_ids))
    if not wanted:
        return {}
    rows = await store.query(STORED_VARIANTS_QUERY, {"productIds": wanted}) or []

    grouped: dict[str, list[str]] = defaultdict(list)
    for row in rows:
        if isinstance(row, Mapping) and row.get("_id"):
            grouped[str(row.get("productId"))].append(row["_id"])
    return dict(grouped)


def stale_variant_ids(
    stored_ids: Sequence[str], current_ids: Iterable[str]
) -> list[str]:
    """Stored ids whose published id is absent from the current payload."""
    present = {published_id(document_id) for document_id in current_ids}
    return [
        document_id
        for document_id in stored_ids
        if published_id(document_id) not in present
    ]


async def reconcile_variants(
    store: DocumentQueries,
    transaction: MutationQueue,
    products: Sequence[ProductDocuments],
) -> list[str]:
    """Queue tombstones for variants dropped from each product's payload.

    Returns the tombstoned ids. Variants still present are never touched here.
    """
    stored = await fetch_stored_variants(
        store, (documents.product["store"]["id"] for documents in products)
    )

    tombstoned: list[str] = []
    for documents in products:
        product_id = documents.product["store"]["id"]
        stale = stale_variant_ids(
            stored.get(product_id, []),
            (variant["_id"] for variant in documents.variants),
        )
        for document_id in stale:
            retire_document(transaction, DocumentKind.PRODUCT_VARIANT, document_id)
        if stale:
            LOGGER.info(
                "Marking %s variants of product %s as deleted", len(stale), product_id
            )
        tombstoned.extend(stale)
    return tombstoned


async def tombstone_all_variants(
    store: DocumentQueries,
    transaction: MutationQueue,
    product_ids: Sequence[str],
) -> list[str]:
    """Queue tombstones for every stored variant of the given products."""
    wanted = list(dict.fromkeys(product_ids))
    stored = await fetch_stored_variants(store, wanted)
    tombstoned: list[str] = []
    for product_id in wanted:
        for document_id in stored.get(product_id, []):
            retire_document(transaction, DocumentKind.PRODUCT_VARIANT, document_id)
            tombstoned.append(document_id)
    return tombstoned
