"""Run one webhook request against Sanity as a single transaction."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from .documents import (ProductDataSource, ProductDocuments,
                        build_collection_document, build_product_documents)
from .drafts import DocumentQueries, has_drafts
from .ids import DocumentKind, document_id_for_gid, extract_external_id
from .models import DEFAULT_BUILD_CONCURRENCY, MetafieldSpec
from .payloads import UPSERT_ACTIONS, SyncAction, SyncRequest
from .reconcile import reconcile_variants, tombstone_all_variants
from .tasks import gather_or_cancel
from .upsert import retire_document, upsert_documents

LOGGER = logging.getLogger("shopify_sanity_sync.sync")


class TransactionalStore(DocumentQueries, Protocol):
    def transaction(self) -> Any: ...


@dataclass
class SyncResult:
    action: SyncAction
    products: int = 0
    variants: int = 0
    collections: int = 0
    deleted: list[str] = field(default_factory=list)
    tombstoned: list[str] = field(default_factory=list)
    mutations: int = 0


class CatalogSync:
    """Applies create/update/sync/delete requests to the content store.

    Each call to ``handle`` opens its own transaction; nothing is shared
    between requests besides the clients.
    """

    def __init__(
        self,
        storefront: ProductDataSource,
        store: TransactionalStore,
        metafields: Sequence[MetafieldSpec] = (),
        build_concurrency: int = DEFAULT_BUILD_CONCURRENCY,
    ) -> None:
        self._storefront = storefront
        self._store = store
        self._metafields = tuple(metafields)
        self._build_concurrency = max(1, build_concurrency)

    async def handle(self, request: SyncRequest) -> SyncResult:
        started = time.perf_counter()
        transaction = self._store.transaction()
        result = SyncResult(action=request.action)

        if request.action in UPSERT_ACTIONS:
            await self._queue_upserts(transaction, request, result)
        elif request.action is SyncAction.DELETE:
            await self._queue_deletes(transaction, request, result)

        result.mutations = len(transaction)
        await transaction.commit()
        LOGGER.info(
            "%s: %s products, %s variants, %s collections, %s deleted, "
            "%s tombstoned (%s mutations, %.0f ms)",
            request.action.value,
            result.products,
            result.variants,
            result.collections,
            len(result.deleted),
            len(result.tombstoned),
            result.mutations,
            (time.perf_counter() - started) * 1000.0,
        )
        return result

    async def build_products(
        self, request: SyncRequest
    ) -> list[ProductDocuments]:
        semaphore = asyncio.Semaphore(self._build_concurrency)
        return await gather_or_cancel(
            (
                build_product_documents(product, self._storefront, self._metafields)
                for product in request.products
            ),
            semaphore=semaphore,
        )

    async def _queue_upserts(
        self, transaction: Any, request: SyncRequest, result: SyncResult
    ) -> None:
        collections = [
            build_collection_document(collection) for collection in request.collections
        ]
        products = await self.build_products(request)

        product_documents = [documents.product for documents in products]
        variant_documents = [
            variant for documents in products for variant in documents.variants
        ]
        document_ids = [
            document["_id"]
            for document in (*product_documents, *variant_documents, *collections)
        ]

        drafts, tombstoned = await gather_or_cancel(
            [
                has_drafts(self._store, document_ids),
                reconcile_variants(self._store, transaction, products),
            ]
        )

        result.products = upsert_documents(transaction, product_documents, drafts)
        result.variants = upsert_documents(transaction, variant_documents, drafts)
        result.collections = upsert_documents(transaction, collections, drafts)
        result.tombstoned = tombstoned

    async def _queue_deletes(
        self, transaction: Any, request: SyncRequest, result: SyncResult
    ) -> None:
        product_gids = list(dict.fromkeys(request.productIds or []))
        collection_gids = list(dict.fromkeys(request.collectionIds or []))

        targets: list[tuple[DocumentKind, str]] = [
            (DocumentKind.PRODUCT, document_id_for_gid(DocumentKind.PRODUCT, gid))
            for gid in product_gids
        ]
        targets.extend(
            (DocumentKind.COLLECTION, document_id_for_gid(DocumentKind.COLLECTION, gid))
            for gid in collection_gids
        )

        for kind, document_id in targets:
            retire_document(transaction, kind, document_id)
            result.deleted.append(document_id)

        result.products = len(product_gids)
        result.collections = len(collection_gids)
        result.tombstoned = await tombstone_all_variants(
            self._store,
            transaction,
            [extract_external_id(gid) for gid in product_gids],
        )

