"""Build Sanity documents from Shopify product and collection payloads."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from .ids import DocumentKind, build_document_id, extract_external_id
from .models import MetafieldSpec
from .payloads import (SourceCollection, SourceImage, SourceOption,
                       SourceProduct, SourceVariant)
from .tasks import gather_or_cancel

LOGGER = logging.getLogger("shopify_sanity_sync.documents")


class ProductDataSource(Protocol):
    async def fetch_metafield(
        self, product_gid: str, key: str, namespace: str
    ) -> Optional[Mapping[str, Any]]: ...

    async def fetch_seo(self, product_gid: str) -> Optional[Mapping[str, Any]]: ...


@dataclass
class ProductDocuments:
    product: dict[str, Any]
    variants: list[dict[str, Any]] = field(default_factory=list)

    @property
    def all(self) -> list[dict[str, Any]]:
        return [self.product, *self.variants]


def compact(values: Mapping[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None."""
    return {key: value for key, value in values.items() if value is not None}


def to_number(value: Any) -> float:
    if not value:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        LOGGER.debug("Could not coerce %r to a number, using 0", value)
        return 0.0


def join_tags(tags: Optional[Sequence[str]]) -> Optional[str]:
    if tags is None:
        return None
    return ", ".join(tags)


def is_in_stock(variant: SourceVariant) -> bool:
    if not variant.inventoryManagement:
        return True
    quantity = variant.inventoryQuantity or 0
    return variant.inventoryPolicy == "continue" or quantity > 0


def map_image(image: SourceImage, index: int) -> dict[str, Any]:
    return compact(
        {
            "_key": str(index),
            "position": str(index + 1),
            "src": image.src,
            "variant_ids": image.variant_ids,
        }
    )


def map_option(option: SourceOption, index: int) -> dict[str, Any]:
    return compact({"_key": str(index), "name": option.name, "values": option.values})


def map_variant(variant: SourceVariant, index: int) -> dict[str, Any]:
    return compact(
        {
            "_key": str(index),
            "id": extract_external_id(variant.id),
            "gid": variant.id,
            "title": variant.title,
            "sku": variant.sku,
            "barcode": variant.barcode,
            "price": to_number(variant.price),
            "compareAtPrice": to_number(variant.compareAtPrice),
            "price_currency": variant.price_currency,
            "position": variant.position,
            "product": variant.product,
            "inStock": is_in_stock(variant),
            "inventoryManagement": variant.inventoryManagement,
            "inventoryPolicy": variant.inventoryPolicy,
            "selectedOptions": variant.selectedOptions,
        }
    )


def build_variant_document(
    variant_store: Mapping[str, Any], product_id: str, product_gid: str
) -> dict[str, Any]:
    """Stand-alone document for one variant, linked back to its product."""
    store = {key: value for key, value in variant_store.items() if key != "_key"}
    store.update(
        {"productId": product_id, "productGid": product_gid, "isDeleted": False}
    )
    return {
        "_id": build_document_id(DocumentKind.PRODUCT_VARIANT, store["id"]),
        "_type": DocumentKind.PRODUCT_VARIANT.value,
        "store": store,
    }


async def fetch_metafields(
    source: ProductDataSource, product_gid: str, specs: Sequence[MetafieldSpec]
) -> dict[str, Any]:
    results = await gather_or_cancel(
        source.fetch_metafield(product_gid, spec.key, spec.namespace) for spec in specs
    )
    metafields: dict[str, Any] = {}
    for spec, metafield in zip(specs, results):
        if not metafield:
            LOGGER.debug(
                "Metafield %s.%s not set on %s", spec.namespace, spec.key, product_gid
            )
            continue
        metafields[metafield.get("key") or spec.key] = metafield.get("value")
    return metafields


async def build_product_documents(
    product: SourceProduct,
    source: ProductDataSource,
    metafield_specs: Sequence[MetafieldSpec] = (),
) -> ProductDocuments:
    """Map one product and fetch its metafields and SEO data.

    All storefront queries for the product run concurrently and must all
    succeed; any failure propagates and no document is returned.
    """
    product_id = extract_external_id(product.id)
    variants = [
        map_variant(variant, index)
        for index, variant in enumerate(product.variants or [])
    ]

    metafields, seo = await gather_or_cancel(
        [
            fetch_metafields(source, product.id, metafield_specs),
            source.fetch_seo(product.id),
        ]
    )

    store = compact(
        {
            "id": product_id,
            "gid": product.id,
            "title": product.title,
            "slug": (
                {"current": product.handle} if product.handle is not None else None
            ),
            "status": product.status,
            "productType": product.productType,
            "vendor": product.vendor,
            "descriptionHtml": product.descriptionHtml,
            "tags": join_tags(product.tags),
            "priceRange": product.priceRange,
            "previewImageUrl": (
                product.featuredImage.src if product.featuredImage else None
            ),
            "images": (
                [map_image(image, index) for index, image in enumerate(product.images)]
                if product.images is not None
                else None
            ),
            "variants": variants if product.variants is not None else None,
            "options": (
                [
                    map_option(option, index)
                    for index, option in enumerate(product.options)
                ]
                if product.options is not None
                else None
            ),
            "isDeleted": False,
        }
    )

    document = compact(
        {
            "_id": build_document_id(DocumentKind.PRODUCT, product_id),
            "_type": DocumentKind.PRODUCT.value,
            "store": store,
            "metafields": metafields,
            "seo": dict(seo) if seo else None,
        }
    )
    return ProductDocuments(
        product=document,
        variants=[
            build_variant_document(variant, product_id, product.id)
            for variant in variants
        ],
    )


def build_collection_document(collection: SourceCollection) -> dict[str, Any]:
    collection_id = extract_external_id(collection.id)
    store = compact(collection.model_dump())
    store.update({"id": collection_id, "gid": collection.id, "isDeleted": False})
    return {
        "_id": build_document_id(DocumentKind.COLLECTION, collection_id),
        "_type": DocumentKind.COLLECTION.value,
        "store": store,
    }
