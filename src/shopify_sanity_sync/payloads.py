"""Pydantic models for the webhook payload sent by Sanity Connect."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import InvalidAction, InvalidPayload


class SyncAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    SYNC = "sync"
    DELETE = "delete"


UPSERT_ACTIONS = frozenset({SyncAction.CREATE, SyncAction.UPDATE, SyncAction.SYNC})
ACTION_VALUES = frozenset(item.value for item in SyncAction)


class SourceImage(BaseModel):
    src: Optional[str] = None
    variant_ids: Optional[list[Any]] = None

    model_config = ConfigDict(extra="allow")


class SourceOption(BaseModel):
    name: Optional[str] = None
    values: Optional[list[Any]] = None

    model_config = ConfigDict(extra="allow")


class SourceVariant(BaseModel):
    id: Optional[str] = None
    title: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    price: Optional[Any] = None
    compareAtPrice: Optional[Any] = None
    price_currency: Optional[str] = None
    position: Optional[Any] = None
    product: Optional[Any] = None
    inventoryManagement: Optional[Any] = None
    inventoryPolicy: Optional[str] = None
    inventoryQuantity: Optional[float] = None
    selectedOptions: Optional[list[Any]] = None

    model_config = ConfigDict(extra="allow")


class SourceProduct(BaseModel):
    id: Optional[str] = None
    title: Optional[str] = None
    handle: Optional[str] = None
    status: Optional[str] = None
    productType: Optional[str] = None
    vendor: Optional[str] = None
    descriptionHtml: Optional[str] = None
    tags: Optional[list[str]] = None
    priceRange: Optional[dict[str, Any]] = None
    featuredImage: Optional[SourceImage] = None
    images: Optional[list[SourceImage]] = None
    variants: Optional[list[SourceVariant]] = None
    options: Optional[list[SourceOption]] = None

    model_config = ConfigDict(extra="allow")


class SourceCollection(BaseModel):
    id: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class SyncRequest(BaseModel):
    action: SyncAction
    products: list[SourceProduct] = []
    collections: list[SourceCollection] = []
    productIds: Optional[list[Optional[str]]] = None
    collectionIds: Optional[list[Optional[str]]] = None

    model_config = ConfigDict(extra="allow")


def parse_sync_request(body: Any) -> SyncRequest:
    """Validate a decoded request body.

    The action is checked first so an unknown action is always reported as
    ``InvalidAction`` regardless of what else is wrong with the body.
    """
    if not isinstance(body, dict):
        raise InvalidPayload("Request body must be a JSON object")

    action = body.get("action")
    if not isinstance(action, str) or action not in ACTION_VALUES:
        raise InvalidAction(f"Unsupported action {action!r}")

    data = dict(body)
    # Sanity Connect sends explicit nulls for lists that do not apply.
    for key in ("products", "collections"):
        if data.get(key) is None:
            data.pop(key, None)

    try:
        request = SyncRequest.model_validate(data)
    except ValidationError as exc:
        raise InvalidPayload(str(exc)) from exc

    if (
        request.action is SyncAction.DELETE
        and request.productIds is None
        and request.collectionIds is None
    ):
        raise InvalidPayload("A delete request needs productIds or collectionIds")
    return request
