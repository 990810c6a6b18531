"""Mapping between Shopify GIDs and Sanity document ids."""

from __future__ import annotations

from enum import Enum
from typing import Any

from .errors import MalformedIdentifier

DRAFTS_PREFIX = "drafts."


class DocumentKind(str, Enum):
    PRODUCT = "product"
    PRODUCT_VARIANT = "productVariant"
    COLLECTION = "collection"

    @property
    def id_prefix(self) -> str:
        return _ID_PREFIXES[self]


_ID_PREFIXES = {
    DocumentKind.PRODUCT: "shopifyProduct",
    DocumentKind.PRODUCT_VARIANT: "shopifyProductVariant",
    DocumentKind.COLLECTION: "shopifyCollection",
}


def extract_external_id(gid: Any) -> str:
    """Return everything after the last slash of a GID.

    ``gid://shopify/Product/12345`` becomes ``"12345"``. ``None``, non-strings
    and values without a trailing path segment raise ``MalformedIdentifier``.
    """
    if not isinstance(gid, str):
        raise MalformedIdentifier(f"Expected a GID string, got {gid!r}")
    _, sep, tail = gid.rpartition("/")
    if not sep or not tail:
        raise MalformedIdentifier(f"GID {gid!r} has no trailing id segment")
    return tail


def build_document_id(kind: DocumentKind, external_id: str) -> str:
    kind = DocumentKind(kind)
    if not external_id:
        raise MalformedIdentifier(f"Empty external id for {kind.value} document")
    return f"{kind.id_prefix}-{external_id}"


def document_id_for_gid(kind: DocumentKind, gid: Any) -> str:
    return build_document_id(kind, extract_external_id(gid))


def is_draft_id(document_id: str) -> bool:
    return document_id.startswith(DRAFTS_PREFIX)


def draft_id(document_id: str) -> str:
    if is_draft_id(document_id):
        return document_id
    return f"{DRAFTS_PREFIX}{document_id}"


def published_id(document_id: str) -> str:
    if is_draft_id(document_id):
        return document_id[len(DRAFTS_PREFIX):]
    return document_id
