"""Draft-aware create/patch/delete operations queued on a transaction.

Every synced document has two tracks: the published document and an optional
``drafts.`` copy that only editors create. Syncs always write the published
document (creating it when missing) and refresh the draft only when it
already exists. Removal differs by kind: top-level documents are deleted,
child documents are flagged with ``store.isDeleted``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from . import ids
from .ids import DocumentKind

LOGGER = logging.getLogger("shopify_sanity_sync.upsert")

TOMBSTONE_PATCH = {"store.isDeleted": True}
TOP_LEVEL_KINDS = frozenset({DocumentKind.PRODUCT, DocumentKind.COLLECTION})
CHILD_KINDS = frozenset({DocumentKind.PRODUCT_VARIANT})


class MutationQueue(Protocol):
    def create_if_not_exists(self, document: Mapping[str, Any]) -> Any: ...

    def patch(self, document_id: str, set_: Mapping[str, Any]) -> Any: ...

    def delete(self, document_id: str) -> Any: ...


def _document_id(document: Mapping[str, Any]) -> str:
    return document["_id"]


def patch_payload(document: Mapping[str, Any]) -> dict[str, Any]:
    """Fields written by a sync patch; system fields like ``_id`` are left alone."""
    return {key: value for key, value in document.items() if not key.startswith("_")}


@dataclass(frozen=True)
class DualWrite:
    """Queues the published write and, when a draft exists, the draft write."""

    target_id: Callable[[Mapping[str, Any]], str] = _document_id
    draft_id: Callable[[str], str] = ids.draft_id

    def upsert(
        self,
        transaction: MutationQueue,
        document: Mapping[str, Any],
        draft_exists: bool,
    ) -> None:
        published = self.target_id(document)
        payload = patch_payload(document)

        # createIfNotExists is a no-op for existing documents, the patch then
        # brings them up to date within the same transaction.
        transaction.create_if_not_exists({**document, "_id": published})
        transaction.patch(published, payload)

        if draft_exists:
            transaction.patch(self.draft_id(published), payload)


DEFAULT_WRITER = DualWrite()


def upsert_documents(
    transaction: MutationQueue,
    documents: Iterable[Mapping[str, Any]],
    drafts: Mapping[str, bool],
    writer: DualWrite = DEFAULT_WRITER,
) -> int:
    count = 0
    for document in documents:
        writer.upsert(
            transaction, document, drafts.get(writer.target_id(document), False)
        )
        count += 1
    return count


def delete_document(transaction: MutationQueue, document_id: str) -> None:
    """Physically remove a top-level document and its draft.

    Both deletes are queued whether or not the documents exist.
    """
    published = ids.published_id(document_id)
    transaction.delete(published)
    transaction.delete(ids.draft_id(published))


def tombstone_document(
    transaction: MutationQueue, document_id: str, draft_exists: bool = False
) -> None:
    """Flag a child document as deleted, leaving it in place."""
    transaction.patch(document_id, TOMBSTONE_PATCH)
    if draft_exists and not ids.is_draft_id(document_id):
        transaction.patch(ids.draft_id(document_id), TOMBSTONE_PATCH)


def retire_document(
    transaction: MutationQueue,
    kind: DocumentKind,
    document_id: str,
    draft_exists: bool = False,
) -> None:
    kind = DocumentKind(kind)
    if kind in TOP_LEVEL_KINDS:
        delete_document(transaction, document_id)
    elif kind in CHILD_KINDS:
        tombstone_document(transaction, document_id, draft_exists)
    else:  # pragma: no cover - every kind is listed above
        raise ValueError(f"No removal strategy for {kind.value} documents")
    LOGGER.debug("Queued removal of %s %s", kind.value, document_id)
