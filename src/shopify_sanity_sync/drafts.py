"""Which published documents currently have an unpublished draft."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional, Protocol

from .ids import draft_id

LOGGER = logging.getLogger("shopify_sanity_sync.drafts")

EXISTING_IDS_QUERY = "*[_id in $ids]._id"


class DocumentQueries(Protocol):
    async def query(
        self, groq: str, params: Optional[Mapping[str, Any]] = None
    ) -> Any: ...

    async def get_document(self, document_id: str) -> Optional[Mapping[str, Any]]: ...


async def has_drafts(store: DocumentQueries, ids: Iterable[str]) -> dict[str, bool]:
    """Map every published id to whether ``drafts.<id>`` exists.

    One query covers the whole batch, whatever its size.
    """
    document_ids = list(dict.fromkeys(ids))
    if not document_ids:
        return {}

    draft_ids = [draft_id(document_id) for document_id in document_ids]
    found = await store.query(EXISTING_IDS_QUERY, {"ids": draft_ids})
    existing = set(found or [])
    drafts = {
        document_id: draft_id(document_id) in existing for document_id in document_ids
    }
    LOGGER.debug(
        "%s of %s documents have drafts", sum(drafts.values()), len(document_ids)
    )
    return drafts

