"""Async client for the Sanity HTTP API and its mutation transactions."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Optional
from urllib.parse import quote

import httpx

from .errors import ContentStoreError, TransactionFailure
from .http_client import RetryingHttpClient
from .models import ContentStoreConfig

LOGGER = logging.getLogger("shopify_sanity_sync.content_store")


class Transaction:
    """Append-only batch of Sanity mutations submitted with one ``commit()``.

    A transaction belongs to exactly one inbound request. Once committed it
    cannot be extended or committed again.
    """

    def __init__(self, store: "ContentStoreClient") -> None:
        self._store = store
        self._mutations: list[dict[str, Any]] = []
        self._committed = False

    def __len__(self) -> int:
        return len(self._mutations)

    @property
    def mutations(self) -> list[dict[str, Any]]:
        return list(self._mutations)

    @property
    def committed(self) -> bool:
        return self._committed

    def create_if_not_exists(self, document: Mapping[str, Any]) -> "Transaction":
        if not document.get("_id"):
            raise ValueError("createIfNotExists needs a document with an _id")
        return self._append({"createIfNotExists": dict(document)})

    def patch(self, document_id: str, set_: Mapping[str, Any]) -> "Transaction":
        return self._append({"patch": {"id": document_id, "set": dict(set_)}})

    def delete(self, document_id: str) -> "Transaction":
        return self._append({"delete": {"id": document_id}})

    async def commit(self) -> Optional[Mapping[str, Any]]:
        if self._committed:
            raise RuntimeError("Transaction has already been committed")
        self._committed = True
        if not self._mutations:
            LOGGER.debug("Skipping commit of empty transaction")
            return None
        return await self._store.mutate(self._mutations)

    def _append(self, mutation: dict[str, Any]) -> "Transaction":
        if self._committed:
            raise RuntimeError("Cannot add mutations to a committed transaction")
        self._mutations.append(mutation)
        return self


class ContentStoreClient(RetryingHttpClient):
    """Point lookups, GROQ queries and atomic mutations against one dataset."""

    error_class = ContentStoreError
    service_name = "Sanity"

    def __init__(
        self,
        config: ContentStoreConfig,
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
                "Authorization": f"Bearer {config.token}",
                "User-Agent": "shopify-sanity-sync/1.0",
            },
            transport=transport,
        )
        self._config = config

    def transaction(self) -> Transaction:
        return Transaction(self)

    async def get_document(self, document_id: str) -> Optional[Mapping[str, Any]]:
        url = self._url("doc", quote(document_id, safe=""))
        payload = await self._request_json("GET", url)
        if not isinstance(payload, Mapping):
            raise ContentStoreError(
                f"Lookup of {document_id} returned unexpected payload"
            )
        documents = payload.get("documents") or []
        return documents[0] if documents else None

    async def query(
        self, groq: str, params: Optional[Mapping[str, Any]] = None
    ) -> Any:
        payload = await self._request_json(
            "POST",
            self._url("query"),
            json={"query": groq, "params": dict(params or {})},
        )
        if not isinstance(payload, Mapping) or "result" not in payload:
            raise ContentStoreError("GROQ query returned unexpected payload")
        return payload["result"]

    async def mutate(self, mutations: Sequence[Mapping[str, Any]]) -> Mapping[str, Any]:
        LOGGER.info("Committing transaction with %s mutations", len(mutations))
        try:
            payload = await self._request_json(
                "POST",
                self._url("mutate"),
                params={"returnIds": "true", "visibility": "sync"},
                json={"mutations": list(mutations)},
            )
        except ContentStoreError as exc:
            raise TransactionFailure(str(exc)) from exc
        if not isinstance(payload, Mapping):
            raise TransactionFailure("Mutation endpoint returned unexpected payload")
        LOGGER.info("Transaction %s committed", payload.get("transactionId"))
        return payload

    def _url(self, endpoint: str, suffix: Optional[str] = None) -> str:
        url = f"{self._config.base_url}/data/{endpoint}/{self._config.dataset}"
        return f"{url}/{suffix}" if suffix else url
