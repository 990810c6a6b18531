"""FastAPI application exposing the Sanity Connect webhook endpoint.

Sanity Connect sends POST requests and expects a 200 status code with a JSON
body. Manual syncs from the Sanity studio arrive as batches.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .content_store import ContentStoreClient
from .documents import ProductDataSource
from .errors import InvalidAction, InvalidPayload, MethodNotAllowed, SyncError
from .models import SyncConfig
from .payloads import parse_sync_request
from .storefront_client import StorefrontClient
from .sync import CatalogSync, TransactionalStore

LOGGER = logging.getLogger("shopify_sanity_sync.app")

NON_POST_METHODS = ["GET", "HEAD", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE"]


def _status_error(code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=code, content={"error": message, "data": {"status": code}}
    )


def _detailed_error(code: int, message: str, details: Any) -> JSONResponse:
    return JSONResponse(
        status_code=code, content={"error": message, "details": details}
    )


def create_app(
    config: SyncConfig,
    storefront: Optional[ProductDataSource] = None,
    store: Optional[TransactionalStore] = None,
) -> FastAPI:
    """Build the service; clients not passed in are opened by the lifespan."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with AsyncExitStack() as stack:
            source = storefront
            if source is None:
                source = await stack.enter_async_context(
                    StorefrontClient(config.storefront)
                )
            destination = store
            if destination is None:
                destination = await stack.enter_async_context(
                    ContentStoreClient(config.content_store)
                )
            app.state.catalog_sync = CatalogSync(
                source,
                destination,
                metafields=config.metafields,
                build_concurrency=config.service.build_concurrency,
            )
            LOGGER.info(
                "Serving sync endpoint at %s (dataset %s)",
                config.service.sync_path,
                config.content_store.dataset,
            )
            yield

    app = FastAPI(title="shopify-sanity-sync", lifespan=lifespan)
    sync_path = config.service.sync_path

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(sync_path)
    async def sync_catalog(request: Request) -> JSONResponse:
        try:
            body = await request.json()
        except ValueError as exc:
            LOGGER.warning("Rejected request with undecodable body: %s", exc)
            return _detailed_error(
                status.HTTP_400_BAD_REQUEST, "Invalid payload", "Body is not valid JSON"
            )

        try:
            sync_request = parse_sync_request(body)
        except InvalidAction as exc:
            LOGGER.warning("Rejected request: %s", exc)
            return _status_error(status.HTTP_400_BAD_REQUEST, "Invalid action")
        except InvalidPayload as exc:
            LOGGER.warning("Rejected request: %s", exc)
            return _detailed_error(
                status.HTTP_400_BAD_REQUEST, "Invalid payload", str(exc)
            )

        catalog_sync: CatalogSync = request.app.state.catalog_sync
        try:
            await catalog_sync.handle(sync_request)
        except SyncError as exc:
            LOGGER.error("Transaction failed: %s", exc)
            return _detailed_error(
                status.HTTP_500_INTERNAL_SERVER_ERROR, "Transaction failed", str(exc)
            )
        except Exception as exc:
            LOGGER.exception("Transaction failed unexpectedly")
            return _detailed_error(
                status.HTTP_500_INTERNAL_SERVER_ERROR, "Transaction failed", str(exc)
            )

        return JSONResponse(status_code=status.HTTP_200_OK, content={"message": "OK"})

    @app.api_route(sync_path, methods=NON_POST_METHODS, include_in_schema=False)
    async def sync_method_not_allowed(request: Request) -> JSONResponse:
        raise MethodNotAllowed(f"{request.method} is not supported on {sync_path}")

    @app.exception_handler(MethodNotAllowed)
    async def method_not_allowed_handler(
        request: Request, exc: MethodNotAllowed
    ) -> JSONResponse:
        LOGGER.warning("Rejected request: %s", exc)
        response = _status_error(
            status.HTTP_405_METHOD_NOT_ALLOWED, "Method not allowed"
        )
        response.headers["Allow"] = "POST"
        return response

    return app
