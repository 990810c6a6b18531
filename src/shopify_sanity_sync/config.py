"""Configuration loading for the Shopify to Sanity sync service."""

from __future__ import annotations

import os
from importlib import resources
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError
from .models import (DEFAULT_BUILD_CONCURRENCY, DEFAULT_HOST,
                     DEFAULT_METAFIELDS_RESOURCE, DEFAULT_PORT,
                     DEFAULT_SANITY_API_VERSION, DEFAULT_SANITY_BACKOFF_FACTOR,
                     DEFAULT_SANITY_BACKOFF_MAX, DEFAULT_SANITY_MAX_RETRIES,
                     DEFAULT_SANITY_TIMEOUT, DEFAULT_SHOPIFY_API_VERSION,
                     DEFAULT_SHOPIFY_BACKOFF_FACTOR,
                     DEFAULT_SHOPIFY_BACKOFF_MAX,
                     DEFAULT_SHOPIFY_MAX_CONCURRENCY,
                     DEFAULT_SHOPIFY_MAX_RETRIES, DEFAULT_SHOPIFY_TIMEOUT,
                     DEFAULT_SYNC_PATH, ContentStoreConfig, MetafieldSpec,
                     ServiceConfig, StorefrontConfig, SyncConfig)

REQUIRED_VARIABLES = (
    "SHOPIFY_STORE_DOMAIN",
    "SHOPIFY_PUBLIC_ACCESS_TOKEN",
    "SANITY_PROJECT_ID",
    "SANITY_DATASET",
    "SANITY_ADMIN_AUTH_TOKEN",
)


def _int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


def parse_metafields(document: Any) -> tuple[MetafieldSpec, ...]:
    """Turn the ``metafields`` list of a YAML document into specs.

    Entries without both a key and a namespace raise ``ConfigurationError``.
    """
    if document is None:
        return ()
    if not isinstance(document, dict):
        raise ConfigurationError("Metafield definitions must be a mapping")
    entries = document.get("metafields") or []
    if not isinstance(entries, list):
        raise ConfigurationError("'metafields' must be a list")

    specs: list[MetafieldSpec] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Metafield #{index} must be a mapping")
        key = str(entry.get("key") or "").strip()
        namespace = str(entry.get("namespace") or "").strip()
        if not key or not namespace:
            raise ConfigurationError(
                f"Metafield #{index} needs both 'key' and 'namespace'"
            )
        specs.append(MetafieldSpec(key=key, namespace=namespace))
    return tuple(specs)


def load_metafields(path: Optional[str] = None) -> tuple[MetafieldSpec, ...]:
    if path:
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(
                f"Cannot read metafield definitions from {path}: {exc}"
            ) from exc
    else:
        text = (
            resources.files("shopify_sanity_sync")
            .joinpath(DEFAULT_METAFIELDS_RESOURCE)
            .read_text(encoding="utf-8")
        )
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid metafield definitions: {exc}") from exc
    return parse_metafields(document)


def load_config() -> SyncConfig:
    """Load service configuration from environment variables."""
    load_dotenv()

    missing = [name for name in REQUIRED_VARIABLES if not os.getenv(name, "").strip()]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    storefront = StorefrontConfig(
        store_domain=os.environ["SHOPIFY_STORE_DOMAIN"].strip(),
        access_token=os.environ["SHOPIFY_PUBLIC_ACCESS_TOKEN"].strip(),
        api_version=os.getenv("SHOPIFY_API_VERSION", DEFAULT_SHOPIFY_API_VERSION),
        timeout=_float(os.getenv("SHOPIFY_TIMEOUT"), DEFAULT_SHOPIFY_TIMEOUT),
        max_retries=max(
            0, _int(os.getenv("SHOPIFY_MAX_RETRIES"), DEFAULT_SHOPIFY_MAX_RETRIES)
        ),
        backoff_factor=_float(
            os.getenv("SHOPIFY_BACKOFF_FACTOR"), DEFAULT_SHOPIFY_BACKOFF_FACTOR
        ),
        backoff_max=_float(
            os.getenv("SHOPIFY_BACKOFF_MAX"), DEFAULT_SHOPIFY_BACKOFF_MAX
        ),
        max_concurrency=max(
            1,
            _int(
                os.getenv("SHOPIFY_MAX_CONCURRENCY"), DEFAULT_SHOPIFY_MAX_CONCURRENCY
            ),
        ),
    )

    content_store = ContentStoreConfig(
        project_id=os.environ["SANITY_PROJECT_ID"].strip(),
        dataset=os.environ["SANITY_DATASET"].strip(),
        token=os.environ["SANITY_ADMIN_AUTH_TOKEN"].strip(),
        api_version=os.getenv("SANITY_API_VERSION", DEFAULT_SANITY_API_VERSION),
        timeout=_float(os.getenv("SANITY_TIMEOUT"), DEFAULT_SANITY_TIMEOUT),
        max_retries=max(
            0, _int(os.getenv("SANITY_MAX_RETRIES"), DEFAULT_SANITY_MAX_RETRIES)
        ),
        backoff_factor=_float(
            os.getenv("SANITY_BACKOFF_FACTOR"), DEFAULT_SANITY_BACKOFF_FACTOR
        ),
        backoff_max=_float(os.getenv("SANITY_BACKOFF_MAX"), DEFAULT_SANITY_BACKOFF_MAX),
        api_host=os.getenv("SANITY_API_HOST") or None,
    )

    service = ServiceConfig(
        # "api/sync" and "/api/sync" map to the same route.
        sync_path="/" + os.getenv("SYNC_PATH", DEFAULT_SYNC_PATH).lstrip("/"),
        build_concurrency=max(
            1, _int(os.getenv("SYNC_BUILD_CONCURRENCY"), DEFAULT_BUILD_CONCURRENCY)
        ),
        host=os.getenv("HOST", DEFAULT_HOST),
        port=_int(os.getenv("PORT"), DEFAULT_PORT),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )

    return SyncConfig(
        storefront=storefront,
        content_store=content_store,
        service=service,
        metafields=load_metafields(os.getenv("METAFIELDS_FILE") or None),
    )
