from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

DEFAULT_SHOPIFY_API_VERSION = "2024-07"
DEFAULT_SHOPIFY_TIMEOUT = 30.0
DEFAULT_SHOPIFY_MAX_RETRIES = 2
DEFAULT_SHOPIFY_BACKOFF_FACTOR = 0.5
DEFAULT_SHOPIFY_BACKOFF_MAX = 8.0
DEFAULT_SHOPIFY_MAX_CONCURRENCY = 5

DEFAULT_SANITY_API_VERSION = "2021-10-21"
DEFAULT_SANITY_TIMEOUT = 30.0
DEFAULT_SANITY_MAX_RETRIES = 2
DEFAULT_SANITY_BACKOFF_FACTOR = 0.5
DEFAULT_SANITY_BACKOFF_MAX = 8.0

DEFAULT_SYNC_PATH = "/api/sync"
DEFAULT_BUILD_CONCURRENCY = 8
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8000
DEFAULT_METAFIELDS_RESOURCE = "metafields.yaml"


@dataclass(frozen=True)
class MetafieldSpec:
    key: str
    namespace: str


@dataclass(frozen=True)
class StorefrontConfig:
    store_domain: str
    access_token: str
    api_version: str = DEFAULT_SHOPIFY_API_VERSION
    timeout: float = DEFAULT_SHOPIFY_TIMEOUT
    max_retries: int = DEFAULT_SHOPIFY_MAX_RETRIES
    backoff_factor: float = DEFAULT_SHOPIFY_BACKOFF_FACTOR
    backoff_max: float = DEFAULT_SHOPIFY_BACKOFF_MAX
    max_concurrency: int = DEFAULT_SHOPIFY_MAX_CONCURRENCY

    @property
    def graphql_url(self) -> str:
        domain = self.store_domain.replace("https://", "").replace("http://", "")
        return f"https://{domain.rstrip('/')}/api/{self.api_version}/graphql.json"


@dataclass(frozen=True)
class ContentStoreConfig:
    project_id: str
    dataset: str
    token: str
    api_version: str = DEFAULT_SANITY_API_VERSION
    timeout: float = DEFAULT_SANITY_TIMEOUT
    max_retries: int = DEFAULT_SANITY_MAX_RETRIES
    backoff_factor: float = DEFAULT_SANITY_BACKOFF_FACTOR
    backoff_max: float = DEFAULT_SANITY_BACKOFF_MAX
    api_host: Optional[str] = None

    @property
    def base_url(self) -> str:
        host = self.api_host or f"https://{self.project_id}.api.sanity.io"
        return f"{host.rstrip('/')}/v{self.api_version}"


@dataclass(frozen=True)
class ServiceConfig:
    sync_path: str = DEFAULT_SYNC_PATH
    build_concurrency: int = DEFAULT_BUILD_CONCURRENCY
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"


@dataclass(frozen=True)
class SyncConfig:
    storefront: StorefrontConfig
    content_store: ContentStoreConfig
    service: ServiceConfig = field(default_factory=ServiceConfig)
    metafields: tuple[MetafieldSpec, ...] = ()
