"""Exception hierarchy for the catalog sync service."""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for every failure raised by the sync service."""


class ConfigurationError(SyncError):
    """Raised when required settings are missing or invalid."""


class MalformedIdentifier(SyncError):
    """Raised when a Shopify GID cannot be turned into a document id."""


class InvalidAction(SyncError):
    """Raised when a request carries an action the service does not know."""


class InvalidPayload(SyncError):
    """Raised when the request body does not have the expected shape."""


class MethodNotAllowed(SyncError):
    """Raised when the sync endpoint is called with anything but POST."""


class UpstreamFetchFailure(SyncError):
    """Raised when the Shopify storefront API cannot fulfil a query."""


class ContentStoreError(SyncError):
    """Raised when a Sanity lookup or query fails."""


class TransactionFailure(ContentStoreError):
    """Raised when Sanity rejects a transaction; nothing was persisted."""
