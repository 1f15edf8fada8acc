from __future__ import annotations

from typing import Optional


class InventorySearchError(Exception):
    """Base class for errors raised by the search layer."""


class ConfigurationError(InventorySearchError):
    """Store credentials are missing or invalid; the service must not serve."""


class StoreQueryError(InventorySearchError):
    """The document store was unreachable or rejected a query."""

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.details = details or ""


class StreamInterrupted(InventorySearchError):
    """The progress stream ended before a terminal event arrived."""


class WebhookError(InventorySearchError):
    """The inquiry webhook could not be reached or rejected the payload."""
