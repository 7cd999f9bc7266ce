"""
Error taxonomy for the catalog service.

Only UpstreamUnavailable and ItemNotFound ever reach a caller. Degraded
secondary sources and malformed child extraction are recovered where they
happen and only logged.
"""
from typing import Optional


class CatalogError(Exception):
    """Base class for catalog errors."""


class UpstreamUnavailable(CatalogError):
    """A primary upstream source failed (HTTP error, transport error, bad payload)."""

    def __init__(self, source: str, reason: str, status_code: Optional[int] = None):
        self.source = source
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{source} unavailable: {reason}")


class ItemNotFound(CatalogError):
    """A requested catalog item does not exist."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")
