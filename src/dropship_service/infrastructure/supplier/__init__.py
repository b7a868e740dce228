"""Supplier API client, authentication and wire schemas."""

from dropship_service.infrastructure.supplier.auth import AccessToken, TokenProvider
from dropship_service.infrastructure.supplier.client import SupplierApiClient

__all__ = [
    "AccessToken",
    "SupplierApiClient",
    "TokenProvider",
]
