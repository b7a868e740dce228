"""Supplier (CJ Dropshipping) catalog, order and tracking integration service."""

__version__ = "1.0.0"
