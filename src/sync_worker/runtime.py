"""Async plumbing for Celery tasks.

Each task runs its coroutine under ``asyncio.run``, so HTTP clients and
database engines are created per task. The token provider is kept per
worker process so consecutive tasks reuse a still-valid access token.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx

from dropship_service.config import get_settings
from dropship_service.infrastructure.supplier.auth import TokenProvider
from dropship_service.infrastructure.supplier.client import SupplierApiClient

_token_provider: TokenProvider | None = None


def _get_token_provider(http_client: httpx.AsyncClient) -> TokenProvider:
    global _token_provider
    if _token_provider is None:
        _token_provider = TokenProvider.from_settings(get_settings(), http_client)
    else:
        _token_provider.http_client = http_client
    return _token_provider


@asynccontextmanager
async def supplier_client() -> AsyncGenerator[SupplierApiClient, None]:
    """Supplier client bound to an HTTP client that lives for one task."""
    settings = get_settings()
    async with httpx.AsyncClient(timeout=settings.cj_api_timeout) as http_client:
        yield SupplierApiClient.from_settings(
            settings, http_client, token_provider=_get_token_provider(http_client)
        )
