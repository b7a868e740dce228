"""Shared FastAPI dependencies: admin auth, supplier client, stores, services."""

import hmac

import httpx
import structlog
from fastapi import Depends, FastAPI, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.config import Settings, get_settings
from dropship_service.infrastructure.database.connection import check_database, get_session
from dropship_service.infrastructure.database.stores import (
    OrderStore,
    ProductStore,
    SqlOrderStore,
    SqlProductStore,
    SqlSyncRunStore,
    SyncRunStore,
)
from dropship_service.infrastructure.supplier.client import SupplierApiClient
from dropship_service.services.order_submission import OrderSubmissionService
from dropship_service.services.product_sync import ProductSyncEngine
from dropship_service.services.tracking import TrackingReconciler

logger = structlog.get_logger()


# =============================================================================
# Auth
# =============================================================================


async def require_admin(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject the request unless it carries the admin API key."""
    supplied = request.headers.get(settings.api_key_header, "")
    expected = settings.admin_api_key

    if not expected or not supplied or not hmac.compare_digest(
        supplied.encode(), expected.encode()
    ):
        logger.warning("Rejected unauthenticated admin request", path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )


# =============================================================================
# Supplier
# =============================================================================


def get_supplier_client(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> SupplierApiClient:
    """One client per app, so the access token is shared across requests."""
    client = getattr(request.app.state, "supplier_client", None)
    if client is None:
        http_client = httpx.AsyncClient(timeout=settings.cj_api_timeout)
        client = SupplierApiClient.from_settings(settings, http_client)
        request.app.state.http_client = http_client
        request.app.state.supplier_client = client
    return client


async def close_supplier_client(app: FastAPI) -> None:
    http_client = getattr(app.state, "http_client", None)
    if http_client is not None:
        await http_client.aclose()
    app.state.http_client = None
    app.state.supplier_client = None


# =============================================================================
# Persistence
# =============================================================================


def get_product_store(session: AsyncSession = Depends(get_session)) -> ProductStore:
    return SqlProductStore(session)


def get_order_store(session: AsyncSession = Depends(get_session)) -> OrderStore:
    return SqlOrderStore(session)


def get_sync_run_store(session: AsyncSession = Depends(get_session)) -> SyncRunStore:
    return SqlSyncRunStore(session)


async def database_ready() -> bool:
    return await check_database()


# =============================================================================
# Services
# =============================================================================


def get_sync_engine(
    client: SupplierApiClient = Depends(get_supplier_client),
    products: ProductStore = Depends(get_product_store),
    sync_runs: SyncRunStore = Depends(get_sync_run_store),
    settings: Settings = Depends(get_settings),
) -> ProductSyncEngine:
    return ProductSyncEngine(client, products, sync_runs, settings.price_margin_multiplier)


def get_submission_service(
    client: SupplierApiClient = Depends(get_supplier_client),
    orders: OrderStore = Depends(get_order_store),
) -> OrderSubmissionService:
    return OrderSubmissionService(client, orders)


def get_tracking_reconciler(
    client: SupplierApiClient = Depends(get_supplier_client),
    orders: OrderStore = Depends(get_order_store),
) -> TrackingReconciler:
    return TrackingReconciler(client, orders)
