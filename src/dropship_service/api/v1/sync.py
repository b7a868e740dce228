"""Product sync trigger and sync run audit endpoints."""

from datetime import datetime
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field

from dropship_service.api.deps import (
    get_order_store,
    get_product_store,
    get_sync_engine,
    get_sync_run_store,
)
from dropship_service.domain import OrderStatus, SyncRun, SyncRunStatus
from dropship_service.infrastructure.database.stores import OrderStore, ProductStore, SyncRunStore
from dropship_service.services.product_sync import ProductSyncEngine
from shared.constants import (
    DEFAULT_SYNC_RUNS_LIMIT,
    MAX_SYNC_PAGE_SIZE,
    MAX_SYNC_PAGES,
    MAX_SYNC_RUNS_LIMIT,
    SYNC_TYPE_PRODUCTS,
)

logger = structlog.get_logger()

router = APIRouter()


# =============================================================================
# Request/Response Models
# =============================================================================


class SyncProductsRequest(BaseModel):
    """Parameters of one bounded product sync."""

    model_config = ConfigDict(populate_by_name=True)

    keyword: str | None = Field(None, alias="keyWord", description="Supplier search keyword")
    category_id: str | None = Field(None, alias="categoryId", description="Supplier category id")
    page: int = Field(1, ge=1, description="First page to fetch")
    page_size: int = Field(20, ge=1, le=MAX_SYNC_PAGE_SIZE, alias="pageSize")
    max_pages: int = Field(5, ge=1, le=MAX_SYNC_PAGES, alias="maxPages")


class SyncRunResponse(BaseModel):
    """Sync run audit record."""

    id: str
    sync_type: str
    status: SyncRunStatus
    items_processed: int
    items_created: int
    items_updated: int
    items_failed: int
    error_messages: list[str]
    metadata: dict[str, Any]
    started_at: datetime
    completed_at: datetime | None
    duration_ms: int | None

    @classmethod
    def from_run(cls, run: SyncRun) -> "SyncRunResponse":
        return cls(
            id=run.id,
            sync_type=run.sync_type,
            status=run.status,
            items_processed=run.items_processed,
            items_created=run.items_created,
            items_updated=run.items_updated,
            items_failed=run.items_failed,
            error_messages=run.error_messages,
            metadata=run.metadata,
            started_at=run.started_at,
            completed_at=run.completed_at,
            duration_ms=run.duration_ms,
        )


class SyncStatsResponse(BaseModel):
    """Integration totals."""

    supplier_products: int
    submitted_orders: int
    failed_orders: int
    last_product_sync: SyncRunResponse | None


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/products", response_model=SyncRunResponse)
async def trigger_product_sync(
    response: Response,
    sync_request: SyncProductsRequest | None = None,
    engine: ProductSyncEngine = Depends(get_sync_engine),
) -> SyncRunResponse:
    """
    Run one product sync now and return its audit record.

    The call blocks until the run is finalized. A run that ended as
    ``failed`` is still returned, with status 502.
    """
    sync_request = sync_request or SyncProductsRequest()
    run = await engine.sync_products(
        search_term=sync_request.keyword,
        category_id=sync_request.category_id,
        start_page=sync_request.page,
        page_size=sync_request.page_size,
        max_pages=sync_request.max_pages,
    )
    if run.status == SyncRunStatus.FAILED:
        response.status_code = status.HTTP_502_BAD_GATEWAY
    return SyncRunResponse.from_run(run)


@router.get("/runs", response_model=list[SyncRunResponse])
async def list_sync_runs(
    limit: int = Query(DEFAULT_SYNC_RUNS_LIMIT, ge=1, le=MAX_SYNC_RUNS_LIMIT),
    sync_type: str | None = Query(None, description="Filter by sync type"),
    sync_runs: SyncRunStore = Depends(get_sync_run_store),
) -> list[SyncRunResponse]:
    """Most recent sync runs, newest first."""
    runs = await sync_runs.list_recent(limit=limit, sync_type=sync_type)
    return [SyncRunResponse.from_run(run) for run in runs]


@router.get("/runs/{run_id}", response_model=SyncRunResponse)
async def get_sync_run(
    run_id: str,
    sync_runs: SyncRunStore = Depends(get_sync_run_store),
) -> SyncRunResponse:
    run = await sync_runs.get(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail=f"Sync run not found: {run_id}")
    return SyncRunResponse.from_run(run)


@router.get("/stats", response_model=SyncStatsResponse)
async def get_sync_stats(
    products: ProductStore = Depends(get_product_store),
    orders: OrderStore = Depends(get_order_store),
    sync_runs: SyncRunStore = Depends(get_sync_run_store),
) -> SyncStatsResponse:
    """Supplier-linked product and order totals plus the last good sync."""
    last = await sync_runs.last_successful(SYNC_TYPE_PRODUCTS)
    return SyncStatsResponse(
        supplier_products=await products.count_supplier_products(),
        submitted_orders=await orders.count_submitted(),
        failed_orders=await orders.count_with_status(OrderStatus.FAILED),
        last_product_sync=SyncRunResponse.from_run(last) if last else None,
    )
