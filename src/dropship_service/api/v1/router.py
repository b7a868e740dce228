"""API v1 router that aggregates all endpoint routers."""

from fastapi import APIRouter, Depends

from dropship_service.api.deps import require_admin
from dropship_service.api.v1 import health, orders, supplier, sync

api_router = APIRouter()

# Health probes stay unauthenticated
api_router.include_router(
    health.router,
    tags=["Health"],
)

api_router.include_router(
    sync.router,
    prefix="/sync",
    tags=["Sync"],
    dependencies=[Depends(require_admin)],
)

api_router.include_router(
    orders.router,
    prefix="/orders",
    tags=["Orders"],
    dependencies=[Depends(require_admin)],
)

api_router.include_router(
    supplier.router,
    prefix="/supplier",
    tags=["Supplier"],
    dependencies=[Depends(require_admin)],
)
