"""Supplier order submission and tracking endpoints."""

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, model_validator

from dropship_service.api.deps import (
    get_order_store,
    get_submission_service,
    get_tracking_reconciler,
)
from dropship_service.domain import LocalOrder, OrderStatus
from dropship_service.exceptions import OrderNotFoundError
from dropship_service.infrastructure.database.stores import OrderStore
from dropship_service.infrastructure.supplier.schemas import SupplierOrderInfo, TrackingEvent
from dropship_service.services.order_submission import OrderSubmissionService
from dropship_service.services.tracking import TrackingReconciler, map_supplier_status

logger = structlog.get_logger()

router = APIRouter()


# =============================================================================
# Request/Response Models
# =============================================================================


class SubmitOrderResponse(BaseModel):
    order_id: str
    order_number: str
    external_order_id: str
    external_order_number: str | None
    status: OrderStatus


class TrackingRequest(BaseModel):
    """Identifies the order to refresh. Exactly one reference is allowed."""

    model_config = ConfigDict(populate_by_name=True)

    order_id: str | None = Field(None, alias="orderId")
    order_number: str | None = Field(None, alias="orderNumber")
    external_order_number: str | None = Field(None, alias="externalOrderNumber")

    @model_validator(mode="after")
    def _exactly_one_reference(self) -> "TrackingRequest":
        given = [v for v in (self.order_id, self.order_number, self.external_order_number) if v]
        if len(given) != 1:
            raise ValueError("Provide exactly one of orderId, orderNumber, externalOrderNumber")
        return self


class TrackingResponse(BaseModel):
    order_id: str | None
    status: OrderStatus
    supplier_status: str | None = None
    tracking_number: str | None
    carrier_name: str | None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    changed_fields: list[str] = Field(default_factory=list)
    tracking_events: list[TrackingEvent] = Field(default_factory=list)


class SupplierOrderResponse(BaseModel):
    """What the supplier knows about an order."""

    found: bool
    mapped_status: OrderStatus | None = None
    supplier_order: SupplierOrderInfo | None = None


# =============================================================================
# Helpers
# =============================================================================


async def _load_order(orders: OrderStore, tracking: TrackingRequest) -> LocalOrder:
    if tracking.order_id:
        order = await orders.get(tracking.order_id)
        reference = tracking.order_id
    else:
        order = await orders.get_by_order_number(tracking.order_number)
        reference = tracking.order_number

    if order is None:
        raise OrderNotFoundError(reference)
    return order


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/tracking", response_model=TrackingResponse)
async def refresh_tracking(
    tracking: TrackingRequest,
    orders: OrderStore = Depends(get_order_store),
    reconciler: TrackingReconciler = Depends(get_tracking_reconciler),
) -> TrackingResponse:
    """
    Refresh tracking for one order.

    With ``orderId`` or ``orderNumber`` the local order is updated. With
    ``externalOrderNumber`` the supplier is only queried; nothing local is
    written.
    """
    if tracking.external_order_number:
        info = await reconciler.lookup_supplier_order(tracking.external_order_number)
        return TrackingResponse(
            order_id=None,
            status=map_supplier_status(info.order_status),
            supplier_status=info.order_status,
            tracking_number=info.tracking_number,
            carrier_name=info.logistic_name,
            tracking_events=info.tracking_events,
        )

    order = await _load_order(orders, tracking)
    update = await reconciler.refresh_tracking(order)
    merged = order.model_copy(update=update.changed_fields)

    return TrackingResponse(
        order_id=order.id,
        status=update.status,
        tracking_number=merged.tracking_number,
        carrier_name=merged.carrier_name,
        shipped_at=merged.shipped_at,
        delivered_at=merged.delivered_at,
        changed_fields=sorted(update.changed_fields),
        tracking_events=update.tracking_events,
    )


@router.get("/reconcile/{order_number}", response_model=SupplierOrderResponse)
async def reconcile_order(
    order_number: str,
    reconciler: TrackingReconciler = Depends(get_tracking_reconciler),
) -> SupplierOrderResponse:
    """
    Ask the supplier whether it holds an order for a local order number.

    Used to find supplier orders whose id never made it into the local
    record, e.g. after a crash between creation and persistence.
    """
    info = await reconciler.lookup_supplier_order(order_number)
    if not info.order_id:
        return SupplierOrderResponse(found=False)
    return SupplierOrderResponse(
        found=True,
        mapped_status=map_supplier_status(info.order_status),
        supplier_order=info,
    )


@router.post("/{order_id}/submit", response_model=SubmitOrderResponse)
async def submit_order(
    order_id: str,
    orders: OrderStore = Depends(get_order_store),
    service: OrderSubmissionService = Depends(get_submission_service),
) -> SubmitOrderResponse:
    """
    Submit a local order to the supplier.

    Answers 409 if the order was already submitted and 502 if the supplier
    rejected it (the order is then marked failed).
    """
    order = await orders.get(order_id)
    if order is None:
        raise OrderNotFoundError(order_id)

    result = await service.submit_order(order)
    return SubmitOrderResponse(
        order_id=order.id,
        order_number=order.order_number,
        external_order_id=result.external_order_id,
        external_order_number=result.external_order_number,
        status=OrderStatus.PROCESSING,
    )
