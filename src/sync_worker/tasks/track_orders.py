"""Shipment tracking refresh tasks."""

import asyncio

import structlog
from celery import shared_task
from sqlalchemy.exc import SQLAlchemyError

from dropship_service.config import get_settings
from dropship_service.domain import OrderStatus
from dropship_service.exceptions import NotSubmittedError, SupplierApiError
from dropship_service.infrastructure.database.connection import worker_db_session
from dropship_service.infrastructure.database.stores import OrderStore, SqlOrderStore
from dropship_service.services.tracking import TrackingReconciler
from shared.constants import OPEN_SUPPLIER_ORDER_STATUSES
from sync_worker.runtime import supplier_client

logger = structlog.get_logger()


async def refresh_open_orders(
    reconciler: TrackingReconciler, orders: OrderStore, batch_size: int
) -> dict:
    """Refresh the orders that waited longest; one failing order never stops the batch."""
    statuses = [OrderStatus(s) for s in OPEN_SUPPLIER_ORDER_STATUSES]
    pending = await orders.list_awaiting_tracking(statuses, limit=batch_size)

    summary = {"orders_checked": 0, "orders_changed": 0, "orders_delivered": 0, "errors": 0}
    for order in pending:
        summary["orders_checked"] += 1
        try:
            update = await reconciler.refresh_tracking(order)
        except (SupplierApiError, NotSubmittedError) as e:
            summary["errors"] += 1
            logger.warning("Tracking refresh failed", order_id=order.id, error=str(e))
            continue

        if update.changed:
            summary["orders_changed"] += 1
        if update.status == OrderStatus.DELIVERED:
            summary["orders_delivered"] += 1

    return summary


async def _refresh_batch(batch_size: int) -> dict:
    async with supplier_client() as client, worker_db_session() as session:
        orders = SqlOrderStore(session)
        return await refresh_open_orders(TrackingReconciler(client, orders), orders, batch_size)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def refresh_open_orders_tracking(self, batch_size: int | None = None) -> dict:
    """
    Refresh tracking for submitted orders that are not finished yet.

    Orders never checked come first, then the least recently checked.
    Database errors are retried; supplier errors are counted per order.

    Returns:
        dict: Counts of checked, changed, delivered and failed orders
    """
    batch_size = batch_size or get_settings().tracking_refresh_batch_size
    logger.info("Starting tracking refresh", batch_size=batch_size)

    try:
        summary = asyncio.run(_refresh_batch(batch_size))
    except SQLAlchemyError as exc:
        logger.error("Tracking refresh hit a database error", error=str(exc))
        raise self.retry(exc=exc)

    logger.info("Tracking refresh completed", **summary)
    return summary
