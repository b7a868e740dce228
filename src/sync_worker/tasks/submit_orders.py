"""Order submission tasks."""

import asyncio

import structlog
from celery import shared_task

from dropship_service.exceptions import AlreadySubmittedError, OrderNotFoundError, SupplierApiError
from dropship_service.infrastructure.database.connection import worker_db_session
from dropship_service.infrastructure.database.stores import SqlOrderStore
from dropship_service.services.order_submission import OrderSubmissionService
from sync_worker.runtime import supplier_client

logger = structlog.get_logger()


async def _submit(order_id: str) -> dict:
    async with supplier_client() as client, worker_db_session() as session:
        orders = SqlOrderStore(session)
        order = await orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)

        result = await OrderSubmissionService(client, orders).submit_order(order)
        return {
            "order_id": order_id,
            "submitted": True,
            "external_order_id": result.external_order_id,
            "external_order_number": result.external_order_number,
        }


@shared_task(bind=True)
def submit_order_to_supplier(self, order_id: str) -> dict:
    """
    Submit a paid order to the supplier.

    Enqueued by checkout once payment is confirmed. Not retried; a
    rejected order is marked failed for an operator to review.

    Args:
        order_id: Local order id

    Returns:
        dict: Submission result
    """
    logger.info("Submitting order to supplier", order_id=order_id)

    try:
        return asyncio.run(_submit(order_id))
    except AlreadySubmittedError as e:
        logger.info("Order already submitted", order_id=order_id)
        return {"order_id": order_id, "submitted": False, "external_order_id": e.external_order_id}
    except (OrderNotFoundError, SupplierApiError) as e:
        logger.error("Order submission failed", order_id=order_id, error=str(e))
        return {"order_id": order_id, "submitted": False, "error": str(e)}
