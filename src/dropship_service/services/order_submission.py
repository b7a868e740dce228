"""Submission of paid local orders to the supplier."""

from dataclasses import dataclass

import structlog

from dropship_service.domain import LocalOrder, utc_now
from dropship_service.exceptions import AlreadySubmittedError, SupplierApiError
from dropship_service.infrastructure.database.stores import OrderStore
from dropship_service.infrastructure.supplier.client import SupplierApiClient
from dropship_service.infrastructure.supplier.schemas import (
    SupplierOrderProduct,
    SupplierOrderRequest,
)
from shared.constants import SUPPLIER_ERROR_NOTE_PREFIX

logger = structlog.get_logger()


@dataclass(frozen=True)
class SubmissionResult:
    external_order_id: str
    external_order_number: str | None


def build_order_request(order: LocalOrder) -> SupplierOrderRequest:
    """Translate a local order into the supplier's order creation body."""
    address = order.shipping_address
    products = [
        SupplierOrderProduct(
            vid=item.external_variant_id or item.external_product_id or "",
            quantity=item.quantity,
            store_line_item_id=item.line_item_id or f"{order.order_number}-{index}",
        )
        for index, item in enumerate(order.line_items)
    ]

    return SupplierOrderRequest(
        order_number=order.order_number,
        shipping_customer_name=address.name,
        shipping_address=address.address,
        shipping_address2=address.address2,
        shipping_city=address.city,
        shipping_province=address.province or address.state,
        shipping_country=address.country,
        shipping_country_code=address.country_code,
        shipping_zip=address.zip,
        shipping_phone=address.phone,
        email=address.email,
        remark=order.notes or "",
        products=products,
        shop_amount=order.total_amount or None,
    )


class OrderSubmissionService:
    """Creates supplier orders and records the resulting supplier ids."""

    def __init__(self, client: SupplierApiClient, orders: OrderStore):
        self.client = client
        self.orders = orders

    async def submit_order(self, order: LocalOrder) -> SubmissionResult:
        """
        Submit one order to the supplier.

        An order is submitted at most once: a stored external_order_id
        short-circuits with AlreadySubmittedError, and the final write only
        succeeds while no external id has been stored by anyone else.

        Raises:
            AlreadySubmittedError: the order already has a supplier order.
            SupplierApiError: the supplier rejected the order (the local
                order is marked failed first).
        """
        if order.external_order_id:
            raise AlreadySubmittedError(order.id, order.external_order_id)

        log = logger.bind(order_id=order.id, order_number=order.order_number)
        request = build_order_request(order)
        log.info("Submitting order to supplier", line_items=len(request.products))

        try:
            created = await self.client.create_order(request)
        except SupplierApiError as e:
            log.error("Supplier order creation failed", status=e.http_status, error=e.message)
            await self.orders.mark_failed(order.id, f"{SUPPLIER_ERROR_NOTE_PREFIX}{e.message}")
            raise

        stored = await self.orders.mark_submitted(
            order.id,
            external_order_id=created.order_id,
            external_order_number=created.order_num,
            submitted_at=utc_now(),
        )
        if not stored:
            # Another submission won; this supplier order has no local owner.
            log.error(
                "Orphaned supplier order after concurrent submission",
                orphan_external_order_id=created.order_id,
                orphan_external_order_number=created.order_num,
            )
            raise AlreadySubmittedError(order.id)

        log.info(
            "Order submitted to supplier",
            external_order_id=created.order_id,
            external_order_number=created.order_num,
        )
        return SubmissionResult(
            external_order_id=created.order_id,
            external_order_number=created.order_num,
        )
