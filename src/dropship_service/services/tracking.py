"""Shipment tracking reconciliation.

Pulls order status and tracking data from the supplier and merges it into
the local order without ever erasing a value the supplier stops reporting.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from dropship_service.domain import LocalOrder, OrderStatus, utc_now
from dropship_service.exceptions import NotSubmittedError
from dropship_service.infrastructure.database.stores import OrderStore
from dropship_service.infrastructure.supplier.client import SupplierApiClient
from dropship_service.infrastructure.supplier.schemas import SupplierOrderInfo, TrackingEvent
from shared.constants import DEFAULT_SUPPLIER_STATUS, SUPPLIER_STATUS_MAP

logger = structlog.get_logger()


def map_supplier_status(raw_status: str | None) -> OrderStatus:
    """Map a supplier order status onto the local lifecycle.

    Unknown or missing statuses map to ``processing``.
    """
    key = (raw_status or "").strip().lower()
    return OrderStatus(SUPPLIER_STATUS_MAP.get(key, DEFAULT_SUPPLIER_STATUS))


def parse_supplier_timestamp(value: Any) -> datetime | None:
    """Parse a supplier timestamp into naive UTC.

    The supplier sends ISO-8601 strings, ``"YYYY-MM-DD HH:MM:SS"`` strings or
    epoch milliseconds. Values without an offset are taken as UTC.
    """
    if value is None or value == "":
        return None

    if isinstance(value, (int, float)) or (isinstance(value, str) and value.strip().isdigit()):
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc).replace(tzinfo=None)

    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable supplier timestamp", value=value)
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


@dataclass
class TrackingUpdate:
    """Outcome of one tracking refresh."""

    order_id: str
    status: OrderStatus
    changed_fields: dict[str, Any] = field(default_factory=dict)
    tracking_events: list[TrackingEvent] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changed_fields)


def _merge_tracking(order: LocalOrder, info: SupplierOrderInfo) -> dict[str, Any]:
    changes: dict[str, Any] = {}

    status = map_supplier_status(info.order_status)
    if status != order.status:
        changes["status"] = status

    reported = {
        "tracking_number": info.tracking_number or None,
        "carrier_name": info.logistic_name or None,
        "shipped_at": parse_supplier_timestamp(info.shipping_time),
        "delivered_at": parse_supplier_timestamp(info.delivered_time),
    }
    for name, value in reported.items():
        # Never write null over a stored value.
        if value is not None and value != getattr(order, name):
            changes[name] = value

    return changes


class TrackingReconciler:
    """Refreshes local orders from the supplier's order status."""

    def __init__(self, client: SupplierApiClient, orders: OrderStore):
        self.client = client
        self.orders = orders

    async def refresh_tracking(self, order: LocalOrder) -> TrackingUpdate:
        """
        Refresh status and tracking fields of a submitted order.

        Raises:
            NotSubmittedError: the order has no supplier order id.
            SupplierApiError: the supplier query failed.
        """
        if not order.external_order_id:
            raise NotSubmittedError(order.id)

        info = await self.client.get_order(order.external_order_id)
        changes = _merge_tracking(order, info)

        await self.orders.update_tracking(order.id, {**changes, "tracking_checked_at": utc_now()})

        status = changes.get("status", order.status)
        logger.info(
            "Tracking refreshed",
            order_id=order.id,
            external_order_id=order.external_order_id,
            supplier_status=info.order_status,
            status=status.value,
            changed=sorted(changes),
        )
        return TrackingUpdate(
            order_id=order.id,
            status=status,
            changed_fields=changes,
            tracking_events=list(info.tracking_events),
        )

    async def lookup_supplier_order(self, reference: str) -> SupplierOrderInfo:
        """Query the supplier for an order without touching local state."""
        info = await self.client.get_order(reference)
        logger.info(
            "Supplier order looked up",
            reference=reference,
            external_order_id=info.order_id,
            supplier_status=info.order_status,
        )
        return info
