"""Persistence boundary for products, orders and sync runs.

The services depend on the ``*Store`` protocols only; the ``Sql*`` classes
are the PostgreSQL implementations used by the API and the worker.
"""

from datetime import datetime
from typing import Any, Protocol

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.domain import (
    LocalOrder,
    OrderStatus,
    ProductUpsert,
    SyncRun,
    SyncRunStatus,
    UpsertResult,
)
from dropship_service.infrastructure.database.models import Order, Product, SyncRunRecord

logger = structlog.get_logger()

# Columns fully replaced on every upsert (last writer wins).
_PRODUCT_SYNC_FIELDS = (
    "sku",
    "name",
    "description",
    "base_price",
    "display_price",
    "stock",
    "images",
    "variants",
    "category",
    "category_id",
    "is_active",
    "updated_at",
)

# Columns the tracking reconciler may write.
TRACKING_FIELDS = frozenset(
    {"status", "tracking_number", "carrier_name", "shipped_at", "delivered_at", "tracking_checked_at"}
)


class ProductStore(Protocol):
    async def upsert(self, product: ProductUpsert) -> UpsertResult: ...

    async def count_supplier_products(self) -> int: ...


class OrderStore(Protocol):
    async def get(self, order_id: str) -> LocalOrder | None: ...

    async def get_by_order_number(self, order_number: str) -> LocalOrder | None: ...

    async def mark_submitted(
        self,
        order_id: str,
        external_order_id: str,
        external_order_number: str | None,
        submitted_at: datetime,
    ) -> bool: ...

    async def mark_failed(self, order_id: str, note: str) -> None: ...

    async def update_tracking(self, order_id: str, fields: dict[str, Any]) -> None: ...

    async def list_awaiting_tracking(
        self, statuses: list[OrderStatus], limit: int
    ) -> list[LocalOrder]: ...

    async def count_submitted(self) -> int: ...

    async def count_with_status(self, status: OrderStatus) -> int: ...


class SyncRunStore(Protocol):
    async def create(self, run: SyncRun) -> None: ...

    async def save(self, run: SyncRun) -> None: ...

    async def get(self, run_id: str) -> SyncRun | None: ...

    async def list_recent(self, limit: int = 20, sync_type: str | None = None) -> list[SyncRun]: ...

    async def last_successful(self, sync_type: str) -> SyncRun | None: ...


# =============================================================================
# Products
# =============================================================================


class SqlProductStore:
    """Products table. Each upsert is committed on its own."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert(self, product: ProductUpsert) -> UpsertResult:
        if product.external_product_id:
            query = select(Product).where(Product.external_product_id == product.external_product_id)
        else:
            query = select(Product).where(
                Product.sku == product.sku, Product.external_product_id.is_(None)
            )

        try:
            row = (await self.session.execute(query)).scalar_one_or_none()
            created = row is None
            if created:
                row = Product(external_product_id=product.external_product_id)
                self.session.add(row)

            for name in _PRODUCT_SYNC_FIELDS:
                setattr(row, name, getattr(product, name))

            await self.session.flush()
            product_id = row.id
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.debug(
            "Upserted product",
            external_product_id=product.external_product_id,
            created=created,
        )
        return UpsertResult(product_id=product_id, created=created)

    async def count_supplier_products(self) -> int:
        query = select(func.count()).select_from(Product).where(
            Product.external_product_id.is_not(None)
        )
        return (await self.session.execute(query)).scalar() or 0


# =============================================================================
# Orders
# =============================================================================


def _order_to_domain(row: Order) -> LocalOrder:
    return LocalOrder(
        id=row.id,
        order_number=row.order_number,
        shipping_address=row.shipping_address or {},
        line_items=row.items or [],
        total_amount=row.total_amount or 0.0,
        notes=row.notes,
        status=OrderStatus(row.status),
        external_order_id=row.external_order_id,
        external_order_number=row.external_order_number,
        submitted_at=row.submitted_at,
        tracking_number=row.tracking_number,
        carrier_name=row.carrier_name,
        shipped_at=row.shipped_at,
        delivered_at=row.delivered_at,
        tracking_checked_at=row.tracking_checked_at,
    )


class SqlOrderStore:
    """Orders table, restricted to the supplier-related columns."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, order_id: str) -> LocalOrder | None:
        row = await self.session.get(Order, order_id)
        return _order_to_domain(row) if row else None

    async def get_by_order_number(self, order_number: str) -> LocalOrder | None:
        query = select(Order).where(Order.order_number == order_number)
        row = (await self.session.execute(query)).scalar_one_or_none()
        return _order_to_domain(row) if row else None

    async def mark_submitted(
        self,
        order_id: str,
        external_order_id: str,
        external_order_number: str | None,
        submitted_at: datetime,
    ) -> bool:
        """Record the supplier order id unless one is already stored."""
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.external_order_id.is_(None))
            .values(
                external_order_id=external_order_id,
                external_order_number=external_order_number,
                submitted_at=submitted_at,
                status=OrderStatus.PROCESSING.value,
            )
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount == 1

    async def mark_failed(self, order_id: str, note: str) -> None:
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.external_order_id.is_(None))
            .values(status=OrderStatus.FAILED.value, notes=note)
        )
        await self.session.execute(stmt)
        await self.session.commit()

    async def update_tracking(self, order_id: str, fields: dict[str, Any]) -> None:
        unknown = set(fields) - TRACKING_FIELDS
        if unknown:
            raise ValueError(f"Not tracking fields: {sorted(unknown)}")

        values = {
            key: value.value if isinstance(value, OrderStatus) else value
            for key, value in fields.items()
        }
        await self.session.execute(update(Order).where(Order.id == order_id).values(**values))
        await self.session.commit()

    async def list_awaiting_tracking(
        self, statuses: list[OrderStatus], limit: int
    ) -> list[LocalOrder]:
        query = (
            select(Order)
            .where(
                Order.external_order_id.is_not(None),
                Order.status.in_([s.value for s in statuses]),
            )
            .order_by(Order.tracking_checked_at.asc().nulls_first())
            .limit(limit)
        )
        rows = (await self.session.execute(query)).scalars().all()
        return [_order_to_domain(row) for row in rows]

    async def count_submitted(self) -> int:
        query = select(func.count()).select_from(Order).where(Order.external_order_id.is_not(None))
        return (await self.session.execute(query)).scalar() or 0

    async def count_with_status(self, status: OrderStatus) -> int:
        query = select(func.count()).select_from(Order).where(Order.status == status.value)
        return (await self.session.execute(query)).scalar() or 0


# =============================================================================
# Sync Runs
# =============================================================================


def _run_values(run: SyncRun) -> dict[str, Any]:
    return {
        "sync_type": run.sync_type,
        "status": run.status.value,
        "items_processed": run.items_processed,
        "items_created": run.items_created,
        "items_updated": run.items_updated,
        "items_failed": run.items_failed,
        "error_messages": list(run.error_messages),
        "extra_data": dict(run.metadata),
        "started_at": run.started_at,
        "completed_at": run.completed_at,
        "duration_ms": run.duration_ms,
    }


def _run_to_domain(row: SyncRunRecord) -> SyncRun:
    return SyncRun(
        id=row.id,
        sync_type=row.sync_type,
        status=SyncRunStatus(row.status),
        items_processed=row.items_processed or 0,
        items_created=row.items_created or 0,
        items_updated=row.items_updated or 0,
        items_failed=row.items_failed or 0,
        error_messages=list(row.error_messages or []),
        metadata=dict(row.extra_data or {}),
        started_at=row.started_at,
        completed_at=row.completed_at,
        duration_ms=row.duration_ms,
    )


class SqlSyncRunStore:
    """sync_runs table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, run: SyncRun) -> None:
        self.session.add(SyncRunRecord(id=run.id, **_run_values(run)))
        await self.session.commit()

    async def save(self, run: SyncRun) -> None:
        stmt = update(SyncRunRecord).where(SyncRunRecord.id == run.id).values(**_run_values(run))
        await self.session.execute(stmt)
        await self.session.commit()

    async def get(self, run_id: str) -> SyncRun | None:
        row = await self.session.get(SyncRunRecord, run_id)
        return _run_to_domain(row) if row else None

    async def list_recent(self, limit: int = 20, sync_type: str | None = None) -> list[SyncRun]:
        query = select(SyncRunRecord).order_by(SyncRunRecord.started_at.desc()).limit(limit)
        if sync_type:
            query = query.where(SyncRunRecord.sync_type == sync_type)
        rows = (await self.session.execute(query)).scalars().all()
        return [_run_to_domain(row) for row in rows]

    async def last_successful(self, sync_type: str) -> SyncRun | None:
        query = (
            select(SyncRunRecord)
            .where(
                SyncRunRecord.sync_type == sync_type,
                SyncRunRecord.status == SyncRunStatus.SUCCESS.value,
            )
            .order_by(SyncRunRecord.started_at.desc())
            .limit(1)
        )
        row = (await self.session.execute(query)).scalar_one_or_none()
        return _run_to_domain(row) if row else None
