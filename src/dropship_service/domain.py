"""Local records exchanged between the services and the persistence layer.

These are the store-agnostic shapes of the catalog product, the order
subset this system owns, and the sync run audit record.
"""

import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Naive UTC timestamp, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# Enums
# =============================================================================


class OrderStatus(str, Enum):
    """Local order lifecycle states."""

    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    PAYMENT_CONFIRMED = "payment_confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    FAILED = "failed"


class SyncRunStatus(str, Enum):
    """Sync run outcome."""

    STARTED = "started"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


# =============================================================================
# Orders
# =============================================================================


class ShippingAddress(BaseModel):
    """Shipping address as captured by checkout."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    name: str = ""
    address: str = ""
    address2: str = ""
    city: str = ""
    province: str = ""
    state: str = ""
    country: str = ""
    country_code: str = ""
    zip: str = ""
    phone: str = ""
    email: str = ""


class OrderLineItem(BaseModel):
    """One purchased supplier variant."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    external_variant_id: str | None = Field(
        None,
        validation_alias=AliasChoices(
            "external_variant_id", "externalVariantId", "cj_variant_id", "vid"
        ),
    )
    external_product_id: str | None = Field(
        None,
        validation_alias=AliasChoices(
            "external_product_id", "externalProductId", "cj_product_id"
        ),
    )
    quantity: int = Field(..., ge=1)
    line_item_id: str | None = Field(
        None, validation_alias=AliasChoices("line_item_id", "lineItemId", "id")
    )


class LocalOrder(BaseModel):
    """The supplier-facing subset of a local order."""

    id: str
    order_number: str
    shipping_address: ShippingAddress = Field(default_factory=ShippingAddress)
    line_items: list[OrderLineItem] = Field(default_factory=list)
    total_amount: float = 0.0
    notes: str | None = None
    status: OrderStatus = OrderStatus.PENDING

    external_order_id: str | None = None
    external_order_number: str | None = None
    submitted_at: datetime | None = None

    tracking_number: str | None = None
    carrier_name: str | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    tracking_checked_at: datetime | None = None


# =============================================================================
# Products
# =============================================================================


@dataclass
class ProductUpsert:
    """Full replacement of the externally sourced fields of a catalog product."""

    external_product_id: str | None
    sku: str
    name: str
    description: str
    base_price: float
    display_price: float
    stock: int
    images: list[str]
    variants: list[dict[str, Any]]
    category: str
    category_id: str
    updated_at: datetime
    is_active: bool = True


@dataclass(frozen=True)
class UpsertResult:
    """What the store did with an upsert."""

    product_id: str
    created: bool


# =============================================================================
# Sync runs
# =============================================================================


@dataclass
class SyncRun:
    """Audit record of one bounded sync execution."""

    sync_type: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: SyncRunStatus = SyncRunStatus.STARTED
    items_processed: int = 0
    items_created: int = 0
    items_updated: int = 0
    items_failed: int = 0
    error_messages: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(default_factory=utc_now)
    completed_at: datetime | None = None
    duration_ms: int | None = None
    _clock_start: float = field(
        default_factory=time.monotonic, init=False, repr=False, compare=False
    )

    @property
    def is_finalized(self) -> bool:
        return self.completed_at is not None

    def record_created(self) -> None:
        self.items_processed += 1
        self.items_created += 1

    def record_updated(self) -> None:
        self.items_processed += 1
        self.items_updated += 1

    def record_failure(self, message: str) -> None:
        self.items_processed += 1
        self.items_failed += 1
        self.error_messages.append(message)

    def finalize(self, error: str | None = None) -> None:
        """Close the run. A non-None ``error`` marks it failed."""
        if self.is_finalized:
            raise RuntimeError(f"Sync run {self.id} is already finalized")

        if error is not None:
            self.status = SyncRunStatus.FAILED
            self.error_messages.append(error)
        elif self.items_failed > 0:
            self.status = SyncRunStatus.PARTIAL
        else:
            self.status = SyncRunStatus.SUCCESS

        self.completed_at = utc_now()
        self.duration_ms = int((time.monotonic() - self._clock_start) * 1000)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("_clock_start", None)
        data["status"] = self.status.value
        data["started_at"] = self.started_at.isoformat()
        data["completed_at"] = self.completed_at.isoformat() if self.completed_at else None
        return data
