"""Pydantic models for the supplier's wire formats.

Inbound payloads are normalised here so that the rest of the code never
deals with the supplier's field names or its loose typing (prices as
strings, image lists as JSON strings, nulls for zero stock).
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def _parse_price(value: Any) -> float:
    """Prices arrive as numbers, numeric strings or ranges like ``"1.20 -- 3.40"``."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, str) and "--" in value:
        value = value.split("--", 1)[0]
    return float(value)


def _parse_image_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            return [str(url) for url in json.loads(text) if url]
        return [text]
    return [str(url) for url in value if url]


# =============================================================================
# Catalog
# =============================================================================


class SupplierVariant(BaseModel):
    """A purchasable variant nested under a supplier product."""

    model_config = ConfigDict(frozen=True)

    external_variant_id: str = Field(..., min_length=1)
    name: str = ""
    sku: str = ""
    sell_price: float = 0.0
    stock_quantity: int = 0
    image_url: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_supplier_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "external_variant_id" in data:
            return data
        return {
            "external_variant_id": data.get("vid"),
            "name": data.get("variantNameEn") or data.get("variantName") or "",
            "sku": data.get("variantSku") or "",
            "sell_price": data.get("variantSellPrice"),
            "stock_quantity": data.get("variantInventory"),
            "image_url": data.get("variantImage"),
        }

    @field_validator("sell_price", mode="before")
    @classmethod
    def _price(cls, v: Any) -> float:
        return _parse_price(v)

    @field_validator("stock_quantity", mode="before")
    @classmethod
    def _stock(cls, v: Any) -> Any:
        return 0 if v in (None, "") else v


class SupplierProduct(BaseModel):
    """A product as listed by the supplier. Never mutated locally."""

    model_config = ConfigDict(frozen=True)

    external_id: str | None = None
    sku: str | None = None
    name: str = Field(..., min_length=1)
    description: str = ""
    sell_price: float = 0.0
    stock_quantity: int = 0
    image_urls: list[str] = Field(default_factory=list)
    variants: list[SupplierVariant] = Field(default_factory=list)
    category_id: str = ""
    category_name: str = ""

    @model_validator(mode="before")
    @classmethod
    def _from_supplier_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "external_id" in data:
            return data
        images = data.get("productImageList") or data.get("productImage")
        return {
            "external_id": data.get("pid") or data.get("id"),
            "sku": data.get("productSku"),
            "name": data.get("productNameEn") or data.get("productName"),
            "description": data.get("productDescEn") or data.get("description") or "",
            "sell_price": data.get("sellPrice"),
            "stock_quantity": data.get("warehouseInventoryNum"),
            "image_urls": images,
            "variants": data.get("variants") or [],
            "category_id": data.get("categoryId") or "",
            "category_name": data.get("categoryName") or "",
        }

    @field_validator("sell_price", mode="before")
    @classmethod
    def _price(cls, v: Any) -> float:
        return _parse_price(v)

    @field_validator("stock_quantity", mode="before")
    @classmethod
    def _stock(cls, v: Any) -> Any:
        return 0 if v in (None, "") else v

    @field_validator("image_urls", mode="before")
    @classmethod
    def _images(cls, v: Any) -> list[str]:
        return _parse_image_list(v)

    @model_validator(mode="after")
    def _require_identity(self) -> "SupplierProduct":
        if not self.external_id and not self.sku:
            raise ValueError("supplier product has neither a pid nor a productSku")
        return self

    @property
    def upsert_key(self) -> str:
        return self.external_id or self.sku or ""


class ProductListPage(BaseModel):
    """One page of the product listing. Items stay raw for per-item validation."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[Any] = Field(default_factory=list, alias="list")
    total: int = 0
    page_num: int = Field(1, alias="pageNum")
    page_size: int = Field(0, alias="pageSize")

    @field_validator("items", mode="before")
    @classmethod
    def _items(cls, v: Any) -> Any:
        return v or []


# =============================================================================
# Orders
# =============================================================================


class _CamelModel(BaseModel):
    # Ids, tracking numbers and times arrive as numbers or strings.
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


class SupplierOrderProduct(_CamelModel):
    vid: str
    quantity: int
    store_line_item_id: str | None = None


class SupplierOrderRequest(_CamelModel):
    """Body of the supplier's order creation call."""

    order_number: str
    shipping_customer_name: str
    shipping_address: str
    shipping_address2: str = ""
    shipping_city: str
    shipping_province: str = ""
    shipping_country: str
    shipping_country_code: str
    shipping_zip: str
    shipping_phone: str = ""
    email: str = ""
    remark: str = ""
    products: list[SupplierOrderProduct]
    logistic_name: str | None = None
    shop_amount: float | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class SupplierOrderResult(_CamelModel):
    order_id: str = Field(..., min_length=1)
    order_num: str | None = None


class TrackingEvent(_CamelModel):
    time: str | None = None
    status: str | None = None
    description: str | None = None
    location: str | None = None


class SupplierOrderInfo(_CamelModel):
    """Order status and tracking as reported by the supplier."""

    order_id: str | None = None
    order_num: str | None = None
    order_status: str | None = None
    tracking_number: str | None = None
    logistic_name: str | None = None
    create_time: str | int | None = None
    shipping_time: str | int | None = None
    delivered_time: str | int | None = None
    tracking_events: list[TrackingEvent] = Field(default_factory=list)

    @field_validator("tracking_events", mode="before")
    @classmethod
    def _events(cls, v: Any) -> Any:
        return v or []
