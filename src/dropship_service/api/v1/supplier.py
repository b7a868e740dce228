"""Live supplier catalog lookups."""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from dropship_service.api.deps import get_supplier_client
from dropship_service.config import Settings, get_settings
from dropship_service.infrastructure.supplier.client import SupplierApiClient
from dropship_service.infrastructure.supplier.schemas import SupplierProduct
from dropship_service.services.product_sync import compute_display_price

router = APIRouter()


class SupplierProductResponse(BaseModel):
    product: SupplierProduct
    display_price: float


class InventoryResponse(BaseModel):
    pid: str
    inventory: Any


@router.get("/products/{pid}", response_model=SupplierProductResponse)
async def get_supplier_product(
    pid: str,
    client: SupplierApiClient = Depends(get_supplier_client),
    settings: Settings = Depends(get_settings),
) -> SupplierProductResponse:
    """Fetch a product straight from the supplier, priced with the store margin."""
    product = await client.get_product_details(pid=pid)
    return SupplierProductResponse(
        product=product,
        display_price=compute_display_price(product.sell_price, settings.price_margin_multiplier),
    )


@router.get("/products/{pid}/inventory", response_model=InventoryResponse)
async def get_supplier_inventory(
    pid: str,
    client: SupplierApiClient = Depends(get_supplier_client),
) -> InventoryResponse:
    """Per-warehouse inventory as reported by the supplier."""
    return InventoryResponse(pid=pid, inventory=await client.get_product_inventory(pid))
