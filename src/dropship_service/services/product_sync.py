"""Product synchronization service.

Pulls the supplier catalog page by page and upserts it into the local
products table, auditing every run as a SyncRun.
"""

import math
from typing import Any

import structlog
from pydantic import ValidationError

from dropship_service.domain import ProductUpsert, SyncRun, utc_now
from dropship_service.exceptions import ConfigurationError
from dropship_service.infrastructure.database.stores import ProductStore, SyncRunStore
from dropship_service.infrastructure.supplier.client import SupplierApiClient
from dropship_service.infrastructure.supplier.schemas import SupplierProduct
from shared.constants import SYNC_TYPE_PRODUCTS

logger = structlog.get_logger()


def compute_display_price(base_price: float, margin_multiplier: float) -> float:
    """Storefront price: supplier price times the margin multiplier, to the cent."""
    return round(base_price * margin_multiplier, 2)


def map_supplier_product(
    product: SupplierProduct, margin_multiplier: float
) -> ProductUpsert:
    """Map a supplier product onto the local catalog's upsert payload."""
    return ProductUpsert(
        external_product_id=product.external_id,
        sku=product.sku or product.upsert_key,
        name=product.name,
        description=product.description,
        base_price=product.sell_price,
        display_price=compute_display_price(product.sell_price, margin_multiplier),
        stock=product.stock_quantity,
        images=list(product.image_urls),
        variants=[variant.model_dump() for variant in product.variants],
        category=product.category_name,
        category_id=product.category_id,
        updated_at=utc_now(),
    )


def _describe_item(raw: Any) -> str:
    if isinstance(raw, dict):
        return str(raw.get("pid") or raw.get("id") or raw.get("productSku") or "<unknown>")
    return "<malformed>"


class ProductSyncEngine:
    """Synchronizes supplier products into the local catalog."""

    def __init__(
        self,
        client: SupplierApiClient,
        products: ProductStore,
        sync_runs: SyncRunStore,
        margin_multiplier: float,
    ):
        self.client = client
        self.products = products
        self.sync_runs = sync_runs
        self.margin_multiplier = margin_multiplier

    async def sync_products(
        self,
        search_term: str | None = None,
        category_id: str | None = None,
        start_page: int = 1,
        page_size: int = 20,
        max_pages: int = 5,
    ) -> SyncRun:
        """
        Sync one bounded slice of the supplier catalog.

        Pages are fetched sequentially starting at ``start_page`` and never
        more than ``max_pages`` of them. A product that fails to validate or
        to persist is counted and reported but does not stop the run; a
        failing listing call ends the run as ``failed``.

        Returns:
            The finalized SyncRun.
        """
        if start_page < 1 or page_size < 1 or max_pages < 1:
            raise ValueError("start_page, page_size and max_pages must all be >= 1")

        run = SyncRun(
            sync_type=SYNC_TYPE_PRODUCTS,
            metadata={
                "search_term": search_term,
                "category_id": category_id,
                "start_page": start_page,
                "page_size": page_size,
                "max_pages": max_pages,
            },
        )
        await self.sync_runs.create(run)
        log = logger.bind(sync_run_id=run.id)
        log.info("Starting product sync", **run.metadata)

        last_page = start_page + max_pages - 1
        current_page = start_page
        fatal: Exception | None = None

        try:
            while True:
                page = await self.client.list_products(
                    keyword=search_term,
                    category_id=category_id,
                    page=current_page,
                    page_size=page_size,
                )
                log.info(
                    "Fetched product page",
                    page=current_page,
                    items=len(page.items),
                    total=page.total,
                )

                for raw in page.items:
                    await self._sync_item(run, raw)

                await self.sync_runs.save(run)

                total_pages = math.ceil(page.total / page_size)
                if current_page >= total_pages or current_page >= last_page:
                    break
                current_page += 1

        except Exception as e:
            fatal = e
            log.exception("Product sync aborted", page=current_page, error=str(e))

        run.finalize(
            error=f"Sync aborted on page {current_page}: {fatal}" if fatal is not None else None
        )
        await self.sync_runs.save(run)
        log.info(
            "Product sync completed",
            status=run.status.value,
            processed=run.items_processed,
            created=run.items_created,
            updated=run.items_updated,
            failed=run.items_failed,
            duration_ms=run.duration_ms,
        )

        if isinstance(fatal, ConfigurationError):
            raise fatal
        return run

    async def _sync_item(self, run: SyncRun, raw: Any) -> None:
        try:
            product = SupplierProduct.model_validate(raw)
            result = await self.products.upsert(
                map_supplier_product(product, self.margin_multiplier)
            )
        except ValidationError as e:
            message = (
                f"Malformed supplier product {_describe_item(raw)}: "
                f"{e.error_count()} validation error(s)"
            )
            run.record_failure(message)
            logger.warning(message, sync_run_id=run.id, errors=e.errors(include_url=False))
            return
        except Exception as e:
            message = f"Failed to sync product {_describe_item(raw)}: {e}"
            run.record_failure(message)
            logger.error(message, sync_run_id=run.id)
            return

        if result.created:
            run.record_created()
        else:
            run.record_updated()
