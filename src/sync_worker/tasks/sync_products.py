"""Product synchronization tasks."""

import asyncio

import structlog
from celery import shared_task
from sqlalchemy.exc import SQLAlchemyError

from dropship_service.config import get_settings
from dropship_service.domain import SyncRun
from dropship_service.infrastructure.database.connection import worker_db_session
from dropship_service.infrastructure.database.stores import SqlProductStore, SqlSyncRunStore
from dropship_service.services.product_sync import ProductSyncEngine
from sync_worker.runtime import supplier_client

logger = structlog.get_logger()


async def _run_sync(
    search_term: str | None,
    category_id: str | None,
    page_size: int,
    max_pages: int,
) -> SyncRun:
    settings = get_settings()
    async with supplier_client() as client, worker_db_session() as session:
        engine = ProductSyncEngine(
            client,
            SqlProductStore(session),
            SqlSyncRunStore(session),
            settings.price_margin_multiplier,
        )
        return await engine.sync_products(
            search_term=search_term,
            category_id=category_id,
            page_size=page_size,
            max_pages=max_pages,
        )


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def sync_supplier_products(
    self,
    search_term: str | None = None,
    category_id: str | None = None,
    page_size: int | None = None,
    max_pages: int | None = None,
) -> dict:
    """
    Synchronize one bounded slice of the supplier catalog.

    Defaults come from the SYNC_DEFAULT_* settings. A failed listing call
    ends the run as ``failed`` without a retry; the next scheduled run picks
    up again. Database errors outside the per-item handling are retried.

    Returns:
        dict: The finalized sync run
    """
    settings = get_settings()
    search_term = search_term if search_term is not None else settings.sync_default_keyword
    page_size = page_size or settings.sync_default_page_size
    max_pages = max_pages or settings.sync_default_max_pages

    logger.info(
        "Starting scheduled product sync",
        search_term=search_term,
        category_id=category_id,
        page_size=page_size,
        max_pages=max_pages,
    )

    try:
        run = asyncio.run(_run_sync(search_term, category_id, page_size, max_pages))
    except SQLAlchemyError as exc:
        logger.error("Product sync hit a database error", error=str(exc))
        raise self.retry(exc=exc)

    return run.to_dict()
