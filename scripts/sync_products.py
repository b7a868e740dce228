#!/usr/bin/env python3
"""CLI script to run one supplier product sync against the local catalog."""

import argparse
import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import httpx
import structlog

from dropship_service.config import get_settings
from dropship_service.domain import SyncRunStatus
from dropship_service.infrastructure.database.connection import dispose_engine, get_db_session
from dropship_service.infrastructure.database.stores import SqlProductStore, SqlSyncRunStore
from dropship_service.infrastructure.supplier.client import SupplierApiClient
from dropship_service.log_config import configure_logging
from dropship_service.services.product_sync import ProductSyncEngine

logger = structlog.get_logger()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--keyword", default=settings.sync_default_keyword, help="Supplier search keyword")
    parser.add_argument("--category-id", default=None, help="Supplier category id")
    parser.add_argument("--page", type=int, default=1, help="First page to fetch")
    parser.add_argument("--page-size", type=int, default=settings.sync_default_page_size)
    parser.add_argument("--max-pages", type=int, default=settings.sync_default_max_pages)
    return parser.parse_args(argv)


async def main(args: argparse.Namespace) -> int:
    """Main sync function."""
    settings = get_settings()
    logger.info("Starting product sync", keyword=args.keyword, category_id=args.category_id)

    async with httpx.AsyncClient(timeout=settings.cj_api_timeout) as http_client:
        async with get_db_session() as session:
            engine = ProductSyncEngine(
                SupplierApiClient.from_settings(settings, http_client),
                SqlProductStore(session),
                SqlSyncRunStore(session),
                settings.price_margin_multiplier,
            )
            run = await engine.sync_products(
                search_term=args.keyword or None,
                category_id=args.category_id,
                start_page=args.page,
                page_size=args.page_size,
                max_pages=args.max_pages,
            )
    await dispose_engine()

    logger.info("Product sync completed", **run.to_dict())
    return 1 if run.status == SyncRunStatus.FAILED else 0


if __name__ == "__main__":
    configure_logging()
    sys.exit(asyncio.run(main(parse_args())))
