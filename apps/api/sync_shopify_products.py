#!/usr/bin/env python3
"""
Pull the Shopify catalog into the product table from the command line
"""

import os
import sys
import asyncio
import logging
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from dotenv import load_dotenv

load_dotenv()

from sqlmodel import Session
from database import engine, create_db_and_tables
from services.shopify_service import get_shopify_client
from services.product_sync import sync_products

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("sync_shopify_products")


def main() -> int:
    client = get_shopify_client()
    if client is None:
        logger.error("SHOPIFY_STORE_URL and SHOPIFY_ACCESS_TOKEN must be set")
        return 1

    create_db_and_tables()
    with Session(engine) as session:
        result = asyncio.run(sync_products(session, client))

    logger.info(
        f"Processed {result.total_processed} variants: "
        f"{result.added_count} added, {result.updated_count} updated, {len(result.errors)} errors"
    )
    for error in result.errors:
        logger.warning(error)
    return 1 if result.errors else 0


if __name__ == "__main__":
    sys.exit(main())
