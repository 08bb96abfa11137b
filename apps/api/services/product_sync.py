"""
Product Sync Service
Mirrors the Shopify catalog into the local product table, one row per variant.
"""
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel
from sqlmodel import Session, select, or_
from sqlalchemy.exc import IntegrityError
import logging

from models import Product, RecordStatus
from services.shopify_service import ShopifyClient, ShopifyProduct, ShopifyVariant

logger = logging.getLogger(__name__)


class ProductSyncResult(BaseModel):
    total_processed: int = 0
    added_count: int = 0
    updated_count: int = 0
    errors: List[str] = []


def variant_sku(variant: ShopifyVariant) -> str:
    return (variant.sku or f"SHOPIFY-{variant.id}").strip().upper()


def variant_display_name(product: ShopifyProduct, variant: ShopifyVariant) -> str:
    """Single-variant products keep the plain title"""
    if len(product.variants) > 1:
        return f"{product.title} - {variant.title}"
    return product.title


def catalog_status(product: ShopifyProduct) -> str:
    return RecordStatus.ACTIVE.value if product.status == "ACTIVE" else RecordStatus.INACTIVE.value


def find_existing_product(session: Session, variant_id: str, sku: str) -> Optional[Product]:
    return session.exec(
        select(Product).where(or_(Product.shopify_variant_id == variant_id, Product.sku == sku))
    ).first()


def upsert_variant(session: Session, product: ShopifyProduct, variant: ShopifyVariant) -> bool:
    """Create or update the local product for one variant; True when created"""
    sku = variant_sku(variant)
    price = float(variant.price)
    existing = find_existing_product(session, variant.id, sku)

    if existing:
        existing.name = variant_display_name(product, variant)
        existing.price = price
        existing.shopify_product_id = product.id
        existing.shopify_variant_id = variant.id
        existing.status = catalog_status(product)
        existing.updated_at = datetime.utcnow()
        session.add(existing)
        session.commit()
        return False

    session.add(Product(
        name=variant_display_name(product, variant),
        sku=sku,
        description=f"{product.title} - Synced from Shopify",
        price=price,
        shopify_product_id=product.id,
        shopify_variant_id=variant.id,
        status=catalog_status(product),
    ))
    session.commit()
    return True


async def sync_products(session: Session, client: ShopifyClient) -> ProductSyncResult:
    """Pull every Shopify product and upsert its variants.

    Shopify errors while fetching propagate to the caller; problems with an
    individual variant are collected in ``errors`` and the run continues.
    """
    shopify_products = await client.fetch_products()
    result = ProductSyncResult(total_processed=len(shopify_products))

    for shopify_product in shopify_products:
        for variant in shopify_product.variants:
            try:
                if upsert_variant(session, shopify_product, variant):
                    result.added_count += 1
                else:
                    result.updated_count += 1
            except (ValueError, IntegrityError) as e:
                session.rollback()
                result.errors.append(f"Error processing {shopify_product.title}: {e}")
                logger.warning(f"Skipping variant {variant.id} of {shopify_product.title}: {e}")

    logger.info(
        f"Product sync finished: {result.added_count} added, {result.updated_count} updated, "
        f"{len(result.errors)} errors"
    )
    return result
