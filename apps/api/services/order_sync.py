"""
Order Sync Service
Pulls order state from Shopify and writes it back onto stored orders.
"""
from typing import List
from datetime import datetime
from pydantic import BaseModel
from sqlmodel import Session
import logging

from models import Order, Prescription
from services.shopify_service import ShopifyClient, ShopifyError, ShopifyOrderState, extract_order_state
from validators.business_rules import get_business_rules

logger = logging.getLogger(__name__)


class BulkSyncResult(BaseModel):
    """Outcome counts of a bulk sync run"""
    synced: int = 0
    failed: int = 0
    skipped: int = 0
    total: int = 0
    synced_order_ids: List[int] = []


def is_local_order(order: Order) -> bool:
    """Orders created in the admin panel have no Shopify counterpart"""
    return order.shopify_order_id.startswith(get_business_rules().LOCAL_ORDER_PREFIX)


def apply_order_state(session: Session, order: Order, state: ShopifyOrderState) -> Order:
    """Write Shopify-derived state onto the order and mirror it to its prescription"""
    order.order_status = state.order_status.value
    order.financial_status = state.financial_status.value
    order.fulfillment_status = state.fulfillment_status.value
    order.tracking_number = state.tracking_number
    order.tracking_url = state.tracking_url
    order.total_amount = state.total_amount
    if state.shopify_updated_at:
        order.shopify_updated_at = state.shopify_updated_at
    order.updated_at = datetime.utcnow()
    session.add(order)

    prescription = session.get(Prescription, order.prescription_id)
    if prescription:
        prescription.order_status = order.order_status
        prescription.updated_at = datetime.utcnow()
        session.add(prescription)

    session.commit()
    session.refresh(order)
    return order


async def sync_order(session: Session, order: Order, client: ShopifyClient) -> Order:
    """Fetch one order from Shopify and persist the mapped state.

    Raises ShopifyError when Shopify cannot be reached or the payload is
    unusable; the stored order is left untouched in that case.
    """
    shopify_order = await client.get_order(order.shopify_order_id)
    state = extract_order_state(
        shopify_order,
        current_tracking_number=order.tracking_number,
        current_tracking_url=order.tracking_url,
    )
    order = apply_order_state(session, order, state)
    logger.info(
        f"Synced order {order.id} (Shopify {order.shopify_order_id}): "
        f"{order.order_status}/{order.financial_status}/{order.fulfillment_status}"
    )
    return order


async def bulk_sync_orders(session: Session, orders: List[Order], client: ShopifyClient) -> BulkSyncResult:
    """Sync orders one after another; a failure never stops the loop"""
    result = BulkSyncResult(total=len(orders))

    for order in orders:
        if is_local_order(order):
            result.skipped += 1
            continue
        try:
            await sync_order(session, order, client)
            result.synced += 1
            result.synced_order_ids.append(order.id)
        except ShopifyError as e:
            result.failed += 1
            logger.error(f"Error syncing order {order.id} (Shopify {order.shopify_order_id}): {e}")

    logger.info(
        f"Bulk sync finished: {result.synced} synced, {result.failed} failed, "
        f"{result.skipped} skipped of {result.total}"
    )
    return result
