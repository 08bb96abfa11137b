from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlmodel import Session, select, func, or_
from typing import Optional
from datetime import datetime
from database import get_session
from models import (
    Order, Prescription, Patient, City,
    OrderStatus, FinancialStatus, FulfillmentStatus, enum_values,
)
from schemas import OrderCreate, OrderUpdate, OrderResponse, BulkSyncRequest
from dependencies import TokenData, require_super_admin, require_order_access
from services.order_sync import sync_order, bulk_sync_orders, is_local_order
from services.scoping import order_scope_conditions, ensure_order_access
from services.shopify_service import ShopifyClient, ShopifyError, get_shopify_client
from utils.pagination import paginate, search_term
from utils.response import success_response
from validators.business_rules import get_business_rules
from validators.field_validator import require_fields, validate_choice
import logging
import uuid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["Orders"])


def get_order_or_404(session: Session, order_id: int) -> Order:
    order = session.get(Order, order_id)
    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found"
        )
    return order

def require_shopify(client: Optional[ShopifyClient]) -> ShopifyClient:
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Shopify configuration missing"
        )
    return client

def resolve_patient_city(session: Session, patient: Patient, city_id: Optional[int]) -> Optional[City]:
    """Explicit city, else the city whose name matches the patient's address"""
    if city_id:
        city = session.get(City, city_id)
        if not city:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="City not found"
            )
        return city
    if patient.city:
        return session.exec(select(City).where(func.lower(City.name) == patient.city.strip().lower())).first()
    return None

@router.get("")
def list_orders(
    search: Optional[str] = None,
    order_status: Optional[str] = None,
    financial_status: Optional[str] = None,
    fulfillment_status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(get_business_rules().DEFAULT_PAGE_SIZE, ge=1, le=get_business_rules().MAX_PAGE_SIZE),
    current_user: TokenData = Depends(require_order_access),
    session: Session = Depends(get_session)
):
    """List orders; a distributor only sees orders of the cities it serves"""
    query = select(Order).where(*order_scope_conditions(session, current_user))
    if search:
        term = search_term(search)
        query = query.where(or_(
            func.lower(Order.patient_name).like(term),
            func.lower(Order.patient_mrn).like(term),
            func.lower(Order.patient_phone).like(term),
            func.lower(Order.shopify_order_number).like(term),
            func.lower(Order.doctor_name).like(term),
        ))
    if order_status:
        query = query.where(Order.order_status == order_status)
    if financial_status:
        query = query.where(Order.financial_status == financial_status)
    if fulfillment_status:
        query = query.where(Order.fulfillment_status == fulfillment_status)
    query = query.order_by(Order.created_at.desc(), Order.id.desc())

    orders, pagination = paginate(session, query, page, limit)
    return success_response({
        "orders": [OrderResponse.from_order(o) for o in orders],
        "pagination": pagination,
    })

@router.post("", status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Place an order for a prescription, snapshotting patient and doctor details"""
    require_fields("prescription_id is required", payload.prescription_id)
    prescription = session.get(Prescription, payload.prescription_id)
    if not prescription:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Prescription not found"
        )
    if session.exec(select(Order).where(Order.prescription_id == prescription.id)).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An order already exists for this prescription"
        )

    rules = get_business_rules()
    shopify_order_id = (payload.shopify_order_id or "").strip() or f"{rules.LOCAL_ORDER_PREFIX}{uuid.uuid4().hex[:12].upper()}"
    if session.exec(select(Order).where(Order.shopify_order_id == shopify_order_id)).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Order with this Shopify order ID already exists"
        )

    if payload.total_amount is not None:
        if payload.total_amount < 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Total amount cannot be negative"
            )
        total_amount = payload.total_amount
    elif prescription.selected_product:
        product = prescription.selected_product
        total_amount = float(product.get("price") or 0) * int(product.get("quantity") or 1)
    else:
        total_amount = 0.0

    patient = prescription.patient
    doctor = prescription.doctor
    city = resolve_patient_city(session, patient, payload.patient_city_id)

    order = Order(
        prescription_id=prescription.id,
        shopify_order_id=shopify_order_id,
        shopify_order_number=payload.shopify_order_number,
        patient_mrn=patient.mrn,
        patient_name=patient.name,
        patient_phone=patient.phone,
        patient_address=patient.address,
        patient_city_id=city.id if city else None,
        patient_city_name=city.name if city else patient.city,
        doctor_id=doctor.id,
        doctor_name=doctor.name,
        doctor_district_id=doctor.district_id,
        total_amount=total_amount,
        currency=payload.currency or rules.DEFAULT_CURRENCY,
    )
    prescription.shopify_order_id = shopify_order_id
    prescription.updated_at = datetime.utcnow()
    session.add(order)
    session.add(prescription)
    session.commit()
    session.refresh(order)

    logger.info(f"Order {order.id} ({order.shopify_order_id}) created for prescription {prescription.id}")
    return success_response(OrderResponse.from_order(order), message="Order created successfully", status_code=status.HTTP_201_CREATED)

@router.post("/bulk-sync")
async def bulk_sync(
    payload: BulkSyncRequest,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session),
    client: Optional[ShopifyClient] = Depends(get_shopify_client)
):
    """Sync several orders with Shopify one after another"""
    order_ids = payload.order_ids
    if not isinstance(order_ids, list) or not order_ids or not all(isinstance(i, int) for i in order_ids):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="order_ids array is required"
        )

    orders = session.exec(select(Order).where(Order.id.in_(order_ids)).order_by(Order.id)).all()
    if not orders:
        return success_response({
            "synced": 0,
            "failed": 0,
            "skipped": 0,
            "total": 0,
            "orders": [],
        }, message="No orders found to sync")

    result = await bulk_sync_orders(session, orders, require_shopify(client))
    synced_orders = [o for o in orders if o.id in result.synced_order_ids]

    return success_response({
        "synced": result.synced,
        "failed": result.failed,
        "skipped": result.skipped,
        "total": result.total,
        "orders": [OrderResponse.from_order(o) for o in synced_orders],
    }, message=f"Synced {result.synced} out of {result.total} orders")

@router.get("/{order_id}")
def get_order(
    order_id: int,
    current_user: TokenData = Depends(require_order_access),
    session: Session = Depends(get_session)
):
    order = get_order_or_404(session, order_id)
    ensure_order_access(session, current_user, order, action="view")
    return success_response(OrderResponse.from_order(order))

@router.put("/{order_id}")
def update_order(
    order_id: int,
    payload: OrderUpdate,
    current_user: TokenData = Depends(require_order_access),
    session: Session = Depends(get_session)
):
    """Update order statuses and tracking; the prescription mirrors the order status"""
    order = get_order_or_404(session, order_id)
    ensure_order_access(session, current_user, order, action="update")
    update_data = payload.model_dump(exclude_unset=True)

    validate_choice(update_data.get("order_status"), enum_values(OrderStatus), "Invalid order status")
    validate_choice(update_data.get("financial_status"), enum_values(FinancialStatus), "Invalid financial status")
    validate_choice(update_data.get("fulfillment_status"), enum_values(FulfillmentStatus), "Invalid fulfillment status")

    for key, value in update_data.items():
        if value is not None:
            setattr(order, key, value)
    order.updated_at = datetime.utcnow()
    session.add(order)

    if update_data.get("order_status"):
        prescription = session.get(Prescription, order.prescription_id)
        if prescription:
            prescription.order_status = order.order_status
            prescription.updated_at = datetime.utcnow()
            session.add(prescription)

    session.commit()
    session.refresh(order)

    logger.info(f"Order {order.id} updated by {current_user.role.value} {current_user.user_id}")
    return success_response(OrderResponse.from_order(order), message="Order updated successfully")

@router.post("/{order_id}/sync")
async def sync_single_order(
    order_id: int,
    current_user: TokenData = Depends(require_order_access),
    session: Session = Depends(get_session),
    client: Optional[ShopifyClient] = Depends(get_shopify_client)
):
    """Refresh one order from Shopify, falling back to stored data on failure"""
    order = get_order_or_404(session, order_id)
    ensure_order_access(session, current_user, order, action="sync")

    if is_local_order(order):
        return success_response(
            {"order": OrderResponse.from_order(order)},
            message="Non-Shopify order - no sync needed"
        )

    shopify = require_shopify(client)
    try:
        order = await sync_order(session, order, shopify)
    except ShopifyError as e:
        logger.warning(f"Could not sync order {order.id} with Shopify: {e}")
        return success_response(
            {"order": OrderResponse.from_order(order), "warning": str(e)},
            message="Could not sync with Shopify, returning cached data"
        )

    return success_response({"order": OrderResponse.from_order(order)}, message="Order synced with Shopify")
