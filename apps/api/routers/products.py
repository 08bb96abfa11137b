from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlmodel import Session, select, func, or_
from typing import Optional
from datetime import datetime
from database import get_session
from models import Product, TeamProduct, RecordStatus
from schemas import ProductCreate, ProductUpdate, ProductResponse
from dependencies import TokenData, require_staff, get_current_user
from services.product_sync import sync_products
from services.shopify_service import ShopifyClient, ShopifyError, get_shopify_client
from utils.pagination import paginate, search_term
from utils.response import success_response
from validators.business_rules import get_business_rules
from validators.field_validator import require_fields, validate_record_status
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["Products"])


def get_product_or_404(session: Session, product_id: int) -> Product:
    product = session.get(Product, product_id)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found"
        )
    return product

def require_product_admin(current_user: TokenData = Depends(get_current_user)) -> TokenData:
    if not current_user.is_super_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only Super Admin can manage products"
        )
    return current_user

def validate_sku_available(session: Session, sku: str, exclude_id: Optional[int] = None) -> None:
    existing = session.exec(select(Product).where(Product.sku == sku)).first()
    if existing and existing.id != exclude_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="SKU already exists"
        )

def validate_price(price: Optional[float]) -> None:
    if price is not None and price < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Price cannot be negative"
        )

@router.get("")
def list_products(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(get_business_rules().PRODUCTS_PAGE_SIZE, ge=1, le=get_business_rules().MAX_PAGE_SIZE),
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    query = select(Product)
    if search:
        term = search_term(search)
        query = query.where(or_(func.lower(Product.name).like(term), func.lower(Product.sku).like(term)))
    if status_filter:
        query = query.where(Product.status == status_filter)
    query = query.order_by(Product.name)

    products, pagination = paginate(session, query, page, limit)
    return success_response({
        "products": [ProductResponse.model_validate(p) for p in products],
        "pagination": pagination,
    })

@router.post("", status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    current_user: TokenData = Depends(require_product_admin),
    session: Session = Depends(get_session)
):
    require_fields("Name, SKU and price are required", payload.name, payload.sku, payload.price)
    validate_price(payload.price)
    sku = payload.sku.strip().upper()
    validate_sku_available(session, sku)

    product = Product(
        name=payload.name.strip(),
        sku=sku,
        description=payload.description,
        price=payload.price,
        status=validate_record_status(payload.status) if payload.status else RecordStatus.ACTIVE.value,
    )
    session.add(product)
    session.commit()
    session.refresh(product)

    logger.info(f"Product {product.sku} created")
    return success_response(ProductResponse.model_validate(product), message="Product created successfully", status_code=status.HTTP_201_CREATED)

@router.post("/sync")
async def sync_from_shopify(
    current_user: TokenData = Depends(require_product_admin),
    session: Session = Depends(get_session),
    client: Optional[ShopifyClient] = Depends(get_shopify_client)
):
    """Import or refresh the catalog from Shopify"""
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Shopify configuration missing"
        )

    try:
        result = await sync_products(session, client)
    except ShopifyError as e:
        logger.error(f"Product sync failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "Failed to sync products from Shopify"
        )

    synced = result.added_count + result.updated_count
    return success_response(result.model_dump(), message=f"Successfully synced {synced} products from Shopify")

@router.get("/{product_id}")
def get_product(
    product_id: int,
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    return success_response(ProductResponse.model_validate(get_product_or_404(session, product_id)))

@router.put("/{product_id}")
def update_product(
    product_id: int,
    payload: ProductUpdate,
    current_user: TokenData = Depends(require_product_admin),
    session: Session = Depends(get_session)
):
    product = get_product_or_404(session, product_id)
    update_data = payload.model_dump(exclude_unset=True)

    if update_data.get("sku"):
        update_data["sku"] = update_data["sku"].strip().upper()
        validate_sku_available(session, update_data["sku"], exclude_id=product_id)
    if "name" in update_data:
        require_fields("Name is required", update_data["name"])
    if update_data.get("status"):
        validate_record_status(update_data["status"])
    validate_price(update_data.get("price"))

    for key, value in update_data.items():
        if value is not None:
            setattr(product, key, value)
    product.updated_at = datetime.utcnow()

    session.add(product)
    session.commit()
    session.refresh(product)
    return success_response(ProductResponse.model_validate(product), message="Product updated successfully")

@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    current_user: TokenData = Depends(require_product_admin),
    session: Session = Depends(get_session)
):
    product = get_product_or_404(session, product_id)

    for assignment in session.exec(select(TeamProduct).where(TeamProduct.product_id == product_id)).all():
        session.delete(assignment)
    session.delete(product)
    session.commit()

    logger.info(f"Product {product_id} deleted by user {current_user.user_id}")
    return success_response(None, message="Product deleted successfully")
