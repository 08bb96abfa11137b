from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select
from typing import Optional
from datetime import datetime
from database import get_session
from models import Banner
from schemas import BannerCreate, BannerUpdate, BannerResponse
from dependencies import TokenData, require_super_admin, require_staff
from utils.response import success_response
from validators.field_validator import require_fields
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/banners", tags=["Banners"])


def get_banner_or_404(session: Session, banner_id: int) -> Banner:
    banner = session.get(Banner, banner_id)
    if not banner:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Banner not found"
        )
    return banner

@router.get("")
def list_banners(
    active: Optional[bool] = None,
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    """Banners in display order; ?active=true for the live carousel"""
    query = select(Banner)
    if active:
        query = query.where(Banner.is_active == True)  # noqa: E712
    banners = session.exec(query.order_by(Banner.display_order, Banner.created_at.desc(), Banner.id.desc())).all()
    return success_response({
        "banners": [BannerResponse.model_validate(b) for b in banners],
        "total": len(banners),
    })

@router.post("", status_code=status.HTTP_201_CREATED)
def create_banner(
    payload: BannerCreate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Create a banner for an image that is already hosted"""
    require_fields("Title is required", payload.title)
    require_fields("Image URL is required", payload.image_url)

    banner = Banner(**payload.model_dump())
    session.add(banner)
    session.commit()
    session.refresh(banner)

    logger.info(f"Banner {banner.id} created")
    return success_response(BannerResponse.model_validate(banner), message="Banner created successfully", status_code=status.HTTP_201_CREATED)

@router.get("/{banner_id}")
def get_banner(
    banner_id: int,
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    return success_response(BannerResponse.model_validate(get_banner_or_404(session, banner_id)))

@router.put("/{banner_id}")
def update_banner(
    banner_id: int,
    payload: BannerUpdate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    banner = get_banner_or_404(session, banner_id)
    update_data = payload.model_dump(exclude_unset=True)
    for key in ("title", "image_url"):
        if key in update_data:
            require_fields(f"{key.replace('_', ' ').capitalize()} is required", update_data[key])

    for key, value in update_data.items():
        if value is not None:
            setattr(banner, key, value)
    banner.updated_at = datetime.utcnow()

    session.add(banner)
    session.commit()
    session.refresh(banner)
    return success_response(BannerResponse.model_validate(banner), message="Banner updated successfully")

@router.delete("/{banner_id}")
def delete_banner(
    banner_id: int,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    banner = get_banner_or_404(session, banner_id)
    session.delete(banner)
    session.commit()
    logger.info(f"Banner {banner_id} deleted")
    return success_response(None, message="Banner deleted successfully")
