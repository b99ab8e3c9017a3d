"""
FindNearPG Risk Backend - Property Router
Public property detail. Every detail view counts toward the owner's
conversion signal.
"""
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import PropertyDB, UserDB
from ..auth import get_optional_user
from ..services.risk import SuspiciousActivityMonitor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/properties", tags=["properties"])


class PropertyDetailResponse(BaseModel):
    """Property detail with the owner's current penalty."""
    id: int
    owner_id: int
    slug: str
    title: str
    city: Optional[str] = None
    area: Optional[str] = None
    sharing: Optional[str] = None
    price: Optional[int] = None
    available_rooms: int
    is_approved: bool
    ranking_penalty_level: str
    featured_eligible: bool


@router.get("/{slug}", response_model=PropertyDetailResponse)
async def get_property_detail(
    slug: str,
    db: Session = Depends(get_db),
    viewer: Optional[UserDB] = Depends(get_optional_user)
):
    """
    Get one property by slug and record the view.
    """
    prop = db.query(PropertyDB).filter(PropertyDB.slug == slug).first()
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")

    try:
        monitor = SuspiciousActivityMonitor(db)
        monitor.record_property_view(prop.id, prop.owner_id, user_id=viewer.id if viewer else None)
        monitor.recompute_owner_risk(prop.owner_id)
        db.commit()
        db.refresh(prop)
    except Exception as e:
        db.rollback()
        logger.error(f"Error fetching property detail: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch property detail")

    return PropertyDetailResponse(
        id=prop.id,
        owner_id=prop.owner_id,
        slug=prop.slug,
        title=prop.title,
        city=prop.city,
        area=prop.area,
        sharing=prop.sharing,
        price=prop.price,
        available_rooms=prop.available_rooms or 0,
        is_approved=bool(prop.is_approved),
        ranking_penalty_level=prop.ranking_penalty_level,
        featured_eligible=bool(prop.featured_eligible),
    )
