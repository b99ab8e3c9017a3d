"""
FindNearPG Risk Backend - Suspicious Activity Router
Tenant-submitted fraud reports against listing owners.
"""
from typing import Optional, Union
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import SuspiciousEventType, UserDB
from ..auth import get_optional_user
from ..services.risk import SuspiciousActivityMonitor, coerce_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/suspicious", tags=["suspicious"])


class SuspiciousReportRequest(BaseModel):
    """Tenant fraud report. Ids arrive as numbers or numeric strings."""
    propertyId: Optional[Union[int, str]] = None
    ownerId: Optional[Union[int, str]] = None
    userId: Optional[Union[int, str]] = None
    reason: Optional[str] = None
    details: Optional[str] = None


class OkResponse(BaseModel):
    ok: bool = True


@router.post("/report", response_model=OkResponse)
async def report_suspicious_activity(
    request: SuspiciousReportRequest,
    db: Session = Depends(get_db),
    viewer: Optional[UserDB] = Depends(get_optional_user)
):
    """
    Record a tenant fraud report against an owner and refresh the owner's risk.
    """
    property_id = coerce_id(request.propertyId)
    owner_id = coerce_id(request.ownerId)
    user_id = viewer.id if viewer is not None else coerce_id(request.userId)

    if not property_id or not owner_id or not user_id:
        raise HTTPException(
            status_code=400,
            detail="propertyId, ownerId and user context are required"
        )

    reason = (request.reason or "").strip() or SuspiciousEventType.DIRECT_CONTACT_ATTEMPT.value
    details = (request.details or "").strip()

    try:
        monitor = SuspiciousActivityMonitor(db)
        monitor.track_suspicious_event(
            reason,
            owner_id,
            user_id=user_id,
            property_id=property_id,
            severity=SuspiciousActivityMonitor.TENANT_REPORT_SEVERITY,
            details={"source": "tenant-report", "details": details},
        )
        monitor.recompute_owner_risk(owner_id)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to report suspicious activity: {e}")
        raise HTTPException(status_code=500, detail="Failed to report suspicious activity")

    return OkResponse()
