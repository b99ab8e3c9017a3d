"""
FindNearPG Risk Backend - Admin Router
Owner risk console. Reads the persisted risk snapshots and event log;
the only write is an operator-triggered recompute.
"""
from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import UserDB
from ..auth import require_admin
from ..services.risk import SuspiciousActivityMonitor, coerce_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class OwnerRiskItem(BaseModel):
    """Persisted risk snapshot for one owner."""
    owner_id: int
    risk_score: int
    risk_level: str
    metrics: Dict[str, Any]
    penalties: Dict[str, Any]
    updated_at: Optional[str] = None


class SuspiciousEventItem(BaseModel):
    """Suspicious event log entry."""
    id: int
    event_type: str
    owner_id: int
    user_id: Optional[int] = None
    property_id: Optional[int] = None
    severity: int
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = None


class RiskDashboardResponse(BaseModel):
    """Admin risk dashboard."""
    topOwners: List[OwnerRiskItem]
    recentEvents: List[SuspiciousEventItem]


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.get("/risk", response_model=RiskDashboardResponse)
async def get_risk_dashboard(
    limit: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """
    Top-risk owners (score desc, most recently updated first on ties)
    and the 50 latest suspicious events.
    """
    try:
        monitor = SuspiciousActivityMonitor(db)
        return monitor.get_admin_risk_dashboard(limit)
    except Exception as e:
        logger.error(f"Failed to fetch admin risk dashboard: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch risk dashboard")


@router.post("/risk/{owner_id}/recompute", response_model=OwnerRiskItem)
async def recompute_owner_risk(
    owner_id: str,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """
    Force a risk recompute for one owner and return the new snapshot.
    """
    normalized_owner = coerce_id(owner_id)
    if normalized_owner is None:
        raise HTTPException(status_code=400, detail="Invalid owner id")

    try:
        summary = SuspiciousActivityMonitor(db).recompute_owner_risk(normalized_owner)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to recompute risk for owner {normalized_owner}: {e}")
        raise HTTPException(status_code=500, detail="Failed to recompute owner risk")

    logger.info(f"Admin {admin.id} recomputed risk for owner {normalized_owner}")
    return summary.to_dict()
