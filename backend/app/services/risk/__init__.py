"""
Owner Risk Pipeline

Fraud / listing-quality telemetry for property owners:
- SuspiciousActivityMonitor: event recorder, view tracker, risk aggregator,
  penalty applicator and admin dashboard reader
- OwnerRiskScorer: pure scoring over a rolling window (no database)
"""

from .risk_scorer import (
    OwnerRiskScorer,
    OwnerRiskSummary,
    compute_risk_summary,
    penalty_for_score,
    risk_level_for_score,
)
from .suspicious_monitor import (
    SuspiciousActivityMonitor,
    coerce_id,
    get_admin_risk_dashboard,
    recompute_owner_risk,
    record_property_view,
    track_suspicious_event,
)

__all__ = [
    "OwnerRiskScorer",
    "OwnerRiskSummary",
    "compute_risk_summary",
    "penalty_for_score",
    "risk_level_for_score",
    "SuspiciousActivityMonitor",
    "coerce_id",
    "get_admin_risk_dashboard",
    "recompute_owner_risk",
    "record_property_view",
    "track_suspicious_event",
]
