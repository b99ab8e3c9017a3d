"""
Suspicious Activity Monitor

Append-only fraud telemetry for listing owners plus the orchestration that
turns it into a per-owner risk snapshot and ranking penalty.

Core Principles:
1. Telemetry never fails the caller. Malformed track/view calls are dropped
   with a warning, never raised.
2. Events and views are append-only. The window is a read-time filter.
3. Recompute is a full overwrite, not an increment, written as one upsert.
   Running it twice on the same window yields the same snapshot, and
   concurrent recomputes for one owner both succeed (last writer wins).
4. Penalties are applied to every listing of the owner at once.

Storage errors are not handled here; they propagate to the route.
"""
from datetime import datetime
import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.util import identity_key
from sqlalchemy import desc
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from ...models.db_models import (
    BookingDB,
    OwnerRiskDB,
    PropertyDB,
    PropertyViewDB,
    SuspiciousEventDB,
)
from .risk_scorer import MAX_SCORE, OwnerRiskScorer, OwnerRiskSummary, penalty_for_score


logger = logging.getLogger(__name__)

# Ids are stored in INTEGER columns
MAX_ID = 2 ** 31 - 1


def coerce_id(value: Any) -> Optional[int]:
    """
    Coerce a request-supplied id to a positive integer.

    Returns None for missing, non-numeric, non-finite, fractional or
    non-positive input, and for ids beyond MAX_ID.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(number) or number <= 0 or number > MAX_ID or not number.is_integer():
        return None
    return int(number)


def coerce_severity(value: Any) -> int:
    """
    Severity is an integer in [1, MAX_SCORE]; anything unparseable falls
    back to 1. A single event can never add more than the score cap.
    """
    try:
        severity = int(value)
    except (TypeError, ValueError, OverflowError):
        return 1
    return max(1, min(MAX_SCORE, severity))


class SuspiciousActivityMonitor:
    """
    Records owner fraud signals and maintains the owner_risk snapshot.

    Usage:
        monitor = SuspiciousActivityMonitor(db)
        monitor.track_suspicious_event("payment_cancelled_or_failed", owner_id, severity=6)
        summary = monitor.recompute_owner_risk(owner_id)
    """

    # Severities used by the platform's call sites
    TERMS_NOT_ACCEPTED_SEVERITY = 2
    PAYMENT_FAILURE_SEVERITY = 6
    TENANT_REPORT_SEVERITY = 18

    DEFAULT_DASHBOARD_LIMIT = 20
    MAX_DASHBOARD_LIMIT = 100
    RECENT_EVENTS_LIMIT = 50

    def __init__(self, db: Session, scorer: Optional[OwnerRiskScorer] = None):
        self.db = db
        self.scorer = scorer or OwnerRiskScorer()

    # =========================================================================
    # EVENT RECORDER
    # =========================================================================

    def track_suspicious_event(
        self,
        event_type: Optional[str],
        owner_id: Any,
        user_id: Any = None,
        property_id: Any = None,
        severity: Any = 1,
        details: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> Optional[SuspiciousEventDB]:
        """
        Append one suspicious event for an owner.

        Args:
            event_type: Signal name, e.g. payment_cancelled_or_failed
            owner_id: Owner the signal counts against
            user_id: Tenant involved, if any
            property_id: Listing involved, if any
            severity: Weight added to the owner's score (>= 1)
            details: Opaque context stored with the event
            created_at: Event time (default: now)

        Returns:
            The created event, or None when the call was dropped
        """
        normalized_type = str(event_type).strip() if event_type is not None else ""
        normalized_owner = coerce_id(owner_id)
        if not normalized_type or normalized_owner is None:
            logger.warning(
                f"Dropped suspicious event: event_type={event_type!r} owner_id={owner_id!r}"
            )
            return None

        event = SuspiciousEventDB(
            event_type=normalized_type,
            owner_id=normalized_owner,
            user_id=coerce_id(user_id),
            property_id=coerce_id(property_id),
            severity=coerce_severity(severity),
            details=dict(details or {}),
            created_at=created_at or datetime.utcnow(),
        )
        self.db.add(event)
        self.db.flush()
        return event

    # =========================================================================
    # VIEW TRACKER
    # =========================================================================

    def record_property_view(
        self,
        property_id: Any,
        owner_id: Any,
        user_id: Any = None,
        created_at: Optional[datetime] = None,
    ) -> Optional[PropertyViewDB]:
        """Append one property-detail impression. Anonymous viewers allowed."""
        normalized_property = coerce_id(property_id)
        normalized_owner = coerce_id(owner_id)
        if normalized_property is None or normalized_owner is None:
            logger.warning(
                f"Dropped property view: property_id={property_id!r} owner_id={owner_id!r}"
            )
            return None

        view = PropertyViewDB(
            property_id=normalized_property,
            owner_id=normalized_owner,
            user_id=coerce_id(user_id),
            created_at=created_at or datetime.utcnow(),
        )
        self.db.add(view)
        self.db.flush()
        return view

    # =========================================================================
    # PENALTY APPLICATOR
    # =========================================================================

    def apply_owner_penalty(self, owner_id: int, risk_score: int) -> Dict[str, Any]:
        """
        Overwrite ranking penalty and featured eligibility on every listing
        of the owner.

        Returns:
            {"ranking_penalty_level": str, "featured_eligible": bool}
        """
        penalty_level, featured_eligible = penalty_for_score(risk_score)

        updated = self.db.query(PropertyDB).filter(
            PropertyDB.owner_id == owner_id
        ).update(
            {
                PropertyDB.ranking_penalty_level: penalty_level.value,
                PropertyDB.featured_eligible: featured_eligible,
                PropertyDB.updated_at: datetime.utcnow(),
            },
            synchronize_session="fetch",
        )
        logger.debug(f"Applied penalty {penalty_level.value} to {updated} properties of owner {owner_id}")

        return {
            "ranking_penalty_level": penalty_level.value,
            "featured_eligible": featured_eligible,
        }

    # =========================================================================
    # RISK AGGREGATOR
    # =========================================================================

    def upsert_owner_risk(self, values: Dict[str, Any]) -> None:
        """
        Write the owner_risk row in a single INSERT ... ON CONFLICT statement.

        Two sessions recomputing the same owner both succeed; the last
        statement to run wins.
        """
        self.db.flush()

        dialect = self.db.get_bind().dialect.name
        insert = sqlite_insert if dialect == "sqlite" else postgresql_insert

        stmt = insert(OwnerRiskDB).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[OwnerRiskDB.owner_id],
            set_={
                name: stmt.excluded[name]
                for name in values
                if name != "owner_id"
            },
        )
        self.db.execute(stmt)

        # A snapshot already loaded in this session is now stale
        cached = self.db.identity_map.get(identity_key(OwnerRiskDB, values["owner_id"]))
        if cached is not None:
            self.db.expire(cached)

    def recompute_owner_risk(
        self,
        owner_id: Any,
        now: Optional[datetime] = None,
    ) -> Optional[OwnerRiskSummary]:
        """
        Recompute and persist the risk snapshot for one owner.

        Reads are not snapshot-isolated; a booking landing mid-recompute is
        picked up by the next recompute.

        Args:
            owner_id: Owner to score
            now: Window end (default: now)

        Returns:
            The new OwnerRiskSummary, or None for an invalid owner id
        """
        normalized_owner = coerce_id(owner_id)
        if normalized_owner is None:
            logger.warning(f"Skipped risk recompute for invalid owner_id={owner_id!r}")
            return None

        now = now or datetime.utcnow()
        since = self.scorer.window_start(now)

        property_ids = [
            row.id for row in self.db.query(PropertyDB.id).filter(
                PropertyDB.owner_id == normalized_owner
            ).all()
        ]

        events = self.db.query(
            SuspiciousEventDB.severity,
            SuspiciousEventDB.created_at,
        ).filter(
            SuspiciousEventDB.owner_id == normalized_owner,
            SuspiciousEventDB.created_at >= since,
        ).all()

        views: List[Any] = []
        bookings: List[Any] = []
        if property_ids:
            views = self.db.query(PropertyViewDB.created_at).filter(
                PropertyViewDB.property_id.in_(property_ids),
                PropertyViewDB.created_at >= since,
            ).all()
            bookings = self.db.query(
                BookingDB.payment_status,
                BookingDB.booking_status,
                BookingDB.user_id,
                BookingDB.created_at,
            ).filter(
                BookingDB.property_id.in_(property_ids),
                BookingDB.created_at >= since,
            ).all()

        summary = self.scorer.compute(normalized_owner, events, views, bookings, now)

        penalties = self.apply_owner_penalty(normalized_owner, summary.risk_score)

        self.upsert_owner_risk({
            "owner_id": normalized_owner,
            "risk_score": summary.risk_score,
            "risk_level": summary.risk_level.value,
            "metrics": summary.metrics,
            "penalties": penalties,
            "updated_at": summary.updated_at,
        })

        logger.info(
            f"Owner {normalized_owner} risk recomputed: score={summary.risk_score} "
            f"level={summary.risk_level.value} penalty={penalties['ranking_penalty_level']}"
        )
        return summary

    # =========================================================================
    # RISK DASHBOARD READER
    # =========================================================================

    def normalize_limit(self, limit: Any) -> int:
        """Clamp to [1, 100]; missing, zero or non-numeric means the default."""
        try:
            number = float(limit)
        except (TypeError, ValueError, OverflowError):
            number = 0
        if not math.isfinite(number) or number == 0:
            number = self.DEFAULT_DASHBOARD_LIMIT
        return int(max(1, min(self.MAX_DASHBOARD_LIMIT, number)))

    def get_admin_risk_dashboard(self, limit: Any = DEFAULT_DASHBOARD_LIMIT) -> Dict[str, List[Dict[str, Any]]]:
        """
        Top-risk owners and the latest suspicious events across all owners.

        No authorization here; the route restricts callers to admins.

        Returns:
            {"topOwners": [...], "recentEvents": [...]}
        """
        normalized_limit = self.normalize_limit(limit)

        top_owners = self.db.query(OwnerRiskDB).order_by(
            desc(OwnerRiskDB.risk_score),
            desc(OwnerRiskDB.updated_at),
        ).limit(normalized_limit).all()

        recent_events = self.db.query(SuspiciousEventDB).order_by(
            desc(SuspiciousEventDB.created_at),
            desc(SuspiciousEventDB.id),
        ).limit(self.RECENT_EVENTS_LIMIT).all()

        return {
            "topOwners": [row.to_dict() for row in top_owners],
            "recentEvents": [event.to_dict() for event in recent_events],
        }


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def track_suspicious_event(
    db: Session,
    event_type: Optional[str],
    owner_id: Any,
    user_id: Any = None,
    property_id: Any = None,
    severity: Any = 1,
    details: Optional[Dict[str, Any]] = None,
) -> Optional[SuspiciousEventDB]:
    return SuspiciousActivityMonitor(db).track_suspicious_event(
        event_type, owner_id, user_id=user_id, property_id=property_id,
        severity=severity, details=details,
    )


def record_property_view(db: Session, property_id: Any, owner_id: Any, user_id: Any = None) -> Optional[PropertyViewDB]:
    return SuspiciousActivityMonitor(db).record_property_view(property_id, owner_id, user_id=user_id)


def recompute_owner_risk(db: Session, owner_id: Any, now: Optional[datetime] = None) -> Optional[OwnerRiskSummary]:
    return SuspiciousActivityMonitor(db).recompute_owner_risk(owner_id, now=now)


def get_admin_risk_dashboard(db: Session, limit: Any = SuspiciousActivityMonitor.DEFAULT_DASHBOARD_LIMIT) -> Dict[str, List[Dict[str, Any]]]:
    return SuspiciousActivityMonitor(db).get_admin_risk_dashboard(limit)
