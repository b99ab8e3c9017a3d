"""
Owner Risk Scorer

Pure scoring of one owner's fraud / listing-quality signal over a rolling
window. No database access: callers pass the raw events, views and bookings
plus an explicit `now`, and get back an OwnerRiskSummary.

Score composition (clamped to 0-100):
- sum of suspicious event severities in the window
- +20 when views are high but conversion is absent or weak
- +12 when 5 or more bookings were cancelled/failed
- +10 per (owner, tenant) pair with 3 or more cancelled/failed bookings
"""
import os
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from ...models.db_models import (
    BookingStatus,
    PaymentStatus,
    RankingPenaltyLevel,
    RiskLevel,
)


DEFAULT_WINDOW_DAYS = int(os.getenv("RISK_WINDOW_DAYS", "30"))

# Score cut points shared by risk level and ranking penalty
HIGH_THRESHOLD = 60
MEDIUM_THRESHOLD = 30
LOW_THRESHOLD = 15

MAX_SCORE = 100

CANCELLED_STATUSES = frozenset({BookingStatus.CANCELLED.value, BookingStatus.FAILED.value})


def _field(record: Any, name: str, default: Any = None) -> Any:
    """Read a field from an ORM row, a result Row, or a plain dict."""
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def _lower(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value).lower()
    return str(value).lower()


def risk_level_for_score(score: int) -> RiskLevel:
    if score >= HIGH_THRESHOLD:
        return RiskLevel.HIGH
    if score >= MEDIUM_THRESHOLD:
        return RiskLevel.MEDIUM
    if score >= LOW_THRESHOLD:
        return RiskLevel.LOW
    return RiskLevel.NORMAL


def penalty_for_score(score: int) -> Tuple[RankingPenaltyLevel, bool]:
    """
    Map a risk score to (ranking penalty level, featured eligibility).

    Featured placement is withdrawn from MEDIUM upward; LOW only demotes.
    """
    if score >= HIGH_THRESHOLD:
        return RankingPenaltyLevel.HIGH, False
    if score >= MEDIUM_THRESHOLD:
        return RankingPenaltyLevel.MEDIUM, False
    if score >= LOW_THRESHOLD:
        return RankingPenaltyLevel.LOW, True
    return RankingPenaltyLevel.NONE, True


@dataclass
class OwnerRiskSummary:
    """Snapshot of one owner's risk. Mirrors a row of owner_risk."""
    owner_id: int
    risk_score: int
    risk_level: RiskLevel

    # Metrics
    recent_views: int = 0
    paid_bookings: int = 0
    cancelled_or_failed_bookings: int = 0
    repeated_pair_cancels: int = 0
    conversion_rate: float = 0.0
    suspicious_events_30d: int = 0

    # Flags that fed the score
    high_views_no_conversion: bool = False
    weak_conversion: bool = False

    # Penalties
    ranking_penalty_level: RankingPenaltyLevel = RankingPenaltyLevel.NONE
    featured_eligible: bool = True

    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def metrics(self) -> Dict[str, Any]:
        return {
            "recent_views": self.recent_views,
            "paid_bookings": self.paid_bookings,
            "cancelled_or_failed_bookings": self.cancelled_or_failed_bookings,
            "repeated_pair_cancels": self.repeated_pair_cancels,
            "conversion_rate": round(self.conversion_rate, 4),
            "suspicious_events_30d": self.suspicious_events_30d,
        }

    @property
    def penalties(self) -> Dict[str, Any]:
        return {
            "ranking_penalty_level": self.ranking_penalty_level.value,
            "featured_eligible": self.featured_eligible,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage/serialization."""
        return {
            "owner_id": self.owner_id,
            "risk_score": self.risk_score,
            "risk_level": self.risk_level.value,
            "metrics": self.metrics,
            "penalties": self.penalties,
            "updated_at": self.updated_at.isoformat(),
        }


class OwnerRiskScorer:
    """
    Computes an OwnerRiskSummary from raw pipeline inputs.

    Usage:
        scorer = OwnerRiskScorer()
        summary = scorer.compute(owner_id, events, views, bookings, now)
    """

    # Conversion signals
    HIGH_VIEWS_THRESHOLD = 30
    WEAK_CONVERSION_VIEWS_THRESHOLD = 50
    WEAK_CONVERSION_RATE = 0.02
    CONVERSION_PENALTY = 20

    # Cancellation signals
    CANCELLED_BOOKINGS_THRESHOLD = 5
    CANCELLED_BOOKINGS_PENALTY = 12
    REPEATED_PAIR_MIN_CANCELS = 3
    REPEATED_PAIR_PENALTY = 10

    def __init__(self, window_days: int = DEFAULT_WINDOW_DAYS):
        self.window_days = window_days

    def window_start(self, now: datetime) -> datetime:
        return now - timedelta(days=self.window_days)

    def _in_window(self, record: Any, since: datetime, now: datetime) -> bool:
        created_at = _field(record, "created_at")
        if created_at is None:
            return False
        return since <= created_at <= now

    def compute(
        self,
        owner_id: int,
        events: Iterable[Any],
        views: Iterable[Any],
        bookings: Iterable[Any],
        now: datetime,
    ) -> OwnerRiskSummary:
        """
        Score one owner.

        Args:
            owner_id: Owner being scored
            events: Suspicious events for this owner (severity, created_at)
            views: Views across the owner's properties (created_at)
            bookings: Bookings on the owner's properties
                (payment_status, booking_status, user_id, created_at)
            now: End of the window; the window is [now - window_days, now]

        Returns:
            OwnerRiskSummary with score, level, metrics and penalties
        """
        since = self.window_start(now)

        recent_events = [e for e in events if self._in_window(e, since, now)]
        recent_views = sum(1 for v in views if self._in_window(v, since, now))
        recent_bookings = [b for b in bookings if self._in_window(b, since, now)]

        event_score = sum(max(1, int(_field(e, "severity") or 1)) for e in recent_events)

        paid_bookings = sum(
            1 for b in recent_bookings
            if _lower(_field(b, "payment_status")) == PaymentStatus.PAID.value
        )
        cancelled = [
            b for b in recent_bookings
            if _lower(_field(b, "booking_status")) in CANCELLED_STATUSES
        ]

        conversion_rate = paid_bookings / recent_views if recent_views > 0 else 0.0
        high_views_no_conversion = recent_views >= self.HIGH_VIEWS_THRESHOLD and paid_bookings == 0
        weak_conversion = (
            recent_views >= self.WEAK_CONVERSION_VIEWS_THRESHOLD
            and conversion_rate < self.WEAK_CONVERSION_RATE
        )

        pair_cancels = Counter((owner_id, _field(b, "user_id")) for b in cancelled)
        repeated_pair_cancels = sum(
            1 for count in pair_cancels.values() if count >= self.REPEATED_PAIR_MIN_CANCELS
        )

        score = event_score
        if high_views_no_conversion or weak_conversion:
            score += self.CONVERSION_PENALTY
        if len(cancelled) >= self.CANCELLED_BOOKINGS_THRESHOLD:
            score += self.CANCELLED_BOOKINGS_PENALTY
        score += repeated_pair_cancels * self.REPEATED_PAIR_PENALTY
        score = max(0, min(MAX_SCORE, score))

        penalty_level, featured_eligible = penalty_for_score(score)

        return OwnerRiskSummary(
            owner_id=owner_id,
            risk_score=score,
            risk_level=risk_level_for_score(score),
            recent_views=recent_views,
            paid_bookings=paid_bookings,
            cancelled_or_failed_bookings=len(cancelled),
            repeated_pair_cancels=repeated_pair_cancels,
            conversion_rate=conversion_rate,
            suspicious_events_30d=len(recent_events),
            high_views_no_conversion=high_views_no_conversion,
            weak_conversion=weak_conversion,
            ranking_penalty_level=penalty_level,
            featured_eligible=featured_eligible,
            updated_at=now,
        )


def compute_risk_summary(
    owner_id: int,
    events: Iterable[Any],
    views: Iterable[Any],
    bookings: Iterable[Any],
    now: datetime,
    window_days: Optional[int] = None,
) -> OwnerRiskSummary:
    """
    Convenience function to score one owner.

    Args:
        owner_id: Owner being scored
        events: Suspicious events
        views: Property views
        bookings: Bookings on the owner's properties
        now: Window end
        window_days: Lookback window (default RISK_WINDOW_DAYS)

    Returns:
        OwnerRiskSummary
    """
    scorer = OwnerRiskScorer(window_days=window_days or DEFAULT_WINDOW_DAYS)
    return scorer.compute(owner_id, events, views, bookings, now)
