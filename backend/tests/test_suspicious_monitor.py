"""
Test Suite for the Suspicious Activity Monitor

Runs the full record → recompute → penalty → dashboard path against an
in-memory database.

Key tests:
1. Event recorder drops malformed calls silently
2. View tracker appends impressions
3. Recompute persists a full snapshot and is repeatable
4. Penalties are identical across all of an owner's listings
5. Dashboard ordering and caps
"""
import pytest
from datetime import timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.database import Base
from app.models.db_models import (
    OwnerRiskDB,
    PropertyDB,
    PropertyViewDB,
    SuspiciousEventDB,
)
from app.services.risk.suspicious_monitor import MAX_ID
from app.services.risk import (
    OwnerRiskScorer,
    SuspiciousActivityMonitor,
    coerce_id,
    get_admin_risk_dashboard,
    recompute_owner_risk,
    record_property_view,
    track_suspicious_event,
)


@pytest.fixture
def monitor(db_session):
    return SuspiciousActivityMonitor(db_session)


# =============================================================================
# ID COERCION
# =============================================================================

class TestCoerceId:

    @pytest.mark.parametrize("raw,expected", [
        (5, 5),
        ("12", 12),
        (" 12 ", 12),
        (3.0, 3),
        ("7.0", 7),
    ])
    def test_valid(self, raw, expected):
        assert coerce_id(raw) == expected

    @pytest.mark.parametrize("raw", [
        None, "", "  ", "abc", 0, -4, 2.5, "nan", "inf", True, [], {},
        10 ** 400, "1e400", float("inf"), MAX_ID + 1,
    ])
    def test_invalid(self, raw):
        assert coerce_id(raw) is None

    def test_upper_bound(self):
        assert coerce_id(MAX_ID) == MAX_ID
        assert coerce_id(str(MAX_ID)) == MAX_ID


# =============================================================================
# EVENT RECORDER
# =============================================================================

class TestTrackSuspiciousEvent:

    def test_persists_event(self, monitor, db_session):
        event = monitor.track_suspicious_event(
            "payment_cancelled_or_failed",
            "42",
            user_id=9,
            property_id="3",
            severity=6,
            details={"transactionId": "TXN1"},
        )

        assert event is not None
        stored = db_session.query(SuspiciousEventDB).one()
        assert stored.event_type == "payment_cancelled_or_failed"
        assert stored.owner_id == 42
        assert stored.user_id == 9
        assert stored.property_id == 3
        assert stored.severity == 6
        assert stored.details == {"transactionId": "TXN1"}
        assert stored.created_at is not None

    def test_defaults(self, monitor, db_session):
        monitor.track_suspicious_event("direct_contact_attempt", 42)
        stored = db_session.query(SuspiciousEventDB).one()
        assert stored.severity == 1
        assert stored.user_id is None
        assert stored.property_id is None
        assert stored.details == {}

    @pytest.mark.parametrize("severity", [0, -5, None, "high", float("inf"), float("nan"), "1e400"])
    def test_bad_severity_falls_back_to_one(self, monitor, db_session, severity):
        monitor.track_suspicious_event("x", 42, severity=severity)
        assert db_session.query(SuspiciousEventDB).one().severity == 1

    @pytest.mark.parametrize("severity", [500, 10 ** 400])
    def test_oversized_severity_capped(self, monitor, db_session, severity):
        monitor.track_suspicious_event("x", 42, severity=severity)
        assert db_session.query(SuspiciousEventDB).one().severity == 100

    def test_missing_owner_is_silent_noop(self, monitor, db_session):
        assert monitor.track_suspicious_event("x", None) is None
        assert db_session.query(SuspiciousEventDB).count() == 0

    @pytest.mark.parametrize("event_type,owner_id", [
        ("", 42),
        (None, 42),
        ("   ", 42),
        ("x", "abc"),
        ("x", 0),
    ])
    def test_invalid_input_is_silent_noop(self, monitor, db_session, event_type, owner_id):
        assert monitor.track_suspicious_event(event_type, owner_id) is None
        assert db_session.query(SuspiciousEventDB).count() == 0

    def test_convenience_function(self, db_session):
        track_suspicious_event(db_session, "terms_not_accepted", 3, severity=2)
        assert db_session.query(SuspiciousEventDB).count() == 1


# =============================================================================
# VIEW TRACKER
# =============================================================================

class TestRecordPropertyView:

    def test_appends_view(self, monitor, db_session):
        monitor.record_property_view(10, 4, user_id=None)
        monitor.record_property_view("10", "4", user_id="8")

        views = db_session.query(PropertyViewDB).order_by(PropertyViewDB.id).all()
        assert len(views) == 2
        assert views[0].user_id is None
        assert views[1].user_id == 8
        assert all(v.property_id == 10 and v.owner_id == 4 for v in views)

    def test_non_numeric_ids_dropped(self, db_session):
        assert record_property_view(db_session, "abc", 4) is None
        assert db_session.query(PropertyViewDB).count() == 0


# =============================================================================
# RISK AGGREGATOR + PENALTY APPLICATOR
# =============================================================================

class TestRecomputeOwnerRisk:

    def test_invalid_owner_returns_none_without_writes(self, monitor, db_session):
        assert monitor.recompute_owner_risk(None) is None
        assert monitor.recompute_owner_risk("abc") is None
        assert db_session.query(OwnerRiskDB).count() == 0

    def test_owner_without_properties_is_zero_case(self, monitor, db_session, factory, now):
        owner = factory.owner()
        summary = monitor.recompute_owner_risk(owner.id, now=now)

        assert summary.risk_score == 0
        assert summary.risk_level.value == "normal"
        row = db_session.get(OwnerRiskDB, owner.id)
        assert row.metrics["recent_views"] == 0
        assert row.metrics["conversion_rate"] == 0
        assert row.penalties == {"ranking_penalty_level": "none", "featured_eligible": True}

    def test_high_views_without_conversion(self, monitor, db_session, factory, now):
        owner = factory.owner()
        prop = factory.property(owner)
        factory.views(prop, 30, created_at=now - timedelta(days=2))

        summary = monitor.recompute_owner_risk(owner.id, now=now)

        assert summary.risk_score == 20
        assert summary.high_views_no_conversion is True
        db_session.refresh(prop)
        assert prop.ranking_penalty_level == "low"
        assert prop.featured_eligible is True

    def test_views_counted_across_all_owner_properties(self, monitor, factory, now):
        owner = factory.owner()
        first = factory.property(owner)
        second = factory.property(owner)
        factory.views(first, 15, created_at=now - timedelta(days=1))
        factory.views(second, 15, created_at=now - timedelta(days=1))

        other_owner = factory.owner()
        factory.views(factory.property(other_owner), 40, created_at=now - timedelta(days=1))

        summary = monitor.recompute_owner_risk(owner.id, now=now)
        assert summary.recent_views == 30
        assert summary.risk_score == 20

    def test_repeated_pair_cancellations(self, monitor, factory, now):
        owner = factory.owner()
        tenant = factory.user()
        prop = factory.property(owner)
        for _ in range(3):
            factory.booking(prop, tenant, booking_status="cancelled", created_at=now - timedelta(days=3))

        assert monitor.recompute_owner_risk(owner.id, now=now).risk_score == 10

        factory.booking(prop, tenant, booking_status="failed", created_at=now - timedelta(days=1))
        summary = monitor.recompute_owner_risk(owner.id, now=now)
        assert summary.repeated_pair_cancels == 1
        assert summary.risk_score == 10

    def test_events_for_other_owners_ignored(self, monitor, factory, now):
        owner = factory.owner()
        monitor.track_suspicious_event("x", owner.id, severity=5, created_at=now - timedelta(days=1))
        monitor.track_suspicious_event("x", owner.id + 100, severity=50, created_at=now - timedelta(days=1))

        assert monitor.recompute_owner_risk(owner.id, now=now).risk_score == 5

    def test_old_events_ignored_but_kept(self, monitor, db_session, factory, now):
        owner = factory.owner()
        monitor.track_suspicious_event("x", owner.id, severity=40, created_at=now - timedelta(days=45))

        summary = monitor.recompute_owner_risk(owner.id, now=now)
        assert summary.risk_score == 0
        assert summary.suspicious_events_30d == 0
        assert db_session.query(SuspiciousEventDB).count() == 1

    def test_penalty_identical_on_every_property(self, monitor, db_session, factory, now):
        owner = factory.owner()
        props = [factory.property(owner) for _ in range(4)]
        bystander = factory.property(factory.owner())
        monitor.track_suspicious_event("fraud", owner.id, severity=18, created_at=now - timedelta(days=1))
        monitor.track_suspicious_event("fraud", owner.id, severity=18, created_at=now - timedelta(days=1))

        summary = monitor.recompute_owner_risk(owner.id, now=now)
        assert summary.risk_score == 36

        rows = db_session.query(PropertyDB).filter(PropertyDB.owner_id == owner.id).all()
        assert len(rows) == len(props)
        assert {(p.ranking_penalty_level, p.featured_eligible) for p in rows} == {("medium", False)}

        db_session.refresh(bystander)
        assert bystander.ranking_penalty_level == "none"
        assert bystander.featured_eligible is True

    def test_penalty_lifted_when_score_drops(self, monitor, db_session, factory, now):
        owner = factory.owner()
        prop = factory.property(owner)
        monitor.track_suspicious_event("fraud", owner.id, severity=70, created_at=now - timedelta(days=29))

        monitor.recompute_owner_risk(owner.id, now=now)
        db_session.refresh(prop)
        assert prop.ranking_penalty_level == "high"

        monitor.recompute_owner_risk(owner.id, now=now + timedelta(days=2))
        db_session.refresh(prop)
        assert prop.ranking_penalty_level == "none"
        assert prop.featured_eligible is True

    def test_recompute_is_idempotent(self, monitor, db_session, factory, now):
        owner = factory.owner()
        tenant = factory.user()
        prop = factory.property(owner)
        factory.views(prop, 55, created_at=now - timedelta(days=5))
        factory.booking(prop, tenant, payment_status="paid", booking_status="confirmed",
                        created_at=now - timedelta(days=4))
        monitor.track_suspicious_event("x", owner.id, severity=6, created_at=now - timedelta(days=1))

        first = monitor.recompute_owner_risk(owner.id, now=now)
        first_row = db_session.get(OwnerRiskDB, owner.id).to_dict()
        second = monitor.recompute_owner_risk(owner.id, now=now)
        second_row = db_session.get(OwnerRiskDB, owner.id).to_dict()

        assert first == second
        assert first_row == second_row
        assert db_session.query(OwnerRiskDB).count() == 1

    def test_snapshot_overwritten_in_full(self, monitor, db_session, factory, now):
        owner = factory.owner()
        monitor.recompute_owner_risk(owner.id, now=now)
        monitor.track_suspicious_event("x", owner.id, severity=18, created_at=now)

        recompute_owner_risk(db_session, owner.id, now=now)

        row = db_session.get(OwnerRiskDB, owner.id)
        assert row.risk_score == 18
        assert row.risk_level == "low"
        assert row.metrics["suspicious_events_30d"] == 1
        assert row.updated_at == now

    def test_new_event_never_lowers_score(self, monitor, factory, now):
        owner = factory.owner()
        prop = factory.property(owner)
        factory.views(prop, 35, created_at=now - timedelta(days=1))

        before = monitor.recompute_owner_risk(owner.id, now=now).risk_score
        monitor.track_suspicious_event("x", owner.id, severity=1, created_at=now)
        after = monitor.recompute_owner_risk(owner.id, now=now).risk_score
        assert after >= before

    def test_score_clamped(self, monitor, db_session, factory, now):
        owner = factory.owner()
        for _ in range(8):
            monitor.track_suspicious_event("fraud", owner.id, severity=18, created_at=now)
        summary = monitor.recompute_owner_risk(owner.id, now=now)
        assert summary.risk_score == 100
        assert db_session.get(OwnerRiskDB, owner.id).risk_score == 100

    def test_weak_conversion_boundary_adds_nothing(self, monitor, factory, now):
        # 1 paid / 50 views = exactly 2%
        owner = factory.owner()
        prop = factory.property(owner)
        factory.views(prop, 50, created_at=now - timedelta(days=1))
        factory.booking(prop, factory.user(), payment_status="paid", booking_status="confirmed",
                        created_at=now - timedelta(days=1))

        summary = monitor.recompute_owner_risk(owner.id, now=now)

        assert summary.metrics["conversion_rate"] == 0.02
        assert summary.weak_conversion is False
        assert summary.high_views_no_conversion is False
        assert summary.risk_score == 0

    def test_loaded_snapshot_reflects_recompute(self, monitor, db_session, factory, now):
        owner = factory.owner()
        monitor.recompute_owner_risk(owner.id, now=now)
        row = db_session.get(OwnerRiskDB, owner.id)
        assert row.risk_score == 0

        monitor.track_suspicious_event("x", owner.id, severity=7, created_at=now)
        monitor.recompute_owner_risk(owner.id, now=now)

        assert row.risk_score == 7
        assert row.metrics["suspicious_events_30d"] == 1


class InterleavingScorer(OwnerRiskScorer):
    """Runs a callback after the recompute reads, before anything is written."""

    def __init__(self, during_compute):
        super().__init__()
        self.during_compute = during_compute

    def compute(self, *args, **kwargs):
        self.during_compute()
        return super().compute(*args, **kwargs)


class TestConcurrentRecompute:
    """Two sessions on one database file recomputing the same owner."""

    OWNER_ID = 1

    @pytest.fixture
    def session_factory(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'risk.db'}")
        Base.metadata.create_all(bind=engine)
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
        engine.dispose()

    def test_first_recompute_in_both_sessions(self, session_factory, now):
        setup = session_factory()
        SuspiciousActivityMonitor(setup).track_suspicious_event(
            "fraud", self.OWNER_ID, severity=9, created_at=now
        )
        setup.commit()
        setup.close()

        first = session_factory()
        second = session_factory()
        try:
            assert first.get(OwnerRiskDB, self.OWNER_ID) is None

            def second_session_recomputes():
                SuspiciousActivityMonitor(second).recompute_owner_risk(self.OWNER_ID, now=now)
                second.commit()

            monitor = SuspiciousActivityMonitor(first, scorer=InterleavingScorer(second_session_recomputes))
            summary = monitor.recompute_owner_risk(self.OWNER_ID, now=now)
            first.commit()
        finally:
            first.close()
            second.close()

        assert summary.risk_score == 9
        check = session_factory()
        try:
            rows = check.query(OwnerRiskDB).all()
            assert len(rows) == 1
            assert rows[0].risk_score == 9
        finally:
            check.close()

    def test_snapshot_written_by_other_session_is_overwritten(self, session_factory, now):
        first = session_factory()
        second = session_factory()
        try:
            SuspiciousActivityMonitor(second).recompute_owner_risk(self.OWNER_ID, now=now)
            second.commit()

            monitor = SuspiciousActivityMonitor(first)
            monitor.track_suspicious_event("fraud", self.OWNER_ID, severity=31, created_at=now)
            monitor.recompute_owner_risk(self.OWNER_ID, now=now)
            first.commit()
        finally:
            first.close()
            second.close()

        check = session_factory()
        try:
            row = check.get(OwnerRiskDB, self.OWNER_ID)
            assert row.risk_score == 31
            assert row.risk_level == "medium"
            assert check.query(OwnerRiskDB).count() == 1
        finally:
            check.close()


# =============================================================================
# RISK DASHBOARD READER
# =============================================================================

class TestAdminRiskDashboard:

    def _snapshot(self, db_session, owner_id, score, updated_at):
        db_session.add(OwnerRiskDB(
            owner_id=owner_id,
            risk_score=score,
            risk_level="normal",
            metrics={},
            penalties={},
            updated_at=updated_at,
        ))
        db_session.commit()

    def test_top_owners_sorted_and_limited(self, monitor, db_session, now):
        self._snapshot(db_session, 1, 10, now)
        self._snapshot(db_session, 2, 80, now)
        self._snapshot(db_session, 3, 45, now)

        dashboard = monitor.get_admin_risk_dashboard(2)
        assert [o["risk_score"] for o in dashboard["topOwners"]] == [80, 45]

    def test_ties_broken_by_most_recent_update(self, monitor, db_session, now):
        self._snapshot(db_session, 1, 50, now - timedelta(hours=2))
        self._snapshot(db_session, 2, 50, now)

        dashboard = monitor.get_admin_risk_dashboard()
        assert [o["owner_id"] for o in dashboard["topOwners"]] == [2, 1]

    @pytest.mark.parametrize("raw,expected", [
        (None, 20),
        (0, 20),
        ("abc", 20),
        ("5", 5),
        (-3, 1),
        (500, 100),
        (100, 100),
        (10 ** 400, 20),
        ("1e400", 20),
    ])
    def test_limit_normalized(self, monitor, raw, expected):
        assert monitor.normalize_limit(raw) == expected

    def test_recent_events_capped_at_fifty_newest_first(self, monitor, db_session, now):
        for i in range(60):
            monitor.track_suspicious_event("x", 1 + i % 3, severity=1, created_at=now - timedelta(minutes=i))

        dashboard = get_admin_risk_dashboard(db_session, limit=1)
        events = dashboard["recentEvents"]
        assert len(events) == 50
        timestamps = [e["created_at"] for e in events]
        assert timestamps == sorted(timestamps, reverse=True)
        assert events[0]["created_at"] == now.isoformat()

    def test_dashboard_is_read_only(self, monitor, db_session, now):
        self._snapshot(db_session, 1, 10, now)
        monitor.get_admin_risk_dashboard()
        assert db_session.get(OwnerRiskDB, 1).risk_score == 10
        assert db_session.query(SuspiciousEventDB).count() == 0
