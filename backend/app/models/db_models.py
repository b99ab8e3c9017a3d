"""
FindNearPG Risk Backend - SQLAlchemy ORM Models
PostgreSQL database models for persistent storage
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Text, Integer, DateTime, JSON, ForeignKey, Boolean
from ..database import Base


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, Enum):
    """Account roles. Tenants are stored as USER."""
    ADMIN = "admin"
    OWNER = "owner"
    USER = "user"


class PaymentStatus(str, Enum):
    """Booking payment states as reported by the payment gateway."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class BookingStatus(str, Enum):
    """Booking lifecycle states."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class RiskLevel(str, Enum):
    """Owner risk classification derived from risk_score."""
    NORMAL = "normal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RankingPenaltyLevel(str, Enum):
    """Search ranking demotion tier applied to all of an owner's listings."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SuspiciousEventType(str, Enum):
    """
    Event types raised by the platform itself.

    Tenant fraud reports carry a free-form reason as their event type,
    so event_type is stored as a plain string, not constrained to this enum.
    """
    PAYMENT_CANCELLED_OR_FAILED = "payment_cancelled_or_failed"
    TERMS_NOT_ACCEPTED = "terms_not_accepted"
    DIRECT_CONTACT_ATTEMPT = "direct_contact_attempt"


# =============================================================================
# MARKETPLACE ENTITIES (read/written by the risk pipeline)
# =============================================================================

class UserDB(Base):
    """Account for tenants, owners and administrators."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)  # admin, owner, user
    is_blocked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class PropertyDB(Base):
    """PG / hostel listing."""
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    city = Column(String(100), nullable=True)
    area = Column(String(100), nullable=True)
    sharing = Column(String(20), nullable=True)  # "1", "2", "3" or "all123"
    price = Column(Integer, nullable=True)
    available_rooms = Column(Integer, default=0, nullable=False)
    is_approved = Column(Boolean, default=False, nullable=False, index=True)

    # Denormalized owner penalty - always identical across an owner's listings
    ranking_penalty_level = Column(String(20), nullable=False, default=RankingPenaltyLevel.NONE.value)
    featured_eligible = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class BookingDB(Base):
    """Tenant booking for a property."""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    room_type = Column(String(50), nullable=True)
    amount = Column(Integer, nullable=True)
    transaction_id = Column(String(64), unique=True, nullable=True, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    booking_status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# =============================================================================
# RISK PIPELINE TABLES
# =============================================================================

class SuspiciousEventDB(Base):
    """
    Typed suspicious-activity signal tied to an owner.

    Append-only. Immutable after insert. The 30-day aggregation window
    is applied at read time; rows are never compacted.
    """
    __tablename__ = "suspicious_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(Text, nullable=False, index=True)  # tenant reports carry free text
    owner_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, nullable=True)
    property_id = Column(Integer, nullable=True)
    severity = Column(Integer, nullable=False, default=1)
    details = Column(JSON, nullable=True, default=dict)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "owner_id": self.owner_id,
            "user_id": self.user_id,
            "property_id": self.property_id,
            "severity": self.severity,
            "details": self.details or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class PropertyViewDB(Base):
    """Property detail impression. Append-only; only ever counted."""
    __tablename__ = "property_views"

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(Integer, nullable=False, index=True)
    owner_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


class OwnerRiskDB(Base):
    """
    Current risk snapshot for one owner.

    Overwritten in full on every recompute. No history is kept.
    """
    __tablename__ = "owner_risk"

    owner_id = Column(Integer, primary_key=True, autoincrement=False)
    risk_score = Column(Integer, nullable=False, default=0, index=True)
    risk_level = Column(String(20), nullable=False, default=RiskLevel.NORMAL.value)

    # {recent_views, paid_bookings, cancelled_or_failed_bookings,
    #  repeated_pair_cancels, conversion_rate, suspicious_events_30d}
    metrics = Column(JSON, nullable=False, default=dict)
    # {ranking_penalty_level, featured_eligible}
    penalties = Column(JSON, nullable=False, default=dict)

    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "owner_id": self.owner_id,
            "risk_score": self.risk_score,
            "risk_level": self.risk_level,
            "metrics": self.metrics or {},
            "penalties": self.penalties or {},
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
